from __future__ import annotations

from flask import current_app, g, jsonify, request

from savenest.api import api_bp
from savenest.extensions import db
from savenest.models import (
    CHANGE_DELETE,
    CHANGE_INSERT,
    CHANGE_UPDATE,
    ApiToken,
    Bookmark,
    User,
    utcnow,
)
from savenest.services.changes import events_since, latest_cursor, log_change_event
from savenest.services.common import clean_text
from savenest.services.security import (
    active_token_row,
    api_auth_required,
    bearer_token_from_request,
)


def _get_user_bookmark_or_404(user_id: int, bookmark_id: str):
    bookmark = Bookmark.query.filter_by(id=bookmark_id, user_id=user_id).first()
    if not bookmark:
        return None, (jsonify({"error": "bookmark not found"}), 404)
    return bookmark, None


def _ids_from_payload(payload: dict) -> list[str]:
    raw_ids = payload.get("ids")
    if not isinstance(raw_ids, list):
        return []
    parsed: list[str] = []
    seen: set[str] = set()
    for value in raw_ids:
        bookmark_id = clean_text(value)
        if bookmark_id and bookmark_id not in seen:
            seen.add(bookmark_id)
            parsed.append(bookmark_id)
    return parsed


@api_bp.route("/health")
def health():
    return jsonify({"status": "ok"})


@api_bp.route("/auth/token", methods=["POST"])
def create_token_with_credentials():
    payload = request.get_json(silent=True) or {}
    username = clean_text(payload.get("username"))
    password = payload.get("password") or ""
    user = User.query.filter_by(username=username).first()
    if not user or not user.is_active or not user.check_password(password):
        return jsonify({"error": "invalid credentials"}), 401

    token, token_hash = ApiToken.issue_token()
    name = clean_text(payload.get("token_name")) or "api"
    db.session.add(ApiToken(user_id=user.id, name=name, token_hash=token_hash))
    db.session.commit()
    return jsonify({"token": token, "user": user.as_dict()})


@api_bp.route("/auth/user", methods=["GET"])
@api_auth_required()
def current_user_api():
    return jsonify({"user": g.api_user.as_dict()})


@api_bp.route("/auth/logout", methods=["POST"])
@api_auth_required()
def logout_api():
    token_row = active_token_row(bearer_token_from_request())
    if token_row:
        token_row.revoked_at = utcnow()
        db.session.commit()
    return jsonify({"status": "signed_out"})


@api_bp.route("/admin/users", methods=["POST"])
@api_auth_required(admin=True)
def admin_create_user():
    payload = request.get_json(silent=True) or {}
    username = clean_text(payload.get("username"))
    password = payload.get("password") or ""
    if not username or not password:
        return jsonify({"error": "username and password are required"}), 400
    if User.query.filter_by(username=username).first():
        return jsonify({"error": "username already exists"}), 400

    user = User(
        username=username,
        is_admin=bool(payload.get("is_admin", False)),
        is_active=True,
    )
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return jsonify(user.as_dict()), 201


@api_bp.route("/bookmarks", methods=["GET"])
@api_auth_required()
def bookmarks_list_api():
    user = g.api_user
    items = (
        Bookmark.query.filter_by(user_id=user.id)
        .order_by(Bookmark.created_at.desc())
        .all()
    )
    return jsonify({"items": [item.as_dict() for item in items]})


@api_bp.route("/bookmarks", methods=["POST"])
@api_auth_required()
def bookmarks_create_api():
    user = g.api_user
    payload = request.get_json(silent=True) or {}
    url = clean_text(payload.get("url"))
    title = clean_text(payload.get("title"))
    if not url:
        return jsonify({"error": "url is required"}), 400
    if not title:
        return jsonify({"error": "title is required"}), 400
    owner = payload.get("user_id")
    if owner is not None and str(owner) != str(user.id):
        return jsonify({"error": "cannot create bookmarks for another user"}), 403

    bookmark = Bookmark(user_id=user.id, title=title, url=url)
    db.session.add(bookmark)
    db.session.flush()
    log_change_event(user.id, CHANGE_INSERT, bookmark)
    db.session.commit()
    return jsonify(bookmark.as_dict()), 201


@api_bp.route("/bookmarks/<bookmark_id>", methods=["GET"])
@api_auth_required()
def bookmarks_get_api(bookmark_id: str):
    bookmark, error = _get_user_bookmark_or_404(g.api_user.id, bookmark_id)
    if error:
        return error
    return jsonify(bookmark.as_dict())


@api_bp.route("/bookmarks/<bookmark_id>", methods=["PATCH"])
@api_auth_required()
def bookmarks_update_api(bookmark_id: str):
    user = g.api_user
    bookmark, error = _get_user_bookmark_or_404(user.id, bookmark_id)
    if error:
        return error

    payload = request.get_json(silent=True) or {}
    for field in ["title", "url"]:
        if field not in payload:
            continue
        value = clean_text(payload.get(field))
        if not value:
            return jsonify({"error": f"{field} must not be empty"}), 400
        setattr(bookmark, field, value)

    log_change_event(user.id, CHANGE_UPDATE, bookmark)
    db.session.commit()
    return jsonify(bookmark.as_dict())


@api_bp.route("/bookmarks/<bookmark_id>", methods=["DELETE"])
@api_auth_required()
def bookmarks_delete_api(bookmark_id: str):
    user = g.api_user
    bookmark, error = _get_user_bookmark_or_404(user.id, bookmark_id)
    if error:
        return error

    log_change_event(user.id, CHANGE_DELETE, bookmark)
    db.session.delete(bookmark)
    db.session.commit()
    return jsonify({"status": "deleted", "id": bookmark_id})


@api_bp.route("/bookmarks/delete", methods=["POST"])
@api_auth_required()
def bookmarks_delete_many_api():
    user = g.api_user
    payload = request.get_json(silent=True) or {}
    bookmark_ids = _ids_from_payload(payload)
    if not bookmark_ids:
        return jsonify({"error": "ids are required"}), 400

    bookmarks = (
        Bookmark.query.filter_by(user_id=user.id)
        .filter(Bookmark.id.in_(bookmark_ids))
        .all()
    )
    for bookmark in bookmarks:
        log_change_event(user.id, CHANGE_DELETE, bookmark)
        db.session.delete(bookmark)
    db.session.commit()
    return jsonify(
        {"status": "deleted", "ids": [bookmark.id for bookmark in bookmarks]}
    )


@api_bp.route("/changes", methods=["GET"])
@api_auth_required()
def changes_api():
    user = g.api_user
    since = request.args.get("since", type=int)
    if since is None:
        cursor = latest_cursor(user.id)
        return jsonify({"events": [], "cursor": cursor, "has_more": False})

    limit = request.args.get(
        "limit", default=current_app.config["CHANGE_FEED_PAGE_LIMIT"], type=int
    )
    limit = max(1, min(limit, current_app.config["CHANGE_FEED_PAGE_LIMIT"]))
    events = events_since(user.id, since, limit)
    cursor = events[-1].id if events else since
    return jsonify(
        {
            "events": [event.as_dict() for event in events],
            "cursor": cursor,
            "has_more": len(events) == limit,
        }
    )
