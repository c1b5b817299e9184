from flask import redirect, render_template, request, url_for
from flask_login import current_user

from savenest.models import Bookmark, User
from savenest.services.common import domain_from_url, favicon_url
from savenest.web import web_bp

PUBLIC_ENDPOINTS = {
    "static",
    "auth.bootstrap_admin",
    "auth.login",
    "auth.error",
}


@web_bp.before_app_request
def login_redirect_gate():
    endpoint = request.endpoint or ""
    if endpoint in PUBLIC_ENDPOINTS or endpoint.startswith("api."):
        return None
    if User.query.count() == 0:
        return redirect(url_for("auth.bootstrap_admin"))
    if not current_user.is_authenticated:
        return redirect(url_for("auth.login", next=request.full_path.rstrip("?")))
    return None


@web_bp.route("/")
def home():
    items = (
        Bookmark.query.filter_by(user_id=current_user.id)
        .order_by(Bookmark.created_at.desc())
        .all()
    )
    cards = [
        {
            **item.as_dict(),
            "domain": domain_from_url(item.url),
            "favicon_url": favicon_url(item.url),
        }
        for item in items
    ]
    return render_template("home.html", items=cards)
