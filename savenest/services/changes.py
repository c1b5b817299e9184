from __future__ import annotations

from savenest.extensions import db
from savenest.models import CHANGE_KINDS, Bookmark, ChangeEvent


def log_change_event(user_id: int, kind: str, bookmark: Bookmark) -> ChangeEvent:
    if kind not in CHANGE_KINDS:
        raise ValueError(f"unsupported change kind: {kind}")
    event = ChangeEvent(
        user_id=user_id,
        kind=kind,
        record_id=bookmark.id,
        payload=bookmark.as_dict(),
    )
    db.session.add(event)
    return event


def latest_cursor(user_id: int) -> int:
    return (
        db.session.query(db.func.max(ChangeEvent.id)).filter_by(user_id=user_id).scalar()
        or 0
    )


def events_since(user_id: int, since: int, limit: int) -> list[ChangeEvent]:
    return (
        ChangeEvent.query.filter_by(user_id=user_id)
        .filter(ChangeEvent.id > since)
        .order_by(ChangeEvent.id.asc())
        .limit(limit)
        .all()
    )
