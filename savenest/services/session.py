from flask import Flask, session
from flask_login import current_user, logout_user


def refresh_session() -> None:
    if current_user.is_anonymous:
        return
    if not current_user.is_active:
        logout_user()
        return
    session.permanent = True
    session.modified = True


def register_session_refresh(app: Flask) -> None:
    app.before_request(refresh_session)
