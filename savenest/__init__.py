from flask import Flask

from savenest.api import api_bp
from savenest.auth import auth_bp
from savenest.config import Config
from savenest.extensions import db, login_manager, migrate
from savenest.services.session import register_session_refresh
from savenest.web import web_bp


def create_app(config_object=Config):
    app = Flask(__name__, template_folder="../templates")
    app.config.from_object(config_object)

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    register_session_refresh(app)

    app.register_blueprint(auth_bp)
    app.register_blueprint(web_bp)
    app.register_blueprint(api_bp)

    @app.cli.command("init-db")
    def init_db_command():
        db.create_all()
        print("Initialized SaveNest database.")

    @app.context_processor
    def inject_globals():
        return {"app_name": "SaveNest"}

    with app.app_context():
        db.create_all()

    return app
