# backend/partner_portal/__init__.py
import logging

from flask import Flask, request

from .config import Config
from .extensions import db, init_realtime, migrate


def create_app(config_overrides=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    # Overrides must land before db.init_app: Flask-SQLAlchemy builds engines there
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Realtime: change feed, row store, mounted partner views
    from .services.view_service import ViewRegistry

    init_realtime(app)
    app.extensions["partner_views"] = ViewRegistry()

    # Register blueprints
    from .routes.system import system_bp
    from .routes.flows import flows_bp
    from .routes.views import views_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(flows_bp)
    app.register_blueprint(views_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = {
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:4173",
            "http://127.0.0.1:4173",
        }
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PATCH,DELETE,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
