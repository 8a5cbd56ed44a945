# backend/schoolhub/__init__.py
import logging

from flask import Flask, request
from sqlalchemy.exc import IntegrityError

from .config import Config
from .extensions import db, migrate
from .errors import ApiError
from .responses import fail, fail_from


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))
    logging.getLogger("schoolhub").setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.schools import schools_bp
    from .routes.students import students_bp
    from .routes.finance import finance_bp
    from .routes.pos import pos_bp
    from .routes.notifications import notifications_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(schools_bp)
    app.register_blueprint(students_bp)
    app.register_blueprint(finance_bp)
    app.register_blueprint(pos_bp)
    app.register_blueprint(notifications_bp)

    _register_error_handlers(app)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = {
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:19006",
            "http://127.0.0.1:19006",
        }
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app


def _register_error_handlers(app: Flask) -> None:
    """Render anything that escapes a route in the standard error envelope."""

    @app.errorhandler(ApiError)
    def handle_api_error(exc):
        return fail_from(exc)

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(exc):
        db.session.rollback()
        app.logger.warning("Integrity error at %s: %s", request.path, exc.orig)
        return fail(409, "Request conflicts with existing data.", "CONFLICT")

    @app.errorhandler(404)
    def handle_not_found(exc):
        return fail(404, "Resource not found.", "NOT_FOUND")

    @app.errorhandler(405)
    def handle_method_not_allowed(exc):
        return fail(405, "Method not allowed.", "METHOD_NOT_ALLOWED")

    @app.errorhandler(500)
    def handle_server_error(exc):
        app.logger.exception("Unhandled error at %s", request.path)
        return fail(500, "Internal server error", "SERVER_ERROR")
