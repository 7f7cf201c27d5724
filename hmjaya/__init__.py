# hmjaya/__init__.py
from __future__ import annotations

from flask import Flask

from .errors import ActionError
from .extensions import db, limiter, login_manager, migrate
from .settings import Config


def create_app(config_object=None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(Config)
    if config_object is not None:
        app.config.from_object(config_object)

    app.logger.setLevel(str(app.config.get("LOG_LEVEL") or "INFO").upper())

    # ======================
    # Initialize Extensions
    # ======================
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    limiter.init_app(app)

    # ======================
    # Import Models (CRITICAL)
    # ======================
    from . import models  # noqa: F401

    # ======================
    # Register Blueprints
    # ======================
    from .api import api_bp
    from .auth import auth
    from .inventory import inventory_bp
    from .management import management_bp
    from .purchasing import purchasing_bp
    from .routes import main
    from .sales import sales_bp

    app.register_blueprint(main)
    app.register_blueprint(auth)
    app.register_blueprint(sales_bp)
    app.register_blueprint(purchasing_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(management_bp)
    app.register_blueprint(api_bp)

    # ======================
    # Role-prefix page gate
    # ======================
    from .utils.guards import enforce_role_access

    @app.before_request
    def gate_pages():
        return enforce_role_access()

    # ======================
    # JSON error envelope
    # ======================
    from .utils.responses import fail

    @app.errorhandler(ActionError)
    def action_error(e):
        db.session.rollback()
        return fail(e.message, e.status_code)

    @app.errorhandler(401)
    def unauthorized(e):
        return fail("Unauthorized", 401)

    @app.errorhandler(403)
    def forbidden(e):
        return fail("Forbidden", 403)

    @app.errorhandler(404)
    def not_found(e):
        return fail("Not found", 404)

    @app.errorhandler(405)
    def method_not_allowed(e):
        return fail("Method not allowed", 405)

    @app.errorhandler(413)
    def too_large(e):
        return fail("Uploaded file is too large", 413)

    @app.errorhandler(429)
    def ratelimit_handler(e):
        return fail("Too many requests. Please try again later.", 429)

    return app
