# backend/storefront/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, migrate


def _register_blueprints(app: Flask) -> None:
    from .routes.system import system_bp
    from .routes.products import products_bp
    from .routes.cart import cart_bp
    from .routes.checkout import checkout_bp
    from .routes.orders import orders_bp
    from .routes.auth import auth_bp
    from .routes.wishlist import wishlist_bp
    from .routes.postal import postal_bp
    from .routes.admin import admin_bp  # Admin console: catalog, orders, users, settings

    for bp in (system_bp, products_bp, cart_bp, checkout_bp, orders_bp,
               auth_bp, wishlist_bp, postal_bp, admin_bp):
        app.register_blueprint(bp)


def create_app(overrides: dict | None = None) -> Flask:
    """
    Build the storefront API.

    `overrides` is applied on top of Config before extensions bind, which
    is the only point where SQLALCHEMY_DATABASE_URI can still change.
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    _register_blueprints(app)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in app.config["CORS_ALLOWED_ORIGINS"]:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Vary"] = "Origin"
            # The cart token travels in a custom header both ways
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type, X-Cart-Token"
            response.headers["Access-Control-Expose-Headers"] = "X-Cart-Token"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    from .cli import register_commands
    register_commands(app)

    return app
