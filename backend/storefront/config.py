# backend/storefront/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/storefront.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///storefront.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Server session tokens live as long as the cached-user cookie
    SESSION_ABSOLUTE_TIMEOUT_DAYS = int(os.environ.get("SESSION_ABSOLUTE_TIMEOUT_DAYS", "7"))

    USER_CACHE_COOKIE_NAME = os.environ.get("USER_CACHE_COOKIE_NAME", "ehsaas_admin_user")
    USER_CACHE_COOKIE_SECURE = _env_bool("USER_CACHE_COOKIE_SECURE", True)

    # Client SDK: minimum gap between forced revalidations
    AUTH_REVALIDATE_INTERVAL_SECONDS = int(os.environ.get("AUTH_REVALIDATE_INTERVAL_SECONDS", "600"))

    REQUIRE_EMAIL_CONFIRMATION = _env_bool("REQUIRE_EMAIL_CONFIRMATION", False)

    POSTAL_LOOKUP_URL = os.environ.get(
        "POSTAL_LOOKUP_URL",
        "https://api.postalpincode.in/pincode/{pincode}",
    )
    POSTAL_LOOKUP_TIMEOUT_SECONDS = float(os.environ.get("POSTAL_LOOKUP_TIMEOUT_SECONDS", "8"))

    CART_PROMOTIONS_ENABLED = _env_bool("CART_PROMOTIONS_ENABLED", True)

    GUEST_EMAIL_DOMAIN = os.environ.get("GUEST_EMAIL_DOMAIN", "ehsaasjewellery.com")

    MAX_PRODUCT_IMAGES = int(os.environ.get("MAX_PRODUCT_IMAGES", "8"))

    # Gallery image used when a product has no photos
    PRODUCT_IMAGE_PLACEHOLDER = os.environ.get("PRODUCT_IMAGE_PLACEHOLDER", "/placeholder.svg")

    # Storefront dev servers (vite dev and preview)
    CORS_ALLOWED_ORIGINS = frozenset(
        o.strip() for o in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
        ).split(",") if o.strip()
    )

    # bcrypt cost factor; tests lower it
    BCRYPT_LOG_ROUNDS = int(os.environ.get("BCRYPT_LOG_ROUNDS", "12"))
