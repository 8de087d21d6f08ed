from __future__ import annotations

import json
import re
from typing import Any

from ..extensions import db
from ..models import StoreSetting, User
from ..validation import AuthorizationError, ValidationError
from .auth_service import has_permission


GA_ID_RE = re.compile(r"^(GA-\d{4,10}-\d{1,4}|G-[A-Z0-9]{10})$")
FB_PIXEL_RE = re.compile(r"^\d{15,16}$")

# key -> type, default, optional validator. Grouped as on the admin settings page.
SETTINGS_CATALOG: dict[str, dict[str, Any]] = {
    # general
    "siteName": {"type": "string", "default": "एहसास Jewelry"},
    "siteDescription": {"type": "string", "default": "Handcrafted Excellence in Jewelry"},
    "siteUrl": {"type": "string", "default": "https://ehsaas-jewelry.com"},
    "timezone": {"type": "string", "default": "Asia/Kolkata"},
    "currency": {"type": "string", "default": "INR"},
    "language": {"type": "string", "default": "en"},
    # email
    "smtpHost": {"type": "string", "default": "smtp.gmail.com"},
    "smtpPort": {"type": "int", "default": 587, "min": 1, "max": 65535},
    "smtpUsername": {"type": "string", "default": "noreply@ehsaas-jewelry.com"},
    "smtpPassword": {"type": "string", "default": "", "secret": True},
    # notifications
    "emailNotifications": {"type": "bool", "default": True},
    "orderUpdates": {"type": "bool", "default": True},
    "stockAlerts": {"type": "bool", "default": True},
    "reviewNotifications": {"type": "bool", "default": True},
    # security
    "twoFactorAuth": {"type": "bool", "default": False},
    "sessionTimeout": {"type": "int", "default": 30, "min": 1, "max": 1440},
    "passwordMinLength": {"type": "int", "default": 8, "min": 6, "max": 128},
    # integrations
    "cloudinaryCloudName": {"type": "string", "default": ""},
    "cloudinaryApiKey": {"type": "string", "default": "", "secret": True},
    "cloudinaryUploadPreset": {"type": "string", "default": "ml_default"},
    "googleAnalyticsId": {
        "type": "string",
        "default": "",
        "pattern": GA_ID_RE,
        "pattern_error": "Invalid Google Analytics ID format. Use GA-XXXXXXXXXX-X or G-XXXXXXXXXX format.",
    },
    "facebookPixelId": {
        "type": "string",
        "default": "",
        "pattern": FB_PIXEL_RE,
        "pattern_error": "Invalid Facebook Pixel ID format. Use 15-16 digit number.",
    },
    "enableTracking": {"type": "bool", "default": True},
}

SECRET_MASK = "********"


def _coerce(key: str, value: Any) -> Any:
    spec = SETTINGS_CATALOG[key]
    kind = spec["type"]

    if kind == "bool":
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in {"true", "false", "1", "0", "yes", "no", "on", "off"}:
            return value.strip().lower() in {"true", "1", "yes", "on"}
        raise ValidationError(f"{key} must be a boolean", fields={key: "Must be true or false"})

    if kind == "int":
        if isinstance(value, bool):
            raise ValidationError(f"{key} must be an integer", fields={key: "Must be a whole number"})
        if isinstance(value, str) and value.strip().isdigit():
            value = int(value.strip())
        if not isinstance(value, int):
            raise ValidationError(f"{key} must be an integer", fields={key: "Must be a whole number"})
        lo, hi = spec.get("min"), spec.get("max")
        if (lo is not None and value < lo) or (hi is not None and value > hi):
            raise ValidationError(f"{key} must be between {lo} and {hi}", fields={key: f"Must be between {lo} and {hi}"})
        return value

    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string", fields={key: "Must be text"})
    value = value.strip()
    pattern = spec.get("pattern")
    if value and pattern is not None and not pattern.match(value):
        raise ValidationError(spec["pattern_error"], fields={key: spec["pattern_error"]})
    return value


def _stored_values() -> dict[str, Any]:
    rows = db.session.query(StoreSetting).filter(StoreSetting.key.in_(SETTINGS_CATALOG.keys())).all()
    return {r.key: json.loads(r.value_json) for r in rows if r.value_json is not None}


def get_setting(key: str) -> Any:
    if key not in SETTINGS_CATALOG:
        raise KeyError(key)
    row = db.session.query(StoreSetting).filter_by(key=key).first()
    if row is None or row.value_json is None:
        return SETTINGS_CATALOG[key]["default"]
    return json.loads(row.value_json)


def get_settings(include_secrets: bool = False) -> dict[str, Any]:
    """Catalog defaults overlaid with stored values. Secrets are masked unless asked for."""
    values = {key: spec["default"] for key, spec in SETTINGS_CATALOG.items()}
    values.update(_stored_values())
    if not include_secrets:
        for key, spec in SETTINGS_CATALOG.items():
            if spec.get("secret") and values[key]:
                values[key] = SECRET_MASK
    return values


def update_settings(patch: dict, actor: User | None) -> dict[str, Any]:
    """
    Persist a partial settings update.

    Admin only. Unknown keys and badly typed values reject the whole patch.
    Sending the secret mask back leaves the stored secret untouched.
    """
    if not has_permission(actor, "write:settings"):
        raise AuthorizationError("Admin access required to update settings")

    if not isinstance(patch, dict) or not patch:
        raise ValidationError("No settings provided")

    unknown = sorted(k for k in patch if k not in SETTINGS_CATALOG)
    if unknown:
        raise ValidationError(f"Unknown settings: {', '.join(unknown)}")

    cleaned: dict[str, Any] = {}
    errors: dict[str, str] = {}
    for key, raw in patch.items():
        if SETTINGS_CATALOG[key].get("secret") and raw == SECRET_MASK:
            continue
        try:
            cleaned[key] = _coerce(key, raw)
        except ValidationError as e:
            errors.update(e.fields or {key: str(e)})

    if errors:
        raise ValidationError("Invalid settings", fields=errors)

    existing = {r.key: r for r in db.session.query(StoreSetting).filter(StoreSetting.key.in_(cleaned.keys())).all()}
    for key, value in cleaned.items():
        row = existing.get(key)
        if row is None:
            row = StoreSetting(key=key)
            db.session.add(row)
        row.value_json = json.dumps(value)
        row.updated_by_user_id = actor.id

    db.session.commit()
    return get_settings()
