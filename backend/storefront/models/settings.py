from __future__ import annotations

from ..extensions import db
from storefront.time_utils import to_utc_z


class StoreSetting(db.Model):
    """
    Key-value storefront settings edited from the admin console.

    Values are stored JSON-encoded; allowed keys, types and defaults live in
    settings_service.SETTINGS_CATALOG.
    """
    __tablename__ = "store_settings"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(128), nullable=False, unique=True)
    value_json = db.Column(db.Text, nullable=True)

    updated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self):
        return {
            "id": self.id,
            "key": self.key,
            "value_json": self.value_json,
            "updated_by_user_id": self.updated_by_user_id,
            "updated_at": to_utc_z(self.updated_at),
        }
