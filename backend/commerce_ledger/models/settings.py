from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class StoreSetting(db.Model):
    """
    Key-value policy at the store level.

    A missing row means "use the application config default".
    """
    __tablename__ = "store_settings"
    __table_args__ = (
        db.UniqueConstraint("store_id", "key", name="uq_store_settings_key"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, nullable=False, index=True)

    key = db.Column(db.String(128), nullable=False)
    value = db.Column(db.Text, nullable=True)

    updated_by = db.Column(db.Integer, nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "store_id": self.store_id,
            "key": self.key,
            "value": self.value,
            "updated_by": self.updated_by,
            "updated_at": to_utc_z(self.updated_at),
        }
