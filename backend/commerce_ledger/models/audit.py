from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class AuditStatus:
    SUCCESS = "success"
    FAILED = "failed"


class AuditEntry(db.Model):
    """
    Audit entry per state-changing operation.

    Successful mutations write their entry in the same DB transaction as the
    change itself. Failed attempts are written after the rollback, carrying
    the error code and reason.

    IMMUTABLE: Never update or delete. Append-only for audit integrity.
    """
    __tablename__ = "audit_entries"
    __table_args__ = (
        db.Index("ix_audit_entries_entity", "entity", "entity_id"),
        db.Index("ix_audit_entries_store_created", "store_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, nullable=True, index=True)

    entity = db.Column(db.String(64), nullable=False)
    entity_id = db.Column(db.Integer, nullable=True)
    action = db.Column(db.String(64), nullable=False, index=True)
    actor_id = db.Column(db.Integer, nullable=True, index=True)

    old_value = db.Column(db.JSON, nullable=True)
    new_value = db.Column(db.JSON, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=AuditStatus.SUCCESS, index=True)
    error_code = db.Column(db.String(64), nullable=True)
    error_message = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "entity": self.entity,
            "entity_id": self.entity_id,
            "action": self.action,
            "actor_id": self.actor_id,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "status": self.status,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "timestamp": to_utc_z(self.created_at),
        }
