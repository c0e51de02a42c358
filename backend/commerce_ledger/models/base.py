from __future__ import annotations

from ..extensions import db


class EntityState:
    """Lifecycle tag shared by soft-deletable rows."""
    ACTIVE = "active"
    DELETED = "deleted"

    ALL = (ACTIVE, DELETED)


class LifecycleMixin:
    """
    Tagged soft delete.

    Rows are never physically removed; "deleted" is a state, queried the same
    way on every table that carries it.
    """
    lifecycle_state = db.Column(db.String(16), nullable=False, default=EntityState.ACTIVE, index=True)

    @property
    def is_deleted(self) -> bool:
        return self.lifecycle_state == EntityState.DELETED

    def mark_deleted(self) -> None:
        self.lifecycle_state = EntityState.DELETED
