from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import StoreSetting
from .audit_service import audit_failures, record_audit
from .concurrency import lock_for_update, run_with_retry
from .permission_service import Actor, require_permission

ALLOW_NEGATIVE_STOCK = "allow_negative_stock"

_TRUE_VALUES = {"1", "true", "yes", "on"}


def set_store_setting(actor: Actor, key: str, value: str | None) -> StoreSetting:
    """Create or replace a store-level policy value (owner/admin)."""
    with audit_failures(actor, entity="store_setting", action="set"):
        require_permission(actor, "ADJUST_STOCK")

        def _op():
            setting = lock_for_update(
                db.session.query(StoreSetting).filter_by(store_id=actor.store_id, key=key)
            ).first()
            old_value = setting.value if setting else None
            if setting:
                setting.value = value
                setting.updated_by = actor.actor_id
            else:
                setting = StoreSetting(store_id=actor.store_id, key=key, value=value, updated_by=actor.actor_id)
                db.session.add(setting)
            db.session.flush()

            record_audit(
                store_id=actor.store_id,
                entity="store_setting",
                entity_id=setting.id,
                action="set",
                actor_id=actor.actor_id,
                old_value={"key": key, "value": old_value},
                new_value={"key": key, "value": value},
            )
            db.session.commit()
            return setting

        return run_with_retry(_op)


def get_store_setting(store_id: int, key: str) -> StoreSetting | None:
    return db.session.query(StoreSetting).filter_by(store_id=store_id, key=key).first()


def get_store_settings(store_id: int) -> list[StoreSetting]:
    return db.session.query(StoreSetting).filter_by(store_id=store_id).order_by(StoreSetting.key.asc()).all()


def allows_negative_stock(store_id: int) -> bool:
    """Store policy first, application config default otherwise."""
    setting = get_store_setting(store_id, ALLOW_NEGATIVE_STOCK)
    if setting is None or setting.value is None:
        return bool(current_app.config.get("ALLOW_NEGATIVE_STOCK", False))
    return setting.value.strip().lower() in _TRUE_VALUES
