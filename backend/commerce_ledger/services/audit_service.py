# Overview: Append-only audit trail for every state-changing ledger operation.

"""
Audit Log invariants (authoritative)

- One AuditEntry per mutation attempt, successful or not.
- Successful mutations append their entry inside the same DB transaction as
  the change (record_audit never commits).
- Failed attempts roll back the mutation first, then append a FAILED entry
  with the error code in a transaction of their own (audit_failures).
- No updates, no deletes.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..errors import LedgerError
from ..extensions import db
from ..models import AuditEntry, AuditStatus


def record_audit(
    *,
    store_id: int | None,
    entity: str,
    action: str,
    entity_id: int | None = None,
    actor_id: int | None = None,
    old_value: dict[str, Any] | None = None,
    new_value: dict[str, Any] | None = None,
    status: str = AuditStatus.SUCCESS,
    error_code: str | None = None,
    error_message: str | None = None,
) -> AuditEntry:
    """
    Append an audit entry to the current transaction.

    - No domain logic here.
    - Flushes so the entry gets an id, never commits.
    """
    entry = AuditEntry(
        store_id=store_id,
        entity=entity,
        entity_id=entity_id,
        action=action,
        actor_id=actor_id,
        old_value=old_value,
        new_value=new_value,
        status=status,
        error_code=error_code,
        error_message=error_message[:255] if error_message else None,
    )
    db.session.add(entry)
    db.session.flush()
    return entry


@contextmanager
def audit_failures(actor, *, entity: str, action: str, entity_id: int | None = None):
    """
    Make a failed mutation forensically visible.

    On a LedgerError the pending work is rolled back, a FAILED entry carrying
    the error code is committed on its own, and the error is re-raised.
    """
    try:
        yield
    except LedgerError as exc:
        db.session.rollback()
        current_app.logger.warning(
            "%s.%s failed (entity_id=%s, actor=%s): %s %s",
            entity,
            action,
            entity_id,
            actor.actor_id,
            exc.code,
            exc.message,
        )
        try:
            record_audit(
                store_id=actor.store_id,
                entity=entity,
                action=action,
                entity_id=entity_id,
                actor_id=actor.actor_id,
                new_value=exc.details or None,
                status=AuditStatus.FAILED,
                error_code=exc.code,
                error_message=exc.message,
            )
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception("Failed to record failed-attempt audit entry")
        raise


def list_audit_entries(
    store_id: int,
    *,
    entity: str | None = None,
    entity_id: int | None = None,
    action: str | None = None,
    status: str | None = None,
    limit: int = 200,
) -> list[AuditEntry]:
    q = db.session.query(AuditEntry).filter(AuditEntry.store_id == store_id)
    if entity is not None:
        q = q.filter(AuditEntry.entity == entity)
    if entity_id is not None:
        q = q.filter(AuditEntry.entity_id == entity_id)
    if action is not None:
        q = q.filter(AuditEntry.action == action)
    if status is not None:
        q = q.filter(AuditEntry.status == status)

    return q.order_by(AuditEntry.created_at.desc(), AuditEntry.id.desc()).limit(limit).all()


def summarize_audit(store_id: int) -> dict:
    """
    Totals for the store's audit trail.

    Returns:
        - total_actions, unique_actors, failed_actions
        - by_entity / by_action counts
    """
    base = db.session.query(AuditEntry).filter(AuditEntry.store_id == store_id)

    total = base.count()
    failed = base.filter(AuditEntry.status == AuditStatus.FAILED).count()
    unique_actors = (
        db.session.query(func.count(func.distinct(AuditEntry.actor_id)))
        .filter(AuditEntry.store_id == store_id)
        .scalar()
    )

    by_entity = dict(
        db.session.query(AuditEntry.entity, func.count(AuditEntry.id))
        .filter(AuditEntry.store_id == store_id)
        .group_by(AuditEntry.entity)
        .all()
    )
    by_action = dict(
        db.session.query(AuditEntry.action, func.count(AuditEntry.id))
        .filter(AuditEntry.store_id == store_id)
        .group_by(AuditEntry.action)
        .all()
    )

    return {
        "total_actions": total,
        "unique_actors": int(unique_actors or 0),
        "failed_actions": failed,
        "by_entity": by_entity,
        "by_action": by_action,
    }
