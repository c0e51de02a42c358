"""
Cash Register Manager

A register period is the unit of cash accountability. What the drawer
should hold is computed from the cash ledger; what it does hold is counted
by a person at close. The difference is the variance.

DESIGN PRINCIPLES:
- At most one open register per store (service check + partial unique index)
- Expected balance = opening balance + net of the register's cash movements
- Closed registers are immutable except for the one-way reconcile flag
- Snapshots record the running balance and never change the register
- Every non-zero variance gets a VarianceRecord awaiting investigation
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from .. import events
from ..errors import AlreadyOpen, InvalidState, NotFound, ValidationError
from ..extensions import db
from ..models import (
    CashRegister,
    InvestigationStatus,
    RegisterSnapshot,
    RegisterStatus,
    SettlementRecord,
    SnapshotType,
    VarianceRecord,
    VarianceType,
)
from ..time_utils import utcnow
from . import cash_service
from .audit_service import audit_failures, record_audit
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry
from .permission_service import Actor, require_permission

# Investigation workflow: pending -> investigating -> resolved | written_off
_INVESTIGATION_TRANSITIONS = {
    InvestigationStatus.PENDING: {
        InvestigationStatus.INVESTIGATING,
        InvestigationStatus.RESOLVED,
        InvestigationStatus.WRITTEN_OFF,
    },
    InvestigationStatus.INVESTIGATING: {InvestigationStatus.RESOLVED, InvestigationStatus.WRITTEN_OFF},
    InvestigationStatus.RESOLVED: set(),
    InvestigationStatus.WRITTEN_OFF: set(),
}


def _validate_balance(value, field: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise ValidationError(f"{field} must be a non-negative integer (cents)", details={field: value})
    return value


def _load_register(register_id: int, store_id: int, *, lock: bool = False) -> CashRegister:
    query = db.session.query(CashRegister).filter_by(id=register_id, store_id=store_id)
    if lock:
        query = lock_for_update(query)
    register = query.first()
    if register is None:
        raise NotFound("Register not found", details={"register_id": register_id})
    return register


def running_balance(register: CashRegister) -> tuple[int, cash_service.CashTotals]:
    """Opening balance plus the ledger net of the register's movements."""
    totals = cash_service.sum_by_register(register.id)
    return register.opening_balance_cents + totals.net, totals


def _write_snapshot(register: CashRegister, snapshot_type: str, actor: Actor, notes: str | None = None) -> RegisterSnapshot:
    balance, totals = running_balance(register)
    snapshot = RegisterSnapshot(
        register_id=register.id,
        snapshot_type=snapshot_type,
        balance_at_time_cents=balance,
        transactions_count=totals.count,
        last_movement_id=totals.last_movement_id,
        notes=notes,
        created_by=actor.actor_id,
    )
    db.session.add(snapshot)
    db.session.flush()
    return snapshot


# =============================================================================
# LIFECYCLE
# =============================================================================

def open_register(actor: Actor, opening_balance: int) -> CashRegister:
    """
    Open the store's register.

    Raises AlreadyOpen when the store already has one; two concurrent opens
    collide on the partial unique index and the loser gets AlreadyOpen too.
    """
    with audit_failures(actor, entity="cash_register", action="open"):
        require_permission(actor, "OPERATE_REGISTER")
        _validate_balance(opening_balance, "opening_balance")

        def _op():
            begin_write_transaction()
            existing = cash_service.open_register_for(actor.store_id)
            if existing is not None:
                raise AlreadyOpen(
                    f"Register {existing.id} is already open for this store",
                    details={"register_id": existing.id},
                )

            register = CashRegister(
                store_id=actor.store_id,
                status=RegisterStatus.OPEN,
                opening_balance_cents=opening_balance,
                opened_by=actor.actor_id,
                opened_at=utcnow(),
            )
            db.session.add(register)
            try:
                db.session.flush()
            except IntegrityError as exc:
                db.session.rollback()
                raise AlreadyOpen("A register is already open for this store") from exc

            record_audit(
                store_id=actor.store_id,
                entity="cash_register",
                entity_id=register.id,
                action="open",
                actor_id=actor.actor_id,
                new_value={"status": RegisterStatus.OPEN, "opening_balance_cents": opening_balance},
            )
            db.session.commit()
            current_app.logger.info(
                "Register %s opened for store %s with %s (actor=%s)",
                register.id,
                register.store_id,
                opening_balance,
                actor.actor_id,
            )
            return register

        return run_with_retry(_op)


def close_register(register_id: int, actor: Actor, closing_balance: int, notes: str | None = None) -> CashRegister:
    """
    Close a register against the counted closing balance.

    Writes the settlement record, a shift_close snapshot and, for a non-zero
    variance, a pending VarianceRecord. VarianceDetected is sent after commit.
    """
    with audit_failures(actor, entity="cash_register", action="close", entity_id=register_id):
        require_permission(actor, "OPERATE_REGISTER")
        _validate_balance(closing_balance, "closing_balance")

        def _op():
            begin_write_transaction()
            register = _load_register(register_id, actor.store_id, lock=True)
            if register.status != RegisterStatus.OPEN:
                raise InvalidState(
                    "Register is already closed",
                    details={"register_id": register.id, "status": register.status},
                )

            breakdown = cash_service.breakdown_by_register(register.id)
            expected = register.opening_balance_cents + breakdown.net
            variance = closing_balance - expected

            register.status = RegisterStatus.CLOSED
            register.expected_balance_cents = expected
            register.closing_balance_cents = closing_balance
            register.closed_by = actor.actor_id
            register.closed_at = utcnow()
            register.notes = notes

            settlement = SettlementRecord(
                store_id=register.store_id,
                register_id=register.id,
                total_sales_cents=breakdown.total_sales,
                total_refunds_cents=breakdown.total_refunds,
                total_purchases_cents=breakdown.total_purchases,
                total_expenses_cents=breakdown.total_expenses,
                other_in_cents=breakdown.other_in,
                other_out_cents=breakdown.other_out,
                net_cash_cents=breakdown.net,
                opening_balance_cents=register.opening_balance_cents,
                closing_balance_cents=closing_balance,
                expected_balance_cents=expected,
                variance_cents=variance,
                flagged_for_review=variance != 0,
            )
            db.session.add(settlement)
            db.session.flush()

            variance_record = None
            if variance != 0:
                variance_record = VarianceRecord(
                    store_id=register.store_id,
                    settlement_id=settlement.id,
                    variance_amount_cents=variance,
                    variance_type=VarianceType.SHORTAGE if variance < 0 else VarianceType.OVERAGE,
                    investigation_status=InvestigationStatus.PENDING,
                )
                db.session.add(variance_record)
                db.session.flush()
                events.queue_event(
                    db.session,
                    events.variance_detected,
                    store_id=register.store_id,
                    register_id=register.id,
                    variance_id=variance_record.id,
                    variance_cents=variance,
                    variance_type=variance_record.variance_type,
                )

            snapshot = _write_snapshot(register, SnapshotType.SHIFT_CLOSE, actor, notes=notes)

            record_audit(
                store_id=actor.store_id,
                entity="cash_register",
                entity_id=register.id,
                action="close",
                actor_id=actor.actor_id,
                old_value={"status": RegisterStatus.OPEN},
                new_value={
                    "status": RegisterStatus.CLOSED,
                    "expected_balance_cents": expected,
                    "closing_balance_cents": closing_balance,
                    "variance_cents": variance,
                    "settlement_id": settlement.id,
                    "variance_id": variance_record.id if variance_record else None,
                    "snapshot_id": snapshot.id,
                },
            )
            db.session.commit()

            if variance:
                current_app.logger.warning(
                    "Register %s closed with variance %s (expected=%s, counted=%s)",
                    register.id,
                    variance,
                    expected,
                    closing_balance,
                )
            else:
                current_app.logger.info("Register %s closed balanced at %s", register.id, expected)
            return register

        return run_with_retry(_op)


def reconcile_register(register_id: int, actor: Actor) -> CashRegister:
    """
    Mark a closed register reconciled (one-way).

    Reconciling an already reconciled register returns it unchanged and
    writes nothing.
    """
    with audit_failures(actor, entity="cash_register", action="reconcile", entity_id=register_id):
        require_permission(actor, "RECONCILE_REGISTER")

        def _op():
            begin_write_transaction()
            register = _load_register(register_id, actor.store_id, lock=True)
            if register.status != RegisterStatus.CLOSED:
                raise InvalidState(
                    "Only closed registers can be reconciled",
                    details={"register_id": register.id, "status": register.status},
                )
            if register.reconciled:
                db.session.rollback()
                return register

            now = utcnow()
            register.reconciled = True
            register.reconciled_by = actor.actor_id
            register.reconciled_at = now

            settlement = db.session.query(SettlementRecord).filter_by(register_id=register.id).first()
            if settlement is not None:
                settlement.reconciled = True
                settlement.reconciled_by = actor.actor_id
                settlement.reconciled_at = now

            snapshot = _write_snapshot(register, SnapshotType.RECONCILIATION, actor)

            record_audit(
                store_id=actor.store_id,
                entity="cash_register",
                entity_id=register.id,
                action="reconcile",
                actor_id=actor.actor_id,
                old_value={"reconciled": False},
                new_value={"reconciled": True, "snapshot_id": snapshot.id},
            )
            db.session.commit()
            return register

        return run_with_retry(_op)


def take_snapshot(register_id: int, actor: Actor, snapshot_type: str, notes: str | None = None) -> RegisterSnapshot:
    """Record the running balance. automatic/manual snapshots need an open register."""
    with audit_failures(actor, entity="cash_register", action="snapshot", entity_id=register_id):
        require_permission(actor, "OPERATE_REGISTER")
        if snapshot_type not in SnapshotType.ALL:
            raise ValidationError(
                f"snapshot_type must be one of: {', '.join(SnapshotType.ALL)}",
                details={"snapshot_type": snapshot_type},
            )

        def _op():
            begin_write_transaction()
            register = _load_register(register_id, actor.store_id)
            if snapshot_type in (SnapshotType.AUTOMATIC, SnapshotType.MANUAL) and register.status != RegisterStatus.OPEN:
                raise InvalidState(
                    f"{snapshot_type} snapshots need an open register",
                    details={"register_id": register.id, "status": register.status},
                )

            snapshot = _write_snapshot(register, snapshot_type, actor, notes=notes)
            record_audit(
                store_id=actor.store_id,
                entity="cash_register",
                entity_id=register.id,
                action="snapshot",
                actor_id=actor.actor_id,
                new_value=snapshot.to_dict(),
            )
            db.session.commit()
            return snapshot

        return run_with_retry(_op)


def update_variance_investigation(
    variance_id: int,
    actor: Actor,
    status: str,
    notes: str | None = None,
) -> VarianceRecord:
    """Move a variance through pending -> investigating -> resolved/written_off."""
    with audit_failures(actor, entity="variance", action="investigate", entity_id=variance_id):
        require_permission(actor, "INVESTIGATE_VARIANCE")
        if status not in InvestigationStatus.ALL:
            raise ValidationError(
                f"status must be one of: {', '.join(InvestigationStatus.ALL)}",
                details={"status": status},
            )

        def _op():
            begin_write_transaction()
            variance = lock_for_update(
                db.session.query(VarianceRecord).filter_by(id=variance_id, store_id=actor.store_id)
            ).first()
            if variance is None:
                raise NotFound("Variance record not found", details={"variance_id": variance_id})

            old_status = variance.investigation_status
            if status not in _INVESTIGATION_TRANSITIONS[old_status]:
                raise InvalidState(
                    f"Cannot move a {old_status} variance to {status}",
                    details={"variance_id": variance.id, "status": old_status},
                )

            variance.investigation_status = status
            if notes:
                variance.notes = notes
            variance.investigated_by = actor.actor_id
            variance.investigated_at = utcnow()

            record_audit(
                store_id=actor.store_id,
                entity="variance",
                entity_id=variance.id,
                action="investigate",
                actor_id=actor.actor_id,
                old_value={"investigation_status": old_status},
                new_value={"investigation_status": status, "notes": notes},
            )
            db.session.commit()
            return variance

        return run_with_retry(_op)


# =============================================================================
# QUERIES
# =============================================================================

def get_open_register(store_id: int) -> CashRegister | None:
    return cash_service.open_register_for(store_id)


def get_register(register_id: int, store_id: int) -> CashRegister:
    return _load_register(register_id, store_id)


def list_registers(store_id: int, status: str | None = None, *, limit: int = 100) -> list[CashRegister]:
    q = db.session.query(CashRegister).filter(CashRegister.store_id == store_id)
    if status is not None:
        q = q.filter(CashRegister.status == status)
    return q.order_by(CashRegister.opened_at.desc(), CashRegister.id.desc()).limit(limit).all()


def list_variances(store_id: int, status: str | None = None) -> list[VarianceRecord]:
    q = db.session.query(VarianceRecord).filter(VarianceRecord.store_id == store_id)
    if status is not None:
        q = q.filter(VarianceRecord.investigation_status == status)
    return q.order_by(VarianceRecord.id.desc()).all()


def get_register_summary(register_id: int, store_id: int) -> dict:
    """
    Register period summary.

    Returns:
        - register details
        - live ledger totals and running balance
        - settlement and variance (closed registers)
        - snapshots, oldest first
    """
    register = _load_register(register_id, store_id)
    balance, totals = running_balance(register)
    settlement = register.settlement
    variance = settlement.variance if settlement is not None else None
    snapshots = sorted(register.snapshots, key=lambda s: (s.snapshot_time, s.id))

    return {
        "register": register.to_dict(),
        "totals": totals.to_dict(),
        "running_balance_cents": balance,
        "is_closed": register.status == RegisterStatus.CLOSED,
        "settlement": settlement.to_dict() if settlement else None,
        "variance": variance.to_dict() if variance else None,
        "snapshots": [snapshot.to_dict() for snapshot in snapshots],
    }
