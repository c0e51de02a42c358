# Overview: Cash ledger; append-only money movements, expenses, corrections and ledger sums.

"""
Cash Ledger

DESIGN PRINCIPLES:
- Every money movement is one CashMovement row (direction + positive amount)
- Immutable ledger: no updates, no deletes; mistakes get a compensating
  movement in the opposite direction pointing at the original
- A movement links to at most one of: document (sale/purchase) or expense
- Only cash-method movements belong to a register; card, transfer and
  check movements never touch the drawer
- Register balances are always summed from here, never stored
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime

from flask import current_app
from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError

from ..errors import InvalidState, NotFound, ValidationError
from ..extensions import db
from ..models import (
    CashDirection,
    CashMovement,
    CashRegister,
    Document,
    DocumentKind,
    Expense,
    PaymentMethod,
    RegisterStatus,
)
from .audit_service import audit_failures, record_audit
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry
from .permission_service import Actor, require_permission


@dataclass(frozen=True)
class CashTotals:
    total_in: int = 0
    total_out: int = 0
    count: int = 0
    last_movement_id: int | None = None

    @property
    def net(self) -> int:
        return self.total_in - self.total_out

    def to_dict(self) -> dict:
        data = asdict(self)
        data["net"] = self.net
        return data


@dataclass(frozen=True)
class RegisterBreakdown:
    """Settlement categories for one register period. net equals the ledger net."""
    total_sales: int = 0
    total_refunds: int = 0
    total_purchases: int = 0
    total_expenses: int = 0
    other_in: int = 0
    other_out: int = 0
    count: int = 0
    last_movement_id: int | None = None

    @property
    def net(self) -> int:
        return (
            self.total_sales
            - self.total_refunds
            - self.total_purchases
            - self.total_expenses
            + self.other_in
            - self.other_out
        )


def _validate_amount(amount) -> int:
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise ValidationError("amount must be a positive integer (cents)", details={"amount": amount})
    return amount


def validate_method(method: str) -> str:
    if method not in PaymentMethod.ALL:
        raise ValidationError(
            f"method must be one of: {', '.join(PaymentMethod.ALL)}",
            details={"method": method},
        )
    return method


def open_register_for(store_id: int) -> CashRegister | None:
    """The store's currently open register, if any."""
    return (
        db.session.query(CashRegister)
        .filter_by(store_id=store_id, status=RegisterStatus.OPEN)
        .first()
    )


def register_for_method(store_id: int, method: str) -> int | None:
    if method != PaymentMethod.CASH:
        return None
    register = open_register_for(store_id)
    return register.id if register else None


# =============================================================================
# RECORDING
# =============================================================================

def record_movement(
    store_id: int,
    direction: str,
    amount: int,
    *,
    document_id: int | None = None,
    expense_id: int | None = None,
    register_id: int | None = None,
    corrects_movement_id: int | None = None,
    method: str = PaymentMethod.CASH,
    actor_id: int | None = None,
    note: str | None = None,
    commit: bool = False,
) -> CashMovement:
    """
    Append one cash movement.

    Callers own the transaction (commit=False by default) so the movement
    lands together with the document/expense change that caused it.
    """
    if direction not in CashDirection.ALL:
        raise ValidationError("direction must be 'in' or 'out'", details={"direction": direction})
    _validate_amount(amount)
    validate_method(method)
    if document_id is not None and expense_id is not None:
        raise ValidationError("A cash movement links to a document or an expense, not both")

    if register_id is not None:
        register = db.session.query(CashRegister).filter_by(id=register_id, store_id=store_id).first()
        if register is None:
            raise NotFound("Register not found", details={"register_id": register_id})
        if register.status != RegisterStatus.OPEN:
            raise InvalidState(
                "Cash can only be recorded against an open register",
                details={"register_id": register_id, "status": register.status},
            )

    movement = CashMovement(
        store_id=store_id,
        direction=direction,
        amount_cents=amount,
        method=method,
        document_id=document_id,
        expense_id=expense_id,
        register_id=register_id,
        corrects_movement_id=corrects_movement_id,
        note=note,
        created_by=actor_id,
    )
    db.session.add(movement)
    db.session.flush()

    if commit:
        db.session.commit()
    return movement


def compensate_movement(
    original: CashMovement,
    *,
    actor_id: int | None,
    note: str | None = None,
) -> CashMovement:
    """
    Write the reversing entry for original inside the current transaction.

    The reversal goes to the currently open register for cash movements,
    which may differ from the register of the original.
    """
    if original.corrects_movement_id is not None:
        raise InvalidState(
            "Compensating movements cannot themselves be corrected",
            details={"movement_id": original.id},
        )
    already = db.session.query(CashMovement.id).filter_by(corrects_movement_id=original.id).first()
    if already is not None:
        raise InvalidState(
            "Movement has already been corrected",
            details={"movement_id": original.id, "correction_id": already[0]},
        )

    opposite = CashDirection.OUT if original.direction == CashDirection.IN else CashDirection.IN
    return record_movement(
        original.store_id,
        opposite,
        original.amount_cents,
        document_id=original.document_id,
        expense_id=original.expense_id,
        register_id=register_for_method(original.store_id, original.method),
        corrects_movement_id=original.id,
        method=original.method,
        actor_id=actor_id,
        note=note,
    )


def record_correction(movement_id: int, actor: Actor, reason: str) -> CashMovement:
    """
    Compensate a manual or expense movement.

    Document movements are reversed by cancelling the document instead.
    """
    with audit_failures(actor, entity="cash_movement", action="correct", entity_id=movement_id):
        require_permission(actor, "CORRECT_CASH_MOVEMENT")
        if not reason or not str(reason).strip():
            raise ValidationError("reason is required for corrections")

        def _op():
            begin_write_transaction()
            original = lock_for_update(
                db.session.query(CashMovement).filter_by(id=movement_id, store_id=actor.store_id)
            ).first()
            if original is None:
                raise NotFound("Cash movement not found", details={"movement_id": movement_id})
            if original.document_id is not None:
                raise InvalidState(
                    "Document cash movements are reversed by cancelling the document",
                    details={"movement_id": original.id, "document_id": original.document_id},
                )

            try:
                correction = compensate_movement(original, actor_id=actor.actor_id, note=str(reason).strip())
            except IntegrityError as exc:
                db.session.rollback()
                raise InvalidState(
                    "Movement has already been corrected",
                    details={"movement_id": movement_id},
                ) from exc

            record_audit(
                store_id=actor.store_id,
                entity="cash_movement",
                entity_id=original.id,
                action="correct",
                actor_id=actor.actor_id,
                old_value=original.to_dict(),
                new_value={"correction_id": correction.id, "reason": correction.note},
            )
            db.session.commit()
            return correction

        return run_with_retry(_op)


def record_manual_movement(
    actor: Actor,
    direction: str,
    amount: int,
    note: str,
    method: str = PaymentMethod.CASH,
) -> CashMovement:
    """
    Record cash moving in or out with no document behind it.

    Float top-ups, cash drops to the safe, owner withdrawals. Cash-method
    movements land on the store's open register, if any, so the close
    expects them.
    """
    with audit_failures(actor, entity="cash_movement", action="create"):
        require_permission(actor, "RECORD_CASH_MOVEMENT")
        if direction not in CashDirection.ALL:
            raise ValidationError("direction must be 'in' or 'out'", details={"direction": direction})
        _validate_amount(amount)
        validate_method(method)
        if not note or not str(note).strip():
            raise ValidationError("note is required for manual cash movements")
        note = str(note).strip()

        def _op():
            begin_write_transaction()
            movement = record_movement(
                actor.store_id,
                direction,
                amount,
                register_id=register_for_method(actor.store_id, method),
                method=method,
                actor_id=actor.actor_id,
                note=note,
            )

            record_audit(
                store_id=actor.store_id,
                entity="cash_movement",
                entity_id=movement.id,
                action="create",
                actor_id=actor.actor_id,
                new_value=movement.to_dict(),
            )
            db.session.commit()
            current_app.logger.info(
                "Manual cash %s of %s recorded (register=%s, actor=%s)",
                direction,
                amount,
                movement.register_id,
                actor.actor_id,
            )
            return movement

        return run_with_retry(_op)


def record_expense(
    actor: Actor,
    category: str,
    amount: int,
    description: str | None = None,
    payment_method: str = PaymentMethod.CASH,
) -> Expense:
    """Record a paid expense and the cash leaving the store for it."""
    with audit_failures(actor, entity="expense", action="create"):
        require_permission(actor, "RECORD_EXPENSE")
        if not category or not str(category).strip():
            raise ValidationError("category is required")
        _validate_amount(amount)
        validate_method(payment_method)

        def _op():
            begin_write_transaction()
            register_id = register_for_method(actor.store_id, payment_method)
            expense = Expense(
                store_id=actor.store_id,
                category=str(category).strip(),
                amount_cents=amount,
                description=description,
                payment_method=payment_method,
                status="paid",
                register_id=register_id,
                created_by=actor.actor_id,
            )
            db.session.add(expense)
            db.session.flush()

            movement = record_movement(
                actor.store_id,
                CashDirection.OUT,
                amount,
                expense_id=expense.id,
                register_id=register_id,
                method=payment_method,
                actor_id=actor.actor_id,
                note=description,
            )

            record_audit(
                store_id=actor.store_id,
                entity="expense",
                entity_id=expense.id,
                action="create",
                actor_id=actor.actor_id,
                new_value={**expense.to_dict(), "cash_movement_id": movement.id},
            )
            db.session.commit()
            current_app.logger.info(
                "Expense %s recorded: %s %s (register=%s)",
                expense.id,
                expense.category,
                amount,
                register_id,
            )
            return expense

        return run_with_retry(_op)


# =============================================================================
# READS
# =============================================================================

def _totals(query) -> CashTotals:
    row = query.with_entities(
        func.coalesce(func.sum(case((CashMovement.direction == CashDirection.IN, CashMovement.amount_cents), else_=0)), 0),
        func.coalesce(func.sum(case((CashMovement.direction == CashDirection.OUT, CashMovement.amount_cents), else_=0)), 0),
        func.count(CashMovement.id),
        func.max(CashMovement.id),
    ).one()
    return CashTotals(
        total_in=int(row[0] or 0),
        total_out=int(row[1] or 0),
        count=int(row[2] or 0),
        last_movement_id=row[3],
    )


def sum_by_register(register_id: int) -> CashTotals:
    return _totals(db.session.query(CashMovement).filter(CashMovement.register_id == register_id))


def sum_by_date_range(store_id: int, start: datetime, end: datetime) -> CashTotals:
    """Totals for movements with start <= created_at < end."""
    return _totals(
        db.session.query(CashMovement).filter(
            CashMovement.store_id == store_id,
            CashMovement.created_at >= start,
            CashMovement.created_at < end,
        )
    )


def breakdown_by_register(register_id: int) -> RegisterBreakdown:
    """
    Split a register's movements into settlement categories.

    - sales / refunds: in / out linked to a sale document
    - purchases: out linked to a purchase document
    - expenses: out linked to an expense
    - everything else lands in other_in / other_out
    """
    rows = (
        db.session.query(CashMovement, Document.kind)
        .outerjoin(Document, CashMovement.document_id == Document.id)
        .filter(CashMovement.register_id == register_id)
        .order_by(CashMovement.id.asc())
        .all()
    )

    totals = {
        "total_sales": 0,
        "total_refunds": 0,
        "total_purchases": 0,
        "total_expenses": 0,
        "other_in": 0,
        "other_out": 0,
    }
    last_id = None
    for movement, kind in rows:
        last_id = movement.id
        amount = movement.amount_cents
        incoming = movement.direction == CashDirection.IN
        if kind == DocumentKind.SALE:
            totals["total_sales" if incoming else "total_refunds"] += amount
        elif kind == DocumentKind.PURCHASE and not incoming:
            totals["total_purchases"] += amount
        elif movement.expense_id is not None and not incoming:
            totals["total_expenses"] += amount
        else:
            totals["other_in" if incoming else "other_out"] += amount

    return RegisterBreakdown(**totals, count=len(rows), last_movement_id=last_id)


def list_movements(
    store_id: int,
    *,
    register_id: int | None = None,
    document_id: int | None = None,
    limit: int = 200,
) -> list[CashMovement]:
    q = db.session.query(CashMovement).filter(CashMovement.store_id == store_id)
    if register_id is not None:
        q = q.filter(CashMovement.register_id == register_id)
    if document_id is not None:
        q = q.filter(CashMovement.document_id == document_id)
    return q.order_by(CashMovement.id.desc()).limit(limit).all()


def list_expenses(store_id: int, *, limit: int = 200) -> list[Expense]:
    return (
        db.session.query(Expense)
        .filter(Expense.store_id == store_id)
        .order_by(Expense.id.desc())
        .limit(limit)
        .all()
    )
