from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class CashDirection:
    IN = "in"
    OUT = "out"

    ALL = (IN, OUT)


class PaymentMethod:
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    CHECK = "check"
    CREDIT_CARD = "credit_card"
    OTHER = "other"

    ALL = (CASH, BANK_TRANSFER, CHECK, CREDIT_CARD, OTHER)


class CashMovement(db.Model):
    """
    Append-only record of a money movement.

    IMMUTABLE: no updates, no deletes. Mistakes are fixed by a new entry in
    the opposite direction whose corrects_movement_id points at the original.

    Links: at most one of document_id (sale or purchase, by document kind)
    and expense_id.
    """
    __tablename__ = "cash_movements"
    __table_args__ = (
        db.Index("ix_cash_movements_store_created", "store_id", "created_at"),
        db.Index("ix_cash_movements_register_direction", "register_id", "direction"),
        db.CheckConstraint("amount_cents > 0", name="ck_cash_movements_amount_positive"),
        db.CheckConstraint("direction IN ('in', 'out')", name="ck_cash_movements_direction"),
        db.CheckConstraint(
            "document_id IS NULL OR expense_id IS NULL",
            name="ck_cash_movements_single_link",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, nullable=False, index=True)

    direction = db.Column(db.String(8), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    method = db.Column(db.String(32), nullable=False, default=PaymentMethod.CASH)

    document_id = db.Column(db.Integer, db.ForeignKey("documents.id"), nullable=True, index=True)
    expense_id = db.Column(db.Integer, db.ForeignKey("expenses.id"), nullable=True, index=True)
    register_id = db.Column(db.Integer, db.ForeignKey("cash_registers.id"), nullable=True, index=True)

    corrects_movement_id = db.Column(
        db.Integer,
        db.ForeignKey("cash_movements.id"),
        nullable=True,
        unique=True,
    )

    note = db.Column(db.String(255), nullable=True)
    created_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    @property
    def signed_amount_cents(self) -> int:
        return self.amount_cents if self.direction == CashDirection.IN else -self.amount_cents

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "direction": self.direction,
            "amount_cents": self.amount_cents,
            "method": self.method,
            "document_id": self.document_id,
            "expense_id": self.expense_id,
            "register_id": self.register_id,
            "corrects_movement_id": self.corrects_movement_id,
            "note": self.note,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }


class Expense(db.Model):
    """A paid store expense; its cash leaves through a CashMovement."""
    __tablename__ = "expenses"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_expenses_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, nullable=False, index=True)

    category = db.Column(db.String(64), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=True)
    payment_method = db.Column(db.String(32), nullable=False, default=PaymentMethod.CASH)
    status = db.Column(db.String(16), nullable=False, default="paid")

    register_id = db.Column(db.Integer, db.ForeignKey("cash_registers.id"), nullable=True, index=True)

    created_by = db.Column(db.Integer, nullable=True)
    expense_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "category": self.category,
            "amount_cents": self.amount_cents,
            "description": self.description,
            "payment_method": self.payment_method,
            "status": self.status,
            "register_id": self.register_id,
            "created_by": self.created_by,
            "expense_date": to_utc_z(self.expense_date),
        }
