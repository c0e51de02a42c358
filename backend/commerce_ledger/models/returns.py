from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class ReturnStatus:
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    REFUNDED = "refunded"

    ALL = (PENDING, APPROVED, REJECTED, REFUNDED)

    # Statuses that hold part of the sold quantity
    ACTIVE = (PENDING, APPROVED, REFUNDED)


class ReturnRequest(db.Model):
    """
    Customer return of part or all of one posted sale line.

    LIFECYCLE:
    - pending:  created at the counter, nothing moved yet
    - approved: cleared by a manager
    - rejected: terminal, the goods stay with the customer
    - refunded: stock put back and refund paid out, terminal

    The sale document stays posted; the refund is a cash "out" movement
    linked to it, and the restock a "return" stock movement.
    """
    __tablename__ = "returns"
    __table_args__ = (
        db.Index("ix_returns_store_status", "store_id", "status"),
        db.CheckConstraint("qty >= 1", name="ck_returns_qty"),
        db.CheckConstraint("refund_amount_cents >= 0", name="ck_returns_refund_amount"),
        db.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'refunded')",
            name="ck_returns_status",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, nullable=False, index=True)

    document_id = db.Column(db.Integer, db.ForeignKey("documents.id"), nullable=False, index=True)
    document_line_id = db.Column(db.Integer, db.ForeignKey("document_lines.id"), nullable=False, index=True)
    item_type = db.Column(db.String(16), nullable=False)
    qty = db.Column(db.Integer, nullable=False, default=1)

    refund_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    refund_method = db.Column(db.String(32), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=ReturnStatus.PENDING)
    reason = db.Column(db.String(255), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    created_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    approved_by = db.Column(db.Integer, nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    rejected_by = db.Column(db.Integer, nullable=True)
    rejected_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejection_reason = db.Column(db.String(255), nullable=True)

    refunded_by = db.Column(db.Integer, nullable=True)
    refunded_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cash_movement_id = db.Column(db.Integer, db.ForeignKey("cash_movements.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    line = db.relationship("DocumentLine", lazy=True)
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<ReturnRequest id={self.id} document={self.document_id} qty={self.qty} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "document_id": self.document_id,
            "document_line_id": self.document_line_id,
            "item_type": self.item_type,
            "qty": self.qty,
            "refund_amount_cents": self.refund_amount_cents,
            "refund_method": self.refund_method,
            "status": self.status,
            "reason": self.reason,
            "notes": self.notes,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "approved_by": self.approved_by,
            "approved_at": to_utc_z(self.approved_at),
            "rejected_by": self.rejected_by,
            "rejected_at": to_utc_z(self.rejected_at),
            "rejection_reason": self.rejection_reason,
            "refunded_by": self.refunded_by,
            "refunded_at": to_utc_z(self.refunded_at),
            "cash_movement_id": self.cash_movement_id,
        }
