from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class RegisterStatus:
    OPEN = "open"
    CLOSED = "closed"


class SnapshotType:
    AUTOMATIC = "automatic"
    MANUAL = "manual"
    RECONCILIATION = "reconciliation"
    SHIFT_CLOSE = "shift_close"

    ALL = (AUTOMATIC, MANUAL, RECONCILIATION, SHIFT_CLOSE)


class VarianceType:
    SHORTAGE = "shortage"
    OVERAGE = "overage"


class InvestigationStatus:
    PENDING = "pending"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"
    WRITTEN_OFF = "written_off"

    ALL = (PENDING, INVESTIGATING, RESOLVED, WRITTEN_OFF)


class CashRegister(db.Model):
    """
    A till session bounded by an open and a close event.

    LIFECYCLE: open -> closed -> reconciled (optional, monotonic).

    At most one OPEN register per store, enforced by a partial unique index
    so that two concurrent opens cannot both commit.
    Running totals are never stored; they are always summed from the cash ledger.
    """
    __tablename__ = "cash_registers"
    __table_args__ = (
        db.Index(
            "uq_cash_registers_one_open_per_store",
            "store_id",
            unique=True,
            sqlite_where=db.text("status = 'open'"),
            postgresql_where=db.text("status = 'open'"),
        ),
        db.CheckConstraint("status IN ('open', 'closed')", name="ck_cash_registers_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=RegisterStatus.OPEN, index=True)

    opening_balance_cents = db.Column(db.Integer, nullable=False, default=0)
    expected_balance_cents = db.Column(db.Integer, nullable=True)  # set at close
    closing_balance_cents = db.Column(db.Integer, nullable=True)  # counted at close

    opened_by = db.Column(db.Integer, nullable=True)
    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    closed_by = db.Column(db.Integer, nullable=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    reconciled = db.Column(db.Boolean, nullable=False, default=False)
    reconciled_by = db.Column(db.Integer, nullable=True)
    reconciled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def variance_cents(self) -> int | None:
        if self.closing_balance_cents is None or self.expected_balance_cents is None:
            return None
        return self.closing_balance_cents - self.expected_balance_cents

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "status": self.status,
            "opening_balance_cents": self.opening_balance_cents,
            "expected_balance_cents": self.expected_balance_cents,
            "closing_balance_cents": self.closing_balance_cents,
            "variance_cents": self.variance_cents,
            "opened_by": self.opened_by,
            "opened_at": to_utc_z(self.opened_at),
            "closed_by": self.closed_by,
            "closed_at": to_utc_z(self.closed_at),
            "notes": self.notes,
            "reconciled": self.reconciled,
            "reconciled_by": self.reconciled_by,
            "reconciled_at": to_utc_z(self.reconciled_at),
            "version_id": self.version_id,
        }


class RegisterSnapshot(db.Model):
    """Point-in-time running balance. Never mutates the register."""
    __tablename__ = "register_snapshots"
    __table_args__ = (
        db.Index("ix_register_snapshots_register_time", "register_id", "snapshot_time"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    register_id = db.Column(db.Integer, db.ForeignKey("cash_registers.id"), nullable=False, index=True)

    snapshot_type = db.Column(db.String(32), nullable=False)
    snapshot_time = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    balance_at_time_cents = db.Column(db.Integer, nullable=False)
    transactions_count = db.Column(db.Integer, nullable=False, default=0)
    last_movement_id = db.Column(db.Integer, db.ForeignKey("cash_movements.id"), nullable=True)

    notes = db.Column(db.String(255), nullable=True)
    created_by = db.Column(db.Integer, nullable=True)

    register = db.relationship("CashRegister", backref=db.backref("snapshots", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "register_id": self.register_id,
            "snapshot_type": self.snapshot_type,
            "snapshot_time": to_utc_z(self.snapshot_time),
            "balance_at_time_cents": self.balance_at_time_cents,
            "transactions_count": self.transactions_count,
            "last_movement_id": self.last_movement_id,
            "notes": self.notes,
            "created_by": self.created_by,
        }


class SettlementRecord(db.Model):
    """
    Close-time summary of one register period.

    variance = closing_balance - expected_balance
    """
    __tablename__ = "settlement_records"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, nullable=False, index=True)
    register_id = db.Column(db.Integer, db.ForeignKey("cash_registers.id"), nullable=False, unique=True)

    settlement_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    total_sales_cents = db.Column(db.Integer, nullable=False, default=0)
    total_refunds_cents = db.Column(db.Integer, nullable=False, default=0)
    total_purchases_cents = db.Column(db.Integer, nullable=False, default=0)
    total_expenses_cents = db.Column(db.Integer, nullable=False, default=0)
    other_in_cents = db.Column(db.Integer, nullable=False, default=0)
    other_out_cents = db.Column(db.Integer, nullable=False, default=0)
    net_cash_cents = db.Column(db.Integer, nullable=False, default=0)

    opening_balance_cents = db.Column(db.Integer, nullable=False)
    closing_balance_cents = db.Column(db.Integer, nullable=False)
    expected_balance_cents = db.Column(db.Integer, nullable=False)
    variance_cents = db.Column(db.Integer, nullable=False)
    flagged_for_review = db.Column(db.Boolean, nullable=False, default=False, index=True)

    reconciled = db.Column(db.Boolean, nullable=False, default=False)
    reconciled_by = db.Column(db.Integer, nullable=True)
    reconciled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    register = db.relationship("CashRegister", backref=db.backref("settlement", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "register_id": self.register_id,
            "settlement_date": to_utc_z(self.settlement_date),
            "total_sales_cents": self.total_sales_cents,
            "total_refunds_cents": self.total_refunds_cents,
            "total_purchases_cents": self.total_purchases_cents,
            "total_expenses_cents": self.total_expenses_cents,
            "other_in_cents": self.other_in_cents,
            "other_out_cents": self.other_out_cents,
            "net_cash_cents": self.net_cash_cents,
            "opening_balance_cents": self.opening_balance_cents,
            "closing_balance_cents": self.closing_balance_cents,
            "expected_balance_cents": self.expected_balance_cents,
            "variance_cents": self.variance_cents,
            "flagged_for_review": self.flagged_for_review,
            "reconciled": self.reconciled,
            "reconciled_by": self.reconciled_by,
            "reconciled_at": to_utc_z(self.reconciled_at),
        }


class VarianceRecord(db.Model):
    """Non-zero settlement variance, flagged for human review."""
    __tablename__ = "variance_records"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, nullable=False, index=True)
    settlement_id = db.Column(db.Integer, db.ForeignKey("settlement_records.id"), nullable=False, unique=True)

    variance_amount_cents = db.Column(db.Integer, nullable=False)
    variance_type = db.Column(db.String(16), nullable=False)
    investigation_status = db.Column(db.String(16), nullable=False, default=InvestigationStatus.PENDING, index=True)

    notes = db.Column(db.Text, nullable=True)
    investigated_by = db.Column(db.Integer, nullable=True)
    investigated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    settlement = db.relationship("SettlementRecord", backref=db.backref("variance", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "settlement_id": self.settlement_id,
            "variance_amount_cents": self.variance_amount_cents,
            "variance_type": self.variance_type,
            "investigation_status": self.investigation_status,
            "notes": self.notes,
            "investigated_by": self.investigated_by,
            "investigated_at": to_utc_z(self.investigated_at),
            "created_at": to_utc_z(self.created_at),
        }
