from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class DocumentKind:
    SALE = "sale"
    PURCHASE = "purchase"

    ALL = (SALE, PURCHASE)


class DocumentStatus:
    DRAFT = "draft"
    POSTED = "posted"
    CANCELLED = "cancelled"

    ALL = (DRAFT, POSTED, CANCELLED)


class PaymentType:
    CASH = "cash"
    CREDIT = "credit"
    INSTALLMENT = "installment"

    ALL = (CASH, CREDIT, INSTALLMENT)


class Document(db.Model):
    """
    Sale or purchase document (same shape, opposite stock direction).

    LIFECYCLE:
    - draft:     lines may be added/removed, no stock or cash effect
    - posted:    stock and cash effects applied, terminal success
    - cancelled: posted effects reversed, row kept for history

    total / paid / remaining are derived by the document service and never
    taken from callers. remaining = total - paid for every non-cancelled row.
    """
    __tablename__ = "documents"
    __table_args__ = (
        db.UniqueConstraint("store_id", "doc_number", name="uq_documents_store_doc_number"),
        db.Index("ix_documents_store_kind_status_date", "store_id", "kind", "status", "doc_date"),
        db.CheckConstraint("kind IN ('sale', 'purchase')", name="ck_documents_kind"),
        db.CheckConstraint("status IN ('draft', 'posted', 'cancelled')", name="ck_documents_status"),
        db.CheckConstraint("total_cents >= 0 AND paid_amount_cents >= 0", name="ck_documents_amounts"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, nullable=False, index=True)
    kind = db.Column(db.String(16), nullable=False)

    # Customer for sales, supplier for purchases
    counterparty_id = db.Column(db.Integer, nullable=True, index=True)

    doc_number = db.Column(db.String(64), nullable=False)
    doc_date = db.Column(db.Date, nullable=False)

    status = db.Column(db.String(16), nullable=False, default=DocumentStatus.DRAFT, index=True)
    payment_type = db.Column(db.String(16), nullable=False, default=PaymentType.CASH)

    total_cents = db.Column(db.Integer, nullable=False, default=0)
    paid_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    remaining_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)

    # Register that collected the cash at posting time, if one was open
    register_id = db.Column(db.Integer, db.ForeignKey("cash_registers.id"), nullable=True, index=True)

    created_by = db.Column(db.Integer, nullable=True)
    modified_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    posted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    posted_by = db.Column(db.Integer, nullable=True)

    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_by = db.Column(db.Integer, nullable=True)
    cancel_reason = db.Column(db.String(255), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    lines = db.relationship(
        "DocumentLine",
        backref="document",
        lazy=True,
        order_by="DocumentLine.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_sale(self) -> bool:
        return self.kind == DocumentKind.SALE

    def __repr__(self) -> str:
        return f"<Document id={self.id} {self.kind} {self.doc_number!r} status={self.status}>"

    def to_dict(self, include_lines: bool = False) -> dict:
        data = {
            "id": self.id,
            "store_id": self.store_id,
            "kind": self.kind,
            "counterparty_id": self.counterparty_id,
            "doc_number": self.doc_number,
            "doc_date": self.doc_date.isoformat() if self.doc_date else None,
            "status": self.status,
            "payment_type": self.payment_type,
            "total_cents": self.total_cents,
            "paid_amount_cents": self.paid_amount_cents,
            "remaining_amount_cents": self.remaining_amount_cents,
            "notes": self.notes,
            "register_id": self.register_id,
            "created_by": self.created_by,
            "modified_by": self.modified_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "posted_at": to_utc_z(self.posted_at),
            "posted_by": self.posted_by,
            "cancelled_at": to_utc_z(self.cancelled_at),
            "cancelled_by": self.cancelled_by,
            "cancel_reason": self.cancel_reason,
            "version_id": self.version_id,
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class DocumentLine(db.Model):
    """
    Line item on a document.

    Exactly one product reference is set, matching item_type. For serialized
    lines qty is always 1 and identifier_snapshot freezes the IMEI as it was
    when the line was added.
    """
    __tablename__ = "document_lines"
    __table_args__ = (
        db.CheckConstraint(
            "(item_type = 'serialized' AND serialized_product_id IS NOT NULL AND quantity_product_id IS NULL AND qty = 1)"
            " OR (item_type = 'quantity' AND quantity_product_id IS NOT NULL AND serialized_product_id IS NULL)",
            name="ck_document_lines_item_ref",
        ),
        db.CheckConstraint("qty >= 1", name="ck_document_lines_qty"),
        db.CheckConstraint(
            "unit_price_cents >= 0 AND discount_cents >= 0 AND discount_cents <= unit_price_cents",
            name="ck_document_lines_pricing",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_id = db.Column(db.Integer, db.ForeignKey("documents.id"), nullable=False, index=True)

    item_type = db.Column(db.String(16), nullable=False)
    serialized_product_id = db.Column(db.Integer, db.ForeignKey("serialized_products.id"), nullable=True, index=True)
    quantity_product_id = db.Column(db.Integer, db.ForeignKey("quantity_products.id"), nullable=True, index=True)

    qty = db.Column(db.Integer, nullable=False, default=1)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    line_total_cents = db.Column(db.Integer, nullable=False)

    identifier_snapshot = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    @property
    def product_id(self) -> int:
        return self.serialized_product_id or self.quantity_product_id

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_id": self.document_id,
            "item_type": self.item_type,
            "product_id": self.product_id,
            "qty": self.qty,
            "unit_price_cents": self.unit_price_cents,
            "discount_cents": self.discount_cents,
            "line_total_cents": self.line_total_cents,
            "identifier_snapshot": self.identifier_snapshot,
            "created_at": to_utc_z(self.created_at),
        }


class DocumentSequence(db.Model):
    """
    Per-store, per-kind, per-day document sequences.

    next_number is only ever advanced with an atomic UPDATE.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("store_id", "document_kind", "sequence_date", name="uq_doc_sequences_store_kind_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, nullable=False, index=True)
    document_kind = db.Column(db.String(16), nullable=False)
    sequence_date = db.Column(db.Date, nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "document_kind": self.document_kind,
            "sequence_date": self.sequence_date.isoformat(),
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
