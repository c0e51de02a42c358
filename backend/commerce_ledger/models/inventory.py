from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from .base import EntityState, LifecycleMixin


class ItemType:
    SERIALIZED = "serialized"
    QUANTITY = "quantity"

    ALL = (SERIALIZED, QUANTITY)


class SerializedStatus:
    AVAILABLE = "available"
    RESERVED = "reserved"  # registered, awaiting receipt by a purchase
    SOLD = "sold"
    RETURNED = "returned"
    DAMAGED = "damaged"

    ALL = (AVAILABLE, RESERVED, SOLD, RETURNED, DAMAGED)


class MovementType:
    IN = "in"
    OUT = "out"
    ADJUSTMENT = "adjustment"
    RETURN = "return"

    ALL = (IN, OUT, ADJUSTMENT, RETURN)


class SerializedProduct(LifecycleMixin, db.Model):
    """
    Individually tracked item (e.g. a phone identified by IMEI).

    The IMEI is unique per store among active rows (partial unique index).
    Once SOLD, the row is immutable apart from soft delete.
    """
    __tablename__ = "serialized_products"
    __table_args__ = (
        db.Index(
            "uq_serialized_products_store_imei_active",
            "store_id",
            "imei",
            unique=True,
            sqlite_where=db.text("lifecycle_state = 'active'"),
            postgresql_where=db.text("lifecycle_state = 'active'"),
        ),
        db.CheckConstraint(
            "status IN ('available', 'reserved', 'sold', 'returned', 'damaged')",
            name="ck_serialized_products_status",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, nullable=False, index=True)

    imei = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    supplier_id = db.Column(db.Integer, nullable=True)

    buy_price_cents = db.Column(db.Integer, nullable=False, default=0)
    sell_price_cents = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=SerializedStatus.AVAILABLE, index=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<SerializedProduct id={self.id} imei={self.imei!r} status={self.status} store_id={self.store_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_type": ItemType.SERIALIZED,
            "store_id": self.store_id,
            "imei": self.imei,
            "name": self.name,
            "supplier_id": self.supplier_id,
            "buy_price_cents": self.buy_price_cents,
            "sell_price_cents": self.sell_price_cents,
            "status": self.status,
            "lifecycle_state": self.lifecycle_state,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class QuantityProduct(LifecycleMixin, db.Model):
    """
    Count-tracked item (e.g. an accessory).

    quantity is only ever changed through the stock service, which writes a
    StockMovement for every change.
    """
    __tablename__ = "quantity_products"
    __table_args__ = (
        db.Index("ix_quantity_products_store_active", "store_id", "is_active"),
        db.CheckConstraint("min_qty >= 0", name="ck_quantity_products_min_qty"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=True)
    barcode = db.Column(db.String(64), nullable=True)

    buy_price_cents = db.Column(db.Integer, nullable=False, default=0)
    sell_price_cents = db.Column(db.Integer, nullable=False, default=0)

    # May only go below zero when the store allows negative stock.
    quantity = db.Column(db.Integer, nullable=False, default=0)
    min_qty = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.min_qty

    def __repr__(self) -> str:
        return f"<QuantityProduct id={self.id} name={self.name!r} quantity={self.quantity} store_id={self.store_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_type": ItemType.QUANTITY,
            "store_id": self.store_id,
            "name": self.name,
            "sku": self.sku,
            "barcode": self.barcode,
            "buy_price_cents": self.buy_price_cents,
            "sell_price_cents": self.sell_price_cents,
            "quantity": self.quantity,
            "min_qty": self.min_qty,
            "is_low_stock": self.is_low_stock,
            "is_active": self.is_active,
            "lifecycle_state": self.lifecycle_state,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Append-only history of every stock change.

    Answers "why is the count what it is": each row carries the signed delta,
    the cause (a document or a manual reason) and the actor.
    For serialized items qty is +1 / -1 and status_after records the new status.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_store_created", "store_id", "created_at"),
        db.CheckConstraint(
            "(item_type = 'serialized' AND serialized_product_id IS NOT NULL AND quantity_product_id IS NULL)"
            " OR (item_type = 'quantity' AND quantity_product_id IS NOT NULL AND serialized_product_id IS NULL)",
            name="ck_stock_movements_item_ref",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, nullable=False, index=True)

    item_type = db.Column(db.String(16), nullable=False)
    serialized_product_id = db.Column(db.Integer, db.ForeignKey("serialized_products.id"), nullable=True, index=True)
    quantity_product_id = db.Column(db.Integer, db.ForeignKey("quantity_products.id"), nullable=True, index=True)

    movement_type = db.Column(db.String(16), nullable=False, index=True)
    qty = db.Column(db.Integer, nullable=False)
    quantity_after = db.Column(db.Integer, nullable=True)
    status_after = db.Column(db.String(16), nullable=True)

    document_id = db.Column(db.Integer, db.ForeignKey("documents.id"), nullable=True, index=True)
    reason = db.Column(db.String(255), nullable=True)

    actor_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "item_type": self.item_type,
            "serialized_product_id": self.serialized_product_id,
            "quantity_product_id": self.quantity_product_id,
            "movement_type": self.movement_type,
            "qty": self.qty,
            "quantity_after": self.quantity_after,
            "status_after": self.status_after,
            "document_id": self.document_id,
            "reason": self.reason,
            "actor_id": self.actor_id,
            "created_at": to_utc_z(self.created_at),
        }


__all__ = [
    "EntityState",
    "ItemType",
    "SerializedStatus",
    "MovementType",
    "SerializedProduct",
    "QuantityProduct",
    "StockMovement",
]
