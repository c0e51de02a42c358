# Overview: Stock ledger; availability checks, stock mutations and serialized identifiers.

"""
Stock Ledger invariants (authoritative)

Products:
- Serialized products (phones) are tracked one row per physical unit,
  identified by IMEI, unique per store among active rows.
- Quantity products (accessories) carry a mutable quantity that only this
  module changes.

Movements:
- Every change to quantity or serialized status appends a StockMovement in
  the same DB transaction, carrying the cause (document or reason) and actor.
- StockMovement is append-only (no updates/deletes).

Policy:
- quantity may not go below zero unless the store allows negative stock.
- A SOLD serialized product is immutable except for soft delete.
- Manual decreases are destructive and need the owner role.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy.exc import IntegrityError

from .. import events
from ..errors import (
    DuplicateIdentifier,
    InvalidState,
    NegativeStock,
    NotFound,
    ValidationError,
)
from ..extensions import db
from ..models import (
    EntityState,
    ItemType,
    MovementType,
    QuantityProduct,
    SerializedProduct,
    SerializedStatus,
    StockMovement,
)
from .audit_service import audit_failures, record_audit
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry
from .permission_service import Actor, require_permission
from .store_service import allows_negative_stock

# Serialized statuses a purchase may receive into stock
RECEIVABLE_STATUSES = (SerializedStatus.RESERVED, SerializedStatus.RETURNED)


@dataclass(frozen=True)
class Availability:
    ok: bool
    reason: str | None = None


@dataclass(frozen=True)
class SerializedItem:
    product_id: int

    item_type = ItemType.SERIALIZED

    @property
    def qty(self) -> int:
        return 1


@dataclass(frozen=True)
class QuantityItem:
    product_id: int
    qty: int

    item_type = ItemType.QUANTITY


def item_ref(item_type: str, product_id, qty=1) -> SerializedItem | QuantityItem:
    """
    Build the line item variant from loose input.

    Serialized items always have qty 1; quantity items need qty >= 1.
    """
    if item_type not in ItemType.ALL:
        raise ValidationError(
            f"item_type must be one of: {', '.join(ItemType.ALL)}",
            details={"item_type": item_type},
        )
    if not isinstance(product_id, int) or isinstance(product_id, bool) or product_id <= 0:
        raise ValidationError("product_id must be a positive integer")
    if not isinstance(qty, int) or isinstance(qty, bool) or qty < 1:
        raise ValidationError("qty must be an integer >= 1", details={"qty": qty})

    if item_type == ItemType.SERIALIZED:
        if qty != 1:
            raise ValidationError("Serialized items are always sold or received one at a time", details={"qty": qty})
        return SerializedItem(product_id=product_id)
    return QuantityItem(product_id=product_id, qty=qty)


def normalize_imei(value) -> str:
    """Strip whitespace; IMEIs are compared as entered otherwise."""
    if not isinstance(value, str):
        raise ValidationError("imei is required")
    normalized = "".join(value.split())
    if not normalized:
        raise ValidationError("imei is required")
    if len(normalized) > 64:
        raise ValidationError("imei is too long")
    return normalized


def _model_for(item_type: str):
    return SerializedProduct if item_type == ItemType.SERIALIZED else QuantityProduct


def get_product(store_id: int, item_type: str, product_id: int, *, lock: bool = False):
    """Load an active product of the store, or raise NotFound."""
    model = _model_for(item_type)
    query = db.session.query(model).filter(
        model.id == product_id,
        model.store_id == store_id,
        model.lifecycle_state == EntityState.ACTIVE,
    )
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise NotFound(
            f"{item_type.capitalize()} product not found",
            details={"item_type": item_type, "product_id": product_id},
        )
    return product


def evaluate_availability(product, qty: int, *, allow_negative: bool = False) -> Availability:
    """Availability of an already loaded product for an outgoing qty."""
    if isinstance(product, SerializedProduct):
        if qty != 1:
            return Availability(False, "Serialized items are available one at a time")
        if product.is_deleted:
            return Availability(False, "Product is deleted")
        if product.status != SerializedStatus.AVAILABLE:
            return Availability(False, f"Item {product.imei} is {product.status}")
        return Availability(True)

    if product.is_deleted or not product.is_active:
        return Availability(False, "Product is inactive")
    if not allow_negative and product.quantity < qty:
        return Availability(False, f"Only {product.quantity} of {product.name} in stock, {qty} requested")
    return Availability(True)


def check_availability(store_id: int, item_type: str, product_id: int, qty: int) -> Availability:
    """
    Read-only availability check.

    Never raises for a missing product; the reason says why the answer is no.
    """
    if item_type not in ItemType.ALL:
        return Availability(False, f"Unknown item type '{item_type}'")
    if qty is None or qty < 1:
        return Availability(False, "qty must be at least 1")

    model = _model_for(item_type)
    product = db.session.query(model).filter_by(id=product_id, store_id=store_id).first()
    if product is None or product.is_deleted:
        return Availability(False, "Product not found")

    return evaluate_availability(product, qty, allow_negative=allows_negative_stock(store_id))


def apply_quantity_delta(
    product: QuantityProduct,
    delta: int,
    *,
    movement_type: str,
    actor_id: int | None,
    document_id: int | None = None,
    reason: str | None = None,
    allow_negative: bool | None = None,
    commit: bool = False,
) -> StockMovement:
    """
    Change a quantity product's stock and append the movement.

    Caller holds the row lock. Raises NegativeStock when the result would
    drop below zero and the store does not allow it. Queues LowStock when a
    decrease leaves the product at or below min_qty.
    """
    if allow_negative is None:
        allow_negative = allows_negative_stock(product.store_id)

    new_quantity = product.quantity + delta
    if new_quantity < 0 and not allow_negative:
        raise NegativeStock(
            f"Stock of {product.name} cannot go below zero",
            details={"product_id": product.id, "quantity": product.quantity, "delta": delta},
        )

    product.quantity = new_quantity
    movement = StockMovement(
        store_id=product.store_id,
        item_type=ItemType.QUANTITY,
        quantity_product_id=product.id,
        movement_type=movement_type,
        qty=delta,
        quantity_after=new_quantity,
        document_id=document_id,
        reason=reason,
        actor_id=actor_id,
    )
    db.session.add(movement)
    db.session.flush()

    if delta < 0 and product.is_low_stock:
        events.queue_event(
            db.session,
            events.low_stock,
            store_id=product.store_id,
            product_id=product.id,
            name=product.name,
            quantity=product.quantity,
            min_qty=product.min_qty,
        )

    if commit:
        db.session.commit()
    return movement


def set_serialized_status(
    product: SerializedProduct,
    new_status: str,
    *,
    movement_type: str,
    qty: int,
    actor_id: int | None,
    document_id: int | None = None,
    reason: str | None = None,
    commit: bool = False,
) -> StockMovement:
    """
    Move a serialized product to new_status and append the movement.

    qty is the stock effect: +1 into stock, -1 out of stock, 0 for a pure
    status correction.
    """
    if new_status not in SerializedStatus.ALL:
        raise ValidationError(f"Unknown serialized status '{new_status}'")

    product.status = new_status
    movement = StockMovement(
        store_id=product.store_id,
        item_type=ItemType.SERIALIZED,
        serialized_product_id=product.id,
        movement_type=movement_type,
        qty=qty,
        status_after=new_status,
        document_id=document_id,
        reason=reason,
        actor_id=actor_id,
    )
    db.session.add(movement)
    db.session.flush()

    if commit:
        db.session.commit()
    return movement


def latest_serialized_movement(product_id: int) -> StockMovement | None:
    return (
        db.session.query(StockMovement)
        .filter(StockMovement.serialized_product_id == product_id)
        .order_by(StockMovement.id.desc())
        .first()
    )


def adjust_stock(actor: Actor, item_type: str, product_id: int, delta: int, reason: str) -> StockMovement:
    """
    Manual stock adjustment for a quantity product.

    Any decrease is destructive and needs ADJUST_STOCK_DESTRUCTIVE (owner).
    """
    with audit_failures(actor, entity="quantity_product", action="adjust_stock", entity_id=product_id):
        require_permission(actor, "ADJUST_STOCK")
        if isinstance(delta, int) and not isinstance(delta, bool) and delta < 0:
            require_permission(actor, "ADJUST_STOCK_DESTRUCTIVE")

        if item_type != ItemType.QUANTITY:
            raise ValidationError("Only quantity products can be adjusted; serialized items change through documents")
        if not isinstance(delta, int) or isinstance(delta, bool) or delta == 0:
            raise ValidationError("delta must be a non-zero integer")
        if not reason or not str(reason).strip():
            raise ValidationError("reason is required for manual adjustments")
        reason = str(reason).strip()

        def _op():
            begin_write_transaction()
            product = get_product(actor.store_id, ItemType.QUANTITY, product_id, lock=True)
            old_quantity = product.quantity

            movement = apply_quantity_delta(
                product,
                delta,
                movement_type=MovementType.ADJUSTMENT,
                actor_id=actor.actor_id,
                reason=reason,
            )

            record_audit(
                store_id=actor.store_id,
                entity="quantity_product",
                entity_id=product.id,
                action="adjust_stock",
                actor_id=actor.actor_id,
                old_value={"quantity": old_quantity},
                new_value={"quantity": product.quantity, "delta": delta, "reason": reason},
            )
            db.session.commit()
            current_app.logger.info(
                "Stock adjusted: product %s %+d -> %s (actor=%s)",
                product.id,
                delta,
                product.quantity,
                actor.actor_id,
            )
            return movement

        return run_with_retry(_op)


def _validate_price(value, field: str) -> int:
    if value is None:
        return 0
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise ValidationError(f"{field} must be a non-negative integer (cents)")
    return value


def _imei_taken(store_id: int, imei: str, *, exclude_id: int | None = None) -> bool:
    q = db.session.query(SerializedProduct.id).filter(
        SerializedProduct.store_id == store_id,
        SerializedProduct.imei == imei,
        SerializedProduct.lifecycle_state == EntityState.ACTIVE,
    )
    if exclude_id is not None:
        q = q.filter(SerializedProduct.id != exclude_id)
    return q.first() is not None


def register_serialized_product(
    actor: Actor,
    imei: str,
    name: str,
    *,
    buy_price: int | None = 0,
    sell_price: int | None = 0,
    supplier_id: int | None = None,
    status: str = SerializedStatus.AVAILABLE,
) -> SerializedProduct:
    """
    Register one physical unit.

    status is AVAILABLE for units already on the shelf (an "in" movement is
    written) or RESERVED for units awaiting receipt through a purchase.
    """
    with audit_failures(actor, entity="serialized_product", action="register"):
        require_permission(actor, "MANAGE_PRODUCTS")

        imei = normalize_imei(imei)
        if not name or not str(name).strip():
            raise ValidationError("name is required")
        buy_price = _validate_price(buy_price, "buy_price")
        sell_price = _validate_price(sell_price, "sell_price")
        if status not in (SerializedStatus.AVAILABLE, SerializedStatus.RESERVED):
            raise ValidationError("New serialized products start as available or reserved")

        def _op():
            begin_write_transaction()
            if _imei_taken(actor.store_id, imei):
                raise DuplicateIdentifier(
                    f"IMEI {imei} is already registered in this store",
                    details={"imei": imei},
                )

            product = SerializedProduct(
                store_id=actor.store_id,
                imei=imei,
                name=str(name).strip(),
                supplier_id=supplier_id,
                buy_price_cents=buy_price,
                sell_price_cents=sell_price,
                status=status,
            )
            db.session.add(product)
            try:
                db.session.flush()
            except IntegrityError as exc:
                db.session.rollback()
                raise DuplicateIdentifier(
                    f"IMEI {imei} is already registered in this store",
                    details={"imei": imei},
                ) from exc

            if status == SerializedStatus.AVAILABLE:
                set_serialized_status(
                    product,
                    SerializedStatus.AVAILABLE,
                    movement_type=MovementType.IN,
                    qty=1,
                    actor_id=actor.actor_id,
                    reason="registered",
                )

            record_audit(
                store_id=actor.store_id,
                entity="serialized_product",
                entity_id=product.id,
                action="register",
                actor_id=actor.actor_id,
                new_value={"imei": imei, "name": product.name, "status": status},
            )
            db.session.commit()
            return product

        return run_with_retry(_op)


def update_serialized_identifier(actor: Actor, product_id: int, imei: str) -> SerializedProduct:
    """Correct a unit's IMEI. Historical document lines keep their snapshot."""
    with audit_failures(actor, entity="serialized_product", action="update_identifier", entity_id=product_id):
        require_permission(actor, "MANAGE_PRODUCTS")
        imei = normalize_imei(imei)

        def _op():
            begin_write_transaction()
            product = get_product(actor.store_id, ItemType.SERIALIZED, product_id, lock=True)
            if product.status == SerializedStatus.SOLD:
                raise InvalidState(
                    "Sold items cannot be modified",
                    details={"product_id": product.id, "status": product.status},
                )
            if product.imei == imei:
                return product
            if _imei_taken(actor.store_id, imei, exclude_id=product.id):
                raise DuplicateIdentifier(
                    f"IMEI {imei} is already registered in this store",
                    details={"imei": imei},
                )

            old_imei = product.imei
            product.imei = imei
            try:
                db.session.flush()
            except IntegrityError as exc:
                db.session.rollback()
                raise DuplicateIdentifier(
                    f"IMEI {imei} is already registered in this store",
                    details={"imei": imei},
                ) from exc

            record_audit(
                store_id=actor.store_id,
                entity="serialized_product",
                entity_id=product.id,
                action="update_identifier",
                actor_id=actor.actor_id,
                old_value={"imei": old_imei},
                new_value={"imei": imei},
            )
            db.session.commit()
            return product

        return run_with_retry(_op)


def delete_serialized_product(actor: Actor, product_id: int) -> SerializedProduct:
    """
    Soft delete a unit.

    Allowed for sold units too; the IMEI becomes free for a new active row.
    Removing a unit from stock is destructive and needs the owner.
    """
    with audit_failures(actor, entity="serialized_product", action="delete", entity_id=product_id):
        require_permission(actor, "MANAGE_PRODUCTS")
        require_permission(actor, "ADJUST_STOCK_DESTRUCTIVE")

        def _op():
            begin_write_transaction()
            product = get_product(actor.store_id, ItemType.SERIALIZED, product_id, lock=True)
            product.mark_deleted()
            record_audit(
                store_id=actor.store_id,
                entity="serialized_product",
                entity_id=product.id,
                action="delete",
                actor_id=actor.actor_id,
                old_value={"lifecycle_state": EntityState.ACTIVE, "status": product.status},
                new_value={"lifecycle_state": EntityState.DELETED},
            )
            db.session.commit()
            return product

        return run_with_retry(_op)


def create_quantity_product(
    actor: Actor,
    name: str,
    *,
    sku: str | None = None,
    barcode: str | None = None,
    buy_price: int | None = 0,
    sell_price: int | None = 0,
    quantity: int = 0,
    min_qty: int = 0,
) -> QuantityProduct:
    """Create a quantity product; a non-zero opening quantity is an "in" movement."""
    with audit_failures(actor, entity="quantity_product", action="create"):
        require_permission(actor, "MANAGE_PRODUCTS")

        if not name or not str(name).strip():
            raise ValidationError("name is required")
        buy_price = _validate_price(buy_price, "buy_price")
        sell_price = _validate_price(sell_price, "sell_price")
        for field, value in (("quantity", quantity), ("min_qty", min_qty)):
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ValidationError(f"{field} must be a non-negative integer")

        def _op():
            begin_write_transaction()
            product = QuantityProduct(
                store_id=actor.store_id,
                name=str(name).strip(),
                sku=sku,
                barcode=barcode,
                buy_price_cents=buy_price,
                sell_price_cents=sell_price,
                quantity=0,
                min_qty=min_qty,
                is_active=True,
            )
            db.session.add(product)
            db.session.flush()

            if quantity:
                apply_quantity_delta(
                    product,
                    quantity,
                    movement_type=MovementType.IN,
                    actor_id=actor.actor_id,
                    reason="opening stock",
                )

            record_audit(
                store_id=actor.store_id,
                entity="quantity_product",
                entity_id=product.id,
                action="create",
                actor_id=actor.actor_id,
                new_value={"name": product.name, "quantity": product.quantity, "min_qty": min_qty},
            )
            db.session.commit()
            return product

        return run_with_retry(_op)


def get_low_stock(store_id: int) -> list[QuantityProduct]:
    """Active quantity products at or below their minimum."""
    return (
        db.session.query(QuantityProduct)
        .filter(
            QuantityProduct.store_id == store_id,
            QuantityProduct.is_active.is_(True),
            QuantityProduct.lifecycle_state == EntityState.ACTIVE,
            QuantityProduct.quantity <= QuantityProduct.min_qty,
        )
        .order_by(QuantityProduct.quantity.asc(), QuantityProduct.name.asc())
        .all()
    )


def list_products(store_id: int, item_type: str, *, include_deleted: bool = False) -> list:
    model = _model_for(item_type)
    q = db.session.query(model).filter(model.store_id == store_id)
    if not include_deleted:
        q = q.filter(model.lifecycle_state == EntityState.ACTIVE)
    return q.order_by(model.id.asc()).all()


def list_stock_movements(
    store_id: int,
    item_type: str | None = None,
    product_id: int | None = None,
    *,
    limit: int = 200,
) -> list[StockMovement]:
    q = db.session.query(StockMovement).filter(StockMovement.store_id == store_id)
    if item_type is not None:
        q = q.filter(StockMovement.item_type == item_type)
        if product_id is not None:
            column = (
                StockMovement.serialized_product_id
                if item_type == ItemType.SERIALIZED
                else StockMovement.quantity_product_id
            )
            q = q.filter(column == product_id)

    return q.order_by(StockMovement.id.desc()).limit(limit).all()
