# Overview: Document lifecycle engine for sale and purchase documents; the only writer of document status.

"""
Document lifecycle (authoritative)

State machine:
- draft --post--> posted --cancel--> cancelled
- No other transitions. A draft is never "cancelled"; it is simply not posted.

Drafts:
- Lines may be added/removed only while draft.
- No stock or cash effect.

Post (one write transaction, all-or-nothing):
- Re-verifies every line against locked product rows.
- Sales take stock out (quantity down / serialized -> sold),
  purchases bring it in (quantity up / serialized -> available).
- Cash documents write one cash movement (sale: in, purchase: out) attached
  to the store's open register if there is one.
- Credit/installment documents post with paid_amount = 0.
- Appends the audit entry and sets status = posted.

Cancel (owner only, posted only):
- Reverses the stock effect of post; fails with IrreversibleState when a
  later document already consumed the item.
- Refuses while a return is pending or approved; units already refunded
  through a return are not reversed again.
- Compensates every cash movement of the document, refunds included.
- The document row is kept with status = cancelled.

Totals:
- total / paid_amount / remaining_amount are always derived here.
- remaining_amount = total - paid_amount on every non-cancelled document.
"""

from __future__ import annotations

from datetime import date

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import (
    EmptyDocument,
    InvalidState,
    IrreversibleState,
    NotFound,
    OutOfStock,
    ValidationError,
)
from ..extensions import db
from ..models import (
    CashDirection,
    CashMovement,
    Document,
    DocumentKind,
    DocumentLine,
    DocumentSequence,
    DocumentStatus,
    ItemType,
    MovementType,
    PaymentMethod,
    PaymentType,
    QuantityProduct,
    ReturnStatus,
    SerializedProduct,
    SerializedStatus,
)
from ..time_utils import parse_iso_date, utcnow
from . import cash_service, return_service, stock_service
from .audit_service import audit_failures, record_audit
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry
from .permission_service import Actor, require_permission, user_has_permission
from .store_service import allows_negative_stock

_CREATE_PERMISSION = {
    DocumentKind.SALE: "CREATE_SALE",
    DocumentKind.PURCHASE: "CREATE_PURCHASE",
}


# =============================================================================
# NUMBERING
# =============================================================================

def _sequence_number(store_id: int, kind: str, doc_date: date) -> int:
    """
    Atomically allocate the next number of the (store, kind, day) sequence.

    UPDATE ... SET next_number = next_number + 1 takes the row lock; the first
    document of a day inserts the row inside a savepoint so a concurrent
    insert only costs a retry of the UPDATE.
    """
    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.store_id == store_id,
            DocumentSequence.document_kind == kind,
            DocumentSequence.sequence_date == doc_date,
        )
        .values(next_number=DocumentSequence.next_number + 1, updated_at=utcnow())
    )

    def _current() -> int:
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(store_id=store_id, document_kind=kind, sequence_date=doc_date)
            .scalar()
        )
        return current - 1

    result = db.session.execute(stmt)
    if result.rowcount:
        return _current()

    try:
        with db.session.begin_nested():
            db.session.add(
                DocumentSequence(store_id=store_id, document_kind=kind, sequence_date=doc_date, next_number=2)
            )
        return 1
    except IntegrityError:
        result = db.session.execute(stmt)
        if not result.rowcount:
            raise
        return _current()


def allocate_document_number(store_id: int, kind: str, doc_date: date) -> str:
    """
    Unique document number for the store.

    DOCUMENT_NUMBERER (config) may replace the default
    "<prefix>-<YYYYMMDD>-<seq>" format with any callable
    (store_id, kind, doc_date) -> str.
    """
    numberer = current_app.config.get("DOCUMENT_NUMBERER")
    if numberer is not None:
        number = numberer(store_id, kind, doc_date)
        if not isinstance(number, str) or not number.strip():
            raise ValidationError("Document numberer returned an empty number")
        return number.strip()

    prefix = (
        current_app.config.get("SALE_NUMBER_PREFIX", "S")
        if kind == DocumentKind.SALE
        else current_app.config.get("PURCHASE_NUMBER_PREFIX", "P")
    )
    pad = int(current_app.config.get("DOCUMENT_NUMBER_PAD", 4))
    seq = _sequence_number(store_id, kind, doc_date)
    return f"{prefix}-{doc_date:%Y%m%d}-{seq:0{pad}d}"


# =============================================================================
# HELPERS
# =============================================================================

def _authorize(actor: Actor, document: Document | None, permissions: dict[str, str]) -> None:
    """
    Permission first, existence second.

    For a missing document the actor must hold at least one of the kind
    permissions before learning that it does not exist.
    """
    if document is None:
        if not any(user_has_permission(actor, code) for code in permissions.values()):
            require_permission(actor, next(iter(permissions.values())))
        return
    require_permission(actor, permissions[document.kind])


def _load_document(document_id: int, actor: Actor, *, lock: bool = False) -> Document | None:
    query = db.session.query(Document).filter_by(id=document_id, store_id=actor.store_id)
    if lock:
        query = lock_for_update(query)
    return query.first()


def _require_found(document: Document | None, document_id: int) -> Document:
    if document is None:
        raise NotFound("Document not found", details={"document_id": document_id})
    return document


def _require_status(document: Document, status: str, action: str) -> None:
    if document.status != status:
        raise InvalidState(
            f"Cannot {action} a {document.status} document",
            details={"document_id": document.id, "status": document.status},
        )


def _recompute_totals(document: Document) -> None:
    db.session.flush()
    lines = db.session.query(DocumentLine).filter_by(document_id=document.id).all()
    document.total_cents = sum(line.line_total_cents for line in lines)
    document.remaining_amount_cents = document.total_cents - document.paid_amount_cents


def _validate_money(value, field: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise ValidationError(f"{field} must be a non-negative integer (cents)", details={field: value})
    return value


def _locked_product(document: Document, item_type: str, product_id: int):
    """Locked product row of the document's store, deleted rows included."""
    model = SerializedProduct if item_type == ItemType.SERIALIZED else QuantityProduct
    return lock_for_update(
        db.session.query(model).filter_by(id=product_id, store_id=document.store_id)
    ).first()


def _lines_by_product(lines: list[DocumentLine]) -> dict[tuple[str, int], int]:
    needed: dict[tuple[str, int], int] = {}
    for line in lines:
        key = (line.item_type, line.product_id)
        needed[key] = needed.get(key, 0) + line.qty
    return needed


# =============================================================================
# DRAFTS
# =============================================================================

def create_draft(
    actor: Actor,
    kind: str,
    counterparty_id: int | None = None,
    payment_type: str = PaymentType.CASH,
    doc_date=None,
    notes: str | None = None,
) -> Document:
    """Create an empty draft with a freshly allocated doc_number."""
    with audit_failures(actor, entity="document", action="create"):
        _authorize(actor, None, _CREATE_PERMISSION)
        if kind not in DocumentKind.ALL:
            raise ValidationError("kind must be 'sale' or 'purchase'", details={"kind": kind})
        require_permission(actor, _CREATE_PERMISSION[kind])

        if counterparty_id is not None and (
            not isinstance(counterparty_id, int) or isinstance(counterparty_id, bool) or counterparty_id <= 0
        ):
            raise ValidationError(
                "counterparty_id must be a positive integer",
                details={"counterparty_id": counterparty_id},
            )
        if payment_type not in PaymentType.ALL:
            raise ValidationError(
                f"payment_type must be one of: {', '.join(PaymentType.ALL)}",
                details={"payment_type": payment_type},
            )
        if isinstance(doc_date, str):
            try:
                doc_date = parse_iso_date(doc_date)
            except ValueError as exc:
                raise ValidationError("doc_date must be YYYY-MM-DD") from exc
        if doc_date is None:
            doc_date = utcnow().date()

        def _op():
            begin_write_transaction()
            doc_number = allocate_document_number(actor.store_id, kind, doc_date)
            document = Document(
                store_id=actor.store_id,
                kind=kind,
                counterparty_id=counterparty_id,
                doc_number=doc_number,
                doc_date=doc_date,
                status=DocumentStatus.DRAFT,
                payment_type=payment_type,
                total_cents=0,
                paid_amount_cents=0,
                remaining_amount_cents=0,
                notes=notes,
                created_by=actor.actor_id,
                modified_by=actor.actor_id,
            )
            db.session.add(document)
            try:
                db.session.flush()
            except IntegrityError as exc:
                db.session.rollback()
                raise ValidationError(
                    f"Document number {doc_number} is already used in this store",
                    details={"doc_number": doc_number},
                ) from exc

            record_audit(
                store_id=actor.store_id,
                entity="document",
                entity_id=document.id,
                action="create",
                actor_id=actor.actor_id,
                new_value=document.to_dict(),
            )
            db.session.commit()
            return document

        return run_with_retry(_op)


def add_line(
    document_id: int,
    actor: Actor,
    item_type: str,
    product_id: int,
    qty: int = 1,
    unit_price: int | None = None,
    discount: int = 0,
) -> DocumentLine:
    """
    Add a line to a draft.

    unit_price defaults to the product's sell price (sale) or buy price
    (purchase). Sale lines are checked against stock, counting what the
    draft already holds of the same product.
    """
    with audit_failures(actor, entity="document", action="add_line", entity_id=document_id):

        def _op():
            begin_write_transaction()
            document = _load_document(document_id, actor, lock=True)
            _authorize(actor, document, _CREATE_PERMISSION)
            document = _require_found(document, document_id)
            _require_status(document, DocumentStatus.DRAFT, "add lines to")

            item = stock_service.item_ref(item_type, product_id, qty)
            if unit_price is not None:
                _validate_money(unit_price, "unit_price")
            _validate_money(discount, "discount")
            if discount and not document.is_sale:
                raise ValidationError("Discounts apply to sale lines only")

            product = stock_service.get_product(actor.store_id, item.item_type, item.product_id)
            price = unit_price
            if price is None:
                price = product.sell_price_cents if document.is_sale else product.buy_price_cents
            if discount > price:
                raise ValidationError(
                    "discount cannot exceed unit_price",
                    details={"unit_price": price, "discount": discount},
                )

            existing = [
                line for line in document.lines
                if line.item_type == item.item_type and line.product_id == item.product_id
            ]
            if isinstance(item, stock_service.SerializedItem) and existing:
                raise ValidationError(
                    f"Item {product.imei} is already on this document",
                    details={"product_id": product.id},
                )

            if document.is_sale:
                wanted = item.qty + sum(line.qty for line in existing)
                availability = stock_service.evaluate_availability(
                    product, wanted, allow_negative=allows_negative_stock(actor.store_id)
                )
                if not availability.ok:
                    raise OutOfStock(
                        availability.reason,
                        details={"item_type": item.item_type, "product_id": product.id, "qty": wanted},
                    )
                line_total = (price - discount) * item.qty
            else:
                if isinstance(product, SerializedProduct) and product.status not in stock_service.RECEIVABLE_STATUSES:
                    raise InvalidState(
                        f"Item {product.imei} is {product.status} and cannot be received",
                        details={"product_id": product.id, "status": product.status},
                    )
                if isinstance(product, QuantityProduct) and not product.is_active:
                    raise InvalidState("Product is inactive", details={"product_id": product.id})
                line_total = price * item.qty

            line = DocumentLine(
                document_id=document.id,
                item_type=item.item_type,
                serialized_product_id=item.product_id if item.item_type == ItemType.SERIALIZED else None,
                quantity_product_id=item.product_id if item.item_type == ItemType.QUANTITY else None,
                qty=item.qty,
                unit_price_cents=price,
                discount_cents=discount,
                line_total_cents=line_total,
                identifier_snapshot=product.imei if isinstance(product, SerializedProduct) else None,
            )
            db.session.add(line)
            document.lines.append(line)
            _recompute_totals(document)
            document.modified_by = actor.actor_id

            record_audit(
                store_id=actor.store_id,
                entity="document",
                entity_id=document.id,
                action="add_line",
                actor_id=actor.actor_id,
                new_value={"line": line.to_dict(), "total_cents": document.total_cents},
            )
            db.session.commit()
            return line

        return run_with_retry(_op)


def remove_line(line_id: int, actor: Actor) -> Document:
    """Remove a line from a draft; returns the document with new totals."""
    with audit_failures(actor, entity="document_line", action="remove_line", entity_id=line_id):

        def _op():
            begin_write_transaction()
            line = db.session.query(DocumentLine).filter_by(id=line_id).first()
            document = _load_document(line.document_id, actor, lock=True) if line else None
            _authorize(actor, document, _CREATE_PERMISSION)
            if document is None:
                raise NotFound("Document line not found", details={"line_id": line_id})
            _require_status(document, DocumentStatus.DRAFT, "remove lines from")

            old_line = line.to_dict()
            db.session.delete(line)
            _recompute_totals(document)
            db.session.expire(document, ["lines"])
            document.modified_by = actor.actor_id

            record_audit(
                store_id=actor.store_id,
                entity="document",
                entity_id=document.id,
                action="remove_line",
                actor_id=actor.actor_id,
                old_value={"line": old_line},
                new_value={"total_cents": document.total_cents},
            )
            db.session.commit()
            return document

        return run_with_retry(_op)


# =============================================================================
# POST
# =============================================================================

def _verify_lines_locked(document: Document, lines: list[DocumentLine]) -> dict[tuple[str, int], object]:
    """
    Lock every product the document touches (in id order) and re-check it.

    Raises OutOfStock for sales and InvalidState for purchases when a line
    can no longer be applied.
    """
    allow_negative = allows_negative_stock(document.store_id)
    needed = _lines_by_product(lines)
    products = {}

    for (item_type, product_id) in sorted(needed):
        qty = needed[(item_type, product_id)]
        product = _locked_product(document, item_type, product_id)
        details = {"item_type": item_type, "product_id": product_id, "qty": qty}

        if product is None or product.is_deleted:
            if document.is_sale:
                raise OutOfStock("Product no longer exists", details=details)
            raise InvalidState("Product no longer exists", details=details)

        if document.is_sale:
            availability = stock_service.evaluate_availability(product, qty, allow_negative=allow_negative)
            if not availability.ok:
                raise OutOfStock(availability.reason, details=details)
        elif isinstance(product, SerializedProduct):
            if product.status not in stock_service.RECEIVABLE_STATUSES:
                raise InvalidState(
                    f"Item {product.imei} is {product.status} and cannot be received",
                    details={**details, "status": product.status},
                )
        elif not product.is_active:
            raise InvalidState("Product is inactive", details=details)

        products[(item_type, product_id)] = product

    return products


def _apply_stock_effects(document: Document, lines: list[DocumentLine], products: dict, actor: Actor) -> None:
    allow_negative = allows_negative_stock(document.store_id)
    for line in lines:
        product = products[(line.item_type, line.product_id)]
        if line.item_type == ItemType.SERIALIZED:
            stock_service.set_serialized_status(
                product,
                SerializedStatus.SOLD if document.is_sale else SerializedStatus.AVAILABLE,
                movement_type=MovementType.OUT if document.is_sale else MovementType.IN,
                qty=-1 if document.is_sale else 1,
                actor_id=actor.actor_id,
                document_id=document.id,
            )
        else:
            stock_service.apply_quantity_delta(
                product,
                -line.qty if document.is_sale else line.qty,
                movement_type=MovementType.OUT if document.is_sale else MovementType.IN,
                actor_id=actor.actor_id,
                document_id=document.id,
                allow_negative=allow_negative,
            )


def post_document(document_id: int, actor: Actor) -> Document:
    """
    draft -> posted, with stock, cash and audit effects in one transaction.

    Two posts racing for the same serialized item serialize on the product
    row; the second one re-reads it as sold and fails with OutOfStock.
    """
    with audit_failures(actor, entity="document", action="post", entity_id=document_id):
        require_permission(actor, "POST_DOCUMENT")

        def _op():
            begin_write_transaction()
            document = _require_found(_load_document(document_id, actor, lock=True), document_id)
            _require_status(document, DocumentStatus.DRAFT, "post")

            lines = list(document.lines)
            if not lines:
                raise EmptyDocument(
                    "Cannot post a document with no lines",
                    details={"document_id": document.id},
                )

            products = _verify_lines_locked(document, lines)
            _apply_stock_effects(document, lines, products, actor)

            movement = None
            if document.payment_type == PaymentType.CASH:
                register = cash_service.open_register_for(document.store_id)
                document.register_id = register.id if register else None
                if document.total_cents > 0:
                    movement = cash_service.record_movement(
                        document.store_id,
                        CashDirection.IN if document.is_sale else CashDirection.OUT,
                        document.total_cents,
                        document_id=document.id,
                        register_id=document.register_id,
                        method=PaymentMethod.CASH,
                        actor_id=actor.actor_id,
                        note=f"{document.kind.capitalize()} {document.doc_number}",
                    )
                document.paid_amount_cents = document.total_cents
            else:
                document.paid_amount_cents = 0
            document.remaining_amount_cents = document.total_cents - document.paid_amount_cents

            document.status = DocumentStatus.POSTED
            document.posted_at = utcnow()
            document.posted_by = actor.actor_id
            document.modified_by = actor.actor_id

            record_audit(
                store_id=actor.store_id,
                entity="document",
                entity_id=document.id,
                action="post",
                actor_id=actor.actor_id,
                old_value={"status": DocumentStatus.DRAFT},
                new_value={
                    "status": DocumentStatus.POSTED,
                    "total_cents": document.total_cents,
                    "paid_amount_cents": document.paid_amount_cents,
                    "remaining_amount_cents": document.remaining_amount_cents,
                    "cash_movement_id": movement.id if movement else None,
                    "register_id": document.register_id,
                },
            )
            db.session.commit()
            current_app.logger.info(
                "Posted %s %s (total=%s, lines=%s, actor=%s)",
                document.kind,
                document.doc_number,
                document.total_cents,
                len(lines),
                actor.actor_id,
            )
            return document

        return run_with_retry(_op)


# =============================================================================
# CANCEL
# =============================================================================

def _reverse_serialized(document: Document, line: DocumentLine, actor: Actor) -> None:
    product = _locked_product(document, ItemType.SERIALIZED, line.serialized_product_id)
    expected_status = SerializedStatus.SOLD if document.is_sale else SerializedStatus.AVAILABLE
    details = {"product_id": line.serialized_product_id, "identifier": line.identifier_snapshot}

    if product is None or product.is_deleted:
        raise IrreversibleState("Item no longer exists", details=details)

    latest = stock_service.latest_serialized_movement(product.id)
    if product.status != expected_status or latest is None or latest.document_id != document.id:
        raise IrreversibleState(
            f"Item {product.imei} has moved on since this document was posted",
            details={**details, "status": product.status, "latest_document_id": latest.document_id if latest else None},
        )

    stock_service.set_serialized_status(
        product,
        SerializedStatus.AVAILABLE if document.is_sale else SerializedStatus.RETURNED,
        movement_type=MovementType.RETURN,
        qty=1 if document.is_sale else -1,
        actor_id=actor.actor_id,
        document_id=document.id,
        reason="document cancelled",
    )


def _reverse_quantity(document: Document, line: DocumentLine, qty: int, actor: Actor, allow_negative: bool) -> None:
    product = _locked_product(document, ItemType.QUANTITY, line.quantity_product_id)
    if product is None:
        raise IrreversibleState("Product no longer exists", details={"product_id": line.quantity_product_id})

    delta = qty if document.is_sale else -qty
    if product.quantity + delta < 0 and not allow_negative:
        raise IrreversibleState(
            f"Only {product.quantity} of {product.name} left; the received stock was already used",
            details={"product_id": product.id, "quantity": product.quantity, "qty": qty},
        )

    stock_service.apply_quantity_delta(
        product,
        delta,
        movement_type=MovementType.RETURN,
        actor_id=actor.actor_id,
        document_id=document.id,
        reason="document cancelled",
        allow_negative=allow_negative,
    )


def cancel_document(document_id: int, actor: Actor, reason: str | None = None) -> Document:
    """
    posted -> cancelled, reversing stock and compensating cash.

    Owner only; the permission check comes before any lookup.
    """
    with audit_failures(actor, entity="document", action="cancel", entity_id=document_id):
        require_permission(actor, "CANCEL_DOCUMENT")

        def _op():
            begin_write_transaction()
            document = _require_found(_load_document(document_id, actor, lock=True), document_id)
            if document.status == DocumentStatus.DRAFT:
                raise InvalidState(
                    "Drafts are discarded, not cancelled",
                    details={"document_id": document.id, "status": document.status},
                )
            _require_status(document, DocumentStatus.POSTED, "cancel")

            open_returns = return_service.list_returns(document.store_id, document_id=document.id)
            if any(r.status in (ReturnStatus.PENDING, ReturnStatus.APPROVED) for r in open_returns):
                raise InvalidState(
                    "Approve or reject the open returns of this document before cancelling it",
                    details={"document_id": document.id},
                )

            allow_negative = allows_negative_stock(document.store_id)
            for line in document.lines:
                # Refunded returns already put their part back
                outstanding = line.qty - return_service.returned_qty(line.id, statuses=(ReturnStatus.REFUNDED,))
                if outstanding <= 0:
                    continue
                if line.item_type == ItemType.SERIALIZED:
                    _reverse_serialized(document, line, actor)
                else:
                    _reverse_quantity(document, line, outstanding, actor, allow_negative)

            originals = (
                db.session.query(CashMovement)
                .filter(
                    CashMovement.document_id == document.id,
                    CashMovement.corrects_movement_id.is_(None),
                )
                .order_by(CashMovement.id.asc())
                .all()
            )
            compensations = [
                cash_service.compensate_movement(
                    movement,
                    actor_id=actor.actor_id,
                    note=f"Cancel {document.doc_number}",
                )
                for movement in originals
            ]

            document.status = DocumentStatus.CANCELLED
            document.cancelled_at = utcnow()
            document.cancelled_by = actor.actor_id
            document.cancel_reason = reason
            document.modified_by = actor.actor_id

            record_audit(
                store_id=actor.store_id,
                entity="document",
                entity_id=document.id,
                action="cancel",
                actor_id=actor.actor_id,
                old_value={"status": DocumentStatus.POSTED},
                new_value={
                    "status": DocumentStatus.CANCELLED,
                    "reason": reason,
                    "compensating_movement_ids": [m.id for m in compensations],
                },
            )
            db.session.commit()
            current_app.logger.info(
                "Cancelled %s %s (actor=%s, reason=%s)",
                document.kind,
                document.doc_number,
                actor.actor_id,
                reason,
            )
            return document

        return run_with_retry(_op)


# =============================================================================
# PAYMENTS
# =============================================================================

def record_payment(document_id: int, actor: Actor, amount: int, method: str = PaymentMethod.CASH) -> Document:
    """Settle part of the remaining amount of a posted document."""
    with audit_failures(actor, entity="document", action="record_payment", entity_id=document_id):
        require_permission(actor, "RECORD_PAYMENT")
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            raise ValidationError("amount must be a positive integer (cents)", details={"amount": amount})
        cash_service.validate_method(method)

        def _op():
            begin_write_transaction()
            document = _require_found(_load_document(document_id, actor, lock=True), document_id)
            _require_status(document, DocumentStatus.POSTED, "record a payment on")
            if amount > document.remaining_amount_cents:
                raise ValidationError(
                    "Payment exceeds the remaining amount",
                    details={"amount": amount, "remaining_amount_cents": document.remaining_amount_cents},
                )

            old_paid = document.paid_amount_cents
            movement = cash_service.record_movement(
                document.store_id,
                CashDirection.IN if document.is_sale else CashDirection.OUT,
                amount,
                document_id=document.id,
                register_id=cash_service.register_for_method(document.store_id, method),
                method=method,
                actor_id=actor.actor_id,
                note=f"Payment on {document.doc_number}",
            )
            document.paid_amount_cents = old_paid + amount
            document.remaining_amount_cents = document.total_cents - document.paid_amount_cents
            document.modified_by = actor.actor_id

            record_audit(
                store_id=actor.store_id,
                entity="document",
                entity_id=document.id,
                action="record_payment",
                actor_id=actor.actor_id,
                old_value={"paid_amount_cents": old_paid},
                new_value={
                    "paid_amount_cents": document.paid_amount_cents,
                    "remaining_amount_cents": document.remaining_amount_cents,
                    "cash_movement_id": movement.id,
                    "method": method,
                },
            )
            db.session.commit()
            return document

        return run_with_retry(_op)


# =============================================================================
# QUERIES
# =============================================================================

def get_document(document_id: int, store_id: int) -> Document:
    document = db.session.query(Document).filter_by(id=document_id, store_id=store_id).first()
    return _require_found(document, document_id)


def get_document_lines(document_id: int, store_id: int) -> list[DocumentLine]:
    return list(get_document(document_id, store_id).lines)


def list_documents(
    store_id: int,
    kind: str | None = None,
    status: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    *,
    limit: int = 200,
) -> list[Document]:
    """Documents of a store, newest first. Date bounds are inclusive."""
    q = db.session.query(Document).filter(Document.store_id == store_id)
    if kind is not None:
        q = q.filter(Document.kind == kind)
    if status is not None:
        q = q.filter(Document.status == status)
    if date_from is not None:
        q = q.filter(Document.doc_date >= date_from)
    if date_to is not None:
        q = q.filter(Document.doc_date <= date_to)

    return q.order_by(Document.doc_date.desc(), Document.id.desc()).limit(limit).all()
