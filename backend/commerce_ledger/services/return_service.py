# Overview: Partial returns of posted sale lines; approval workflow, restock and refund.

"""
Return Processing

A return takes back part (or all) of one line of a posted sale without
cancelling the document.

LIFECYCLE:
1. create   (pending)  - at the counter; qty and refund are fixed here
2. approve  (approved) or reject (rejected, terminal) - manager decision
3. complete (refunded) - stock goes back as a "return" movement and the
   refund leaves as a cash "out" movement linked to the sale

RULES:
- qty <= sold qty minus what pending/approved/refunded returns already hold
- refund <= the line's net price for qty, and never more than the customer
  has paid on the document minus earlier refunds
- Serialized units go back to available; the unit must still be the one
  this sale took out
- The sale keeps its status; cancelling it later only reverses what was not
  returned
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..errors import InvalidState, IrreversibleState, NotFound, ValidationError
from ..extensions import db
from ..models import (
    CashDirection,
    Document,
    DocumentLine,
    DocumentStatus,
    ItemType,
    MovementType,
    PaymentMethod,
    QuantityProduct,
    ReturnRequest,
    ReturnStatus,
    SerializedProduct,
    SerializedStatus,
)
from ..time_utils import utcnow
from . import cash_service, stock_service
from .audit_service import audit_failures, record_audit
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry
from .permission_service import Actor, require_permission


# =============================================================================
# HELPERS
# =============================================================================

def returned_qty(line_id: int, *, statuses=ReturnStatus.ACTIVE) -> int:
    """Quantity of a sale line already claimed by returns in statuses."""
    total = (
        db.session.query(func.coalesce(func.sum(ReturnRequest.qty), 0))
        .filter(ReturnRequest.document_line_id == line_id, ReturnRequest.status.in_(statuses))
        .scalar()
    )
    return int(total or 0)


def _committed_refunds(document_id: int) -> int:
    total = (
        db.session.query(func.coalesce(func.sum(ReturnRequest.refund_amount_cents), 0))
        .filter(ReturnRequest.document_id == document_id, ReturnRequest.status.in_(ReturnStatus.ACTIVE))
        .scalar()
    )
    return int(total or 0)


def _load_return(return_id: int, actor: Actor) -> ReturnRequest:
    return_request = lock_for_update(
        db.session.query(ReturnRequest).filter_by(id=return_id, store_id=actor.store_id)
    ).first()
    if return_request is None:
        raise NotFound("Return not found", details={"return_id": return_id})
    return return_request


def _require_return_status(return_request: ReturnRequest, status: str, action: str) -> None:
    if return_request.status != status:
        raise InvalidState(
            f"Cannot {action} a {return_request.status} return",
            details={"return_id": return_request.id, "status": return_request.status},
        )


def _load_sale(document_id: int, actor: Actor) -> Document:
    document = lock_for_update(
        db.session.query(Document).filter_by(id=document_id, store_id=actor.store_id)
    ).first()
    if document is None:
        raise NotFound("Document not found", details={"document_id": document_id})
    if not document.is_sale:
        raise ValidationError("Only sales can be returned", details={"document_id": document.id})
    if document.status != DocumentStatus.POSTED:
        raise InvalidState(
            f"Cannot return items of a {document.status} document",
            details={"document_id": document.id, "status": document.status},
        )
    return document


# =============================================================================
# CREATE
# =============================================================================

def create_return(
    actor: Actor,
    document_id: int,
    line_id: int,
    reason: str,
    qty: int = 1,
    refund_amount: int | None = None,
    refund_method: str = PaymentMethod.CASH,
    notes: str | None = None,
) -> ReturnRequest:
    """
    Open a pending return for qty units of one sale line.

    refund_amount defaults to the line's net unit price times qty, capped at
    what is still refundable on the document.
    """
    with audit_failures(actor, entity="return", action="create"):
        require_permission(actor, "CREATE_RETURN")
        if not reason or not str(reason).strip():
            raise ValidationError("reason is required for returns")
        if not isinstance(qty, int) or isinstance(qty, bool) or qty < 1:
            raise ValidationError("qty must be an integer >= 1", details={"qty": qty})
        if refund_amount is not None and (
            not isinstance(refund_amount, int) or isinstance(refund_amount, bool) or refund_amount < 0
        ):
            raise ValidationError(
                "refund_amount must be a non-negative integer (cents)",
                details={"refund_amount": refund_amount},
            )
        cash_service.validate_method(refund_method)
        reason = str(reason).strip()

        def _op():
            begin_write_transaction()
            document = _load_sale(document_id, actor)
            line = db.session.query(DocumentLine).filter_by(id=line_id, document_id=document.id).first()
            if line is None:
                raise NotFound("Document line not found", details={"document_id": document.id, "line_id": line_id})

            returnable = line.qty - returned_qty(line.id)
            if qty > returnable:
                raise ValidationError(
                    f"Only {returnable} of this line can still be returned",
                    details={"line_id": line.id, "sold_qty": line.qty, "returnable": returnable, "qty": qty},
                )

            line_value = (line.unit_price_cents - line.discount_cents) * qty
            refundable = max(0, document.paid_amount_cents - _committed_refunds(document.id))
            limit = min(line_value, refundable)
            amount = limit if refund_amount is None else refund_amount
            if amount > limit:
                raise ValidationError(
                    "Refund exceeds what can be refunded for this line",
                    details={"refund_amount": amount, "line_value": line_value, "refundable": refundable},
                )

            return_request = ReturnRequest(
                store_id=actor.store_id,
                document_id=document.id,
                document_line_id=line.id,
                item_type=line.item_type,
                qty=qty,
                refund_amount_cents=amount,
                refund_method=refund_method,
                status=ReturnStatus.PENDING,
                reason=reason,
                notes=notes,
                created_by=actor.actor_id,
            )
            db.session.add(return_request)
            db.session.flush()

            record_audit(
                store_id=actor.store_id,
                entity="return",
                entity_id=return_request.id,
                action="create",
                actor_id=actor.actor_id,
                new_value=return_request.to_dict(),
            )
            db.session.commit()
            return return_request

        return run_with_retry(_op)


# =============================================================================
# APPROVAL
# =============================================================================

def approve_return(return_id: int, actor: Actor, notes: str | None = None) -> ReturnRequest:
    with audit_failures(actor, entity="return", action="approve", entity_id=return_id):
        require_permission(actor, "APPROVE_RETURN")

        def _op():
            begin_write_transaction()
            return_request = _load_return(return_id, actor)
            _require_return_status(return_request, ReturnStatus.PENDING, "approve")

            return_request.status = ReturnStatus.APPROVED
            return_request.approved_by = actor.actor_id
            return_request.approved_at = utcnow()
            if notes:
                return_request.notes = notes

            record_audit(
                store_id=actor.store_id,
                entity="return",
                entity_id=return_request.id,
                action="approve",
                actor_id=actor.actor_id,
                old_value={"status": ReturnStatus.PENDING},
                new_value={"status": ReturnStatus.APPROVED, "notes": notes},
            )
            db.session.commit()
            return return_request

        return run_with_retry(_op)


def reject_return(return_id: int, actor: Actor, reason: str) -> ReturnRequest:
    """Reject a pending return; the claimed qty becomes returnable again."""
    with audit_failures(actor, entity="return", action="reject", entity_id=return_id):
        require_permission(actor, "APPROVE_RETURN")
        if not reason or not str(reason).strip():
            raise ValidationError("reason is required to reject a return")
        reason = str(reason).strip()

        def _op():
            begin_write_transaction()
            return_request = _load_return(return_id, actor)
            _require_return_status(return_request, ReturnStatus.PENDING, "reject")

            return_request.status = ReturnStatus.REJECTED
            return_request.rejected_by = actor.actor_id
            return_request.rejected_at = utcnow()
            return_request.rejection_reason = reason

            record_audit(
                store_id=actor.store_id,
                entity="return",
                entity_id=return_request.id,
                action="reject",
                actor_id=actor.actor_id,
                old_value={"status": ReturnStatus.PENDING},
                new_value={"status": ReturnStatus.REJECTED, "reason": reason},
            )
            db.session.commit()
            return return_request

        return run_with_retry(_op)


# =============================================================================
# COMPLETION (RESTOCK + REFUND)
# =============================================================================

def _restock_serialized(document: Document, line: DocumentLine, return_request: ReturnRequest, actor: Actor) -> None:
    product = lock_for_update(
        db.session.query(SerializedProduct).filter_by(id=line.serialized_product_id, store_id=document.store_id)
    ).first()
    details = {"product_id": line.serialized_product_id, "identifier": line.identifier_snapshot}
    if product is None or product.is_deleted:
        raise IrreversibleState("Item no longer exists", details=details)

    latest = stock_service.latest_serialized_movement(product.id)
    if product.status != SerializedStatus.SOLD or latest is None or latest.document_id != document.id:
        raise IrreversibleState(
            f"Item {product.imei} has moved on since this sale",
            details={**details, "status": product.status},
        )

    stock_service.set_serialized_status(
        product,
        SerializedStatus.AVAILABLE,
        movement_type=MovementType.RETURN,
        qty=1,
        actor_id=actor.actor_id,
        document_id=document.id,
        reason=f"return {return_request.id}",
    )


def _restock_quantity(document: Document, line: DocumentLine, return_request: ReturnRequest, actor: Actor) -> None:
    product = lock_for_update(
        db.session.query(QuantityProduct).filter_by(id=line.quantity_product_id, store_id=document.store_id)
    ).first()
    if product is None:
        raise IrreversibleState("Product no longer exists", details={"product_id": line.quantity_product_id})

    stock_service.apply_quantity_delta(
        product,
        return_request.qty,
        movement_type=MovementType.RETURN,
        actor_id=actor.actor_id,
        document_id=document.id,
        reason=f"return {return_request.id}",
    )


def complete_return(return_id: int, actor: Actor) -> ReturnRequest:
    """
    approved -> refunded: restock and pay the refund in one transaction.

    A cash refund comes out of the store's open register, if any.
    """
    with audit_failures(actor, entity="return", action="complete", entity_id=return_id):
        require_permission(actor, "PROCESS_RETURN")

        def _op():
            begin_write_transaction()
            return_request = _load_return(return_id, actor)
            _require_return_status(return_request, ReturnStatus.APPROVED, "complete")
            document = _load_sale(return_request.document_id, actor)
            line = return_request.line

            if line.item_type == ItemType.SERIALIZED:
                _restock_serialized(document, line, return_request, actor)
            else:
                _restock_quantity(document, line, return_request, actor)

            movement = None
            if return_request.refund_amount_cents > 0:
                movement = cash_service.record_movement(
                    document.store_id,
                    CashDirection.OUT,
                    return_request.refund_amount_cents,
                    document_id=document.id,
                    register_id=cash_service.register_for_method(document.store_id, return_request.refund_method),
                    method=return_request.refund_method,
                    actor_id=actor.actor_id,
                    note=f"Refund {document.doc_number} (return {return_request.id})",
                )

            return_request.status = ReturnStatus.REFUNDED
            return_request.refunded_by = actor.actor_id
            return_request.refunded_at = utcnow()
            return_request.cash_movement_id = movement.id if movement else None

            record_audit(
                store_id=actor.store_id,
                entity="return",
                entity_id=return_request.id,
                action="complete",
                actor_id=actor.actor_id,
                old_value={"status": ReturnStatus.APPROVED},
                new_value={
                    "status": ReturnStatus.REFUNDED,
                    "document_id": document.id,
                    "qty": return_request.qty,
                    "refund_amount_cents": return_request.refund_amount_cents,
                    "cash_movement_id": return_request.cash_movement_id,
                },
            )
            db.session.commit()
            current_app.logger.info(
                "Return %s on %s refunded: qty=%s amount=%s (actor=%s)",
                return_request.id,
                document.doc_number,
                return_request.qty,
                return_request.refund_amount_cents,
                actor.actor_id,
            )
            return return_request

        return run_with_retry(_op)


# =============================================================================
# QUERIES
# =============================================================================

def get_return(return_id: int, store_id: int) -> ReturnRequest:
    return_request = db.session.query(ReturnRequest).filter_by(id=return_id, store_id=store_id).first()
    if return_request is None:
        raise NotFound("Return not found", details={"return_id": return_id})
    return return_request


def list_returns(
    store_id: int,
    *,
    status: str | None = None,
    document_id: int | None = None,
    limit: int = 200,
) -> list[ReturnRequest]:
    q = db.session.query(ReturnRequest).filter(ReturnRequest.store_id == store_id)
    if status is not None:
        q = q.filter(ReturnRequest.status == status)
    if document_id is not None:
        q = q.filter(ReturnRequest.document_id == document_id)
    return q.order_by(ReturnRequest.id.desc()).limit(limit).all()
