# Overview: Flask API routes for sale and purchase documents; parses input and returns JSON responses.

"""
Document API routes

Lifecycle: POST /api/documents (draft) -> /lines -> /post -> /cancel.
Mutations check permissions inside the service so that refused attempts
land in the audit log; read routes check them here.
"""

from flask import Blueprint, request, jsonify, g

from ..errors import LedgerError
from ..models import DocumentKind, DocumentStatus
from ..services import document_service
from ..decorators import require_actor, require_permission
from .responses import date_arg, error_response, internal_error, json_body, limit_arg


documents_bp = Blueprint("documents", __name__, url_prefix="/api/documents")


@documents_bp.post("")
@require_actor
def create_document_route():
    """
    Create a draft sale or purchase.

    Request body:
    {
        "kind": "sale",               // sale | purchase
        "counterparty_id": 12,        // customer or supplier (optional)
        "payment_type": "cash",       // cash | credit | installment
        "doc_date": "2024-05-01",     // optional, defaults to today (UTC)
        "notes": "..."
    }
    """
    try:
        data = json_body()
        document = document_service.create_draft(
            g.actor,
            data.get("kind"),
            counterparty_id=data.get("counterparty_id"),
            payment_type=data.get("payment_type", "cash"),
            doc_date=data.get("doc_date"),
            notes=data.get("notes"),
        )
        return jsonify({"document": document.to_dict(include_lines=True)}), 201

    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create document")


@documents_bp.get("")
@require_actor
@require_permission("VIEW_DOCUMENTS")
def list_documents_route():
    """List documents. Filters: kind, status, from, to (YYYY-MM-DD, inclusive)."""
    try:
        kind = request.args.get("kind")
        status = request.args.get("status")
        if kind and kind not in DocumentKind.ALL:
            return jsonify({"error": "VALIDATION_ERROR", "message": "Invalid kind", "details": {"kind": kind}}), 400
        if status and status not in DocumentStatus.ALL:
            return jsonify({"error": "VALIDATION_ERROR", "message": "Invalid status", "details": {"status": status}}), 400

        documents = document_service.list_documents(
            g.actor.store_id,
            kind=kind or None,
            status=status or None,
            date_from=date_arg("from"),
            date_to=date_arg("to"),
            limit=limit_arg(),
        )
        return jsonify({"documents": [d.to_dict() for d in documents]}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list documents")


@documents_bp.get("/<int:document_id>")
@require_actor
@require_permission("VIEW_DOCUMENTS")
def get_document_route(document_id: int):
    try:
        document = document_service.get_document(document_id, g.actor.store_id)
        return jsonify({"document": document.to_dict(include_lines=True)}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to load document")


@documents_bp.get("/<int:document_id>/lines")
@require_actor
@require_permission("VIEW_DOCUMENTS")
def list_document_lines_route(document_id: int):
    try:
        lines = document_service.get_document_lines(document_id, g.actor.store_id)
        return jsonify({"lines": [line.to_dict() for line in lines]}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to load document lines")


@documents_bp.post("/<int:document_id>/lines")
@require_actor
def add_line_route(document_id: int):
    """
    Add a line to a draft.

    Request body:
    {
        "item_type": "quantity",      // serialized | quantity
        "product_id": 7,
        "qty": 2,                     // always 1 for serialized
        "unit_price_cents": 2500,     // optional, defaults to product price
        "discount_cents": 0           // sales only, 0 <= discount <= unit price
    }
    """
    try:
        data = json_body()
        line = document_service.add_line(
            document_id,
            g.actor,
            data.get("item_type"),
            data.get("product_id"),
            qty=data.get("qty", 1),
            unit_price=data.get("unit_price_cents"),
            discount=data.get("discount_cents", 0),
        )
        return jsonify({
            "line": line.to_dict(),
            "document": line.document.to_dict(),
        }), 201

    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to add document line")


@documents_bp.delete("/lines/<int:line_id>")
@require_actor
def remove_line_route(line_id: int):
    try:
        document = document_service.remove_line(line_id, g.actor)
        return jsonify({"document": document.to_dict(include_lines=True)}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to remove document line")


@documents_bp.post("/<int:document_id>/post")
@require_actor
def post_document_route(document_id: int):
    """Post a draft: stock, cash and audit effects in one transaction."""
    try:
        document = document_service.post_document(document_id, g.actor)
        return jsonify({"document": document.to_dict(include_lines=True)}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to post document")


@documents_bp.post("/<int:document_id>/cancel")
@require_actor
def cancel_document_route(document_id: int):
    """
    Cancel a posted document (owner only).

    Request body:
    {
        "reason": "Customer returned the phone"   // optional
    }
    """
    try:
        data = json_body()
        document = document_service.cancel_document(document_id, g.actor, reason=data.get("reason"))
        return jsonify({"document": document.to_dict(include_lines=True)}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to cancel document")


@documents_bp.post("/<int:document_id>/payments")
@require_actor
def record_payment_route(document_id: int):
    """
    Record a payment on a posted credit/installment document.

    Request body:
    {
        "amount_cents": 5000,
        "method": "cash"              // cash | bank_transfer | check | credit_card | other
    }
    """
    try:
        data = json_body()
        document = document_service.record_payment(
            document_id,
            g.actor,
            data.get("amount_cents"),
            method=data.get("method", "cash"),
        )
        return jsonify({"document": document.to_dict()}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to record payment")
