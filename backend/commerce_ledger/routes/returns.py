# Overview: Flask API routes for sale returns; parses input and returns JSON responses.

"""
Return API routes

Lifecycle: POST /api/returns (pending) -> /approve or /reject -> /complete.
"""

from flask import Blueprint, request, jsonify, g

from ..errors import LedgerError, ValidationError
from ..models import ReturnStatus
from ..services import return_service
from ..decorators import require_actor, require_permission
from .responses import error_response, internal_error, json_body, limit_arg


returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


@returns_bp.post("")
@require_actor
def create_return_route():
    """
    Open a return against one line of a posted sale.

    Request body:
    {
        "document_id": 41,
        "line_id": 97,
        "qty": 1,
        "reason": "Screen flickers",
        "refund_amount_cents": 45000,  // optional, defaults to the line price
        "refund_method": "cash",
        "notes": "..."
    }
    """
    try:
        data = json_body()
        return_request = return_service.create_return(
            g.actor,
            data.get("document_id"),
            data.get("line_id"),
            data.get("reason"),
            qty=data.get("qty", 1),
            refund_amount=data.get("refund_amount_cents"),
            refund_method=data.get("refund_method", "cash"),
            notes=data.get("notes"),
        )
        return jsonify({"return": return_request.to_dict()}), 201

    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create return")


@returns_bp.get("")
@require_actor
@require_permission("VIEW_DOCUMENTS")
def list_returns_route():
    """List returns. Filters: status, document_id."""
    try:
        status = request.args.get("status")
        if status and status not in ReturnStatus.ALL:
            raise ValidationError("Invalid status", details={"status": status})

        returns = return_service.list_returns(
            g.actor.store_id,
            status=status or None,
            document_id=request.args.get("document_id", type=int),
            limit=limit_arg(),
        )
        return jsonify({"returns": [r.to_dict() for r in returns]}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list returns")


@returns_bp.get("/<int:return_id>")
@require_actor
@require_permission("VIEW_DOCUMENTS")
def get_return_route(return_id: int):
    try:
        return_request = return_service.get_return(return_id, g.actor.store_id)
        return jsonify({"return": return_request.to_dict()}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to load return")


@returns_bp.post("/<int:return_id>/approve")
@require_actor
def approve_return_route(return_id: int):
    try:
        data = json_body()
        return_request = return_service.approve_return(return_id, g.actor, notes=data.get("notes"))
        return jsonify({"return": return_request.to_dict()}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to approve return")


@returns_bp.post("/<int:return_id>/reject")
@require_actor
def reject_return_route(return_id: int):
    """
    Request body:
    {
        "reason": "Water damage"
    }
    """
    try:
        data = json_body()
        return_request = return_service.reject_return(return_id, g.actor, data.get("reason"))
        return jsonify({"return": return_request.to_dict()}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to reject return")


@returns_bp.post("/<int:return_id>/complete")
@require_actor
def complete_return_route(return_id: int):
    """Restock and pay out the refund of an approved return."""
    try:
        return_request = return_service.complete_return(return_id, g.actor)
        return jsonify({"return": return_request.to_dict()}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to complete return")
