# Overview: Flask API routes for the cash ledger; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g

from ..errors import LedgerError, ValidationError
from ..services import cash_service, register_service
from ..decorators import require_actor, require_permission
from ..time_utils import day_bounds
from .responses import date_arg, error_response, internal_error, json_body, limit_arg


cash_bp = Blueprint("cash", __name__, url_prefix="/api/cash")


@cash_bp.get("/movements")
@require_actor
@require_permission("VIEW_CASH")
def list_movements_route():
    try:
        movements = cash_service.list_movements(
            g.actor.store_id,
            register_id=request.args.get("register_id", type=int),
            document_id=request.args.get("document_id", type=int),
            limit=limit_arg(),
        )
        return jsonify({"movements": [m.to_dict() for m in movements]}), 200

    except Exception:
        return internal_error("Failed to list cash movements")


@cash_bp.post("/movements")
@require_actor
def record_movement_route():
    """
    Record a manual cash movement.

    Request body:
    {
        "direction": "out",           // in | out
        "amount_cents": 20000,
        "note": "Cash drop to safe",
        "method": "cash"
    }
    """
    try:
        data = json_body()
        movement = cash_service.record_manual_movement(
            g.actor,
            data.get("direction"),
            data.get("amount_cents"),
            data.get("note"),
            method=data.get("method", "cash"),
        )
        return jsonify({"movement": movement.to_dict()}), 201

    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to record cash movement")


@cash_bp.get("/totals")
@require_actor
@require_permission("VIEW_CASH")
def totals_route():
    """
    Ledger totals.

    Query: register_id, or from/to (YYYY-MM-DD, inclusive days).
    """
    try:
        register_id = request.args.get("register_id", type=int)
        if register_id is not None:
            register_service.get_register(register_id, g.actor.store_id)
            totals = cash_service.sum_by_register(register_id)
            return jsonify({"register_id": register_id, "totals": totals.to_dict()}), 200

        date_from = date_arg("from")
        date_to = date_arg("to") or date_from
        if date_from is None:
            raise ValidationError("register_id or from is required")
        if date_to < date_from:
            raise ValidationError("to must not be before from")

        start, _ = day_bounds(date_from)
        _, end = day_bounds(date_to)
        totals = cash_service.sum_by_date_range(g.actor.store_id, start, end)
        return jsonify({
            "from": date_from.isoformat(),
            "to": date_to.isoformat(),
            "totals": totals.to_dict(),
        }), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to compute cash totals")


@cash_bp.post("/movements/<int:movement_id>/correct")
@require_actor
def correct_movement_route(movement_id: int):
    """
    Compensate a cash movement.

    Request body:
    {
        "reason": "Expense entered twice"
    }
    """
    try:
        data = json_body()
        correction = cash_service.record_correction(movement_id, g.actor, data.get("reason"))
        return jsonify({"movement": correction.to_dict()}), 201

    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to correct cash movement")


@cash_bp.get("/expenses")
@require_actor
@require_permission("VIEW_CASH")
def list_expenses_route():
    try:
        expenses = cash_service.list_expenses(g.actor.store_id, limit=limit_arg())
        return jsonify({"expenses": [e.to_dict() for e in expenses]}), 200

    except Exception:
        return internal_error("Failed to list expenses")


@cash_bp.post("/expenses")
@require_actor
def record_expense_route():
    """
    Record a paid expense.

    Request body:
    {
        "category": "utilities",
        "amount_cents": 4200,
        "description": "Electricity May",
        "payment_method": "cash"
    }
    """
    try:
        data = json_body()
        expense = cash_service.record_expense(
            g.actor,
            data.get("category"),
            data.get("amount_cents"),
            description=data.get("description"),
            payment_method=data.get("payment_method", "cash"),
        )
        return jsonify({"expense": expense.to_dict()}), 201

    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to record expense")
