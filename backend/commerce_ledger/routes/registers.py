# Overview: Flask API routes for cash registers; parses input and returns JSON responses.

"""
Cash Register API Routes

DESIGN:
- One open register per store: open -> close -> reconcile (one-way)
- Expected balance always comes from the cash ledger
- Close records the settlement and any variance for investigation
"""

from flask import Blueprint, request, jsonify, g

from ..errors import LedgerError
from ..services import register_service
from ..decorators import require_actor, require_permission
from .responses import error_response, internal_error, json_body, limit_arg


registers_bp = Blueprint("registers", __name__, url_prefix="/api/registers")


@registers_bp.get("")
@require_actor
@require_permission("VIEW_CASH")
def list_registers_route():
    try:
        registers = register_service.list_registers(
            g.actor.store_id,
            status=request.args.get("status") or None,
            limit=limit_arg(100),
        )
        return jsonify({"registers": [r.to_dict() for r in registers]}), 200

    except Exception:
        return internal_error("Failed to list registers")


@registers_bp.get("/open")
@require_actor
@require_permission("VIEW_CASH")
def get_open_register_route():
    register = register_service.get_open_register(g.actor.store_id)
    return jsonify({"register": register.to_dict() if register else None}), 200


@registers_bp.post("/open")
@require_actor
def open_register_route():
    """
    Open the store's register.

    Request body:
    {
        "opening_balance_cents": 10000
    }
    """
    try:
        data = json_body()
        register = register_service.open_register(g.actor, data.get("opening_balance_cents"))
        return jsonify({"register": register.to_dict()}), 201

    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to open register")


@registers_bp.get("/<int:register_id>")
@require_actor
@require_permission("VIEW_CASH")
def get_register_summary_route(register_id: int):
    try:
        summary = register_service.get_register_summary(register_id, g.actor.store_id)
        return jsonify(summary), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to load register summary")


@registers_bp.post("/<int:register_id>/close")
@require_actor
def close_register_route(register_id: int):
    """
    Close a register.

    Request body:
    {
        "closing_balance_cents": 13500,   // counted cash
        "notes": "..."
    }
    """
    try:
        data = json_body()
        register = register_service.close_register(
            register_id,
            g.actor,
            data.get("closing_balance_cents"),
            notes=data.get("notes"),
        )
        summary = register_service.get_register_summary(register.id, g.actor.store_id)
        return jsonify(summary), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to close register")


@registers_bp.post("/<int:register_id>/reconcile")
@require_actor
def reconcile_register_route(register_id: int):
    try:
        register = register_service.reconcile_register(register_id, g.actor)
        return jsonify({"register": register.to_dict()}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to reconcile register")


@registers_bp.post("/<int:register_id>/snapshots")
@require_actor
def take_snapshot_route(register_id: int):
    """
    Record the running balance.

    Request body:
    {
        "snapshot_type": "manual",    // automatic | manual | reconciliation | shift_close
        "notes": "Mid-day count"
    }
    """
    try:
        data = json_body()
        snapshot = register_service.take_snapshot(
            register_id,
            g.actor,
            data.get("snapshot_type", "manual"),
            notes=data.get("notes"),
        )
        return jsonify({"snapshot": snapshot.to_dict()}), 201

    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to take register snapshot")


@registers_bp.get("/variances")
@require_actor
@require_permission("VIEW_CASH")
def list_variances_route():
    try:
        variances = register_service.list_variances(g.actor.store_id, status=request.args.get("status") or None)
        return jsonify({"variances": [v.to_dict() for v in variances]}), 200

    except Exception:
        return internal_error("Failed to list variances")


@registers_bp.post("/variances/<int:variance_id>/investigation")
@require_actor
def update_investigation_route(variance_id: int):
    """
    Move a variance through its investigation.

    Request body:
    {
        "status": "investigating",    // investigating | resolved | written_off
        "notes": "Recount scheduled"
    }
    """
    try:
        data = json_body()
        variance = register_service.update_variance_investigation(
            variance_id,
            g.actor,
            data.get("status"),
            notes=data.get("notes"),
        )
        return jsonify({"variance": variance.to_dict()}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to update variance investigation")
