# Overview: Flask API routes for the audit log; read-only.

from flask import Blueprint, request, jsonify, g

from ..errors import LedgerError, ValidationError
from ..models import AuditStatus
from ..services import audit_service
from ..decorators import require_actor, require_permission
from .responses import error_response, internal_error, limit_arg


audit_bp = Blueprint("audit", __name__, url_prefix="/api/audit")


@audit_bp.get("")
@require_actor
@require_permission("VIEW_AUDIT_LOG")
def list_audit_route():
    """
    List audit entries, newest first.

    Query: entity, entity_id, action, status (success | failed), limit
    """
    try:
        status = request.args.get("status") or None
        if status and status not in (AuditStatus.SUCCESS, AuditStatus.FAILED):
            raise ValidationError("status must be success or failed", details={"status": status})

        entries = audit_service.list_audit_entries(
            g.actor.store_id,
            entity=request.args.get("entity") or None,
            entity_id=request.args.get("entity_id", type=int),
            action=request.args.get("action") or None,
            status=status,
            limit=limit_arg(),
        )
        return jsonify({"entries": [e.to_dict() for e in entries]}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list audit entries")


@audit_bp.get("/summary")
@require_actor
@require_permission("VIEW_AUDIT_LOG")
def audit_summary_route():
    try:
        return jsonify({"summary": audit_service.summarize_audit(g.actor.store_id)}), 200

    except Exception:
        return internal_error("Failed to summarize audit log")
