# Overview: Flask API routes for the stock ledger; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g

from ..errors import LedgerError, ValidationError
from ..models import ItemType
from ..services import stock_service, store_service
from ..decorators import require_actor, require_permission
from .responses import error_response, internal_error, json_body, limit_arg


stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


# =============================================================================
# AVAILABILITY & MOVEMENTS
# =============================================================================

@stock_bp.get("/availability")
@require_actor
@require_permission("VIEW_INVENTORY")
def availability_route():
    """
    Check availability.

    Query: item_type, product_id, qty (default 1)
    Returns {"ok": bool, "reason": str | null}
    """
    try:
        item_type = request.args.get("item_type")
        product_id = request.args.get("product_id", type=int)
        qty = request.args.get("qty", 1, type=int)
        if product_id is None:
            raise ValidationError("product_id is required")

        result = stock_service.check_availability(g.actor.store_id, item_type, product_id, qty)
        return jsonify({"ok": result.ok, "reason": result.reason}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to check availability")


@stock_bp.post("/adjustments")
@require_actor
def adjust_stock_route():
    """
    Manual adjustment of a quantity product.

    Request body:
    {
        "item_type": "quantity",
        "product_id": 3,
        "delta": -2,                  // negative deltas need the owner role
        "reason": "Damaged in storage"
    }
    """
    try:
        data = json_body()
        movement = stock_service.adjust_stock(
            g.actor,
            data.get("item_type", ItemType.QUANTITY),
            data.get("product_id"),
            data.get("delta"),
            data.get("reason"),
        )
        return jsonify({"movement": movement.to_dict()}), 201

    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to adjust stock")


@stock_bp.get("/movements")
@require_actor
@require_permission("VIEW_INVENTORY")
def list_movements_route():
    try:
        movements = stock_service.list_stock_movements(
            g.actor.store_id,
            item_type=request.args.get("item_type"),
            product_id=request.args.get("product_id", type=int),
            limit=limit_arg(),
        )
        return jsonify({"movements": [m.to_dict() for m in movements]}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list stock movements")


@stock_bp.get("/low")
@require_actor
@require_permission("VIEW_INVENTORY")
def low_stock_route():
    try:
        products = stock_service.get_low_stock(g.actor.store_id)
        return jsonify({"products": [p.to_dict() for p in products]}), 200

    except Exception:
        return internal_error("Failed to list low stock")


# =============================================================================
# SERIALIZED PRODUCTS
# =============================================================================

@stock_bp.get("/serialized")
@require_actor
@require_permission("VIEW_INVENTORY")
def list_serialized_route():
    try:
        include_deleted = request.args.get("include_deleted", "false").lower() == "true"
        products = stock_service.list_products(g.actor.store_id, ItemType.SERIALIZED, include_deleted=include_deleted)
        return jsonify({"products": [p.to_dict() for p in products]}), 200

    except Exception:
        return internal_error("Failed to list serialized products")


@stock_bp.post("/serialized")
@require_actor
def register_serialized_route():
    """
    Register one serialized unit.

    Request body:
    {
        "imei": "356938035643809",
        "name": "Phone X 128GB",
        "buy_price_cents": 30000,
        "sell_price_cents": 45000,
        "supplier_id": 4,             // optional
        "status": "available"         // available | reserved (awaiting purchase)
    }
    """
    try:
        data = json_body()
        product = stock_service.register_serialized_product(
            g.actor,
            data.get("imei"),
            data.get("name"),
            buy_price=data.get("buy_price_cents", 0),
            sell_price=data.get("sell_price_cents", 0),
            supplier_id=data.get("supplier_id"),
            status=data.get("status", "available"),
        )
        return jsonify({"product": product.to_dict()}), 201

    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to register serialized product")


@stock_bp.patch("/serialized/<int:product_id>")
@require_actor
def update_identifier_route(product_id: int):
    try:
        data = json_body()
        product = stock_service.update_serialized_identifier(g.actor, product_id, data.get("imei"))
        return jsonify({"product": product.to_dict()}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to update identifier")


@stock_bp.delete("/serialized/<int:product_id>")
@require_actor
def delete_serialized_route(product_id: int):
    try:
        product = stock_service.delete_serialized_product(g.actor, product_id)
        return jsonify({"product": product.to_dict()}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to delete serialized product")


# =============================================================================
# QUANTITY PRODUCTS
# =============================================================================

@stock_bp.get("/quantity")
@require_actor
@require_permission("VIEW_INVENTORY")
def list_quantity_route():
    try:
        products = stock_service.list_products(g.actor.store_id, ItemType.QUANTITY)
        return jsonify({"products": [p.to_dict() for p in products]}), 200

    except Exception:
        return internal_error("Failed to list quantity products")


@stock_bp.post("/quantity")
@require_actor
def create_quantity_route():
    """
    Create a quantity product.

    Request body:
    {
        "name": "USB-C cable",
        "sku": "CAB-USBC-1M",
        "barcode": "4006381333931",
        "buy_price_cents": 300,
        "sell_price_cents": 900,
        "quantity": 50,               // opening stock
        "min_qty": 5
    }
    """
    try:
        data = json_body()
        product = stock_service.create_quantity_product(
            g.actor,
            data.get("name"),
            sku=data.get("sku"),
            barcode=data.get("barcode"),
            buy_price=data.get("buy_price_cents", 0),
            sell_price=data.get("sell_price_cents", 0),
            quantity=data.get("quantity", 0),
            min_qty=data.get("min_qty", 0),
        )
        return jsonify({"product": product.to_dict()}), 201

    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create quantity product")


# =============================================================================
# STORE POLICY
# =============================================================================

@stock_bp.get("/settings")
@require_actor
@require_permission("VIEW_INVENTORY")
def list_settings_route():
    settings = store_service.get_store_settings(g.actor.store_id)
    return jsonify({
        "settings": [s.to_dict() for s in settings],
        "allow_negative_stock": store_service.allows_negative_stock(g.actor.store_id),
    }), 200


@stock_bp.put("/settings/<string:key>")
@require_actor
def set_setting_route(key: str):
    """
    Set a store policy value.

    Request body:
    {
        "value": "true"
    }
    """
    try:
        data = json_body()
        value = data.get("value")
        setting = store_service.set_store_setting(g.actor, key, None if value is None else str(value))
        return jsonify({"setting": setting.to_dict()}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to update store setting")
