"""
Stock ledger tests.

Verifies:
- Availability answers for both product kinds
- Manual adjustments: permission split, negative stock policy, movements
- IMEI uniqueness among active serialized products
- LowStock is published after commit only
"""

import pytest

from commerce_ledger import events
from commerce_ledger.errors import (
    DuplicateIdentifier,
    NegativeStock,
    NotFound,
    Unauthorized,
    ValidationError,
)
from commerce_ledger.models import AuditEntry, MovementType, QuantityProduct, StockMovement
from commerce_ledger.services import stock_service, store_service


# =============================================================================
# AVAILABILITY
# =============================================================================


class TestCheckAvailability:

    def test_available_serialized_item(self, phone):
        result = stock_service.check_availability(phone.store_id, "serialized", phone.id, 1)
        assert result.ok
        assert result.reason is None

    def test_serialized_qty_must_be_one(self, phone):
        result = stock_service.check_availability(phone.store_id, "serialized", phone.id, 2)
        assert not result.ok

    def test_reserved_serialized_item_is_not_available(self, incoming_phone):
        result = stock_service.check_availability(incoming_phone.store_id, "serialized", incoming_phone.id, 1)
        assert not result.ok
        assert "reserved" in result.reason

    def test_quantity_within_stock(self, cable):
        assert stock_service.check_availability(cable.store_id, "quantity", cable.id, 10).ok

    def test_quantity_beyond_stock(self, cable):
        result = stock_service.check_availability(cable.store_id, "quantity", cable.id, 11)
        assert not result.ok
        assert "10" in result.reason

    def test_inactive_quantity_product(self, db_session, cable):
        cable.is_active = False
        db_session.commit()
        assert not stock_service.check_availability(cable.store_id, "quantity", cable.id, 1).ok

    def test_unknown_product(self, db_session):
        result = stock_service.check_availability(1, "quantity", 999, 1)
        assert not result.ok
        assert result.reason == "Product not found"

    def test_other_store_cannot_see_product(self, cable):
        assert not stock_service.check_availability(cable.store_id + 1, "quantity", cable.id, 1).ok


class TestItemRef:

    def test_serialized_variant(self):
        item = stock_service.item_ref("serialized", 5)
        assert isinstance(item, stock_service.SerializedItem)
        assert item.qty == 1

    def test_quantity_variant(self):
        item = stock_service.item_ref("quantity", 5, 3)
        assert isinstance(item, stock_service.QuantityItem)
        assert item.qty == 3

    @pytest.mark.parametrize(
        "item_type,product_id,qty",
        [
            ("bundle", 1, 1),
            ("serialized", 1, 2),
            ("quantity", 1, 0),
            ("quantity", None, 1),
            ("quantity", 1, "2"),
        ],
    )
    def test_rejects_malformed_items(self, item_type, product_id, qty):
        with pytest.raises(ValidationError):
            stock_service.item_ref(item_type, product_id, qty)


# =============================================================================
# MANUAL ADJUSTMENTS
# =============================================================================


class TestAdjustStock:

    def test_admin_can_increase(self, db_session, admin, cable):
        movement = stock_service.adjust_stock(admin, "quantity", cable.id, 5, "Found in back room")

        assert db_session.get(QuantityProduct, cable.id).quantity == 15
        assert movement.movement_type == MovementType.ADJUSTMENT
        assert movement.qty == 5
        assert movement.quantity_after == 15
        assert movement.actor_id == admin.actor_id
        assert movement.reason == "Found in back room"

    def test_decrease_requires_owner(self, db_session, admin, cable):
        with pytest.raises(Unauthorized):
            stock_service.adjust_stock(admin, "quantity", cable.id, -1, "Broken")

        assert db_session.get(QuantityProduct, cable.id).quantity == 10
        failed = db_session.query(AuditEntry).filter_by(action="adjust_stock", status="failed").one()
        assert failed.error_code == "UNAUTHORIZED"
        assert failed.actor_id == admin.actor_id

    def test_owner_can_decrease(self, db_session, owner, cable):
        stock_service.adjust_stock(owner, "quantity", cable.id, -3, "Broken")
        assert db_session.get(QuantityProduct, cable.id).quantity == 7

    def test_cannot_go_negative(self, db_session, owner, cable):
        with pytest.raises(NegativeStock):
            stock_service.adjust_stock(owner, "quantity", cable.id, -11, "Shrinkage")

        assert db_session.get(QuantityProduct, cable.id).quantity == 10
        movements = db_session.query(StockMovement).filter_by(
            quantity_product_id=cable.id, movement_type=MovementType.ADJUSTMENT
        ).count()
        assert movements == 0

    def test_store_policy_allows_negative(self, db_session, owner, cable):
        store_service.set_store_setting(owner, store_service.ALLOW_NEGATIVE_STOCK, "true")

        stock_service.adjust_stock(owner, "quantity", cable.id, -11, "Oversold at market")
        assert db_session.get(QuantityProduct, cable.id).quantity == -1

    def test_serialized_items_are_not_adjusted(self, owner, phone):
        with pytest.raises(ValidationError):
            stock_service.adjust_stock(owner, "serialized", phone.id, 1, "Extra")

    def test_reason_required(self, owner, cable):
        with pytest.raises(ValidationError):
            stock_service.adjust_stock(owner, "quantity", cable.id, 1, "  ")

    def test_unknown_product(self, db_session, owner):
        with pytest.raises(NotFound):
            stock_service.adjust_stock(owner, "quantity", 404, 1, "Count")

    def test_success_is_audited(self, db_session, owner, cable):
        stock_service.adjust_stock(owner, "quantity", cable.id, 2, "Recount")

        entry = db_session.query(AuditEntry).filter_by(action="adjust_stock", status="success").one()
        assert entry.entity == "quantity_product"
        assert entry.entity_id == cable.id
        assert entry.old_value == {"quantity": 10}
        assert entry.new_value["quantity"] == 12


class TestLowStockEvents:

    def test_decrease_to_minimum_publishes_low_stock(self, db_session, owner, cable):
        received = []

        def handler(sender, **payload):
            received.append(payload)

        with events.low_stock.connected_to(handler):
            stock_service.adjust_stock(owner, "quantity", cable.id, -8, "Shrinkage")

        assert len(received) == 1
        assert received[0]["product_id"] == cable.id
        assert received[0]["quantity"] == 2
        assert received[0]["min_qty"] == 2

    def test_failed_decrease_publishes_nothing(self, db_session, owner, cable):
        received = []

        def handler(sender, **payload):
            received.append(payload)

        with events.low_stock.connected_to(handler):
            with pytest.raises(NegativeStock):
                stock_service.adjust_stock(owner, "quantity", cable.id, -50, "Shrinkage")

        assert received == []

    def test_get_low_stock(self, db_session, owner, cable):
        assert stock_service.get_low_stock(owner.store_id) == []
        stock_service.adjust_stock(owner, "quantity", cable.id, -9, "Shrinkage")
        assert [p.id for p in stock_service.get_low_stock(owner.store_id)] == [cable.id]


# =============================================================================
# SERIALIZED IDENTIFIERS
# =============================================================================


class TestSerializedIdentifiers:

    def test_registration_writes_in_movement(self, db_session, phone):
        movement = db_session.query(StockMovement).filter_by(serialized_product_id=phone.id).one()
        assert movement.movement_type == MovementType.IN
        assert movement.status_after == "available"

    def test_reserved_registration_has_no_movement(self, db_session, incoming_phone):
        assert db_session.query(StockMovement).filter_by(serialized_product_id=incoming_phone.id).count() == 0

    def test_duplicate_imei_rejected(self, db_session, owner, phone):
        with pytest.raises(DuplicateIdentifier):
            stock_service.register_serialized_product(owner, " 356938035643809 ", "Same phone")

        failed = db_session.query(AuditEntry).filter_by(status="failed").one()
        assert failed.error_code == "DUPLICATE_IDENTIFIER"

    def test_same_imei_allowed_in_other_store(self, other_store_owner, phone):
        other = stock_service.register_serialized_product(other_store_owner, phone.imei, "Phone X")
        assert other.store_id != phone.store_id

    def test_deleted_imei_can_be_reused(self, owner, phone):
        stock_service.delete_serialized_product(owner, phone.id)
        replacement = stock_service.register_serialized_product(owner, "356938035643809", "Phone X refurb")
        assert replacement.id != phone.id

    def test_admin_cannot_delete_unit(self, db_session, admin, phone):
        with pytest.raises(Unauthorized):
            stock_service.delete_serialized_product(admin, phone.id)

        assert stock_service.get_product(admin.store_id, "serialized", phone.id).is_deleted is False
        failed = db_session.query(AuditEntry).filter_by(action="delete", status="failed").one()
        assert failed.entity_id == phone.id
        assert failed.error_code == "UNAUTHORIZED"

    def test_update_to_taken_imei_rejected(self, owner, phone, incoming_phone):
        with pytest.raises(DuplicateIdentifier):
            stock_service.update_serialized_identifier(owner, incoming_phone.id, phone.imei)

    def test_update_identifier(self, db_session, owner, phone):
        updated = stock_service.update_serialized_identifier(owner, phone.id, "356938035643817")
        assert updated.imei == "356938035643817"

        entry = db_session.query(AuditEntry).filter_by(action="update_identifier").one()
        assert entry.old_value == {"imei": "356938035643809"}

    def test_technician_cannot_register(self, technician):
        with pytest.raises(Unauthorized):
            stock_service.register_serialized_product(technician, "111", "Phone")

    def test_list_movements_for_product(self, owner, phone, cable):
        movements = stock_service.list_stock_movements(owner.store_id, "quantity", cable.id)
        assert len(movements) == 1
        assert movements[0].quantity_after == 10
