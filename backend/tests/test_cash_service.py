"""
Cash ledger tests.

Verifies:
- Movements are append-only; corrections are compensating rows
- Only cash-method movements belong to a register
- Manual movements are audited and land on the open register
- Date range and register sums
"""

from datetime import timedelta

import pytest

from commerce_ledger.errors import InvalidState, NotFound, Unauthorized, ValidationError
from commerce_ledger.models import AuditEntry, CashMovement, Expense
from commerce_ledger.services import cash_service, document_service, register_service
from commerce_ledger.time_utils import utcnow


class TestRecordMovement:

    def test_rejects_non_positive_amount(self, db_session):
        with pytest.raises(ValidationError):
            cash_service.record_movement(1, "in", 0)

    def test_rejects_unknown_direction(self, db_session):
        with pytest.raises(ValidationError):
            cash_service.record_movement(1, "sideways", 100)

    def test_rejects_document_and_expense_together(self, db_session):
        with pytest.raises(ValidationError):
            cash_service.record_movement(1, "in", 100, document_id=1, expense_id=1)

    def test_closed_register_rejected(self, db_session, owner):
        register = register_service.open_register(owner, 0)
        register_service.close_register(register.id, owner, 0)

        with pytest.raises(InvalidState):
            cash_service.record_movement(owner.store_id, "in", 100, register_id=register.id)

    def test_register_of_other_store_rejected(self, db_session, owner, other_store_owner):
        register = register_service.open_register(other_store_owner, 0)

        with pytest.raises(NotFound):
            cash_service.record_movement(owner.store_id, "in", 100, register_id=register.id)


# =============================================================================
# MANUAL MOVEMENTS
# =============================================================================


class TestRecordManualMovement:

    def test_cash_drop_goes_to_open_register(self, db_session, owner):
        register = register_service.open_register(owner, 5000)

        movement = cash_service.record_manual_movement(owner, "out", 3000, "Drop to safe")

        assert movement.register_id == register.id
        assert movement.document_id is None
        assert movement.note == "Drop to safe"
        entry = db_session.query(AuditEntry).filter_by(entity="cash_movement", action="create").one()
        assert entry.entity_id == movement.id
        assert entry.new_value["amount_cents"] == 3000

    def test_non_cash_movement_has_no_register(self, db_session, admin):
        register_service.open_register(admin, 0)

        movement = cash_service.record_manual_movement(admin, "in", 1000, "Card top-up", method="credit_card")

        assert movement.register_id is None

    def test_seller_cannot_record(self, db_session, seller):
        with pytest.raises(Unauthorized):
            cash_service.record_manual_movement(seller, "in", 1000, "Float")

        assert db_session.query(CashMovement).count() == 0
        failed = db_session.query(AuditEntry).filter_by(entity="cash_movement", status="failed").one()
        assert failed.error_code == "UNAUTHORIZED"

    def test_note_required(self, db_session, owner):
        with pytest.raises(ValidationError):
            cash_service.record_manual_movement(owner, "in", 1000, " ")

    @pytest.mark.parametrize("direction, amount", [("sideways", 100), ("in", 0), ("out", "50")])
    def test_invalid_input(self, db_session, owner, direction, amount):
        with pytest.raises(ValidationError):
            cash_service.record_manual_movement(owner, direction, amount, "Float")


# =============================================================================
# EXPENSES
# =============================================================================


class TestRecordExpense:

    def test_cash_expense_goes_to_open_register(self, db_session, owner):
        register = register_service.open_register(owner, 5000)

        expense = cash_service.record_expense(owner, "utilities", 1200, "Electricity")

        assert expense.register_id == register.id
        movement = db_session.query(CashMovement).filter_by(expense_id=expense.id).one()
        assert movement.direction == "out"
        assert movement.amount_cents == 1200
        assert movement.register_id == register.id

    def test_card_expense_has_no_register(self, db_session, owner):
        register_service.open_register(owner, 0)

        expense = cash_service.record_expense(owner, "software", 3000, payment_method="credit_card")

        assert expense.register_id is None
        assert db_session.query(CashMovement).filter_by(expense_id=expense.id).one().register_id is None

    def test_seller_cannot_record_expense(self, db_session, seller):
        with pytest.raises(Unauthorized):
            cash_service.record_expense(seller, "supplies", 100)

        assert db_session.query(Expense).count() == 0

    def test_category_required(self, db_session, owner):
        with pytest.raises(ValidationError):
            cash_service.record_expense(owner, "", 100)

    def test_unknown_method(self, db_session, owner):
        with pytest.raises(ValidationError):
            cash_service.record_expense(owner, "supplies", 100, payment_method="barter")


# =============================================================================
# CORRECTIONS
# =============================================================================


class TestRecordCorrection:

    def test_correction_compensates_original(self, db_session, owner):
        expense = cash_service.record_expense(owner, "supplies", 700)
        original = db_session.query(CashMovement).filter_by(expense_id=expense.id).one()

        correction = cash_service.record_correction(original.id, owner, "Entered twice")

        assert correction.direction == "in"
        assert correction.amount_cents == 700
        assert correction.corrects_movement_id == original.id
        assert correction.note == "Entered twice"
        assert db_session.get(CashMovement, original.id).amount_cents == 700

        entry = db_session.query(AuditEntry).filter_by(entity="cash_movement", action="correct").one()
        assert entry.new_value["correction_id"] == correction.id

    def test_cannot_correct_twice(self, db_session, owner):
        expense = cash_service.record_expense(owner, "supplies", 700)
        original = db_session.query(CashMovement).filter_by(expense_id=expense.id).one()
        cash_service.record_correction(original.id, owner, "Entered twice")

        with pytest.raises(InvalidState):
            cash_service.record_correction(original.id, owner, "Again")

    def test_cannot_correct_a_correction(self, db_session, owner):
        expense = cash_service.record_expense(owner, "supplies", 700)
        original = db_session.query(CashMovement).filter_by(expense_id=expense.id).one()
        correction = cash_service.record_correction(original.id, owner, "Entered twice")

        with pytest.raises(InvalidState):
            cash_service.record_correction(correction.id, owner, "Undo")

    def test_document_movements_are_cancelled_not_corrected(self, db_session, seller, owner, cable):
        document = document_service.create_draft(seller, "sale")
        document_service.add_line(document.id, seller, "quantity", cable.id, 1)
        document_service.post_document(document.id, seller)
        movement = db_session.query(CashMovement).filter_by(document_id=document.id).one()

        with pytest.raises(InvalidState):
            cash_service.record_correction(movement.id, owner, "Wrong")

    def test_reason_required(self, db_session, owner):
        with pytest.raises(ValidationError):
            cash_service.record_correction(1, owner, " ")

    def test_unknown_movement(self, db_session, owner):
        with pytest.raises(NotFound):
            cash_service.record_correction(404, owner, "Missing")


# =============================================================================
# SUMS
# =============================================================================


class TestSums:

    def test_sum_by_register(self, db_session, owner, seller, cable):
        register = register_service.open_register(owner, 1000)
        document = document_service.create_draft(seller, "sale")
        document_service.add_line(document.id, seller, "quantity", cable.id, 2)
        document_service.post_document(document.id, seller)
        cash_service.record_expense(owner, "supplies", 500)

        totals = cash_service.sum_by_register(register.id)

        assert totals.total_in == 1800
        assert totals.total_out == 500
        assert totals.net == 1300
        assert totals.count == 2

    def test_empty_register(self, db_session, owner):
        register = register_service.open_register(owner, 1000)
        totals = cash_service.sum_by_register(register.id)
        assert (totals.total_in, totals.total_out, totals.count, totals.last_movement_id) == (0, 0, 0, None)

    def test_sum_by_date_range_is_half_open(self, db_session, owner):
        cash_service.record_expense(owner, "supplies", 500)
        movement = db_session.query(CashMovement).one()
        created = movement.created_at

        inside = cash_service.sum_by_date_range(owner.store_id, created, created + timedelta(seconds=1))
        before = cash_service.sum_by_date_range(owner.store_id, created - timedelta(days=1), created)

        assert inside.total_out == 500
        assert before.count == 0

    def test_sum_by_date_range_scoped_to_store(self, db_session, owner, other_store_owner):
        cash_service.record_expense(owner, "supplies", 500)
        now = utcnow()

        totals = cash_service.sum_by_date_range(other_store_owner.store_id, now - timedelta(days=1), now + timedelta(days=1))
        assert totals.count == 0

    def test_breakdown_categories(self, db_session, owner, seller, cable, incoming_phone):
        register = register_service.open_register(owner, 0)

        sale = document_service.create_draft(seller, "sale")
        document_service.add_line(sale.id, seller, "quantity", cable.id, 1)
        document_service.post_document(sale.id, seller)

        purchase = document_service.create_draft(owner, "purchase")
        document_service.add_line(purchase.id, owner, "serialized", incoming_phone.id)
        document_service.post_document(purchase.id, owner)

        cash_service.record_expense(owner, "supplies", 200)
        document_service.cancel_document(sale.id, owner)

        breakdown = cash_service.breakdown_by_register(register.id)

        assert breakdown.total_sales == 900
        assert breakdown.total_refunds == 900
        assert breakdown.total_purchases == 50000
        assert breakdown.total_expenses == 200
        assert breakdown.net == cash_service.sum_by_register(register.id).net
