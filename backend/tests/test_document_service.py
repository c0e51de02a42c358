"""
Document lifecycle tests.

Verifies:
- Drafts: numbering, line rules, totals
- Post: stock and cash effects land together or not at all
- Cancel: owner only, reverses stock, compensates cash
- Payments on credit documents
"""

import pytest

from commerce_ledger.errors import (
    EmptyDocument,
    InvalidState,
    IrreversibleState,
    NotFound,
    OutOfStock,
    Unauthorized,
    ValidationError,
)
from commerce_ledger.models import (
    AuditEntry,
    CashMovement,
    Document,
    DocumentStatus,
    QuantityProduct,
    SerializedProduct,
    StockMovement,
)
from commerce_ledger.services import (
    cash_service,
    document_service,
    register_service,
    stock_service,
    store_service,
)


def _sale(actor, *lines, payment_type="cash"):
    """Create a sale draft with (item_type, product_id, qty) lines."""
    document = document_service.create_draft(actor, "sale", payment_type=payment_type)
    for item_type, product_id, qty in lines:
        document_service.add_line(document.id, actor, item_type, product_id, qty)
    return document


def _purchase(actor, *lines, payment_type="cash"):
    document = document_service.create_draft(actor, "purchase", payment_type=payment_type)
    for item_type, product_id, qty in lines:
        document_service.add_line(document.id, actor, item_type, product_id, qty)
    return document


# =============================================================================
# DRAFTS
# =============================================================================


class TestDrafts:

    def test_create_draft(self, db_session, seller):
        document = document_service.create_draft(seller, "sale", doc_date="2026-03-14")

        assert document.status == DocumentStatus.DRAFT
        assert document.doc_number == "S-20260314-0001"
        assert document.total_cents == 0
        assert document.remaining_amount_cents == 0

    def test_numbers_are_sequential_per_kind_and_day(self, db_session, owner):
        first = document_service.create_draft(owner, "sale", doc_date="2026-03-14")
        second = document_service.create_draft(owner, "sale", doc_date="2026-03-14")
        purchase = document_service.create_draft(owner, "purchase", doc_date="2026-03-14")
        next_day = document_service.create_draft(owner, "sale", doc_date="2026-03-15")

        assert first.doc_number == "S-20260314-0001"
        assert second.doc_number == "S-20260314-0002"
        assert purchase.doc_number == "P-20260314-0001"
        assert next_day.doc_number == "S-20260315-0001"

    def test_custom_numberer(self, app, db_session, owner):
        app.config["DOCUMENT_NUMBERER"] = lambda store_id, kind, doc_date: f"INV/{store_id}/{doc_date:%Y}"
        try:
            document = document_service.create_draft(owner, "sale", doc_date="2026-03-14")
        finally:
            app.config["DOCUMENT_NUMBERER"] = None

        assert document.doc_number == "INV/1/2026"

    def test_seller_cannot_create_purchase(self, db_session, seller):
        with pytest.raises(Unauthorized):
            document_service.create_draft(seller, "purchase")

    def test_unknown_kind(self, db_session, owner):
        with pytest.raises(ValidationError):
            document_service.create_draft(owner, "quote")

    def test_kind_checked_after_authorization(self, db_session, technician):
        with pytest.raises(Unauthorized):
            document_service.create_draft(technician, "quote")

        failed = db_session.query(AuditEntry).filter_by(entity="document", action="create", status="failed").one()
        assert failed.error_code == "UNAUTHORIZED"

    @pytest.mark.parametrize("counterparty_id", ["abc", 0, -3, 1.5, True])
    def test_invalid_counterparty(self, db_session, owner, counterparty_id):
        with pytest.raises(ValidationError):
            document_service.create_draft(owner, "sale", counterparty_id=counterparty_id)

    def test_unknown_payment_type(self, db_session, owner):
        with pytest.raises(ValidationError):
            document_service.create_draft(owner, "sale", payment_type="barter")

    def test_add_line_uses_sell_price(self, db_session, seller, phone, cable):
        document = document_service.create_draft(seller, "sale")
        document_service.add_line(document.id, seller, "serialized", phone.id)
        document_service.add_line(document.id, seller, "quantity", cable.id, 3)

        document = db_session.get(Document, document.id)
        assert document.total_cents == 45000 + 3 * 900
        assert document.remaining_amount_cents == document.total_cents

    def test_purchase_line_uses_buy_price(self, db_session, owner, incoming_phone):
        document = _purchase(owner, ("serialized", incoming_phone.id, 1))
        assert db_session.get(Document, document.id).total_cents == 50000

    def test_discount_reduces_line_total(self, db_session, seller, cable):
        document = document_service.create_draft(seller, "sale")
        line = document_service.add_line(document.id, seller, "quantity", cable.id, 2, unit_price=900, discount=100)
        assert line.line_total_cents == 1600

    def test_discount_cannot_exceed_price(self, db_session, seller, cable):
        document = document_service.create_draft(seller, "sale")
        with pytest.raises(ValidationError):
            document_service.add_line(document.id, seller, "quantity", cable.id, 1, unit_price=250, discount=300)

        assert db_session.get(Document, document.id).total_cents == 0

    def test_discount_on_purchase_rejected(self, db_session, owner, cable):
        document = document_service.create_draft(owner, "purchase")
        with pytest.raises(ValidationError):
            document_service.add_line(document.id, owner, "quantity", cable.id, 1, discount=10)

    def test_same_serialized_item_twice_rejected(self, db_session, seller, phone):
        document = _sale(seller, ("serialized", phone.id, 1))
        with pytest.raises(ValidationError):
            document_service.add_line(document.id, seller, "serialized", phone.id)

    def test_sale_line_checks_stock_including_draft(self, db_session, seller, cable):
        document = _sale(seller, ("quantity", cable.id, 6))
        with pytest.raises(OutOfStock):
            document_service.add_line(document.id, seller, "quantity", cable.id, 5)

    def test_reserved_item_cannot_be_sold(self, db_session, seller, incoming_phone):
        document = document_service.create_draft(seller, "sale")
        with pytest.raises(OutOfStock):
            document_service.add_line(document.id, seller, "serialized", incoming_phone.id)

    def test_available_item_cannot_be_purchased(self, db_session, owner, phone):
        document = document_service.create_draft(owner, "purchase")
        with pytest.raises(InvalidState):
            document_service.add_line(document.id, owner, "serialized", phone.id)

    def test_remove_line_recomputes_total(self, db_session, seller, phone, cable):
        document = document_service.create_draft(seller, "sale")
        line = document_service.add_line(document.id, seller, "serialized", phone.id)
        document_service.add_line(document.id, seller, "quantity", cable.id, 1)

        document = document_service.remove_line(line.id, seller)

        assert document.total_cents == 900
        assert len(document.lines) == 1

    def test_remove_unknown_line(self, db_session, seller):
        with pytest.raises(NotFound):
            document_service.remove_line(404, seller)

    def test_other_store_cannot_touch_draft(self, db_session, seller, other_store_owner, cable):
        document = document_service.create_draft(seller, "sale")
        with pytest.raises(NotFound):
            document_service.add_line(document.id, other_store_owner, "quantity", cable.id, 1)

    def test_drafts_have_no_stock_effect(self, db_session, seller, cable):
        _sale(seller, ("quantity", cable.id, 4))
        assert db_session.get(QuantityProduct, cable.id).quantity == 10


# =============================================================================
# POST
# =============================================================================


class TestPostDocument:

    def test_cash_sale_moves_stock_and_cash(self, db_session, owner, seller, phone, cable):
        register = register_service.open_register(owner, 1000)
        document = _sale(seller, ("serialized", phone.id, 1), ("quantity", cable.id, 2))

        posted = document_service.post_document(document.id, seller)

        assert posted.status == DocumentStatus.POSTED
        assert posted.paid_amount_cents == posted.total_cents == 46800
        assert posted.remaining_amount_cents == 0
        assert posted.register_id == register.id
        assert db_session.get(SerializedProduct, phone.id).status == "sold"
        assert db_session.get(QuantityProduct, cable.id).quantity == 8

        movement = db_session.query(CashMovement).filter_by(document_id=document.id).one()
        assert movement.direction == "in"
        assert movement.amount_cents == 46800
        assert movement.register_id == register.id

        stock = db_session.query(StockMovement).filter_by(document_id=document.id).all()
        assert sorted(m.qty for m in stock) == [-2, -1]

    def test_cash_sale_without_open_register(self, db_session, seller, cable):
        document = _sale(seller, ("quantity", cable.id, 1))
        posted = document_service.post_document(document.id, seller)

        assert posted.register_id is None
        assert db_session.query(CashMovement).filter_by(document_id=document.id).one().register_id is None

    def test_credit_sale_posts_unpaid(self, db_session, seller, cable):
        document = _sale(seller, ("quantity", cable.id, 2), payment_type="credit")
        posted = document_service.post_document(document.id, seller)

        assert posted.paid_amount_cents == 0
        assert posted.remaining_amount_cents == 1800
        assert db_session.query(CashMovement).filter_by(document_id=document.id).count() == 0

    def test_cash_purchase_receives_stock(self, db_session, owner, incoming_phone, cable):
        document = _purchase(owner, ("serialized", incoming_phone.id, 1), ("quantity", cable.id, 5))
        posted = document_service.post_document(document.id, owner)

        assert db_session.get(SerializedProduct, incoming_phone.id).status == "available"
        assert db_session.get(QuantityProduct, cable.id).quantity == 15
        movement = db_session.query(CashMovement).filter_by(document_id=posted.id).one()
        assert movement.direction == "out"
        assert movement.amount_cents == 50000 + 5 * 300

    def test_empty_document(self, db_session, seller):
        document = document_service.create_draft(seller, "sale")
        with pytest.raises(EmptyDocument):
            document_service.post_document(document.id, seller)

        assert db_session.get(Document, document.id).status == DocumentStatus.DRAFT

    def test_post_twice(self, db_session, seller, cable):
        document = _sale(seller, ("quantity", cable.id, 1))
        document_service.post_document(document.id, seller)
        with pytest.raises(InvalidState):
            document_service.post_document(document.id, seller)

    def test_technician_cannot_post(self, db_session, seller, technician, cable):
        document = _sale(seller, ("quantity", cable.id, 1))
        with pytest.raises(Unauthorized):
            document_service.post_document(document.id, technician)

    def test_second_sale_of_same_phone_fails(self, db_session, seller, phone):
        first = _sale(seller, ("serialized", phone.id, 1))
        second = _sale(seller, ("serialized", phone.id, 1))

        document_service.post_document(first.id, seller)
        with pytest.raises(OutOfStock):
            document_service.post_document(second.id, seller)

        assert db_session.get(Document, second.id).status == DocumentStatus.DRAFT
        assert db_session.query(CashMovement).filter_by(document_id=second.id).count() == 0

    def test_selling_sold_item_rejected_at_draft(self, db_session, seller, phone):
        document_service.post_document(_sale(seller, ("serialized", phone.id, 1)).id, seller)

        document = document_service.create_draft(seller, "sale")
        with pytest.raises(OutOfStock):
            document_service.add_line(document.id, seller, "serialized", phone.id)

    def test_failed_post_leaves_no_partial_effects(self, db_session, owner, seller, phone, cable):
        document = _sale(seller, ("quantity", cable.id, 8), ("serialized", phone.id, 1))
        # Stock drops under the draft before it is posted
        stock_service.adjust_stock(owner, "quantity", cable.id, -5, "Damaged")

        with pytest.raises(OutOfStock):
            document_service.post_document(document.id, seller)

        assert db_session.get(SerializedProduct, phone.id).status == "available"
        assert db_session.get(QuantityProduct, cable.id).quantity == 5
        assert db_session.query(StockMovement).filter_by(document_id=document.id).count() == 0

    def test_post_is_audited(self, db_session, seller, cable):
        document = _sale(seller, ("quantity", cable.id, 1))
        document_service.post_document(document.id, seller)

        entry = db_session.query(AuditEntry).filter_by(entity="document", action="post").one()
        assert entry.entity_id == document.id
        assert entry.old_value == {"status": "draft"}
        assert entry.new_value["status"] == "posted"

    def test_sale_with_negative_stock_allowed(self, db_session, owner, seller, cable):
        store_service.set_store_setting(owner, store_service.ALLOW_NEGATIVE_STOCK, "true")
        document = _sale(seller, ("quantity", cable.id, 12))
        document_service.post_document(document.id, seller)

        assert db_session.get(QuantityProduct, cable.id).quantity == -2


# =============================================================================
# CANCEL
# =============================================================================


class TestCancelDocument:

    def test_cancel_cash_sale(self, db_session, owner, seller, phone, cable):
        register = register_service.open_register(owner, 0)
        document = _sale(seller, ("serialized", phone.id, 1), ("quantity", cable.id, 3))
        document_service.post_document(document.id, seller)

        cancelled = document_service.cancel_document(document.id, owner, reason="Customer changed mind")

        assert cancelled.status == DocumentStatus.CANCELLED
        assert cancelled.cancel_reason == "Customer changed mind"
        assert db_session.get(SerializedProduct, phone.id).status == "available"
        assert db_session.get(QuantityProduct, cable.id).quantity == 10

        movements = db_session.query(CashMovement).filter_by(document_id=document.id).order_by(CashMovement.id).all()
        assert [(m.direction, m.amount_cents) for m in movements] == [("in", 47700), ("out", 47700)]
        assert movements[1].corrects_movement_id == movements[0].id
        assert cash_service.sum_by_register(register.id).net == 0

    def test_cancel_requires_owner(self, db_session, admin, seller, cable):
        document = _sale(seller, ("quantity", cable.id, 1))
        document_service.post_document(document.id, seller)

        with pytest.raises(Unauthorized):
            document_service.cancel_document(document.id, admin)

        assert db_session.get(Document, document.id).status == DocumentStatus.POSTED
        failed = db_session.query(AuditEntry).filter_by(action="cancel", status="failed").one()
        assert failed.entity_id == document.id
        assert failed.error_code == "UNAUTHORIZED"

    def test_unauthorized_before_not_found(self, db_session, seller):
        with pytest.raises(Unauthorized):
            document_service.cancel_document(404, seller)

    def test_cancel_draft_rejected(self, db_session, owner, seller, cable):
        document = _sale(seller, ("quantity", cable.id, 1))
        with pytest.raises(InvalidState):
            document_service.cancel_document(document.id, owner)

    def test_cancel_twice_rejected(self, db_session, owner, seller, cable):
        document = _sale(seller, ("quantity", cable.id, 1))
        document_service.post_document(document.id, seller)
        document_service.cancel_document(document.id, owner)

        with pytest.raises(InvalidState):
            document_service.cancel_document(document.id, owner)

    def test_cancel_purchase_after_item_was_sold(self, db_session, owner, seller, incoming_phone):
        purchase = _purchase(owner, ("serialized", incoming_phone.id, 1))
        document_service.post_document(purchase.id, owner)
        document_service.post_document(_sale(seller, ("serialized", incoming_phone.id, 1)).id, seller)

        with pytest.raises(IrreversibleState):
            document_service.cancel_document(purchase.id, owner)

        assert db_session.get(Document, purchase.id).status == DocumentStatus.POSTED
        assert db_session.get(SerializedProduct, incoming_phone.id).status == "sold"

    def test_cancel_purchase_after_stock_was_used(self, db_session, owner, seller, cable):
        purchase = _purchase(owner, ("quantity", cable.id, 5))
        document_service.post_document(purchase.id, owner)
        document_service.post_document(_sale(seller, ("quantity", cable.id, 14)).id, seller)

        with pytest.raises(IrreversibleState):
            document_service.cancel_document(purchase.id, owner)

        assert db_session.get(QuantityProduct, cable.id).quantity == 1

    def test_cancel_purchase_returns_item(self, db_session, owner, incoming_phone):
        purchase = _purchase(owner, ("serialized", incoming_phone.id, 1))
        document_service.post_document(purchase.id, owner)

        document_service.cancel_document(purchase.id, owner)

        assert db_session.get(SerializedProduct, incoming_phone.id).status == "returned"

    def test_returned_item_can_be_received_again(self, db_session, owner, incoming_phone):
        first = _purchase(owner, ("serialized", incoming_phone.id, 1))
        document_service.post_document(first.id, owner)
        document_service.cancel_document(first.id, owner)

        second = _purchase(owner, ("serialized", incoming_phone.id, 1))
        document_service.post_document(second.id, owner)

        assert db_session.get(SerializedProduct, incoming_phone.id).status == "available"

    def test_cancel_credit_sale_compensates_payments(self, db_session, owner, seller, cable):
        document = _sale(seller, ("quantity", cable.id, 2), payment_type="credit")
        document_service.post_document(document.id, seller)
        document_service.record_payment(document.id, seller, 500)

        document_service.cancel_document(document.id, owner)

        movements = db_session.query(CashMovement).filter_by(document_id=document.id).all()
        assert sorted((m.direction, m.amount_cents) for m in movements) == [("in", 500), ("out", 500)]


# =============================================================================
# PAYMENTS
# =============================================================================


class TestRecordPayment:

    def test_partial_payments(self, db_session, seller, cable):
        document = _sale(seller, ("quantity", cable.id, 2), payment_type="installment")
        document_service.post_document(document.id, seller)

        document = document_service.record_payment(document.id, seller, 800)
        assert document.paid_amount_cents == 800
        assert document.remaining_amount_cents == 1000

        document = document_service.record_payment(document.id, seller, 1000, method="bank_transfer")
        assert document.remaining_amount_cents == 0

        transfer = db_session.query(CashMovement).filter_by(document_id=document.id, method="bank_transfer").one()
        assert transfer.register_id is None

    def test_overpayment_rejected(self, db_session, seller, cable):
        document = _sale(seller, ("quantity", cable.id, 1), payment_type="credit")
        document_service.post_document(document.id, seller)

        with pytest.raises(ValidationError):
            document_service.record_payment(document.id, seller, 901)

    def test_payment_on_draft_rejected(self, db_session, seller, cable):
        document = _sale(seller, ("quantity", cable.id, 1), payment_type="credit")
        with pytest.raises(InvalidState):
            document_service.record_payment(document.id, seller, 100)

    @pytest.mark.parametrize("amount", [0, -5, "100", None])
    def test_invalid_amount(self, db_session, seller, amount):
        with pytest.raises(ValidationError):
            document_service.record_payment(1, seller, amount)

    def test_cash_payment_lands_in_open_register(self, db_session, owner, seller, cable):
        register = register_service.open_register(owner, 0)
        document = _sale(seller, ("quantity", cable.id, 1), payment_type="credit")
        document_service.post_document(document.id, seller)

        document_service.record_payment(document.id, seller, 900)

        assert cash_service.sum_by_register(register.id).total_in == 900


# =============================================================================
# QUERIES
# =============================================================================


class TestDocumentQueries:

    def test_list_documents_filters(self, db_session, owner, seller, cable):
        sale = _sale(seller, ("quantity", cable.id, 1))
        document_service.post_document(sale.id, seller)
        document_service.create_draft(owner, "purchase")

        assert [d.id for d in document_service.list_documents(owner.store_id, kind="sale")] == [sale.id]
        assert [d.id for d in document_service.list_documents(owner.store_id, status="posted")] == [sale.id]
        assert len(document_service.list_documents(owner.store_id)) == 2

    def test_get_document_scoped_to_store(self, db_session, seller, other_store_owner):
        document = document_service.create_draft(seller, "sale")
        with pytest.raises(NotFound):
            document_service.get_document(document.id, other_store_owner.store_id)

    def test_get_document_lines(self, db_session, seller, phone, cable):
        document = _sale(seller, ("serialized", phone.id, 1), ("quantity", cable.id, 2))

        lines = document_service.get_document_lines(document.id, seller.store_id)

        assert [(line.item_type, line.qty) for line in lines] == [("serialized", 1), ("quantity", 2)]
        assert lines[0].identifier_snapshot == phone.imei

    def test_get_document_lines_scoped_to_store(self, db_session, seller, other_store_owner):
        document = document_service.create_draft(seller, "sale")
        with pytest.raises(NotFound):
            document_service.get_document_lines(document.id, other_store_owner.store_id)
