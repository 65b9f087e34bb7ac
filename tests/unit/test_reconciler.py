"""
Unit tests for edit reconciliation.
"""
import pytest

from billing.errors import ConflictError, NotFoundError, ValidationError
from billing.reconciler import find_document, reconcile
from models.document import Payment, PurchaseOrder, SalesInvoice, ShippingInvoice
from models.line_item import LineItem

NOW = "2026-01-15T10:00:00+00:00"


@pytest.fixture
def invoice() -> SalesInvoice:
    """A stored invoice: subtotal 100 at 5.5% commission."""
    return SalesInvoice(
        id="inv-1",
        order_id="ORD-1",
        counterparty_id="CL-1",
        items=[LineItem(id="it-1", description="Consulting", quantity=1, unit_price=100, total=100)],
        subtotal=100,
        fee_rate=5.5,
        fee_amount=5.5,
        total=105.5,
        created_at="2026-01-01T00:00:00+00:00",
        updated_at="2026-01-01T00:00:00+00:00",
    )


@pytest.fixture
def purchase_order() -> PurchaseOrder:
    return PurchaseOrder(
        id="po-1",
        order_id="ORD-1",
        items=[LineItem(description="Chairs", quantity=10, unit_price=50, total=500)],
        subtotal=500,
        total=500,
        payments=[Payment(id="pay-1", payment_type="advance", amount=200)],
        paid_amount=200,
        remaining_amount=300,
    )


@pytest.fixture
def shipping() -> ShippingInvoice:
    return ShippingInvoice(
        id="sh-1",
        order_id="ORD-1",
        freight_charges=120,
        insurance=15.5,
        handling_fees=9.99,
        total_shipping_cost=145.49,
    )


@pytest.mark.unit
class TestReconcileSalesInvoice:
    """Tests for reconcile() on sales invoices."""

    def test_status_only_patch_keeps_totals(self, invoice):
        updated = reconcile(invoice, {"status": "paid"}, now=NOW)
        assert updated.status == "paid"
        assert updated.subtotal == 100
        assert updated.fee_amount == 5.5
        assert updated.total == 105.5

    def test_items_patch_recomputes_totals(self, invoice):
        updated = reconcile(invoice, {"items": [{"description": "A", "quantity": 4, "unitPrice": 30}]})
        assert updated.subtotal == pytest.approx(120)
        assert updated.fee_amount == pytest.approx(6.6)
        assert updated.total == pytest.approx(126.6)
        assert updated.items[0].total == 120

    def test_rate_only_patch_recomputes_fee_and_total(self, invoice):
        updated = reconcile(invoice, {"commissionRate": 10})
        assert updated.fee_rate == 10.0
        assert updated.subtotal == pytest.approx(100)
        assert updated.fee_amount == pytest.approx(10.0)
        assert updated.total == pytest.approx(110.0)

    @pytest.mark.parametrize("key", ["fee_rate", "feeRate", "feeRatePercent", "commissionRate"])
    def test_rate_accepts_every_spelling(self, invoice, key):
        updated = reconcile(invoice, {key: "2"})
        assert updated.fee_amount == pytest.approx(2.0)

    def test_empty_patch_returns_document_unchanged(self, invoice):
        assert reconcile(invoice, {}) is invoice
        assert reconcile(invoice, {}) == invoice

    def test_patch_does_not_mutate_existing(self, invoice):
        reconcile(invoice, {"items": [{"description": "A", "quantity": 1, "unitPrice": 1}]})
        assert invoice.subtotal == 100
        assert invoice.version == 1

    def test_version_and_timestamp_advance(self, invoice):
        updated = reconcile(invoice, {"status": "sent"}, now=NOW)
        assert updated.version == 2
        assert updated.updated_at == NOW
        assert updated.created_at == invoice.created_at

    def test_derived_fields_in_patch_are_ignored(self, invoice):
        updated = reconcile(invoice, {"total": 1, "commissionFee": 99, "status": "sent"})
        assert updated.total == 105.5
        assert updated.fee_amount == 5.5

    @pytest.mark.parametrize("patch", [
        {"total": 1},
        {"commissionFee": 99, "subtotal": 0},
        {"id": "inv-1"},
        {"orderId": "ORD-1", "feeAmount": 5},
    ])
    def test_patch_without_real_changes_returns_document_unchanged(self, invoice, patch):
        updated = reconcile(invoice, patch, now=NOW)
        assert updated is invoice
        assert updated.version == 1
        assert updated.updated_at == "2026-01-01T00:00:00+00:00"

    @pytest.mark.parametrize("key", ["commissionRate", "fee_rate", "feeRate"])
    def test_null_rate_keeps_stored_rate(self, invoice, key):
        assert reconcile(invoice, {key: None}) is invoice
        assert invoice.fee_rate == 5.5
        assert invoice.fee_amount == 5.5

    def test_null_rate_with_items_recomputes_at_stored_rate(self, invoice):
        updated = reconcile(invoice, {
            "commissionRate": None,
            "items": [{"description": "A", "quantity": 2, "unitPrice": 100}],
        })
        assert updated.fee_rate == 5.5
        assert updated.subtotal == pytest.approx(200)
        assert updated.fee_amount == pytest.approx(11.0)
        assert updated.total == pytest.approx(211.0)

    def test_camel_case_keys(self, invoice):
        updated = reconcile(invoice, {"dueDate": "2026-02-14", "clientName": "Harbor Traders"})
        assert updated.due_date == "2026-02-14"
        assert updated.counterparty_name == "Harbor Traders"

    def test_unknown_field_rejected(self, invoice):
        with pytest.raises(ValidationError, match="Unknown field"):
            reconcile(invoice, {"discount": 10})

    def test_immutable_field_rejected(self, invoice):
        with pytest.raises(ValidationError, match="cannot be changed"):
            reconcile(invoice, {"orderId": "ORD-2"})

    def test_immutable_field_with_same_value_allowed(self, invoice):
        updated = reconcile(invoice, {"id": "inv-1", "status": "sent"})
        assert updated.id == "inv-1"
        assert updated.status == "sent"

    def test_invalid_status_rejected(self, invoice):
        with pytest.raises(ValidationError):
            reconcile(invoice, {"status": "archived"})

    def test_item_without_description_rejected(self, invoice):
        with pytest.raises(ValidationError, match="description is required"):
            reconcile(invoice, {"items": [{"quantity": 1, "unitPrice": 5}]})

    def test_items_must_be_a_list(self, invoice):
        with pytest.raises(ValidationError):
            reconcile(invoice, {"items": "Widget x 3"})

    def test_version_check(self, invoice):
        updated = reconcile(invoice, {"status": "sent"}, expected_version=1)
        assert updated.version == 2
        with pytest.raises(ConflictError):
            reconcile(updated, {"status": "paid"}, expected_version=1)


@pytest.mark.unit
class TestReconcilePurchaseOrder:
    """Tests for reconcile() on purchase orders."""

    def test_items_patch_recomputes_total_and_balance(self, purchase_order):
        updated = reconcile(purchase_order, {
            "items": [{"description": "Chairs", "quantity": 12, "unitPrice": 50}],
        })
        assert updated.subtotal == 600
        assert updated.total == 600
        assert updated.paid_amount == 200
        assert updated.remaining_amount == 400

    def test_payments_patch_resettles(self, purchase_order):
        updated = reconcile(purchase_order, {"payments": [
            *purchase_order.payments,
            {"paymentType": "full_payment", "amount": "300"},
        ]})
        assert updated.paid_amount == 500
        assert updated.remaining_amount == 0
        assert isinstance(updated.payments[1], Payment)

    def test_invalid_payment_rejected(self, purchase_order):
        with pytest.raises(ValidationError, match="Invalid payment"):
            reconcile(purchase_order, {"payments": [{"paymentType": "barter", "amount": 5}]})

    def test_purchase_order_has_no_fee(self, purchase_order):
        with pytest.raises(ValidationError, match="Unknown field"):
            reconcile(purchase_order, {"commissionRate": 5.5})


@pytest.mark.unit
class TestReconcileShipping:
    """Tests for reconcile() on shipping invoices."""

    def test_charge_patch_recomputes_total(self, shipping):
        updated = reconcile(shipping, {"freightCharges": "200"})
        assert updated.freight_charges == 200
        assert updated.total_shipping_cost == pytest.approx(225.49)

    def test_tracking_patch_keeps_total(self, shipping):
        updated = reconcile(shipping, {"trackingNumber": "MSKU1234567", "status": "shipped"})
        assert updated.tracking_number == "MSKU1234567"
        assert updated.total_shipping_cost == pytest.approx(145.49)


@pytest.mark.unit
class TestFindDocument:
    """Tests for find_document()."""

    def test_finds_by_id(self, invoice):
        index, found = find_document([invoice], "ORD-1", "inv-1", "sales_invoice")
        assert index == 0
        assert found is invoice

    def test_unknown_id(self, invoice):
        with pytest.raises(NotFoundError, match="inv-404"):
            find_document([invoice], "ORD-1", "inv-404", "sales_invoice")

    def test_never_initialized_collection(self):
        with pytest.raises(NotFoundError, match="No invoices found for order ORD-1"):
            find_document(None, "ORD-1", "inv-1", "sales_invoice")

    def test_empty_collection(self):
        with pytest.raises(NotFoundError):
            find_document([], "ORD-1", "inv-1", "sales_invoice")
