"""
Unit tests for DocumentService (in-memory repositories).
"""
from concurrent.futures import ThreadPoolExecutor

import pytest

from billing.errors import ConflictError, NotFoundError, ValidationError
from models.document import PurchaseOrder, SalesInvoice, ShippingInvoice


@pytest.mark.unit
class TestCreateDocuments:
    """Tests for the create_* operations."""

    def test_create_purchase_order(self, service, sample_items):
        po = service.create_purchase_order("ORD-1", sample_items, supplier_name="Acme Furniture")
        assert isinstance(po, PurchaseOrder)
        assert po.subtotal == pytest.approx(10 * 45.5 + 2 * 310)
        assert po.total == po.subtotal
        assert po.paid_amount == 0
        assert po.remaining_amount == po.total
        assert po.payment_terms == "Net 30"
        assert service.list_documents("purchase_order", "ORD-1") == [po]

    def test_create_purchase_order_with_advance(self, service, sample_items):
        po = service.create_purchase_order(
            "ORD-1", sample_items, payment={"paymentType": "advance", "amount": "500"},
        )
        assert po.paid_amount == 500
        assert po.remaining_amount == pytest.approx(po.total - 500)
        assert po.payments[0].id
        assert po.payments[0].payment_date

    @pytest.mark.parametrize("amount", [0, -10, "abc"])
    def test_purchase_order_payment_must_be_positive(self, service, sample_items, amount):
        with pytest.raises(ValidationError, match="greater than zero"):
            service.create_purchase_order(
                "ORD-1", sample_items, payment={"paymentType": "advance", "amount": amount},
            )
        assert service.list_documents("purchase_order", "ORD-1") == []

    def test_purchase_order_payment_cannot_exceed_total(self, service, sample_items):
        with pytest.raises(ValidationError, match="exceeds"):
            service.create_purchase_order(
                "ORD-1", sample_items, payment={"paymentType": "full_payment", "amount": 1_000_000},
            )

    def test_create_sales_invoice_uses_default_rate(self, service, sample_items):
        invoice = service.create_sales_invoice("ORD-1", sample_items, client_name="Harbor Traders")
        assert isinstance(invoice, SalesInvoice)
        assert invoice.fee_rate == 5.5
        assert invoice.fee_amount == pytest.approx(invoice.subtotal * 0.055)
        assert invoice.total == pytest.approx(invoice.subtotal + invoice.fee_amount)
        assert invoice.invoice_date

    def test_explicit_zero_rate_is_kept(self, service, sample_items):
        invoice = service.create_sales_invoice("ORD-1", sample_items, fee_rate=0)
        assert invoice.fee_rate == 0
        assert invoice.total == invoice.subtotal

    def test_configured_rate(self, test_config, sample_items):
        from billing.documents import DocumentService

        test_config.default_commission_rate = 7.0
        service = DocumentService.in_memory(test_config)
        invoice = service.create_sales_invoice("ORD-1", sample_items)
        assert invoice.fee_rate == 7.0

    def test_sales_invoice_needs_items(self, service):
        with pytest.raises(ValidationError, match="at least one item"):
            service.create_sales_invoice("ORD-1", [])

    def test_line_item_without_description_rejected(self, service):
        with pytest.raises(ValidationError):
            service.create_sales_invoice("ORD-1", [{"quantity": 1, "unitPrice": 10}])
        assert service.repository("sales_invoice").get("ORD-1") is None

    def test_overflowing_invoice_is_not_stored(self, service):
        with pytest.raises(ValidationError, match="overflows"):
            service.create_sales_invoice("ORD-1", [{"description": "x", "quantity": 1e200, "unitPrice": 1e200}])
        assert service.list_documents("sales_invoice", "ORD-1") == []

    def test_create_shipping_invoice(self, service):
        shipping = service.create_shipping_invoice(
            "ORD-1", shipping_company_name="Blue Anchor Lines",
            freight_charges=120.00, insurance=15.50, handling_fees=9.99,
        )
        assert isinstance(shipping, ShippingInvoice)
        assert shipping.total_shipping_cost == pytest.approx(145.49)
        assert shipping.status == "pending"

    def test_shipping_freight_is_estimated_when_not_quoted(self, service, sample_shipping_items):
        shipping = service.create_shipping_invoice("ORD-1", items=sample_shipping_items, insurance=10)
        # chairs: max(60, 80) = 80; desks: max(45, 30) = 45
        assert shipping.freight_charges == pytest.approx(125)
        assert shipping.total_shipping_cost == pytest.approx(135)

    def test_documents_are_appended_per_order(self, service, sample_items):
        first = service.create_sales_invoice("ORD-1", sample_items)
        second = service.create_sales_invoice("ORD-1", sample_items)
        other = service.create_sales_invoice("ORD-2", sample_items)
        assert [d.id for d in service.list_documents("sales_invoice", "ORD-1")] == [first.id, second.id]
        assert [d.id for d in service.list_documents("sales_invoice", "ORD-2")] == [other.id]


@pytest.mark.unit
class TestInvoiceFromPurchaseOrders:
    """Tests for building invoice items from an order's purchase orders."""

    def test_copies_all_items_by_default(self, service, sample_items):
        service.create_purchase_order("ORD-1", sample_items)
        invoice = service.create_sales_invoice("ORD-1")
        assert [i.description for i in invoice.items] == ["Office chair", "Standing desk"]
        assert invoice.subtotal == pytest.approx(1075)

    def test_selection_overrides(self, service, sample_items):
        po = service.create_purchase_order("ORD-1", sample_items)
        selections = {
            f"{po.id}_it-1": {"selected": True, "quantity": 4, "unitPrice": "50"},
            f"{po.id}_it-2": {"selected": False},
        }
        invoice = service.create_sales_invoice("ORD-1", selections=selections)
        assert len(invoice.items) == 1
        assert invoice.items[0].quantity == 4
        assert invoice.items[0].unit_price == 50
        assert invoice.subtotal == 200

    def test_nothing_selected(self, service, sample_items):
        po = service.create_purchase_order("ORD-1", sample_items)
        selections = {f"{po.id}_{item.id}": {"selected": False} for item in po.items}
        with pytest.raises(ValidationError, match="at least one item"):
            service.create_sales_invoice("ORD-1", selections=selections)

    def test_no_purchase_orders(self, service):
        with pytest.raises(ValidationError, match="at least one item"):
            service.create_sales_invoice("ORD-1")

    def test_invoice_items_are_copies(self, service, sample_items):
        po = service.create_purchase_order("ORD-1", sample_items)
        invoice = service.create_sales_invoice("ORD-1")

        service.update_document("purchase_order", "ORD-1", po.id, {
            "items": [{"description": "Office chair", "quantity": 99, "unitPrice": 1}],
        })

        stored = service.get_document("sales_invoice", "ORD-1", invoice.id)
        assert stored.items[0].quantity == 10
        assert stored.subtotal == invoice.subtotal


@pytest.mark.unit
class TestUpdateDocument:
    """Tests for update_document() and record_payment()."""

    def test_update_persists_reconciled_document(self, service, sample_items):
        invoice = service.create_sales_invoice("ORD-1", sample_items)
        updated = service.update_document("sales_invoice", "ORD-1", invoice.id, {"commissionRate": 10})
        assert updated.fee_amount == pytest.approx(updated.subtotal * 0.10)
        assert service.get_document("sales_invoice", "ORD-1", invoice.id) == updated

    def test_update_keeps_other_documents(self, service, sample_items):
        first = service.create_sales_invoice("ORD-1", sample_items)
        second = service.create_sales_invoice("ORD-1", sample_items)
        service.update_document("sales_invoice", "ORD-1", first.id, {"status": "sent"})
        stored = service.list_documents("sales_invoice", "ORD-1")
        assert [d.id for d in stored] == [first.id, second.id]
        assert stored[0].status == "sent"
        assert stored[1] == second

    def test_unknown_document(self, service, sample_items):
        service.create_sales_invoice("ORD-1", sample_items)
        with pytest.raises(NotFoundError):
            service.update_document("sales_invoice", "ORD-1", "missing", {"status": "sent"})

    def test_never_initialized_order(self, service):
        with pytest.raises(NotFoundError, match="No invoices found"):
            service.update_document("sales_invoice", "ORD-404", "inv-1", {"status": "sent"})

    def test_failed_update_leaves_store_untouched(self, service, sample_items):
        invoice = service.create_sales_invoice("ORD-1", sample_items)
        with pytest.raises(ValidationError):
            service.update_document("sales_invoice", "ORD-1", invoice.id, {"status": "archived"})
        assert service.get_document("sales_invoice", "ORD-1", invoice.id) == invoice

    def test_stale_version_rejected(self, service, sample_items):
        invoice = service.create_sales_invoice("ORD-1", sample_items)
        service.update_document("sales_invoice", "ORD-1", invoice.id, {"status": "sent"}, expected_version=1)
        with pytest.raises(ConflictError):
            service.update_document("sales_invoice", "ORD-1", invoice.id, {"status": "paid"}, expected_version=1)

    @pytest.mark.parametrize("patch", [{"total": 1}, {"commissionRate": None}])
    def test_update_without_changes_keeps_version(self, service, sample_items, patch):
        invoice = service.create_sales_invoice("ORD-1", sample_items)
        updated = service.update_document("sales_invoice", "ORD-1", invoice.id, patch)
        assert updated == invoice
        assert service.get_document("sales_invoice", "ORD-1", invoice.id).version == 1

    def test_concurrent_creates_keep_every_document(self, service, sample_items):
        with ThreadPoolExecutor(max_workers=8) as pool:
            created = list(pool.map(
                lambda _: service.create_sales_invoice("ORD-1", sample_items), range(40),
            ))
        stored = service.list_documents("sales_invoice", "ORD-1")
        assert sorted(d.id for d in stored) == sorted(i.id for i in created)

    def test_unknown_kind(self, service):
        with pytest.raises(ValidationError, match="Unknown document kind"):
            service.list_documents("credit_note", "ORD-1")

    def test_record_payment(self, service, sample_items):
        po = service.create_purchase_order("ORD-1", sample_items)
        payment, updated = service.record_payment("ORD-1", po.id, {"paymentType": "advance", "amount": 75})
        assert payment.id
        assert updated.paid_amount == 75
        assert updated.remaining_amount == pytest.approx(po.total - 75)
        assert updated.version == 2
        assert service.get_document("purchase_order", "ORD-1", po.id) == updated

    def test_payment_cannot_exceed_remaining(self, service, sample_items):
        po = service.create_purchase_order(
            "ORD-1", sample_items, payment={"paymentType": "advance", "amount": 1000},
        )
        with pytest.raises(ValidationError, match="exceeds"):
            service.record_payment("ORD-1", po.id, {"paymentType": "full_payment", "amount": 100})

    def test_stats(self, service, sample_items):
        service.create_purchase_order("ORD-1", sample_items)
        service.create_sales_invoice("ORD-1", sample_items)
        service.create_sales_invoice("ORD-2", sample_items)
        stats = service.stats()
        assert stats["orders"] == 2
        assert stats["purchase_order"] == 1
        assert stats["sales_invoice"] == 2
        assert stats["shipping_invoice"] == 0


@pytest.mark.unit
class TestAudit:
    """Tests for DocumentService.audit()."""

    def test_fresh_documents_are_clean(self, service, sample_items):
        service.create_purchase_order("ORD-1", sample_items, payment={"paymentType": "advance", "amount": 100})
        service.create_sales_invoice("ORD-1", sample_items)
        service.create_shipping_invoice("ORD-1", freight_charges=50)
        results = service.audit("ORD-1")
        assert len(results) == 3
        assert all(r.discrepancies == [] for r in results)

    def test_corrupted_record_is_reported(self, service, sample_items):
        invoice = service.create_sales_invoice("ORD-1", sample_items)
        repo = service.repository("sales_invoice")
        repo.put("ORD-1", [invoice.model_copy(update={"subtotal": 1.0})])

        (result,) = service.audit("ORD-1")
        assert "subtotal_mismatch" in [d.type for d in result.discrepancies]
        assert result.error_count >= 1
