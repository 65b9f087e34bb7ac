"""
Document service: the entry point the API and CLI use.

DocumentService ties the valuator, aggregator, and reconciler to one
repository per document kind.  Each write reads and replaces the order's
collection inside one repository update, so concurrent writers cannot
lose each other's documents and a failure leaves the collection untouched.

  create_purchase_order()    items -> subtotal/total, optional first payment
  create_sales_invoice()     items (given, or copied from the order's POs)
                             -> subtotal/commission/total
  create_shipping_invoice()  freight + insurance + handling (freight
                             estimated from weight/volume when not quoted)
  update_document()          partial update via reconcile()
  record_payment()           append a payment to a PO and re-settle
  audit()                    consistency report over stored documents
"""
import logging
import uuid
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from config import Config
from models.document import MODEL_BY_KIND, Payment, PurchaseOrder, SalesInvoice, ShippingInvoice
from models.line_item import LineItem, ShippingItem
from models.result import DocumentAudit
from .aggregator import aggregate, aggregate_shipping, estimate_freight, settle_payments
from .database import Database
from .errors import ValidationError
from .reconciler import find_document, reconcile
from .repository import DocumentRepository, InMemoryRepository, SQLiteRepository
from .validator import DocumentValidator
from .valuator import normalize

logger = logging.getLogger(__name__)


class DocumentService:
    """
    Create, list, and edit the documents of an order.

    Usage:
        service = DocumentService(config)                  # SQLite at config.db_path
        service = DocumentService.in_memory()              # tests / previews
        invoice = service.create_sales_invoice("ORD-1", items=[...])
        service.update_document("sales_invoice", "ORD-1", invoice.id, {"status": "sent"})
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        repositories: Optional[Mapping[str, DocumentRepository]] = None,
    ):
        self.config = config or Config()
        if repositories is None:
            self.config.ensure_data_dir()
            db = Database(self.config.db_path)
            repositories = {kind: SQLiteRepository(db, kind) for kind in MODEL_BY_KIND}
        self.repositories = dict(repositories)
        self.validator = DocumentValidator(self.config.arithmetic_tolerance)

    @classmethod
    def in_memory(cls, config: Optional[Config] = None) -> "DocumentService":
        return cls(config, {kind: InMemoryRepository(kind) for kind in MODEL_BY_KIND})

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    def repository(self, kind: str) -> DocumentRepository:
        try:
            return self.repositories[kind]
        except KeyError:
            raise ValidationError(f"Unknown document kind: {kind!r}") from None

    def list_documents(self, kind: str, order_id: str) -> list:
        """Return the order's documents of *kind*; empty when none were recorded."""
        return self.repository(kind).get(order_id) or []

    def get_document(self, kind: str, order_id: str, document_id: str):
        documents = self.repository(kind).get(order_id)
        _, document = find_document(documents, order_id, document_id, kind)
        return document

    def invoice_items_from_purchase_orders(
        self,
        order_id: str,
        selections: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ) -> list[LineItem]:
        """
        Copy the line items of every purchase order on the order.

        *selections* is keyed "<purchase order id>_<item id>"; each value may
        set selected (default True), quantity, and unit_price / unitPrice to
        override the PO values.  Items are copied by value: later edits to the
        purchase order do not reach the invoice.
        """
        selections = selections or {}
        items: list[LineItem] = []
        for po in self.list_documents("purchase_order", order_id):
            for item in po.items:
                choice = selections.get(f"{po.id}_{item.id}", {})
                if not choice.get("selected", True):
                    continue
                quantity = choice.get("quantity")
                unit_price = choice.get("unit_price", choice.get("unitPrice"))
                items.append(normalize({
                    **item.model_dump(),
                    "quantity":   item.quantity if quantity is None else quantity,
                    "unit_price": item.unit_price if unit_price is None else unit_price,
                }))
        return items

    def stats(self) -> dict:
        """Document counts by kind plus the number of orders holding any."""
        counts: dict[str, Any] = {}
        orders: set[str] = set()
        for kind, repo in self.repositories.items():
            parent_ids = repo.parent_ids()
            orders.update(parent_ids)
            counts[kind] = sum(len(repo.get(oid) or []) for oid in parent_ids)
        counts["orders"] = len(orders)
        return counts

    def audit(self, order_id: Optional[str] = None) -> list[DocumentAudit]:
        """Check every stored document (of one order, or of all orders)."""
        results: list[DocumentAudit] = []
        for kind, repo in self.repositories.items():
            order_ids = [order_id] if order_id else repo.parent_ids()
            for oid in order_ids:
                for document in repo.get(oid) or []:
                    results.append(self.validator.audit(document))
        flagged = sum(1 for r in results if r.error_count or r.warning_count)
        logger.info("Audited %d documents, %d with issues", len(results), flagged)
        return results

    # ------------------------------------------------------------------
    # Create operations
    # ------------------------------------------------------------------

    def create_purchase_order(
        self,
        order_id: str,
        items: Iterable[Any],
        supplier_id: Optional[str] = None,
        supplier_name: Optional[str] = None,
        payment_terms: Optional[str] = None,
        delivery_date: Optional[str] = None,
        payment: Optional[Any] = None,
        status: str = "draft",
    ) -> PurchaseOrder:
        """Create a purchase order, optionally recording an advance or down payment."""
        normalized = [normalize(item) for item in items]
        totals = aggregate(normalized, 0.0)
        now = _utcnow()

        payments: list[Payment] = []
        if payment is not None:
            first = _new_payment(payment, now)
            _check_payment_amount(first.amount, totals.total)
            payments.append(first)
        paid, remaining = settle_payments(totals.total, payments)

        po = _build(PurchaseOrder, {
            "id":                _new_id(),
            "order_id":          order_id,
            "counterparty_id":   supplier_id,
            "counterparty_name": supplier_name,
            "items":             normalized,
            "subtotal":          totals.subtotal,
            "total":             totals.total,
            "payment_terms":     payment_terms or self.config.default_payment_terms,
            "delivery_date":     delivery_date,
            "payments":          payments,
            "paid_amount":       paid,
            "remaining_amount":  remaining,
            "status":            status,
            "created_at":        now,
            "updated_at":        now,
        })
        self._append("purchase_order", order_id, po)
        logger.info(
            "Created purchase order %s for order %s  total=%.2f  paid=%.2f",
            po.id, order_id, po.total, po.paid_amount,
        )
        return po

    def create_sales_invoice(
        self,
        order_id: str,
        items: Optional[Iterable[Any]] = None,
        client_id: Optional[str] = None,
        client_name: Optional[str] = None,
        fee_rate: Optional[Any] = None,
        invoice_date: Optional[str] = None,
        due_date: Optional[str] = None,
        payment_terms: Optional[str] = None,
        selections: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ) -> SalesInvoice:
        """
        Create a sales invoice.

        When *items* is None the items are copied from the order's purchase
        orders (see invoice_items_from_purchase_orders).  fee_rate defaults
        to the configured commission rate.
        """
        if items is None:
            normalized = self.invoice_items_from_purchase_orders(order_id, selections)
        else:
            normalized = [normalize(item) for item in items]
        if not normalized:
            raise ValidationError("Select at least one item for the invoice")

        rate = self.config.default_commission_rate if fee_rate is None else fee_rate
        totals = aggregate(normalized, rate)
        now = _utcnow()

        invoice = _build(SalesInvoice, {
            "id":                _new_id(),
            "order_id":          order_id,
            "counterparty_id":   client_id,
            "counterparty_name": client_name,
            "items":             normalized,
            "subtotal":          totals.subtotal,
            "fee_rate":          totals.fee_rate,
            "fee_amount":        totals.fee_amount,
            "total":             totals.total,
            "invoice_date":      invoice_date or now,
            "due_date":          due_date,
            "payment_terms":     payment_terms or self.config.default_payment_terms,
            "status":            "draft",
            "created_at":        now,
            "updated_at":        now,
        })
        self._append("sales_invoice", order_id, invoice)
        logger.info(
            "Created sales invoice %s for order %s  subtotal=%.2f  commission=%.2f (%s%%)  total=%.2f",
            invoice.id, order_id, invoice.subtotal, invoice.fee_amount, invoice.fee_rate, invoice.total,
        )
        return invoice

    def create_shipping_invoice(
        self,
        order_id: str,
        shipping_company_id: Optional[str] = None,
        shipping_company_name: Optional[str] = None,
        tracking_number: Optional[str] = None,
        shipping_method: Optional[str] = None,
        expected_delivery: Optional[str] = None,
        freight_charges: Optional[Any] = None,
        insurance: Any = 0.0,
        handling_fees: Any = 0.0,
        items: Iterable[Any] = (),
        payment_method: str = "client_direct",
    ) -> ShippingInvoice:
        """
        Create a shipping invoice.

        When no freight charge is quoted it is estimated from the consignment
        items' weight and volume.
        """
        try:
            shipping_items = [
                i if isinstance(i, ShippingItem) else ShippingItem.model_validate(i)
                for i in items
            ]
        except PydanticValidationError as exc:
            raise ValidationError(f"Invalid shipping item: {exc}") from exc

        if freight_charges is None:
            freight_charges = estimate_freight(
                shipping_items,
                per_kg=self.config.freight_rate_per_kg,
                per_cubic_metre=self.config.freight_rate_per_cubic_metre,
            )
        totals = aggregate_shipping(freight_charges, insurance, handling_fees)
        now = _utcnow()

        shipping = _build(ShippingInvoice, {
            "id":                  _new_id(),
            "order_id":            order_id,
            "counterparty_id":     shipping_company_id,
            "counterparty_name":   shipping_company_name,
            "tracking_number":     tracking_number,
            "shipping_method":     shipping_method,
            "expected_delivery":   expected_delivery,
            "payment_method":      payment_method,
            "items":               shipping_items,
            **totals.model_dump(),
            "status":              "pending",
            "created_at":          now,
            "updated_at":          now,
        })
        self._append("shipping_invoice", order_id, shipping)
        logger.info(
            "Created shipping invoice %s for order %s  total=%.2f",
            shipping.id, order_id, shipping.total_shipping_cost,
        )
        return shipping

    # ------------------------------------------------------------------
    # Update operations
    # ------------------------------------------------------------------

    def update_document(
        self,
        kind: str,
        order_id: str,
        document_id: str,
        patch: Mapping[str, Any],
        expected_version: Optional[int] = None,
    ):
        """
        Apply *patch* to a stored document and persist the reconciled result.

        The read and the write happen in one repository transaction.  Raises
        NotFoundError, ValidationError, or ConflictError; nothing is written
        when any of them is raised.
        """
        def apply(documents):
            index, existing = find_document(documents, order_id, document_id, kind)
            updated = reconcile(existing, patch, expected_version=expected_version)
            if updated is existing:
                return None, existing
            documents[index] = updated
            return documents, updated

        updated = self.repository(kind).update(order_id, apply)
        logger.info(
            "Updated %s %s for order %s  fields=%s  version=%d",
            kind, document_id, order_id, sorted(patch), updated.version,
        )
        return updated

    def record_payment(
        self,
        order_id: str,
        purchase_order_id: str,
        payment: Any,
    ) -> tuple[Payment, PurchaseOrder]:
        """
        Append a payment to a purchase order.

        The amount must be positive and may not exceed the remaining balance.
        """
        now = _utcnow()
        new_payment = _new_payment(payment, now)

        def apply(documents):
            index, po = find_document(documents, order_id, purchase_order_id, "purchase_order")
            _, remaining = settle_payments(po.total, po.payments)
            _check_payment_amount(new_payment.amount, remaining)
            documents[index] = reconcile(po, {"payments": [*po.payments, new_payment]}, now=now)
            return documents, documents[index]

        updated = self.repository("purchase_order").update(order_id, apply)
        logger.info(
            "Recorded %s payment of %.2f on purchase order %s  remaining=%.2f",
            new_payment.payment_type, new_payment.amount, purchase_order_id, updated.remaining_amount,
        )
        return new_payment, updated

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _append(self, kind: str, order_id: str, document) -> None:
        def apply(documents):
            return [*(documents or []), document], None

        self.repository(kind).update(order_id, apply)


def _build(model_cls: type, fields: dict):
    try:
        return model_cls.model_validate(fields)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid {model_cls.__name__}: {exc}") from exc


def _new_payment(payment: Any, now: str) -> Payment:
    try:
        parsed = payment if isinstance(payment, Payment) else Payment.model_validate(payment)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid payment: {exc}") from exc
    return parsed.model_copy(update={
        "id":           parsed.id or _new_id(),
        "payment_date": parsed.payment_date or now,
    })


def _check_payment_amount(amount: float, limit: float) -> None:
    if amount <= 0:
        raise ValidationError("Payment amount must be greater than zero")
    if amount > limit:
        raise ValidationError(
            f"Payment amount {amount:.2f} exceeds the outstanding balance {limit:.2f}"
        )


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()
