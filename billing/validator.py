"""
Consistency checks for stored documents.

Documents written through the billing core always satisfy their invariants,
but records created by older clients or edited directly in the backend may
not.  DocumentValidator recomputes every derived field and reports drift:

  Arithmetic:   line totals, subtotal, commission fee, grand total,
                shipping total
  Payments:     paid / remaining amounts, overpayment
  Data quality: missing line items or descriptions, negative amounts

Nothing is corrected here; use reconcile() with the items to repair a record.
"""
import logging
from typing import Optional

from models.document import PurchaseOrder, SalesInvoice, ShippingInvoice
from models.result import Discrepancy, DocumentAudit
from .aggregator import aggregate_shipping, settle_payments

logger = logging.getLogger(__name__)

ARITHMETIC_TOLERANCE = 0.01  # $0.01 absolute tolerance for totals


class DocumentValidator:
    """
    Produces a DocumentAudit for a stored document.

    Usage:
        validator = DocumentValidator()
        audit = validator.audit(document)
    """

    def __init__(self, arithmetic_tolerance: float = ARITHMETIC_TOLERANCE):
        self.tolerance = arithmetic_tolerance

    def audit(self, document) -> DocumentAudit:
        """Run all checks for the document's kind and return the report."""
        result = DocumentAudit(
            kind=document.kind,
            order_id=document.order_id,
            document_id=document.id,
            discrepancies=self.validate(document),
        )
        result.compute_summary()
        return result

    def validate(self, document) -> list[Discrepancy]:
        issues: list[Discrepancy] = []
        if isinstance(document, ShippingInvoice):
            issues.extend(self._check_shipping(document))
            return issues

        issues.extend(self._check_items(document))
        issues.extend(self._check_totals(document))
        if isinstance(document, PurchaseOrder):
            issues.extend(self._check_payments(document))
        return issues

    # ------------------------------------------------------------------
    # Line item checks
    # ------------------------------------------------------------------

    def _check_items(self, doc) -> list[Discrepancy]:
        issues = []

        if not doc.items:
            issues.append(Discrepancy(
                type="missing_line_items",
                severity="info",
                description="Document has no line items",
                field="items",
            ))

        for i, item in enumerate(doc.items):
            if not item.description.strip():
                issues.append(Discrepancy(
                    type="missing_description",
                    severity="warning",
                    description=f"Line item {i + 1} has no description",
                    field=f"items[{i}].description",
                ))

            expected = item.quantity * item.unit_price
            if self._differs(item.total, expected):
                issues.append(Discrepancy(
                    type="line_total_mismatch",
                    severity="error",
                    description=(
                        f"Line item {i + 1} total ({item.total:.2f}) does not match "
                        f"quantity × unit price ({expected:.2f})"
                    ),
                    field=f"items[{i}].total",
                    stored_value=f"{item.total:.2f}",
                    expected_value=f"{expected:.2f}",
                ))

            for name in ("quantity", "unit_price"):
                value = getattr(item, name)
                if value < 0:
                    issues.append(Discrepancy(
                        type="negative_amount",
                        severity="warning",
                        description=f"Line item {i + 1} has a negative {name.replace('_', ' ')}: {value}",
                        field=f"items[{i}].{name}",
                        stored_value=str(value),
                    ))

        return issues

    # ------------------------------------------------------------------
    # Totals checks
    # ------------------------------------------------------------------

    def _check_totals(self, doc) -> list[Discrepancy]:
        issues = []

        computed_subtotal = sum((item.quantity * item.unit_price for item in doc.items), 0.0)
        if self._differs(doc.subtotal, computed_subtotal):
            issues.append(Discrepancy(
                type="subtotal_mismatch",
                severity="error",
                description=(
                    f"Sum of line items ({computed_subtotal:.2f}) does not match "
                    f"stored subtotal ({doc.subtotal:.2f})"
                ),
                field="subtotal",
                stored_value=f"{doc.subtotal:.2f}",
                expected_value=f"{computed_subtotal:.2f}",
            ))

        fee_amount = 0.0
        if isinstance(doc, SalesInvoice):
            if doc.fee_rate < 0:
                issues.append(Discrepancy(
                    type="negative_amount",
                    severity="warning",
                    description=f"Commission rate is negative: {doc.fee_rate}%",
                    field="fee_rate",
                    stored_value=str(doc.fee_rate),
                ))
            expected_fee = doc.subtotal * doc.fee_rate / 100
            if self._differs(doc.fee_amount, expected_fee):
                issues.append(Discrepancy(
                    type="fee_mismatch",
                    severity="error",
                    description=(
                        f"Commission fee ({doc.fee_amount:.2f}) does not match "
                        f"subtotal × {doc.fee_rate}% ({expected_fee:.2f})"
                    ),
                    field="fee_amount",
                    stored_value=f"{doc.fee_amount:.2f}",
                    expected_value=f"{expected_fee:.2f}",
                ))
            fee_amount = doc.fee_amount

        expected_total = doc.subtotal + fee_amount
        if self._differs(doc.total, expected_total):
            issues.append(Discrepancy(
                type="grand_total_mismatch",
                severity="error",
                description=(
                    f"Grand total ({doc.total:.2f}) does not match "
                    f"sum of components ({expected_total:.2f})"
                ),
                field="total",
                stored_value=f"{doc.total:.2f}",
                expected_value=f"{expected_total:.2f}",
            ))

        if doc.total < 0:
            issues.append(Discrepancy(
                type="negative_amount",
                severity="warning",
                description=f"Document total is negative: {doc.total:.2f}",
                field="total",
                stored_value=str(doc.total),
            ))

        return issues

    # ------------------------------------------------------------------
    # Payment checks (purchase orders)
    # ------------------------------------------------------------------

    def _check_payments(self, po: PurchaseOrder) -> list[Discrepancy]:
        issues = []
        paid, remaining = settle_payments(po.total, po.payments)

        if self._differs(po.paid_amount, paid):
            issues.append(Discrepancy(
                type="paid_amount_mismatch",
                severity="error",
                description=(
                    f"Paid amount ({po.paid_amount:.2f}) does not match "
                    f"completed payments ({paid:.2f})"
                ),
                field="paid_amount",
                stored_value=f"{po.paid_amount:.2f}",
                expected_value=f"{paid:.2f}",
            ))

        if self._differs(po.remaining_amount, remaining):
            issues.append(Discrepancy(
                type="remaining_amount_mismatch",
                severity="error",
                description=(
                    f"Remaining amount ({po.remaining_amount:.2f}) does not match "
                    f"total less payments ({remaining:.2f})"
                ),
                field="remaining_amount",
                stored_value=f"{po.remaining_amount:.2f}",
                expected_value=f"{remaining:.2f}",
            ))

        if remaining < -self.tolerance:
            issues.append(Discrepancy(
                type="overpaid",
                severity="warning",
                description=f"Payments exceed the order total by {-remaining:.2f}",
                field="payments",
                stored_value=f"{paid:.2f}",
                expected_value=f"<= {po.total:.2f}",
            ))

        return issues

    # ------------------------------------------------------------------
    # Shipping checks
    # ------------------------------------------------------------------

    def _check_shipping(self, doc: ShippingInvoice) -> list[Discrepancy]:
        issues = []
        expected = aggregate_shipping(
            doc.freight_charges, doc.insurance, doc.handling_fees,
        ).total_shipping_cost

        if self._differs(doc.total_shipping_cost, expected):
            issues.append(Discrepancy(
                type="shipping_total_mismatch",
                severity="error",
                description=(
                    f"Total shipping cost ({doc.total_shipping_cost:.2f}) does not match "
                    f"freight + insurance + handling ({expected:.2f})"
                ),
                field="total_shipping_cost",
                stored_value=f"{doc.total_shipping_cost:.2f}",
                expected_value=f"{expected:.2f}",
            ))

        for name in ("freight_charges", "insurance", "handling_fees"):
            value = getattr(doc, name)
            if value < 0:
                issues.append(Discrepancy(
                    type="negative_amount",
                    severity="warning",
                    description=f"{name.replace('_', ' ').capitalize()} is negative: {value:.2f}",
                    field=name,
                    stored_value=str(value),
                ))

        return issues

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _differs(self, stored: Optional[float], expected: float) -> bool:
        if stored is None:
            return False
        return abs(stored - expected) > self.tolerance
