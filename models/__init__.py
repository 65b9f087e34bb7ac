from .amount import Amount, coerce_number
from .line_item import LineItem, ShippingItem
from .document import (
    Document, DocumentKind, DOCUMENT_LABELS, MODEL_BY_KIND,
    Payment, PurchaseOrder, SalesInvoice, ShippingInvoice, parse_document,
)
from .result import DocumentTotals, ShippingTotals, Discrepancy, DocumentAudit

__all__ = [
    "Amount", "coerce_number",
    "LineItem", "ShippingItem",
    "Document", "DocumentKind", "DOCUMENT_LABELS", "MODEL_BY_KIND",
    "Payment", "PurchaseOrder", "SalesInvoice", "ShippingInvoice", "parse_document",
    "DocumentTotals", "ShippingTotals", "Discrepancy", "DocumentAudit",
]
