from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter
from typing import Annotated, Any, List, Literal, Optional, Union

from config import DEFAULT_COMMISSION_RATE, DEFAULT_PAYMENT_TERMS
from .amount import Amount
from .line_item import LineItem, ShippingItem


DocumentKind = Literal["purchase_order", "sales_invoice", "shipping_invoice"]

PurchaseOrderStatus = Literal["draft", "sent", "confirmed", "received"]
InvoiceStatus = Literal["draft", "sent", "paid", "overdue", "cancelled"]
ShippingStatus = Literal["pending", "shipped", "delivered", "cancelled"]

PaymentType = Literal["advance", "down_payment", "full_payment"]
PaymentMethod = Literal["bank_transfer", "wire", "ach", "check", "cash"]
PaymentStatus = Literal["pending", "completed", "failed"]

# Human-readable collection names, used in error messages
DOCUMENT_LABELS: dict[str, str] = {
    "purchase_order":   "purchase orders",
    "sales_invoice":    "invoices",
    "shipping_invoice": "shipping invoices",
}


class Payment(BaseModel):
    """A payment made against a purchase order."""
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = Field(default=None, validation_alias=AliasChoices("id", "_id"))
    payment_type: PaymentType = Field(alias="paymentType")
    amount: Amount = 0.0
    payment_date: Optional[str] = Field(default=None, alias="paymentDate")     # ISO 8601
    payment_method: PaymentMethod = Field(default="bank_transfer", alias="paymentMethod")
    reference: Optional[str] = None
    status: PaymentStatus = "completed"
    description: Optional[str] = None


class DocumentBase(BaseModel):
    """
    Fields shared by every document kind.
    order_id is the parent (master) order the document belongs to; documents
    are stored per order, so (kind, order_id, id) identifies one record.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    order_id: str = Field(
        validation_alias=AliasChoices("order_id", "orderId", "parentOrderId"),
        serialization_alias="orderId",
    )
    created_at: Optional[str] = Field(default=None, alias="createdAt")   # ISO 8601
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")   # ISO 8601
    version: int = 1


class PurchaseOrder(DocumentBase):
    """
    A purchase order placed with a supplier.
    Purchase orders carry no commission: total is always the item subtotal.
    """
    kind: Literal["purchase_order"] = "purchase_order"

    counterparty_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("counterparty_id", "supplierId", "counterpartyId"),
        serialization_alias="supplierId",
    )
    counterparty_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("counterparty_name", "supplierName", "counterpartyName"),
        serialization_alias="supplierName",
    )

    items: List[LineItem] = Field(default_factory=list)
    subtotal: Amount = 0.0
    total: Amount = Field(
        default=0.0,
        validation_alias=AliasChoices("total", "totalAmount"),
    )

    payment_terms: str = Field(default=DEFAULT_PAYMENT_TERMS, alias="paymentTerms")
    delivery_date: Optional[str] = Field(default=None, alias="deliveryDate")

    payments: List[Payment] = Field(default_factory=list)
    paid_amount: Amount = Field(default=0.0, alias="paidAmount")
    remaining_amount: Amount = Field(default=0.0, alias="remainingAmount")

    status: PurchaseOrderStatus = "draft"


class SalesInvoice(DocumentBase):
    """
    A sales invoice raised to the client of an order.
    fee_rate is the commission in percent (5.5 means 5.5%).
    """
    kind: Literal["sales_invoice"] = "sales_invoice"

    counterparty_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("counterparty_id", "clientId", "purchaseId", "counterpartyId"),
        serialization_alias="clientId",
    )
    counterparty_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("counterparty_name", "clientName", "counterpartyName"),
        serialization_alias="clientName",
    )

    items: List[LineItem] = Field(default_factory=list)
    subtotal: Amount = 0.0
    fee_rate: Amount = Field(
        default=DEFAULT_COMMISSION_RATE,
        validation_alias=AliasChoices("fee_rate", "commissionRate", "feeRate", "feeRatePercent"),
        serialization_alias="commissionRate",
    )
    fee_amount: Amount = Field(
        default=0.0,
        validation_alias=AliasChoices("fee_amount", "commissionFee", "feeAmount"),
        serialization_alias="commissionFee",
    )
    total: Amount = 0.0

    invoice_date: Optional[str] = Field(default=None, alias="invoiceDate")
    due_date: Optional[str] = Field(default=None, alias="dueDate")
    payment_terms: str = Field(default=DEFAULT_PAYMENT_TERMS, alias="paymentTerms")

    status: InvoiceStatus = "draft"


class ShippingInvoice(DocumentBase):
    """
    A shipping invoice: three flat charges, no line-item sum.
    total_shipping_cost is always freight_charges + insurance + handling_fees.
    """
    kind: Literal["shipping_invoice"] = "shipping_invoice"

    counterparty_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("counterparty_id", "shippingCompanyId", "counterpartyId"),
        serialization_alias="shippingCompanyId",
    )
    counterparty_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("counterparty_name", "shippingCompanyName", "counterpartyName"),
        serialization_alias="shippingCompanyName",
    )

    tracking_number: Optional[str] = Field(default=None, alias="trackingNumber")
    shipping_method: Optional[str] = Field(default=None, alias="shippingMethod")  # e.g. "sea", "air"
    expected_delivery: Optional[str] = Field(default=None, alias="expectedDelivery")
    payment_method: str = Field(default="client_direct", alias="paymentMethod")

    items: List[ShippingItem] = Field(default_factory=list)

    freight_charges: Amount = Field(default=0.0, alias="freightCharges")
    insurance: Amount = 0.0
    handling_fees: Amount = Field(default=0.0, alias="handlingFees")
    total_shipping_cost: Amount = Field(default=0.0, alias="totalShippingCost")

    status: ShippingStatus = "pending"


Document = Annotated[
    Union[PurchaseOrder, SalesInvoice, ShippingInvoice],
    Field(discriminator="kind"),
]

MODEL_BY_KIND: dict[str, type[DocumentBase]] = {
    "purchase_order":   PurchaseOrder,
    "sales_invoice":    SalesInvoice,
    "shipping_invoice": ShippingInvoice,
}

_DOCUMENT_ADAPTER = TypeAdapter(Document)


def parse_document(raw: Any, kind: Optional[str] = None):
    """
    Validate a raw record into the matching Document model.

    Records coming from a per-kind collection may omit the "kind" tag, so the
    caller can pass the kind explicitly.  Raises pydantic.ValidationError.
    """
    if kind is None:
        return _DOCUMENT_ADAPTER.validate_python(raw)
    return MODEL_BY_KIND[kind].model_validate(raw)
