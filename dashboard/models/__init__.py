"""
Pydantic models for dashboard API requests.

Numeric fields are left as Any: the billing core coerces them, so a form
posting "12.50" or "" behaves exactly like one posting 12.5 or 0.
"""
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from typing import Any, Optional


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class TotalsRequest(_Request):
    items: list[dict] = Field(default_factory=list)
    fee_rate: Any = Field(default=0.0, alias="feeRate")        # percent


class ShippingTotalsRequest(_Request):
    freight_charges: Any = Field(default=0.0, alias="freightCharges")
    insurance: Any = 0.0
    handling_fees: Any = Field(default=0.0, alias="handlingFees")


class PurchaseOrderCreate(_Request):
    order_id: str = Field(alias="orderId")
    supplier_id: Optional[str] = Field(default=None, alias="supplierId")
    supplier_name: Optional[str] = Field(default=None, alias="supplierName")
    items: list[dict]
    payment_terms: Optional[str] = Field(default=None, alias="paymentTerms")
    delivery_date: Optional[str] = Field(default=None, alias="deliveryDate")
    payment: Optional[dict] = None     # optional advance / down payment


class InvoiceCreate(_Request):
    order_id: str = Field(alias="orderId")
    client_id: Optional[str] = Field(default=None, alias="clientId")
    client_name: Optional[str] = Field(default=None, alias="clientName")
    # Either explicit items, or None to copy items from the order's purchase orders
    items: Optional[list[dict]] = None
    selections: Optional[dict[str, dict]] = None   # { "<poId>_<itemId>": {selected, quantity, unitPrice} }
    fee_rate: Any = Field(
        default=None,
        validation_alias=AliasChoices("fee_rate", "commissionRate", "feeRate", "feeRatePercent"),
    )
    invoice_date: Optional[str] = Field(default=None, alias="invoiceDate")
    due_date: Optional[str] = Field(default=None, alias="dueDate")
    payment_terms: Optional[str] = Field(default=None, alias="paymentTerms")


class ShippingCreate(_Request):
    order_id: str = Field(alias="orderId")
    shipping_company_id: Optional[str] = Field(default=None, alias="shippingCompanyId")
    shipping_company_name: Optional[str] = Field(default=None, alias="shippingCompanyName")
    tracking_number: Optional[str] = Field(default=None, alias="trackingNumber")
    shipping_method: Optional[str] = Field(default=None, alias="shippingMethod")
    expected_delivery: Optional[str] = Field(default=None, alias="expectedDelivery")
    freight_charges: Any = Field(default=None, alias="freightCharges")   # None: estimate from items
    insurance: Any = 0.0
    handling_fees: Any = Field(default=0.0, alias="handlingFees")
    items: list[dict] = Field(default_factory=list)
