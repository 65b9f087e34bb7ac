from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Literal


class DocumentTotals(BaseModel):
    """Derived totals of a line-item document (purchase order or sales invoice)."""
    model_config = ConfigDict(populate_by_name=True)

    subtotal: float = 0.0
    fee_rate: float = Field(default=0.0, serialization_alias="feeRate")        # percent
    fee_amount: float = Field(default=0.0, serialization_alias="feeAmount")
    total: float = 0.0


class ShippingTotals(BaseModel):
    """Derived total of a shipping invoice's three flat charges."""
    model_config = ConfigDict(populate_by_name=True)

    freight_charges: float = Field(default=0.0, serialization_alias="freightCharges")
    insurance: float = 0.0
    handling_fees: float = Field(default=0.0, serialization_alias="handlingFees")
    total_shipping_cost: float = Field(default=0.0, serialization_alias="totalShippingCost")


DiscrepancyType = Literal[
    # Arithmetic / totals
    "line_total_mismatch",
    "subtotal_mismatch",
    "fee_mismatch",
    "grand_total_mismatch",
    "shipping_total_mismatch",
    # Payments
    "paid_amount_mismatch",
    "remaining_amount_mismatch",
    "overpaid",
    # Data quality
    "missing_line_items",
    "missing_description",
    "negative_amount",
]

SeverityLevel = Literal["error", "warning", "info"]


class Discrepancy(BaseModel):
    """A single inconsistency found in a stored document."""
    type: str                               # One of DiscrepancyType values
    severity: SeverityLevel                 # error / warning / info
    description: str                        # Human-readable explanation
    field: Optional[str] = None             # Which field is affected
    stored_value: Optional[str] = None      # What the record holds
    expected_value: Optional[str] = None    # What recomputation gives


class DocumentAudit(BaseModel):
    """Consistency report for one stored document."""
    kind: str
    order_id: str
    document_id: str
    discrepancies: List[Discrepancy] = Field(default_factory=list)
    error_count: int = 0
    warning_count: int = 0

    def compute_summary(self) -> None:
        """Populate summary counts from the discrepancies list."""
        self.error_count = sum(1 for d in self.discrepancies if d.severity == "error")
        self.warning_count = sum(1 for d in self.discrepancies if d.severity == "warning")
