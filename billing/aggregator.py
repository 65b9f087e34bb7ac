"""
Document aggregation: folds normalized line items (or flat shipping charges)
into the derived totals stored on a document.

  aggregate()           subtotal, commission fee, grand total
  aggregate_shipping()  freight + insurance + handling
  estimate_freight()    weight/volume based freight when none was quoted
  settle_payments()     paid / remaining balance of a purchase order

All functions are pure.  Negative quantities, prices, or rates are not
rejected; they propagate arithmetically.  A derived total that overflows to
infinity raises ValidationError.
"""
import math
from typing import Any, Iterable, Sequence

from config import FREIGHT_RATE_PER_CUBIC_METRE, FREIGHT_RATE_PER_KG
from models.document import Payment
from models.line_item import LineItem, ShippingItem
from models.result import DocumentTotals, ShippingTotals
from .errors import ValidationError
from .valuator import coerce_number


def aggregate(items: Sequence[LineItem], fee_rate_percent: Any = 0.0) -> DocumentTotals:
    """
    Sum already-normalized items and apply a percentage fee.

    An empty item list is valid and yields all-zero totals.
    """
    rate = coerce_number(fee_rate_percent)
    subtotal = sum((item.total for item in items), 0.0)
    fee_amount = subtotal * rate / 100
    return DocumentTotals(
        subtotal=_finite("subtotal", subtotal),
        fee_rate=rate,
        fee_amount=_finite("fee amount", fee_amount),
        total=_finite("total", subtotal + fee_amount),
    )


def aggregate_shipping(freight: Any, insurance: Any, handling: Any) -> ShippingTotals:
    """Total the three flat shipping charges; each one coerces independently."""
    freight_charges = coerce_number(freight)
    insurance_charge = coerce_number(insurance)
    handling_fees = coerce_number(handling)
    return ShippingTotals(
        freight_charges=freight_charges,
        insurance=insurance_charge,
        handling_fees=handling_fees,
        total_shipping_cost=_finite(
            "total shipping cost", freight_charges + insurance_charge + handling_fees,
        ),
    )


def estimate_freight(
    items: Iterable[ShippingItem],
    per_kg: float = FREIGHT_RATE_PER_KG,
    per_cubic_metre: float = FREIGHT_RATE_PER_CUBIC_METRE,
) -> float:
    """Charge each consignment item by weight or by volume, whichever costs more."""
    return _finite("freight estimate", sum(
        (max(item.weight * per_kg, item.volume * per_cubic_metre) for item in items),
        0.0,
    ))


def settle_payments(total: float, payments: Iterable[Payment]) -> tuple[float, float]:
    """Return (paid, remaining).  Only completed payments count as paid."""
    paid = sum((p.amount for p in payments if p.status == "completed"), 0.0)
    return paid, total - paid


def _finite(name: str, value: float) -> float:
    if not math.isfinite(value):
        raise ValidationError(f"Computed {name} is not a finite number")
    return value
