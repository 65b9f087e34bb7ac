"""
Line item valuation.

normalize() turns a raw line item (as typed into a form, stored by an older
client, or returned by the backend) into a LineItem whose quantity and
unit_price are real floats and whose total is exactly quantity * unit_price.
"""
import math
from collections.abc import Mapping
from typing import Any, Union

from pydantic import ValidationError as PydanticValidationError

from models.amount import coerce_number
from models.line_item import LineItem
from .errors import ValidationError

__all__ = ["coerce_number", "normalize"]

# Every spelling of the numeric fields that normalize() recomputes
_NUMERIC_KEYS = ("quantity", "unit_price", "unitPrice", "total")


def normalize(item: Union[LineItem, Mapping[str, Any]]) -> LineItem:
    """
    Return a normalized copy of *item*.

    Raises ValidationError when the description is missing or blank, or when
    quantity * unit_price overflows to infinity.
    Quantity and unit price never raise: unparseable values become 0.
    """
    if isinstance(item, LineItem):
        raw = item.model_dump()
    elif isinstance(item, Mapping):
        raw = dict(item)
    else:
        raise ValidationError(f"Line item must be a mapping, got {type(item).__name__}")

    description = raw.get("description")
    if description is None or not str(description).strip():
        raise ValidationError("Line item description is required")

    quantity = coerce_number(raw.get("quantity"))
    unit_price = coerce_number(
        raw["unit_price"] if "unit_price" in raw else raw.get("unitPrice")
    )

    total = quantity * unit_price
    if not math.isfinite(total):
        raise ValidationError(
            f"Line item total overflows: {quantity!r} x {unit_price!r} is not a finite number"
        )

    data = {k: v for k, v in raw.items() if k not in _NUMERIC_KEYS}
    data["description"] = str(description)
    try:
        return LineItem.model_validate({
            **data,
            "quantity":   quantity,
            "unit_price": unit_price,
            "total":      total,
        })
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid line item: {exc}") from exc
