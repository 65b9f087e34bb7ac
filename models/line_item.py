from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from typing import Optional

from .amount import Amount


class LineItem(BaseModel):
    """
    A single priced entry on a purchase order or sales invoice.
    After normalization total is exactly quantity * unit_price (no rounding).
    """
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = Field(default=None, validation_alias=AliasChoices("id", "_id"))
    item_code: Optional[str] = Field(default=None, alias="itemCode")
    description: str
    quantity: Amount = 0.0
    unit_price: Amount = Field(default=0.0, alias="unitPrice")
    total: Amount = 0.0
    photo: Optional[str] = None         # opaque reference to an uploaded image


class ShippingItem(BaseModel):
    """A consignment entry on a shipping invoice, used for the freight estimate."""
    model_config = ConfigDict(populate_by_name=True)

    item_id: Optional[str] = Field(default=None, alias="itemId")
    description: Optional[str] = None
    quantity: Amount = 0.0
    weight: Amount = 0.0                # kg
    volume: Amount = 0.0                # cubic metres
