"""
Edit reconciliation.

reconcile() applies a partial update to a stored document and recomputes
every derived field the update can affect, so the returned document always
satisfies its kind's invariants:

  Purchase order   subtotal == sum(items.total), total == subtotal,
                   paid/remaining follow the completed payments
  Sales invoice    subtotal == sum(items.total),
                   fee_amount == subtotal * fee_rate / 100,
                   total == subtotal + fee_amount
  Shipping         total_shipping_cost == freight + insurance + handling

Recomputation triggers
----------------------
  items or fee rate changed          -> items re-normalized, totals re-aggregated
  items or payments changed (PO)     -> paid / remaining re-settled
  any shipping charge changed        -> total_shipping_cost re-summed

Non-financial fields merge shallowly (last write wins).  Derived fields
supplied in a patch are ignored.  There is no locking: pass
expected_version to detect a concurrent edit.
"""
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Optional

from pydantic import AliasChoices
from pydantic import ValidationError as PydanticValidationError

from models.document import (
    DOCUMENT_LABELS, Payment, PurchaseOrder, SalesInvoice, ShippingInvoice,
)
from .aggregator import aggregate, aggregate_shipping, settle_payments
from .errors import ConflictError, NotFoundError, ValidationError
from .valuator import normalize

IMMUTABLE_FIELDS = frozenset({"id", "kind", "order_id", "created_at", "version"})

DERIVED_FIELDS: dict[type, frozenset] = {
    PurchaseOrder:   frozenset({"subtotal", "total", "paid_amount", "remaining_amount"}),
    SalesInvoice:    frozenset({"subtotal", "fee_amount", "total"}),
    ShippingInvoice: frozenset({"total_shipping_cost"}),
}

SHIPPING_CHARGES = frozenset({"freight_charges", "insurance", "handling_fees"})


def reconcile(
    existing,
    patch: Mapping[str, Any],
    *,
    expected_version: Optional[int] = None,
    now: Optional[str] = None,
):
    """
    Return a new document: *existing* with *patch* applied and totals recomputed.

    A patch that changes nothing (empty, or only derived fields, identity
    fields at their current value, or a null fee rate) returns *existing*
    unchanged.

    Raises:
        ConflictError:   expected_version given and not equal to existing.version
        ValidationError: unknown or immutable field in the patch, a line item
                         without a description, or a value the model rejects
    """
    if expected_version is not None and expected_version != existing.version:
        raise ConflictError(
            f"Document {existing.id} is at version {existing.version}, "
            f"expected {expected_version}"
        )
    if not patch:
        return existing

    model_cls = type(existing)
    updates = _resolve_patch(existing, patch)
    if not updates:
        return existing
    fields = existing.model_dump()
    fields.update(updates)

    if model_cls is ShippingInvoice:
        if updates.keys() & SHIPPING_CHARGES:
            totals = aggregate_shipping(
                fields["freight_charges"], fields["insurance"], fields["handling_fees"],
            )
            fields.update(totals.model_dump())
    else:
        rate_changed = model_cls is SalesInvoice and "fee_rate" in updates
        if "items" in updates or rate_changed:
            _recompute_items(model_cls, fields)
        if model_cls is PurchaseOrder and ("items" in updates or "payments" in updates):
            _resettle(fields)

    fields["updated_at"] = now or _utcnow()
    fields["version"] = existing.version + 1
    try:
        return model_cls.model_validate(fields)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid update for {existing.kind} {existing.id}: {exc}") from exc


def find_document(
    documents: Optional[Sequence],
    parent_id: str,
    document_id: str,
    kind: str,
) -> tuple[int, Any]:
    """
    Locate *document_id* in a per-order collection.

    A collection of None means nothing was ever recorded for the order, which
    is reported the same way as a missing id.
    """
    label = DOCUMENT_LABELS.get(kind, "documents")
    if documents is None:
        raise NotFoundError(f"No {label} found for order {parent_id}")
    for index, document in enumerate(documents):
        if document.id == document_id:
            return index, document
    raise NotFoundError(f"Document {document_id} not found in {label} of order {parent_id}")


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _recompute_items(model_cls: type, fields: dict) -> None:
    items = fields["items"]
    if not isinstance(items, (list, tuple)):
        raise ValidationError("items must be a list of line items")
    normalized = [normalize(item) for item in items]
    rate = fields["fee_rate"] if model_cls is SalesInvoice else 0.0
    totals = aggregate(normalized, rate)
    fields["items"] = normalized
    fields["subtotal"] = totals.subtotal
    fields["total"] = totals.total
    if model_cls is SalesInvoice:
        fields["fee_rate"] = totals.fee_rate
        fields["fee_amount"] = totals.fee_amount


def _resettle(fields: dict) -> None:
    payments = fields["payments"]
    if not isinstance(payments, (list, tuple)):
        raise ValidationError("payments must be a list")
    try:
        parsed = [p if isinstance(p, Payment) else Payment.model_validate(p) for p in payments]
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid payment: {exc}") from exc
    fields["payments"] = parsed
    fields["paid_amount"], fields["remaining_amount"] = settle_payments(fields["total"], parsed)


def _resolve_patch(existing, patch: Mapping[str, Any]) -> dict[str, Any]:
    """Translate patch keys (any accepted spelling) to attribute names."""
    model_cls = type(existing)
    lookup = _field_lookup(model_cls)
    derived = DERIVED_FIELDS[model_cls]
    updates: dict[str, Any] = {}
    for key, value in patch.items():
        name = lookup.get(key)
        if name is None:
            raise ValidationError(f"Unknown field for {existing.kind}: {key!r}")
        if name in IMMUTABLE_FIELDS:
            if value != getattr(existing, name):
                raise ValidationError(f"Field {key!r} cannot be changed")
            continue
        if name in derived:
            continue  # always recomputed
        if name == "fee_rate" and value is None:
            continue  # keep the stored rate
        updates[name] = value
    return updates


@lru_cache(maxsize=None)
def _field_lookup(model_cls: type) -> dict[str, str]:
    lookup: dict[str, str] = {}
    for name, info in model_cls.model_fields.items():
        spellings = [name, info.alias, info.serialization_alias]
        if isinstance(info.validation_alias, str):
            spellings.append(info.validation_alias)
        elif isinstance(info.validation_alias, AliasChoices):
            spellings.extend(c for c in info.validation_alias.choices if isinstance(c, str))
        for spelling in spellings:
            if spelling:
                lookup[spelling] = name
    return lookup


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()
