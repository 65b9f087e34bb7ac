"""
Exceptions raised by the billing core.

None of the core functions catch, log, or retry these; callers (the API
and CLI) decide how to present them.
"""


class BillingError(Exception):
    """Base class for all billing core errors."""


class ValidationError(BillingError):
    """Input that cannot become a consistent document (e.g. a line item without a description)."""


class NotFoundError(BillingError):
    """A document id, or the per-order collection itself, does not exist."""


class ConflictError(BillingError):
    """The stored document changed since the caller last read it."""
