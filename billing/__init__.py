from .errors import BillingError, ValidationError, NotFoundError, ConflictError
from .valuator import coerce_number, normalize
from .aggregator import aggregate, aggregate_shipping, estimate_freight, settle_payments
from .reconciler import reconcile, find_document
from .repository import DocumentRepository, InMemoryRepository, SQLiteRepository
from .database import Database
from .validator import DocumentValidator
from .documents import DocumentService

__all__ = [
    "BillingError", "ValidationError", "NotFoundError", "ConflictError",
    "coerce_number", "normalize",
    "aggregate", "aggregate_shipping", "estimate_freight", "settle_payments",
    "reconcile", "find_document",
    "DocumentRepository", "InMemoryRepository", "SQLiteRepository", "Database",
    "DocumentValidator", "DocumentService",
]
