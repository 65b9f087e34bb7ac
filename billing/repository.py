"""
Document repositories.

The billing core never touches storage directly; it is handed a repository
per document kind with these operations:

    get(parent_id) -> list[Document] | None    (None: never initialized)
    put(parent_id, documents)                  (whole-collection replace)
    update(parent_id, fn)                      (atomic read-change-write)

InMemoryRepository backs the tests and previews; SQLiteRepository stores
collections through billing.database.Database.
"""
import threading
from typing import Any, Callable, Optional, Protocol, Sequence

from pydantic import ValidationError as PydanticValidationError

from models.document import parse_document
from .database import Database
from .errors import ValidationError


# fn(documents) -> (documents to store or None to skip the write, result)
UpdateFn = Callable[[Optional[list]], tuple[Optional[list], Any]]


class DocumentRepository(Protocol):
    kind: str

    def get(self, parent_id: str) -> Optional[list]: ...

    def put(self, parent_id: str, documents: Sequence) -> None: ...

    def update(self, parent_id: str, fn: UpdateFn) -> Any: ...

    def parent_ids(self) -> list[str]: ...


class InMemoryRepository:
    """Per-order document lists held in a dict."""

    def __init__(self, kind: str) -> None:
        self.kind = kind
        self._collections: dict[str, list] = {}
        self._lock = threading.Lock()

    def get(self, parent_id: str) -> Optional[list]:
        documents = self._collections.get(parent_id)
        return list(documents) if documents is not None else None

    def put(self, parent_id: str, documents: Sequence) -> None:
        self._collections[parent_id] = list(documents)

    def update(self, parent_id: str, fn: UpdateFn) -> Any:
        with self._lock:
            documents, result = fn(self.get(parent_id))
            if documents is not None:
                self.put(parent_id, documents)
        return result

    def parent_ids(self) -> list[str]:
        return sorted(self._collections)


class SQLiteRepository:
    """
    Per-order document lists stored as JSON in SQLite.

    Records are written in wire format (camelCase) and validated back into
    models on read, so string-typed numbers left by older clients come back
    as floats.
    """

    def __init__(self, db: Database, kind: str) -> None:
        self.db = db
        self.kind = kind

    def get(self, parent_id: str) -> Optional[list]:
        return self._parse(parent_id, self.db.load_collection(self.kind, parent_id))

    def put(self, parent_id: str, documents: Sequence) -> None:
        self.db.save_collection(self.kind, parent_id, self._dump(documents))

    def update(self, parent_id: str, fn: UpdateFn) -> Any:
        def apply(records: Optional[list[dict]]):
            documents, result = fn(self._parse(parent_id, records))
            return (None if documents is None else self._dump(documents)), result

        return self.db.update_collection(self.kind, parent_id, apply)

    def parent_ids(self) -> list[str]:
        return self.db.list_order_ids(self.kind)

    def _parse(self, parent_id: str, records: Optional[list[dict]]) -> Optional[list]:
        if records is None:
            return None
        try:
            return [parse_document(r, self.kind) for r in records]
        except PydanticValidationError as exc:
            raise ValidationError(
                f"Stored {self.kind} record for order {parent_id} is invalid: {exc}"
            ) from exc

    @staticmethod
    def _dump(documents: Sequence) -> list[dict]:
        return [d.model_dump(mode="json", by_alias=True) for d in documents]
