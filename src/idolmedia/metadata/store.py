"""Metadata document store.

Records are plain dicts keyed by a 24-hex id. Writes enforce the unique
compound indexes registered per collection and can be grouped in a
transaction that is undone as a whole when the block raises.
"""

import copy
import logging
import secrets
from abc import ABC, abstractmethod
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Sequence, Tuple

from idolmedia.core.exceptions import ConflictError

logger = logging.getLogger(__name__)

GODS = "gods"
ANIMATION_CATEGORIES = "animation_categories"
GOD_IDOLS = "god_idols"
ANIMATIONS = "animations"
SPLASHES = "splashes"

Document = Dict[str, Any]
SortSpec = Sequence[Tuple[str, int]]


class DuplicateKeyError(ConflictError):
    """A write would violate a unique index."""

    def __init__(self, collection: str, fields: Tuple[str, ...], values: Tuple[Any, ...]):
        super().__init__(f"Duplicate key in {collection} for {dict(zip(fields, values))}")
        self.collection = collection
        self.fields = fields
        self.values = values


class StoreSession:
    """Undo journal for a group of writes."""

    def __init__(self):
        self._undo: List[Callable[[], None]] = []
        self.active = True

    def record(self, undo: Callable[[], None]) -> None:
        if not self.active:
            raise RuntimeError("Store session is no longer active")
        self._undo.append(undo)

    def commit(self) -> None:
        self._undo.clear()
        self.active = False

    def abort(self) -> None:
        while self._undo:
            undo = self._undo.pop()
            undo()
        self.active = False


class MetadataStore(ABC):
    """Abstract document store consumed by the asset services."""

    @abstractmethod
    def create_index(self, collection: str, fields: Sequence[str]) -> None:
        """Register a unique compound index."""
        pass

    @abstractmethod
    async def find_one(
        self, collection: str, filter: Document, exclude_id: Optional[str] = None
    ) -> Optional[Document]:
        """Return the first document matching every key in filter."""
        pass

    @abstractmethod
    async def find(
        self, collection: str, filter: Optional[Document] = None, sort: Optional[SortSpec] = None
    ) -> List[Document]:
        """Return all matching documents, optionally sorted by (field, 1|-1) pairs."""
        pass

    @abstractmethod
    async def find_by_id(self, collection: str, doc_id: str) -> Optional[Document]:
        pass

    @abstractmethod
    async def count(self, collection: str, filter: Optional[Document] = None) -> int:
        pass

    @abstractmethod
    async def create(
        self, collection: str, doc: Document, session: Optional[StoreSession] = None
    ) -> Document:
        """Insert a document, assigning id and timestamps.

        Raises:
            DuplicateKeyError: If a unique index would be violated
        """
        pass

    @abstractmethod
    async def find_by_id_and_update(
        self,
        collection: str,
        doc_id: str,
        patch: Document,
        session: Optional[StoreSession] = None,
    ) -> Optional[Document]:
        """Apply patch to one document and return the updated version.

        Returns None when no document has this id.

        Raises:
            DuplicateKeyError: If a unique index would be violated
        """
        pass

    @abstractmethod
    async def delete_one(
        self, collection: str, filter: Document, session: Optional[StoreSession] = None
    ) -> bool:
        """Delete the first matching document. Returns whether one was deleted."""
        pass

    @abstractmethod
    def transaction(self) -> Any:
        """Async context manager yielding a StoreSession for grouped writes."""
        pass


class InMemoryMetadataStore(MetadataStore):
    """In-memory store for metadata documents."""

    def __init__(self):
        self._collections: Dict[str, Dict[str, Document]] = defaultdict(dict)
        self._indexes: Dict[str, List[Tuple[str, ...]]] = defaultdict(list)

    def create_index(self, collection: str, fields: Sequence[str]) -> None:
        index = tuple(fields)
        if index not in self._indexes[collection]:
            self._indexes[collection].append(index)

    async def find_one(
        self, collection: str, filter: Document, exclude_id: Optional[str] = None
    ) -> Optional[Document]:
        for doc in self._collections[collection].values():
            if doc["id"] != exclude_id and self._matches(doc, filter):
                return copy.deepcopy(doc)
        return None

    async def find(
        self, collection: str, filter: Optional[Document] = None, sort: Optional[SortSpec] = None
    ) -> List[Document]:
        docs = [
            copy.deepcopy(doc)
            for doc in self._collections[collection].values()
            if self._matches(doc, filter or {})
        ]
        # Stable sorts applied from the least significant key
        for field, direction in reversed(list(sort or [])):
            docs.sort(key=lambda d: d.get(field), reverse=direction < 0)
        return docs

    async def find_by_id(self, collection: str, doc_id: str) -> Optional[Document]:
        doc = self._collections[collection].get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def count(self, collection: str, filter: Optional[Document] = None) -> int:
        return sum(
            1 for doc in self._collections[collection].values() if self._matches(doc, filter or {})
        )

    async def create(
        self, collection: str, doc: Document, session: Optional[StoreSession] = None
    ) -> Document:
        now = datetime.now(timezone.utc)
        new_doc = copy.deepcopy(doc)
        new_doc["id"] = secrets.token_hex(12)
        new_doc.setdefault("created_at", now)
        new_doc["updated_at"] = now

        self._check_unique(collection, new_doc)
        docs = self._collections[collection]
        docs[new_doc["id"]] = new_doc
        if session is not None:
            session.record(lambda: docs.pop(new_doc["id"], None))

        logger.debug(f"Created {collection} document {new_doc['id']}")
        return copy.deepcopy(new_doc)

    async def find_by_id_and_update(
        self,
        collection: str,
        doc_id: str,
        patch: Document,
        session: Optional[StoreSession] = None,
    ) -> Optional[Document]:
        docs = self._collections[collection]
        current = docs.get(doc_id)
        if current is None:
            return None

        updated = {**current, **copy.deepcopy(patch)}
        updated["id"] = doc_id
        updated["updated_at"] = datetime.now(timezone.utc)

        self._check_unique(collection, updated)
        docs[doc_id] = updated
        if session is not None:
            session.record(lambda: docs.__setitem__(doc_id, current))

        return copy.deepcopy(updated)

    async def delete_one(
        self, collection: str, filter: Document, session: Optional[StoreSession] = None
    ) -> bool:
        docs = self._collections[collection]
        for doc_id, doc in list(docs.items()):
            if self._matches(doc, filter):
                del docs[doc_id]
                if session is not None:
                    session.record(lambda: docs.__setitem__(doc_id, doc))
                return True
        return False

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[StoreSession]:
        session = StoreSession()
        try:
            yield session
        except BaseException:
            logger.warning("Aborting metadata transaction")
            session.abort()
            raise
        else:
            session.commit()

    def _check_unique(self, collection: str, doc: Document) -> None:
        for fields in self._indexes[collection]:
            values = tuple(doc.get(field) for field in fields)
            for other in self._collections[collection].values():
                if other["id"] == doc["id"]:
                    continue
                if tuple(other.get(field) for field in fields) == values:
                    raise DuplicateKeyError(collection, fields, values)

    @staticmethod
    def _matches(doc: Document, filter: Document) -> bool:
        return all(doc.get(key) == value for key, value in filter.items())


def configure_indexes(store: MetadataStore) -> None:
    """Register the unique indexes every asset collection relies on."""
    store.create_index(GODS, ["name"])
    store.create_index(ANIMATION_CATEGORIES, ["name"])
    store.create_index(GOD_IDOLS, ["god_id"])
    store.create_index(ANIMATIONS, ["god_idol_id", "category_id"])
    store.create_index(SPLASHES, ["serial_no"])
