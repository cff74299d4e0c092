from bson import ObjectId
from typing import Any, Dict, List, Optional, Protocol
import copy

# Collection names
USERS = "users"
CONFIG = "config"
ITEMS = "items"
STATS = "stats"
CONVERSATION_HISTORY = "conversation_history"


def new_id() -> str:
    return str(ObjectId())


class DocumentStore(Protocol):
    """
    Interface for document access.

    Documents are plain dicts keyed by a string ``_id``. Filters are equality
    predicates only; ``update`` is a shallow merge of top-level fields.
    """

    async def connect(self) -> None:
        ...

    async def close(self) -> None:
        ...

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        ...

    async def find(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        direction: str = "desc",
        limit: int = 0,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        ...

    async def find_one(
        self, collection: str, filters: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        ...

    async def count(
        self, collection: str, filters: Optional[Dict[str, Any]] = None
    ) -> int:
        ...

    async def insert(
        self, collection: str, doc: Dict[str, Any], doc_id: Optional[str] = None
    ) -> str:
        ...

    async def put(self, collection: str, doc_id: str, doc: Dict[str, Any]) -> None:
        ...

    async def update(
        self,
        collection: str,
        doc_id: str,
        fields: Dict[str, Any],
        conditions: Optional[Dict[str, Any]] = None,
    ) -> bool:
        ...

    async def delete(self, collection: str, doc_id: str) -> bool:
        ...


def _matches(doc: Dict[str, Any], filters: Optional[Dict[str, Any]]) -> bool:
    # None matches a missing field, like a Mongo equality query on null.
    for field, value in (filters or {}).items():
        if doc.get(field) != value:
            return False
    return True


class InMemoryDocumentStore:
    """Process-local store used for development and tests."""

    def __init__(self) -> None:
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = {}

    def reset(self) -> None:
        self.collections.clear()

    def _collection(self, name: str) -> Dict[str, Dict[str, Any]]:
        return self.collections.setdefault(name, {})

    async def connect(self) -> None:
        return None

    async def close(self) -> None:
        return None

    async def get(self, collection, doc_id):
        doc = self._collection(collection).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def find(
        self,
        collection,
        filters=None,
        order_by=None,
        direction="desc",
        limit=0,
        offset=0,
    ):
        docs = [
            doc for doc in self._collection(collection).values() if _matches(doc, filters)
        ]
        if order_by:
            # Missing values sort lowest, matching Mongo's ordering of nulls.
            docs.sort(
                key=lambda doc: (doc.get(order_by) is not None, doc.get(order_by)),
                reverse=direction == "desc",
            )
        if offset > 0:
            docs = docs[offset:]
        if limit > 0:
            docs = docs[:limit]
        return [copy.deepcopy(doc) for doc in docs]

    async def find_one(self, collection, filters):
        docs = await self.find(collection, filters, limit=1)
        return docs[0] if docs else None

    async def count(self, collection, filters=None):
        return sum(
            1 for doc in self._collection(collection).values() if _matches(doc, filters)
        )

    async def insert(self, collection, doc, doc_id=None):
        doc_id = doc_id or new_id()
        stored = copy.deepcopy(doc)
        stored["_id"] = doc_id
        self._collection(collection)[doc_id] = stored
        return doc_id

    async def put(self, collection, doc_id, doc):
        stored = copy.deepcopy(doc)
        stored["_id"] = doc_id
        self._collection(collection)[doc_id] = stored

    async def update(self, collection, doc_id, fields, conditions=None):
        doc = self._collection(collection).get(doc_id)
        if doc is None or not _matches(doc, conditions):
            return False
        doc.update(copy.deepcopy(fields))
        return True

    async def delete(self, collection, doc_id):
        return self._collection(collection).pop(doc_id, None) is not None
