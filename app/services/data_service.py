from app.core.exceptions import NotFoundError, ValidationError
from app.db.store import CONFIG, DocumentStore
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
import logging

logger = logging.getLogger(__name__)


def serialize_document(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Expose the store's ``_id`` as ``id``."""
    doc = dict(doc)
    doc["id"] = str(doc.pop("_id"))
    return doc


def _payload(data: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in data.items() if key not in ("_id", "id")}


def validate_collection_name(collection: str):
    if not collection or collection.startswith("system.") or "$" in collection:
        raise ValidationError(f"Invalid collection name: '{collection}'")


def validate_field_names(fields: Iterable[str]):
    """Field names are literal top-level keys; Mongo operators and dotted paths are refused."""
    for field in fields:
        if not field or field.startswith("$") or "." in field:
            raise ValidationError(f"Invalid field name: '{field}'")


class DataService:
    """Generic CRUD over named collections plus read-only config documents."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def get_config(self, config_name: str) -> Dict[str, Any]:
        """Get a config document by its logical name."""
        doc = await self.store.get(CONFIG, config_name)
        if not doc:
            raise NotFoundError(f"Config '{config_name}' not found")
        doc.pop("_id", None)
        return doc

    async def get_items(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        limit: int = 50,
        order_by: str = "created_at",
        direction: str = "desc"
    ) -> List[Dict[str, Any]]:
        """Get items matching every equality filter, sorted on one field."""
        validate_collection_name(collection)
        validate_field_names(filters or {})
        validate_field_names([order_by])
        equality = {
            field: value for field, value in (filters or {}).items() if value is not None
        }
        docs = await self.store.find(
            collection,
            equality,
            order_by=order_by,
            direction=direction,
            limit=limit
        )
        return [serialize_document(doc) for doc in docs]

    async def get_item(self, collection: str, item_id: str) -> Dict[str, Any]:
        validate_collection_name(collection)
        doc = await self.store.get(collection, item_id)
        if not doc:
            raise NotFoundError("Item not found")
        return serialize_document(doc)

    async def create_item(
        self,
        collection: str,
        data: Dict[str, Any],
        created_by: Optional[str] = None
    ) -> Dict[str, Any]:
        """Create a new item, stamping system-managed fields."""
        validate_collection_name(collection)
        validate_field_names(data)
        now = datetime.utcnow()
        item = {
            **_payload(data),
            "created_by": created_by or "anonymous",
            "created_at": now,
            "updated_at": now
        }
        item_id = await self.store.insert(collection, item)
        logger.info(f"Created item {item_id} in {collection}")
        return {"id": item_id, **item}

    async def update_item(
        self,
        collection: str,
        item_id: str,
        data: Dict[str, Any],
        updated_by: Optional[str] = None
    ) -> Dict[str, Any]:
        """Overwrite the listed top-level fields of an existing item."""
        validate_collection_name(collection)
        validate_field_names(data)
        changes = {
            **_payload(data),
            "updated_by": updated_by or "anonymous",
            "updated_at": datetime.utcnow()
        }
        if not await self.store.update(collection, item_id, changes):
            raise NotFoundError("Item not found")
        logger.info(f"Updated item {item_id} in {collection}")
        return {"id": item_id, **changes}

    async def delete_item(self, collection: str, item_id: str) -> Dict[str, Any]:
        validate_collection_name(collection)
        if not await self.store.delete(collection, item_id):
            raise NotFoundError("Item not found")
        logger.info(f"Deleted item {item_id} from {collection}")
        return {"id": item_id}
