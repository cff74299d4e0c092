from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING
from typing import Any, Dict, List, Optional
from app.db.store import new_id
import logging

logger = logging.getLogger(__name__)


def equality_filter(filters: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Compare every value literally, so a dict value never runs as an operator."""
    return {field: {"$eq": value} for field, value in (filters or {}).items()}


class MongoDocumentStore:
    """Document store backed by MongoDB through the motor async driver."""

    def __init__(self, uri: str, db_name: str):
        self.uri = uri
        self.db_name = db_name
        self.client: Optional[AsyncIOMotorClient] = None
        self.db = None

    async def connect(self):
        logger.info("Connecting to MongoDB...")
        try:
            self.client = AsyncIOMotorClient(self.uri)
            self.db = self.client[self.db_name]
            logger.info("Connected to MongoDB.")
        except Exception as e:
            logger.error(f"Could not connect to MongoDB: {e}")
            raise e

    async def close(self):
        logger.info("Closing MongoDB connection...")
        if self.client:
            self.client.close()
            logger.info("MongoDB connection closed.")

    def _collection(self, name: str):
        if self.db is None:
            raise RuntimeError("MongoDB is not connected")
        return self.db[name]

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        return await self._collection(collection).find_one({"_id": doc_id})

    async def find(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        direction: str = "desc",
        limit: int = 0,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        cursor = self._collection(collection).find(equality_filter(filters))
        if order_by:
            cursor = cursor.sort(order_by, DESCENDING if direction == "desc" else ASCENDING)
        if offset > 0:
            cursor = cursor.skip(offset)
        if limit > 0:
            cursor = cursor.limit(limit)
        return [doc async for doc in cursor]

    async def find_one(self, collection: str, filters: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return await self._collection(collection).find_one(equality_filter(filters))

    async def count(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> int:
        return await self._collection(collection).count_documents(equality_filter(filters))

    async def insert(self, collection: str, doc: Dict[str, Any], doc_id: Optional[str] = None) -> str:
        doc = {**doc, "_id": doc_id or new_id()}
        result = await self._collection(collection).insert_one(doc)
        return result.inserted_id

    async def put(self, collection: str, doc_id: str, doc: Dict[str, Any]) -> None:
        await self._collection(collection).replace_one(
            {"_id": doc_id}, {**doc, "_id": doc_id}, upsert=True
        )

    async def update(
        self,
        collection: str,
        doc_id: str,
        fields: Dict[str, Any],
        conditions: Optional[Dict[str, Any]] = None,
    ) -> bool:
        result = await self._collection(collection).update_one(
            {"_id": doc_id, **equality_filter(conditions)},
            {"$set": fields}
        )
        return result.matched_count > 0

    async def delete(self, collection: str, doc_id: str) -> bool:
        result = await self._collection(collection).delete_one({"_id": doc_id})
        return result.deleted_count > 0
