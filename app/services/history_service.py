from app.core.exceptions import NotFoundError, ValidationError
from app.db.store import CONVERSATION_HISTORY, DocumentStore
from app.services.assistant_service import AssistantService
from app.services.data_service import serialize_document
from datetime import datetime
from typing import Any, Dict, Optional
import math

import logging

logger = logging.getLogger(__name__)

ACCESS_DENIED = "Conversation not found or access denied."

# Sortable request fields mapped to stored field names.
SORT_FIELDS = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "title": "title",
}


class HistoryService:
    """Conversation metadata in the store, message bodies on the assistant thread."""

    def __init__(self, store: DocumentStore, assistant_service: AssistantService):
        self.store = store
        self.assistant_service = assistant_service

    async def _get_owned(self, user_id: str, conversation_id: str) -> Dict[str, Any]:
        doc = await self.store.get(CONVERSATION_HISTORY, conversation_id)
        if not doc or doc.get("user_id") != user_id:
            logger.warning(f"Conversation {conversation_id} not found for user {user_id}")
            raise NotFoundError(ACCESS_DENIED)
        return doc

    async def save_conversation(
        self,
        user_id: str,
        thread_id: str,
        title: str,
        first_message_preview: Optional[str] = None,
        last_message_preview: Optional[str] = None,
        model_used: Optional[str] = None
    ) -> Dict[str, Any]:
        if not user_id or not thread_id or not title:
            raise ValidationError("User ID, thread ID, and title are required to save conversation.")

        now = datetime.utcnow()
        entry = {
            "user_id": user_id,
            "thread_id": thread_id,
            "title": title,
            "first_message_preview": first_message_preview or "",
            "last_message_preview": last_message_preview or "",
            "model_used": model_used or "unknown",
            "created_at": now,
            "updated_at": now,
        }
        conversation_id = await self.store.insert(CONVERSATION_HISTORY, entry)
        logger.info(f"Saved conversation {conversation_id} for user {user_id}")
        return {"id": conversation_id, **entry}

    async def list_conversations(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 15,
        sort_by: str = "updatedAt",
        sort_order: str = "desc"
    ) -> Dict[str, Any]:
        """Page through the caller's conversations by page number."""
        if sort_by not in SORT_FIELDS:
            raise ValidationError(f"sortBy must be one of {', '.join(SORT_FIELDS)}")
        if limit <= 0:
            raise ValidationError("limit must be positive")

        filters = {"user_id": user_id}
        total_items = await self.store.count(CONVERSATION_HISTORY, filters)
        total_pages = math.ceil(total_items / limit)

        # Page 0 or below falls back to the first page.
        offset = (page - 1) * limit if page > 0 else 0
        docs = await self.store.find(
            CONVERSATION_HISTORY,
            filters,
            order_by=SORT_FIELDS[sort_by],
            direction=sort_order,
            limit=limit,
            offset=offset
        )

        return {
            "data": [serialize_document(doc) for doc in docs],
            "pagination": {
                "currentPage": page,
                "limit": limit,
                "totalPages": total_pages,
                "totalItems": total_items,
            },
        }

    async def get_conversation_messages(
        self,
        user_id: str,
        conversation_id: str,
        limit: int = 20,
        order: str = "desc",
        after: Optional[str] = None,
        before: Optional[str] = None
    ) -> Dict[str, Any]:
        """Messages of an owned conversation, fetched live from its thread."""
        conversation = await self._get_owned(user_id, conversation_id)
        thread_id = conversation.get("thread_id")
        if not thread_id:
            raise NotFoundError("Thread ID not found for this conversation.")

        page = await self.assistant_service.list_thread_messages(
            thread_id,
            limit=limit,
            order=order,
            after=after,
            before=before
        )

        return {
            "conversationId": conversation_id,
            "threadId": thread_id,
            "messages": page["messages"],
            "pagination": {
                "hasMore": page["hasMore"],
                "firstIdInBatch": page["firstIdInBatch"],
                "lastIdInBatch": page["lastIdInBatch"],
                "nextPageAfter": page["lastIdInBatch"] if page["hasMore"] else None,
            },
        }

    async def delete_conversation(self, user_id: str, conversation_id: str):
        """Delete the history record; the provider thread is left alone."""
        await self._get_owned(user_id, conversation_id)
        await self.store.delete(CONVERSATION_HISTORY, conversation_id)
        logger.info(f"Deleted conversation {conversation_id} for user {user_id}")
