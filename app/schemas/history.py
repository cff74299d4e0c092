from pydantic import BaseModel, Field
from typing import Literal, Optional


class SaveConversationRequest(BaseModel):
    threadId: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    firstMessagePreview: Optional[str] = None
    lastMessagePreview: Optional[str] = None
    modelUsed: Optional[str] = None


class ListConversationsRequest(BaseModel):
    page: int = 1
    limit: int = Field(default=15, ge=1, le=100)
    sortBy: Literal["createdAt", "updatedAt", "title"] = "updatedAt"
    sortOrder: Literal["asc", "desc"] = "desc"


class ConversationMessagesRequest(BaseModel):
    """Cursor pagination parameters are forwarded to the assistant thread as-is."""
    conversationId: str = Field(..., min_length=1)
    limit: int = Field(default=20, ge=1, le=100)
    order: Literal["asc", "desc"] = "desc"
    after: Optional[str] = None
    before: Optional[str] = None


class ConversationRequest(BaseModel):
    conversationId: str = Field(..., min_length=1)
