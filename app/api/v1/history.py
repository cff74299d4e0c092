from fastapi import APIRouter, Depends, status
from app.api.deps import get_current_user, get_services
from app.schemas.history import (
    ConversationMessagesRequest,
    ConversationRequest,
    ListConversationsRequest,
    SaveConversationRequest,
)
from app.schemas.user import VerifiedIdentity
from app.services.container import Services

router = APIRouter(prefix="/history", tags=["Conversation History"])


@router.post("/save", status_code=status.HTTP_201_CREATED)
async def save_conversation(
    request: SaveConversationRequest,
    identity: VerifiedIdentity = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    """Record an assistant thread in the caller's history."""
    conversation = await services.history.save_conversation(
        identity.uid,
        thread_id=request.threadId,
        title=request.title,
        first_message_preview=request.firstMessagePreview,
        last_message_preview=request.lastMessagePreview,
        model_used=request.modelUsed
    )
    return {"success": True, "data": conversation, "message": "Conversation saved."}


@router.post("/list")
async def list_conversations(
    request: ListConversationsRequest,
    identity: VerifiedIdentity = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    """Get one page of the caller's conversations."""
    result = await services.history.list_conversations(
        identity.uid,
        page=request.page,
        limit=request.limit,
        sort_by=request.sortBy,
        sort_order=request.sortOrder
    )
    return {"success": True, **result}


@router.post("/messages")
async def get_conversation_messages(
    request: ConversationMessagesRequest,
    identity: VerifiedIdentity = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    """Get one page of a conversation's messages from its assistant thread."""
    result = await services.history.get_conversation_messages(
        identity.uid,
        request.conversationId,
        limit=request.limit,
        order=request.order,
        after=request.after,
        before=request.before
    )
    return {"success": True, **result}


@router.post("/delete")
async def delete_conversation(
    request: ConversationRequest,
    identity: VerifiedIdentity = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    await services.history.delete_conversation(identity.uid, request.conversationId)
    return {"success": True, "message": "Conversation deleted successfully."}
