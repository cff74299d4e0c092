from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from typing import Optional
from app.api.deps import get_current_user, get_services
from app.core.exceptions import ValidationError
from app.schemas.ai import AssistantChatRequest, ClassifyRequest, ContentRequest, SummaryRequest
from app.schemas.user import VerifiedIdentity
from app.services.container import Services
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["AI"], dependencies=[Depends(get_current_user)])


@router.post("/classify")
async def classify_content(
    request: ClassifyRequest,
    services: Services = Depends(get_services)
):
    """Classify content into one of the configured categories."""
    classification = await services.generative.classify_content(request.content, request.categoryType)
    return {"success": True, "data": {"classification": classification}}


@router.post("/extract-entities")
async def extract_entities(
    request: ContentRequest,
    services: Services = Depends(get_services)
):
    entities = await services.generative.extract_entities(request.content)
    return {"success": True, "data": {"entities": entities}}


@router.post("/generate-summary")
async def generate_summary(
    request: SummaryRequest,
    services: Services = Depends(get_services)
):
    summary = await services.generative.generate_summary(request.content, request.maxLength)
    return {"success": True, "data": {"summary": summary}}


@router.post("/assistant/chat")
async def assistant_chat(
    body: AssistantChatRequest,
    request: Request,
    services: Services = Depends(get_services)
):
    """
    Send a message to the OpenAI assistant and wait for its reply.

    The run is abandoned (and cancelled upstream) if the client disconnects.
    """
    result = await services.assistant.interact(
        body.userInput,
        thread_id=body.threadId,
        is_cancelled=request.is_disconnected
    )
    return {"success": True, "data": result}


@router.post("/speech-to-text")
async def speech_to_text(
    audioFile: UploadFile = File(...),
    language: Optional[str] = Form(None),
    identity: VerifiedIdentity = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    """Transcribe an uploaded audio file with Whisper."""
    audio = await audioFile.read()
    if not audio:
        raise ValidationError("No audio file uploaded.")

    logger.info(f"Transcribing {len(audio)} bytes for user {identity.uid}")
    text = await services.transcription.transcribe(audio, language)
    return {"success": True, "data": {"text": text}}
