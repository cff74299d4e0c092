from pydantic import BaseModel, Field
from typing import Optional


class ClassifyRequest(BaseModel):
    content: str = Field(..., min_length=1)
    categoryType: str = "default"


class ContentRequest(BaseModel):
    content: str = Field(..., min_length=1)


class SummaryRequest(BaseModel):
    content: str = Field(..., min_length=1)
    maxLength: int = Field(default=200, ge=1, description="Maximum summary length in characters")


class AssistantChatRequest(BaseModel):
    userInput: str = Field(..., min_length=1)
    threadId: Optional[str] = None
