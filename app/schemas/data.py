from pydantic import BaseModel, Field
from typing import Any, Dict, Literal, Optional


class GetItemsRequest(BaseModel):
    """Equality-filtered, single-field-sorted listing of a collection."""
    collection: str = Field(..., min_length=1)
    filters: Optional[Dict[str, Any]] = None
    limit: int = 50
    orderBy: str = "created_at"
    direction: Literal["asc", "desc"] = "desc"


class ItemRequest(BaseModel):
    collection: str = Field(..., min_length=1)
    id: str = Field(..., min_length=1)


class CreateItemRequest(BaseModel):
    collection: str = Field(..., min_length=1)
    data: Dict[str, Any]


class UpdateItemRequest(BaseModel):
    collection: str = Field(..., min_length=1)
    id: str = Field(..., min_length=1)
    data: Dict[str, Any]


class ConfigRequest(BaseModel):
    configName: str = Field(..., min_length=1)
