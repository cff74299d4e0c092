from fastapi import APIRouter, Depends, status
from app.api.deps import get_services, require_auth
from app.schemas.data import (
    ConfigRequest,
    CreateItemRequest,
    GetItemsRequest,
    ItemRequest,
    UpdateItemRequest,
)
from app.schemas.user import VerifiedIdentity
from app.services.container import Services

router = APIRouter(prefix="/data", tags=["Data"])


@router.post("/get-items")
async def get_items(
    request: GetItemsRequest,
    services: Services = Depends(get_services)
):
    """List a collection with equality filters, one sort field and a limit."""
    items = await services.data.get_items(
        request.collection,
        filters=request.filters,
        limit=request.limit,
        order_by=request.orderBy,
        direction=request.direction
    )
    return {"success": True, "data": items}


@router.post("/get-item")
async def get_item(
    request: ItemRequest,
    services: Services = Depends(get_services)
):
    item = await services.data.get_item(request.collection, request.id)
    return {"success": True, "data": item}


@router.post("/create-item", status_code=status.HTTP_201_CREATED)
async def create_item(
    request: CreateItemRequest,
    identity: VerifiedIdentity = Depends(require_auth()),
    services: Services = Depends(get_services)
):
    item = await services.data.create_item(request.collection, request.data, created_by=identity.uid)
    return {"success": True, "data": item}


@router.post("/update-item")
async def update_item(
    request: UpdateItemRequest,
    identity: VerifiedIdentity = Depends(require_auth()),
    services: Services = Depends(get_services)
):
    item = await services.data.update_item(
        request.collection,
        request.id,
        request.data,
        updated_by=identity.uid
    )
    return {"success": True, "data": item}


@router.post("/delete-item")
async def delete_item(
    request: ItemRequest,
    identity: VerifiedIdentity = Depends(require_auth("admin")),
    services: Services = Depends(get_services)
):
    result = await services.data.delete_item(request.collection, request.id)
    return {"success": True, "data": result}


@router.post("/get-config")
async def get_config(
    request: ConfigRequest,
    services: Services = Depends(get_services)
):
    config = await services.data.get_config(request.configName)
    return {"success": True, "data": config}
