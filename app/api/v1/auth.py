from fastapi import APIRouter, Body, Depends, status
from typing import Any, Dict
from app.api.deps import get_current_user, get_services
from app.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from app.schemas.user import (
    PermissionCheckRequest,
    TokenRequest,
    UserCreate,
    UserIdRequest,
    VerifiedIdentity,
)
from app.services.container import Services
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def ensure_self(identity: VerifiedIdentity, user_id: str):
    """Users may only act on their own record."""
    if user_id != identity.uid:
        logger.warning(f"User {identity.uid} attempted to act on user {user_id}")
        raise AuthorizationError("Not authorized to access this user")


@router.post("/verify-token")
async def verify_token(
    request: TokenRequest,
    services: Services = Depends(get_services)
):
    """Verify a Firebase ID token passed in the body."""
    identity = services.auth.verify_token(request.token)
    return {"success": True, "data": identity.model_dump()}


@router.post("/check-permissions")
async def check_permissions(
    request: PermissionCheckRequest,
    services: Services = Depends(get_services)
):
    """Check whether the token's user holds at least the required role."""
    identity = services.auth.verify_token(request.token)
    result = await services.auth.check_user_role(identity.uid, request.requiredRole)
    return {"success": True, "data": result}


@router.post("/user-info")
async def get_user_info(
    request: TokenRequest,
    services: Services = Depends(get_services)
):
    """Profile of the token's user, or just the token claims if there is no record yet."""
    identity = services.auth.verify_token(request.token)
    try:
        user = await services.auth.get_user_data(identity.uid)
    except NotFoundError:
        user = {"uid": identity.uid, "email": identity.email, "role": "user"}
    return {"success": True, "data": user}


@router.post("/users/exists")
async def check_user_exists(
    request: UserIdRequest,
    identity: VerifiedIdentity = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    exists = await services.auth.check_user_exists(request.userId)
    return {"success": True, "data": {"exists": exists}}


@router.post("/users/create", status_code=status.HTTP_201_CREATED)
async def create_user(
    request: UserCreate,
    identity: VerifiedIdentity = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    ensure_self(identity, request.uid)
    user = await services.auth.create_user(
        request.uid,
        request.email,
        request.displayName,
        request.photoURL
    )
    return {"success": True, "data": user, "message": "User created successfully"}


@router.post("/users/last-login")
async def update_last_login(
    request: UserIdRequest,
    identity: VerifiedIdentity = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    ensure_self(identity, request.userId)
    await services.auth.update_user_last_login(request.userId)
    return {"success": True, "message": "Last login updated"}


@router.post("/users/data")
async def get_user_data(
    request: UserIdRequest,
    identity: VerifiedIdentity = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    ensure_self(identity, request.userId)
    user = await services.auth.get_user_data(request.userId)
    return {"success": True, "data": user}


@router.post("/users/update")
async def update_user_data(
    data: Dict[str, Any] = Body(...),
    identity: VerifiedIdentity = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    """Update the caller's own profile fields."""
    if not data:
        raise ValidationError("No data provided for update.")
    message = await services.auth.update_user_data(identity.uid, data)
    return {"success": True, "message": message}
