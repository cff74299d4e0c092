from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
from app.core.exceptions import AuthenticationError, AuthorizationError, NotFoundError
from app.schemas.user import VerifiedIdentity
from app.services.container import Services
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def get_services(request: Request) -> Services:
    return request.app.state.services


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    services: Services = Depends(get_services)
) -> VerifiedIdentity:
    """
    Verify the Firebase ID token from the Authorization header.

    A missing header is a 401; a token Firebase rejects is a 403.
    """
    if not credentials:
        raise AuthenticationError("Unauthorized: No valid authorization token provided")

    try:
        identity = services.auth.verify_token(credentials.credentials)
    except AuthenticationError as e:
        logger.error(f"Firebase token verification failed: {e.detail}")
        raise AuthorizationError("Forbidden: Invalid or expired authentication token")

    logger.info(f"Authenticated user: {identity.uid}")
    return identity


def require_auth(required_role: Optional[str] = None):
    """
    Dependency factory for routes gated on authentication and, optionally, a role.

    Missing or invalid tokens are a 401; a role below ``required_role`` or a
    caller without a user record is a 403.
    """
    async def dependency(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
        services: Services = Depends(get_services)
    ) -> VerifiedIdentity:
        if not credentials:
            raise AuthenticationError("No valid authorization header")

        try:
            identity = services.auth.verify_token(credentials.credentials)
        except AuthenticationError:
            raise AuthenticationError("Invalid token")

        if required_role:
            try:
                result = await services.auth.check_user_role(identity.uid, required_role)
            except NotFoundError:
                raise AuthorizationError("Insufficient permissions")
            if not result["hasPermission"]:
                raise AuthorizationError("Insufficient permissions")

        return identity

    return dependency
