from firebase_admin import auth
from app.core.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from app.db.store import USERS, DocumentStore
from app.schemas.user import ROLES, VerifiedIdentity
from datetime import datetime
from typing import Any, Callable, Dict, Optional
import logging

logger = logging.getLogger(__name__)

# Profile fields a user may change about themselves, keyed by request name.
UPDATABLE_USER_FIELDS = {
    "displayName": "display_name",
    "photoURL": "photo_url",
    "tutorialCompleted": "tutorial_completed",
}


class AuthService:
    """Firebase token verification plus the user records kept in the store."""

    def __init__(
        self,
        store: DocumentStore,
        verify_id_token: Callable[[str], Dict[str, Any]] = auth.verify_id_token,
        enabled: bool = True
    ):
        self.store = store
        self.verify_id_token = verify_id_token
        self.enabled = enabled

    def verify_token(self, token: str) -> VerifiedIdentity:
        """Verify a Firebase ID token and return the identity it carries."""
        if not self.enabled:
            logger.error("Firebase Admin SDK not initialized")
            raise UpstreamError("Authentication service not configured")

        try:
            decoded_token = self.verify_id_token(token)
        except auth.ExpiredIdTokenError:
            raise AuthenticationError("Token has expired")
        except auth.InvalidIdTokenError as e:
            logger.error(f"Invalid token: {e}")
            raise AuthenticationError("Invalid authentication token")
        except Exception as e:
            logger.error(f"Authentication error: {e}")
            raise AuthenticationError("Could not validate credentials")

        return VerifiedIdentity(
            uid=decoded_token["uid"],
            email=decoded_token.get("email")
        )

    async def check_user_role(self, uid: str, required_role: str) -> Dict[str, Any]:
        """Check the stored role against the hierarchy user < editor < admin."""
        if required_role not in ROLES:
            raise ValidationError(f"Unknown role: '{required_role}'")

        user = await self.store.get(USERS, uid)
        if not user:
            raise NotFoundError("User not found")

        user_role = user.get("role") or "user"
        if user_role not in ROLES:
            logger.warning(f"User {uid} has unknown role '{user_role}'")
            has_permission = False
        else:
            has_permission = ROLES.index(user_role) >= ROLES.index(required_role)

        return {"hasPermission": has_permission, "userRole": user_role}

    async def check_user_exists(self, uid: str) -> bool:
        return await self.store.get(USERS, uid) is not None

    async def create_user(
        self,
        uid: str,
        email: str,
        display_name: Optional[str] = None,
        photo_url: Optional[str] = None
    ) -> Dict[str, Any]:
        """Create the user record seeded with default role and subscription state."""
        if await self.store.get(USERS, uid):
            raise ConflictError("User already exists")

        now = datetime.utcnow()
        user = {
            "uid": uid,
            "email": email,
            "display_name": display_name,
            "photo_url": photo_url,
            "role": "user",
            "subscription_status": "new",
            "stripe_customer_id": None,
            "created_at": now,
            "sign_up_date": now,
            "last_login": None,
        }
        await self.store.put(USERS, uid, user)
        logger.info(f"Created user {uid}")
        return user

    async def update_user_last_login(self, uid: str):
        if not await self.store.update(USERS, uid, {"last_login": datetime.utcnow()}):
            raise NotFoundError("User not found")

    async def get_user_data(self, uid: str) -> Dict[str, Any]:
        user = await self.store.get(USERS, uid)
        if not user:
            raise NotFoundError("User not found")
        user.pop("_id", None)
        return user

    async def update_user_data(self, uid: str, data: Dict[str, Any]) -> str:
        """Apply whitelisted profile changes; returns a status message."""
        if not await self.store.get(USERS, uid):
            raise NotFoundError("User not found")

        changes = {}
        for key, value in data.items():
            field = UPDATABLE_USER_FIELDS.get(key)
            if field is None:
                logger.warning(f"Attempted to update restricted or unknown field: {key}. Skipping.")
                continue
            if key == "tutorialCompleted" and not isinstance(value, bool):
                logger.warning(f"Invalid type for tutorialCompleted: {type(value).__name__}. Skipping.")
                continue
            changes[field] = value

        if not changes:
            logger.info(f"No valid fields provided for update for user {uid}.")
            return "No valid fields to update."

        changes["updated_at"] = datetime.utcnow()
        await self.store.update(USERS, uid, changes)
        logger.info(f"User data updated for {uid}: {sorted(changes)}")
        return "User data updated successfully."
