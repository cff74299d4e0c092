from pydantic import BaseModel, EmailStr, Field
from typing import Optional


ROLES = ("user", "editor", "admin")


class VerifiedIdentity(BaseModel):
    """Identity attached to a request after token verification."""
    valid: bool = True
    uid: str
    email: Optional[str] = None


class TokenRequest(BaseModel):
    """Request carrying a raw Firebase ID token."""
    token: str = Field(..., min_length=1)


class PermissionCheckRequest(BaseModel):
    token: str = Field(..., min_length=1)
    requiredRole: str = Field(..., min_length=1)


class UserIdRequest(BaseModel):
    userId: str = Field(..., min_length=1)


class UserCreate(BaseModel):
    """User creation request."""
    uid: str = Field(..., min_length=1)
    email: EmailStr
    displayName: Optional[str] = None
    photoURL: Optional[str] = None
