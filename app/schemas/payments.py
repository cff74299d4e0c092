from pydantic import BaseModel, Field
from typing import Optional


class CheckoutSessionRequest(BaseModel):
    successUrl: str = Field(..., min_length=1)
    cancelUrl: str = Field(..., min_length=1)
    userId: Optional[str] = None
    email: Optional[str] = None
    firstName: Optional[str] = None
    lastName: Optional[str] = None

    def display_name(self) -> Optional[str]:
        name = " ".join(part.strip() for part in (self.firstName, self.lastName) if part)
        return name or None


class CustomerPortalRequest(BaseModel):
    returnUrl: str = Field(..., min_length=1)
    userId: Optional[str] = None
    customerId: Optional[str] = None
