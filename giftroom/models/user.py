"""Account models."""

from pydantic import BaseModel
from typing import Optional


class UserProfile(BaseModel):
    """Authenticated account, as stored in the platform's profiles table."""
    id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    referral_code: Optional[str] = None
    referred_by: Optional[str] = None
    balance: int = 0
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    class Config:
        from_attributes = True


class CreatorInfo(BaseModel):
    """Public display info for a gift room creator."""
    full_name: Optional[str] = None
    referral_code: Optional[str] = None
