"""Response envelope shared by every endpoint."""

from pydantic import BaseModel
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """``{success, data?, error?, code?}``"""
    success: bool = True
    data: Optional[T] = None
    error: Optional[str] = None
    code: Optional[str] = None


def ok(data) -> dict:
    """Wrap a payload in a success envelope."""
    return {"success": True, "data": data}


class GenerateMessageRequest(BaseModel):
    """Payload for the AI gift message writer."""
    occasion: str
    sender_name: Optional[str] = None
    recipient_name: Optional[str] = None
    tone: Optional[str] = None
    relationship: Optional[str] = None


class GeneratedMessage(BaseModel):
    message: str
    ai_generated: bool
