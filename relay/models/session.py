import time
from typing import Optional

from pydantic import BaseModel, Field


class Session(BaseModel):
    """
    Mapping from a messaging-platform user to an assistant thread.
    """

    user_id: str = Field(..., description="WhatsApp id of the user")
    thread_id: str = Field(..., description="Assistant thread id")
    created_at: float = Field(..., description="Creation timestamp (epoch seconds)")
    expires_at: float = Field(..., description="Expiry timestamp (epoch seconds)")

    def is_expired(self, now: Optional[float] = None) -> bool:
        return (now if now is not None else time.time()) >= self.expires_at


class ProvisionResult(BaseModel):
    thread_id: str
    is_new: bool = Field(..., description="True when the thread was created for this message")


__all__ = ["Session", "ProvisionResult"]
