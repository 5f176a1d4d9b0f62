"""
Data models for the Edge Gateway Service.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from shared.config import EdgeSettings


class SubscriberStatus(str, Enum):
    """Write-time snapshot of subscriber liveness."""
    ACTIVE = "active"
    EXPIRED = "expired"

    @classmethod
    def at(cls, expiration_timestamp: int, now: int) -> "SubscriberStatus":
        return cls.ACTIVE if expiration_timestamp > now else cls.EXPIRED


class Decision(str, Enum):
    """Cached admission decision."""
    VALID = "valid"
    INVALID = "invalid"


@dataclass(frozen=True)
class SubscriberRecord:
    """Subscriber record as persisted by the record store."""
    id: str
    expiration_timestamp: int
    status: SubscriberStatus
    created_at: int
    notes: Optional[str] = None

    def is_live(self, now: int) -> bool:
        """Liveness at decision time; the stored status alone can be stale."""
        return self.expiration_timestamp > now and self.status == SubscriberStatus.ACTIVE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "expiration_timestamp": self.expiration_timestamp,
            "status": self.status.value,
            "notes": self.notes,
            "created_at": self.created_at,
        }


class UpsertSubscriberRequest(BaseModel):
    """Request body for POST /admin/api/users."""
    id: Optional[str] = Field(None, description="Opaque subscriber id; generated when omitted")
    expiration_timestamp: int = Field(..., description="Expiry as epoch seconds")
    notes: Optional[str] = Field(None, description="Free-form notes")


class UpsertSubscriberResponse(BaseModel):
    """Response body for POST /admin/api/users."""
    success: bool = True
    id: str


@dataclass(frozen=True)
class RequestContext:
    """Per-request configuration and caller identity.

    Built once per request and passed explicitly to handlers.
    """
    settings: EdgeSettings
    client_ip: str
    request_id: Optional[str] = None
