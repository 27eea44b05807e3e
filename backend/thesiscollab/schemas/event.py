from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from datetime import datetime
from uuid import UUID


class DomainEventPayload(BaseModel):
    """Event contract consumed by the notification subsystem."""
    type: str
    document_id: UUID
    actor_user_id: UUID
    affected_user_id: Optional[UUID] = None
    timestamp: datetime
    extra: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        from_attributes = True
