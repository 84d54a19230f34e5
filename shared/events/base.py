"""
Base Event Classes

Outbound domain events. State transitions return events instead of calling
collaborators directly; the service publishes them only after the transition
has been committed and its locks released.
"""

from datetime import datetime
from typing import Any, ClassVar
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


class EventMetadata(BaseModel):
    """Who caused an event and when."""

    model_config = ConfigDict(frozen=True)

    event_id: UUID = Field(default_factory=uuid4)
    occurred_at: datetime = Field(default_factory=datetime.utcnow)
    user_id: UUID | None = Field(default=None, description="Admin who performed the change")
    source: str = "enrollment_service"


class DomainEvent(BaseModel):
    """
    A fact about an enrollment or an instructor binding.

    Subclasses set EVENT_TYPE and declare their payload as fields.
    """

    model_config = ConfigDict(frozen=True)

    EVENT_TYPE: ClassVar[str] = "domain.event"

    aggregate_id: UUID = Field(..., description="Enrollment or instructor ID")
    aggregate_type: str = Field(..., description="'Enrollment' or 'Instructor'")
    metadata: EventMetadata = Field(default_factory=EventMetadata)

    def log_context(self) -> dict[str, Any]:
        """Key/value pairs identifying this event in log lines."""
        return {
            "event_type": self.EVENT_TYPE,
            "event_id": str(self.metadata.event_id),
            "aggregate_type": self.aggregate_type,
            "aggregate_id": str(self.aggregate_id),
            "actor_id": str(self.metadata.user_id) if self.metadata.user_id else None,
        }
