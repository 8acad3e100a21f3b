"""
Contact Attempt Model
One logged outreach event on a pipeline card
"""
from pydantic import BaseModel, Field
from typing import Optional, Tuple
from datetime import datetime
from enum import Enum
import uuid


class ContactChannel(str, Enum):
    """Channel used for the attempt"""
    CALL = "call"
    WHATSAPP = "whatsapp"
    EMAIL = "email"
    IN_PERSON = "in_person"


class ContactResult(str, Enum):
    """Outcome of a single attempt"""
    SUCCESS = "success"
    NO_ANSWER = "no_answer"
    BUSY = "busy"
    INVALID_NUMBER = "invalid_number"
    NOT_ATTENDING = "not_attending"
    RESCHEDULE = "reschedule"


# Canonical enumeration orders used for bucketing and tie-breaking
CHANNEL_ORDER: Tuple[ContactChannel, ...] = tuple(ContactChannel)
RESULT_ORDER: Tuple[ContactResult, ...] = tuple(ContactResult)


class ContactAttemptInput(BaseModel):
    """Payload accepted by the recorder. contacted_at defaults to the clock."""
    channel: ContactChannel
    result: ContactResult
    agent_id: str
    contacted_at: Optional[datetime] = None
    duration_minutes: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None
    next_action: Optional[str] = None
    next_action_at: Optional[datetime] = None


class ContactAttempt(BaseModel):
    """
    Immutable record of a contact attempt.

    Belongs to exactly one pipeline card (lead_pipeline_id).
    duration_minutes is only meaningful for calls.
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    lead_pipeline_id: str
    channel: ContactChannel
    result: ContactResult
    contacted_at: datetime
    agent_id: str
    duration_minutes: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None
    next_action: Optional[str] = None
    next_action_at: Optional[datetime] = None

    model_config = {"frozen": True}

    @property
    def is_success(self) -> bool:
        return self.result == ContactResult.SUCCESS

    def to_record(self) -> dict:
        """Serialize for storage."""
        return {
            "id": self.id,
            "lead_pipeline_id": self.lead_pipeline_id,
            "channel": self.channel.value,
            "result": self.result.value,
            "contacted_at": self.contacted_at.isoformat(),
            "agent_id": self.agent_id,
            "duration_minutes": self.duration_minutes,
            "notes": self.notes,
            "next_action": self.next_action,
            "next_action_at": self.next_action_at.isoformat() if self.next_action_at else None,
        }

    @classmethod
    def from_record(cls, data: dict) -> "ContactAttempt":
        """Deserialize from storage."""
        return cls.model_validate(data)
