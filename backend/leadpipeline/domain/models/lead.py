"""
Lead Domain Models
Prospective client captured at intake
"""
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime, timezone
from enum import Enum
import uuid


class LeadSource(str, Enum):
    """Where the lead came from"""
    SITE = "site"
    REFERRAL = "referral"
    EVENT = "event"
    SOCIAL_MEDIA = "social_media"
    GOOGLE = "google"
    INTERNAL_TEAM = "internal_team"
    OTHER = "other"


class LeadContactUpdate(BaseModel):
    """Mutable contact fields of a lead. Unset fields are left untouched."""
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    company: Optional[str] = None
    job_title: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    notes: Optional[str] = None


class Lead(BaseModel):
    """
    Lead captured at intake.

    Identity (id, source, created_by, created_at) never changes after
    creation; contact fields change through with_contact_update().
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    phone: str
    email: Optional[str] = None
    company: Optional[str] = None
    job_title: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None

    # Product ids the lead is interested in (multi-select at intake)
    product_interests: List[str] = Field(default_factory=list)

    source: LeadSource = LeadSource.OTHER
    source_details: Optional[str] = None
    notes: Optional[str] = None

    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def with_contact_update(self, update: LeadContactUpdate) -> "Lead":
        """Return a copy with the provided contact fields replaced."""
        changes = update.model_dump(exclude_none=True)
        return self.model_copy(update=changes)

    @property
    def display_name(self) -> str:
        if self.company:
            return f"{self.name} - {self.company}"
        return self.name
