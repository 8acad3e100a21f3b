"""
Commercial Team Models
Roster members and distribution audit records
"""
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from enum import Enum
import uuid


class CommercialTeamMember(BaseModel):
    """
    Commercial agent that can own leads.

    current_load never exceeds capacity through distribution; priority_rank
    orders the distribution queue (lower = served first).
    """
    id: str
    name: str
    email: Optional[str] = None
    role: str = "Commercial Analyst"
    department: str = "Commercial"
    active: bool = True
    capacity: int = Field(default=10, ge=0, description="Max concurrent leads")
    current_load: int = Field(default=0, ge=0, description="Leads currently owned")
    priority_rank: int = Field(default=1, ge=1)
    specializations: List[str] = Field(default_factory=list)

    @property
    def has_capacity(self) -> bool:
        return self.active and self.current_load < self.capacity

    def with_load_delta(self, delta: int) -> "CommercialTeamMember":
        """Return a copy with the load shifted by delta (floored at zero)."""
        return self.model_copy(update={"current_load": max(0, self.current_load + delta)})

    def with_capacity(self, capacity: int) -> "CommercialTeamMember":
        if capacity < 0:
            raise ValueError("capacity must be >= 0")
        return self.model_copy(update={"capacity": capacity})

    def with_active(self, active: bool) -> "CommercialTeamMember":
        return self.model_copy(update={"active": active})


class DistributionReason(str, Enum):
    INITIAL = "initial"
    TIMEOUT_REDISTRIBUTION = "timeout_redistribution"
    MANUAL_REDISTRIBUTION = "manual_redistribution"


class LeadDistribution(BaseModel):
    """Audit record of an assignment or reassignment. Append-only."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    lead_id: str
    card_id: str
    agent_id: str
    previous_agent_id: Optional[str] = None
    reason: DistributionReason
    distributed_at: datetime
    notes: Optional[str] = None

    model_config = {"frozen": True}


class TeamCapacity(BaseModel):
    """Snapshot of roster capacity"""
    available_members: List[str]
    full_members: List[str]
    total_capacity: int
    used_capacity: int
    utilization_percent: float
