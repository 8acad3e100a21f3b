"""
Contact Analytics Models
Derived views over contact-attempt history. Never persisted.
"""
from pydantic import BaseModel, Field
from typing import Dict, List, Optional, Tuple
from enum import Enum

from leadpipeline.domain.models.contact_attempt import ContactChannel, ContactResult


# Sunday-first, matching the weekday trend buckets
WEEKDAY_NAMES: Tuple[str, ...] = (
    "Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"
)

DEFAULT_BEST_TYPE = ContactChannel.CALL
DEFAULT_BEST_HOUR = 9
DEFAULT_BEST_DAY = "Monday"


class TypeBreakdown(BaseModel):
    """Per-channel counts. average_duration is only set for calls with durations."""
    total: int = 0
    success_count: int = 0
    success_rate: float = 0.0
    average_duration: Optional[float] = None


class ResultBreakdown(BaseModel):
    count: int = 0
    percentage: float = 0.0


class DailyTrend(BaseModel):
    date: str  # YYYY-MM-DD
    attempts: int = 0
    successes: int = 0
    success_rate: float = 0.0


class HourlyTrend(BaseModel):
    hour: int = Field(..., ge=0, le=23)
    attempts: int = 0
    successes: int = 0
    success_rate: float = 0.0


class WeekdayTrend(BaseModel):
    day: str
    attempts: int = 0
    successes: int = 0
    success_rate: float = 0.0


class Trends(BaseModel):
    daily: List[DailyTrend] = Field(default_factory=list)
    hourly: List[HourlyTrend] = Field(default_factory=list)
    weekday: List[WeekdayTrend] = Field(default_factory=list)


class ConversionFunnel(BaseModel):
    """Leads bucketed by the ordinal of their first successful attempt"""
    first_attempt: int = 0
    second_attempt: int = 0
    third_attempt: int = 0
    fourth_plus_attempt: int = 0

    @property
    def total(self) -> int:
        return self.first_attempt + self.second_attempt + self.third_attempt + self.fourth_plus_attempt


class Performance(BaseModel):
    best_performing_type: ContactChannel = DEFAULT_BEST_TYPE
    best_performing_hour: int = DEFAULT_BEST_HOUR
    best_performing_day: str = DEFAULT_BEST_DAY
    average_time_between_attempts: float = 0.0  # hours
    conversion_funnel: ConversionFunnel = Field(default_factory=ConversionFunnel)


class RecommendationType(str, Enum):
    TIMING = "timing"
    CHANNEL = "channel"
    FREQUENCY = "frequency"
    STRATEGY = "strategy"


class Impact(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Recommendation(BaseModel):
    type: RecommendationType
    title: str
    description: str
    impact: Impact
    actionable: bool = True


class ContactAnalytics(BaseModel):
    """Aggregated view over a collection of contact attempts"""
    total_attempts: int = 0
    success_rate: float = 0.0
    average_attempts_to_success: float = 0.0
    average_response_time: float = 0.0  # hours
    by_type: Dict[ContactChannel, TypeBreakdown] = Field(default_factory=dict)
    by_result: Dict[ContactResult, ResultBreakdown] = Field(default_factory=dict)
    trends: Trends = Field(default_factory=Trends)
    performance: Performance = Field(default_factory=Performance)
    recommendations: List[Recommendation] = Field(default_factory=list)


class AgentContactAnalytics(BaseModel):
    """Per-agent analytics with lead counts"""
    agent_id: str
    agent_name: str
    total_leads: int = 0
    active_leads: int = 0
    analytics: ContactAnalytics


class TeamRecommendationType(str, Enum):
    TRAINING = "training"
    PROCESS = "process"
    TOOLS = "tools"
    STRATEGY = "strategy"


class TeamRecommendation(BaseModel):
    type: TeamRecommendationType
    title: str
    description: str
    target_agents: List[str] = Field(default_factory=list)
    priority: Impact = Impact.HIGH


class TeamComparison(BaseModel):
    top_performer: Optional[str] = None
    average_performer: Optional[str] = None
    needs_improvement: List[str] = Field(default_factory=list)
    team_mean_success_rate: float = 0.0
    recommendations: List[TeamRecommendation] = Field(default_factory=list)


class TeamContactAnalytics(BaseModel):
    team_overview: ContactAnalytics
    by_agent: Dict[str, AgentContactAnalytics] = Field(default_factory=dict)
    comparisons: TeamComparison = Field(default_factory=TeamComparison)


class PipelineStats(BaseModel):
    """Operational statistics over a set of pipeline cards"""
    total_leads: int = 0
    leads_by_stage: Dict[str, int] = Field(default_factory=dict)
    leads_by_status: Dict[str, int] = Field(default_factory=dict)
    average_hours_by_stage: Dict[str, float] = Field(default_factory=dict)
    average_total_hours: float = 0.0
    leads_by_owner: Dict[str, Dict[str, float]] = Field(default_factory=dict)
    overdue_tasks: int = 0
    leads_without_contact_24h: int = 0
    leads_due_for_recontact: int = 0
