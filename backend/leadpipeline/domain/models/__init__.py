"""Domain models"""

# Stages
from .pipeline_stage import (
    PipelineStage,
    QualificationStatus,
    Qualification,
    STAGE_ORDER,
)

# Lead and card
from .lead import (
    Lead,
    LeadSource,
    LeadContactUpdate,
)
from .pipeline_card import (
    LeadPipelineCard,
    StageHistoryEntry,
    ScheduledRecontact,
    LeadOutcome,
)

# Attempts and tasks
from .contact_attempt import (
    ContactAttempt,
    ContactAttemptInput,
    ContactChannel,
    ContactResult,
)
from .lead_task import (
    LeadTask,
    TaskStatus,
    TaskType,
    TaskPriority,
    TaskTemplate,
    TaskNotification,
    NotificationKind,
    TaskStats,
)

# Team
from .team import (
    CommercialTeamMember,
    LeadDistribution,
    DistributionReason,
    TeamCapacity,
)

# Analytics
from .analytics import (
    ContactAnalytics,
    TeamComparison,
    TeamContactAnalytics,
    PipelineStats,
)

from .pipeline_config import (
    PipelineConfig,
    AnalyticsThresholds,
)

__all__ = [
    # Stages
    "PipelineStage",
    "QualificationStatus",
    "Qualification",
    "STAGE_ORDER",
    # Lead and card
    "Lead",
    "LeadSource",
    "LeadContactUpdate",
    "LeadPipelineCard",
    "StageHistoryEntry",
    "ScheduledRecontact",
    "LeadOutcome",
    # Attempts and tasks
    "ContactAttempt",
    "ContactAttemptInput",
    "ContactChannel",
    "ContactResult",
    "LeadTask",
    "TaskStatus",
    "TaskType",
    "TaskPriority",
    "TaskTemplate",
    "TaskNotification",
    "NotificationKind",
    "TaskStats",
    # Team
    "CommercialTeamMember",
    "LeadDistribution",
    "DistributionReason",
    "TeamCapacity",
    # Analytics
    "ContactAnalytics",
    "TeamComparison",
    "TeamContactAnalytics",
    "PipelineStats",
    # Config
    "PipelineConfig",
    "AnalyticsThresholds",
]
