"""Domain services"""
from .entity_locks import EntityLocks
from .distribution_service import LeadDistributionService, select_agent
from .stage_machine import transition, allowed_transitions
from .attempt_recorder import ContactAttemptRecorder
from .task_scheduler import TaskScheduler
from .contact_analytics import ContactAnalyticsEngine
from .team_comparator import compare_team
from .pipeline_stats import compute_pipeline_stats
from .pipeline_service import PipelineService

__all__ = [
    "EntityLocks",
    "LeadDistributionService",
    "select_agent",
    "transition",
    "allowed_transitions",
    "ContactAttemptRecorder",
    "TaskScheduler",
    "ContactAnalyticsEngine",
    "compare_team",
    "compute_pipeline_stats",
    "PipelineService",
]
