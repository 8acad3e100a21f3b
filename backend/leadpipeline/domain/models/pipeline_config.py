"""
Pipeline Configuration Model
Tunables for distribution, task deadlines, redistribution and analytics
"""
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Dict, List, Optional
from datetime import tzinfo
import logging
import pytz

from leadpipeline.domain.models.pipeline_stage import PipelineStage
from leadpipeline.domain.models.lead_task import TaskTemplate, TaskType, TaskPriority

logger = logging.getLogger(__name__)

DEFAULT_DIRECTOR_RECIPIENT = "commercial-director"


def _default_task_templates() -> List[TaskTemplate]:
    return [
        TaskTemplate(
            stage=PipelineStage.NEW_LEAD,
            title="Initial contact",
            description="Make the first contact with the lead",
            task_type=TaskType.INITIAL_CONTACT,
            deadline_hours=24,
            priority=TaskPriority.HIGH,
        ),
        TaskTemplate(
            stage=PipelineStage.CALL_1,
            title="Follow-up call",
            description="Make a follow-up call",
            task_type=TaskType.FOLLOW_UP,
            deadline_hours=48,
            priority=TaskPriority.MEDIUM,
        ),
        TaskTemplate(
            stage=PipelineStage.CALL_2,
            title="Second follow-up call",
            description="Make a second follow-up call",
            task_type=TaskType.FOLLOW_UP,
            deadline_hours=48,
            priority=TaskPriority.MEDIUM,
        ),
        TaskTemplate(
            stage=PipelineStage.MESSAGE,
            title="WhatsApp contact",
            description="Send a message through WhatsApp",
            task_type=TaskType.FOLLOW_UP,
            deadline_hours=12,
            priority=TaskPriority.MEDIUM,
        ),
        TaskTemplate(
            stage=PipelineStage.RECONTACT,
            title="Scheduled recontact",
            description="Contact the lead again after the recontact period",
            task_type=TaskType.RESCHEDULE,
            deadline_hours=72,
            priority=TaskPriority.MEDIUM,
        ),
    ]


def _default_product_categories() -> Dict[str, str]:
    return {
        "abertura-gestao-pj": "pj",
        "alteracao-gestao-pj": "pj",
        "pj-medstaff-15": "pj",
        "recuperacao-tributaria-pj": "pj",
        "dirpf": "pf",
        "planejamento-financeiro-pf": "pf",
        "restituicao-previdenciaria-pf": "pf",
        "consultoria-clinicas": "consultoria",
        "equiparacao-hospitalar": "consultoria",
        "auxilio-moradia": "assistencia",
        "medassist": "assistencia",
    }


def map_categories(product_ids: Optional[List[str]], category_map: Dict[str, str]) -> List[str]:
    """Map product ids to specialization categories, first occurrence order. Unmapped ids pass through."""
    seen: List[str] = []
    for product_id in product_ids or []:
        category = category_map.get(product_id, product_id)
        if category not in seen:
            seen.append(category)
    return seen


class AnalyticsThresholds(BaseModel):
    """Heuristic thresholds used by the analytics engine and team comparator"""
    trailing_days: int = Field(default=30, ge=1, le=366)
    baseline_hour: int = Field(default=9, ge=0, le=23)
    frequency_threshold_hours: float = Field(default=72, gt=0)
    success_rate_floor: float = Field(default=30, ge=0, le=100)
    team_average_tolerance: float = Field(default=5, ge=0)
    needs_improvement_ratio: float = Field(default=0.8, ge=0, le=1)


class PipelineConfig(BaseModel):
    """
    Pipeline configuration.

    Loaded from the `pipeline:` section of the YAML config.
    """

    # Deadlines
    contact_deadline_hours: float = Field(
        default=24,
        gt=0,
        description="Deadline for the initial contact task (hours)"
    )
    recontact_days: int = Field(
        default=60,
        ge=1,
        description="Days until a scheduled recontact falls due"
    )

    # Redistribution
    max_redistribution_attempts: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Timeout redistributions before a task is escalated"
    )
    max_recontact_loops: int = Field(
        default=2,
        ge=0,
        le=10,
        description="Times a card may loop recontact -> call_1/call_2"
    )

    # Notifications
    notify_commercial_director: bool = True
    commercial_director_recipient: str = Field(
        default=DEFAULT_DIRECTOR_RECIPIENT,
        description="Recipient of escalations and task-created copies"
    )

    # Attempt recording
    clock_skew_tolerance_seconds: int = Field(default=300, ge=0)

    # Bucketing timezone for analytics trends
    timezone: str = "America/Sao_Paulo"

    # Worker
    sweep_interval_seconds: float = Field(default=300, gt=0)

    # Storage boundary retry
    storage_max_retries: int = Field(default=3, ge=1, le=10)
    storage_initial_retry_delay: float = Field(default=0.5, ge=0)
    storage_backoff_multiplier: float = Field(default=2.0, ge=1)

    analytics: AnalyticsThresholds = Field(default_factory=AnalyticsThresholds)

    product_categories: Dict[str, str] = Field(default_factory=_default_product_categories)
    task_templates: List[TaskTemplate] = Field(default_factory=_default_task_templates)

    @field_validator("commercial_director_recipient")
    @classmethod
    def _director_recipient_resolved(cls, value: str) -> str:
        # An unset ${VAR} survives YAML substitution verbatim
        recipient = value.strip()
        if not recipient or (recipient.startswith("${") and recipient.endswith("}")):
            logger.warning(
                f"Commercial director recipient {value!r} is unresolved, "
                f"using {DEFAULT_DIRECTOR_RECIPIENT!r}"
            )
            return DEFAULT_DIRECTOR_RECIPIENT
        return recipient

    @model_validator(mode="after")
    def _initial_contact_uses_deadline(self) -> "PipelineConfig":
        # The initial contact deadline is configured on its own; keep the template in sync
        self.task_templates = [
            template.model_copy(update={"deadline_hours": self.contact_deadline_hours})
            if template.stage == PipelineStage.NEW_LEAD else template
            for template in self.task_templates
        ]
        return self

    def template_for(self, stage: PipelineStage) -> Optional[TaskTemplate]:
        """Task template for a stage (None for stages without follow-up work)."""
        return next((t for t in self.task_templates if t.stage == stage), None)

    @property
    def tzinfo(self) -> tzinfo:
        try:
            return pytz.timezone(self.timezone)
        except pytz.exceptions.UnknownTimeZoneError:
            return pytz.UTC

    @classmethod
    def default(cls) -> "PipelineConfig":
        return cls()

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "PipelineConfig":
        if data is None:
            return cls.default()
        return cls(**data)
