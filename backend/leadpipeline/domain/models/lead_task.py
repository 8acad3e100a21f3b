"""
Lead Task Model
Follow-up work tied to a pipeline card and stage
"""
from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from datetime import datetime
from enum import Enum
import uuid

from leadpipeline.domain.models.pipeline_stage import PipelineStage


class TaskStatus(str, Enum):
    """Lifecycle of a lead task"""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    OVERDUE = "overdue"        # Terminal: redistribution budget exhausted
    CANCELLED = "cancelled"


OPEN_TASK_STATUSES = {TaskStatus.PENDING, TaskStatus.IN_PROGRESS}


class TaskType(str, Enum):
    INITIAL_CONTACT = "initial_contact"
    FOLLOW_UP = "follow_up"
    RESCHEDULE = "reschedule"
    QUALIFICATION = "qualification"
    CUSTOM = "custom"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class NotificationKind(str, Enum):
    """Kinds of notifications emitted by the task scheduler"""
    TASK_CREATED = "task_created"
    TASK_REASSIGNED = "task_reassigned"
    LEAD_REDISTRIBUTED = "lead_redistributed"
    TASK_OVERDUE = "task_overdue"
    ESCALATION = "escalation"


class TaskNotification(BaseModel):
    """Entry in a task's notification log"""
    kind: NotificationKind
    recipient: str
    sent_at: datetime
    read: bool = False


class TaskTemplate(BaseModel):
    """Per-stage defaults for auto-created tasks"""
    stage: PipelineStage
    title: str
    description: str
    task_type: TaskType = TaskType.FOLLOW_UP
    deadline_hours: float = Field(default=24, gt=0)
    priority: TaskPriority = TaskPriority.MEDIUM


class LeadTask(BaseModel):
    """
    Unit of follow-up work for a card in a given stage.

    redistribution_attempts is bounded by max_redistribution_attempts;
    once the bound is reached an overdue task is escalated instead of
    being redistributed again.
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    lead_pipeline_id: str
    stage: PipelineStage
    title: str
    description: str = ""
    task_type: TaskType = TaskType.FOLLOW_UP
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    owner_id: Optional[str] = None
    due_at: datetime
    created_at: datetime
    completed_at: Optional[datetime] = None
    notes: Optional[str] = None

    redistribution_attempts: int = Field(default=0, ge=0)
    max_redistribution_attempts: int = Field(default=3, ge=0)

    notifications: List[TaskNotification] = Field(default_factory=list)

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_TASK_STATUSES

    def is_overdue_at(self, now: datetime) -> bool:
        """Pending and past its due date."""
        return self.status == TaskStatus.PENDING and self.due_at < now

    @property
    def can_redistribute(self) -> bool:
        return self.redistribution_attempts < self.max_redistribution_attempts

    def with_notification(self, notification: TaskNotification) -> "LeadTask":
        return self.model_copy(update={"notifications": [*self.notifications, notification]})

    def with_status(
        self,
        status: TaskStatus,
        now: datetime,
        notes: Optional[str] = None
    ) -> "LeadTask":
        """Return a copy moved to status; terminal statuses stamp completed_at."""
        update = {"status": status}
        if status in (TaskStatus.DONE, TaskStatus.CANCELLED, TaskStatus.OVERDUE):
            update["completed_at"] = now
        if notes:
            update["notes"] = f"{self.notes}\n{notes}" if self.notes else notes
        return self.model_copy(update=update)

    def with_owner(self, owner_id: Optional[str]) -> "LeadTask":
        """Return a copy owned by owner_id without spending a redistribution attempt."""
        return self.model_copy(update={"owner_id": owner_id})

    def with_redistribution(self, owner_id: Optional[str], due_at: datetime) -> "LeadTask":
        """Return a copy reassigned to owner_id with a fresh due date."""
        return self.model_copy(update={
            "owner_id": owner_id,
            "due_at": due_at,
            "redistribution_attempts": self.redistribution_attempts + 1,
        })


class TaskStats(BaseModel):
    """Task counts across a set of cards"""
    total: int = 0
    by_status: Dict[TaskStatus, int] = Field(default_factory=dict)
    by_owner: Dict[str, int] = Field(default_factory=dict)
    overdue_now: int = 0
