"""
Lead Pipeline Card Model
Workflow unit wrapping a lead as it moves through the pipeline
"""
from pydantic import BaseModel, Field, field_validator
from typing import Dict, List, Optional
from datetime import datetime, timezone
import uuid

from leadpipeline.domain.models.lead import Lead
from leadpipeline.domain.models.pipeline_stage import (
    PipelineStage,
    QualificationStatus,
    Qualification,
)
from leadpipeline.domain.models.contact_attempt import ContactAttempt
from leadpipeline.domain.models.lead_task import LeadTask


def _hours_between(start: datetime, end: datetime) -> float:
    return max(0.0, (end - start).total_seconds() / 3600)


def _as_utc(moment: Optional[datetime]) -> Optional[datetime]:
    # Naive timestamps are taken to be UTC
    if moment is not None and moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


class StageHistoryEntry(BaseModel):
    """One visit to a stage. exited_at/dwell_hours are set when the stage is left."""
    stage: PipelineStage
    agent_id: Optional[str] = None
    entered_at: datetime
    exited_at: Optional[datetime] = None
    dwell_hours: Optional[float] = None
    notes: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.exited_at is None


class ScheduledRecontact(BaseModel):
    """Recontact appointment attached when a card enters the recontact stage"""
    recontact_at: datetime
    reason: str
    notes: Optional[str] = None

    @field_validator("recontact_at")
    @classmethod
    def _recontact_at_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)


class LeadOutcome(BaseModel):
    """Final qualification of a lead. Required to enter the outcome stage."""
    qualification: Qualification
    reason: str = Field(..., min_length=1)
    decided_by: str = Field(..., min_length=1)
    notes: Optional[str] = None
    decided_at: Optional[datetime] = None

    @field_validator("decided_at")
    @classmethod
    def _decided_at_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)


class LeadPipelineCard(BaseModel):
    """
    Pipeline card.

    Invariants:
    - exactly one open stage-history entry while the card is not terminal
    - stage_history is append-only
    - total_pipeline_hours never decreases
    - outcome is set only when current_stage is OUTCOME

    Cards are never mutated in place: every with_* helper returns a new card.
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    lead: Lead

    current_stage: PipelineStage = PipelineStage.NEW_LEAD
    status: QualificationStatus = QualificationStatus.UNDETERMINED

    current_owner: Optional[str] = None
    previous_owner: Optional[str] = None
    distributed_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    time_in_stage_hours: float = 0.0
    total_pipeline_hours: float = 0.0
    stage_dwell_hours: Dict[PipelineStage, float] = Field(default_factory=dict)

    stage_history: List[StageHistoryEntry] = Field(default_factory=list)
    contact_attempts: List[ContactAttempt] = Field(default_factory=list)
    tasks: List[LeadTask] = Field(default_factory=list)

    scheduled_recontact: Optional[ScheduledRecontact] = None
    outcome: Optional[LeadOutcome] = None
    recontact_loops: int = Field(default=0, ge=0)

    notes: Optional[str] = None

    @classmethod
    def open(cls, lead: Lead, now: datetime, created_by: Optional[str] = None) -> "LeadPipelineCard":
        """Create a card in NEW_LEAD with its first history entry open."""
        return cls(
            lead=lead,
            created_at=now,
            updated_at=now,
            stage_history=[
                StageHistoryEntry(
                    stage=PipelineStage.NEW_LEAD,
                    agent_id=created_by,
                    entered_at=now,
                    notes="Lead created",
                )
            ],
        )

    # ------------------------------------------------------------------
    # Read helpers
    # ------------------------------------------------------------------

    @property
    def lead_id(self) -> str:
        return self.lead.id

    @property
    def is_closed(self) -> bool:
        return self.current_stage.is_terminal

    @property
    def is_assigned(self) -> bool:
        return self.current_owner is not None

    @property
    def open_history_entry(self) -> Optional[StageHistoryEntry]:
        for entry in reversed(self.stage_history):
            if entry.is_open:
                return entry
        return None

    @property
    def open_tasks(self) -> List[LeadTask]:
        return [task for task in self.tasks if task.is_open]

    def get_task(self, task_id: str) -> Optional[LeadTask]:
        return next((task for task in self.tasks if task.id == task_id), None)

    def current_stage_hours(self, now: datetime) -> float:
        entry = self.open_history_entry
        return _hours_between(entry.entered_at, now) if entry else 0.0

    # ------------------------------------------------------------------
    # Typed updates (copy-then-swap)
    # ------------------------------------------------------------------

    def with_stage(
        self,
        next_stage: PipelineStage,
        agent_id: Optional[str],
        now: datetime,
        notes: Optional[str] = None
    ) -> "LeadPipelineCard":
        """
        Close the open history entry and open one for next_stage.

        No legality checks happen here; the stage machine decides whether
        the move is allowed.
        """
        history = list(self.stage_history)
        dwell = dict(self.stage_dwell_hours)

        for index in range(len(history) - 1, -1, -1):
            entry = history[index]
            if entry.is_open:
                hours = _hours_between(entry.entered_at, now)
                history[index] = entry.model_copy(update={"exited_at": now, "dwell_hours": hours})
                dwell[entry.stage] = dwell.get(entry.stage, 0.0) + hours
                break

        closing = next_stage.is_terminal
        history.append(
            StageHistoryEntry(
                stage=next_stage,
                agent_id=agent_id,
                entered_at=now,
                # The terminal entry is closed on arrival
                exited_at=now if closing else None,
                dwell_hours=0.0 if closing else None,
                notes=notes or f"Moved to {next_stage.value}",
            )
        )

        total = max(self.total_pipeline_hours, _hours_between(self.created_at, now))

        return self.model_copy(update={
            "current_stage": next_stage,
            "stage_history": history,
            "stage_dwell_hours": dwell,
            "time_in_stage_hours": 0.0,
            "total_pipeline_hours": total,
            "updated_at": now,
        })

    def with_elapsed(self, now: datetime) -> "LeadPipelineCard":
        """Refresh time_in_stage_hours / total_pipeline_hours against now."""
        if self.is_closed:
            return self
        return self.model_copy(update={
            "time_in_stage_hours": self.current_stage_hours(now),
            "total_pipeline_hours": max(self.total_pipeline_hours, _hours_between(self.created_at, now)),
        })

    def with_outcome(self, outcome: LeadOutcome, now: datetime) -> "LeadPipelineCard":
        stamped = outcome.model_copy(update={"decided_at": outcome.decided_at or now})
        status = (
            QualificationStatus.QUALIFIED
            if outcome.qualification == Qualification.QUALIFIED
            else QualificationStatus.UNQUALIFIED
        )
        return self.model_copy(update={"outcome": stamped, "status": status, "updated_at": now})

    def with_recontact(self, recontact: Optional[ScheduledRecontact], now: datetime) -> "LeadPipelineCard":
        return self.model_copy(update={"scheduled_recontact": recontact, "updated_at": now})

    def with_attempt(self, attempt: ContactAttempt, now: datetime) -> "LeadPipelineCard":
        return self.model_copy(update={
            "contact_attempts": [*self.contact_attempts, attempt],
            "updated_at": now,
        })

    def with_task(self, task: LeadTask, now: datetime) -> "LeadPipelineCard":
        """Insert task, or replace the task with the same id."""
        if any(existing.id == task.id for existing in self.tasks):
            tasks = [task if existing.id == task.id else existing for existing in self.tasks]
        else:
            tasks = [*self.tasks, task]
        return self.model_copy(update={"tasks": tasks, "updated_at": now})

    def with_owner(self, owner_id: Optional[str], now: datetime) -> "LeadPipelineCard":
        """Assign a new owner; the current owner becomes previous_owner."""
        return self.model_copy(update={
            "previous_owner": self.current_owner,
            "current_owner": owner_id,
            "distributed_at": now,
            "updated_at": now,
        })

    def with_lead(self, lead: Lead, now: datetime) -> "LeadPipelineCard":
        if lead.id != self.lead.id:
            raise ValueError("Lead identity cannot change")
        return self.model_copy(update={"lead": lead, "updated_at": now})
