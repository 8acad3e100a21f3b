"""
Unit Tests for Domain Models
"""
import pytest
from datetime import datetime, timedelta, timezone
from pydantic import ValidationError

from leadpipeline.domain.models.lead import LeadContactUpdate
from leadpipeline.domain.models.lead_task import LeadTask, TaskStatus
from leadpipeline.domain.models.pipeline_card import LeadPipelineCard, LeadOutcome
from leadpipeline.domain.models.pipeline_stage import PipelineStage, Qualification
from leadpipeline.domain.models.team import DistributionReason, LeadDistribution

from conftest import BASE_TIME, make_lead, make_member


def make_task(card_id: str = "card-1", **overrides) -> LeadTask:
    data = {
        "lead_pipeline_id": card_id,
        "stage": PipelineStage.NEW_LEAD,
        "title": "Initial contact",
        "due_at": BASE_TIME + timedelta(hours=24),
        "created_at": BASE_TIME,
    }
    data.update(overrides)
    return LeadTask(**data)


class TestLead:
    """Tests for Lead"""

    def test_contact_update_keeps_identity(self):
        lead = make_lead(company="Clinica Sao Lucas")

        updated = lead.with_contact_update(LeadContactUpdate(email="ana@example.com"))

        assert updated.id == lead.id
        assert updated.email == "ana@example.com"
        assert updated.company == "Clinica Sao Lucas"
        assert lead.email is None

    def test_display_name(self):
        assert make_lead().display_name == "Dr. Ana Souza"
        assert make_lead(company="ACME").display_name == "Dr. Ana Souza - ACME"


class TestLeadPipelineCard:
    """Tests for LeadPipelineCard helpers"""

    def test_open(self):
        card = LeadPipelineCard.open(make_lead(), BASE_TIME, created_by="intake")

        assert card.current_stage == PipelineStage.NEW_LEAD
        assert card.open_history_entry.agent_id == "intake"
        assert not card.is_assigned
        assert not card.is_closed

    def test_with_stage_keeps_single_open_entry(self):
        card = LeadPipelineCard.open(make_lead(), BASE_TIME)

        moved = card.with_stage(PipelineStage.CALL_1, "agent-a", BASE_TIME + timedelta(hours=3))

        assert [entry.is_open for entry in moved.stage_history] == [False, True]
        assert moved.stage_history[0].dwell_hours == pytest.approx(3)
        assert len(card.stage_history) == 1

    def test_terminal_entry_closed_on_arrival(self):
        card = LeadPipelineCard.open(make_lead(), BASE_TIME)

        closed = card.with_stage(PipelineStage.OUTCOME, "agent-a", BASE_TIME + timedelta(hours=1))

        assert closed.open_history_entry is None
        assert closed.with_elapsed(BASE_TIME + timedelta(days=5)).total_pipeline_hours == pytest.approx(1)

    def test_with_task_replaces_by_id(self):
        card = LeadPipelineCard.open(make_lead(), BASE_TIME)
        task = make_task(card.id)

        card = card.with_task(task, BASE_TIME)
        card = card.with_task(task.with_status(TaskStatus.DONE, BASE_TIME), BASE_TIME)

        assert len(card.tasks) == 1
        assert card.open_tasks == []

    def test_with_owner_tracks_previous(self):
        card = LeadPipelineCard.open(make_lead(), BASE_TIME).with_owner("agent-a", BASE_TIME)

        card = card.with_owner("agent-b", BASE_TIME)

        assert card.current_owner == "agent-b"
        assert card.previous_owner == "agent-a"

    def test_lead_identity_is_fixed(self):
        card = LeadPipelineCard.open(make_lead(), BASE_TIME)

        with pytest.raises(ValueError):
            card.with_lead(make_lead(), BASE_TIME)

    def test_naive_decision_time_is_utc(self):
        outcome = LeadOutcome(
            qualification=Qualification.UNQUALIFIED,
            reason="No budget",
            decided_by="agent-a",
            decided_at=datetime(2026, 3, 2, 15, 0),
        )

        assert outcome.decided_at == datetime(2026, 3, 2, 15, 0, tzinfo=timezone.utc)

    def test_outcome_requires_reason(self):
        with pytest.raises(ValidationError):
            LeadOutcome(qualification=Qualification.QUALIFIED, reason="", decided_by="agent-a")


class TestLeadTask:
    """Tests for LeadTask"""

    def test_overdue_only_when_pending(self):
        task = make_task()
        later = BASE_TIME + timedelta(hours=25)

        assert task.is_overdue_at(later)
        assert not task.is_overdue_at(BASE_TIME)
        assert not task.with_status(TaskStatus.DONE, later).is_overdue_at(later)

    def test_notes_are_appended(self):
        task = make_task(notes="First")

        done = task.with_status(TaskStatus.DONE, BASE_TIME, "Second")

        assert done.notes == "First\nSecond"
        assert done.completed_at == BASE_TIME

    def test_redistribution_budget(self):
        task = make_task(max_redistribution_attempts=1)

        moved = task.with_redistribution("agent-b", BASE_TIME + timedelta(hours=48))

        assert moved.owner_id == "agent-b"
        assert moved.redistribution_attempts == 1
        assert task.can_redistribute
        assert not moved.can_redistribute
        assert moved.with_owner("agent-c").redistribution_attempts == 1


class TestTeamModels:
    """Tests for roster and distribution models"""

    def test_load_never_negative(self):
        assert make_member("agent-a").with_load_delta(-1).current_load == 0

    def test_capacity(self):
        member = make_member("agent-a", capacity=1, current_load=1)

        assert not member.has_capacity
        assert member.with_capacity(2).has_capacity
        assert not member.with_active(False).with_capacity(5).has_capacity
        with pytest.raises(ValueError):
            member.with_capacity(-1)

    def test_distribution_record_is_frozen(self):
        record = LeadDistribution(
            lead_id="lead-1",
            card_id="card-1",
            agent_id="agent-a",
            reason=DistributionReason.INITIAL,
            distributed_at=BASE_TIME,
        )

        with pytest.raises(ValidationError):
            record.agent_id = "agent-b"
