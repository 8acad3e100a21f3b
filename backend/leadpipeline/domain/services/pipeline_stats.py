"""
Pipeline Statistics
Operational counts and dwell times over pipeline cards
"""
from typing import Dict, List, Sequence
from datetime import datetime, timedelta

from leadpipeline.domain.models.pipeline_stage import PipelineStage, QualificationStatus
from leadpipeline.domain.models.pipeline_card import LeadPipelineCard
from leadpipeline.domain.models.analytics import PipelineStats

NO_CONTACT_WINDOW = timedelta(hours=24)


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def compute_pipeline_stats(cards: Sequence[LeadPipelineCard], now: datetime) -> PipelineStats:
    """
    Summarize a set of cards as of now.

    Dwell per stage counts completed visits plus the running time of each
    card's current stage.
    """
    by_stage: Dict[str, int] = {stage.value: 0 for stage in PipelineStage}
    by_status: Dict[str, int] = {status.value: 0 for status in QualificationStatus}
    dwell: Dict[str, List[float]] = {stage.value: [] for stage in PipelineStage}
    totals: List[float] = []
    owners: Dict[str, Dict[str, List[float]]] = {}

    overdue_tasks = 0
    without_contact = 0
    due_for_recontact = 0

    for card in cards:
        card = card.with_elapsed(now)
        by_stage[card.current_stage.value] += 1
        by_status[card.status.value] += 1
        totals.append(card.total_pipeline_hours)

        for stage, hours in card.stage_dwell_hours.items():
            dwell[stage.value].append(hours)
        if not card.is_closed:
            dwell[card.current_stage.value].append(card.time_in_stage_hours)

        overdue_tasks += sum(1 for task in card.tasks if task.is_overdue_at(now))

        if (
            not card.is_closed
            and card.distributed_at is not None
            and not card.contact_attempts
            and now - card.distributed_at > NO_CONTACT_WINDOW
        ):
            without_contact += 1

        if (
            card.current_stage == PipelineStage.RECONTACT
            and card.scheduled_recontact is not None
            and card.scheduled_recontact.recontact_at <= now
        ):
            due_for_recontact += 1

        if card.current_owner:
            owner = owners.setdefault(card.current_owner, {"qualified": [], "unqualified": [], "hours": []})
            if card.status == QualificationStatus.QUALIFIED:
                owner["qualified"].append(1)
            elif card.status == QualificationStatus.UNQUALIFIED:
                owner["unqualified"].append(1)
            owner["hours"].append(card.total_pipeline_hours)

    return PipelineStats(
        total_leads=len(cards),
        leads_by_stage=by_stage,
        leads_by_status=by_status,
        average_hours_by_stage={stage: _mean(hours) for stage, hours in dwell.items()},
        average_total_hours=_mean(totals),
        leads_by_owner={
            owner_id: {
                "total": float(len(data["hours"])),
                "qualified": float(len(data["qualified"])),
                "unqualified": float(len(data["unqualified"])),
                "average_hours": _mean(data["hours"]),
            }
            for owner_id, data in owners.items()
        },
        overdue_tasks=overdue_tasks,
        leads_without_contact_24h=without_contact,
        leads_due_for_recontact=due_for_recontact,
    )
