"""
Stage Transition State Machine
Legal stage moves for pipeline cards
"""
import logging
from typing import List, Optional
from datetime import datetime, timedelta

from leadpipeline.domain.models.pipeline_stage import (
    PipelineStage,
    STAGE_ORDER,
    RECONTACT_LOOP_TARGETS,
)
from leadpipeline.domain.models.pipeline_card import (
    LeadPipelineCard,
    LeadOutcome,
    ScheduledRecontact,
)
from leadpipeline.domain.exceptions import InvalidTransitionError

logger = logging.getLogger(__name__)

DEFAULT_MAX_RECONTACT_LOOPS = 2
DEFAULT_RECONTACT_DAYS = 60


def allowed_transitions(
    card: LeadPipelineCard,
    max_recontact_loops: int = DEFAULT_MAX_RECONTACT_LOOPS
) -> List[PipelineStage]:
    """
    Stages the card may move to next, in pipeline order.

    From any non-terminal stage: the adjacent stage, recontact and outcome.
    From recontact: also back to call_1/call_2 while loops remain.
    """
    current = card.current_stage
    if current.is_terminal:
        return []

    targets = {PipelineStage.RECONTACT, PipelineStage.OUTCOME}
    adjacent = current.next_stage()
    if adjacent is not None:
        targets.add(adjacent)
    if current == PipelineStage.RECONTACT and card.recontact_loops < max_recontact_loops:
        targets |= RECONTACT_LOOP_TARGETS
    targets.discard(current)

    return [stage for stage in STAGE_ORDER if stage in targets]


def transition(
    card: LeadPipelineCard,
    next_stage: PipelineStage,
    agent_id: Optional[str],
    now: datetime,
    notes: Optional[str] = None,
    outcome: Optional[LeadOutcome] = None,
    recontact: Optional[ScheduledRecontact] = None,
    max_recontact_loops: int = DEFAULT_MAX_RECONTACT_LOOPS,
    recontact_days: int = DEFAULT_RECONTACT_DAYS
) -> LeadPipelineCard:
    """
    Move a card to next_stage.

    Args:
        card: Card to move (left untouched)
        next_stage: Target stage
        agent_id: Agent performing the move
        now: Transition time
        notes: Free text stored on the new history entry
        outcome: Required when next_stage is OUTCOME
        recontact: Recontact appointment; defaults to now + recontact_days
        max_recontact_loops: Bound on recontact -> call loops

    Returns:
        New card in next_stage

    Raises:
        InvalidTransitionError: move not allowed from the current stage
    """
    current = card.current_stage

    if current.is_terminal:
        raise InvalidTransitionError(
            f"Card {card.id} is closed; no transition out of {current.value}",
            current_stage=current.value,
            next_stage=next_stage.value,
        )

    if next_stage == current:
        raise InvalidTransitionError(
            f"Card {card.id} is already in {current.value}",
            current_stage=current.value,
            next_stage=next_stage.value,
        )

    if next_stage not in allowed_transitions(card, max_recontact_loops):
        if current == PipelineStage.RECONTACT and next_stage in RECONTACT_LOOP_TARGETS:
            message = (
                f"Card {card.id} reached the recontact loop limit "
                f"({card.recontact_loops}/{max_recontact_loops})"
            )
        else:
            message = f"Cannot move card {card.id} from {current.value} to {next_stage.value}"
        raise InvalidTransitionError(
            message,
            current_stage=current.value,
            next_stage=next_stage.value,
        )

    if next_stage == PipelineStage.OUTCOME and outcome is None:
        raise InvalidTransitionError(
            f"Moving card {card.id} to outcome requires a qualification outcome",
            current_stage=current.value,
            next_stage=next_stage.value,
        )

    updated = card.with_stage(next_stage, agent_id, now, notes)

    if next_stage == PipelineStage.OUTCOME:
        updated = updated.with_outcome(outcome, now)
    elif next_stage == PipelineStage.RECONTACT:
        appointment = recontact or ScheduledRecontact(
            recontact_at=now + timedelta(days=recontact_days),
            reason=notes or "No progress; recontact scheduled",
        )
        updated = updated.with_recontact(appointment, now)
    elif current == PipelineStage.RECONTACT and next_stage in RECONTACT_LOOP_TARGETS:
        updated = updated.with_recontact(None, now).model_copy(
            update={"recontact_loops": card.recontact_loops + 1}
        )

    logger.info(
        f"Card {card.id} moved {current.value} -> {next_stage.value}"
        f"{f' by {agent_id}' if agent_id else ''}"
    )
    return updated
