"""
Pipeline Service
Query/command facade over the lead pipeline
"""
import logging
from typing import List, Optional
from datetime import datetime

from leadpipeline.domain.models.lead import Lead, LeadContactUpdate
from leadpipeline.domain.models.pipeline_stage import PipelineStage
from leadpipeline.domain.models.pipeline_card import (
    LeadPipelineCard,
    LeadOutcome,
    ScheduledRecontact,
)
from leadpipeline.domain.models.contact_attempt import ContactAttempt, ContactAttemptInput
from leadpipeline.domain.models.lead_task import LeadTask, TaskStats
from leadpipeline.domain.models.team import (
    CommercialTeamMember,
    DistributionReason,
    LeadDistribution,
    TeamCapacity,
)
from leadpipeline.domain.models.analytics import (
    ContactAnalytics,
    PipelineStats,
    TeamContactAnalytics,
)
from leadpipeline.domain.models.pipeline_config import PipelineConfig
from leadpipeline.domain.interfaces.card_store import CardStore
from leadpipeline.domain.interfaces.roster_store import RosterStore
from leadpipeline.domain.interfaces.notification_sender import NotificationSender
from leadpipeline.domain.interfaces.clock import Clock, SystemClock
from leadpipeline.domain.services.entity_locks import EntityLocks
from leadpipeline.domain.services.distribution_service import LeadDistributionService
from leadpipeline.domain.services.stage_machine import transition, allowed_transitions
from leadpipeline.domain.services.attempt_recorder import ContactAttemptRecorder
from leadpipeline.domain.services.task_scheduler import TaskScheduler
from leadpipeline.domain.services.contact_analytics import ContactAnalyticsEngine
from leadpipeline.domain.services.pipeline_stats import compute_pipeline_stats
from leadpipeline.domain.exceptions import (
    CardNotFoundError,
    InvalidTransitionError,
    NoCapacityError,
)

logger = logging.getLogger(__name__)


class PipelineService:
    """
    Entry point for every pipeline operation.

    Commands on a card run under that card's lock; roster load changes go
    through the distribution service, which takes the roster lock after
    the card lock. Queries read snapshots and take no locks.
    """

    def __init__(
        self,
        card_store: CardStore,
        roster_store: RosterStore,
        notifier: NotificationSender,
        config: Optional[PipelineConfig] = None,
        clock: Optional[Clock] = None,
        locks: Optional[EntityLocks] = None
    ):
        self.config = config or PipelineConfig.default()
        self.clock = clock or SystemClock()
        self.locks = locks or EntityLocks()

        self._cards = card_store
        self._roster = roster_store

        self.distribution = LeadDistributionService(
            card_store, roster_store, self.locks, self.config, self.clock
        )
        self.recorder = ContactAttemptRecorder(card_store, self.config, self.clock)
        self.scheduler = TaskScheduler(
            card_store, self.distribution, notifier, self.locks, self.config, self.clock
        )
        self.analytics = ContactAnalyticsEngine(self.config)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_card(self, card_id: str) -> LeadPipelineCard:
        """
        Raises:
            CardNotFoundError: unknown card
        """
        card = await self._cards.load_card(card_id)
        if card is None:
            raise CardNotFoundError(card_id)
        return card.with_elapsed(self.clock.now())

    async def list_cards_by_agent(self, agent_id: str, include_closed: bool = True) -> List[LeadPipelineCard]:
        now = self.clock.now()
        cards = await self._cards.list_cards(owner_id=agent_id, include_closed=include_closed)
        return [card.with_elapsed(now) for card in cards]

    async def list_distributions(self, card_id: str) -> List[LeadDistribution]:
        await self.get_card(card_id)
        return await self._cards.list_distributions(card_id)

    async def get_allowed_transitions(self, card_id: str) -> List[PipelineStage]:
        card = await self.get_card(card_id)
        return allowed_transitions(card, self.config.max_recontact_loops)

    async def get_analytics(self, card_or_agent_id: str, as_of: Optional[datetime] = None) -> ContactAnalytics:
        """
        Analytics for one card, or for every card an agent owns.

        Raises:
            CardNotFoundError: id matches neither a card nor an agent
        """
        as_of = as_of or self.clock.now()
        card = await self._cards.load_card(card_or_agent_id)
        if card is not None:
            return self.analytics.analyze_card(card, as_of)

        member = await self._roster.get_member(card_or_agent_id)
        if member is None:
            raise CardNotFoundError(card_or_agent_id)

        cards = await self._cards.list_cards(owner_id=member.id)
        return self.analytics.analyze([a for c in cards for a in c.contact_attempts], as_of)

    async def get_team_analytics(self, as_of: Optional[datetime] = None) -> TeamContactAnalytics:
        as_of = as_of or self.clock.now()
        cards = await self._cards.list_cards()
        roster = await self._roster.load_roster()
        return self.analytics.analyze_team(cards, roster, as_of)

    async def get_pipeline_stats(self) -> PipelineStats:
        cards = await self._cards.list_cards()
        return compute_pipeline_stats(cards, self.clock.now())

    async def get_task_stats(self) -> TaskStats:
        cards = await self._cards.list_cards()
        return self.scheduler.get_task_stats(cards, self.clock.now())

    async def get_team_capacity(self) -> TeamCapacity:
        return await self.distribution.get_team_capacity()

    async def get_roster(self) -> List[CommercialTeamMember]:
        return await self._roster.load_roster()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def create_lead(self, lead: Lead, created_by: Optional[str] = None) -> LeadPipelineCard:
        """
        Open a card for a new lead, assign it and create the initial contact task.

        With no agent capacity the card is kept unassigned in the intake
        backlog; assign_pending_leads() picks it up later.
        """
        now = self.clock.now()
        card = LeadPipelineCard.open(lead, now, created_by or lead.created_by)

        def attach_initial_task(assigned: LeadPipelineCard) -> LeadPipelineCard:
            task = self.scheduler.build_task(assigned, PipelineStage.NEW_LEAD, now)
            return assigned.with_task(task, now)

        async with self.locks.card(card.id):
            try:
                card, _ = await self.distribution.distribute(
                    card,
                    DistributionReason.INITIAL,
                    notes="New lead",
                    finalize=attach_initial_task,
                )
            except NoCapacityError:
                card = attach_initial_task(card)
                await self._cards.save_card(card)
                logger.warning(f"Lead {lead.id} queued unassigned: no agent with spare capacity")

            for task in card.open_tasks:
                card, _ = await self.scheduler.announce_created(card, task)

        logger.info(f"Created pipeline card {card.id} for lead {lead.id} (owner={card.current_owner})")
        return card

    async def update_lead_contact(self, card_id: str, update: LeadContactUpdate) -> LeadPipelineCard:
        async with self.locks.card(card_id):
            card = await self.get_card(card_id)
            now = self.clock.now()
            updated = card.with_lead(card.lead.with_contact_update(update), now)
            await self._cards.save_card(updated)
        logger.info(f"Updated contact details for lead {card.lead_id}")
        return updated

    async def record_attempt(self, card_id: str, attempt_input: ContactAttemptInput) -> ContactAttempt:
        async with self.locks.card(card_id):
            return await self.recorder.record(card_id, attempt_input)

    async def transition_stage(
        self,
        card_id: str,
        next_stage: PipelineStage,
        agent_id: Optional[str] = None,
        notes: Optional[str] = None,
        outcome: Optional[LeadOutcome] = None,
        recontact: Optional[ScheduledRecontact] = None
    ) -> LeadPipelineCard:
        """
        Move a card to next_stage.

        Tasks of the stage being left are marked done and the new stage's
        task is created. Entering outcome cancels open tasks and frees the
        owner's capacity.

        Raises:
            CardNotFoundError: unknown card
            InvalidTransitionError: illegal move; nothing is changed
        """
        async with self.locks.card(card_id):
            card = await self.get_card(card_id)
            now = self.clock.now()
            previous_stage = card.current_stage

            updated = transition(
                card,
                next_stage,
                agent_id,
                now,
                notes=notes,
                outcome=outcome,
                recontact=recontact,
                max_recontact_loops=self.config.max_recontact_loops,
                recontact_days=self.config.recontact_days,
            )
            updated = self.scheduler.close_stage_tasks(updated, previous_stage, now)

            if next_stage.is_terminal:
                updated = self.scheduler.cancel_open_tasks(updated, now, "Lead closed")
                await self._cards.save_card(updated)
                await self.distribution.release(updated.current_owner)
            else:
                new_task = self.scheduler.build_task(updated, next_stage, now)
                if new_task is not None:
                    updated = updated.with_task(new_task, now)
                await self._cards.save_card(updated)

                if new_task is not None:
                    updated, _ = await self.scheduler.announce_created(updated, new_task)

        if updated.is_closed:
            self.locks.forget(card_id)
        return updated

    async def manual_redistribute(
        self,
        card_id: str,
        target_agent_id: Optional[str] = None,
        requested_by: Optional[str] = None,
        notes: Optional[str] = None
    ) -> LeadPipelineCard:
        """
        Reassign a card to another agent (or to target_agent_id).

        Open tasks follow the card to the new owner.

        Raises:
            CardNotFoundError: unknown card
            InvalidTransitionError: card is closed
            NoCapacityError: nobody (or not the target) can take the lead
        """
        async with self.locks.card(card_id):
            card = await self.get_card(card_id)
            if card.is_closed:
                raise InvalidTransitionError(
                    f"Card {card_id} is closed and cannot be redistributed",
                    current_stage=card.current_stage.value,
                )

            card, _ = await self.distribution.distribute(
                card,
                DistributionReason.MANUAL_REDISTRIBUTION,
                exclude_agent=card.current_owner,
                notes=notes or (f"Requested by {requested_by}" if requested_by else None),
                target_agent=target_agent_id,
                finalize=self._hand_open_tasks_to_owner,
            )
            for task in card.open_tasks:
                card, _ = await self.scheduler.announce_created(card, task, copy_director=False)

        logger.info(f"Card {card_id} manually redistributed to {card.current_owner}")
        return card

    async def complete_task(self, card_id: str, task_id: str, notes: Optional[str] = None) -> LeadTask:
        async with self.locks.card(card_id):
            card = await self.get_card(card_id)
            updated, task = self.scheduler.complete_task(card, task_id, self.clock.now(), notes)
            if updated is not card:
                await self._cards.save_card(updated)
        logger.info(f"Task {task_id} on card {card_id} is {task.status.value}")
        return task

    async def assign_pending_leads(self) -> List[LeadPipelineCard]:
        """
        Retry assignment for backlog cards (open and unowned).

        Stops at the first NoCapacityError; the rest stay queued.
        """
        backlog = [
            card for card in await self._cards.list_cards(include_closed=False)
            if not card.is_assigned
        ]
        assigned: List[LeadPipelineCard] = []

        for pending in sorted(backlog, key=lambda c: c.created_at):
            async with self.locks.card(pending.id):
                card = await self._cards.load_card(pending.id)
                if card is None or card.is_assigned or card.is_closed:
                    continue
                try:
                    card, _ = await self.distribution.distribute(
                        card,
                        DistributionReason.INITIAL,
                        notes="Assigned from intake backlog",
                        finalize=self._hand_open_tasks_to_owner,
                    )
                except NoCapacityError:
                    logger.info(f"{len(backlog) - len(assigned)} lead(s) still waiting for capacity")
                    break
                for task in card.open_tasks:
                    card, _ = await self.scheduler.announce_created(card, task, copy_director=False)
            assigned.append(card)

        if assigned:
            logger.info(f"Assigned {len(assigned)} backlog lead(s)")
        return assigned

    async def run_overdue_sweep(self) -> List[LeadTask]:
        return await self.scheduler.check_overdue(self.clock.now())

    async def set_agent_capacity(self, agent_id: str, capacity: int) -> CommercialTeamMember:
        return await self.distribution.set_agent_capacity(agent_id, capacity)

    async def set_agent_active(self, agent_id: str, active: bool) -> CommercialTeamMember:
        return await self.distribution.set_agent_active(agent_id, active)

    async def add_team_member(self, member: CommercialTeamMember) -> CommercialTeamMember:
        async with self.locks.roster:
            await self._roster.save_roster_member(member)
        logger.info(f"Added team member {member.id}")
        return member

    def _hand_open_tasks_to_owner(self, card: LeadPipelineCard) -> LeadPipelineCard:
        now = self.clock.now()
        for task in card.open_tasks:
            card = card.with_task(task.with_owner(card.current_owner), now)
        return card
