"""
Lead Distribution Service
Assigns leads to commercial agents under capacity constraints
"""
import asyncio
import logging
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from leadpipeline.domain.models.pipeline_card import LeadPipelineCard
from leadpipeline.domain.models.team import (
    CommercialTeamMember,
    DistributionReason,
    LeadDistribution,
    TeamCapacity,
)
from leadpipeline.domain.models.pipeline_config import PipelineConfig, map_categories
from leadpipeline.domain.interfaces.card_store import CardStore
from leadpipeline.domain.interfaces.roster_store import RosterStore
from leadpipeline.domain.interfaces.clock import Clock, SystemClock
from leadpipeline.domain.services.entity_locks import EntityLocks
from leadpipeline.domain.exceptions import AgentNotFoundError, NoCapacityError

logger = logging.getLogger(__name__)


def select_agent(
    roster: Iterable[CommercialTeamMember],
    product_interests: List[str],
    category_map: Dict[str, str],
    exclude_agent: Optional[str] = None
) -> CommercialTeamMember:
    """
    Pick the agent that should own a lead.

    Eligible agents are active, below capacity and not exclude_agent.
    Agents whose specializations match the lead's product categories are
    preferred; ties go to the lowest priority_rank, then the lowest
    current_load, then the agent id.

    Raises:
        NoCapacityError: no eligible agent
    """
    eligible = [
        member for member in roster
        if member.has_capacity and member.id != exclude_agent
    ]
    if not eligible:
        raise NoCapacityError()

    categories = set(map_categories(product_interests, category_map))

    def sort_key(member: CommercialTeamMember):
        specialized = bool(categories & set(member.specializations))
        return (not specialized, member.priority_rank, member.current_load, member.id)

    return min(eligible, key=sort_key)


class LeadDistributionService:
    """
    Owns every change to roster load.

    All load changes happen under the roster lock. Callers that also hold
    a card lock must have acquired it first.
    """

    def __init__(
        self,
        card_store: CardStore,
        roster_store: RosterStore,
        locks: EntityLocks,
        config: Optional[PipelineConfig] = None,
        clock: Optional[Clock] = None
    ):
        self._cards = card_store
        self._roster = roster_store
        self._locks = locks
        self._config = config or PipelineConfig.default()
        self._clock = clock or SystemClock()

    async def distribute(
        self,
        card: LeadPipelineCard,
        reason: DistributionReason,
        exclude_agent: Optional[str] = None,
        notes: Optional[str] = None,
        target_agent: Optional[str] = None,
        finalize: Optional[Callable[[LeadPipelineCard], LeadPipelineCard]] = None
    ) -> Tuple[LeadPipelineCard, LeadDistribution]:
        """
        Assign card to the best available agent and persist the result.

        The chosen agent's load goes up by one and, on redistribution, the
        previous owner's load goes down by one. target_agent restricts the
        choice to a single agent (manual redistribution). finalize may adjust the
        reassigned card before it is saved. If anything fails (or the
        coroutine is cancelled) before the card is saved, the load changes
        are rolled back and the error is re-raised.

        Returns:
            (saved card, distribution record)

        Raises:
            NoCapacityError: no eligible agent; nothing was changed
            AgentNotFoundError: target_agent is not on the roster
        """
        async with self._locks.roster:
            roster = await self._roster.load_roster()
            candidates = roster
            if target_agent is not None:
                candidates = [member for member in roster if member.id == target_agent]
                if not candidates:
                    raise AgentNotFoundError(target_agent)

            try:
                chosen = select_agent(
                    candidates,
                    card.lead.product_interests,
                    self._config.product_categories,
                    exclude_agent=exclude_agent,
                )
            except NoCapacityError:
                logger.warning(
                    f"No agent with spare capacity for lead {card.lead_id} "
                    f"(reason={reason.value}, excluded={exclude_agent})"
                )
                raise NoCapacityError(lead_id=card.lead_id)

            now = self._clock.now()
            previous_id = card.current_owner
            originals: List[CommercialTeamMember] = []

            try:
                if chosen.id != previous_id:
                    originals.append(chosen)
                    await self._roster.save_roster_member(chosen.with_load_delta(1))

                    if previous_id:
                        previous = next((m for m in roster if m.id == previous_id), None)
                        if previous is not None:
                            originals.append(previous)
                            await self._roster.save_roster_member(previous.with_load_delta(-1))

                record = LeadDistribution(
                    lead_id=card.lead_id,
                    card_id=card.id,
                    agent_id=chosen.id,
                    previous_agent_id=previous_id,
                    reason=reason,
                    distributed_at=now,
                    notes=notes,
                )

                updated = card.with_owner(chosen.id, now)
                if finalize is not None:
                    updated = finalize(updated)

                await self._cards.append_distribution(record)
                await self._cards.save_card(updated)

            except (Exception, asyncio.CancelledError):
                await self._restore(originals)
                raise

        logger.info(
            f"Lead {card.lead_id} distributed to {chosen.id} "
            f"(reason={reason.value}, previous={previous_id})"
        )
        return updated, record

    async def release(self, agent_id: Optional[str]) -> None:
        """Give back one unit of load for an agent (card closed or unassigned)."""
        if not agent_id:
            return
        async with self._locks.roster:
            member = await self._roster.get_member(agent_id)
            if member is None:
                logger.warning(f"Cannot release load: unknown agent {agent_id}")
                return
            await self._roster.save_roster_member(member.with_load_delta(-1))
        logger.debug(f"Released one lead from agent {agent_id}")

    async def get_team_capacity(self) -> TeamCapacity:
        """Snapshot of how much of the active roster is in use."""
        roster = await self._roster.load_roster()
        active = [member for member in roster if member.active]

        total_capacity = sum(member.capacity for member in active)
        used_capacity = sum(min(member.current_load, member.capacity) for member in active)
        utilization = (used_capacity / total_capacity * 100) if total_capacity > 0 else 0.0

        return TeamCapacity(
            available_members=[member.id for member in active if member.has_capacity],
            full_members=[member.id for member in active if not member.has_capacity],
            total_capacity=total_capacity,
            used_capacity=used_capacity,
            utilization_percent=utilization,
        )

    async def set_agent_capacity(self, agent_id: str, capacity: int) -> CommercialTeamMember:
        async with self._locks.roster:
            member = await self._get_member(agent_id)
            updated = member.with_capacity(capacity)
            await self._roster.save_roster_member(updated)
        logger.info(f"Agent {agent_id} capacity set to {capacity}")
        return updated

    async def set_agent_active(self, agent_id: str, active: bool) -> CommercialTeamMember:
        async with self._locks.roster:
            member = await self._get_member(agent_id)
            updated = member.with_active(active)
            await self._roster.save_roster_member(updated)
        logger.info(f"Agent {agent_id} {'activated' if active else 'deactivated'}")
        return updated

    async def _get_member(self, agent_id: str) -> CommercialTeamMember:
        member = await self._roster.get_member(agent_id)
        if member is None:
            raise AgentNotFoundError(agent_id)
        return member

    async def _restore(self, originals: List[CommercialTeamMember]) -> None:
        """Put roster members back to their pre-distribution state."""
        for member in reversed(originals):
            try:
                await self._roster.save_roster_member(member)
            except Exception as e:
                logger.error(f"Failed to restore load for agent {member.id}: {e}")
        if originals:
            logger.warning(f"Rolled back load changes for {len(originals)} agent(s)")
