"""
Unit Tests for Lead Distribution
"""
import asyncio
import pytest
from unittest.mock import AsyncMock

from leadpipeline.domain.models.pipeline_card import LeadPipelineCard
from leadpipeline.domain.models.team import DistributionReason
from leadpipeline.domain.services.distribution_service import select_agent, LeadDistributionService
from leadpipeline.domain.services.entity_locks import EntityLocks
from leadpipeline.domain.exceptions import NoCapacityError, AgentNotFoundError, StorageError
from leadpipeline.infrastructure.storage.memory_store import InMemoryRosterStore

from conftest import BASE_TIME, make_lead, make_member

CATEGORIES = {"dirpf": "pf", "consultoria-clinicas": "consultoria"}


class TestSelectAgent:
    """Tests for the pure selection function"""

    def test_full_agent_is_skipped(self):
        """Agent A at capacity, agent B free: B is chosen"""
        roster = [
            make_member("agent-a", capacity=2, current_load=2),
            make_member("agent-b", capacity=2, current_load=0),
        ]
        assert select_agent(roster, [], CATEGORIES).id == "agent-b"

    def test_inactive_agent_is_skipped(self):
        roster = [
            make_member("agent-a", active=False),
            make_member("agent-b", priority_rank=5),
        ]
        assert select_agent(roster, [], CATEGORIES).id == "agent-b"

    def test_specialization_preferred(self):
        roster = [
            make_member("agent-a", priority_rank=1, specializations=["pj"]),
            make_member("agent-b", priority_rank=3, specializations=["pf"]),
        ]
        assert select_agent(roster, ["dirpf"], CATEGORIES).id == "agent-b"

    def test_unmapped_product_matches_verbatim(self):
        roster = [
            make_member("agent-a", priority_rank=1),
            make_member("agent-b", priority_rank=2, specializations=["new-product"]),
        ]
        assert select_agent(roster, ["new-product"], CATEGORIES).id == "agent-b"

    def test_tie_break_rank_then_load_then_id(self):
        roster = [
            make_member("agent-c", priority_rank=1, current_load=1),
            make_member("agent-b", priority_rank=1, current_load=0),
            make_member("agent-a", priority_rank=1, current_load=0),
            make_member("agent-z", priority_rank=2, current_load=0),
        ]
        assert select_agent(roster, [], CATEGORIES).id == "agent-a"

    def test_exclude_agent(self):
        roster = [make_member("agent-a"), make_member("agent-b", priority_rank=2)]
        assert select_agent(roster, [], CATEGORIES, exclude_agent="agent-a").id == "agent-b"

    def test_no_capacity(self):
        roster = [make_member("agent-a", capacity=1, current_load=1)]
        with pytest.raises(NoCapacityError):
            select_agent(roster, [], CATEGORIES)

    def test_empty_roster(self):
        with pytest.raises(NoCapacityError):
            select_agent([], [], CATEGORIES)


class TestLeadDistributionService:
    """Tests for LeadDistributionService"""

    def _service(self, card_store, roster_store, config, clock):
        return LeadDistributionService(card_store, roster_store, EntityLocks(), config, clock)

    @pytest.mark.asyncio
    async def test_initial_distribution(self, card_store, roster_store, config, clock):
        """Owner set, load incremented, record appended, card saved"""
        service = self._service(card_store, roster_store, config, clock)
        card = LeadPipelineCard.open(make_lead(), BASE_TIME)

        updated, record = await service.distribute(card, DistributionReason.INITIAL)

        assert updated.current_owner == "agent-a"
        assert updated.distributed_at == BASE_TIME
        assert record.agent_id == "agent-a"
        assert record.previous_agent_id is None
        assert (await roster_store.get_member("agent-a")).current_load == 1
        assert (await card_store.load_card(card.id)).current_owner == "agent-a"
        assert len(await card_store.list_distributions(card.id)) == 1

    @pytest.mark.asyncio
    async def test_redistribution_moves_load(self, card_store, roster_store, config, clock):
        service = self._service(card_store, roster_store, config, clock)
        card, _ = await service.distribute(LeadPipelineCard.open(make_lead(), BASE_TIME), DistributionReason.INITIAL)

        moved, record = await service.distribute(
            card, DistributionReason.TIMEOUT_REDISTRIBUTION, exclude_agent="agent-a"
        )

        assert moved.current_owner == "agent-b"
        assert moved.previous_owner == "agent-a"
        assert record.previous_agent_id == "agent-a"
        assert (await roster_store.get_member("agent-a")).current_load == 0
        assert (await roster_store.get_member("agent-b")).current_load == 1

    @pytest.mark.asyncio
    async def test_target_agent(self, card_store, roster_store, config, clock):
        service = self._service(card_store, roster_store, config, clock)
        card = LeadPipelineCard.open(make_lead(), BASE_TIME)

        updated, _ = await service.distribute(card, DistributionReason.MANUAL_REDISTRIBUTION, target_agent="agent-b")

        assert updated.current_owner == "agent-b"

    @pytest.mark.asyncio
    async def test_unknown_target_agent(self, card_store, roster_store, config, clock):
        service = self._service(card_store, roster_store, config, clock)

        with pytest.raises(AgentNotFoundError):
            await service.distribute(
                LeadPipelineCard.open(make_lead(), BASE_TIME),
                DistributionReason.MANUAL_REDISTRIBUTION,
                target_agent="ghost",
            )

    @pytest.mark.asyncio
    async def test_no_capacity_changes_nothing(self, card_store, config, clock):
        roster_store = InMemoryRosterStore([make_member("agent-a", capacity=1, current_load=1)])
        service = self._service(card_store, roster_store, config, clock)
        card = LeadPipelineCard.open(make_lead(), BASE_TIME)

        with pytest.raises(NoCapacityError) as exc_info:
            await service.distribute(card, DistributionReason.INITIAL)

        assert exc_info.value.lead_id == card.lead_id
        assert await card_store.load_card(card.id) is None
        assert (await roster_store.get_member("agent-a")).current_load == 1

    @pytest.mark.asyncio
    async def test_failed_save_rolls_back_load(self, roster_store, config, clock):
        card_store = AsyncMock()
        card_store.save_card.side_effect = StorageError("down", operation="save_card")
        service = self._service(card_store, roster_store, config, clock)

        with pytest.raises(StorageError):
            await service.distribute(LeadPipelineCard.open(make_lead(), BASE_TIME), DistributionReason.INITIAL)

        assert (await roster_store.get_member("agent-a")).current_load == 0

    @pytest.mark.asyncio
    async def test_cancellation_rolls_back_load(self, roster_store, config, clock):
        card_store = AsyncMock()
        card_store.save_card.side_effect = asyncio.CancelledError()
        service = self._service(card_store, roster_store, config, clock)

        with pytest.raises(asyncio.CancelledError):
            await service.distribute(LeadPipelineCard.open(make_lead(), BASE_TIME), DistributionReason.INITIAL)

        assert (await roster_store.get_member("agent-a")).current_load == 0

    @pytest.mark.asyncio
    async def test_concurrent_distribution_respects_capacity(self, card_store, config, clock):
        """Two agents with one slot each: three leads, exactly one fails"""
        roster_store = InMemoryRosterStore([
            make_member("agent-a", capacity=1),
            make_member("agent-b", capacity=1),
        ])
        service = self._service(card_store, roster_store, config, clock)
        cards = [LeadPipelineCard.open(make_lead(f"Lead {i}"), BASE_TIME) for i in range(3)]

        results = await asyncio.gather(
            *(service.distribute(card, DistributionReason.INITIAL) for card in cards),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, NoCapacityError)]
        owners = sorted(r[0].current_owner for r in results if not isinstance(r, Exception))
        assert len(failures) == 1
        assert owners == ["agent-a", "agent-b"]
        for member in await roster_store.load_roster():
            assert member.current_load <= member.capacity

    @pytest.mark.asyncio
    async def test_release_floors_at_zero(self, card_store, roster_store, config, clock):
        service = self._service(card_store, roster_store, config, clock)

        await service.release("agent-a")

        assert (await roster_store.get_member("agent-a")).current_load == 0


class TestTeamCapacity:
    """Tests for roster capacity administration"""

    @pytest.mark.asyncio
    async def test_capacity_snapshot(self, card_store, config, clock):
        roster_store = InMemoryRosterStore([
            make_member("agent-a", capacity=4, current_load=4),
            make_member("agent-b", capacity=4, current_load=1),
            make_member("agent-c", capacity=10, current_load=0, active=False),
        ])
        service = LeadDistributionService(card_store, roster_store, EntityLocks(), config, clock)

        capacity = await service.get_team_capacity()

        assert capacity.available_members == ["agent-b"]
        assert capacity.full_members == ["agent-a"]
        assert capacity.total_capacity == 8
        assert capacity.used_capacity == 5
        assert capacity.utilization_percent == pytest.approx(62.5)

    @pytest.mark.asyncio
    async def test_set_capacity_and_active(self, card_store, roster_store, config, clock):
        service = LeadDistributionService(card_store, roster_store, EntityLocks(), config, clock)

        await service.set_agent_capacity("agent-a", 0)
        await service.set_agent_active("agent-b", False)

        assert (await roster_store.get_member("agent-a")).capacity == 0
        assert (await roster_store.get_member("agent-b")).active is False
        with pytest.raises(NoCapacityError):
            await service.distribute(LeadPipelineCard.open(make_lead(), BASE_TIME), DistributionReason.INITIAL)

    @pytest.mark.asyncio
    async def test_unknown_agent(self, card_store, roster_store, config, clock):
        service = LeadDistributionService(card_store, roster_store, EntityLocks(), config, clock)

        with pytest.raises(AgentNotFoundError):
            await service.set_agent_capacity("ghost", 3)
