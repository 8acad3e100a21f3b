"""
Supabase Storage
Card and roster stores backed by Supabase tables

Tables:
- lead_pipeline_cards: id, lead_id, current_owner, current_stage, is_closed, data (jsonb), created_at, updated_at
- lead_contact_attempts: one row per ContactAttempt
- lead_distributions: one row per LeadDistribution
- commercial_team_members: one row per CommercialTeamMember
"""
import logging
from typing import Any, Dict, List, Optional

from supabase import Client

from leadpipeline.domain.models.pipeline_card import LeadPipelineCard
from leadpipeline.domain.models.contact_attempt import ContactAttempt
from leadpipeline.domain.models.team import CommercialTeamMember, LeadDistribution
from leadpipeline.domain.models.pipeline_config import PipelineConfig
from leadpipeline.domain.interfaces.card_store import CardStore
from leadpipeline.domain.interfaces.roster_store import RosterStore
from leadpipeline.infrastructure.storage.retry import with_retry

logger = logging.getLogger(__name__)

CARDS_TABLE = "lead_pipeline_cards"
ATTEMPTS_TABLE = "lead_contact_attempts"
DISTRIBUTIONS_TABLE = "lead_distributions"
TEAM_TABLE = "commercial_team_members"


class _SupabaseStore:
    """Shared retry plumbing"""

    def __init__(self, supabase: Client, config: Optional[PipelineConfig] = None):
        self._supabase = supabase
        self._config = config or PipelineConfig.default()

    async def _run(self, operation: str, func) -> Any:
        return await with_retry(
            operation,
            func,
            max_retries=self._config.storage_max_retries,
            initial_delay=self._config.storage_initial_retry_delay,
            backoff_multiplier=self._config.storage_backoff_multiplier,
        )


class SupabaseCardStore(_SupabaseStore, CardStore):
    """
    Cards are stored as a JSON document plus a few indexed columns.
    Attempts are kept in their own table and attached on load.
    """

    async def load_card(self, card_id: str) -> Optional[LeadPipelineCard]:
        response = await self._run(
            "load_card",
            lambda: self._supabase.table(CARDS_TABLE).select("*").eq("id", card_id).limit(1).execute(),
        )
        if not response.data:
            return None
        attempts = await self.load_attempts(card_id)
        return self._to_card(response.data[0], attempts)

    async def save_card(self, card: LeadPipelineCard) -> None:
        row = {
            "id": card.id,
            "lead_id": card.lead_id,
            "current_owner": card.current_owner,
            "current_stage": card.current_stage.value,
            "is_closed": card.is_closed,
            "data": card.model_dump(mode="json", exclude={"contact_attempts"}),
            "created_at": card.created_at.isoformat(),
            "updated_at": card.updated_at.isoformat(),
        }
        await self._run(
            "save_card",
            lambda: self._supabase.table(CARDS_TABLE).upsert(row).execute(),
        )
        logger.debug(f"Saved card {card.id} ({card.current_stage.value})")

    async def list_cards(
        self,
        owner_id: Optional[str] = None,
        include_closed: bool = True
    ) -> List[LeadPipelineCard]:
        def query():
            q = self._supabase.table(CARDS_TABLE).select("*")
            if owner_id is not None:
                q = q.eq("current_owner", owner_id)
            if not include_closed:
                q = q.eq("is_closed", False)
            return q.order("created_at").execute()

        response = await self._run("list_cards", query)
        rows = response.data or []
        if not rows:
            return []

        card_ids = [row["id"] for row in rows]
        attempts_response = await self._run(
            "list_attempts",
            lambda: self._supabase.table(ATTEMPTS_TABLE)
            .select("*")
            .in_("lead_pipeline_id", card_ids)
            .order("contacted_at")
            .execute(),
        )
        by_card: Dict[str, List[ContactAttempt]] = {}
        for record in attempts_response.data or []:
            attempt = ContactAttempt.from_record(record)
            by_card.setdefault(attempt.lead_pipeline_id, []).append(attempt)

        return [self._to_card(row, by_card.get(row["id"], [])) for row in rows]

    async def load_attempts(self, card_id: str) -> List[ContactAttempt]:
        response = await self._run(
            "load_attempts",
            lambda: self._supabase.table(ATTEMPTS_TABLE)
            .select("*")
            .eq("lead_pipeline_id", card_id)
            .order("contacted_at")
            .execute(),
        )
        return [ContactAttempt.from_record(record) for record in response.data or []]

    async def append_attempt(self, card_id: str, attempt: ContactAttempt) -> None:
        record = attempt.to_record()
        record["lead_pipeline_id"] = card_id
        await self._run(
            "append_attempt",
            lambda: self._supabase.table(ATTEMPTS_TABLE).insert(record).execute(),
        )

    async def append_distribution(self, record: LeadDistribution) -> None:
        row = record.model_dump(mode="json")
        await self._run(
            "append_distribution",
            lambda: self._supabase.table(DISTRIBUTIONS_TABLE).insert(row).execute(),
        )

    async def list_distributions(self, card_id: str) -> List[LeadDistribution]:
        response = await self._run(
            "list_distributions",
            lambda: self._supabase.table(DISTRIBUTIONS_TABLE)
            .select("*")
            .eq("card_id", card_id)
            .order("distributed_at")
            .execute(),
        )
        return [LeadDistribution.model_validate(row) for row in response.data or []]

    @staticmethod
    def _to_card(row: Dict[str, Any], attempts: List[ContactAttempt]) -> LeadPipelineCard:
        data = dict(row["data"])
        data["contact_attempts"] = attempts
        return LeadPipelineCard.model_validate(data)


class SupabaseRosterStore(_SupabaseStore, RosterStore):
    """Commercial team roster"""

    async def load_roster(self) -> List[CommercialTeamMember]:
        response = await self._run(
            "load_roster",
            lambda: self._supabase.table(TEAM_TABLE).select("*").order("priority_rank").execute(),
        )
        return [CommercialTeamMember.model_validate(row) for row in response.data or []]

    async def get_member(self, agent_id: str) -> Optional[CommercialTeamMember]:
        response = await self._run(
            "get_member",
            lambda: self._supabase.table(TEAM_TABLE).select("*").eq("id", agent_id).limit(1).execute(),
        )
        if not response.data:
            return None
        return CommercialTeamMember.model_validate(response.data[0])

    async def save_roster_member(self, member: CommercialTeamMember) -> None:
        row = member.model_dump(mode="json")
        await self._run(
            "save_roster_member",
            lambda: self._supabase.table(TEAM_TABLE).upsert(row).execute(),
        )
