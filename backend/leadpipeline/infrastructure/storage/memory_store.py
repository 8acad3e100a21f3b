"""
In-Memory Storage
Process-local card and roster stores
"""
from typing import Dict, List, Optional

from leadpipeline.domain.models.pipeline_card import LeadPipelineCard
from leadpipeline.domain.models.contact_attempt import ContactAttempt
from leadpipeline.domain.models.team import CommercialTeamMember, LeadDistribution
from leadpipeline.domain.interfaces.card_store import CardStore
from leadpipeline.domain.interfaces.roster_store import RosterStore


class InMemoryCardStore(CardStore):
    """
    Card store backed by dicts.

    Cards are stored without their attempts; attempts live in their own
    append-only log and are attached on load. Every read returns a deep
    copy so callers never share state with the store.
    """

    def __init__(self):
        self._cards: Dict[str, LeadPipelineCard] = {}
        self._attempts: Dict[str, List[ContactAttempt]] = {}
        self._distributions: List[LeadDistribution] = []

    async def load_card(self, card_id: str) -> Optional[LeadPipelineCard]:
        card = self._cards.get(card_id)
        if card is None:
            return None
        return self._hydrate(card)

    async def save_card(self, card: LeadPipelineCard) -> None:
        self._cards[card.id] = card.model_copy(update={"contact_attempts": []}, deep=True)

    async def list_cards(
        self,
        owner_id: Optional[str] = None,
        include_closed: bool = True
    ) -> List[LeadPipelineCard]:
        cards = []
        for card in self._cards.values():
            if owner_id is not None and card.current_owner != owner_id:
                continue
            if not include_closed and card.is_closed:
                continue
            cards.append(self._hydrate(card))
        return cards

    async def load_attempts(self, card_id: str) -> List[ContactAttempt]:
        return list(self._attempts.get(card_id, []))

    async def append_attempt(self, card_id: str, attempt: ContactAttempt) -> None:
        self._attempts.setdefault(card_id, []).append(attempt)

    async def append_distribution(self, record: LeadDistribution) -> None:
        self._distributions.append(record)

    async def list_distributions(self, card_id: str) -> List[LeadDistribution]:
        return [record for record in self._distributions if record.card_id == card_id]

    def _hydrate(self, card: LeadPipelineCard) -> LeadPipelineCard:
        return card.model_copy(
            update={"contact_attempts": list(self._attempts.get(card.id, []))},
            deep=True,
        )

    def clear(self) -> None:
        self._cards.clear()
        self._attempts.clear()
        self._distributions.clear()


class InMemoryRosterStore(RosterStore):
    """Roster store backed by a dict keyed by agent id"""

    def __init__(self, members: Optional[List[CommercialTeamMember]] = None):
        self._members: Dict[str, CommercialTeamMember] = {}
        for member in members or []:
            self._members[member.id] = member

    async def load_roster(self) -> List[CommercialTeamMember]:
        return [member.model_copy() for member in self._members.values()]

    async def get_member(self, agent_id: str) -> Optional[CommercialTeamMember]:
        member = self._members.get(agent_id)
        return member.model_copy() if member else None

    async def save_roster_member(self, member: CommercialTeamMember) -> None:
        self._members[member.id] = member.model_copy()
