"""
Card Store Interface
Persistence boundary for pipeline cards, attempts and distribution records
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from leadpipeline.domain.models.pipeline_card import LeadPipelineCard
from leadpipeline.domain.models.contact_attempt import ContactAttempt
from leadpipeline.domain.models.team import LeadDistribution


class CardStore(ABC):
    """
    Abstract storage for pipeline cards.

    Implementations raise StorageError when the backend fails after their
    own retry policy is exhausted.
    """

    @abstractmethod
    async def load_card(self, card_id: str) -> Optional[LeadPipelineCard]:
        """Load a card (with attempts and tasks), or None if unknown"""
        pass

    @abstractmethod
    async def save_card(self, card: LeadPipelineCard) -> None:
        """Insert or replace a card"""
        pass

    @abstractmethod
    async def list_cards(
        self,
        owner_id: Optional[str] = None,
        include_closed: bool = True
    ) -> List[LeadPipelineCard]:
        """
        List cards.

        Args:
            owner_id: Only cards currently owned by this agent
            include_closed: Include cards in the terminal stage
        """
        pass

    @abstractmethod
    async def load_attempts(self, card_id: str) -> List[ContactAttempt]:
        """Attempts recorded for a card, in insertion order"""
        pass

    @abstractmethod
    async def append_attempt(self, card_id: str, attempt: ContactAttempt) -> None:
        """Append an immutable attempt record"""
        pass

    @abstractmethod
    async def append_distribution(self, record: LeadDistribution) -> None:
        """Append a distribution audit record"""
        pass

    @abstractmethod
    async def list_distributions(self, card_id: str) -> List[LeadDistribution]:
        """Distribution records for a card, oldest first"""
        pass
