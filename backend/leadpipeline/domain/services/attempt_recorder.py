"""
Contact Attempt Recorder
Appends contact attempts to pipeline cards
"""
import logging
from typing import Optional
from datetime import timedelta, timezone

from leadpipeline.domain.models.contact_attempt import ContactAttempt, ContactAttemptInput
from leadpipeline.domain.models.pipeline_card import LeadPipelineCard
from leadpipeline.domain.models.pipeline_config import PipelineConfig
from leadpipeline.domain.interfaces.card_store import CardStore
from leadpipeline.domain.interfaces.clock import Clock, SystemClock
from leadpipeline.domain.exceptions import CardNotFoundError, InvalidAttemptError

logger = logging.getLogger(__name__)


class ContactAttemptRecorder:
    """
    Records attempts without touching stage or tasks.

    Callers serialize on the card lock; the recorder itself takes none.
    """

    def __init__(
        self,
        card_store: CardStore,
        config: Optional[PipelineConfig] = None,
        clock: Optional[Clock] = None
    ):
        self._cards = card_store
        self._config = config or PipelineConfig.default()
        self._clock = clock or SystemClock()

    def build_attempt(self, card: LeadPipelineCard, attempt_input: ContactAttemptInput) -> ContactAttempt:
        """
        Validate an attempt payload against a card.

        Raises:
            InvalidAttemptError: card closed or timestamp in the future
        """
        now = self._clock.now()

        if card.is_closed:
            raise InvalidAttemptError(f"Card {card.id} is closed; attempts can no longer be recorded")

        contacted_at = attempt_input.contacted_at or now
        if contacted_at.tzinfo is None:
            contacted_at = contacted_at.replace(tzinfo=timezone.utc)

        tolerance = timedelta(seconds=self._config.clock_skew_tolerance_seconds)
        if contacted_at > now + tolerance:
            raise InvalidAttemptError(
                f"Attempt timestamp {contacted_at.isoformat()} is in the future"
            )

        return ContactAttempt(
            lead_pipeline_id=card.id,
            channel=attempt_input.channel,
            result=attempt_input.result,
            contacted_at=contacted_at,
            agent_id=attempt_input.agent_id,
            duration_minutes=attempt_input.duration_minutes,
            notes=attempt_input.notes,
            next_action=attempt_input.next_action,
            next_action_at=attempt_input.next_action_at,
        )

    async def record(self, card_id: str, attempt_input: ContactAttemptInput) -> ContactAttempt:
        """
        Append an attempt to a card.

        Raises:
            CardNotFoundError: unknown card
            InvalidAttemptError: rejected payload
            StorageError: persistence failed
        """
        card = await self._cards.load_card(card_id)
        if card is None:
            raise CardNotFoundError(card_id)

        attempt = self.build_attempt(card, attempt_input)

        await self._cards.append_attempt(card_id, attempt)
        await self._cards.save_card(card.with_attempt(attempt, self._clock.now()))

        logger.info(
            f"Recorded {attempt.channel.value} attempt on card {card_id}: "
            f"{attempt.result.value} by {attempt.agent_id}"
        )
        return attempt
