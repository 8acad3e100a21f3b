"""
Task Scheduler & Timeout Redistributor
Creates per-stage tasks and sweeps overdue ones
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple
from datetime import datetime, timedelta

from leadpipeline.domain.models.pipeline_stage import PipelineStage
from leadpipeline.domain.models.pipeline_card import LeadPipelineCard
from leadpipeline.domain.models.lead_task import (
    LeadTask,
    TaskStatus,
    TaskNotification,
    NotificationKind,
    TaskStats,
)
from leadpipeline.domain.models.team import DistributionReason
from leadpipeline.domain.models.pipeline_config import PipelineConfig
from leadpipeline.domain.interfaces.card_store import CardStore
from leadpipeline.domain.interfaces.notification_sender import NotificationSender
from leadpipeline.domain.interfaces.clock import Clock, SystemClock
from leadpipeline.domain.services.entity_locks import EntityLocks
from leadpipeline.domain.services.distribution_service import LeadDistributionService
from leadpipeline.domain.exceptions import NoCapacityError, PipelineError, TaskNotFoundError

logger = logging.getLogger(__name__)


class TaskScheduler:
    """
    Task lifecycle and timeout redistribution.

    Overdue handling per pending task past its due date:
    - budget left: redistribute to another agent, bump attempts, reset due date
    - budget spent: mark OVERDUE and escalate to the commercial director

    Notifications are best effort. A failed send is logged and skipped.
    """

    def __init__(
        self,
        card_store: CardStore,
        distribution: LeadDistributionService,
        notifier: NotificationSender,
        locks: EntityLocks,
        config: Optional[PipelineConfig] = None,
        clock: Optional[Clock] = None
    ):
        self._cards = card_store
        self._distribution = distribution
        self._notifier = notifier
        self._locks = locks
        self._config = config or PipelineConfig.default()
        self._clock = clock or SystemClock()
        self.last_sweep_failures = 0
        self.last_sweep_kept = 0

    # ------------------------------------------------------------------
    # Task creation
    # ------------------------------------------------------------------

    def deadline_for(self, stage: PipelineStage, now: datetime) -> datetime:
        template = self._config.template_for(stage)
        hours = template.deadline_hours if template else self._config.contact_deadline_hours
        return now + timedelta(hours=hours)

    def build_task(
        self,
        card: LeadPipelineCard,
        stage: PipelineStage,
        now: datetime
    ) -> Optional[LeadTask]:
        """
        Task for a card entering stage, from the stage's template.

        Returns None for the terminal stage. Recontact tasks fall due on
        the scheduled recontact date.
        """
        if stage.is_terminal:
            return None

        template = self._config.template_for(stage)
        if template is None:
            return None

        if stage == PipelineStage.RECONTACT and card.scheduled_recontact is not None:
            due_at = card.scheduled_recontact.recontact_at
        else:
            due_at = self.deadline_for(stage, now)

        return LeadTask(
            lead_pipeline_id=card.id,
            stage=stage,
            title=f"{template.title} - {card.lead.name}",
            description=template.description,
            task_type=template.task_type,
            priority=template.priority,
            owner_id=card.current_owner,
            due_at=due_at,
            created_at=now,
            max_redistribution_attempts=self._config.max_redistribution_attempts,
        )

    async def create_task(
        self,
        card: LeadPipelineCard,
        stage: PipelineStage,
        now: datetime
    ) -> Tuple[LeadPipelineCard, Optional[LeadTask]]:
        """Build, attach, persist and announce the task for stage."""
        task = self.build_task(card, stage, now)
        if task is None:
            return card, None

        card = card.with_task(task, now)
        await self._cards.save_card(card)
        return await self.announce_created(card, task)

    async def announce_created(
        self,
        card: LeadPipelineCard,
        task: LeadTask,
        copy_director: bool = True
    ) -> Tuple[LeadPipelineCard, LeadTask]:
        """Send task_created to the owner (and director copy) and persist the log."""
        now = self._clock.now()
        payload = self._payload(card, task)

        announced = task
        if task.owner_id:
            announced = await self._notify(announced, task.owner_id, NotificationKind.TASK_CREATED, payload, now)
        if copy_director and self._config.notify_commercial_director:
            announced = await self._notify(
                announced,
                self._config.commercial_director_recipient,
                NotificationKind.TASK_CREATED,
                payload,
                now,
            )

        if announced is not task:
            card = card.with_task(announced, now)
            await self._cards.save_card(card)

        logger.info(f"Created task {task.id} ({task.stage.value}) for card {card.id}, due {task.due_at.isoformat()}")
        return card, announced

    # ------------------------------------------------------------------
    # Task completion
    # ------------------------------------------------------------------

    def complete_task(
        self,
        card: LeadPipelineCard,
        task_id: str,
        now: datetime,
        notes: Optional[str] = None
    ) -> Tuple[LeadPipelineCard, LeadTask]:
        """
        Mark a task done. Completing a closed task is a no-op.

        Raises:
            TaskNotFoundError: task not on this card
        """
        task = card.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        if not task.is_open:
            return card, task

        done = task.with_status(TaskStatus.DONE, now, notes)
        return card.with_task(done, now), done

    def close_stage_tasks(
        self,
        card: LeadPipelineCard,
        stage: PipelineStage,
        now: datetime
    ) -> LeadPipelineCard:
        """Mark open tasks of a stage the card just left as done."""
        for task in card.open_tasks:
            if task.stage == stage:
                card = card.with_task(task.with_status(TaskStatus.DONE, now, "Stage advanced"), now)
        return card

    def cancel_open_tasks(
        self,
        card: LeadPipelineCard,
        now: datetime,
        notes: Optional[str] = None
    ) -> LeadPipelineCard:
        for task in card.open_tasks:
            card = card.with_task(task.with_status(TaskStatus.CANCELLED, now, notes), now)
        return card

    def get_task_stats(self, cards: Iterable[LeadPipelineCard], now: Optional[datetime] = None) -> TaskStats:
        now = now or self._clock.now()
        by_status: Dict[TaskStatus, int] = {status: 0 for status in TaskStatus}
        by_owner: Dict[str, int] = {}
        total = 0
        overdue_now = 0

        for card in cards:
            for task in card.tasks:
                total += 1
                by_status[task.status] += 1
                if task.owner_id:
                    by_owner[task.owner_id] = by_owner.get(task.owner_id, 0) + 1
                if task.is_overdue_at(now):
                    overdue_now += 1

        return TaskStats(total=total, by_status=by_status, by_owner=by_owner, overdue_now=overdue_now)

    # ------------------------------------------------------------------
    # Overdue sweep
    # ------------------------------------------------------------------

    async def check_overdue(self, now: Optional[datetime] = None) -> List[LeadTask]:
        """
        Sweep pending tasks whose due date has passed.

        Each task is handled under its card lock. A failure on one card is
        logged and counted in last_sweep_failures; the sweep continues.
        Tasks left with their owner for lack of capacity are counted in
        last_sweep_kept.

        Returns:
            Updated tasks (redistributed ones stay PENDING, exhausted ones are OVERDUE)
        """
        now = now or self._clock.now()
        self.last_sweep_failures = 0
        self.last_sweep_kept = 0

        cards = await self._cards.list_cards(include_closed=False)
        candidates = [
            (card.id, task.id)
            for card in cards
            for task in card.tasks
            if task.is_overdue_at(now)
        ]
        if not candidates:
            return []

        logger.info(f"Overdue sweep found {len(candidates)} task(s)")

        handled: List[LeadTask] = []
        for card_id, task_id in candidates:
            try:
                async with self._locks.card(card_id):
                    task = await self._handle_overdue(card_id, task_id, now)
                if task is not None:
                    handled.append(task)
            except PipelineError as e:
                self.last_sweep_failures += 1
                logger.error(f"Overdue handling failed for task {task_id} on card {card_id}: {e.message}")

        return handled

    async def _handle_overdue(self, card_id: str, task_id: str, now: datetime) -> Optional[LeadTask]:
        # Re-read under the lock; the task may have been completed meanwhile
        card = await self._cards.load_card(card_id)
        if card is None or card.is_closed:
            return None
        task = card.get_task(task_id)
        if task is None or not task.is_overdue_at(now):
            return None

        if task.can_redistribute:
            return await self._redistribute(card, task, now)
        return await self._escalate(card, task, now)

    async def _redistribute(self, card: LeadPipelineCard, task: LeadTask, now: datetime) -> LeadTask:
        previous_owner = card.current_owner
        due_at = self.deadline_for(task.stage, now)

        def reassign(updated: LeadPipelineCard) -> LeadPipelineCard:
            return updated.with_task(task.with_redistribution(updated.current_owner, due_at), now)

        try:
            card, _ = await self._distribution.distribute(
                card,
                DistributionReason.TIMEOUT_REDISTRIBUTION,
                exclude_agent=previous_owner,
                notes=f"Task {task.id} overdue",
                finalize=reassign,
            )
        except NoCapacityError:
            # Keep the owner but still spend one attempt so the budget bounds retries
            kept = task.with_redistribution(previous_owner, due_at)
            card = card.with_task(kept, now)
            await self._cards.save_card(card)
            self.last_sweep_kept += 1
            logger.warning(
                f"Task {task.id} overdue but no other agent has capacity; "
                f"kept with {previous_owner} (attempt {kept.redistribution_attempts}/{kept.max_redistribution_attempts})"
            )
            return kept

        updated = card.get_task(task.id)
        payload = self._payload(card, updated)
        payload["previous_owner"] = previous_owner

        notified = updated
        if card.current_owner:
            notified = await self._notify(notified, card.current_owner, NotificationKind.LEAD_REDISTRIBUTED, payload, now)
        if previous_owner:
            notified = await self._notify(notified, previous_owner, NotificationKind.TASK_REASSIGNED, payload, now)
        if notified is not updated:
            await self._cards.save_card(card.with_task(notified, now))

        logger.info(
            f"Task {task.id} redistributed {previous_owner} -> {card.current_owner} "
            f"(attempt {notified.redistribution_attempts}/{notified.max_redistribution_attempts})"
        )
        return notified

    async def _escalate(self, card: LeadPipelineCard, task: LeadTask, now: datetime) -> LeadTask:
        overdue = task.with_status(
            TaskStatus.OVERDUE,
            now,
            f"Redistribution limit reached ({task.redistribution_attempts}/{task.max_redistribution_attempts})",
        )
        card = card.with_task(overdue, now)
        await self._cards.save_card(card)

        payload = self._payload(card, overdue)
        notified = overdue
        if overdue.owner_id:
            notified = await self._notify(notified, overdue.owner_id, NotificationKind.TASK_OVERDUE, payload, now)
        if self._config.notify_commercial_director:
            notified = await self._notify(
                notified,
                self._config.commercial_director_recipient,
                NotificationKind.ESCALATION,
                payload,
                now,
            )
        if notified is not overdue:
            await self._cards.save_card(card.with_task(notified, now))

        logger.warning(f"Task {task.id} on card {card.id} escalated after {task.redistribution_attempts} redistribution(s)")
        return notified

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def _payload(self, card: LeadPipelineCard, task: LeadTask) -> Dict[str, Any]:
        return {
            "card_id": card.id,
            "lead_id": card.lead_id,
            "lead_name": card.lead.name,
            "task_id": task.id,
            "task_title": task.title,
            "stage": task.stage.value,
            "owner_id": task.owner_id,
            "due_at": task.due_at.isoformat(),
            "redistribution_attempts": task.redistribution_attempts,
        }

    async def _notify(
        self,
        task: LeadTask,
        recipient: str,
        kind: NotificationKind,
        payload: Dict[str, Any],
        now: datetime
    ) -> LeadTask:
        """Send one notification; on success record it in the task's log."""
        try:
            await self._notifier.notify(recipient, kind.value, payload)
        except Exception as e:
            logger.warning(f"Failed to send {kind.value} notification to {recipient}: {e}")
            return task
        return task.with_notification(TaskNotification(kind=kind, recipient=recipient, sent_at=now))
