"""
Pipeline Monitor Worker
Background worker that sweeps overdue lead tasks and assigns backlog leads.

Run as separate process:
    python -m leadpipeline.workers.pipeline_monitor_worker
"""
import asyncio
import logging
import signal
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field

from leadpipeline.domain.models.lead_task import TaskStatus
from leadpipeline.domain.services.pipeline_service import PipelineService
from leadpipeline.core.config import LOG_FORMAT

logger = logging.getLogger(__name__)

# Configure logging for worker
logging.basicConfig(
    level=logging.INFO,
    format=LOG_FORMAT
)


class MonitoringResult(BaseModel):
    """Outcome of one monitoring tick"""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    tasks_checked: int = 0
    redistributed: int = 0
    kept: int = 0
    escalated: int = 0
    intake_assigned: int = 0
    failures: int = 0
    error: Optional[str] = None


class PipelineMonitorWorker:
    """
    Background worker for the lead pipeline.

    Each tick:
    1. Assign leads waiting in the intake backlog
    2. Sweep overdue tasks (redistribute or escalate)
    3. Record a MonitoringResult in a bounded history
    """

    # Worker configuration
    MAX_CONSECUTIVE_ERRORS = 10
    MAX_HISTORY = 100

    def __init__(self, service: Optional[PipelineService] = None, poll_interval: Optional[float] = None):
        self.running = False
        self._service = service
        self._poll_interval = poll_interval
        self._history: List[MonitoringResult] = []

    @property
    def poll_interval(self) -> float:
        if self._poll_interval is not None:
            return self._poll_interval
        return self._service.config.sweep_interval_seconds

    async def initialize(self) -> None:
        """Build the pipeline service if one was not injected."""
        logger.info("Initializing Pipeline Monitor Worker...")
        if self._service is None:
            # Lazy import keeps the worker importable without Supabase settings
            from leadpipeline.services.pipeline_factory import get_pipeline_service
            self._service = get_pipeline_service()
        logger.info("Pipeline Monitor Worker initialized successfully")

    async def run(self) -> None:
        """
        Main worker loop.

        Errors back off linearly (capped at 60s); too many in a row stop
        the worker.
        """
        await self.initialize()

        self.running = True
        consecutive_errors = 0

        logger.info(f"Pipeline Monitor Worker started - sweeping every {self.poll_interval}s")

        while self.running:
            try:
                result = await self.run_once()
                if result.error is None:
                    consecutive_errors = 0
                    await asyncio.sleep(self.poll_interval)
                    continue

                consecutive_errors += 1
                logger.error(f"Worker error ({consecutive_errors}): {result.error}")

                if consecutive_errors >= self.MAX_CONSECUTIVE_ERRORS:
                    logger.critical("Too many consecutive errors, stopping worker")
                    break

                await asyncio.sleep(min(5 * consecutive_errors, 60))

            except asyncio.CancelledError:
                logger.info("Worker received cancellation signal")
                break

        await self.shutdown()

    async def run_once(self) -> MonitoringResult:
        """Run a single monitoring tick and record it."""
        result = MonitoringResult()
        try:
            assigned = await self._service.assign_pending_leads()
            result.intake_assigned = len(assigned)

            tasks = await self._service.run_overdue_sweep()
            result.tasks_checked = len(tasks)
            result.escalated = sum(1 for task in tasks if task.status == TaskStatus.OVERDUE)
            result.kept = self._service.scheduler.last_sweep_kept
            result.redistributed = len(tasks) - result.escalated - result.kept
            result.failures = self._service.scheduler.last_sweep_failures
        except Exception as e:
            result.error = str(e)
            logger.error(f"Monitoring tick failed: {e}")

        self._record(result)

        if result.tasks_checked or result.intake_assigned:
            logger.info(
                f"Monitoring tick: {result.redistributed} redistributed, "
                f"{result.kept} kept, "
                f"{result.escalated} escalated, {result.intake_assigned} backlog assigned"
            )
        return result

    def _record(self, result: MonitoringResult) -> None:
        self._history.append(result)
        if len(self._history) > self.MAX_HISTORY:
            self._history = self._history[-self.MAX_HISTORY:]

    def get_history(self) -> List[MonitoringResult]:
        return list(self._history)

    async def shutdown(self) -> None:
        """Graceful shutdown."""
        if not self.running and not self._history:
            return
        logger.info("Shutting down Pipeline Monitor Worker...")
        self.running = False

        stats = self.get_stats()
        logger.info(
            f"Pipeline Monitor Worker shutdown complete. "
            f"Ticks: {stats['ticks']}, "
            f"Redistributed: {stats['redistributed']}, "
            f"Kept: {stats['kept']}, "
            f"Escalated: {stats['escalated']}, "
            f"Failures: {stats['failures']}"
        )

    def get_stats(self) -> dict:
        """Aggregate statistics over the recorded history."""
        return {
            "running": self.running,
            "ticks": len(self._history),
            "redistributed": sum(r.redistributed for r in self._history),
            "kept": sum(r.kept for r in self._history),
            "escalated": sum(r.escalated for r in self._history),
            "intake_assigned": sum(r.intake_assigned for r in self._history),
            "failures": sum(r.failures for r in self._history),
            "errors": sum(1 for r in self._history if r.error),
            "last_run": self._history[-1].timestamp.isoformat() if self._history else None,
        }


async def main():
    """Entry point for running the monitor worker as separate process."""
    worker = PipelineMonitorWorker()

    # Handle shutdown signals
    loop = asyncio.get_event_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        worker.running = False

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    try:
        await worker.run()
    except KeyboardInterrupt:
        logger.info("Worker interrupted by user")
    finally:
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
