"""
Unit Tests for the Pipeline Monitor Worker
"""
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from leadpipeline.domain.exceptions import StorageError
from leadpipeline.domain.services.pipeline_service import PipelineService
from leadpipeline.infrastructure.storage.memory_store import InMemoryRosterStore
from leadpipeline.workers.pipeline_monitor_worker import PipelineMonitorWorker, MonitoringResult

from conftest import make_lead, make_member


class TestRunOnce:
    """Tests for a single monitoring tick"""

    @pytest.mark.asyncio
    async def test_idle_tick(self, service):
        worker = PipelineMonitorWorker(service)

        result = await worker.run_once()

        assert result.error is None
        assert result.tasks_checked == 0
        assert worker.get_stats()["ticks"] == 1

    @pytest.mark.asyncio
    async def test_redistributes_overdue_tasks(self, service, clock):
        await service.create_lead(make_lead())
        clock.advance(hours=25)
        worker = PipelineMonitorWorker(service)

        result = await worker.run_once()

        assert result.redistributed == 1
        assert result.escalated == 0
        assert worker.get_stats()["redistributed"] == 1

    @pytest.mark.asyncio
    async def test_task_kept_when_no_other_agent(self, card_store, notifier, config, clock):
        roster = InMemoryRosterStore([make_member("agent-a")])
        service = PipelineService(card_store, roster, notifier, config=config, clock=clock)
        await service.create_lead(make_lead())
        clock.advance(hours=25)
        worker = PipelineMonitorWorker(service)

        result = await worker.run_once()

        assert result.tasks_checked == 1
        assert result.kept == 1
        assert result.redistributed == 0
        assert result.escalated == 0
        assert worker.get_stats()["kept"] == 1

    @pytest.mark.asyncio
    async def test_errors_are_recorded(self):
        service = MagicMock()
        service.assign_pending_leads = AsyncMock(side_effect=StorageError("db down", operation="list_cards"))
        worker = PipelineMonitorWorker(service, poll_interval=1)

        result = await worker.run_once()

        assert result.error == "db down"
        assert worker.get_stats()["errors"] == 1

    @pytest.mark.asyncio
    async def test_history_is_bounded(self, service):
        worker = PipelineMonitorWorker(service)
        for _ in range(PipelineMonitorWorker.MAX_HISTORY):
            worker._record(MonitoringResult())

        await worker.run_once()

        assert len(worker.get_history()) == PipelineMonitorWorker.MAX_HISTORY


class TestWorkerLoop:
    """Tests for the run loop"""

    def test_poll_interval_defaults_to_config(self, service):
        assert PipelineMonitorWorker(service).poll_interval == service.config.sweep_interval_seconds
        assert PipelineMonitorWorker(service, poll_interval=7).poll_interval == 7

    @pytest.mark.asyncio
    async def test_stops_after_consecutive_errors(self):
        service = MagicMock()
        service.assign_pending_leads = AsyncMock(side_effect=RuntimeError("boom"))
        worker = PipelineMonitorWorker(service, poll_interval=1)

        with patch("leadpipeline.workers.pipeline_monitor_worker.asyncio.sleep", new_callable=AsyncMock) as sleep:
            await worker.run()

        assert worker.running is False
        assert worker.get_stats()["errors"] == PipelineMonitorWorker.MAX_CONSECUTIVE_ERRORS
        delays = [call.args[0] for call in sleep.await_args_list]
        assert delays[:3] == [5, 10, 15]
        assert max(delays) == 45

    @pytest.mark.asyncio
    async def test_stops_when_flag_cleared(self, service):
        worker = PipelineMonitorWorker(service, poll_interval=1)

        async def stop(_):
            worker.running = False

        with patch("leadpipeline.workers.pipeline_monitor_worker.asyncio.sleep", side_effect=stop):
            await worker.run()

        assert worker.get_stats()["ticks"] == 1
