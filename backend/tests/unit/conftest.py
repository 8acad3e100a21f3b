"""
Shared fixtures for lead pipeline unit tests
"""
import pytest
from datetime import datetime, timedelta, timezone

from leadpipeline.domain.interfaces.clock import Clock
from leadpipeline.domain.models.pipeline_config import PipelineConfig
from leadpipeline.domain.models.team import CommercialTeamMember
from leadpipeline.domain.models.lead import Lead
from leadpipeline.domain.services.pipeline_service import PipelineService
from leadpipeline.infrastructure.storage.memory_store import InMemoryCardStore, InMemoryRosterStore
from leadpipeline.infrastructure.notifications.senders import LoggingNotificationSender

# Monday, 12:00 UTC
BASE_TIME = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


class FakeClock(Clock):
    """Manually advanced clock"""

    def __init__(self, start: datetime = BASE_TIME):
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


def make_member(agent_id: str, **overrides) -> CommercialTeamMember:
    data = {"id": agent_id, "name": f"Agent {agent_id}", "capacity": 5, "current_load": 0, "priority_rank": 1}
    data.update(overrides)
    return CommercialTeamMember(**data)


def make_lead(name: str = "Dr. Ana Souza", **overrides) -> Lead:
    data = {"name": name, "phone": "+5511999990000", "product_interests": ["dirpf"]}
    data.update(overrides)
    return Lead(**data)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return PipelineConfig(timezone="UTC", commercial_director_recipient="director-1")


@pytest.fixture
def card_store():
    return InMemoryCardStore()


@pytest.fixture
def roster_store():
    return InMemoryRosterStore([
        make_member("agent-a", priority_rank=1),
        make_member("agent-b", priority_rank=2),
    ])


@pytest.fixture
def notifier():
    return LoggingNotificationSender()


@pytest.fixture
def service(card_store, roster_store, notifier, config, clock):
    return PipelineService(card_store, roster_store, notifier, config=config, clock=clock)
