"""
Tests for the Lead Pipeline API
Endpoints run against an in-memory pipeline service
"""
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from leadpipeline.main import app, settings
from leadpipeline.api.v1.dependencies import get_pipeline_service, to_http_exception
from leadpipeline.domain.exceptions import (
    CardNotFoundError,
    InvalidAttemptError,
    InvalidTransitionError,
    NoCapacityError,
    PipelineError,
)

PREFIX = settings.api_prefix

LEAD_BODY = {
    "name": "Dr. Ana Souza",
    "phone": "+5511999990000",
    "product_interests": ["dirpf"],
    "source": "referral",
}


@pytest_asyncio.fixture
async def client(service):
    app.dependency_overrides[get_pipeline_service] = lambda: service
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()


class TestHealthEndpoint:
    """Tests for / and /health"""

    @pytest.mark.asyncio
    async def test_root(self, client):
        response = await client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "running"

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestPipelineEndpoints:
    """Tests for /pipeline endpoints"""

    async def _create(self, client) -> dict:
        response = await client.post(f"{PREFIX}/pipeline/leads", json=LEAD_BODY)
        assert response.status_code == 201
        return response.json()

    @pytest.mark.asyncio
    async def test_create_lead(self, client):
        card = await self._create(client)

        assert card["current_stage"] == "new_lead"
        assert card["current_owner"] == "agent-a"
        assert card["lead"]["source"] == "referral"
        assert len(card["tasks"]) == 1

    @pytest.mark.asyncio
    async def test_create_lead_validates_body(self, client):
        response = await client.post(f"{PREFIX}/pipeline/leads", json={"name": ""})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_get_unknown_card(self, client):
        response = await client.get(f"{PREFIX}/pipeline/cards/missing")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_transition_flow(self, client):
        card = await self._create(client)
        base = f"{PREFIX}/pipeline/cards/{card['id']}"

        allowed = await client.get(f"{base}/transitions")
        assert allowed.json() == ["call_1", "recontact", "outcome"]

        moved = await client.post(f"{base}/transition", json={"next_stage": "call_1", "agent_id": "agent-a"})
        assert moved.status_code == 200
        assert moved.json()["current_stage"] == "call_1"

        illegal = await client.post(f"{base}/transition", json={"next_stage": "new_lead"})
        assert illegal.status_code == 409

        closed = await client.post(f"{base}/transition", json={
            "next_stage": "outcome",
            "agent_id": "agent-a",
            "outcome": {"qualification": "unqualified", "reason": "No budget", "decided_by": "agent-a"},
        })
        assert closed.status_code == 200
        assert closed.json()["status"] == "unqualified"

    @pytest.mark.asyncio
    async def test_record_attempt(self, client):
        card = await self._create(client)

        response = await client.post(
            f"{PREFIX}/pipeline/cards/{card['id']}/attempts",
            json={"channel": "call", "result": "no_answer", "agent_id": "agent-a", "duration_minutes": 1.5},
        )

        assert response.status_code == 201
        assert response.json()["lead_pipeline_id"] == card["id"]

    @pytest.mark.asyncio
    async def test_future_attempt_rejected(self, client):
        card = await self._create(client)

        response = await client.post(
            f"{PREFIX}/pipeline/cards/{card['id']}/attempts",
            json={
                "channel": "call",
                "result": "success",
                "agent_id": "agent-a",
                "contacted_at": "2030-01-01T00:00:00Z",
            },
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_redistribute_and_audit(self, client):
        card = await self._create(client)
        base = f"{PREFIX}/pipeline/cards/{card['id']}"

        response = await client.post(f"{base}/redistribute", json={"target_agent_id": "agent-b"})
        assert response.status_code == 200
        assert response.json()["current_owner"] == "agent-b"

        distributions = await client.get(f"{base}/distributions")
        assert [d["reason"] for d in distributions.json()] == ["initial", "manual_redistribution"]

    @pytest.mark.asyncio
    async def test_redistribute_to_unknown_agent(self, client):
        card = await self._create(client)

        response = await client.post(
            f"{PREFIX}/pipeline/cards/{card['id']}/redistribute",
            json={"target_agent_id": "agent-z"},
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_complete_task(self, client):
        card = await self._create(client)
        task_id = card["tasks"][0]["id"]

        response = await client.post(
            f"{PREFIX}/pipeline/cards/{card['id']}/tasks/{task_id}/complete",
            json={"notes": "Reached the lead"},
        )

        assert response.status_code == 200
        assert response.json()["status"] == "done"

    @pytest.mark.asyncio
    async def test_sweep(self, client, clock):
        await self._create(client)
        clock.advance(hours=25)

        response = await client.post(f"{PREFIX}/pipeline/sweep")

        assert response.status_code == 200
        assert response.json()["tasks"][0]["owner_id"] == "agent-b"


class TestAnalyticsEndpoints:
    """Tests for /pipeline-analytics endpoints"""

    @pytest.mark.asyncio
    async def test_card_analytics(self, client):
        created = await client.post(f"{PREFIX}/pipeline/leads", json=LEAD_BODY)
        card_id = created.json()["id"]
        await client.post(
            f"{PREFIX}/pipeline/cards/{card_id}/attempts",
            json={"channel": "whatsapp", "result": "success", "agent_id": "agent-a"},
        )

        response = await client.get(f"{PREFIX}/pipeline-analytics/{card_id}")

        assert response.status_code == 200
        data = response.json()
        assert data["total_attempts"] == 1
        assert data["performance"]["best_performing_type"] == "whatsapp"
        assert len(data["trends"]["hourly"]) == 24

    @pytest.mark.asyncio
    async def test_unknown_analytics_target(self, client):
        response = await client.get(f"{PREFIX}/pipeline-analytics/nobody")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_team_and_stats(self, client):
        await client.post(f"{PREFIX}/pipeline/leads", json=LEAD_BODY)

        team = await client.get(f"{PREFIX}/pipeline-analytics/team")
        stats = await client.get(f"{PREFIX}/pipeline-analytics/stats")
        tasks = await client.get(f"{PREFIX}/pipeline-analytics/tasks")

        assert team.status_code == 200
        assert "agent-a" in team.json()["by_agent"]
        assert stats.json()["total_leads"] == 1
        assert tasks.json()["total"] == 1


class TestTeamEndpoints:
    """Tests for /team endpoints"""

    @pytest.mark.asyncio
    async def test_roster_and_capacity(self, client):
        added = await client.post(f"{PREFIX}/team/members", json={"id": "agent-c", "name": "Carla", "capacity": 3})
        assert added.status_code == 201

        roster = await client.get(f"{PREFIX}/team/")
        assert {m["id"] for m in roster.json()} == {"agent-a", "agent-b", "agent-c"}

        updated = await client.patch(f"{PREFIX}/team/members/agent-c/capacity", json={"capacity": 4})
        assert updated.json()["capacity"] == 4

        deactivated = await client.patch(f"{PREFIX}/team/members/agent-b/active", json={"active": False})
        assert deactivated.json()["active"] is False

        capacity = await client.get(f"{PREFIX}/team/capacity")
        assert capacity.json()["total_capacity"] == 9

    @pytest.mark.asyncio
    async def test_unknown_member(self, client):
        response = await client.patch(f"{PREFIX}/team/members/agent-z/capacity", json={"capacity": 1})

        assert response.status_code == 404


class TestErrorMapping:
    """Tests for domain error to HTTP status mapping"""

    def test_status_codes(self):
        assert to_http_exception(CardNotFoundError("x")).status_code == 404
        assert to_http_exception(InvalidTransitionError("bad move")).status_code == 409
        assert to_http_exception(InvalidAttemptError("future")).status_code == 422
        assert to_http_exception(NoCapacityError()).status_code == 503
        assert to_http_exception(PipelineError("other")).status_code == 500
