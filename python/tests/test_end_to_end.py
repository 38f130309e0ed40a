"""End-to-end: the device agent against the real service, in-process.

The agent's HTTP client is pointed at the FastAPI app through
httpx.ASGITransport, so every request crosses the real routes, auth,
services and the test database.
"""

import asyncio

import httpx
import pytest
from sqlalchemy import select

from tests.support.agent import write_state
from ytmonitor.agent.enforcement import ContentIdentity, EnforcementState, LogNoticePresenter
from ytmonitor.agent.runner import MonitorAgent
from ytmonitor.config import AgentSettings
from ytmonitor.db.models import BlockAttempt, Device, WatchHistoryEntry

BASE_URL = "http://testserver"


class CountingTransport(httpx.ASGITransport):
    """ASGI transport that records every request path."""

    def __init__(self, app):
        super().__init__(app=app)
        self.paths: list[str] = []

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.paths.append(request.url.path)
        return await super().handle_async_request(request)


@pytest.fixture
def agent_settings(tmp_path) -> AgentSettings:
    return AgentSettings(
        api_url=BASE_URL,
        state_path=tmp_path / "agent.json",
        device_name="Test",
        max_history_buffer=5,
    )


class TestAgentAgainstService:
    @pytest.mark.asyncio
    async def test_register_sync_and_enforce(self, app, db_session, agent_settings):
        write_state(agent_settings.state_path, device_id="dev-1")
        transport = httpx.ASGITransport(app=app)
        presenter = LogNoticePresenter()
        agent = MonitorAgent(agent_settings, presenter=presenter, transport=transport)

        # Heartbeat registers first, then asserts liveness
        assert await agent.heartbeat.tick() is True
        device = db_session.get(Device, "dev-1")
        assert device is not None
        assert device.device_name == "Test"
        assert device.last_heartbeat is not None

        # History is buffered locally until flushed
        assert await agent.observe_video({"video_id": "abc123", "title": "Some title"}) == 0
        assert await agent.history.flush() == 1
        assert await agent.history.buffered() == []
        entry = db_session.scalars(select(WatchHistoryEntry)).one()
        assert entry.device_id == "dev-1"
        assert entry.title == "Some title"

        # A management-created global rule reaches the agent on navigation
        async with httpx.AsyncClient(transport=transport, base_url=BASE_URL) as management:
            response = await management.post(
                "/api/v1/blocks",
                json={"url": "https://youtu.be/abc123", "custom_message": "Not now"},
            )
            assert response.status_code == 201

        state = await agent.navigate(ContentIdentity("abc123", title="Some title"))

        assert state is EnforcementState.BLOCKED
        assert presenter.current is not None
        assert presenter.current.custom_message == "Not now"

        # A re-check on the same content keeps the notice and logs nothing new
        assert await agent.recheck() is EnforcementState.BLOCKED

        db_session.expire_all()
        attempts = db_session.scalars(select(BlockAttempt)).all()
        assert len(attempts) == 1
        assert attempts[0].youtube_id == "abc123"
        assert attempts[0].video_title == "Some title"

        await agent.stop()

    @pytest.mark.asyncio
    async def test_agent_reuses_identity_across_restarts(self, app, db_session, agent_settings):
        transport = httpx.ASGITransport(app=app)

        first = MonitorAgent(agent_settings, transport=transport)
        assert await first.heartbeat.tick() is True
        await first.stop()

        second = MonitorAgent(agent_settings, transport=transport)
        assert await second.heartbeat.tick() is True
        await second.stop()

        devices = db_session.scalars(select(Device)).all()
        assert len(devices) == 1
        assert devices[0].device_name == "Test"

    @pytest.mark.asyncio
    async def test_buffer_survives_an_unreachable_service(self, app, db_session, agent_settings):
        unreachable = AgentSettings(
            api_url="http://127.0.0.1:9",
            state_path=agent_settings.state_path,
            device_name="Test",
            request_timeout_s=0.5,
        )
        offline = MonitorAgent(unreachable)
        await offline.observe_video({"video_id": "abc123"})
        await offline.stop()

        online = MonitorAgent(agent_settings, transport=httpx.ASGITransport(app=app))
        assert [v.video_id for v in await online.history.buffered()] == ["abc123"]
        assert await online.history.flush() == 1
        await online.stop()

        assert db_session.scalars(select(WatchHistoryEntry.video_id)).all() == ["abc123"]

    @pytest.mark.asyncio
    async def test_startup_loops_register_once(self, app, db_session, tmp_path):
        settings = AgentSettings(
            api_url=BASE_URL,
            state_path=tmp_path / "agent.json",
            device_name="Test",
            heartbeat_interval_s=0.05,
            rule_refresh_interval_s=0.05,
        )
        transport = CountingTransport(app)
        agent = MonitorAgent(settings, transport=transport)

        await agent.start()
        await asyncio.sleep(0.3)
        await agent.stop()

        assert transport.paths.count("/api/v1/register") == 1
        assert sum(p.startswith("/api/v1/blocks/") for p in transport.paths) >= 2
        assert len(db_session.scalars(select(Device)).all()) == 1
