"""Device agent runtime.

MonitorAgent wires the protocol pieces together and runs three independent
periodic tasks on one event loop:
- heartbeat (registers first when needed)
- history sync
- rule refresh followed by an enforcement re-check

A slow or failing task never delays the others. Page events arrive through
observe_video() and navigate().
"""

import asyncio
from collections.abc import Awaitable, Callable

import httpx

from ytmonitor.agent.client import MonitorApiClient
from ytmonitor.agent.enforcement import (
    ApiAttemptReporter,
    AttemptLogPolicy,
    BlockPresenter,
    CheckTrigger,
    ContentIdentity,
    CurrentPage,
    EnforcementEngine,
    EnforcementState,
    LogNoticePresenter,
)
from ytmonitor.agent.heartbeat import HeartbeatTask
from ytmonitor.agent.history import HistorySync
from ytmonitor.agent.rules import BlockRuleCache
from ytmonitor.agent.session import DeviceSession
from ytmonitor.agent.state import AgentStateFile, BufferedVideo
from ytmonitor.config import AgentSettings
from ytmonitor.logging import get_logger

logger = get_logger(__name__)


class MonitorAgent:
    def __init__(
        self,
        settings: AgentSettings,
        *,
        presenter: BlockPresenter | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings
        self.client = MonitorApiClient(
            settings.normalized_api_url,
            timeout_s=settings.request_timeout_s,
            transport=transport,
        )
        self.state_file = AgentStateFile(settings.state_path)
        self.session = DeviceSession(self.state_file, self.client, settings.device_name)
        self.heartbeat = HeartbeatTask(self.session, self.client)
        self.history = HistorySync(
            self.state_file, self.session, self.client, max_buffer=settings.max_history_buffer
        )
        self.rules = BlockRuleCache(self.session, self.client)
        self.page = CurrentPage()
        self.presenter = presenter or LogNoticePresenter()
        self.engine = EnforcementEngine(
            self.rules,
            self.page,
            self.presenter,
            ApiAttemptReporter(self.session, self.client),
            policy=AttemptLogPolicy(settings.attempt_log_policy),
        )
        self._tasks: list[asyncio.Task] = []

    async def __aenter__(self) -> "MonitorAgent":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    async def start(self) -> None:
        """Create the device identity and start the periodic tasks."""
        if self.running:
            logger.warning("agent_already_running")
            return

        state = await self.session.ensure_identity()
        logger.info("agent_started", device_id=state.device_id, api_url=self.client.base_url)

        self._tasks = [
            asyncio.create_task(
                self._periodic("heartbeat", self.settings.heartbeat_interval_s, self.heartbeat.tick)
            ),
            asyncio.create_task(
                self._periodic(
                    "history_sync",
                    self.settings.sync_interval_s,
                    self.history.flush,
                    run_immediately=False,
                )
            ),
            asyncio.create_task(
                self._periodic("rule_refresh", self.settings.rule_refresh_interval_s, self.recheck)
            ),
        ]

    async def stop(self) -> None:
        """Cancel the periodic tasks, try a last upload, close the client.

        Unsent history stays in the state file for the next run.
        """
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

        await self.history.flush()
        await self.client.aclose()
        logger.info("agent_stopped")

    async def run(self) -> None:
        """Run until cancelled (the launcher's entry point)."""
        await self.start()
        try:
            await asyncio.Event().wait()
        finally:
            await self.stop()

    # =========================================================================
    # Page events
    # =========================================================================

    async def observe_video(self, video: BufferedVideo | dict) -> int:
        return await self.history.observe(video)

    async def navigate(self, content: ContentIdentity | None) -> EnforcementState:
        """A new page: refresh rules, then decide block/allow."""
        self.page.set(content)
        await self.rules.refresh()
        return await self.engine.check(CheckTrigger.NAVIGATION)

    async def recheck(self) -> EnforcementState:
        await self.rules.refresh()
        return await self.engine.check(CheckTrigger.RECHECK)

    # =========================================================================
    # Scheduling
    # =========================================================================

    async def _periodic(
        self,
        name: str,
        interval_s: float,
        tick: Callable[[], Awaitable[object]],
        run_immediately: bool = True,
    ) -> None:
        if not run_immediately:
            await asyncio.sleep(interval_s)
        while True:
            try:
                await tick()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("periodic_task_error", task=name)
            await asyncio.sleep(interval_s)
