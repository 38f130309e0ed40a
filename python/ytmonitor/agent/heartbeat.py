"""Periodic liveness signal."""

from ytmonitor.agent.client import MonitorApiClient
from ytmonitor.agent.errors import AgentError
from ytmonitor.agent.session import DeviceSession
from ytmonitor.logging import get_logger

logger = get_logger(__name__)


class HeartbeatTask:
    """One tick: make sure the device is registered, then assert liveness.

    Failures are logged and left for the next tick. An auth failure leaves
    the session UNAUTHENTICATED, so the next tick re-registers first.
    """

    def __init__(self, session: DeviceSession, client: MonitorApiClient):
        self.session = session
        self.client = client

    async def tick(self) -> bool:
        """Returns True if the service acknowledged the heartbeat."""
        try:
            await self.session.authenticated(
                lambda creds: self.client.heartbeat(creds.device_id, creds.api_key)
            )
        except AgentError as e:
            logger.warning(
                "heartbeat_failed",
                error_type=type(e).__name__,
                status_code=e.status_code,
                error=e.message,
            )
            return False

        logger.debug("heartbeat_sent")
        return True
