"""Device credential lifecycle.

    UNREGISTERED --register--> AUTHENTICATED --401/403--> UNAUTHENTICATED
                                     ^                          |
                                     +------ register ----------+

The state is a pure function of the persisted AgentState: no credential is
cached in memory. Registration is single-flight: tasks that find the session
unregistered at the same moment share one register call.

Re-registration after an auth failure is not immediate: it happens on the
next scheduled tick of whichever task runs first, so the heartbeat/sync
cadence doubles as the backoff.
"""

import asyncio
import platform
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import TypeVar
from uuid import uuid4

from ytmonitor.agent.client import MonitorApiClient
from ytmonitor.agent.errors import AgentAuthError
from ytmonitor.agent.state import AgentState, AgentStateFile
from ytmonitor.logging import get_logger, key_fingerprint

logger = get_logger(__name__)

T = TypeVar("T")


class SessionState(str, Enum):
    UNREGISTERED = "unregistered"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"


@dataclass(frozen=True)
class Credentials:
    device_id: str
    api_key: str


def default_device_name() -> str:
    """Display name in the extension's "<client> on <OS>" style."""
    return f"ytmonitor agent on {platform.system() or 'Unknown'}"


def session_state(state: AgentState) -> SessionState:
    if not state.device_id or not state.api_key:
        return SessionState.UNREGISTERED
    if not state.registered:
        return SessionState.UNAUTHENTICATED
    return SessionState.AUTHENTICATED


class DeviceSession:
    """Registers the device and hands out credentials to protocol tasks."""

    def __init__(
        self,
        state_file: AgentStateFile,
        client: MonitorApiClient,
        device_name: str | None = None,
    ):
        self.state_file = state_file
        self.client = client
        self.device_name = device_name
        self._register_lock = asyncio.Lock()

    async def state(self) -> SessionState:
        return session_state(await self.state_file.load())

    async def ensure_identity(self) -> AgentState:
        """Create the stable device id and name on first run."""

        def assign(state: AgentState) -> AgentState:
            if not state.device_id:
                state.device_id = str(uuid4())
                logger.info("device_identity_created", device_id=state.device_id)
            if self.device_name:
                state.device_name = self.device_name
            elif not state.device_name:
                state.device_name = default_device_name()
            return state.model_copy()

        return await self.state_file.mutate(assign)

    async def ensure_registered(self) -> Credentials:
        """Return usable credentials, registering first if needed.

        Registration is idempotent on the server, so re-running it after an
        auth failure returns the existing key unless the server lost it.

        Raises:
            TransientIOError, AgentRequestError: Registration failed; the
                caller retries on its next tick.
        """
        state = await self.state_file.load()
        if session_state(state) is SessionState.AUTHENTICATED:
            return Credentials(device_id=state.device_id, api_key=state.api_key)

        async with self._register_lock:
            # Another task may have registered while this one waited
            state = await self.state_file.load()
            if session_state(state) is SessionState.AUTHENTICATED:
                return Credentials(device_id=state.device_id, api_key=state.api_key)
            return await self._register()

    async def _register(self) -> Credentials:
        state = await self.ensure_identity()
        registration = await self.client.register(state.device_id, state.device_name)

        def store(current: AgentState) -> None:
            current.device_id = registration.device_id
            current.api_key = registration.api_key
            current.registered = True

        await self.state_file.mutate(store)
        logger.info(
            "device_registered",
            device_id=registration.device_id,
            key_fingerprint=key_fingerprint(registration.api_key),
        )
        return Credentials(device_id=registration.device_id, api_key=registration.api_key)

    async def invalidate(self, reason: str, api_key: str | None = None) -> None:
        """Move to UNAUTHENTICATED; the next tick re-registers.

        With api_key set, only that key is invalidated: a rejection of a key
        another task has already replaced leaves the new one alone.
        """

        def mark(state: AgentState) -> bool:
            if api_key is not None and state.api_key != api_key:
                return False
            state.registered = False
            return True

        if await self.state_file.mutate(mark):
            logger.warning("credentials_invalidated", reason=reason)

    async def authenticated(self, operation: Callable[[Credentials], Awaitable[T]]) -> T:
        """Run operation with current credentials.

        An auth failure invalidates the session and is re-raised; nothing is
        retried here.
        """
        credentials = await self.ensure_registered()
        try:
            return await operation(credentials)
        except AgentAuthError as e:
            await self.invalidate(reason=f"status_{e.status_code}", api_key=credentials.api_key)
            raise
