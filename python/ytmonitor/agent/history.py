"""Client-side watch-history buffer and upload.

observe() appends to the persisted buffer; reaching max_buffer forces a
flush before observe() returns, so the next append lands in an emptied
buffer. A periodic tick also flushes.

flush() guarantees:
- At most one flush in flight; an overlapping call returns immediately
- Entries are removed only after the service acknowledged them, and only
  the entries that were sent (anything observed meanwhile stays)
- Entries the service itemized as invalid are dropped, since resending
  them can never succeed; the rest of that batch stays for the next tick
"""

from typing import Any

from ytmonitor.agent.client import MonitorApiClient
from ytmonitor.agent.errors import AgentError, AgentRequestError
from ytmonitor.agent.session import DeviceSession
from ytmonitor.agent.state import AgentState, AgentStateFile, BufferedVideo
from ytmonitor.logging import get_logger

logger = get_logger(__name__)

HISTORY_BATCH_INVALID = "E_HISTORY_BATCH_INVALID"
MAX_BATCH_SIZE = 100


class HistorySync:
    def __init__(
        self,
        state_file: AgentStateFile,
        session: DeviceSession,
        client: MonitorApiClient,
        max_buffer: int = 100,
    ):
        self.state_file = state_file
        self.session = session
        self.client = client
        self.max_buffer = max_buffer
        self.batch_size = min(max_buffer, MAX_BATCH_SIZE)
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def buffered(self) -> list[BufferedVideo]:
        return (await self.state_file.load()).history_buffer

    async def observe(self, video: BufferedVideo | dict[str, Any]) -> int:
        """Buffer one watched video.

        Returns:
            Number of entries acknowledged by a cap-triggered flush (0 if none ran).
        """
        entry = video if isinstance(video, BufferedVideo) else BufferedVideo.model_validate(video)

        def append(state: AgentState) -> int:
            state.history_buffer.append(entry)
            return len(state.history_buffer)

        size = await self.state_file.mutate(append)
        logger.debug("video_buffered", video_id=entry.video_id, buffer_size=size)

        if size >= self.max_buffer:
            logger.info("history_buffer_full", buffer_size=size)
            return await self.flush()
        return 0

    async def flush(self) -> int:
        """Upload buffered entries in batches until the buffer drains or a call fails.

        Returns:
            Number of entries the service acknowledged.
        """
        if self._in_flight:
            logger.debug("history_flush_skipped", reason="in_flight")
            return 0

        self._in_flight = True
        acknowledged = 0
        try:
            while True:
                batch = (await self.buffered())[: self.batch_size]
                if not batch:
                    break
                sent = await self._send(batch)
                if sent is None:
                    break
                acknowledged += sent
        finally:
            self._in_flight = False

        if acknowledged:
            logger.info("history_synced", count=acknowledged)
        return acknowledged

    async def _send(self, batch: list[BufferedVideo]) -> int | None:
        """Send one batch. Returns the acknowledged count, or None to stop flushing."""
        payload = [entry.to_payload() for entry in batch]
        try:
            count = await self.session.authenticated(
                lambda creds: self.client.submit_history(creds.api_key, payload)
            )
        except AgentRequestError as e:
            if e.code == HISTORY_BATCH_INVALID:
                await self._drop_rejected(batch, e.details)
            else:
                logger.warning("history_sync_rejected", status_code=e.status_code, error=e.message)
            return None
        except AgentError as e:
            logger.warning(
                "history_sync_failed",
                error_type=type(e).__name__,
                status_code=e.status_code,
                error=e.message,
            )
            return None

        await self._remove({entry.local_id for entry in batch})
        return count

    async def _remove(self, local_ids: set[str]) -> None:
        def remove(state: AgentState) -> None:
            state.history_buffer = [
                entry for entry in state.history_buffer if entry.local_id not in local_ids
            ]

        await self.state_file.mutate(remove)

    async def _drop_rejected(self, batch: list[BufferedVideo], details: Any) -> None:
        failed = details.get("failed", []) if isinstance(details, dict) else []
        indexes = {item.get("index") for item in failed if isinstance(item, dict)}
        rejected = {
            batch[i].local_id for i in indexes if isinstance(i, int) and 0 <= i < len(batch)
        }
        if rejected:
            await self._remove(rejected)
        logger.warning("history_entries_rejected", count=len(rejected))
