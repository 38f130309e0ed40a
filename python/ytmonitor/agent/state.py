"""Durable agent state.

One JSON file holds everything the agent must not lose across restarts:
the device identity, the issued API key, and the not-yet-acknowledged
history buffer. The file is the single source of truth: every protocol
operation re-reads it instead of trusting an in-memory copy.

Writes go to a temporary file in the same directory followed by
os.replace, so a crash mid-write leaves the previous state intact. File
I/O runs in a worker thread to keep the event loop free.
"""

import asyncio
import json
import os
import tempfile
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, TypeVar
from uuid import uuid4

from pydantic import BaseModel, Field, ValidationError

from ytmonitor.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class BufferedVideo(BaseModel):
    """A watched video waiting for server acknowledgment."""

    local_id: str = Field(default_factory=lambda: uuid4().hex)
    video_id: str
    title: str | None = None
    channel_name: str | None = None
    channel_id: str | None = None
    thumbnail_url: str | None = None
    video_url: str | None = None
    watched_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    duration: int | None = None

    def to_payload(self) -> dict[str, Any]:
        """Wire shape for POST /api/v1/watch-history."""
        return self.model_dump(mode="json", exclude={"local_id"})


class AgentState(BaseModel):
    device_id: str | None = None
    device_name: str | None = None
    api_key: str | None = None
    registered: bool = False
    history_buffer: list[BufferedVideo] = Field(default_factory=list)


class AgentStateFile:
    """Atomic JSON persistence for AgentState.

    Mutations are serialized through an asyncio.Lock so the heartbeat,
    sync and rule tasks never lose each other's writes.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path).expanduser()
        self._lock = asyncio.Lock()

    async def load(self) -> AgentState:
        return await asyncio.to_thread(self._read)

    async def save(self, state: AgentState) -> None:
        async with self._lock:
            await asyncio.to_thread(self._write, state)

    async def mutate(self, change: Callable[[AgentState], T]) -> T:
        """Read, apply change in place, and write back atomically.

        Returns:
            Whatever change returns.
        """
        async with self._lock:
            state = await asyncio.to_thread(self._read)
            result = change(state)
            await asyncio.to_thread(self._write, state)
            return result

    def _read(self) -> AgentState:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return AgentState()

        try:
            return AgentState.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            # Unreadable state means a fresh identity; keep the bad file for inspection
            corrupt = self.path.with_suffix(self.path.suffix + ".corrupt")
            os.replace(self.path, corrupt)
            logger.warning("agent_state_corrupt", path=str(self.path), error=str(e))
            return AgentState()

    def _write(self, state: AgentState) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(state.model_dump_json(indent=2))
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise
