"""Block rule cache.

The device's rule set is fetched as a whole and replaces the previous one;
there is no incremental diffing. A failed fetch keeps the last good set
(empty before the first success): rules are never guessed from an error.
"""

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, ValidationError

from ytmonitor.agent.client import MonitorApiClient
from ytmonitor.agent.errors import AgentError
from ytmonitor.agent.session import DeviceSession
from ytmonitor.logging import get_logger

logger = get_logger(__name__)


class BlockRule(BaseModel):
    id: str
    type: Literal["video", "channel", "keyword"]
    youtube_id: str
    title: str | None = None
    channel_name: str | None = None
    thumbnail_url: str | None = None
    custom_message: str | None = None
    device_id: str | None = None

    model_config = ConfigDict(frozen=True, extra="ignore")


def parse_rules(raw_rules: list[dict[str, Any]]) -> tuple[BlockRule, ...]:
    """Parse fetched rules, skipping any this agent cannot interpret."""
    rules = []
    for raw in raw_rules:
        try:
            rules.append(BlockRule.model_validate(raw))
        except ValidationError as e:
            logger.warning("block_rule_skipped", rule_id=raw.get("id"), error=str(e))
    return tuple(rules)


class BlockRuleCache:
    def __init__(self, session: DeviceSession, client: MonitorApiClient):
        self.session = session
        self.client = client
        self._rules: tuple[BlockRule, ...] = ()
        self.last_refreshed_at: datetime | None = None

    @property
    def rules(self) -> tuple[BlockRule, ...]:
        return self._rules

    def replace(self, rules: tuple[BlockRule, ...]) -> None:
        self._rules = rules
        self.last_refreshed_at = datetime.now(UTC)

    async def refresh(self) -> tuple[BlockRule, ...]:
        """Fetch the device's rule set; on failure keep the current one."""
        try:
            raw = await self.session.authenticated(
                lambda creds: self.client.fetch_blocks(creds.device_id, creds.api_key)
            )
        except AgentError as e:
            logger.warning(
                "rules_refresh_failed",
                error_type=type(e).__name__,
                status_code=e.status_code,
                kept=len(self._rules),
            )
            return self._rules

        self.replace(parse_rules(raw))
        logger.debug("rules_refreshed", count=len(self._rules))
        return self._rules
