"""Block enforcement engine.

States: UNCHECKED -> ALLOWED | BLOCKED, re-evaluated on every navigation
and on every scheduled re-check tick.

Matching order (first match wins):
1. video rule whose target equals the current video id
2. channel rule whose target equals the current channel id, ignoring a
   leading '@' on either side
3. keyword rule contained in the current title (case-insensitive), only
   when a title was extracted

Title and channel name are best-effort; video and channel matching never
depend on them.

Attempt logging is governed by AttemptLogPolicy:
- PER_NAVIGATION (default): one attempt per entry into BLOCKED. A re-check
  tick on the same blocked content logs nothing; a new navigation does.
- PER_CHECK: every check that finds the content blocked logs an attempt,
  counting impressions.

In both policies a re-check tick on the same blocked content never
re-renders the notice.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from ytmonitor.agent.client import MonitorApiClient
from ytmonitor.agent.errors import AgentError
from ytmonitor.agent.rules import BlockRule, BlockRuleCache
from ytmonitor.agent.session import DeviceSession
from ytmonitor.logging import get_logger

logger = get_logger(__name__)

UNKNOWN = "Unknown"


# =============================================================================
# Types
# =============================================================================


class EnforcementState(str, Enum):
    UNCHECKED = "unchecked"
    ALLOWED = "allowed"
    BLOCKED = "blocked"


class AttemptLogPolicy(str, Enum):
    PER_NAVIGATION = "per_navigation"
    PER_CHECK = "per_check"


class CheckTrigger(str, Enum):
    NAVIGATION = "navigation"
    RECHECK = "recheck"


@dataclass(frozen=True)
class ContentIdentity:
    """What is on screen. Only video_id is guaranteed."""

    video_id: str
    channel_id: str | None = None
    title: str | None = None
    channel_name: str | None = None


@dataclass(frozen=True)
class Match:
    rule: BlockRule
    type: str
    target_id: str


@dataclass(frozen=True)
class BlockNotice:
    """Restriction notice shown in place of blocked content."""

    content_type: str
    target_id: str
    title: str
    channel_name: str | None
    custom_message: str | None

    @property
    def message(self) -> str:
        return f"This {self.content_type} has been blocked."


class ContentExtractor(Protocol):
    def extract_current_content(self) -> ContentIdentity | None:
        """Return the current content page identity, or None off content pages."""
        ...


class BlockPresenter(Protocol):
    def show_notice(self, notice: BlockNotice) -> None: ...

    def clear_notice(self) -> None: ...


class AttemptReporter(Protocol):
    async def report(self, match: Match, content: ContentIdentity) -> None: ...


# =============================================================================
# Matching
# =============================================================================


def normalize_handle(value: str) -> str:
    return value[1:] if value.startswith("@") else value


def match_rules(content: ContentIdentity, rules: Sequence[BlockRule]) -> Match | None:
    """Find the rule that blocks content, if any."""
    for rule in rules:
        if rule.type == "video" and rule.youtube_id == content.video_id:
            return Match(rule=rule, type="video", target_id=content.video_id)

    if content.channel_id:
        channel = normalize_handle(content.channel_id)
        for rule in rules:
            if rule.type == "channel" and normalize_handle(rule.youtube_id) == channel:
                return Match(rule=rule, type="channel", target_id=content.channel_id)

    if content.title:
        title = content.title.casefold()
        for rule in rules:
            if rule.type == "keyword" and rule.youtube_id.casefold() in title:
                return Match(rule=rule, type="keyword", target_id=rule.youtube_id)

    return None


def build_notice(match: Match) -> BlockNotice:
    return BlockNotice(
        content_type=match.type,
        target_id=match.target_id,
        title=match.rule.title or UNKNOWN,
        channel_name=match.rule.channel_name,
        custom_message=match.rule.custom_message,
    )


# =============================================================================
# Collaborators
# =============================================================================


class CurrentPage:
    """ContentExtractor fed by navigation events instead of page scraping."""

    def __init__(self) -> None:
        self.content: ContentIdentity | None = None

    def set(self, content: ContentIdentity | None) -> None:
        self.content = content

    def extract_current_content(self) -> ContentIdentity | None:
        return self.content


class LogNoticePresenter:
    """BlockPresenter for headless agents: the notice goes to the log."""

    def __init__(self) -> None:
        self.current: BlockNotice | None = None

    def show_notice(self, notice: BlockNotice) -> None:
        self.current = notice
        logger.info(
            "block_notice_shown",
            content_type=notice.content_type,
            target_id=notice.target_id,
            custom_message=notice.custom_message,
        )

    def clear_notice(self) -> None:
        if self.current is not None:
            logger.info("block_notice_cleared", target_id=self.current.target_id)
        self.current = None


class ApiAttemptReporter:
    """Reports block attempts to the service. Failures are logged, never raised."""

    def __init__(self, session: DeviceSession, client: MonitorApiClient):
        self.session = session
        self.client = client

    async def report(self, match: Match, content: ContentIdentity) -> None:
        async def send(creds) -> None:
            await self.client.log_attempt(
                creds.api_key,
                {
                    "device_id": creds.device_id,
                    "youtube_id": match.target_id,
                    "type": match.type,
                    "video_title": content.title or UNKNOWN,
                    "channel_name": content.channel_name or UNKNOWN,
                },
            )

        try:
            await self.session.authenticated(send)
        except AgentError as e:
            logger.warning(
                "block_attempt_report_failed",
                error_type=type(e).__name__,
                status_code=e.status_code,
            )


# =============================================================================
# Engine
# =============================================================================


class EnforcementEngine:
    def __init__(
        self,
        rules: BlockRuleCache,
        extractor: ContentExtractor,
        presenter: BlockPresenter,
        reporter: AttemptReporter,
        policy: AttemptLogPolicy = AttemptLogPolicy.PER_NAVIGATION,
    ):
        self.rules = rules
        self.extractor = extractor
        self.presenter = presenter
        self.reporter = reporter
        self.policy = policy
        self.state = EnforcementState.UNCHECKED
        self._blocked_key: tuple[str, str, str] | None = None

    async def check(self, trigger: CheckTrigger = CheckTrigger.RECHECK) -> EnforcementState:
        """Evaluate the current page against the cached rule set."""
        content = self.extractor.extract_current_content()
        if content is None:
            self._leave_blocked()
            self.state = EnforcementState.UNCHECKED
            return self.state

        match = match_rules(content, self.rules.rules)
        if match is None:
            self._leave_blocked()
            self.state = EnforcementState.ALLOWED
            return self.state

        key = (content.video_id, match.type, match.target_id)
        already_shown = self.state is EnforcementState.BLOCKED and self._blocked_key == key

        if not already_shown:
            self.presenter.show_notice(build_notice(match))
            logger.info(
                "content_blocked",
                block_type=match.type,
                target_id=match.target_id,
                trigger=trigger.value,
            )

        self.state = EnforcementState.BLOCKED
        self._blocked_key = key

        if self._should_log(already_shown, trigger):
            await self.reporter.report(match, content)
        return self.state

    def _should_log(self, already_shown: bool, trigger: CheckTrigger) -> bool:
        if self.policy is AttemptLogPolicy.PER_CHECK:
            return True
        return not already_shown or trigger is CheckTrigger.NAVIGATION

    def _leave_blocked(self) -> None:
        if self.state is EnforcementState.BLOCKED:
            self.presenter.clear_notice()
        self._blocked_key = None
