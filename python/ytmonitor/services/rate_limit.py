"""Per-source moving-window rate limiting.

Limits:
- Registration: REGISTER_RATE_LIMIT_PER_HOUR attempts per client host per hour
  (the only unauthenticated write, so it is held much tighter)
- General API: API_RATE_LIMIT_PER_WINDOW requests per client host per window

Storage (via the `limits` package):
- memory:// (default): the desktop service is a single process, so the
  in-process moving window is authoritative
- redis://... (when REDIS_URL is configured): shared by every service process

Fail modes:
- Storage unavailable or erroring: fail open (request allowed, warning logged)
"""

from dataclasses import dataclass

from limits import RateLimitItemPerSecond
from limits.storage import MemoryStorage, Storage, storage_from_string
from limits.strategies import MovingWindowRateLimiter

from ytmonitor.errors import RateLimitedError
from ytmonitor.logging import get_logger

logger = get_logger(__name__)

REGISTER_BUCKET = "register"
API_BUCKET = "api"
REGISTER_WINDOW_SECONDS = 3600


@dataclass(frozen=True)
class Limit:
    bucket: str
    max_requests: int
    window_s: int

    def as_item(self) -> RateLimitItemPerSecond:
        return RateLimitItemPerSecond(self.max_requests, self.window_s, namespace="YTM")


class RateLimiter:
    """Moving-window rate limiter keyed by (bucket, source)."""

    def __init__(self, storage_uri: str | None = None, storage: Storage | None = None):
        """Initialize rate limiter.

        Args:
            storage_uri: `limits` storage URI (e.g. a REDIS_URL). Defaults to memory.
            storage: Ready-made storage instance; takes precedence over storage_uri.
        """
        if storage is None:
            storage = storage_from_string(storage_uri) if storage_uri else MemoryStorage()
        self._storage = storage
        self._strategy = MovingWindowRateLimiter(storage)

    @property
    def backend(self) -> str:
        return type(self._storage).__name__

    @property
    def storage_available(self) -> bool:
        """Check if the backing storage answers."""
        try:
            return bool(self._storage.check())
        except Exception:
            return False

    def check(self, limit: Limit, source: str) -> None:
        """Record one request from source and enforce the limit.

        Raises:
            RateLimitedError: If the source exceeded the limit inside the window.
        """
        try:
            allowed = self._strategy.hit(limit.as_item(), limit.bucket, source)
        except Exception as e:
            logger.warning(
                "rate_limit_check_failed", bucket=limit.bucket, backend=self.backend, error=str(e)
            )
            return

        if not allowed:
            logger.warning("rate_limit_blocked", limit_type=limit.bucket, source=source)
            raise RateLimitedError(
                f"Rate limit exceeded: {limit.max_requests} requests per {limit.window_s}s"
            )

    def reset(self) -> None:
        """Forget every recorded window."""
        self._storage.reset()
