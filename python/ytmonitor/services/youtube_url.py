"""YouTube URL parsing for block creation.

Turns a link pasted by the monitoring party into a block target:

- https://www.youtube.com/watch?v=ID      -> ("video", ID)
- https://youtu.be/ID                     -> ("video", ID)
- https://www.youtube.com/shorts/ID       -> ("video", ID)
- https://www.youtube.com/channel/UCxxxx  -> ("channel", UCxxxx)
- https://www.youtube.com/@handle         -> ("channel", handle)
- https://www.youtube.com/c/NAME          -> ("channel", NAME)

Handles are stored without the leading '@'; the enforcement matcher
normalizes both sides, so either spelling matches.
"""

from dataclasses import dataclass
from urllib.parse import parse_qs, unquote, urlparse

from ytmonitor.errors import ApiErrorCode, InvalidRequestError

MAX_URL_LENGTH = 2048

ALLOWED_SCHEMES = {"http", "https"}

YOUTUBE_HOSTS = {"youtube.com", "www.youtube.com", "m.youtube.com", "music.youtube.com"}
SHORT_HOSTS = {"youtu.be", "www.youtu.be"}


@dataclass(frozen=True)
class YouTubeTarget:
    """A parsed block target."""

    type: str  # video | channel
    id: str


def normalize_channel_ref(value: str) -> str:
    """Strip the optional leading '@' of a channel handle."""
    value = value.strip()
    return value[1:] if value.startswith("@") else value


def _first_segment(path: str) -> str:
    return unquote(path.strip("/").split("/")[0]) if path.strip("/") else ""


def parse_youtube_url(url: str) -> YouTubeTarget | None:
    """Extract a video or channel target from a YouTube URL.

    Scheme-less input ("youtube.com/watch?v=...") is accepted.

    Returns:
        The parsed target, or None if the URL is not a recognised YouTube shape.
    """
    url = url.strip()
    if not url or len(url) > MAX_URL_LENGTH:
        return None
    if "://" not in url:
        url = f"https://{url}"

    parsed = urlparse(url)
    if parsed.scheme.lower() not in ALLOWED_SCHEMES or not parsed.hostname:
        return None

    host = parsed.hostname.lower()
    path = parsed.path or "/"

    if host in SHORT_HOSTS:
        video_id = _first_segment(path)
        return YouTubeTarget("video", video_id) if video_id else None

    if host not in YOUTUBE_HOSTS:
        return None

    if path.rstrip("/") == "/watch":
        video_ids = parse_qs(parsed.query).get("v")
        if video_ids and video_ids[0]:
            return YouTubeTarget("video", video_ids[0])
        return None

    segments = [unquote(s) for s in path.strip("/").split("/") if s]
    if not segments:
        return None

    head = segments[0]
    if head.startswith("@") and len(head) > 1:
        return YouTubeTarget("channel", normalize_channel_ref(head))

    if head in ("channel", "c", "user") and len(segments) > 1:
        return YouTubeTarget("channel", segments[1])

    if head in ("shorts", "embed", "live") and len(segments) > 1:
        return YouTubeTarget("video", segments[1])

    return None


def require_youtube_target(url: str) -> YouTubeTarget:
    """Parse a YouTube URL or raise E_INVALID_URL."""
    target = parse_youtube_url(url)
    if target is None:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_URL,
            "Invalid YouTube URL: expected a watch, youtu.be, /channel/, /@handle or /c/ link",
        )
    return target
