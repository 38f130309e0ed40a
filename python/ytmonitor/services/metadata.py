"""Display metadata for new block rules.

Blocks carry a title, channel name and thumbnail so the dashboard and the
restriction notice have something readable to show. Placeholders are always
available; when FETCH_VIDEO_METADATA is enabled, videos are resolved through
YouTube's public oEmbed endpoint. A failed lookup falls back to placeholders
and never fails block creation.
"""

from dataclasses import dataclass

import httpx

from ytmonitor.logging import get_logger

logger = get_logger(__name__)

OEMBED_URL = "https://www.youtube.com/oembed"
THUMBNAIL_URL_TEMPLATE = "https://i.ytimg.com/vi/{video_id}/mqdefault.jpg"
UNKNOWN_CHANNEL = "Unknown Channel"


@dataclass(frozen=True)
class BlockMetadata:
    title: str
    channel_name: str | None
    thumbnail_url: str | None


def placeholder_metadata(target_type: str, target_id: str) -> BlockMetadata:
    if target_type == "video":
        return BlockMetadata(
            title=f"Video {target_id}",
            channel_name=UNKNOWN_CHANNEL,
            thumbnail_url=THUMBNAIL_URL_TEMPLATE.format(video_id=target_id),
        )
    if target_type == "channel":
        return BlockMetadata(title=f"Channel {target_id}", channel_name=None, thumbnail_url=None)
    return BlockMetadata(title=f"Keyword '{target_id}'", channel_name=None, thumbnail_url=None)


def fetch_video_metadata(
    video_id: str,
    *,
    timeout_s: float,
    client: httpx.Client | None = None,
) -> BlockMetadata:
    """Resolve video metadata through oEmbed, falling back to placeholders."""
    fallback = placeholder_metadata("video", video_id)
    params = {"url": f"https://www.youtube.com/watch?v={video_id}", "format": "json"}

    owns_client = client is None
    http = client or httpx.Client()
    try:
        response = http.get(
            OEMBED_URL, params=params, timeout=httpx.Timeout(timeout_s, connect=timeout_s)
        )
        response.raise_for_status()
        data = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("metadata_lookup_failed", video_id=video_id, error=str(e))
        return fallback
    finally:
        if owns_client:
            http.close()

    return BlockMetadata(
        title=data.get("title") or fallback.title,
        channel_name=data.get("author_name") or fallback.channel_name,
        thumbnail_url=data.get("thumbnail_url") or fallback.thumbnail_url,
    )


def resolve_block_metadata(
    target_type: str,
    target_id: str,
    *,
    fetch_remote: bool = False,
    timeout_s: float = 5.0,
) -> BlockMetadata:
    if fetch_remote and target_type == "video":
        return fetch_video_metadata(target_id, timeout_s=timeout_s)
    return placeholder_metadata(target_type, target_id)
