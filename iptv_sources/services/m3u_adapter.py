"""
M3U Adapter Service.
Converts parsed playlist items into canonical categories and channels.
"""
import re
from typing import Optional
from urllib.parse import urlsplit

from pydantic import BaseModel

from iptv_sources.models.channel import Category, Channel, StreamType
from iptv_sources.models.content import M3UAdapterResult
from iptv_sources.models.playlist import M3UItem, M3UPlaylist

NON_ALPHANUMERIC = re.compile(r"[^a-z0-9]+")


class M3UAdapterOptions(BaseModel):
    """Id scope and default category for one playlist source."""
    source_id: str = "m3u"
    default_category_name: str = "Uncategorized"
    default_category_id: str = "uncategorized"


def _sanitize(value: str) -> str:
    return NON_ALPHANUMERIC.sub("-", value.lower()).strip("-")


def generate_category_id(name: str, source_id: str) -> str:
    """
    Deterministic category id from a display name.

    "Sports & News" with source "x" -> "x-cat-sports-news". Names with no
    alphanumeric characters map to "<source>-cat-unknown".
    """
    return f"{source_id}-cat-{_sanitize(name) or 'unknown'}"


def generate_channel_id(item: M3UItem, index: int, source_id: str) -> str:
    """Channel id from the sanitized tvg-id, else the 0-based item index."""
    if item.tvg_id:
        sanitized = _sanitize(item.tvg_id)
        if sanitized:
            return f"{source_id}-ch-{sanitized}"
    return f"{source_id}-ch-{index}"


def detect_stream_type(url: str) -> StreamType:
    """
    Classify a stream URL.

    Checked in order: HLS (.m3u8, /hls/), DASH (.mpd, /dash/), then live
    (/live/ path segment, live.* host, .ts path suffix).
    """
    lower_url = url.lower()

    if ".m3u8" in lower_url or "/hls/" in lower_url:
        return "hls"
    if ".mpd" in lower_url or "/dash/" in lower_url:
        return "dash"

    try:
        parts = urlsplit(lower_url)
        host = parts.hostname or ""
        path = parts.path
    except ValueError:
        # Unclosed IPv6 bracket and similar; fall back to substring checks
        host = ""
        path = lower_url.split("?", 1)[0]
    if "/live/" in lower_url or host.startswith("live.") or path.endswith(".ts"):
        return "live"

    return "unknown"


def extract_categories(
    playlist: M3UPlaylist,
    options: Optional[M3UAdapterOptions] = None,
) -> list[Category]:
    """One category per distinct group in discovery order, plus one default if needed."""
    opts = options or M3UAdapterOptions()
    categories: list[Category] = []
    seen: set[str] = set()
    has_ungrouped = False

    for item in playlist.items:
        if not item.group:
            has_ungrouped = True
            continue
        if item.group in seen:
            continue
        seen.add(item.group)
        categories.append(Category(
            id=generate_category_id(item.group, opts.source_id),
            name=item.group,
        ))

    if has_ungrouped:
        categories.append(Category(
            id=generate_category_id(opts.default_category_id, opts.source_id),
            name=opts.default_category_name,
        ))

    return categories


def extract_channels(
    playlist: M3UPlaylist,
    options: Optional[M3UAdapterOptions] = None,
) -> list[Channel]:
    """One channel per item, in playlist order, numbered from 1."""
    opts = options or M3UAdapterOptions()
    channels = []

    for index, item in enumerate(playlist.items):
        channels.append(Channel(
            id=generate_channel_id(item, index, opts.source_id),
            name=item.name,
            number=index + 1,
            logo=item.tvg_logo,
            category_id=generate_category_id(item.group or opts.default_category_id, opts.source_id),
            stream_url=item.url,
            stream_type=detect_stream_type(item.url),
            epg_channel_id=item.tvg_id or item.tvg_name,
            is_available=True,
        ))

    return channels


def adapt_m3u_playlist(
    playlist: M3UPlaylist,
    options: Optional[M3UAdapterOptions] = None,
) -> M3UAdapterResult:
    return M3UAdapterResult(
        categories=extract_categories(playlist, options),
        channels=extract_channels(playlist, options),
        epg_url=playlist.header.epg_url,
    )


def get_channels_by_category(channels: list[Channel], category_id: str) -> list[Channel]:
    return [channel for channel in channels if channel.category_id == category_id]


def find_channel_by_epg_id(channels: list[Channel], epg_channel_id: str) -> Optional[Channel]:
    return next((channel for channel in channels if channel.epg_channel_id == epg_channel_id), None)


def get_channel_count_by_category(channels: list[Channel]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for channel in channels:
        counts[channel.category_id] = counts.get(channel.category_id, 0) + 1
    return counts
