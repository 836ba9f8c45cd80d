"""
M3U Parser Service.
Parses M3U/M3U8 playlist text into a header and an ordered item list, and
fetches remote playlists over HTTP.
"""
import asyncio
import logging
import re
from typing import Optional

import httpx

from iptv_sources.config import get_settings
from iptv_sources.models.playlist import M3UHeader, M3UItem, M3UPlaylist
from iptv_sources.services.errors import M3UFetchError, M3UParseError, M3UTimeoutError
from iptv_sources.urls import is_valid_url

logger = logging.getLogger(__name__)

HEADER_TOKEN = "#EXTM3U"

# key="value" attribute pairs on #EXTM3U and #EXTINF lines
ATTRIBUTE_PATTERN = re.compile(r'([a-zA-Z0-9_\-]+)="([^"]*)"')

PLAYLIST_ACCEPT = "audio/x-mpegurl, application/x-mpegURL, application/vnd.apple.mpegurl, */*"

DEFAULT_ITEM_NAME = "Unnamed Channel"

# EXTINF attribute -> M3UItem field
ITEM_ATTRIBUTES = {
    "tvg-id": "tvg_id",
    "tvg-name": "tvg_name",
    "tvg-logo": "tvg_logo",
    "tvg-url": "tvg_url",
    "tvg-rec": "tvg_rec",
    "tvg-shift": "tvg_shift",
    "group-title": "group",
    "http-referrer": "http_referrer",
    "http-user-agent": "http_user_agent",
    "timeshift": "timeshift",
    "catchup": "catchup_type",
    "catchup-source": "catchup_source",
    "catchup-days": "catchup_days",
    "tvg-language": "language",
}

# #EXTVLCOPT:key=value option -> M3UItem field
VLC_OPTIONS = {
    "http-referrer": "http_referrer",
    "http-user-agent": "http_user_agent",
}


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _parse_attributes(line: str) -> dict[str, str]:
    return {key.lower(): value for key, value in ATTRIBUTE_PATTERN.findall(line)}


def _split_extinf(line: str) -> tuple[str, str]:
    """Split an EXTINF line at the first comma outside quoted attribute values."""
    in_quotes = False
    for index, char in enumerate(line):
        if char == '"':
            in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            return line[:index], line[index + 1:].strip()
    return line, ""


def _build_item(extinf: str, line_number: int, url: str, extras: dict[str, str]) -> M3UItem:
    attribute_part, name = _split_extinf(extinf)
    attributes = _parse_attributes(attribute_part)
    fields = {
        field: _blank_to_none(attributes.get(attribute))
        for attribute, field in ITEM_ATTRIBUTES.items()
    }
    # Directive lines (#EXTGRP, #EXTVLCOPT) only fill what the EXTINF line left empty
    for field, value in extras.items():
        if fields.get(field) is None:
            fields[field] = _blank_to_none(value)

    return M3UItem(
        name=name or DEFAULT_ITEM_NAME,
        url=url,
        line_number=line_number,
        raw=extinf,
        **fields,
    )


def parse_m3u(content: str) -> M3UPlaylist:
    """
    Parse M3U playlist text.

    Args:
        content: Raw playlist text, beginning with #EXTM3U

    Returns:
        M3UPlaylist with header and items in source order

    Raises:
        M3UParseError: input is empty, not a string, or lacks the #EXTM3U header
    """
    if not content or not isinstance(content, str):
        raise M3UParseError("Invalid input: content must be a non-empty string")

    text = content.lstrip("\ufeff")
    if not text.strip().startswith(HEADER_TOKEN):
        raise M3UParseError(f"Invalid M3U format: content must start with {HEADER_TOKEN} header")

    header = M3UHeader()
    items: list[M3UItem] = []
    current_extinf: Optional[str] = None
    current_line_number = 0
    extras: dict[str, str] = {}

    for line_number, line in enumerate(text.splitlines(), start=1):
        line = line.strip()
        if not line:
            continue

        if line.startswith(HEADER_TOKEN):
            if not header.raw:
                attributes = _parse_attributes(line)
                header = M3UHeader(
                    epg_url=_blank_to_none(attributes.get("x-tvg-url") or attributes.get("url-tvg")),
                    raw=line,
                )
        elif line.startswith("#EXTINF:"):
            current_extinf = line
            current_line_number = line_number
            extras = {}
        elif line.startswith("#EXTGRP:"):
            extras["group"] = line[len("#EXTGRP:"):]
        elif line.startswith("#EXTVLCOPT:"):
            key, _, value = line[len("#EXTVLCOPT:"):].partition("=")
            field = VLC_OPTIONS.get(key.strip().lower())
            if field:
                extras[field] = value
        elif line.startswith("#"):
            continue
        elif current_extinf is not None:
            # This is the URL line
            items.append(_build_item(current_extinf, current_line_number, line, extras))
            current_extinf = None
            extras = {}

    logger.debug(f"Parsed {len(items)} playlist items")
    return M3UPlaylist(header=header, items=items)


async def fetch_and_parse_m3u(
    url: str,
    timeout: Optional[float] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> M3UPlaylist:
    """
    Fetch a remote playlist and parse it.

    Args:
        url: Playlist URL
        timeout: Seconds before the request is cancelled (defaults to settings)
        transport: Optional httpx transport, used by tests

    Raises:
        M3UParseError: bad URL syntax or invalid playlist body
        M3UFetchError: non-2xx response or network failure
        M3UTimeoutError: the request was cancelled after the timeout
    """
    if not url or not isinstance(url, str):
        raise M3UParseError("Invalid input: url must be a non-empty string")
    if not is_valid_url(url):
        raise M3UParseError(f"Invalid URL format: {url}")

    settings = get_settings()
    if timeout is None:
        timeout = settings.request_timeout_seconds

    async def _get() -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            follow_redirects=True,
            headers={"Accept": PLAYLIST_ACCEPT, "User-Agent": settings.user_agent},
        ) as client:
            return await client.get(url)

    logger.info(f"Fetching playlist: {url}")

    try:
        response = await asyncio.wait_for(_get(), timeout=timeout)
    except (asyncio.TimeoutError, httpx.TimeoutException) as e:
        raise M3UTimeoutError(f"Request timeout after {timeout:g}s", cause=e) from e
    except httpx.InvalidURL as e:
        raise M3UParseError(f"Invalid URL format: {url}", cause=e) from e
    except httpx.HTTPError as e:
        raise M3UFetchError(f"Failed to fetch M3U playlist: {e}", cause=e) from e

    if not response.is_success:
        raise M3UFetchError(
            f"Failed to fetch M3U playlist: HTTP {response.status_code} {response.reason_phrase}",
            status_code=response.status_code,
        )

    playlist = parse_m3u(response.text)
    logger.info(f"Parsed {len(playlist.items)} items from {url}")
    return playlist


def extract_groups(playlist: M3UPlaylist) -> list[str]:
    """Sorted distinct group names."""
    return sorted({item.group for item in playlist.items if item.group})


def filter_by_group(playlist: M3UPlaylist, group: str) -> list[M3UItem]:
    return [item for item in playlist.items if item.group == group]


def filter_ungrouped(playlist: M3UPlaylist) -> list[M3UItem]:
    return [item for item in playlist.items if not item.group]


def has_epg_info(item: M3UItem) -> bool:
    return bool(item.tvg_id or item.tvg_name)


def get_epg_identifier(item: M3UItem) -> Optional[str]:
    """EPG identifier for an item, tvg-id preferred over tvg-name."""
    return item.tvg_id or item.tvg_name
