"""
Source Validator Service.
Checks a source's connectivity and credentials before it is saved and turns
backend errors into a fixed set of user-facing messages.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional, Union

import httpx
from pydantic import BaseModel

from iptv_sources.config import get_settings
from iptv_sources.models.content import (
    M3UValidationResult,
    ValidationErrorKind,
    ValidationResult,
    XtreamValidationResult,
)
from iptv_sources.models.source import M3USourceInput, SourceType, XtreamSourceInput
from iptv_sources.services import m3u_parser
from iptv_sources.services.errors import (
    M3UFetchError,
    M3UParseError,
    M3UTimeoutError,
    XtreamApiError,
    XtreamAuthError,
    XtreamTimeoutError,
)
from iptv_sources.services.m3u_adapter import M3UAdapterOptions, adapt_m3u_playlist
from iptv_sources.services.xtream_client import XtreamClient
from iptv_sources.urls import is_valid_url

logger = logging.getLogger(__name__)

VALIDATION_SOURCE_ID = "validation"

INVALID_PLAYLIST_MESSAGE = "Invalid playlist format. The URL does not point to a valid M3U file."
UNEXPECTED_RESPONSE_MESSAGE = "Unexpected response from server. Please check the server URL."


class CountProbe(BaseModel):
    """Outcome of one optional content count request made during validation."""
    count: int = 0
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


async def _probe_count(label: str, call) -> CountProbe:
    try:
        items = await call
    except (XtreamApiError, ValueError) as e:
        # Counts are informational; the source is still valid
        logger.warning(f"Could not count {label} during validation: {e}")
        return CountProbe(error=str(e))
    return CountProbe(count=len(items))


def _describe_xtream_error(error: XtreamApiError) -> tuple[ValidationErrorKind, str]:
    if isinstance(error, XtreamAuthError):
        return "invalid_credentials", "Invalid username or password"
    if isinstance(error, XtreamTimeoutError):
        return "timed_out", "Connection timed out. Please check the server URL."
    if error.status_code == 404:
        return "not_found", "Server not found. Please check the URL."
    if error.status_code in (401, 403):
        return "access_denied", "Access denied. Please check your credentials."
    if isinstance(error.__cause__, (httpx.HTTPError, httpx.InvalidURL)):
        return "generic", "Unable to connect to server. Please check the URL and your internet connection."
    if error.status_code is not None and error.status_code >= 400:
        return "generic", error.message
    return "generic", UNEXPECTED_RESPONSE_MESSAGE


def _describe_m3u_error(error: M3UParseError) -> tuple[ValidationErrorKind, str]:
    if isinstance(error, M3UTimeoutError):
        return "timed_out", "Connection timed out. Please check the URL."
    if isinstance(error, M3UFetchError):
        if error.status_code == 404:
            return "not_found", "Playlist not found. Please check the URL."
        if error.status_code in (401, 403):
            return "access_denied", "Access denied. The playlist URL may require authentication."
        if error.status_code is None:
            return "generic", "Unable to fetch playlist. Please check the URL and your internet connection."
        return "generic", error.message
    if isinstance(error.cause, httpx.InvalidURL):
        return "invalid_input", "Invalid playlist URL format"
    return "invalid_format", INVALID_PLAYLIST_MESSAGE


async def validate_xtream_source(
    source_input: XtreamSourceInput,
    timeout: Optional[float] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> XtreamValidationResult:
    """
    Validate Xtream credentials.

    Blank fields and a malformed server URL are rejected before any request.
    Content counts are fetched in parallel after a successful login; a failed
    count is reported as 0 and never invalidates the source.
    """
    server_url = source_input.server_url.strip()
    if not server_url:
        return XtreamValidationResult(is_valid=False, error="Server URL is required", error_kind="invalid_input")
    if not source_input.username.strip():
        return XtreamValidationResult(is_valid=False, error="Username is required", error_kind="invalid_input")
    if not source_input.password.strip():
        return XtreamValidationResult(is_valid=False, error="Password is required", error_kind="invalid_input")
    if not is_valid_url(server_url):
        return XtreamValidationResult(is_valid=False, error="Invalid server URL format", error_kind="invalid_input")

    if timeout is None:
        timeout = get_settings().validation_timeout_seconds

    client = XtreamClient(
        server_url,
        source_input.username,
        source_input.password,
        timeout=timeout,
        transport=transport,
    )

    try:
        auth_response = await client.authenticate()
    except XtreamApiError as e:
        kind, message = _describe_xtream_error(e)
        logger.info(f"Xtream validation failed for {server_url}: {e}")
        return XtreamValidationResult(is_valid=False, error=message, error_kind=kind)
    except ValueError as e:
        logger.warning(f"Unexpected authentication payload from {server_url}: {e}")
        return XtreamValidationResult(is_valid=False, error=UNEXPECTED_RESPONSE_MESSAGE, error_kind="generic")

    if not client.is_account_active():
        expires_at = client.get_expiration_date()
        if expires_at is not None and expires_at <= datetime.now(timezone.utc):
            return XtreamValidationResult(
                is_valid=False,
                error=f"Account expired on {expires_at.strftime('%Y-%m-%d')}",
                error_kind="account_expired",
                auth_response=auth_response,
            )
        return XtreamValidationResult(
            is_valid=False,
            error=f"Account status: {auth_response.user_info.status}. Please contact your provider.",
            error_kind="account_inactive",
            auth_response=auth_response,
        )

    channels, movies, series = await asyncio.gather(
        _probe_count("live streams", client.get_live_streams()),
        _probe_count("VOD streams", client.get_vod_streams()),
        _probe_count("series", client.get_series()),
    )

    return XtreamValidationResult(
        is_valid=True,
        auth_response=auth_response,
        channel_count=channels.count,
        vod_count=movies.count,
        series_count=series.count,
    )


async def validate_m3u_source(
    source_input: M3USourceInput,
    timeout: Optional[float] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> M3UValidationResult:
    """
    Validate an M3U playlist URL.

    The playlist is fetched and parsed; an empty playlist is reported as its
    own failure rather than a format error.
    """
    playlist_url = source_input.playlist_url.strip()
    if not playlist_url:
        return M3UValidationResult(is_valid=False, error="Playlist URL is required", error_kind="invalid_input")
    if not is_valid_url(playlist_url):
        return M3UValidationResult(is_valid=False, error="Invalid playlist URL format", error_kind="invalid_input")

    epg_url = (source_input.epg_url or "").strip() or None
    if epg_url and not is_valid_url(epg_url):
        return M3UValidationResult(is_valid=False, error="Invalid EPG URL format", error_kind="invalid_input")

    if timeout is None:
        timeout = get_settings().validation_timeout_seconds

    try:
        playlist = await m3u_parser.fetch_and_parse_m3u(playlist_url, timeout=timeout, transport=transport)
    except M3UParseError as e:
        kind, message = _describe_m3u_error(e)
        logger.info(f"M3U validation failed for {playlist_url}: {e}")
        return M3UValidationResult(is_valid=False, error=message, error_kind=kind)

    if not playlist.items:
        return M3UValidationResult(
            is_valid=False,
            error="Playlist is empty or contains no valid channels",
            error_kind="empty_playlist",
        )

    try:
        adapted = adapt_m3u_playlist(playlist, M3UAdapterOptions(source_id=VALIDATION_SOURCE_ID))
    except ValueError as e:
        logger.warning(f"Could not adapt playlist from {playlist_url}: {e}")
        return M3UValidationResult(is_valid=False, error=INVALID_PLAYLIST_MESSAGE, error_kind="invalid_format")

    return M3UValidationResult(
        is_valid=True,
        channel_count=len(adapted.channels),
        category_count=len(adapted.categories),
        epg_url=playlist.header.epg_url or epg_url,
    )


async def validate_source(
    source_type: SourceType,
    source_input: Union[XtreamSourceInput, M3USourceInput],
    timeout: Optional[float] = None,
) -> ValidationResult:
    """Validate a source of either kind."""
    match source_type, source_input:
        case "xtream", XtreamSourceInput():
            return await validate_xtream_source(source_input, timeout)
        case "m3u", M3USourceInput():
            return await validate_m3u_source(source_input, timeout)
    return ValidationResult(is_valid=False, error="Unknown source type", error_kind="invalid_input")


def is_xtream_validation_result(result: ValidationResult) -> bool:
    return result.source_type == "xtream"


def is_m3u_validation_result(result: ValidationResult) -> bool:
    return result.source_type == "m3u"


def _plural(count: int, singular: str, plural: str) -> str:
    return f"{count} {singular if count == 1 else plural}"


def format_validation_success(result: ValidationResult) -> str:
    """
    Summarize a successful validation for display.

    e.g. "Found 10 channels, 5 movies, 3 series" or "Found 1 channel, 1 category".
    Returns "" for failed results.
    """
    if not result.is_valid:
        return ""

    parts = []
    if result.channel_count is not None:
        parts.append(_plural(result.channel_count, "channel", "channels"))

    if is_xtream_validation_result(result):
        if result.vod_count:
            parts.append(_plural(result.vod_count, "movie", "movies"))
        if result.series_count:
            parts.append(f"{result.series_count} series")

    if is_m3u_validation_result(result) and result.category_count is not None:
        parts.append(_plural(result.category_count, "category", "categories"))

    if not parts:
        return "Connection successful"
    return f"Found {', '.join(parts)}"
