"""
Xtream Codes API client.

Implements the player_api.php interface for live TV, VOD, and series content
and normalizes raw responses into the canonical models. Stream URLs are built
client-side: <base>/<live|movie|series>/<user>/<pass>/<id>.<ext>
"""
import asyncio
import base64
import logging
import re
from datetime import datetime, timezone
from typing import Any, Optional, Union

import httpx

from iptv_sources.config import get_settings
from iptv_sources.models.channel import Category, Channel, Program
from iptv_sources.models.source import (
    XtreamAuthResponse,
    XtreamServerInfo,
    XtreamSource,
    XtreamUserInfo,
)
from iptv_sources.models.vod import Episode, Season, Series, SeriesInfo, VODCategory, VODItem
from iptv_sources.services.errors import XtreamApiError, XtreamAuthError, XtreamTimeoutError
from iptv_sources.urls import mask_query_param

logger = logging.getLogger(__name__)

YEAR_PATTERN = re.compile(r"\d{4}")

# Default container per stream kind when the backend does not supply one
DEFAULT_EXTENSIONS = {"live": "ts", "movie": "m3u8", "series": "m3u8"}


def _text(value: Any) -> Optional[str]:
    """Stringify a scalar field, mapping None and blank strings to None."""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return str(value)


def _id(value: Any) -> str:
    """Xtream ids arrive as ints or strings; canonical ids are strings."""
    return "" if value is None else str(value).strip()


def _to_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        pass
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default


def _to_score(value: Any) -> Optional[float]:
    """Rating score; zero means "not rated" on Xtream panels."""
    try:
        score = float(value)
    except (TypeError, ValueError):
        return None
    return score or None


def _split_list(value: Any) -> Optional[list[str]]:
    """Split a comma-joined field ("Drama, Crime") dropping empty segments."""
    if isinstance(value, list):
        parts = [str(part).strip() for part in value]
    elif isinstance(value, str):
        parts = [part.strip() for part in value.split(",")]
    else:
        return None
    parts = [part for part in parts if part]
    return parts or None


def _extract_year(value: Any) -> Optional[int]:
    """First 4-digit run in a free-text release date."""
    if value is None:
        return None
    match = YEAR_PATTERN.search(str(value))
    return int(match.group(0)) if match else None


def _first_text(value: Any) -> Optional[str]:
    """backdrop_path is a list on most panels and a plain string on some."""
    if isinstance(value, list):
        for entry in value:
            text = _text(entry)
            if text:
                return text
        return None
    return _text(value)


def _parse_expiry(value: Any) -> Optional[datetime]:
    timestamp = _to_int(value)
    if timestamp is None or timestamp <= 0:
        return None
    try:
        return datetime.fromtimestamp(timestamp, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def _decode_base64(value: Any) -> Optional[str]:
    """EPG titles and descriptions are base64 encoded; fall back to raw text."""
    text = _text(value)
    if text is None:
        return None
    try:
        return base64.b64decode(text, validate=True).decode("utf-8")
    except ValueError:
        return text


def _is_auth_rejected(data: Any) -> bool:
    if not isinstance(data, dict):
        return False
    user_info = data.get("user_info")
    if not isinstance(user_info, dict) or "auth" not in user_info:
        return False
    return user_info["auth"] in (0, "0")


def _normalize_auth_response(raw: dict) -> XtreamAuthResponse:
    user = raw.get("user_info") or {}
    server = raw.get("server_info") if isinstance(raw.get("server_info"), dict) else {}

    user_info = XtreamUserInfo(
        username=str(user.get("username") or ""),
        status=str(user.get("status") or ""),
        exp_date=_parse_expiry(user.get("exp_date")),
        is_trial=user.get("is_trial") in (1, "1", True),
        active_cons=_to_int(user.get("active_cons"), 0),
        max_connections=_to_int(user.get("max_connections"), 0),
        created_at=_to_int(user.get("created_at")),
        allowed_output_formats=[str(fmt) for fmt in user.get("allowed_output_formats") or []],
    )
    server_info = XtreamServerInfo(
        url=str(server.get("url") or ""),
        port=str(server.get("port") or ""),
        https_port=_text(server.get("https_port")),
        server_protocol=str(server.get("server_protocol") or "http"),
        rtmp_port=_text(server.get("rtmp_port")),
        timezone=str(server.get("timezone") or ""),
        timestamp_now=_to_int(server.get("timestamp_now")),
        time_format=_text(server.get("time_format")),
    )
    return XtreamAuthResponse(user_info=user_info, server_info=server_info)


def _normalize_category(raw: dict, model: type) -> Union[Category, VODCategory]:
    parent_id = raw.get("parent_id")
    return model(
        id=_id(raw.get("category_id")),
        name=str(raw.get("category_name") or ""),
        parent_id=None if parent_id is None else str(parent_id),
    )


def _normalize_series(
    raw: dict,
    series_id: Any,
    season_count: Optional[int] = None,
    episode_count: Optional[int] = None,
) -> Series:
    return Series(
        id=_id(series_id),
        title=str(raw.get("name") or ""),
        description=_text(raw.get("plot")),
        category_id=_id(raw.get("category_id")),
        poster=_text(raw.get("cover")),
        backdrop=_first_text(raw.get("backdrop_path")),
        year=_extract_year(raw.get("releaseDate") or raw.get("release_date")),
        genres=_split_list(raw.get("genre")),
        cast=_split_list(raw.get("cast")),
        rating=_text(raw.get("rating")),
        score=_to_score(raw.get("rating_5based")),
        season_count=season_count,
        episode_count=episode_count,
        last_updated=_text(raw.get("last_modified")),
    )


def _normalize_season(raw: dict, series_id: str) -> Season:
    number = _to_int(raw.get("season_number"), 0)
    return Season(
        id=_id(raw.get("id")) or str(number),
        series_id=series_id,
        season_number=number,
        name=_text(raw.get("name")) or f"Season {number}",
        description=_text(raw.get("overview")),
        poster=_text(raw.get("cover_big")) or _text(raw.get("cover")),
        air_date=_text(raw.get("air_date")),
        episode_count=_to_int(raw.get("episode_count")),
    )


def _normalize_epg_listing(raw: dict, stream_id: str) -> Program:
    start = _to_int(raw.get("start_timestamp")) or str(raw.get("start") or "")
    end = _to_int(raw.get("stop_timestamp")) or str(raw.get("end") or "")
    return Program(
        id=_id(raw.get("id")) or f"{stream_id}-{start}",
        channel_id=stream_id,
        title=_decode_base64(raw.get("title")) or "Unknown",
        description=_decode_base64(raw.get("description")),
        start_time=start,
        end_time=end,
    )


class XtreamClient:
    """
    Xtream Codes API client.

    Holds one set of credentials. authenticate() caches the normalized account
    details used by is_account_active() and get_expiration_date(); every other
    call is independent.
    """

    API_PATH = "/player_api.php"

    def __init__(
        self,
        server_url: str,
        username: str,
        password: str,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.base_url = server_url.rstrip("/")
        self.username = username
        self.password = password
        self.timeout = timeout if timeout is not None else settings.request_timeout_seconds
        self._user_agent = settings.user_agent
        self._transport = transport
        self._auth_response: Optional[XtreamAuthResponse] = None

    @classmethod
    def from_source(
        cls,
        source: XtreamSource,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "XtreamClient":
        """Create a client from a saved Xtream source."""
        return cls(
            server_url=source.server_url,
            username=source.username,
            password=source.password,
            timeout=timeout,
            transport=transport,
        )

    def build_api_url(self, action: Optional[str] = None, params: Optional[dict] = None) -> str:
        """Build the player_api.php URL with credentials and optional action."""
        query = {"username": self.username, "password": self.password}
        if action:
            query["action"] = action
        if params:
            query.update(params)
        return str(httpx.URL(f"{self.base_url}{self.API_PATH}", params=query))

    def build_stream_url(
        self,
        stream_id: Union[str, int],
        stream_kind: str,
        extension: Optional[str] = None,
    ) -> str:
        """
        Build a playable stream URL.

        Args:
            stream_id: Backend stream (or episode) id
            stream_kind: 'live', 'movie', or 'series'
            extension: Container extension; defaults to 'ts' for live and
                'm3u8' for movies and series
        """
        ext = extension or DEFAULT_EXTENSIONS.get(stream_kind, "m3u8")
        return f"{self.base_url}/{stream_kind}/{self.username}/{self.password}/{stream_id}.{ext}"

    def get_server_url(self) -> str:
        return self.base_url

    async def _get(self, url: str) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            follow_redirects=True,
            headers={"Accept": "application/json", "User-Agent": self._user_agent},
        ) as client:
            return await client.get(url)

    async def _request(self, action: Optional[str] = None, params: Optional[dict] = None) -> Any:
        """
        Perform one API request and return the decoded JSON.

        Raises XtreamTimeoutError when the timeout fires, XtreamAuthError when
        the server reports rejected credentials, XtreamApiError otherwise.
        """
        try:
            url = self.build_api_url(action, params)
        except httpx.InvalidURL as e:
            raise XtreamApiError(f"Invalid server URL: {self.base_url}") from e

        logger.debug(f"Xtream request: {mask_query_param(url)}")

        try:
            response = await asyncio.wait_for(self._get(url), timeout=self.timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise XtreamTimeoutError(f"Request timeout after {self.timeout:g}s") from e
        except httpx.HTTPError as e:
            raise XtreamApiError(f"Request failed: {e}") from e

        if not response.is_success:
            raise XtreamApiError(
                f"HTTP error {response.status_code}: {response.reason_phrase}",
                status_code=response.status_code,
                response=response.text,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise XtreamApiError(
                "Response was not valid JSON",
                status_code=response.status_code,
                response=response.text,
            ) from e

        if _is_auth_rejected(data):
            raise XtreamAuthError(
                "Authentication failed: Invalid credentials",
                status_code=response.status_code,
                response=data,
            )

        return data

    async def _request_list(self, action: str, params: Optional[dict] = None) -> list[dict]:
        data = await self._request(action, params)
        if not isinstance(data, list):
            # Some panels answer an empty catalog with {} or null
            if data:
                logger.warning(f"Expected a list for {action}, got {type(data).__name__}")
            return []
        return [item for item in data if isinstance(item, dict)]

    # Authentication

    async def authenticate(self) -> XtreamAuthResponse:
        """
        Authenticate with the server and cache the account details.

        Raises:
            XtreamAuthError: credentials rejected
            XtreamApiError: transport or response failure
        """
        data = await self._request()
        if not isinstance(data, dict) or not isinstance(data.get("user_info"), dict):
            raise XtreamApiError("Unexpected authentication response", response=data)

        self._auth_response = _normalize_auth_response(data)
        logger.info(
            f"Authenticated {self.username}@{self.base_url} "
            f"(status={self._auth_response.user_info.status})"
        )
        return self._auth_response

    def get_auth_response(self) -> Optional[XtreamAuthResponse]:
        """Cached authentication response, None before authenticate()."""
        return self._auth_response

    def is_account_active(self) -> bool:
        """Status is 'active' (any case) and the expiry, if any, is in the future."""
        if self._auth_response is None:
            return False

        user_info = self._auth_response.user_info
        if user_info.status.lower() != "active":
            return False

        if user_info.exp_date is not None and user_info.exp_date <= datetime.now(timezone.utc):
            return False

        return True

    def get_expiration_date(self) -> Optional[datetime]:
        """Account expiry, None if it never expires or before authenticate()."""
        if self._auth_response is None:
            return None
        return self._auth_response.user_info.exp_date

    # Live TV

    async def get_live_categories(self) -> list[Category]:
        raw_categories = await self._request_list("get_live_categories")
        return [_normalize_category(raw, Category) for raw in raw_categories]

    async def get_live_streams(self, category_id: Optional[str] = None) -> list[Channel]:
        params = {"category_id": category_id} if category_id else None
        raw_streams = await self._request_list("get_live_streams", params)
        return [self._normalize_live_stream(raw, index) for index, raw in enumerate(raw_streams)]

    async def get_live_streams_by_category(self, category_id: str) -> list[Channel]:
        return await self.get_live_streams(category_id)

    def _normalize_live_stream(self, raw: dict, index: int) -> Channel:
        stream_id = _id(raw.get("stream_id"))
        return Channel(
            id=stream_id,
            name=str(raw.get("name") or ""),
            number=_to_int(raw.get("num"), index + 1),
            logo=_text(raw.get("stream_icon")),
            category_id=_id(raw.get("category_id")),
            stream_url=self.build_stream_url(stream_id, "live"),
            stream_type="live",
            epg_channel_id=_text(raw.get("epg_channel_id")),
            is_available=True,
        )

    # VOD

    async def get_vod_categories(self) -> list[VODCategory]:
        raw_categories = await self._request_list("get_vod_categories")
        return [_normalize_category(raw, VODCategory) for raw in raw_categories]

    async def get_vod_streams(self, category_id: Optional[str] = None) -> list[VODItem]:
        params = {"category_id": category_id} if category_id else None
        raw_streams = await self._request_list("get_vod_streams", params)
        return [self._normalize_vod_stream(raw) for raw in raw_streams]

    async def get_vod_streams_by_category(self, category_id: str) -> list[VODItem]:
        return await self.get_vod_streams(category_id)

    def _normalize_vod_stream(self, raw: dict) -> VODItem:
        stream_id = _id(raw.get("stream_id"))
        extension = _text(raw.get("container_extension"))
        return VODItem(
            id=stream_id,
            title=str(raw.get("name") or ""),
            description=_text(raw.get("plot")),
            category_id=_id(raw.get("category_id")),
            stream_url=self.build_stream_url(stream_id, "movie", extension),
            stream_type="vod",
            poster=_text(raw.get("stream_icon")),
            year=_extract_year(raw.get("year") or raw.get("releaseDate")),
            genres=_split_list(raw.get("genre")),
            rating=_text(raw.get("rating")),
            score=_to_score(raw.get("rating_5based")),
            container_format=extension,
            date_added=_text(raw.get("added")),
        )

    # Series

    async def get_series_categories(self) -> list[VODCategory]:
        raw_categories = await self._request_list("get_series_categories")
        return [_normalize_category(raw, VODCategory) for raw in raw_categories]

    async def get_series(self, category_id: Optional[str] = None) -> list[Series]:
        params = {"category_id": category_id} if category_id else None
        raw_series = await self._request_list("get_series", params)
        return [_normalize_series(raw, raw.get("series_id")) for raw in raw_series]

    async def get_series_by_category(self, category_id: str) -> list[Series]:
        return await self.get_series(category_id)

    async def get_series_info(self, series_id: Union[str, int]) -> SeriesInfo:
        """
        Fetch one series with its seasons and episodes.

        Seasons are ordered by season number. Episodes are keyed by season id
        when the season list has a matching season number, otherwise by the
        raw season number string from the response.
        """
        series_id = str(series_id)
        data = await self._request("get_series_info", {"series_id": series_id})
        if not isinstance(data, dict):
            raise XtreamApiError("Unexpected series info response", response=data)

        info = data.get("info") if isinstance(data.get("info"), dict) else {}
        raw_seasons = [s for s in data.get("seasons") or [] if isinstance(s, dict)]
        raw_episodes = data.get("episodes") if isinstance(data.get("episodes"), dict) else {}

        seasons = sorted(
            (_normalize_season(raw, series_id) for raw in raw_seasons),
            key=lambda season: season.season_number,
        )
        season_ids = {season.season_number: season.id for season in seasons}

        episodes: dict[str, list[Episode]] = {}
        episode_count = 0
        for season_key, raw_list in raw_episodes.items():
            if not isinstance(raw_list, list):
                continue
            season_key = str(season_key)
            season_number = _to_int(season_key)
            season_id = season_ids.get(season_number, season_key)
            normalized = [
                self._normalize_episode(raw, series_id, season_id, season_number)
                for raw in raw_list
                if isinstance(raw, dict)
            ]
            episodes.setdefault(season_id, []).extend(normalized)
            episode_count += len(normalized)

        series = _normalize_series(
            info,
            series_id,
            season_count=len(seasons),
            episode_count=episode_count,
        )
        return SeriesInfo(series=series, seasons=seasons, episodes=episodes)

    def _normalize_episode(
        self,
        raw: dict,
        series_id: str,
        season_id: str,
        season_number: Optional[int],
    ) -> Episode:
        info = raw.get("info") if isinstance(raw.get("info"), dict) else {}
        video = info.get("video") if isinstance(info.get("video"), dict) else {}
        audio = info.get("audio") if isinstance(info.get("audio"), dict) else {}
        episode_id = _id(raw.get("id"))
        episode_number = _to_int(raw.get("episode_num"), 0)
        extension = _text(raw.get("container_extension"))

        return Episode(
            id=episode_id,
            series_id=series_id,
            season_id=season_id,
            season_number=_to_int(raw.get("season"), season_number or 0),
            episode_number=episode_number,
            title=_text(raw.get("title")) or f"Episode {episode_number}",
            description=_text(info.get("plot")),
            stream_url=self.build_stream_url(episode_id, "series", extension),
            stream_type="vod",
            thumbnail=_text(info.get("movie_image")),
            duration=_to_int(info.get("duration_secs")),
            air_date=_text(info.get("releasedate")),
            rating=_text(info.get("rating")),
            container_format=extension,
            video_codec=_text(video.get("codec_name")),
            audio_codec=_text(audio.get("codec_name")),
        )

    # Guide

    async def get_short_epg(self, stream_id: Union[str, int], limit: Optional[int] = None) -> list[Program]:
        """Fetch upcoming programs for one live stream."""
        stream_id = str(stream_id)
        params = {"stream_id": stream_id}
        if limit:
            params["limit"] = str(limit)

        data = await self._request("get_short_epg", params)
        listings = data.get("epg_listings") if isinstance(data, dict) else None
        if not isinstance(listings, list):
            return []
        return [
            _normalize_epg_listing(entry, stream_id)
            for entry in listings
            if isinstance(entry, dict)
        ]


async def create_authenticated_client(
    server_url: str,
    username: str,
    password: str,
    timeout: Optional[float] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> XtreamClient:
    """Create a client and authenticate in one step."""
    client = XtreamClient(server_url, username, password, timeout=timeout, transport=transport)
    await client.authenticate()
    return client
