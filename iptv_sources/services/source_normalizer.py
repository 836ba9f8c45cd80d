"""
Source Normalizer Service.
Single facade over Xtream Codes and M3U sources. Every content query is
dispatched to the backend of the bound source and returned in canonical form.
"""
import asyncio
import logging
import time
from collections import OrderedDict
from typing import Optional, Union

import httpx

from iptv_sources.config import get_settings
from iptv_sources.models.channel import Category, Channel, EPGData
from iptv_sources.models.content import M3UAdapterResult, NormalizedContent, ValidationResult
from iptv_sources.models.source import (
    M3USource,
    M3USourceInput,
    XtreamSource,
    XtreamSourceInput,
)
from iptv_sources.models.vod import Series, SeriesInfo, VODCategory, VODItem
from iptv_sources.services import m3u_parser, source_validator
from iptv_sources.services.cache import TimedValue
from iptv_sources.services.errors import (
    M3UParseError,
    SourceNormalizerError,
    UnsupportedOperationError,
    XtreamApiError,
)
from iptv_sources.services.m3u_adapter import (
    M3UAdapterOptions,
    adapt_m3u_playlist,
    get_channels_by_category,
)
from iptv_sources.services.xtream_client import XtreamClient

logger = logging.getLogger(__name__)

SourceDescriptor = Union[XtreamSource, M3USource]


class SourceNormalizer:
    """
    Content facade bound to one source.

    Xtream queries go straight to the API on every call. M3U content is
    fetched once and served from an instance-local cache until the TTL
    expires or clear_cache() is called.
    """

    def __init__(
        self,
        source: SourceDescriptor,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.source = source
        self.timeout = timeout
        self._transport = transport
        self._playlist_cache: TimedValue[M3UAdapterResult] = TimedValue(settings.playlist_cache_ttl_seconds)
        self._client: Optional[XtreamClient] = None

        if isinstance(source, XtreamSource):
            self._client = XtreamClient.from_source(source, timeout=timeout, transport=transport)

    @property
    def source_type(self) -> str:
        return self.source.type

    @property
    def source_id(self) -> str:
        return self.source.id

    @property
    def source_name(self) -> str:
        return self.source.name

    # Capabilities

    def supports_vod(self) -> bool:
        return isinstance(self.source, XtreamSource)

    def supports_series(self) -> bool:
        return isinstance(self.source, XtreamSource)

    def has_integrated_epg(self) -> bool:
        return isinstance(self.source, XtreamSource)

    def clear_cache(self):
        """Force the next M3U query to refetch the playlist."""
        self._playlist_cache.clear()

    async def _xtream(self, action: str, call):
        """Await an Xtream client call, tagging failures with the backend kind."""
        try:
            return await call
        except (XtreamApiError, ValueError) as e:
            message = getattr(e, "message", None) or f"Failed to fetch {action}"
            raise SourceNormalizerError(message, "xtream", e) from e

    async def _get_playlist_content(self, source: M3USource) -> M3UAdapterResult:
        cached = self._playlist_cache.get()
        if cached is not None:
            return cached

        try:
            playlist = await m3u_parser.fetch_and_parse_m3u(
                source.playlist_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        except M3UParseError as e:
            raise SourceNormalizerError(e.message, "m3u", e) from e

        try:
            result = adapt_m3u_playlist(playlist, M3UAdapterOptions(source_id=source.id))
        except ValueError as e:
            raise SourceNormalizerError(f"Failed to adapt playlist: {e}", "m3u", e) from e

        if not result.epg_url and source.epg_url:
            result.epg_url = source.epg_url

        logger.info(
            f"Loaded playlist for source {source.id}: "
            f"{len(result.channels)} channels in {len(result.categories)} categories"
        )
        return self._playlist_cache.set(result)

    # Live TV

    async def get_live_categories(self) -> list[Category]:
        match self.source:
            case XtreamSource():
                return await self._xtream("live categories", self._client.get_live_categories())
            case M3USource() as source:
                content = await self._get_playlist_content(source)
                return content.categories

    async def get_live_channels(self, category_id: Optional[str] = None) -> list[Channel]:
        match self.source:
            case XtreamSource():
                return await self._xtream("channels", self._client.get_live_streams(category_id))
            case M3USource() as source:
                content = await self._get_playlist_content(source)
                if category_id:
                    return get_channels_by_category(content.channels, category_id)
                return content.channels

    # VOD and series (M3U sources have none)

    async def get_vod_categories(self) -> list[VODCategory]:
        match self.source:
            case XtreamSource():
                return await self._xtream("VOD categories", self._client.get_vod_categories())
            case M3USource():
                return []

    async def get_vod_items(self, category_id: Optional[str] = None) -> list[VODItem]:
        match self.source:
            case XtreamSource():
                return await self._xtream("VOD items", self._client.get_vod_streams(category_id))
            case M3USource():
                return []

    async def get_series_categories(self) -> list[VODCategory]:
        match self.source:
            case XtreamSource():
                return await self._xtream("series categories", self._client.get_series_categories())
            case M3USource():
                return []

    async def get_series(self, category_id: Optional[str] = None) -> list[Series]:
        match self.source:
            case XtreamSource():
                return await self._xtream("series", self._client.get_series(category_id))
            case M3USource():
                return []

    async def get_series_info(self, series_id: str) -> SeriesInfo:
        """
        Series detail with seasons and episodes.

        Raises:
            UnsupportedOperationError: the source is an M3U playlist
            SourceNormalizerError: the Xtream request failed
        """
        match self.source:
            case XtreamSource():
                return await self._xtream("series info", self._client.get_series_info(series_id))
            case M3USource():
                raise UnsupportedOperationError("M3U sources do not support series", "m3u")

    # Guide

    async def get_epg(self, stream_id: Optional[str] = None) -> EPGData:
        """Short EPG for one Xtream stream; M3U sources need an external XMLTV guide."""
        match self.source:
            case XtreamSource():
                programs = {}
                if stream_id:
                    programs[stream_id] = await self._xtream("EPG", self._client.get_short_epg(stream_id))
                return EPGData(programs=programs, last_updated=int(time.time()), source="xtream")
            case M3USource():
                return EPGData(programs={}, last_updated=int(time.time()), source="m3u")

    async def get_epg_url(self) -> Optional[str]:
        """External XMLTV URL for M3U sources, None for Xtream (guide comes from the API)."""
        match self.source:
            case XtreamSource():
                return None
            case M3USource() as source:
                content = await self._get_playlist_content(source)
                return content.epg_url or source.epg_url

    async def get_all_content(self) -> NormalizedContent:
        """
        Everything the source offers.

        Xtream sources issue all six catalog queries concurrently; any single
        failure fails the whole call.
        """
        match self.source:
            case XtreamSource():
                client = self._client
                (
                    live_categories,
                    live_channels,
                    vod_categories,
                    vod_items,
                    series_categories,
                    series,
                ) = await self._xtream("content", asyncio.gather(
                    client.get_live_categories(),
                    client.get_live_streams(),
                    client.get_vod_categories(),
                    client.get_vod_streams(),
                    client.get_series_categories(),
                    client.get_series(),
                ))
                return NormalizedContent(
                    live_categories=live_categories,
                    live_channels=live_channels,
                    vod_categories=vod_categories,
                    vod_items=vod_items,
                    series_categories=series_categories,
                    series=series,
                )
            case M3USource() as source:
                content = await self._get_playlist_content(source)
                return NormalizedContent(
                    live_categories=content.categories,
                    live_channels=content.channels,
                    epg_url=content.epg_url,
                )

    async def validate(self) -> ValidationResult:
        """Run the pre-save validation against the bound source."""
        match self.source:
            case XtreamSource() as source:
                return await source_validator.validate_xtream_source(
                    XtreamSourceInput(
                        name=source.name,
                        server_url=source.server_url,
                        username=source.username,
                        password=source.password,
                    ),
                    self.timeout,
                    transport=self._transport,
                )
            case M3USource() as source:
                return await source_validator.validate_m3u_source(
                    M3USourceInput(
                        name=source.name,
                        playlist_url=source.playlist_url,
                        epg_url=source.epg_url,
                    ),
                    self.timeout,
                    transport=self._transport,
                )


def create_source_normalizer(
    source: SourceDescriptor,
    timeout: Optional[float] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> SourceNormalizer:
    return SourceNormalizer(source, timeout=timeout, transport=transport)


# One normalizer per source id, so the playlist cache survives across requests.
# Least recently used entries are evicted past settings.max_normalizers.
_normalizers: OrderedDict[str, SourceNormalizer] = OrderedDict()


def get_normalizer(source: SourceDescriptor) -> SourceNormalizer:
    """Get the shared normalizer for a source, replacing it if the descriptor changed."""
    normalizer = _normalizers.get(source.id)
    if normalizer is None or normalizer.source != source:
        normalizer = create_source_normalizer(source)
        _normalizers[source.id] = normalizer
    _normalizers.move_to_end(source.id)

    max_normalizers = get_settings().max_normalizers
    while len(_normalizers) > max_normalizers:
        evicted_id, _ = _normalizers.popitem(last=False)
        logger.debug(f"Evicted normalizer for source {evicted_id}")
    return normalizer


def reset_normalizers():
    """Drop every shared normalizer and its cached content."""
    _normalizers.clear()
