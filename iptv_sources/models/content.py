"""
Aggregate results returned by the adapter, normalizer, and validator.
"""
from typing import Literal, Optional

from pydantic import BaseModel, Field

from iptv_sources.models.channel import Category, Channel
from iptv_sources.models.source import XtreamAuthResponse
from iptv_sources.models.vod import Series, VODCategory, VODItem


class M3UAdapterResult(BaseModel):
    """Categories and channels derived from one playlist."""
    categories: list[Category] = Field(default_factory=list)
    channels: list[Channel] = Field(default_factory=list)
    epg_url: Optional[str] = None


class NormalizedContent(BaseModel):
    """Everything a source offers, in canonical form."""
    live_categories: list[Category] = Field(default_factory=list)
    live_channels: list[Channel] = Field(default_factory=list)
    vod_categories: list[VODCategory] = Field(default_factory=list)
    vod_items: list[VODItem] = Field(default_factory=list)
    series_categories: list[VODCategory] = Field(default_factory=list)
    series: list[Series] = Field(default_factory=list)
    epg_url: Optional[str] = None


ValidationErrorKind = Literal[
    "invalid_input",
    "invalid_credentials",
    "timed_out",
    "not_found",
    "access_denied",
    "invalid_format",
    "account_expired",
    "account_inactive",
    "empty_playlist",
    "generic",
]


class ValidationResult(BaseModel):
    """Outcome of a pre-save connectivity check."""
    source_type: Optional[Literal["xtream", "m3u"]] = None
    is_valid: bool
    error: Optional[str] = None
    error_kind: Optional[ValidationErrorKind] = None
    channel_count: Optional[int] = None


class XtreamValidationResult(ValidationResult):
    source_type: Literal["xtream"] = "xtream"
    auth_response: Optional[XtreamAuthResponse] = None
    vod_count: Optional[int] = None
    series_count: Optional[int] = None


class M3UValidationResult(ValidationResult):
    source_type: Literal["m3u"] = "m3u"
    category_count: Optional[int] = None
    epg_url: Optional[str] = None
