"""
IPTV source descriptors (Xtream Codes and M3U) and Xtream account data.

A Source is a tagged union on ``type``; dispatch points match on the concrete
variant rather than sharing a base class.
"""
from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

SourceType = Literal["xtream", "m3u"]


class XtreamSource(BaseModel):
    """Xtream Codes API source configuration."""
    type: Literal["xtream"] = "xtream"
    id: str
    name: str
    server_url: str
    username: str
    password: str
    created_at: Union[str, int]
    last_used_at: Optional[Union[str, int]] = None
    is_active: Optional[bool] = None


class M3USource(BaseModel):
    """M3U playlist source configuration."""
    type: Literal["m3u"] = "m3u"
    id: str
    name: str
    playlist_url: str
    epg_url: Optional[str] = None  # External XMLTV guide
    created_at: Union[str, int]


Source = Annotated[Union[XtreamSource, M3USource], Field(discriminator="type")]


# Inputs for validating a source before it is saved (no id or timestamps yet).
# Fields default to "" so that blank values reach the validator's own checks.
class XtreamSourceInput(BaseModel):
    name: str = ""
    server_url: str = ""
    username: str = ""
    password: str = ""


class M3USourceInput(BaseModel):
    name: str = ""
    playlist_url: str = ""
    epg_url: Optional[str] = None


class XtreamUserInfo(BaseModel):
    """Account section of the Xtream authentication response."""
    username: str
    status: str
    exp_date: Optional[datetime] = None  # None means the account never expires
    is_trial: bool = False
    active_cons: int = 0
    max_connections: int = 0
    created_at: Optional[Union[str, int]] = None
    allowed_output_formats: list[str] = Field(default_factory=list)


class XtreamServerInfo(BaseModel):
    """Server section of the Xtream authentication response."""
    url: str = ""
    port: str = ""
    https_port: Optional[str] = None
    server_protocol: str = "http"
    rtmp_port: Optional[str] = None
    timezone: str = ""
    timestamp_now: Optional[int] = None
    time_format: Optional[str] = None


class XtreamAuthResponse(BaseModel):
    """Normalized Xtream authentication result."""
    user_info: XtreamUserInfo
    server_info: XtreamServerInfo
