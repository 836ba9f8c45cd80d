"""
Live TV models: categories, channels, and guide programs.
"""
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field

StreamType = Literal["hls", "dash", "live", "unknown"]


class Category(BaseModel):
    """Live TV category."""
    id: str
    name: str
    parent_id: Optional[str] = None


class Channel(BaseModel):
    """Live TV channel, identical in shape for Xtream and M3U sources."""
    id: str
    name: str
    number: Optional[int] = None
    logo: Optional[str] = None
    category_id: str
    stream_url: str
    stream_type: StreamType = "unknown"
    epg_channel_id: Optional[str] = None
    is_available: bool = True


class Program(BaseModel):
    """A guide entry for one channel."""
    id: str
    channel_id: str
    title: str
    description: Optional[str] = None
    start_time: Union[str, int]
    end_time: Union[str, int]
    category: Optional[str] = None


class EPGData(BaseModel):
    """Guide programs keyed by channel id."""
    programs: dict[str, list[Program]] = Field(default_factory=dict)
    last_updated: Union[str, int]
    source: Optional[str] = None
