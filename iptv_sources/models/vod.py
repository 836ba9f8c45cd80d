"""
VOD, series, season, and episode models (Xtream sources only).
"""
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field

VODStreamType = Literal["vod", "hls", "dash", "unknown"]


class VODCategory(BaseModel):
    """Category for movies or series."""
    id: str
    name: str
    parent_id: Optional[str] = None


class VODItem(BaseModel):
    """A movie."""
    id: str
    title: str
    description: Optional[str] = None
    category_id: str
    stream_url: str
    stream_type: VODStreamType = "vod"
    poster: Optional[str] = None
    backdrop: Optional[str] = None
    year: Optional[int] = None
    duration: Optional[int] = None  # seconds
    genres: Optional[list[str]] = None
    directors: Optional[list[str]] = None
    cast: Optional[list[str]] = None
    rating: Optional[str] = None
    score: Optional[float] = None
    container_format: Optional[str] = None
    video_codec: Optional[str] = None
    audio_codec: Optional[str] = None
    date_added: Optional[Union[str, int]] = None


class Series(BaseModel):
    """A TV series."""
    id: str
    title: str
    description: Optional[str] = None
    category_id: str
    poster: Optional[str] = None
    backdrop: Optional[str] = None
    year: Optional[int] = None
    genres: Optional[list[str]] = None
    cast: Optional[list[str]] = None
    rating: Optional[str] = None
    score: Optional[float] = None
    season_count: Optional[int] = None
    episode_count: Optional[int] = None
    last_updated: Optional[Union[str, int]] = None


class Season(BaseModel):
    id: str
    series_id: str
    season_number: int
    name: Optional[str] = None
    description: Optional[str] = None
    poster: Optional[str] = None
    air_date: Optional[Union[str, int]] = None
    episode_count: Optional[int] = None


class Episode(BaseModel):
    id: str
    series_id: str
    season_id: str
    season_number: int
    episode_number: int
    title: str
    description: Optional[str] = None
    stream_url: str
    stream_type: VODStreamType = "vod"
    thumbnail: Optional[str] = None
    duration: Optional[int] = None  # seconds
    air_date: Optional[Union[str, int]] = None
    rating: Optional[str] = None
    container_format: Optional[str] = None
    video_codec: Optional[str] = None
    audio_codec: Optional[str] = None


class SeriesInfo(BaseModel):
    """
    Series detail with seasons and episodes.

    ``episodes`` is keyed by season id when the backend lists a matching
    season, otherwise by the raw season number string.
    """
    series: Series
    seasons: list[Season] = Field(default_factory=list)
    episodes: dict[str, list[Episode]] = Field(default_factory=dict)
