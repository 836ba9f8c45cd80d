"""
Parsed M3U playlist models.
Every optional attribute is None when absent or blank, never "".
"""
from typing import Optional

from pydantic import BaseModel, Field


class M3UItem(BaseModel):
    """A single playlist entry (EXTINF line plus URL line)."""
    name: str
    url: str
    tvg_id: Optional[str] = None
    tvg_name: Optional[str] = None
    tvg_logo: Optional[str] = None
    tvg_url: Optional[str] = None
    tvg_rec: Optional[str] = None
    tvg_shift: Optional[str] = None
    group: Optional[str] = None
    http_referrer: Optional[str] = None
    http_user_agent: Optional[str] = None
    timeshift: Optional[str] = None
    catchup_type: Optional[str] = None
    catchup_source: Optional[str] = None
    catchup_days: Optional[str] = None
    language: Optional[str] = None
    line_number: int  # 1-based line of the EXTINF entry
    raw: str


class M3UHeader(BaseModel):
    epg_url: Optional[str] = None
    raw: str = ""


class M3UPlaylist(BaseModel):
    header: M3UHeader
    items: list[M3UItem] = Field(default_factory=list)
