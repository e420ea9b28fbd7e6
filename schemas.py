"""Pydantic value objects returned by the engine and the HTTP API."""
import enum
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class MangaStatus(str, enum.Enum):
    """Publication status of a title."""
    ONGOING = "ongoing"
    COMPLETED = "completed"


# Catalog entities

class Tag(BaseModel):
    """One selectable genre or taxonomy entry."""
    id: str
    label: str

    model_config = ConfigDict(frozen=True)


class TagSection(BaseModel):
    """A named group of tags."""
    id: str
    label: str
    tags: List[Tag] = []

    model_config = ConfigDict(frozen=True)


class Manga(BaseModel):
    """Detail record for one title."""
    id: str
    titles: List[str]
    image: str
    author: str = "Unknown"
    artist: str = "Unknown"
    desc: str = ""
    rating: float = 0
    status: MangaStatus = MangaStatus.COMPLETED
    hentai: bool = False
    tags: List[TagSection] = []

    model_config = ConfigDict(frozen=True)


class Chapter(BaseModel):
    """One entry of a title's chapter list."""
    id: str
    manga_id: str
    lang_code: str
    chap_num: float = Field(0, ge=0)
    name: Optional[str] = None
    time: datetime

    model_config = ConfigDict(frozen=True)


class ChapterDetails(BaseModel):
    """Ordered page images of one chapter."""
    id: str
    manga_id: str
    pages: List[str]
    long_strip: bool = False

    model_config = ConfigDict(frozen=True)


class MangaTile(BaseModel):
    """A listing row: search result, home section item or update feed row."""
    id: str
    title: str
    image: str
    time: Optional[datetime] = None

    model_config = ConfigDict(frozen=True)


class PagedResults(BaseModel):
    """One page of listing rows plus the token for the next page."""
    results: List[MangaTile] = []
    metadata: Optional[Dict[str, Any]] = None


class HomeSection(BaseModel):
    """A home page section; items are filled once its request completes."""
    id: str
    title: str
    view_more: bool = True
    items: List[MangaTile] = []


class MangaUpdates(BaseModel):
    """A batch of watched identifiers found updated after the cutoff."""
    ids: List[str]


# API schemas

class SiteSummary(BaseModel):
    """Site entry for the /sites listing."""
    name: str
    base_url: str
    language_code: str
    has_advanced_search_page: bool


class SiteListResponse(BaseModel):
    items: List[SiteSummary]
    total: int


class ChapterListResponse(BaseModel):
    """Chapter list for a title."""
    items: List[Chapter]
    total: int


class TagListResponse(BaseModel):
    items: List[TagSection]


class HomeResponse(BaseModel):
    sections: List[HomeSection]


class UpdateScanRequest(BaseModel):
    """Watch-set and cutoff for an update scan."""
    ids: List[str] = Field(..., description="Identifiers to watch")
    since: datetime = Field(..., description="Report titles updated after this time")
