"""
Caller-facing operations for one Madara site.

``MadaraSource`` wires a SiteProfile, a transport and the parser together.
Every method is one top-level call: it builds its own requests and
pagination state and shares nothing mutable with other calls.
"""
import asyncio
import logging
from datetime import datetime
from typing import AsyncIterator, Callable, Collection, Dict, List, Optional

from parsel import Selector

from crawler.exceptions import ExtractionError
from crawler.pagination import (
    LATEST_UPDATE,
    TOTAL_VIEWS,
    WEEKLY_VIEWS,
    adult_cookies,
    build_ajax_request,
    build_chapter_list_request,
    build_listing_page_request,
    construct_headers,
    next_page_metadata,
    page_from_metadata,
)
from crawler.parser import MadaraParser, load
from crawler.scanner import UpdateScanner, UpdatesCallback
from crawler.transport import Request, Transport, check_challenge
from schemas import (
    Chapter,
    ChapterDetails,
    HomeSection,
    Manga,
    MangaUpdates,
    PagedResults,
    TagSection,
)
from sites import SiteProfile

logger = logging.getLogger(__name__)

# section id -> (title, archive sort key)
HOME_SECTIONS: Dict[str, tuple] = {
    "0": ("RECENTLY UPDATED", LATEST_UPDATE),
    "1": ("CURRENTLY TRENDING", WEEKLY_VIEWS),
    "2": ("MOST POPULAR", TOTAL_VIEWS),
}

IMAGE_ACCEPT = "image/jpeg,image/png,image/*;q=0.8"


class MadaraSource:
    """All operations a host needs from one Madara site."""

    def __init__(self, profile: SiteProfile, transport: Transport):
        self.profile = profile
        self.transport = transport
        self.parser = MadaraParser(profile)

    async def _load(self, request: Request) -> Selector:
        response = await self.transport.fetch(request)
        check_challenge(response, self.profile.name)
        return load(response.data)

    def _page_request(self, manga_id: str) -> Request:
        return Request(
            url=self.profile.title_url(manga_id),
            method="GET",
            headers=construct_headers(self.profile),
        )

    # Titles

    async def get_manga_details(self, manga_id: str) -> Manga:
        """Fetch and parse a title page by its slug."""
        selector = await self._load(self._page_request(manga_id))
        return self.parser.parse_manga_details(selector, manga_id)

    async def get_numeric_id(self, manga_id: str) -> str:
        """
        Resolve a title slug to the numeric post id the chapter endpoint needs.

        Raises:
            ExtractionError: If the page carries no post id
        """
        selector = await self._load(self._page_request(manga_id))
        numeric_id = self.parser.parse_numeric_id(selector)
        if not numeric_id:
            raise ExtractionError(self.profile.name, f"manga {manga_id}", "numeric id")
        return numeric_id

    async def get_chapters(self, manga_id: str) -> List[Chapter]:
        """
        Fetch a title's chapter list.

        Args:
            manga_id: Numeric post id, as returned in ``Manga.id``
        """
        selector = await self._load(build_chapter_list_request(self.profile, manga_id))
        chapters = self.parser.parse_chapter_list(selector, manga_id)
        logger.info(f"[{self.profile.name}] {len(chapters)} chapters for {manga_id}")
        return chapters

    async def get_chapter_details(self, manga_id: str, chapter_id: str) -> ChapterDetails:
        """Fetch the page images of one chapter."""
        request = Request(
            url=f"{self.profile.base_url}/{self.profile.source_traversal_path_name}/{chapter_id}/",
            method="GET",
            headers=construct_headers(self.profile),
            cookies=adult_cookies(self.profile),
            param=self.profile.chapter_details_param,
        )
        selector = await self._load(request)
        return self.parser.parse_chapter_details(selector, manga_id, chapter_id)

    async def get_tags(self) -> List[TagSection]:
        if self.profile.has_advanced_search_page:
            url = f"{self.profile.base_url}/?s=&post_type=wp-manga"
        else:
            url = f"{self.profile.base_url}/"
        selector = await self._load(
            Request(url=url, method="GET", headers=construct_headers(self.profile))
        )
        return self.parser.parse_tags(selector)

    # Listings

    async def search_request(self, query: str, metadata: Optional[dict] = None) -> PagedResults:
        """
        Run one page of a free-text search.

        Args:
            query: Search term
            metadata: Continuation token from the previous page, if any
        """
        page = page_from_metadata(metadata)
        page_size = self.profile.page_size
        request = build_ajax_request(self.profile, page, page_size, "", query)
        selector = await self._load(request)
        results = self.parser.parse_search_results(selector)
        return PagedResults(
            results=results,
            metadata=next_page_metadata(len(results), page, page_size),
        )

    async def get_home_page_sections(
        self, section_callback: Optional[Callable[[HomeSection], None]] = None
    ) -> List[HomeSection]:
        """
        Load every home section concurrently.

        The callback, if given, first receives each empty section and then
        each filled one as its request completes.
        """
        sections = []
        for section_id, (title, _) in HOME_SECTIONS.items():
            section = HomeSection(id=section_id, title=title, view_more=True)
            sections.append(section)
            if section_callback:
                section_callback(section)

        async def fill(section: HomeSection) -> HomeSection:
            sort_key = HOME_SECTIONS[section.id][1]
            size = self.profile.home_section_size
            selector = await self._load(self._listing_request(sort_key, 0, size))
            items = self.parser.parse_home_section(selector)[:size]
            filled = section.model_copy(update={"items": items})
            if section_callback:
                section_callback(filled)
            return filled

        return list(await asyncio.gather(*(fill(section) for section in sections)))

    async def get_view_more_items(
        self, homepage_section_id: str, metadata: Optional[dict] = None
    ) -> Optional[PagedResults]:
        """
        Fetch one more page of a home section.

        Returns:
            The page, or None for an unknown section id
        """
        if homepage_section_id not in HOME_SECTIONS:
            return None
        sort_key = HOME_SECTIONS[homepage_section_id][1]
        page = page_from_metadata(metadata)
        page_size = self.profile.page_size
        selector = await self._load(self._listing_request(sort_key, page, page_size))
        items = self.parser.parse_home_section(selector)

        if self.profile.load_more_search_manga:
            next_page = next_page_metadata(len(items), page, page_size)
        else:
            # Paged listings have a site-defined size; walk until a page is empty
            next_page = {"page": page + 1} if items else None
        return PagedResults(results=items, metadata=next_page)

    def _listing_request(self, sort_key: str, page: int, page_size: int) -> Request:
        if self.profile.load_more_search_manga:
            return build_ajax_request(self.profile, page, page_size, sort_key)
        return build_listing_page_request(self.profile, page, sort_key)

    # Updates

    def scan_updates(self, ids: Collection[str], time: datetime) -> AsyncIterator[MangaUpdates]:
        """Async iterator of update batches; see UpdateScanner.scan."""
        return UpdateScanner(self.profile, self.transport, self.parser).scan(ids, time)

    async def filter_updated_manga(
        self, callback: UpdatesCallback, time: datetime, ids: Collection[str]
    ) -> None:
        scanner = UpdateScanner(self.profile, self.transport, self.parser)
        await scanner.filter_updated_manga(callback, time, ids)

    # Host helpers

    def get_cloudflare_bypass_request(self) -> Request:
        """Request the host opens in a browser to clear an anti-bot challenge."""
        return Request(url=self.profile.base_url, method="GET", headers=construct_headers(self.profile))

    def global_request_headers(self) -> Dict[str, str]:
        """Headers the host should send when loading page images."""
        headers = {"referer": f"{self.profile.base_url}/", "accept": IMAGE_ACCEPT}
        if self.profile.user_agent:
            headers["user-agent"] = self.profile.user_agent
        return headers

    def get_manga_share_url(self, manga_id: str) -> str:
        return self.profile.title_url(manga_id)
