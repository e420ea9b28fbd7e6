"""Base spider shared by all Madara crawls."""
import scrapy
from typing import Optional

from crawler.exceptions import ExtractionError
from crawler.items import ChapterItem, MangaItem
from crawler.pagination import adult_cookies, build_chapter_list_request, construct_headers
from crawler.parser import MadaraParser
from crawler.transport import Request
from sites import SiteProfile, SiteRegistry


def to_scrapy_request(request: Request, callback, **kwargs) -> scrapy.Request:
    """Turn an engine Request into a scrapy.Request."""
    return scrapy.Request(
        url=request.full_url,
        method=request.method,
        headers=request.headers,
        body=request.data,
        cookies={cookie.name: cookie.value for cookie in request.cookies},
        callback=callback,
        **kwargs,
    )


class SiteSpider(scrapy.Spider):
    """
    Spider bound to one SiteProfile.

    The site is chosen with ``-a site=<name>``; the profile's parser does
    all extraction.
    """

    name: str = "madara_base"

    def __init__(self, site: str, *args, **kwargs):
        super().__init__(*args, **kwargs)
        profile: Optional[SiteProfile] = SiteRegistry.get(site)
        if profile is None:
            raise ValueError(f"Unknown site: {site}")
        self.profile = profile
        self.parser = MadaraParser(profile)
        self.allowed_domains = [profile.domain]

    def handle_error(self, failure):
        """Log a failed request without failing the whole crawl."""
        self.logger.error(f"Request failed: {failure.value}")
        self.logger.error(f"URL: {failure.request.url}")


class MadaraSpider(SiteSpider):
    """
    Crawl one title: details page, chapter list, then each chapter's pages.

    Usage:
        scrapy crawl madara -a site=manhuaplus -a manga_id=some-title
    """

    name = "madara"

    def __init__(self, site: str, manga_id: str, pages: str = "1", *args, **kwargs):
        """
        Args:
            site: Registered site name
            manga_id: Title slug
            pages: "0" to skip fetching chapter pages
        """
        super().__init__(site, *args, **kwargs)
        self.manga_id = manga_id
        self.fetch_pages = pages not in ("0", "false", "no")

    def start_requests(self):
        request = Request(
            url=self.profile.title_url(self.manga_id),
            headers=construct_headers(self.profile),
        )
        self.logger.info(f"Crawling {self.profile.name} title {self.manga_id}")
        yield to_scrapy_request(request, self.parse, errback=self.handle_error)

    def parse(self, response):
        """Parse the title page, then request its chapter list."""
        manga = self.parser.parse_manga_details(response.selector, self.manga_id)
        self.logger.info(f"Extracted title: {manga.titles[0]} (id {manga.id})")

        item = MangaItem()
        item['site'] = self.profile.name
        item['manga_id'] = self.manga_id
        item['source_url'] = response.url
        item['details'] = manga.model_dump(mode='json')
        item['synopsis_html'] = response.css('div.description-summary').get('')

        yield to_scrapy_request(
            build_chapter_list_request(self.profile, manga.id),
            self.parse_chapter_list,
            cb_kwargs={'item': item},
            errback=self.handle_error,
        )

    def parse_chapter_list(self, response, item):
        chapters = self.parser.parse_chapter_list(response.selector, item['details']['id'])
        self.logger.info(f"Found {len(chapters)} chapters for {self.manga_id}")
        item['chapters'] = [chapter.model_dump(mode='json') for chapter in chapters]
        yield item

        if not self.fetch_pages:
            return

        for chapter in chapters:
            request = Request(
                url=f"{self.profile.base_url}/{self.profile.source_traversal_path_name}/{chapter.id}/",
                headers=construct_headers(self.profile),
                cookies=adult_cookies(self.profile),
                param=self.profile.chapter_details_param,
            )
            yield to_scrapy_request(
                request,
                self.parse_chapter,
                cb_kwargs={'chapter_id': chapter.id},
                errback=self.handle_error,
            )

    def parse_chapter(self, response, chapter_id):
        """Parse one chapter page; a broken chapter is skipped, not fatal."""
        try:
            details = self.parser.parse_chapter_details(response.selector, self.manga_id, chapter_id)
        except ExtractionError as e:
            self.logger.warning(f"Skipping chapter {chapter_id}: {e}")
            return

        chapter_item = ChapterItem()
        chapter_item['site'] = self.profile.name
        chapter_item['manga_id'] = self.manga_id
        chapter_item['chapter_id'] = chapter_id
        chapter_item['source_url'] = response.url
        chapter_item['pages'] = details.pages

        self.logger.info(f"Parsed chapter {chapter_id}: {len(details.pages)} pages")
        yield chapter_item
