"""
Assembly of catalog entities from Madara pages and AJAX fragments.

``MadaraParser`` is bound to one SiteProfile and is stateless otherwise,
so a single instance can serve concurrent calls.
"""
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Collection, List, Optional

from parsel import Selector

from crawler.exceptions import ExtractionError
from crawler.extractors import (
    decode_html_entity,
    extract_attr,
    extract_text,
    first,
    first_text,
    get_image_src,
    path_segment,
    strip_site_prefix,
)
from crawler.listing import sort_chapters
from crawler.timeparse import as_utc, convert_time
from normalizer import SynopsisCleaner, clean_title, normalize_creator, parse_rating
from schemas import (
    Chapter,
    ChapterDetails,
    Manga,
    MangaStatus,
    MangaTile,
    Tag,
    TagSection,
)
from sites import SiteProfile

logger = logging.getLogger(__name__)

_MANGA_ID = re.compile(r'"manga_id":"(\d+)"')
_CHAPTER_NUMBER = re.compile(r'chapter-\D*(\d*\.?\d*)')
_CHAPTER_SUFFIX = re.compile(r'/chapter.*')

GENRES_SECTION_ID = "0"
GENRES_SECTION_LABEL = "genres"
# https://site/manga-genre/<id>/ -> index of <id> after splitting on "/"
TAG_ID_SEGMENT = 4


def load(body: Optional[str]) -> Selector:
    """Build a queryable document; an empty body yields an empty document."""
    return Selector(text=body or "<html></html>")


@dataclass
class UpdateScanPage:
    """Outcome of scanning one page of the latest-updated feed."""
    updates: List[str] = field(default_factory=list)
    reached_cutoff: bool = False
    row_count: int = 0


class MadaraParser:
    """Generic Madara extraction rules, configured by a SiteProfile."""

    def __init__(self, profile: SiteProfile):
        self.profile = profile
        self.cleaner = SynopsisCleaner()

    def _strip(self, href: Optional[str]) -> str:
        return strip_site_prefix(
            href, self.profile.base_url, self.profile.source_traversal_path_name
        )

    # Detail

    def parse_numeric_id(self, selector: Selector) -> Optional[str]:
        """
        Find the WordPress post id of a title page.

        Tries the ``wp-manga-js-extra`` script payload, the bookmark
        button's ``data-post`` and finally the shortlink.
        """
        script = selector.css('script#wp-manga-js-extra::text').get() or ''
        match = _MANGA_ID.search(script)
        if match:
            return match.group(1)

        numeric_id = extract_attr(selector.css('a.wp-manga-action-button'), 'data-post')
        if numeric_id:
            return numeric_id

        shortlink = extract_attr(selector.css('link[rel="shortlink"]'), 'href')
        if shortlink:
            numeric_id = shortlink.replace(f"{self.profile.base_url}/?p=", '')
            if numeric_id.isdigit():
                return numeric_id
        return None

    def parse_manga_details(self, selector: Selector, manga_id: str) -> Manga:
        """
        Assemble the detail record of a title page.

        Args:
            selector: Parsed title page
            manga_id: Slug the page was requested with (used in errors)

        Returns:
            Manga record whose id is the numeric post id

        Raises:
            ExtractionError: If the numeric id or the cover image is missing
        """
        site = self.profile.name
        numeric_id = self.parse_numeric_id(selector)
        if not numeric_id:
            raise ExtractionError(site, f"manga {manga_id}", "numeric id")

        image = get_image_src(first(selector.css('div.summary_image img')))
        if not image:
            raise ExtractionError(site, f"manga {manga_id}", "image")

        title = clean_title(first_text(selector.css('div.post-title h1')))
        author = normalize_creator(first_text(selector.css('div.author-content')))
        artist = normalize_creator(first_text(selector.css('div.artist-content')))

        summary_html = first(selector.css('div.description-summary')).get() or ''
        desc = decode_html_entity(self.cleaner.extract_text(summary_html))

        rating = parse_rating(extract_text(selector.css('span.total_votes')))

        status_text = extract_text(
            selector.css('div.post-content_item')[-1:].css('div.summary-content')
        )
        status = MangaStatus.ONGOING if status_text.lower() == "ongoing" else MangaStatus.COMPLETED

        hentai = bool(selector.css('.manga-title-badges.adult'))
        genres = []
        for node in selector.css('div.genres-content a'):
            label = extract_text(node)
            tag_id = path_segment(extract_attr(node, 'href'), TAG_ID_SEGMENT) or label
            if any(keyword in label.lower() for keyword in self.profile.adult_tag_keywords):
                hentai = True
            genres.append(Tag(id=tag_id, label=label))

        manga = Manga(
            id=numeric_id,
            titles=[title],
            image=image,
            author=author,
            artist=artist,
            desc=desc,
            rating=rating,
            status=status,
            hentai=hentai and self.profile.detect_adult,
            tags=[TagSection(id=GENRES_SECTION_ID, label=GENRES_SECTION_LABEL, tags=genres)],
        )

        if self.profile.detail_strategy is not None:
            manga = self.profile.detail_strategy(manga, selector)

        logger.debug(f"[{site}] parsed details for {manga_id}: {title!r} ({numeric_id})")
        return manga

    # Chapters

    def parse_chapter_number(self, href: str) -> Optional[float]:
        match = _CHAPTER_NUMBER.search(href.lower())
        if not match or not match.group(1):
            return None
        try:
            return float(match.group(1))
        except ValueError:
            return None

    def parse_chapter_list(self, selector: Selector, manga_id: str) -> List[Chapter]:
        """
        Assemble a title's chapter list from the ``manga_get_chapters`` fragment.

        Returns:
            Chapters deduplicated by id and sorted by number

        Raises:
            ExtractionError: If the title slug or a chapter link is missing
        """
        site = self.profile.name
        rows = selector.css(self.profile.chapter_row_selector)
        if not rows:
            logger.info(f"[{site}] no chapters listed for {manga_id}")
            return []

        first_href = extract_attr(rows[0].css('a'), 'href')
        real_title = _CHAPTER_SUFFIX.sub('', self._strip(first_href).lower())
        if not real_title:
            raise ExtractionError(site, f"chapters of {manga_id}", "human-readable title")

        chapters = []
        for row in rows:
            link = first(row.css('a'))
            href = extract_attr(link, 'href')
            chapter_id = self._strip(href)
            if not chapter_id:
                raise ExtractionError(site, f"chapters of {manga_id}", "chapter id")
            if not chapter_id.lower().startswith(real_title):
                logger.warning(
                    f"[{site}] chapter {chapter_id} does not belong to {real_title}"
                )

            chap_num = self.parse_chapter_number(href)
            name = None
            if chap_num is None:
                chap_num = 0
                name = extract_text(link) or chapter_id

            if row.css('i'):
                release_date = extract_text(row.css('i'))
            else:
                release_date = extract_attr(row.css('.c-new-tag a'), 'title') or ''

            chapters.append(Chapter(
                id=chapter_id,
                manga_id=manga_id,
                lang_code=self.profile.language_code,
                chap_num=chap_num,
                name=name,
                time=convert_time(release_date),
            ))

        return sort_chapters(chapters)

    def parse_chapter_details(
        self, selector: Selector, manga_id: str, chapter_id: str
    ) -> ChapterDetails:
        """
        Collect the page images of a chapter in document order.

        Raises:
            ExtractionError: If any page image cannot be resolved
        """
        pages = []
        for node in selector.css(self.profile.chapter_details_selector):
            page = get_image_src(node)
            if not page:
                raise ExtractionError(
                    self.profile.name, f"chapter {manga_id}/{chapter_id}", "page image"
                )
            pages.append(page)

        return ChapterDetails(id=chapter_id, manga_id=manga_id, pages=pages, long_strip=False)

    # Tags

    def parse_tags(self, selector: Selector) -> List[TagSection]:
        """
        Collect the genre taxonomy.

        Sites with an advanced search page expose genres as form checkboxes;
        the rest only link them from the navigation menu.
        """
        genres = []
        if self.profile.has_advanced_search_page:
            for node in selector.css('.checkbox-group div label'):
                label = extract_text(node)
                tag_id = extract_attr(node, 'for') or label
                genres.append(Tag(id=tag_id, label=label))
        else:
            for node in selector.css('.second-menu .menu-item-object-wp-manga-genre a'):
                label = extract_text(node)
                tag_id = path_segment(extract_attr(node, 'href'), TAG_ID_SEGMENT) or label
                genres.append(Tag(id=tag_id, label=label))

        return [TagSection(id=GENRES_SECTION_ID, label=GENRES_SECTION_LABEL, tags=genres)]

    # Listings

    def parse_search_results(self, selector: Selector) -> List[MangaTile]:
        """
        Parse rows of a search listing.

        Rows whose link points somewhere other than a title page are skipped.

        Raises:
            ExtractionError: If a title row lacks its id, title or image
        """
        results = []
        base = self.profile.base_url.rstrip('/')
        for row in selector.css(self.profile.search_manga_selector):
            link = first(row.css('a'))
            manga_id = self._strip(extract_attr(link, 'href'))
            title = decode_html_entity(extract_attr(link, 'title') or '').strip()
            image = get_image_src(first(row.css('img')))

            if not manga_id or not image or not title:
                if base in manga_id:
                    continue
                raise ExtractionError(
                    self.profile.name,
                    "search results",
                    "id, title or image",
                    f"using {self.profile.search_manga_selector} as a loop selector",
                )

            results.append(MangaTile(id=manga_id, title=title, image=image))
        return results

    def _row_time(self, row: Selector) -> datetime:
        new_tag = row.css('.c-new-tag a')
        if new_tag:
            # Blinking NEW badge carries the exact label in its title
            return convert_time(extract_attr(new_tag, 'title') or '')
        label = extract_text(row.css('.chapter-item')[:1].css('span')[-1:])
        return convert_time(label)

    def _row_id(self, row: Selector) -> str:
        return self._strip(extract_attr(row.css('h3.h5 a'), 'href'))

    def parse_listing_rows(self, selector: Selector) -> List[MangaTile]:
        """
        Parse rows of an archive listing, keeping each row's update time.

        Raises:
            ExtractionError: If a row lacks its id, title or image
        """
        items = []
        for row in selector.css(self.profile.listing_row_selector):
            image = get_image_src(first(row.css('img')))
            title = decode_html_entity(extract_text(row.css('h3.h5 a')))
            manga_id = self._row_id(row)

            if not manga_id or not title or not image:
                raise ExtractionError(
                    self.profile.name, "home section", "id, title or image",
                    f"{self.profile.base_url}/{self.profile.home_page}/",
                )

            items.append(MangaTile(id=manga_id, title=title, image=image, time=self._row_time(row)))
        return items

    def parse_home_section(self, selector: Selector) -> List[MangaTile]:
        """Rows of a home section or "view more" page."""
        return self.parse_listing_rows(selector)

    def filter_updated_manga(
        self, selector: Selector, time: datetime, ids: Collection[str]
    ) -> UpdateScanPage:
        """
        Scan one page of the latest-updated feed.

        Rows are newest first. Scanning stops at the first row updated at or
        before ``time``; watched ids seen before that point are reported.
        """
        time = as_utc(time)
        page = UpdateScanPage()
        rows = selector.css(self.profile.listing_row_selector)
        page.row_count = len(rows)

        for row in rows:
            if self._row_time(row) <= time:
                page.reached_cutoff = True
                break
            manga_id = self._row_id(row)
            if manga_id in ids:
                page.updates.append(manga_id)

        return page
