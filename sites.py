"""Site profiles for the Madara-based sources and the registry that finds them."""
import logging
import random
from typing import Callable, Dict, List, Optional, Tuple
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

USER_AGENT_TEMPLATE = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:77.0) "
    "Gecko/20100101 Firefox/78.0{suffix}"
)


def default_user_agent() -> str:
    """
    Build the randomized user agent sent by most sources.

    A random numeric suffix is appended to a fixed Firefox string. Some
    Cloudflare setups let such clients through; sources where it makes
    things worse set ``user_agent=""`` to send no header at all.
    """
    return USER_AGENT_TEMPLATE.format(suffix=random.randint(0, 99999))


class SiteProfile(BaseModel):
    """
    Configuration of one Madara site.

    The defaults match a stock Madara install; a site only overrides what
    differs. Profiles are immutable and shared read-only across calls.
    """

    name: str
    base_url: str
    language_code: str = "en"

    # Path before a title slug, eg. 'read' for https://www.webtoon.xyz/read/<slug>/
    source_traversal_path_name: str = "manga"
    # Directory path used for the "latest" listing page
    home_page: str = "manga"

    search_manga_selector: str = "div.c-tabs-item__content"
    listing_row_selector: str = "div.page-item-detail"
    chapter_row_selector: str = "li.wp-manga-chapter"
    chapter_details_selector: str = "div.page-break > img"
    # Query suffix some sites need to render every page, eg. "?style=list"
    chapter_details_param: str = ""

    has_advanced_search_page: bool = False
    load_more_search_manga: bool = True

    page_size: int = Field(50, gt=0)
    home_section_size: int = Field(10, gt=0)

    user_agent: str = Field(default_factory=default_user_agent)

    detect_adult: bool = True
    adult_tag_keywords: Tuple[str, ...] = ("smut",)

    # Post-processes a parsed detail record for markup selectors can't express
    detail_strategy: Optional[Callable] = None

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @property
    def domain(self) -> str:
        return urlparse(self.base_url).netloc.lower()

    @property
    def ajax_url(self) -> str:
        return f"{self.base_url}/wp-admin/admin-ajax.php"

    def title_url(self, manga_id: str) -> str:
        return f"{self.base_url}/{self.source_traversal_path_name}/{manga_id}/"


SITES: List[SiteProfile] = [
    SiteProfile(
        name="akumanga",
        base_url="https://akumanga.com",
        has_advanced_search_page=True,
    ),
    SiteProfile(
        name="aloalivn",
        base_url="https://aloalivn.com",
        has_advanced_search_page=True,
        chapter_details_selector="li.blocks-gallery-item > figure > img",
    ),
    SiteProfile(
        name="arangscans",
        base_url="https://arangscans.com",
    ),
    SiteProfile(
        name="hiperdex",
        base_url="https://hiperdex.com",
        has_advanced_search_page=True,
        user_agent="",
    ),
    SiteProfile(
        name="leviatanscans",
        base_url="https://leviatanscans.com",
        source_traversal_path_name="comicss/manga",
    ),
    SiteProfile(
        name="leviatanscanses",
        base_url="https://es.leviatanscans.com",
    ),
    SiteProfile(
        name="mangabob",
        base_url="https://mangabob.com",
        has_advanced_search_page=True,
    ),
    SiteProfile(
        name="mangatx",
        base_url="https://mangatx.com",
    ),
    SiteProfile(
        name="manhuaplus",
        base_url="https://manhuaplus.com",
        has_advanced_search_page=True,
        chapter_details_selector="li.blocks-gallery-item > figure > img, div.page-break > img",
    ),
    SiteProfile(
        name="manhuaus",
        base_url="https://manhuaus.com",
        has_advanced_search_page=True,
        chapter_details_selector="li.blocks-gallery-item > img",
    ),
    SiteProfile(
        name="webtoon",
        base_url="https://www.webtoon.xyz",
        source_traversal_path_name="read",
        home_page="webtoons",
    ),
]


class SiteRegistry:
    """
    Registry mapping site names and domains to profiles.

    Used to select the profile for a request or a URL.
    """

    _by_name: Dict[str, SiteProfile] = {site.name: site for site in SITES}

    @classmethod
    def get(cls, name: str) -> Optional[SiteProfile]:
        """Look up a profile by its short name (case-insensitive)."""
        return cls._by_name.get(name.lower())

    @classmethod
    def for_url(cls, url: str) -> Optional[SiteProfile]:
        """
        Determine which profile serves a given URL.

        Args:
            url: Any URL on a supported site

        Returns:
            The profile, or None if no site matches the domain
        """
        domain = urlparse(url).netloc.lower()
        bare = domain[4:] if domain.startswith("www.") else domain
        for site in cls._by_name.values():
            site_domain = site.domain
            if site_domain.startswith("www."):
                site_domain = site_domain[4:]
            if bare == site_domain:
                return site

        logger.warning(f"No site registered for domain: {domain}")
        return None

    @classmethod
    def names(cls) -> List[str]:
        return sorted(cls._by_name)

    @classmethod
    def register(cls, site: SiteProfile) -> None:
        """Add or replace a profile at runtime."""
        cls._by_name[site.name.lower()] = site
