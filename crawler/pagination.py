"""
Requests against Madara's ``admin-ajax.php`` "load more" endpoint.

The endpoint has two shapes: a search listing (free-text term) and an
archive listing ordered by a numeric post meta key. Whether another page
exists is decided from the size of the page just received, since the
"next page" links in the markup are not reliable.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote

from crawler.transport import Cookie, Request
from sites import SiteProfile

logger = logging.getLogger(__name__)

# Archive sort keys
LATEST_UPDATE = "_latest_update"
WEEKLY_VIEWS = "_wp_manga_week_views_value"
TOTAL_VIEWS = "_wp_manga_views"

# Archive sort key -> ``m_orderby`` value of the paged listing pages
LISTING_ORDER = {
    LATEST_UPDATE: "latest",
    WEEKLY_VIEWS: "trending",
    TOTAL_VIEWS: "views",
}

SEARCH_TEMPLATE ="madara-core/content/content-search"
ARCHIVE_TEMPLATE = "madara-core/content/content-archive"

ADULT_COOKIE = "wpmanga-adault"


def url_encode_form(data: Mapping[str, Any]) -> str:
    """Form-encode ``data`` with both keys and values percent-encoded."""
    return "&".join(
        f"{quote(str(key), safe='')}={quote(str(value), safe='')}"
        for key, value in data.items()
    )


def construct_headers(
    profile: SiteProfile,
    headers: Optional[Dict[str, str]] = None,
    referer_path: str = "",
) -> Dict[str, str]:
    """Add the site's referer and (unless disabled) user agent to ``headers``."""
    headers = dict(headers or {})
    if profile.user_agent:
        headers["user-agent"] = profile.user_agent
    headers["referer"] = f"{profile.base_url}{referer_path}"
    return headers


def adult_cookies(profile: SiteProfile) -> list:
    return [Cookie(name=ADULT_COOKIE, value="1", domain=profile.base_url)]


def build_ajax_request(
    profile: SiteProfile,
    page: int,
    page_size: int,
    sort_key: str = "",
    search_term: str = "",
) -> Request:
    """
    Build one listing request.

    Args:
        profile: Site to query
        page: Page index, starting at 0
        page_size: Rows requested per page
        sort_key: Archive meta key (ignored in search mode)
        search_term: Free-text query; non-empty switches to search mode

    Returns:
        POST request for the site's admin-ajax endpoint
    """
    data: Dict[str, Any] = {
        "action": "madara_load_more",
        "page": page,
        "vars[paged]": "1",
        "vars[posts_per_page]": page_size,
    }
    if search_term:
        data["vars[s]"] = search_term
        data["template"] = SEARCH_TEMPLATE
    else:
        data["template"] = ARCHIVE_TEMPLATE
        data["vars[orderby]"] = "meta_value_num"
        data["vars[sidebar]"] = "right"
        data["vars[post_type]"] = "wp-manga"
        data["vars[meta_key]"] = sort_key
        data["vars[order]"] = "desc"

    return Request(
        url=profile.ajax_url,
        method="POST",
        headers=construct_headers(
            profile, {"content-type": "application/x-www-form-urlencoded"}
        ),
        data=url_encode_form(data),
        cookies=adult_cookies(profile),
    )


def build_listing_page_request(profile: SiteProfile, page: int, sort_key: str = LATEST_UPDATE) -> Request:
    """
    Build a GET for one server-rendered listing page.

    Used by sites without the "load more" endpoint. WordPress numbers these
    pages from 1, so page index 0 maps to ``/page/1/``.
    """
    order = LISTING_ORDER.get(sort_key, "latest")
    return Request(
        url=f"{profile.base_url}/{profile.home_page}/page/{page + 1}/",
        method="GET",
        headers=construct_headers(profile),
        cookies=adult_cookies(profile),
        param=f"?m_orderby={order}",
    )


def build_chapter_list_request(profile: SiteProfile, numeric_id: str) -> Request:
    """Request the chapter list fragment for a title's numeric id."""
    return Request(
        url=profile.ajax_url,
        method="POST",
        headers=construct_headers(
            profile, {"content-type": "application/x-www-form-urlencoded"}
        ),
        data=url_encode_form({"action": "manga_get_chapters", "manga": numeric_id}),
    )


def next_page_metadata(result_count: int, page: int, page_size: int) -> Optional[Dict[str, int]]:
    """
    Continuation token for the page after ``page``.

    A page shorter than ``page_size`` is the last one.
    """
    if result_count < page_size:
        return None
    return {"page": page + 1}


def page_from_metadata(metadata: Optional[Mapping[str, Any]]) -> int:
    """Page index carried by a continuation token (0 when absent)."""
    if not metadata:
        return 0
    return int(metadata.get("page") or 0)


@dataclass
class PaginationState:
    """Position of one listing walk; created per top-level call."""
    page_size: int
    sort_key: str = ""
    search_term: str = ""
    page: int = 0
    finished: bool = False

    def request(self, profile: SiteProfile) -> Request:
        return build_ajax_request(
            profile, self.page, self.page_size, self.sort_key, self.search_term
        )

    def advance(self, result_count: int) -> bool:
        """
        Record the size of the page just parsed and move to the next one.

        Returns:
            True if another page should be requested
        """
        if next_page_metadata(result_count, self.page, self.page_size) is None:
            logger.debug(f"Page {self.page} returned {result_count} rows, last page")
            self.finished = True
            return False
        self.page += 1
        return True

    def stop(self) -> None:
        self.finished = True
