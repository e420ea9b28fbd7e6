from datetime import datetime

from crawler.items import UpdateItem
from crawler.pagination import LATEST_UPDATE, PaginationState
from crawler.spiders.base_spider import SiteSpider, to_scrapy_request
from crawler.timeparse import as_utc


class MadaraUpdatesSpider(SiteSpider):
    """
    Walk a site's latest-updated feed until a cutoff is crossed.

    Usage:
        scrapy crawl madara_updates -a site=manhuaplus \\
            -a ids=title-a,title-b -a since=2024-01-01T00:00:00+00:00

    Each page is requested only after the previous one was parsed, since
    whether to continue depends on that page's rows.
    """

    name = "madara_updates"

    custom_settings = {
        "CONCURRENT_REQUESTS_PER_DOMAIN": 1,
    }

    def __init__(self, site: str, ids: str, since: str, *args, **kwargs):
        super().__init__(site, *args, **kwargs)
        self.watched = frozenset(i.strip() for i in ids.split(',') if i.strip())
        self.cutoff = as_utc(datetime.fromisoformat(since))
        self.state = PaginationState(page_size=self.profile.page_size, sort_key=LATEST_UPDATE)

    def start_requests(self):
        self.logger.info(
            f"Scanning {self.profile.name} for {len(self.watched)} titles "
            f"updated after {self.cutoff.isoformat()}"
        )
        yield self._page_request()

    def _page_request(self):
        return to_scrapy_request(
            self.state.request(self.profile),
            self.parse,
            dont_filter=True,
            errback=self.handle_error,
        )

    def parse(self, response):
        page = self.parser.filter_updated_manga(response.selector, self.cutoff, self.watched)
        self.logger.info(
            f"Page {self.state.page}: {page.row_count} rows, {len(page.updates)} updated"
        )

        if page.updates:
            item = UpdateItem()
            item['site'] = self.profile.name
            item['page'] = self.state.page
            item['ids'] = page.updates
            yield item

        if page.reached_cutoff:
            self.state.stop()
            self.logger.info(f"Cutoff reached on page {self.state.page}")
            return

        if self.state.advance(page.row_count):
            yield self._page_request()
        else:
            self.logger.info(f"Short page {self.state.page}, end of feed")
