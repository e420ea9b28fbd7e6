"""Scrapy middlewares for callback failures, retries and anti-bot challenges."""
from scrapy import signals
from scrapy.downloadermiddlewares.retry import RetryMiddleware
from scrapy.exceptions import IgnoreRequest
import logging

from crawler.exceptions import CHALLENGE_HINT, ExtractionError
from crawler.transport import CHALLENGE_STATUS

logger = logging.getLogger(__name__)


def site_name(spider) -> str:
    return getattr(getattr(spider, 'profile', None), 'name', spider.name)


class ExtractionErrorMiddleware:
    """
    Report spider callback failures per site.

    Markup that no longer matches a site's selectors shows up as an
    ExtractionError; it is counted under ``madara/extraction_errors/<site>``
    so a crawl summary points at the broken site.
    """

    def __init__(self, stats):
        self.stats = stats

    @classmethod
    def from_crawler(cls, crawler):
        middleware = cls(crawler.stats)
        crawler.signals.connect(middleware.spider_error, signal=signals.spider_error)
        return middleware

    def spider_error(self, failure, response, spider):
        site = site_name(spider)
        if failure.check(ExtractionError):
            self.stats.inc_value(f"madara/extraction_errors/{site}")
            logger.error(f"[{site}] markup not understood at {response.url}: {failure.value}")
        else:
            logger.error(f"[{site}] {spider.name} failed on {response.url}: {failure.value}")


class ChallengeMiddleware:
    """
    Drop requests answered with an anti-bot challenge.

    A 503 needs the user to clear the challenge in a browser, so retrying
    it is pointless.
    """

    def process_response(self, request, response, spider):
        if response.status == CHALLENGE_STATUS:
            logger.error(CHALLENGE_HINT.format(site=site_name(spider)))
            logger.error(f"URL: {request.url}")
            raise IgnoreRequest(f"Anti-bot challenge for {request.url}")
        return response


class ChallengeAwareRetryMiddleware(RetryMiddleware):
    """Scrapy's retry middleware with the challenge status never retried."""

    def __init__(self, settings):
        super().__init__(settings)
        self.retry_http_codes.discard(CHALLENGE_STATUS)
