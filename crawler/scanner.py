"""
Incremental update scan over the latest-updated feed.

The feed is ordered newest first, so the walk can stop at the first row
older than the cutoff. How many pages precede that row is unknown in
advance, which is why the scan is an open-ended async generator that
hands out one batch per page.
"""
import enum
import logging
from datetime import datetime
from typing import AsyncIterator, Awaitable, Callable, Collection, Optional, Union

from crawler.pagination import LATEST_UPDATE, PaginationState
from crawler.parser import MadaraParser, load
from crawler.timeparse import as_utc
from crawler.transport import Transport, check_challenge
from schemas import MangaUpdates
from sites import SiteProfile

logger = logging.getLogger(__name__)

UpdatesCallback = Callable[[MangaUpdates], Union[None, Awaitable[None]]]


class ScanState(str, enum.Enum):
    FETCH_PAGE = "fetch_page"
    SCAN_ROWS = "scan_rows"
    CONTINUE = "continue"
    STOP = "stop"


class UpdateScanner:
    """
    Report which watched titles were updated after a cutoff.

    Only ids from the watch set are reported, even if other titles updated.
    Each call builds its own PaginationState; nothing survives between calls.
    """

    def __init__(
        self,
        profile: SiteProfile,
        transport: Transport,
        parser: Optional[MadaraParser] = None,
        page_size: Optional[int] = None,
    ):
        self.profile = profile
        self.transport = transport
        self.parser = parser or MadaraParser(profile)
        self.page_size = page_size or profile.page_size

    async def scan(self, ids: Collection[str], time: datetime) -> AsyncIterator[MangaUpdates]:
        """
        Walk the feed and yield one batch per page that found updates.

        The walk stops after the page holding the first row at or before
        ``time``, or after a page shorter than the page size. Stop iterating
        to abandon the walk early.

        Args:
            ids: Watch set of title ids
            time: Cutoff; naive values are taken as UTC
        """
        cutoff = as_utc(time)
        watched = frozenset(ids)
        state = PaginationState(page_size=self.page_size, sort_key=LATEST_UPDATE)
        phase = ScanState.FETCH_PAGE
        site = self.profile.name

        logger.info(f"[{site}] scanning for updates since {cutoff.isoformat()} ({len(watched)} watched)")

        while phase is not ScanState.STOP:
            # FETCH_PAGE
            response = await self.transport.fetch(state.request(self.profile))
            check_challenge(response, site)
            phase = ScanState.SCAN_ROWS

            # SCAN_ROWS
            page = self.parser.filter_updated_manga(load(response.data), cutoff, watched)
            logger.info(
                f"[{site}] page {state.page}: {page.row_count} rows, "
                f"{len(page.updates)} updated, cutoff reached: {page.reached_cutoff}"
            )

            if page.reached_cutoff:
                state.stop()
                phase = ScanState.STOP
            elif state.advance(page.row_count):
                phase = ScanState.CONTINUE
            else:
                logger.info(f"[{site}] short page {state.page}, end of feed")
                phase = ScanState.STOP

            if page.updates:
                yield MangaUpdates(ids=page.updates)

            if phase is ScanState.CONTINUE:
                phase = ScanState.FETCH_PAGE

        logger.info(f"[{site}] update scan finished after page {state.page}")

    async def filter_updated_manga(
        self,
        callback: UpdatesCallback,
        time: datetime,
        ids: Collection[str],
    ) -> None:
        """
        Run a full scan, handing each batch to ``callback``.

        The callback may be a plain function or a coroutine function.
        """
        async for batch in self.scan(ids, time):
            result = callback(batch)
            if result is not None and hasattr(result, "__await__"):
                await result
