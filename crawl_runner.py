"""Run the Scrapy batch crawls as subprocesses."""
import logging
import subprocess
from datetime import datetime
from typing import Collection, List, Optional

from sites import SiteRegistry

logger = logging.getLogger(__name__)

# Markers in scrapy's stats dump that mean the crawl hit errors
ERROR_MARKERS = ('spider_exceptions', 'log_count/error')


class CrawlerRunner:
    """
    Run Scrapy spiders programmatically.

    Spiders run as ``scrapy crawl`` in a subprocess from the project root so
    that ``scrapy.cfg`` and the root modules resolve the same way as for a
    manual crawl.
    """

    def __init__(self, timeout: int = 3600):
        self.timeout = timeout

    def crawl_title(self, site: str, manga_id: str, pages: bool = True) -> bool:
        """
        Crawl one title with the ``madara`` spider.

        Args:
            site: Registered site name
            manga_id: Title slug
            pages: Also fetch every chapter's page images

        Returns:
            True if the crawl finished without errors
        """
        return self.run_spider('madara', site, {
            'manga_id': manga_id,
            'pages': '1' if pages else '0',
        })

    def crawl_updates(self, site: str, ids: Collection[str], since: datetime) -> bool:
        """Scan a site's latest feed with the ``madara_updates`` spider."""
        return self.run_spider('madara_updates', site, {
            'ids': ','.join(ids),
            'since': since.isoformat(),
        })

    def build_command(self, spider_name: str, site: str, arguments: dict) -> List[str]:
        command = ['scrapy', 'crawl', spider_name, '-a', f'site={site}']
        for key, value in arguments.items():
            command.extend(['-a', f'{key}={value}'])
        return command

    def run_spider(self, spider_name: str, site: str, arguments: Optional[dict] = None) -> bool:
        """
        Run a spider for a site.

        Args:
            spider_name: Name of the spider to run
            site: Registered site name
            arguments: Extra ``-a`` spider arguments

        Returns:
            True if successful, False otherwise
        """
        if SiteRegistry.get(site) is None:
            logger.error(f"Unknown site: {site}")
            return False

        command = self.build_command(spider_name, site, arguments or {})
        logger.info(f"=== Starting spider '{spider_name}' for {site} ===")
        logger.info(f"Executing command: {' '.join(command)}")

        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            logger.error(f"=== Spider TIMEOUT after {self.timeout} seconds ===")
            if e.stderr:
                logger.error(f"Partial stderr: {str(e.stderr)[:1000]}")
            return False
        except OSError as e:
            logger.error(f"Could not start scrapy: {e}")
            return False

        logger.info(f"Scrapy process completed with return code: {result.returncode}")

        if result.stdout:
            logger.info("=== Scrapy Output (stdout) ===")
            for line in result.stdout.strip().split('\n'):
                if line.strip():
                    logger.info(f"  {line}")

        if result.returncode != 0:
            logger.error(f"=== Spider failed with return code {result.returncode} ===")
            logger.error(f"Full stderr: {result.stderr[:2000]}")
            return False

        stderr = result.stderr.lower()
        if any(marker in stderr for marker in ERROR_MARKERS):
            error_lines = [line for line in result.stderr.split('\n') if 'ERROR' in line]
            logger.error("=== Spider completed with ERRORS ===")
            for line in error_lines[:5]:
                logger.error(f"  {line}")
            return False

        logger.info(f"=== Spider '{spider_name}' completed successfully ===")
        return True
