"""Scrapy pipelines for validation, normalization and export."""
import json
import os
from datetime import datetime, timezone

from scrapy.exceptions import DropItem
import logging

from config import settings
from crawler.items import ChapterItem, MangaItem, UpdateItem
from crawler.listing import sort_chapters
from normalizer import SynopsisCleaner
from schemas import Chapter

logger = logging.getLogger(__name__)


class ValidationPipeline:
    """Validate scraped items before processing."""

    def process_item(self, item, spider):
        """Validate that required fields are present."""
        if isinstance(item, MangaItem):
            details = item.get('details') or {}
            for field in ('id', 'image'):
                if not details.get(field):
                    raise DropItem(f"Missing required field: {field}")
            if item.get('chapters') is None:
                raise DropItem("Missing chapter list")
            logger.info(f"Validation passed for: {details['titles'][0]}")

        elif isinstance(item, ChapterItem):
            if not item.get('pages'):
                raise DropItem(f"Chapter {item.get('chapter_id')} has no pages")

        elif isinstance(item, UpdateItem):
            if not item.get('ids'):
                raise DropItem("Empty update batch")

        return item


class NormalizationPipeline:
    """Normalize chapter lists and clean synopsis markup."""

    def __init__(self):
        self.cleaner = SynopsisCleaner()

    def process_item(self, item, spider):
        if not isinstance(item, MangaItem):
            return item

        chapters = [Chapter.model_validate(c) for c in item['chapters']]
        item['chapters'] = [c.model_dump(mode='json') for c in sort_chapters(chapters)]
        item['synopsis_html'] = self.cleaner.clean_html(item.get('synopsis_html') or '')

        logger.info(
            f"Normalized {item['details']['titles'][0]}: "
            f"{len(item['chapters'])} chapters"
        )
        return item


class JsonLinesPipeline:
    """Append every item as one JSON line to a per-run file."""

    def __init__(self, output_dir: str):
        self.output_dir = output_dir
        self.file = None
        self.path = None

    @classmethod
    def from_crawler(cls, crawler):
        return cls(crawler.settings.get('CRAWL_OUTPUT_DIR', settings.crawl_output_dir))

    def open_spider(self, spider):
        """Open the output file when spider starts."""
        os.makedirs(self.output_dir, exist_ok=True)
        stamp = datetime.now(timezone.utc).strftime('%Y%m%d-%H%M%S')
        site = getattr(getattr(spider, 'profile', None), 'name', 'unknown')
        self.path = os.path.join(self.output_dir, f"{spider.name}-{site}-{stamp}.jsonl")
        self.file = open(self.path, 'a', encoding='utf-8')
        logger.info(f"Writing items to {self.path}")

    def close_spider(self, spider):
        """Close the output file when spider closes."""
        if self.file:
            self.file.close()
            logger.info(f"Closed {self.path}")

    def process_item(self, item, spider):
        record = {'type': type(item).__name__, **dict(item)}
        self.file.write(json.dumps(record, ensure_ascii=False) + '\n')
        return item
