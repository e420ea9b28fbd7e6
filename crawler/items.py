"""Scrapy items for Madara catalog data."""
import scrapy


class MangaItem(scrapy.Item):
    """Item representing a title with its chapter list."""
    site = scrapy.Field()
    manga_id = scrapy.Field()  # Slug the crawl started from
    source_url = scrapy.Field()
    details = scrapy.Field()  # Manga record as a dict
    synopsis_html = scrapy.Field()  # Raw description block, cleaned by pipeline
    chapters = scrapy.Field()  # List of Chapter dicts


class ChapterItem(scrapy.Item):
    """Item representing the pages of a single chapter."""
    site = scrapy.Field()
    manga_id = scrapy.Field()
    chapter_id = scrapy.Field()
    source_url = scrapy.Field()
    pages = scrapy.Field()  # Ordered image URIs


class UpdateItem(scrapy.Item):
    """One batch found by an update scan."""
    site = scrapy.Field()
    page = scrapy.Field()
    ids = scrapy.Field()
