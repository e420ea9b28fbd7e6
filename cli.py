"""
CLI utility for querying Madara sites.

Usage:
    python cli.py sites                                 # List registered sites
    python cli.py details <slug> --site <name>          # Title details
    python cli.py chapters <slug> --site <name>         # Chapter list
    python cli.py pages <slug> <chapter_id> --site <name>
    python cli.py search <query> [--page N] --site <name>
    python cli.py tags --site <name>                    # Genre list
    python cli.py home --site <name>                    # Home sections
    python cli.py more <section_id> [--page N] --site <name>
    python cli.py updates <since> <id> [<id> ...] [--crawl] --site <name>
    python cli.py crawl <slug> [--no-pages] --site <name>
"""
import argparse
import asyncio
import logging
import sys
from datetime import datetime

from config import settings
from crawl_runner import CrawlerRunner
from crawler.exceptions import MadaraError
from crawler.source import MadaraSource
from crawler.timeparse import as_utc
from crawler.transport import RequestsTransport
from sites import SiteRegistry

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def print_tiles(tiles):
    print(f"\n{'ID':<40} {'Title':<40} {'Updated':<20}")
    print("-" * 100)
    for tile in tiles:
        title = tile.title[:37] + "..." if len(tile.title) > 40 else tile.title
        updated = tile.time.strftime("%Y-%m-%d %H:%M:%S") if tile.time else ""
        print(f"{tile.id[:40]:<40} {title:<40} {updated:<20}")
    print(f"\nTotal: {len(tiles)} titles")


def open_source(args) -> MadaraSource:
    profile = SiteRegistry.get(args.site) if args.site else None
    if profile is None:
        print(f"Error: unknown site '{args.site}' (see 'python cli.py sites')")
        sys.exit(1)
    return MadaraSource(profile, RequestsTransport())


def run(args, coro_factory):
    """Run one engine call, closing the transport afterwards."""
    source = open_source(args)
    try:
        return asyncio.run(coro_factory(source))
    except MadaraError as e:
        print(f"Error: {e}")
        sys.exit(2)
    finally:
        source.transport.close()


def cmd_sites(args):
    """List all registered sites."""
    print(f"\n{'Name':<20} {'Base URL':<40} {'Lang':<6} {'Advanced search':<15}")
    print("-" * 81)

    for name in SiteRegistry.names():
        profile = SiteRegistry.get(name)
        advanced = "yes" if profile.has_advanced_search_page else "no"
        print(f"{profile.name:<20} {profile.base_url:<40} {profile.language_code:<6} {advanced:<15}")

    print(f"\nTotal: {len(SiteRegistry.names())} sites")


def cmd_details(args):
    """Show title details."""
    manga = run(args, lambda source: source.get_manga_details(args.manga_id))
    print(manga.model_dump_json(indent=2))


def cmd_chapters(args):
    """List the chapters of a title."""
    async def fetch(source):
        numeric_id = await source.get_numeric_id(args.manga_id)
        return await source.get_chapters(numeric_id)

    chapters = run(args, fetch)

    print(f"\n{'Number':<8} {'ID':<60} {'Released':<20}")
    print("-" * 88)
    for chapter in chapters:
        number = f"{chapter.chap_num:g}"
        released = chapter.time.strftime("%Y-%m-%d %H:%M:%S")
        print(f"{number:<8} {chapter.id[:60]:<60} {released:<20}")
        if chapter.name:
            print(f"         {chapter.name[:80]}")

    print(f"\nTotal: {len(chapters)} chapters")


def cmd_pages(args):
    """List the page images of a chapter."""
    details = run(args, lambda source: source.get_chapter_details(args.manga_id, args.chapter_id))
    for page in details.pages:
        print(page)
    print(f"\nTotal: {len(details.pages)} pages")


def cmd_search(args):
    """Search titles."""
    results = run(args, lambda source: source.search_request(args.query, {"page": args.page}))
    print_tiles(results.results)
    if results.metadata:
        print(f"More results: --page {results.metadata['page']}")


def cmd_tags(args):
    """List the genres of a site."""
    sections = run(args, lambda source: source.get_tags())
    for section in sections:
        print(f"\n{section.label}:")
        for tag in section.tags:
            print(f"  {tag.id:<30} {tag.label}")


def cmd_home(args):
    """Show every home section."""
    sections = run(args, lambda source: source.get_home_page_sections())
    for section in sections:
        print(f"\n=== [{section.id}] {section.title} ===")
        print_tiles(section.items)


def cmd_more(args):
    """Show another page of a home section."""
    results = run(args, lambda source: source.get_view_more_items(args.section_id, {"page": args.page}))
    if results is None:
        print(f"Error: unknown section '{args.section_id}'")
        sys.exit(1)
    print_tiles(results.results)
    if results.metadata:
        print(f"More results: --page {results.metadata['page']}")


def cmd_updates(args):
    """Report which watched titles were updated after a date."""
    try:
        since = as_utc(datetime.fromisoformat(args.since))
    except ValueError:
        print(f"Error: invalid date '{args.since}' (expected ISO format, eg. 2024-01-31T12:00)")
        sys.exit(1)

    if args.crawl:
        print(f"Scanning {args.site} for {len(args.ids)} titles into {settings.crawl_output_dir}...")
        if CrawlerRunner().crawl_updates(args.site, args.ids, since):
            print("✓ Crawl completed successfully")
        else:
            print("✗ Crawl failed")
            sys.exit(1)
        return

    async def scan(source):
        found = []
        async for batch in source.scan_updates(args.ids, since):
            for manga_id in batch.ids:
                print(f"updated: {manga_id}")
            found.extend(batch.ids)
        return found

    found = run(args, scan)
    print(f"\nTotal: {len(found)} of {len(args.ids)} titles updated since {since.isoformat()}")


def cmd_crawl(args):
    """Crawl a title with scrapy and write it to the output directory."""
    if not args.site:
        print("Error: --site is required")
        sys.exit(1)
    print(f"Crawling {args.manga_id} on {args.site} into {settings.crawl_output_dir}...")

    success = CrawlerRunner().crawl_title(args.site, args.manga_id, pages=not args.no_pages)

    if success:
        print("✓ Crawl completed successfully")
    else:
        print("✗ Crawl failed")
        sys.exit(1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Madara catalog CLI"
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    def site_command(name, help_text, func):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument(
            "--site",
            default=settings.default_site,
            help="Registered site name"
        )
        sub.set_defaults(func=func)
        return sub

    sites_parser = subparsers.add_parser("sites", help="List registered sites")
    sites_parser.set_defaults(func=cmd_sites)

    details_parser = site_command("details", "Show title details", cmd_details)
    details_parser.add_argument("manga_id", help="Title slug")

    chapters_parser = site_command("chapters", "List chapters of a title", cmd_chapters)
    chapters_parser.add_argument("manga_id", help="Title slug")

    pages_parser = site_command("pages", "List page images of a chapter", cmd_pages)
    pages_parser.add_argument("manga_id", help="Title slug")
    pages_parser.add_argument("chapter_id", help="Chapter id from the chapter list")

    search_parser = site_command("search", "Search titles", cmd_search)
    search_parser.add_argument("query", help="Search term")
    search_parser.add_argument("--page", type=int, default=0, help="Result page")

    site_command("tags", "List genres", cmd_tags)
    site_command("home", "Show home sections", cmd_home)

    more_parser = site_command("more", "Show another page of a home section", cmd_more)
    more_parser.add_argument("section_id", help="Home section id")
    more_parser.add_argument("--page", type=int, default=1, help="Section page")

    updates_parser = site_command("updates", "Find updated titles", cmd_updates)
    updates_parser.add_argument("since", help="ISO date or datetime cutoff")
    updates_parser.add_argument("ids", nargs="+", help="Title slugs to watch")
    updates_parser.add_argument(
        "--crawl",
        action="store_true",
        help="Run the scan as a scrapy crawl and write batches to the output directory"
    )

    crawl_parser = site_command("crawl", "Crawl a title with scrapy", cmd_crawl)
    crawl_parser.add_argument("manga_id", help="Title slug")
    crawl_parser.add_argument(
        "--no-pages",
        action="store_true",
        help="Skip fetching chapter page images"
    )

    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == "__main__":
    main()
