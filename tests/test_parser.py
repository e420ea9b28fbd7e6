from datetime import datetime, timedelta, timezone

import pytest

from crawler.exceptions import ExtractionError
from crawler.parser import MadaraParser, load
from schemas import MangaStatus
from tests.pages import (
    ADVANCED_SEARCH_PAGE,
    CHAPTER_LIST,
    CHAPTER_LIST_BROKEN_ROW,
    CHAPTER_PAGE,
    CHAPTER_PAGE_BROKEN,
    DETAILS_PAGE,
    DETAILS_PAGE_BOOKMARK_ID,
    DETAILS_PAGE_NO_IMAGE,
    MENU_PAGE,
    SEARCH_RESULTS,
    SEARCH_RESULTS_BROKEN,
    TEST_PROFILE,
    listing_page,
    listing_row,
)


@pytest.fixture
def parser():
    return MadaraParser(TEST_PROFILE)


def test_manga_details(parser):
    manga = parser.parse_manga_details(load(DETAILS_PAGE), "solo-climber")

    assert manga.id == "1234"
    assert manga.titles == ["Solo Climber"]
    assert manga.image == "https://example.com/covers/solo%20climber.jpg"
    assert manga.author == "Kim"
    assert manga.artist == "Unknown"
    assert manga.desc == "A climber’s tale."
    assert manga.rating == 4.5
    assert manga.status == MangaStatus.ONGOING
    assert manga.hentai is True

    genres = manga.tags[0]
    assert (genres.id, genres.label) == ("0", "genres")
    assert [(t.id, t.label) for t in genres.tags] == [("action", "Action"), ("smut", "Smut")]


def test_manga_details_adult_detection_disabled():
    profile = TEST_PROFILE.model_copy(update={"detect_adult": False})
    manga = MadaraParser(profile).parse_manga_details(load(DETAILS_PAGE), "solo-climber")
    assert manga.hentai is False


def test_manga_details_fallbacks(parser):
    manga = parser.parse_manga_details(load(DETAILS_PAGE_BOOKMARK_ID), "plain")
    assert manga.id == "555"
    assert manga.author == "Unknown"
    assert manga.status == MangaStatus.COMPLETED
    assert manga.hentai is False
    assert manga.tags[0].tags == []


def test_manga_details_missing_image(parser):
    with pytest.raises(ExtractionError) as excinfo:
        parser.parse_manga_details(load(DETAILS_PAGE_NO_IMAGE), "no-cover")
    assert excinfo.value.field == "image"
    assert excinfo.value.site == "testsite"


def test_manga_details_missing_numeric_id(parser):
    with pytest.raises(ExtractionError) as excinfo:
        parser.parse_manga_details(load("<html><body></body></html>"), "nothing")
    assert excinfo.value.field == "numeric id"


def test_manga_details_strategy():
    def rename(manga, selector):
        return manga.model_copy(update={"titles": manga.titles + ["Alt"]})

    profile = TEST_PROFILE.model_copy(update={"detail_strategy": rename})
    manga = MadaraParser(profile).parse_manga_details(load(DETAILS_PAGE), "solo-climber")
    assert manga.titles == ["Solo Climber", "Alt"]


def test_numeric_id_from_shortlink(parser):
    page = '<html><head><link rel="shortlink" href="https://example.com/?p=987"/></head></html>'
    assert parser.parse_numeric_id(load(page)) == "987"


def test_chapter_number(parser):
    assert parser.parse_chapter_number("https://example.com/manga/x/chapter-12/") == 12
    assert parser.parse_chapter_number("https://example.com/manga/x/chapter-10.5/") == 10.5
    assert parser.parse_chapter_number("https://example.com/manga/x/Chapter-ep-7/") == 7
    assert parser.parse_chapter_number("https://example.com/manga/x/prologue/") is None
    assert parser.parse_chapter_number("https://example.com/manga/x/chapter-special/") is None


def test_chapter_list(parser):
    chapters = parser.parse_chapter_list(load(CHAPTER_LIST), "1234")

    assert [c.id for c in chapters] == [
        "solo-climber/prologue",
        "solo-climber/chapter-1",
        "solo-climber/chapter-2",
        "solo-climber/chapter-10.5",
    ]
    assert [c.chap_num for c in chapters] == [0, 1, 2, 10.5]
    assert all(c.manga_id == "1234" and c.lang_code == "en" for c in chapters)

    prologue, first, second, latest = chapters
    assert prologue.name == "Prologue"
    assert first.name is None
    assert first.time == datetime(2021, 3, 5, tzinfo=timezone.utc)

    now = datetime.now(timezone.utc)
    assert abs((second.time - (now - timedelta(days=2))).total_seconds()) < 5
    assert abs((latest.time - (now - timedelta(hours=5))).total_seconds()) < 5


def test_chapter_list_empty(parser):
    assert parser.parse_chapter_list(load(""), "1234") == []


def test_chapter_list_missing_link(parser):
    with pytest.raises(ExtractionError) as excinfo:
        parser.parse_chapter_list(load(CHAPTER_LIST_BROKEN_ROW), "1234")
    assert excinfo.value.field == "chapter id"


def test_chapter_details(parser):
    details = parser.parse_chapter_details(load(CHAPTER_PAGE), "solo-climber", "solo-climber/chapter-1")
    assert details.pages == [
        "https://example.com/wp-content/uploads/solo/01.jpg",
        "https://example.com/wp-content/uploads/solo/02.jpg",
    ]
    assert details.long_strip is False
    assert details.id == "solo-climber/chapter-1"


def test_chapter_details_unresolved_page(parser):
    with pytest.raises(ExtractionError):
        parser.parse_chapter_details(load(CHAPTER_PAGE_BROKEN), "solo-climber", "solo-climber/chapter-1")


def test_tags_from_advanced_search(parser):
    sections = parser.parse_tags(load(ADVANCED_SEARCH_PAGE))
    assert len(sections) == 1
    assert [(t.id, t.label) for t in sections[0].tags] == [("action", "Action"), ("romance", "Romance")]


def test_tags_from_menu():
    profile = TEST_PROFILE.model_copy(update={"has_advanced_search_page": False})
    sections = MadaraParser(profile).parse_tags(load(MENU_PAGE))
    assert [(t.id, t.label) for t in sections[0].tags] == [("comedy", "Comedy"), ("drama", "Drama")]


def test_search_results_skip_non_title_rows(parser):
    results = parser.parse_search_results(load(SEARCH_RESULTS))
    assert [(r.id, r.title) for r in results] == [
        ("solo-climber", "Solo Climber"),
        ("night-watch", "Night’s Watch"),
    ]
    assert results[1].image == "https://example.com/c2-110.jpg"


def test_search_results_missing_image(parser):
    with pytest.raises(ExtractionError) as excinfo:
        parser.parse_search_results(load(SEARCH_RESULTS_BROKEN))
    assert "c-tabs-item__content" in str(excinfo.value)


def test_home_section(parser):
    items = parser.parse_home_section(load(listing_page([("alpha", "1 hour ago"), ("beta", "2 days ago")])))
    assert [(i.id, i.title) for i in items] == [("alpha", "Title alpha"), ("beta", "Title beta")]
    assert items[0].image == "https://example.com/covers/alpha.jpg"


def test_home_section_strict(parser):
    row = listing_row("alpha", "1 hour ago").replace('data-src="https://example.com/covers/alpha.jpg"', "")
    with pytest.raises(ExtractionError):
        parser.parse_home_section(load(row))


def test_filter_updated_manga_stops_at_cutoff(parser):
    page = listing_page([
        ("a", "1 hours ago"),
        ("b", "2 hours ago"),
        ("z", "3 hours ago"),
        ("c", "11 hours ago"),
        ("d", "12 hours ago"),
    ])
    cutoff = datetime.now(timezone.utc) - timedelta(hours=10)
    result = parser.filter_updated_manga(load(page), cutoff, {"a", "z", "d"})

    assert result.updates == ["a", "z"]
    assert result.reached_cutoff is True
    assert result.row_count == 5


def test_filter_updated_manga_new_badge_and_naive_cutoff(parser):
    page = listing_row("a", "10 mins ago", new_tag=True)
    cutoff = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(hours=1)
    result = parser.filter_updated_manga(load(page), cutoff, {"a"})
    assert result.updates == ["a"]
    assert result.reached_cutoff is False


def test_listing_rows_carry_update_time(parser):
    page = listing_page([("alpha", "5 hours ago")]) + listing_row("beta", "10 mins ago", new_tag=True)
    items = parser.parse_listing_rows(load(page))

    now = datetime.now(timezone.utc)
    assert [i.id for i in items] == ["alpha", "beta"]
    assert abs((items[0].time - (now - timedelta(hours=5))).total_seconds()) < 5
    assert abs((items[1].time - (now - timedelta(minutes=10))).total_seconds()) < 5

    home = parser.parse_home_section(load(page))
    assert home[0].time is not None
