from parsel import Selector

from crawler.extractors import (
    decode_html_entity,
    extract_attr,
    extract_text,
    first_text,
    get_image_src,
    normalize_uri,
    path_segment,
    strip_site_prefix,
)


def img(attributes: str):
    return Selector(text=f"<img {attributes}/>").css("img")


def test_image_attribute_order():
    assert get_image_src(img('data-src="a.jpg" src="b.jpg"')) == "a.jpg"
    assert get_image_src(img('data-lazy-src="c.jpg" src="b.jpg"')) == "c.jpg"
    assert get_image_src(img('src="b.jpg"')) == "b.jpg"


def test_image_srcset_takes_first_candidate():
    selection = img('srcset="https://x.test/110.jpg 110w, https://x.test/175.jpg 175w" src="b.jpg"')
    assert get_image_src(selection) == "https://x.test/110.jpg"


def test_image_missing():
    assert get_image_src(img('alt="nothing"')) == ""
    assert get_image_src(Selector(text="<p></p>").css("img")) == ""


def test_image_uri_is_normalized():
    selection = img('data-src="\n  https://x.test/covers/solo climber.jpg  "')
    assert get_image_src(selection) == "https://x.test/covers/solo%20climber.jpg"


def test_normalize_uri_keeps_existing_escapes():
    assert normalize_uri("https://x.test/a%20b.jpg") == "https://x.test/a%20b.jpg"
    assert normalize_uri("https://x.test/?p=1&q=2") == "https://x.test/?p=1&q=2"


def test_decode_html_entity():
    assert decode_html_entity("Night&#8217;s Watch") == "Night’s Watch"
    assert decode_html_entity("") == ""


def test_text_helpers():
    selector = Selector(text="<div><p> one <b>two</b> </p><p>three</p></div>")
    assert extract_text(selector.css("p")) == "one two three"
    assert first_text(selector.css("p")) == "one two"
    assert extract_attr(selector.css("div"), "class") is None


def test_strip_site_prefix():
    assert strip_site_prefix("https://x.test/manga/solo-climber/", "https://x.test", "manga") == "solo-climber"
    assert strip_site_prefix(
        "https://x.test/comicss/manga/solo/chapter-1/", "https://x.test", "comicss/manga"
    ) == "solo/chapter-1"
    assert strip_site_prefix(None, "https://x.test", "manga") == ""


def test_path_segment():
    assert path_segment("https://x.test/manga-genre/action/", 4) == "action"
    assert path_segment("https://x.test/", 4) is None
    assert path_segment(None, 1) is None
