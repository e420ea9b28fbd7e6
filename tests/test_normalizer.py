from normalizer import SynopsisCleaner, clean_title, normalize_creator, parse_rating


def test_clean_title_drops_badges():
    assert clean_title("HOT Solo Climber NEW") == "Solo Climber"
    assert clean_title("Solo\\n Climber") == "Solo Climber"
    assert clean_title("") == ""


def test_normalize_creator():
    assert normalize_creator("Kim") == "Kim"
    assert normalize_creator("Updating") == "Unknown"
    assert normalize_creator("  ") == "Unknown"
    assert normalize_creator(None) == "Unknown"


def test_parse_rating():
    assert parse_rating("4.5") == 4.5
    assert parse_rating("Your Rating 3") == 3
    assert parse_rating("no votes") == 0
    assert parse_rating(None) == 0


def test_synopsis_html_is_cleaned():
    html = (
        '<div class="description-summary"><p>A <em>short</em> tale.</p>'
        '<script>track();</script>'
        '<div class="c-content-readmore"><span>Show more</span></div></div>'
    )
    clean = SynopsisCleaner().clean_html(html)
    assert "<p>A <em>short</em> tale.</p>" in clean
    assert "script" not in clean
    assert "track" not in clean
    assert "Show more" not in clean


def test_synopsis_text():
    cleaner = SynopsisCleaner()
    assert cleaner.extract_text("<p>One.</p><p>Two.</p> Show more") == "One. Two."
    assert cleaner.extract_text("") == ""
