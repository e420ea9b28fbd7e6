import subprocess
from datetime import datetime, timedelta, timezone

import pytest

import cli
import crawl_runner
from crawl_runner import CrawlerRunner
from tests.pages import FeedTransport


def test_sites_command(capsys):
    cli.main(["sites"])
    out = capsys.readouterr().out
    assert "manhuaplus" in out
    assert "https://www.webtoon.xyz" in out


def test_no_command_prints_help():
    with pytest.raises(SystemExit):
        cli.main([])


def test_unknown_site_exits(capsys):
    with pytest.raises(SystemExit):
        cli.main(["tags", "--site", "nope"])
    assert "unknown site" in capsys.readouterr().out


def test_updates_command(monkeypatch, capsys):
    rows = [("a", "1 hours ago"), ("b", "2 hours ago"), ("z", "3 hours ago"), ("c", "11 hours ago")]
    monkeypatch.setattr(cli, "RequestsTransport", lambda: FeedTransport(rows, page_size=3))
    since = (datetime.now(timezone.utc) - timedelta(hours=10)).isoformat()

    cli.main(["updates", since, "a", "z", "c", "--site", "testsite"])

    out = capsys.readouterr().out
    assert "updated: a" in out
    assert "updated: z" in out
    assert "updated: c" not in out
    assert "Total: 2 of 3" in out


def test_updates_command_rejects_bad_date(capsys):
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["updates", "yesterday-ish", "a", "--site", "testsite"])
    assert excinfo.value.code == 1
    assert "Error: invalid date 'yesterday-ish'" in capsys.readouterr().out


def test_updates_command_crawl(monkeypatch, capsys):
    calls = []

    class _FakeRunner:
        def crawl_updates(self, site, ids, since):
            calls.append((site, ids, since))
            return True

    monkeypatch.setattr(cli, "CrawlerRunner", _FakeRunner)
    monkeypatch.setattr(cli, "RequestsTransport", lambda: pytest.fail("scan should run in scrapy"))

    cli.main(["updates", "2024-01-01", "a", "b", "--crawl", "--site", "testsite"])

    assert calls == [("testsite", ["a", "b"], datetime(2024, 1, 1, tzinfo=timezone.utc))]
    assert "completed successfully" in capsys.readouterr().out


def test_crawl_command(monkeypatch, capsys):
    calls = []

    class _FakeRunner:
        def crawl_title(self, site, manga_id, pages=True):
            calls.append((site, manga_id, pages))
            return True

    monkeypatch.setattr(cli, "CrawlerRunner", _FakeRunner)
    cli.main(["crawl", "solo-climber", "--site", "testsite", "--no-pages"])

    assert calls == [("testsite", "solo-climber", False)]
    assert "completed successfully" in capsys.readouterr().out


def _completed(returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


def test_runner_builds_scrapy_command(monkeypatch):
    commands = []

    def _fake_run(command, **kwargs):
        commands.append(command)
        return _completed(stdout="done\n")

    monkeypatch.setattr(crawl_runner.subprocess, "run", _fake_run)

    assert CrawlerRunner().crawl_title("testsite", "solo-climber", pages=False) is True
    assert commands == [[
        "scrapy", "crawl", "madara",
        "-a", "site=testsite",
        "-a", "manga_id=solo-climber",
        "-a", "pages=0",
    ]]


def test_runner_updates_command(monkeypatch):
    commands = []
    monkeypatch.setattr(
        crawl_runner.subprocess, "run", lambda command, **kwargs: commands.append(command) or _completed()
    )
    since = datetime(2024, 1, 1, tzinfo=timezone.utc)

    assert CrawlerRunner().crawl_updates("testsite", ["a", "b"], since) is True
    assert commands[0][-4:] == ["-a", "ids=a,b", "-a", "since=2024-01-01T00:00:00+00:00"]


def test_runner_detects_errors(monkeypatch):
    monkeypatch.setattr(
        crawl_runner.subprocess, "run",
        lambda command, **kwargs: _completed(stderr="2024 [scrapy] ERROR: boom\n'log_count/ERROR': 1"),
    )
    assert CrawlerRunner().run_spider("madara", "testsite", {"manga_id": "x"}) is False

    monkeypatch.setattr(crawl_runner.subprocess, "run", lambda command, **kwargs: _completed(returncode=1))
    assert CrawlerRunner().run_spider("madara", "testsite", {"manga_id": "x"}) is False


def test_runner_timeout(monkeypatch):
    def _timeout(command, **kwargs):
        raise subprocess.TimeoutExpired(command, kwargs["timeout"])

    monkeypatch.setattr(crawl_runner.subprocess, "run", _timeout)
    assert CrawlerRunner(timeout=1).run_spider("madara", "testsite") is False


def test_runner_unknown_site(monkeypatch):
    monkeypatch.setattr(crawl_runner.subprocess, "run", lambda *a, **k: pytest.fail("should not run"))
    assert CrawlerRunner().run_spider("madara", "nope") is False
