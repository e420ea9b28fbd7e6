import asyncio

import pytest

from crawler.exceptions import TransportChallengeError
from crawler.pagination import build_ajax_request, build_listing_page_request
from crawler.transport import RequestsTransport, Response, check_challenge
from tests.pages import TEST_PROFILE


class _FakeReply:
    def __init__(self, status_code, text):
        self.status_code = status_code
        self.text = text


class _FakeSession:
    def __init__(self, status_code=200, text="<html></html>"):
        self.status_code = status_code
        self.text = text
        self.calls = []
        self.closed = False

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        return _FakeReply(self.status_code, self.text)

    def close(self):
        self.closed = True


def test_requests_transport_sends_request():
    session = _FakeSession(text="<p>ok</p>")
    transport = RequestsTransport(session=session, timeout=5, interval=0)

    response = asyncio.run(transport.fetch(build_listing_page_request(TEST_PROFILE, 0)))

    assert response == Response(status=200, data="<p>ok</p>")
    method, url, kwargs = session.calls[0]
    assert (method, url) == ("GET", "https://example.com/manga/page/1/?m_orderby=latest")
    assert kwargs["cookies"] == {"wpmanga-adault": "1"}
    assert kwargs["timeout"] == 5
    assert kwargs["headers"]["user-agent"] == "test-agent"


def test_requests_transport_reused_across_event_loops():
    session = _FakeSession()
    transport = RequestsTransport(session=session, interval=0)

    async def burst():
        requests = [build_ajax_request(TEST_PROFILE, page, 3) for page in range(3)]
        return await asyncio.gather(*(transport.fetch(r) for r in requests))

    # One transport serves several asyncio.run calls, as the CLI and API do
    assert len(asyncio.run(burst())) == 3
    assert len(asyncio.run(burst())) == 3
    assert len(session.calls) == 6

    transport.close()
    assert session.closed


def test_challenge_status_raises():
    with pytest.raises(TransportChallengeError) as excinfo:
        check_challenge(Response(status=503, data=""), "testsite")
    assert "testsite" in str(excinfo.value)

    check_challenge(Response(status=404, data=""), "testsite")
