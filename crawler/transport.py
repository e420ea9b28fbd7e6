"""Request/response objects and the HTTP transport the engine calls into."""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol

import requests

from config import settings
from crawler.exceptions import TransportChallengeError

logger = logging.getLogger(__name__)

CHALLENGE_STATUS = 503


@dataclass(frozen=True)
class Cookie:
    name: str
    value: str
    domain: str


@dataclass(frozen=True)
class Request:
    """A request built by the engine; the transport decides how to send it."""
    url: str
    method: str = "GET"
    headers: Dict[str, str] = field(default_factory=dict)
    # Already form-encoded body
    data: Optional[str] = None
    cookies: List[Cookie] = field(default_factory=list)
    # Appended verbatim to the URL, eg. "?style=list"
    param: str = ""

    @property
    def full_url(self) -> str:
        return f"{self.url}{self.param}"


@dataclass(frozen=True)
class Response:
    status: int
    data: str = ""


class Transport(Protocol):
    """Anything able to execute a Request."""

    async def fetch(self, request: Request) -> Response:
        ...


def check_challenge(response: Response, site: str) -> None:
    """Raise TransportChallengeError when the site served an anti-bot page."""
    if response.status == CHALLENGE_STATUS:
        logger.error(f"[{site}] anti-bot challenge (HTTP {response.status})")
        raise TransportChallengeError(site, response.status)


class RequestsTransport:
    """
    Default transport backed by a requests session.

    Blocking calls run in a worker thread so the event loop stays free.
    Requests are spaced at least ``interval`` seconds apart.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
        interval: Optional[float] = None,
    ):
        self.session = session or requests.Session()
        self.timeout = settings.request_timeout if timeout is None else timeout
        self.interval = settings.request_interval if interval is None else interval
        self._lock = asyncio.Lock()
        self._last_sent = 0.0

    async def fetch(self, request: Request) -> Response:
        async with self._lock:
            loop = asyncio.get_running_loop()
            wait = self._last_sent + self.interval - loop.time()
            if wait > 0:
                await asyncio.sleep(wait)
            self._last_sent = loop.time()
        return await asyncio.to_thread(self._send, request)

    def _send(self, request: Request) -> Response:
        logger.debug(f"{request.method} {request.full_url}")
        response = self.session.request(
            request.method,
            request.full_url,
            headers=request.headers,
            data=request.data,
            cookies={cookie.name: cookie.value for cookie in request.cookies},
            timeout=self.timeout,
        )
        return Response(status=response.status_code, data=response.text)

    def close(self) -> None:
        self.session.close()
