"""Error types raised by the Madara extraction engine."""
from typing import Optional


CHALLENGE_HINT = (
    "CLOUDFLARE BYPASS ERROR:\n"
    "Please go to Settings > Sources > {site} and press Cloudflare Bypass"
)


class MadaraError(Exception):
    """Base class for all engine errors."""


class ExtractionError(MadaraError):
    """
    A mandatory field could not be located in a fetched document.

    The cause is structural (changed or unsupported markup), so callers
    should not retry.
    """

    def __init__(
        self,
        site: str,
        entity: str,
        field: str,
        detail: Optional[str] = None,
    ):
        self.site = site
        self.entity = entity
        self.field = field
        self.detail = detail
        message = f"[{site}] could not parse {field} while extracting {entity}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class TransportChallengeError(MadaraError):
    """The site answered with an anti-bot challenge (HTTP 503)."""

    def __init__(self, site: str, status: int = 503):
        self.site = site
        self.status = status
        self.hint = CHALLENGE_HINT.format(site=site)
        super().__init__(self.hint)
