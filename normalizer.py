"""Text normalization and cleaning utilities."""
import re
from typing import Optional
import logging

import bleach
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"

# Badges Madara renders inside the title heading
TITLE_BADGES = ("NEW", "HOT")


class SynopsisCleaner:
    """
    Clean the description block of a title page.

    Removes scripts, the "Show more" toggle and other junk. Produces
    either plain text or a small, safe HTML fragment.
    """

    # Allowed HTML tags for synopsis fragments
    ALLOWED_TAGS = ['p', 'br', 'em', 'strong', 'b', 'i', 'u', 'ul', 'ol', 'li']

    ALLOWED_ATTRIBUTES = {}

    TOGGLE_TEXT = "Show more"

    def clean_html(self, html: str) -> str:
        """
        Clean synopsis HTML.

        Args:
            html: Raw HTML string

        Returns:
            Cleaned HTML string
        """
        if not html:
            return ""

        soup = BeautifulSoup(html, 'lxml')

        for tag in soup(['script', 'style', 'iframe', 'noscript']):
            tag.decompose()

        # The expand toggle lives in its own element
        for element in soup.find_all(class_=re.compile(r'c-content-readmore|show-more')):
            element.decompose()

        clean = bleach.clean(
            str(soup),
            tags=self.ALLOWED_TAGS,
            attributes=self.ALLOWED_ATTRIBUTES,
            strip=True,
        )
        clean = clean.replace(self.TOGGLE_TEXT, '')

        return self._normalize_whitespace(clean)

    def _normalize_whitespace(self, html: str) -> str:
        html = re.sub(r'\n{3,}', '\n\n', html)
        html = re.sub(r' {2,}', ' ', html)
        html = re.sub(r'<p>\s*</p>', '', html)
        return html.strip()

    def extract_text(self, html: str) -> str:
        """
        Extract plain synopsis text from HTML.

        Args:
            html: HTML string

        Returns:
            Plain text with the "Show more" toggle removed
        """
        if not html:
            return ""
        soup = BeautifulSoup(html, 'lxml')
        for tag in soup(['script', 'style', 'noscript']):
            tag.decompose()
        text = soup.get_text(separator=' ', strip=True)
        text = text.replace(self.TOGGLE_TEXT, '')
        return re.sub(r'\s{2,}', ' ', text).strip()


def clean_title(raw_title: str) -> str:
    """Drop the first NEW/HOT badge token and literal "\\n" leftovers."""
    title = raw_title or ''
    for badge in TITLE_BADGES:
        title = title.replace(badge, '', 1)
    return title.replace('\\n', '').strip()


def normalize_creator(raw_name: Optional[str]) -> str:
    """Map Madara's "Updating" placeholder (or nothing) to "Unknown"."""
    name = (raw_name or '').replace('\\n', '').strip()
    if not name:
        return UNKNOWN
    return name.replace('Updating', UNKNOWN)


def parse_rating(raw_rating: Optional[str]) -> float:
    """
    Parse the average vote shown next to "Your Rating".

    Returns:
        Rating, or 0 when the text holds no number
    """
    text = (raw_rating or '').replace('Your Rating', '').strip()
    match = re.search(r'\d+(?:\.\d+)?', text)
    if not match:
        return 0
    return float(match.group(0))
