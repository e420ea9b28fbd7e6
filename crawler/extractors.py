"""
Field extraction helpers built on parsel selectors.

Every helper here is lenient: a missing node yields an empty value and the
caller decides whether that field is mandatory.
"""
import re
from typing import Optional, Union
from urllib.parse import quote, unquote

from parsel import Selector, SelectorList

Selection = Union[Selector, SelectorList]

# Characters left untouched by JavaScript's encodeURI
URI_SAFE = ";,/?:@&=+$-_.!~*'()#"

# Lazy-load attributes first, plain src last
IMAGE_ATTRIBUTES = ('data-src', 'data-lazy-src', 'srcset', 'src')

_ENTITY = re.compile(r'&#(\d+);')
_CONTROL = re.compile(r'[\t\n\r]')


def decode_html_entity(text: str) -> str:
    """Replace numeric character references (``&#8217;``) with characters."""
    if not text:
        return ''
    return _ENTITY.sub(lambda m: chr(int(m.group(1))), text)


def first(selection: Selection) -> SelectorList:
    """Narrow a selection to its first node, like jQuery's ``.first()``."""
    if isinstance(selection, Selector):
        return SelectorList([selection])
    return selection[:1]


def extract_text(selection: Selection) -> str:
    """Concatenated text content of every node, decoded and trimmed."""
    text = ''.join(selection.xpath('string()').getall())
    return decode_html_entity(text).strip()


def first_text(selection: Selection) -> str:
    return extract_text(first(selection))


def extract_attr(selection: Selection, name: str) -> Optional[str]:
    """Value of ``name`` on the first node, or None when absent."""
    return selection.attrib.get(name)


def normalize_uri(uri: str) -> str:
    cleaned = _CONTROL.sub('', decode_html_entity(uri.strip()))
    return quote(unquote(cleaned), safe=URI_SAFE)


def get_image_src(selection: Selection) -> str:
    """
    Resolve the image URI of the first node in ``selection``.

    The first attribute present wins: ``data-src``, ``data-lazy-src``,
    the first candidate of ``srcset``, then ``src``.

    Returns:
        Normalized URI, or an empty string when no attribute is present
    """
    attrib = selection.attrib
    image = None
    for name in IMAGE_ATTRIBUTES:
        if name in attrib:
            image = attrib[name]
            if name == 'srcset':
                parts = image.strip().split()
                image = parts[0] if parts else ''
            break
    if not image:
        return ''
    return normalize_uri(image)


def strip_site_prefix(href: Optional[str], base_url: str, traversal_path: str) -> str:
    """
    Turn an absolute title/chapter link into the site-relative identifier.

    ``https://site/manga/some-title/`` becomes ``some-title``.
    """
    if not href:
        return ''
    identifier = href.replace(f"{base_url}/{traversal_path}/", '')
    return re.sub(r'/$', '', identifier)


def path_segment(href: Optional[str], index: int) -> Optional[str]:
    """Segment ``index`` of ``href`` split on "/", or None if out of range."""
    if not href:
        return None
    parts = href.split('/')
    if index < len(parts) and parts[index]:
        return parts[index]
    return None
