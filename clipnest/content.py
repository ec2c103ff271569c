"""HTML parsing and image candidate extraction."""

from __future__ import annotations

import logging
import re
from typing import Callable, List, Optional, Set
from urllib.parse import urlparse

from bs4 import BeautifulSoup
from bs4.element import Tag

from .errors import MalformedUrl, ParseError
from .models import ImageDescriptor
from .utils import resolve_url

logger = logging.getLogger("clipnest.content")

SourcePredicate = Callable[[str], bool]

RASTER_EXTENSION_PATTERN = re.compile(r"\.(jpg|jpeg|png|gif)$", re.IGNORECASE)


def has_source(src: Optional[str]) -> bool:
    """Loose eligibility: any non-empty source reference."""
    return bool(src and src.strip())


def has_raster_extension(src: Optional[str]) -> bool:
    """Strict eligibility: the URL path ends in a common raster extension."""
    if not has_source(src):
        return False
    try:
        path = urlparse(src.strip()).path
    except ValueError:
        return False
    return bool(RASTER_EXTENSION_PATTERN.search(path))


def image_title(alt: Optional[str], title: Optional[str]) -> str:
    """Alt text first, then the title attribute, else empty."""
    for value in (alt, title):
        if value and value.strip():
            return value.strip()
    return ""


def _attribute(tag: Tag, name: str) -> str:
    value = tag.get(name)
    if isinstance(value, list):
        value = " ".join(value)
    return value or ""


def parse_html(html: str) -> BeautifulSoup:
    """Parse ``html`` into a document, raising ParseError on unusable input."""
    if isinstance(html, bytes):
        html = html.decode("utf-8", errors="replace")
    if not isinstance(html, str):
        raise ParseError(f"Expected markup text, got {type(html).__name__}")
    try:
        return BeautifulSoup(html, "html.parser")
    except Exception as exc:  # pylint: disable=broad-except
        raise ParseError(f"Unable to parse markup: {exc}") from exc


def extract_images(
    html: str,
    base_url: str,
    predicate: SourcePredicate = has_raster_extension,
) -> List[ImageDescriptor]:
    """Return the unique image descriptors referenced by ``html``.

    Images are visited in document order. Sources that are empty, rejected by
    ``predicate`` or impossible to resolve are skipped, and a URL that was
    already emitted earlier in the document is not emitted again.
    """
    soup = parse_html(html)
    seen: Set[str] = set()
    descriptors: List[ImageDescriptor] = []
    for img in soup.find_all("img"):
        src = _attribute(img, "src").strip()
        if not src or not predicate(src):
            continue
        try:
            absolute_url = resolve_url(src, base_url)
        except MalformedUrl as exc:
            logger.debug("Skipping image %r: %s", src, exc)
            continue
        if absolute_url in seen:
            continue
        seen.add(absolute_url)
        title = image_title(_attribute(img, "alt"), _attribute(img, "title"))
        descriptors.append(ImageDescriptor(url=absolute_url, title=title))
    logger.debug("Extracted %d image(s) from %s", len(descriptors), base_url)
    return descriptors
