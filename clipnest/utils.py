"""Utility helpers for URL normalization and filename handling."""

from __future__ import annotations

import re
from urllib.parse import unquote, urljoin, urlparse

from .errors import MalformedUrl

_FILENAME_PATTERN = re.compile(r"[^A-Za-z0-9._-]+")
_HIERARCHICAL_SCHEMES = {"http", "https", "ftp", "ws", "wss"}


def _is_absolute(value: str) -> bool:
    parsed = urlparse(value)
    if not parsed.scheme:
        return False
    if parsed.scheme in _HIERARCHICAL_SCHEMES:
        return bool(parsed.netloc)
    # data:, blob: and similar opaque URIs have no authority component.
    return True


def resolve_url(candidate: str, base_url: str) -> str:
    """Resolve an image reference against the page it was found on.

    Absolute references are returned unchanged so that resolving twice is a
    no-op. Relative references (including ``.``/``..`` segments and
    protocol-relative ``//host/path`` forms) are joined onto ``base_url``.

    Raises:
        MalformedUrl: if neither the candidate nor the base is a usable URL.
    """
    candidate = (candidate or "").strip()
    base_url = (base_url or "").strip()
    try:
        return _resolve(candidate, base_url)
    except ValueError as exc:
        # urlparse rejects things like unbalanced IPv6 brackets.
        raise MalformedUrl(f"Cannot parse {candidate!r}: {exc}") from exc


def _resolve(candidate: str, base_url: str) -> str:
    if candidate and _is_absolute(candidate):
        return candidate
    if not base_url or not _is_absolute(base_url):
        raise MalformedUrl(
            f"Cannot resolve {candidate!r} against base {base_url!r}"
        )
    if not candidate:
        raise MalformedUrl(f"Empty image reference on {base_url}")
    resolved = urljoin(base_url, candidate)
    if not _is_absolute(resolved):
        raise MalformedUrl(f"Resolved {candidate!r} to non-absolute {resolved!r}")
    return resolved


def suggested_filename(url: str, fallback: str = "image") -> str:
    """Pick a download filename from the last path segment of ``url``."""
    path = urlparse(url).path
    name = unquote(path.rsplit("/", 1)[-1]) if path else ""
    name = _FILENAME_PATTERN.sub("-", name).strip("-.")
    return name[:120] or fallback
