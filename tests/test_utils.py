"""URL resolution and filename helper tests."""

from __future__ import annotations

import pytest

from clipnest.errors import MalformedUrl
from clipnest.utils import resolve_url, suggested_filename

BASE = "https://x.test/gallery/page.html"


@pytest.mark.parametrize(
    "url",
    [
        "https://cdn.test/a.png",
        "http://x.test/img/a.png?size=large",
        "data:image/png;base64,AAAA",
    ],
)
def test_absolute_urls_are_returned_unchanged(url: str) -> None:
    """Absolute references ignore the base entirely."""
    assert resolve_url(url, BASE) == url
    assert resolve_url(url, "https://other.test/") == url


@pytest.mark.parametrize(
    ("candidate", "expected"),
    [
        ("/img/cat.png", "https://x.test/img/cat.png"),
        ("img/cat.png", "https://x.test/gallery/img/cat.png"),
        ("./img/../cat.png", "https://x.test/gallery/cat.png"),
        ("../cat.png", "https://x.test/cat.png"),
        ("//cdn.test/cat.png", "https://cdn.test/cat.png"),
    ],
)
def test_relative_references_resolve_against_base(candidate: str, expected: str) -> None:
    """Relative references follow standard resolution rules."""
    assert resolve_url(candidate, BASE) == expected


def test_resolution_is_idempotent() -> None:
    """Resolving an already-resolved URL against anything is a no-op."""
    resolved = resolve_url("../img/a.png", BASE)

    assert resolve_url(resolved, "https://elsewhere.test/deep/path") == resolved


def test_same_reference_from_two_scans_matches() -> None:
    """Equivalent references on one page map to the same identity."""
    assert resolve_url("/img/a.png", "https://x.test/page") == resolve_url(
        "./img/a.png", "https://x.test/"
    )


@pytest.mark.parametrize(
    ("candidate", "base"),
    [
        ("img/a.png", ""),
        ("img/a.png", "not a url"),
        ("", "also/relative"),
        ("", "https://x.test/"),
    ],
)
def test_unresolvable_references_raise(candidate: str, base: str) -> None:
    """MalformedUrl is raised when no absolute URL can be produced."""
    with pytest.raises(MalformedUrl):
        resolve_url(candidate, base)


def test_suggested_filename_uses_last_segment() -> None:
    """Filenames come from the final path segment."""
    assert suggested_filename("https://x.test/a/b/cat%20photo.png?x=1") == "cat-photo.png"
    assert suggested_filename("https://x.test/") == "image"
    assert suggested_filename("https://x.test") == "image"


@pytest.mark.parametrize(
    ("candidate", "base"),
    [
        ("http://[broken/a.png", BASE),
        ("/a.png", "http://[broken/page"),
    ],
)
def test_unparseable_urls_raise_malformed(candidate: str, base: str) -> None:
    """Parser errors from urllib surface as MalformedUrl."""
    with pytest.raises(MalformedUrl):
        resolve_url(candidate, base)
