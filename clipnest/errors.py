"""Exception types raised across the harvesting pipeline."""

from __future__ import annotations


class ClipNestError(Exception):
    """Base class for recoverable harvester failures."""


class MalformedUrl(ClipNestError):
    """Raised when an image reference cannot be resolved to an absolute URL."""


class DuplicateUrl(ClipNestError):
    """Raised when an image with the same resolved URL is already stored."""

    def __init__(self, url: str) -> None:
        super().__init__(f"Image already collected: {url}")
        self.url = url


class StorageUnavailable(ClipNestError):
    """Raised when the local store cannot be opened or written."""


class MissingParameter(ClipNestError):
    """Raised when a relay request omits a required query parameter."""


class UpstreamFetchError(ClipNestError):
    """Raised when the relay (or a direct fetch) cannot retrieve a URL."""

    def __init__(self, url: str, detail: str) -> None:
        super().__init__(f"Failed to fetch {url}: {detail}")
        self.url = url
        self.detail = detail


class ParseError(ClipNestError):
    """Raised when fetched content cannot be parsed as markup."""
