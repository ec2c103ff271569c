"""Image downloading and filename utilities."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Tuple

import requests
from filetype import guess

from .config import DEFAULT_USER_AGENT
from .errors import UpstreamFetchError
from .utils import suggested_filename

logger = logging.getLogger("clipnest.images")

MAX_IMAGE_BYTES = 25 * 1024 * 1024


def detect_image_format(data: bytes) -> Optional[str]:
    """Detect image type using filetype; returns lowercase extension."""
    kind = guess(data)
    if kind and kind.mime.startswith("image/"):
        ext = kind.extension.lower()
        if ext == "jpeg":
            return "jpg"
        return ext
    return None


def infer_image_extension(content_type: Optional[str], data: bytes) -> Optional[str]:
    """Guess an image file extension from HTTP metadata or file signature."""
    detected = detect_image_format(data)
    if detected:
        return detected
    if not content_type:
        return None
    parts = content_type.split(";")[0].split("/")
    if len(parts) == 2 and parts[0] == "image":
        ext = parts[1].strip().lower()
        if ext == "jpeg":
            ext = "jpg"
        return ext
    return None


def fetch_image_bytes(
    url: str,
    timeout: float = 15.0,
    session: Optional[requests.Session] = None,
    user_agent: str = DEFAULT_USER_AGENT,
) -> Tuple[bytes, str]:
    """Fetch ``url`` directly and return its body and Content-Type."""
    headers = {"User-Agent": user_agent}
    try:
        if session is None:
            resp = requests.get(url, timeout=timeout, headers=headers)
        else:
            resp = session.get(url, timeout=timeout, headers=headers)
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise UpstreamFetchError(url, str(exc)) from exc
    data = resp.content
    if len(data) > MAX_IMAGE_BYTES:
        raise UpstreamFetchError(url, f"image larger than {MAX_IMAGE_BYTES} bytes")
    return data, resp.headers.get("Content-Type", "")


def save_image_bytes(
    data: bytes,
    filename: str,
    dest_dir: Path,
    content_type: Optional[str] = None,
) -> Path:
    """Write ``data`` under ``dest_dir`` without overwriting existing files."""
    dest_dir.mkdir(parents=True, exist_ok=True)
    stem, dot, suffix = filename.rpartition(".")
    if not dot:
        stem, suffix = filename, ""
        extension = infer_image_extension(content_type, data)
        if extension:
            suffix = extension
    counter = 0
    while True:
        name = f"{stem}-{counter}" if counter else stem
        destination = dest_dir / (f"{name}.{suffix}" if suffix else name)
        try:
            # "x" fails if another writer already claimed the name.
            with open(destination, "xb") as handle:
                handle.write(data)
            break
        except FileExistsError:
            counter += 1
    logger.info("Saved image to %s", destination)
    return destination


def download_image(
    url: str,
    dest_dir: Path,
    timeout: float = 15.0,
    session: Optional[requests.Session] = None,
) -> Path:
    """Download ``url`` into ``dest_dir`` and return the written path."""
    data, content_type = fetch_image_bytes(url, timeout=timeout, session=session)
    return save_image_bytes(data, suggested_filename(url), dest_dir, content_type)
