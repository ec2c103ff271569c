"""MCP server exposing ClipNest harvest and collection tools."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from mcp.server.fastmcp import FastMCP

from .config import HarvestConfig
from .errors import ClipNestError
from .models import ImageDescriptor
from .relay import RelayClient
from .session import CollectionSession, SessionState
from .store import ImageRecordStore
from .utils import resolve_url

logger = logging.getLogger("clipnest.mcp")
logger.setLevel(logging.ERROR)

mcp = FastMCP(name="clipnest")


def _store() -> ImageRecordStore:
    return ImageRecordStore(HarvestConfig().db_path)


@mcp.tool()
async def harvest(url: str) -> List[Dict[str, str]]:
    """Fetch a page through the ClipNest relay and list its unique images."""
    config = HarvestConfig()
    client = RelayClient(config.relay_url, timeout=config.request_timeout)
    session = CollectionSession(client.fetch_async, _store())
    view = await session.submit(url)
    if view.state is SessionState.FAILED:
        raise RuntimeError(f"{view.error}: {view.message}")
    return [{"url": image.url, "title": image.title} for image in view.images]


@mcp.tool()
async def collect(url: str, source_page: str, title: str = "") -> Dict[str, Any]:
    """Add one image to the local collection; duplicates are reported, not stored."""
    try:
        descriptor = ImageDescriptor(url=resolve_url(url, source_page), title=title)
        record = await _store().insert_async(descriptor, source_page)
    except ClipNestError as exc:
        return {"collected": False, "reason": str(exc)}
    return {"collected": True, "record": record.to_dict()}


@mcp.tool()
async def list_images() -> List[Dict[str, Any]]:
    """Return every collected image in capture order."""
    records = await _store().list_async()
    return [record.to_dict() for record in records]


def main() -> None:
    """Entry point for running the MCP server."""
    logging.basicConfig(level=logging.ERROR)
    mcp.run()


if __name__ == "__main__":
    main()
