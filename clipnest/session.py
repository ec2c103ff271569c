"""Remote harvest sessions: fetch a page, list its images, act on each one."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, Dict, Iterator, List, Optional, Tuple

from .content import SourcePredicate, extract_images, has_raster_extension
from .errors import ClipNestError
from .images import download_image
from .models import ImageDescriptor, ImageRecord
from .store import ImageRecordStore

logger = logging.getLogger("clipnest.session")

NO_IMAGES_MESSAGE = "No images found"
FETCH_FAILED_MESSAGE = (
    "Image harvest failed; make sure the address is correct and reachable"
)

PageFetcher = Callable[[str], Awaitable[str]]
Downloader = Callable[[str, Path], Path]


class SessionState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class CaptureStatus:
    """Per-session map of image URL to "action in flight".

    Entries are kept per action, so a pending download of an image never
    disables its collect control (and vice versa).
    """

    def __init__(self) -> None:
        self._pending: Dict[Tuple[str, str], bool] = {}

    def __getitem__(self, url: str) -> bool:
        return any(
            pending for (item, _), pending in self._pending.items() if item == url
        )

    def __iter__(self) -> Iterator[str]:
        urls = []
        for (url, _), pending in self._pending.items():
            if pending and url not in urls:
                urls.append(url)
        return iter(urls)

    def is_pending(self, url: str, action: str) -> bool:
        return self._pending.get((url, action), False)

    def begin(self, url: str, action: str) -> bool:
        """Mark ``action`` on ``url`` busy; returns False if it already was."""
        if self.is_pending(url, action):
            return False
        self._pending[(url, action)] = True
        return True

    def finish(self, url: str, action: str) -> None:
        if (url, action) in self._pending:
            self._pending[(url, action)] = False

    def clear(self) -> None:
        self._pending.clear()


@dataclass
class ItemOutcome:
    """Result of a download or collect action on one listed image."""

    url: str
    action: str
    ok: bool
    message: str = ""
    path: Optional[Path] = None
    record: Optional[ImageRecord] = None


@dataclass
class SessionView:
    """What the session currently displays."""

    state: SessionState = SessionState.IDLE
    page_url: str = ""
    images: List[ImageDescriptor] = field(default_factory=list)
    message: str = ""
    error: str = ""


class CollectionSession:
    """Drives one harvest view.

    Submitting a URL always starts over: prior results, errors and per-item
    status are dropped, and a response that arrives for an earlier submission
    is discarded instead of rendered.
    """

    def __init__(
        self,
        fetch_page: PageFetcher,
        store: ImageRecordStore,
        downloader: Downloader = download_image,
        predicate: SourcePredicate = has_raster_extension,
    ) -> None:
        self.fetch_page = fetch_page
        self.store = store
        self.downloader = downloader
        self.predicate = predicate
        self.view = SessionView()
        self.status = CaptureStatus()
        self._generation = 0

    @property
    def state(self) -> SessionState:
        return self.view.state

    async def submit(self, url: str) -> SessionView:
        self._generation += 1
        generation = self._generation
        self.status = CaptureStatus()
        self.view = SessionView(state=SessionState.FETCHING, page_url=url)

        try:
            html = await self.fetch_page(url)
            images = extract_images(html, url, self.predicate)
        except ClipNestError as exc:
            if generation != self._generation:
                logger.debug("Dropping stale failure for %s", url)
                return self.view
            logger.warning("Harvest of %s failed: %s", url, exc)
            self.view = SessionView(
                state=SessionState.FAILED,
                page_url=url,
                error=FETCH_FAILED_MESSAGE,
                message=str(exc),
            )
            return self.view

        if generation != self._generation:
            logger.debug("Dropping stale result for %s", url)
            return self.view

        self.view = SessionView(
            state=SessionState.SUCCEEDED,
            page_url=url,
            images=images,
            message="" if images else NO_IMAGES_MESSAGE,
        )
        logger.info("Found %d image(s) on %s", len(images), url)
        return self.view

    def _find(self, url: str) -> Optional[ImageDescriptor]:
        for image in self.view.images:
            if image.url == url:
                return image
        return None

    async def _run_item(
        self,
        url: str,
        action: str,
        work: Callable[[ImageDescriptor], Awaitable[ItemOutcome]],
    ) -> ItemOutcome:
        image = self._find(url)
        if image is None:
            return ItemOutcome(url, action, ok=False, message="Image is not listed")
        status = self.status
        if not status.begin(url, action):
            return ItemOutcome(url, action, ok=False, message="Action already in progress")
        try:
            return await work(image)
        except (ClipNestError, OSError) as exc:
            logger.warning("%s of %s failed: %s", action.capitalize(), url, exc)
            return ItemOutcome(url, action, ok=False, message=str(exc))
        finally:
            status.finish(url, action)

    async def download(self, url: str, dest_dir: Path) -> ItemOutcome:
        async def work(image: ImageDescriptor) -> ItemOutcome:
            path = await asyncio.to_thread(self.downloader, image.url, dest_dir)
            return ItemOutcome(image.url, "download", ok=True, message="Downloaded", path=path)

        return await self._run_item(url, "download", work)

    async def collect(self, url: str) -> ItemOutcome:
        source_page = self.view.page_url

        async def work(image: ImageDescriptor) -> ItemOutcome:
            record = await self.store.insert_async(image, source_page)
            return ItemOutcome(image.url, "collect", ok=True, message="Collected", record=record)

        return await self._run_item(url, "collect", work)

    def close(self) -> None:
        """Discard results and per-item status when the view goes away."""
        self._generation += 1
        self.status.clear()
        self.view = SessionView()
