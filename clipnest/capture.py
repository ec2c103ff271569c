"""In-page capture of the hovered image into the local collection."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from .config import NOTIFICATION_SECONDS
from .content import image_title
from .errors import ClipNestError
from .models import ElementSnapshot, ImageDescriptor, ImageRecord
from .scanner import DomImageScanner
from .store import ImageRecordStore
from .utils import resolve_url

logger = logging.getLogger("clipnest.capture")

SUCCESS_MESSAGE = "Image collected to ClipNest"


@dataclass(frozen=True)
class Notification:
    """Transient message shown to the user for a fixed duration."""

    message: str
    kind: str
    created_at: float
    duration: float

    def expired(self, now: float) -> bool:
        return now >= self.created_at + self.duration


class NotificationCenter:
    """Holds independently timed notifications.

    Posting never replaces or shortens an existing notification; each one
    disappears once its own duration has elapsed.
    """

    def __init__(
        self,
        duration: float = NOTIFICATION_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        listeners: Optional[List[Callable[[Notification], None]]] = None,
    ) -> None:
        self.duration = duration
        self.clock = clock
        self.listeners = list(listeners or [])
        self._items: List[Notification] = []

    def post(self, message: str, kind: str = "success") -> Notification:
        now = self.clock()
        self._prune(now)
        notification = Notification(message, kind, now, self.duration)
        self._items.append(notification)
        for listener in self.listeners:
            listener(notification)
        return notification

    def _prune(self, now: float) -> None:
        self._items = [item for item in self._items if not item.expired(now)]

    def active(self) -> List[Notification]:
        self._prune(self.clock())
        return list(self._items)


def describe_element(element: ElementSnapshot, page_url: str) -> ImageDescriptor:
    """Build the descriptor for a hovered image element."""
    return ImageDescriptor(
        url=resolve_url(element.src, page_url),
        title=image_title(element.alt, element.title),
    )


class CaptureController:
    """Stores the scanner's current candidate when the user activates capture."""

    def __init__(
        self,
        scanner: DomImageScanner,
        store: ImageRecordStore,
        notifications: NotificationCenter,
        page_url: Callable[[], str],
    ) -> None:
        self.scanner = scanner
        self.store = store
        self.notifications = notifications
        self.page_url = page_url

    async def capture(self) -> Optional[ImageRecord]:
        """Collect the current candidate, if any.

        Returns the stored record, or ``None`` when there was nothing to
        capture or the capture failed (a failure notification is posted).
        Captures are not serialized against each other.
        """
        candidate = self.scanner.candidate
        if candidate is None:
            return None
        source_page = self.page_url()
        try:
            descriptor = describe_element(candidate, source_page)
            record = await self.store.insert_async(descriptor, source_page)
        except ClipNestError as exc:
            logger.warning("Capture failed: %s", exc)
            self.notifications.post(f"Capture failed: {exc}", kind="error")
            return None
        self.notifications.post(SUCCESS_MESSAGE)
        return record
