"""Data models used throughout the harvesting pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Optional


@dataclass(frozen=True)
class ImageDescriptor:
    """Transient image reference discovered on a page."""

    url: str
    title: str = ""


@dataclass(frozen=True)
class ImageRecord:
    """Image reference persisted in the local collection."""

    id: int
    url: str
    title: str
    timestamp: int
    source_page: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "url": self.url,
            "title": self.title,
            "timestamp": self.timestamp,
            "sourcePage": self.source_page,
        }


@dataclass(frozen=True)
class BoundingBox:
    """Viewport-relative rectangle of an element."""

    left: float
    top: float
    right: float
    bottom: float


@dataclass(frozen=True)
class ElementSnapshot:
    """Plain description of the DOM element under the pointer."""

    tag_name: str
    src: str = ""
    alt: str = ""
    title: str = ""
    classes: FrozenSet[str] = frozenset()
    box: Optional[BoundingBox] = None

    @property
    def is_image(self) -> bool:
        return self.tag_name.lower() == "img"


@dataclass(frozen=True)
class PointerEvent:
    """Pointer movement reported by the page."""

    target: ElementSnapshot
    viewport_width: float
    viewport_height: float


@dataclass
class AffordancePosition:
    left: float = 0.0
    top: float = 0.0


@dataclass
class AffordanceState:
    """State of the single floating collect button."""

    candidate: Optional[ElementSnapshot] = None
    visible: bool = False
    position: AffordancePosition = field(default_factory=AffordancePosition)

    def to_dict(self) -> dict:
        return {
            "visible": self.visible,
            "left": self.position.left,
            "top": self.position.top,
        }
