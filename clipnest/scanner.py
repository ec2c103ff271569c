"""Pointer-driven tracking of the image currently eligible for capture."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from .config import (
    AFFORDANCE_CLASS,
    AFFORDANCE_HEIGHT,
    AFFORDANCE_MARGIN,
    AFFORDANCE_WIDTH,
)
from .content import has_source
from .models import AffordanceState, ElementSnapshot, PointerEvent

logger = logging.getLogger("clipnest.scanner")

ImagePredicate = Callable[[ElementSnapshot], bool]


def source_is_present(element: ElementSnapshot) -> bool:
    """Default in-page eligibility: the image has a non-empty source."""
    return has_source(element.src)


class DomImageScanner:
    """Tracks one capture candidate and the position of the shared affordance.

    The scanner never creates per-image state: whichever eligible image was
    hovered last is the candidate, and ``state`` describes the single floating
    button the page should render.
    """

    def __init__(
        self,
        state: AffordanceState,
        is_valid_image: ImagePredicate = source_is_present,
        affordance_width: float = AFFORDANCE_WIDTH,
        affordance_height: float = AFFORDANCE_HEIGHT,
        margin: float = AFFORDANCE_MARGIN,
        affordance_class: str = AFFORDANCE_CLASS,
    ) -> None:
        self.state = state
        self.is_valid_image = is_valid_image
        self.affordance_width = affordance_width
        self.affordance_height = affordance_height
        self.margin = margin
        self.affordance_class = affordance_class

    @property
    def candidate(self) -> Optional[ElementSnapshot]:
        return self.state.candidate

    def handle_pointer(self, event: PointerEvent) -> AffordanceState:
        target = event.target
        if target.is_image and self.is_valid_image(target):
            self.state.candidate = target
            self._place(target, event.viewport_width, event.viewport_height)
            self.state.visible = True
        elif self.affordance_class not in target.classes:
            if self.state.candidate is not None:
                logger.debug("Candidate cleared")
            self.state.candidate = None
            self.state.visible = False
        return self.state

    def _place(
        self, target: ElementSnapshot, viewport_width: float, viewport_height: float
    ) -> None:
        box = target.box
        if box is None:
            left, top = self.margin, self.margin
        else:
            left = box.right - self.affordance_width - self.margin
            top = box.top + self.margin
        max_left = max(0.0, viewport_width - self.affordance_width)
        max_top = max(0.0, viewport_height - self.affordance_height)
        self.state.position.left = min(max(left, 0.0), max_left)
        self.state.position.top = min(max(top, 0.0), max_top)
