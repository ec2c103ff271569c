"""Pointer scanner tests."""

from __future__ import annotations

from clipnest.config import AFFORDANCE_CLASS
from clipnest.content import has_raster_extension
from clipnest.models import AffordanceState, BoundingBox, ElementSnapshot, PointerEvent
from clipnest.scanner import DomImageScanner

VIEWPORT = (1280.0, 800.0)


def _event(element: ElementSnapshot, viewport=VIEWPORT) -> PointerEvent:
    return PointerEvent(element, viewport_width=viewport[0], viewport_height=viewport[1])


def _image(src: str = "/img/cat.png", box: BoundingBox | None = None) -> ElementSnapshot:
    return ElementSnapshot(
        tag_name="IMG",
        src=src,
        alt="cat",
        box=box or BoundingBox(left=100, top=50, right=500, bottom=350),
    )


def test_hovering_image_sets_candidate_and_positions_affordance() -> None:
    """The affordance sits inside the image's top-right corner."""
    state = AffordanceState()
    scanner = DomImageScanner(state, affordance_width=120, margin=10)
    image = _image()

    scanner.handle_pointer(_event(image))

    assert scanner.candidate is image
    assert state.visible
    assert state.position.left == 500 - 120 - 10
    assert state.position.top == 60


def test_leaving_image_clears_candidate() -> None:
    """Moving onto other content hides the affordance."""
    state = AffordanceState()
    scanner = DomImageScanner(state)
    scanner.handle_pointer(_event(_image()))

    scanner.handle_pointer(_event(ElementSnapshot(tag_name="DIV")))

    assert scanner.candidate is None
    assert not state.visible


def test_hovering_affordance_keeps_candidate() -> None:
    """Moving onto the button itself must not drop the candidate."""
    state = AffordanceState()
    scanner = DomImageScanner(state)
    image = _image()
    scanner.handle_pointer(_event(image))

    button = ElementSnapshot(tag_name="BUTTON", classes=frozenset({AFFORDANCE_CLASS}))
    scanner.handle_pointer(_event(button))

    assert scanner.candidate is image
    assert state.visible


def test_latest_image_replaces_previous_candidate() -> None:
    """Only one candidate is tracked at a time."""
    scanner = DomImageScanner(AffordanceState())
    first, second = _image("/a.png"), _image("/b.png")

    scanner.handle_pointer(_event(first))
    scanner.handle_pointer(_event(second))

    assert scanner.candidate is second


def test_image_without_source_is_not_a_candidate() -> None:
    """The default predicate only requires a non-empty source."""
    scanner = DomImageScanner(AffordanceState())

    scanner.handle_pointer(_event(_image(src="")))
    assert scanner.candidate is None

    scanner.handle_pointer(_event(_image(src="/no-extension")))
    assert scanner.candidate is not None


def test_predicate_is_swappable() -> None:
    """An extension filter can be injected instead of the default."""
    scanner = DomImageScanner(
        AffordanceState(), is_valid_image=lambda el: has_raster_extension(el.src)
    )

    scanner.handle_pointer(_event(_image(src="/no-extension")))

    assert scanner.candidate is None


def test_affordance_is_clamped_to_viewport() -> None:
    """Images partly off screen still get a visible affordance."""
    state = AffordanceState()
    scanner = DomImageScanner(state, affordance_width=120, affordance_height=32, margin=10)

    scanner.handle_pointer(
        _event(_image(box=BoundingBox(left=-300, top=-200, right=50, bottom=100)))
    )
    assert state.position.left == 0
    assert state.position.top == 0

    scanner.handle_pointer(
        _event(_image(box=BoundingBox(left=1000, top=790, right=1600, bottom=1200)))
    )
    assert state.position.left == 1280 - 120
    assert state.position.top == 800 - 32


def test_non_image_elements_are_ignored() -> None:
    """Elements with a src that are not images never become candidates."""
    scanner = DomImageScanner(AffordanceState())

    scanner.handle_pointer(_event(ElementSnapshot(tag_name="IFRAME", src="/a.png")))

    assert scanner.candidate is None
