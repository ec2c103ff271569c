"""Playwright integration: rendered page fetches and the in-page capture bridge."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Mapping, Set

from playwright.async_api import (
    Error as PlaywrightError,
    Page,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from .capture import CaptureController, Notification, NotificationCenter
from .config import AFFORDANCE_CLASS, AFFORDANCE_HEIGHT, AFFORDANCE_WIDTH, HarvestConfig
from .errors import UpstreamFetchError
from .models import AffordanceState, BoundingBox, ElementSnapshot, PointerEvent
from .scanner import DomImageScanner
from .store import ImageRecordStore

logger = logging.getLogger("clipnest.browser")

_BRIDGE_SCRIPT = """
(() => {
  if (window.__clipnestInstalled) return;
  window.__clipnestInstalled = true;
  const install = () => {
    const button = document.createElement('button');
    button.className = '%(cls)s';
    button.textContent = 'Collect to ClipNest';
    button.style.cssText = 'position:fixed;display:none;z-index:2147483647;' +
      'width:%(width)dpx;height:%(height)dpx;';
    document.body.appendChild(button);
    document.addEventListener('mousemove', async (e) => {
      const t = e.target;
      if (!t || !t.getBoundingClientRect) return;
      const r = t.getBoundingClientRect();
      const state = await window.clipnestPointer({
        tagName: t.tagName || '',
        src: (t.getAttribute && t.getAttribute('src')) || '',
        alt: t.getAttribute ? (t.getAttribute('alt') || '') : '',
        title: t.getAttribute ? (t.getAttribute('title') || '') : '',
        classes: Array.from(t.classList || []),
        box: {left: r.left, top: r.top, right: r.right, bottom: r.bottom},
        viewportWidth: window.innerWidth,
        viewportHeight: window.innerHeight,
      });
      button.style.display = state.visible ? 'block' : 'none';
      button.style.left = state.left + 'px';
      button.style.top = state.top + 'px';
    });
    button.addEventListener('click', () => window.clipnestCapture());
  };
  if (document.body) install();
  else document.addEventListener('DOMContentLoaded', install);
})();
""" % {"cls": AFFORDANCE_CLASS, "width": AFFORDANCE_WIDTH, "height": AFFORDANCE_HEIGHT}

_TOAST_SCRIPT = """
([message, kind, ms]) => {
  const note = document.createElement('div');
  note.className = 'clipnest-notification ' + kind;
  note.textContent = message;
  note.style.cssText = 'position:fixed;right:16px;bottom:16px;z-index:2147483647;' +
    'padding:8px 12px;color:#fff;background:' + (kind === 'error' ? '#c0392b' : '#27ae60');
  document.body.appendChild(note);
  setTimeout(() => note.remove(), ms);
}
"""


def pointer_event_from_payload(payload: Mapping[str, Any]) -> PointerEvent:
    """Convert the bridge's mousemove payload into a PointerEvent."""
    box = payload.get("box") or None
    snapshot = ElementSnapshot(
        tag_name=str(payload.get("tagName") or ""),
        src=str(payload.get("src") or ""),
        alt=str(payload.get("alt") or ""),
        title=str(payload.get("title") or ""),
        classes=frozenset(payload.get("classes") or ()),
        box=BoundingBox(
            left=float(box["left"]),
            top=float(box["top"]),
            right=float(box["right"]),
            bottom=float(box["bottom"]),
        )
        if box
        else None,
    )
    return PointerEvent(
        target=snapshot,
        viewport_width=float(payload.get("viewportWidth") or 0),
        viewport_height=float(payload.get("viewportHeight") or 0),
    )


async def render_page(url: str, config: HarvestConfig) -> str:
    """Navigate to a URL with headless Chromium and return the rendered HTML."""
    try:
        async with async_playwright() as playwright:
            browser = await playwright.chromium.launch(headless=True)
            page = await browser.new_page(user_agent=config.user_agent)
            page.set_default_navigation_timeout(config.navigation_timeout * 1000)
            try:
                logger.info("Loading %s", url)
                await page.goto(url, wait_until="networkidle")
                if config.wait_after_load:
                    await page.wait_for_timeout(int(config.wait_after_load * 1000))
                return await page.content()
            finally:
                await browser.close()
    except PlaywrightTimeoutError as exc:
        raise UpstreamFetchError(url, f"timed out: {exc}") from exc
    except PlaywrightError as exc:
        raise UpstreamFetchError(url, str(exc)) from exc


async def _toast(page: Page, notification: Notification) -> None:
    try:
        await page.evaluate(
            _TOAST_SCRIPT,
            [notification.message, notification.kind, int(notification.duration * 1000)],
        )
    except PlaywrightError as exc:
        logger.debug("Could not show notification: %s", exc)


async def _install_bridge(page: Page, controller: CaptureController) -> None:
    scanner = controller.scanner

    async def on_pointer(payload: Dict[str, Any]) -> Dict[str, Any]:
        state = scanner.handle_pointer(pointer_event_from_payload(payload))
        return state.to_dict()

    async def on_capture() -> bool:
        record = await controller.capture()
        return record is not None

    await page.expose_function("clipnestPointer", on_pointer)
    await page.expose_function("clipnestCapture", on_capture)
    await page.add_init_script(_BRIDGE_SCRIPT)


async def run_capture_session(url: str, config: HarvestConfig) -> int:
    """Open a visible browser on ``url`` with hover capture enabled.

    Returns the number of images captured before the window was closed.
    """
    store = ImageRecordStore(config.db_path)
    pending: Set[asyncio.Task] = set()
    captured = 0

    async with async_playwright() as playwright:
        browser = await playwright.chromium.launch(headless=False)
        page = await browser.new_page(user_agent=config.user_agent)
        page.set_default_navigation_timeout(config.navigation_timeout * 1000)

        def show_toast(notification: Notification) -> None:
            nonlocal captured
            if notification.kind == "success":
                captured += 1
            task = asyncio.get_running_loop().create_task(_toast(page, notification))
            pending.add(task)
            task.add_done_callback(pending.discard)

        scanner = DomImageScanner(AffordanceState())
        notifications = NotificationCenter(
            duration=config.notification_seconds, listeners=[show_toast]
        )
        controller = CaptureController(scanner, store, notifications, lambda: page.url)
        await _install_bridge(page, controller)

        try:
            await page.goto(url)
            logger.info("Hover an image and click the button to collect; close the window to finish")
            await page.wait_for_event("close", timeout=0)
        except PlaywrightError as exc:
            logger.warning("Capture browser stopped: %s", exc)
        finally:
            for task in list(pending):
                task.cancel()
            await browser.close()
    return captured
