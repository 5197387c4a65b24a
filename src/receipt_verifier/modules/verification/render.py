from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Page, sync_playwright

from receipt_verifier.core.config import settings
from receipt_verifier.core.logging import get_logger, log_event
from receipt_verifier.modules.verification.errors import NetworkError

logger = get_logger(__name__)

_CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]
_POLL_MS = 250

_slots: threading.BoundedSemaphore | None = None
_slots_lock = threading.Lock()


def _session_slots() -> threading.BoundedSemaphore:
    global _slots  # noqa: PLW0603
    with _slots_lock:
        if _slots is None:
            _slots = threading.BoundedSemaphore(max(1, int(settings.browser_max_sessions)))
        return _slots


@contextmanager
def browser_page(*, ignore_https_errors: bool = False) -> Iterator[Page]:
    """Yield a page in a fresh headless Chromium; the browser is closed on every exit path."""
    if not settings.browser_enabled:
        raise NetworkError("Headless browser retrieval is disabled")

    slots = _session_slots()
    if not slots.acquire(timeout=float(settings.browser_slot_timeout_seconds)):
        raise NetworkError("Headless browser capacity exhausted")
    try:
        with sync_playwright() as pw:
            browser = pw.chromium.launch(
                headless=True,
                args=_CHROMIUM_ARGS,
                executable_path=settings.browser_executable_path or None,
            )
            try:
                context = browser.new_context(
                    ignore_https_errors=ignore_https_errors,
                    user_agent=settings.user_agent,
                )
                yield context.new_page()
            finally:
                browser.close()
    finally:
        slots.release()


def render_and_capture(
    url: str,
    *,
    match: Callable[[str], bool],
    ignore_https_errors: bool = False,
) -> str | None:
    """Load `url` and return the URL of the first response whose content type satisfies `match`.

    Responses are recorded while the page loads and for a bounded window afterwards.
    Returns None when nothing matched inside the window.
    """
    observed: list[tuple[str, str]] = []

    def _record(response) -> None:
        observed.append((response.url, response.headers.get("content-type", "")))

    try:
        with browser_page(ignore_https_errors=ignore_https_errors) as page:
            page.on("response", _record)
            try:
                page.goto(
                    url,
                    wait_until="domcontentloaded",
                    timeout=float(settings.browser_navigation_timeout_seconds) * 1000,
                )
            except PlaywrightError as e:
                # Navigating straight to a PDF aborts in headless Chromium; the response
                # has still been observed by then.
                log_event(
                    logger,
                    "verify.render.navigation_error",
                    level=logging.WARNING,
                    url=url,
                    reason=str(e).splitlines()[0] if str(e) else None,
                )

            deadline = time.monotonic() + float(settings.browser_capture_window_seconds)
            while True:
                found = _first_match(observed, match)
                if found or time.monotonic() >= deadline:
                    return found
                page.wait_for_timeout(_POLL_MS)
    except PlaywrightError as e:
        raise NetworkError("Headless browser retrieval failed", url=url, reason=str(e)) from e


def _first_match(observed: list[tuple[str, str]], match: Callable[[str], bool]) -> str | None:
    for response_url, content_type in list(observed):
        if match(content_type):
            return response_url
    return None
