"""
Retry loops and diagnostics around flaky CRM interactions.

The CRM renders many controls late (AJAX dropdowns, bootstrap modals,
duplicated "More" menus for desktop and mobile layouts). The helpers here
retry a bounded number of times, capture a screenshot and the page HTML
when they give up, and then raise so the test fails at the step that broke.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Locator, Page, expect

from abis_e2e.errors import InteractionError

logger = logging.getLogger("abis_e2e.resilience")

RETRY_WAIT_MS = 1000
EXPECT_TIMEOUT_MS = 5000

_REMOVE_MODALS_JS = """
() => {
  const modals = Array.from(document.querySelectorAll('.modal.show'));
  modals
    .filter(m => {
      try {
        const style = window.getComputedStyle(m);
        const rect = m.getBoundingClientRect();
        return style && style.display !== 'none' && style.visibility !== 'hidden'
          && (rect.width > 0 || rect.height > 0);
      } catch (e) {
        return false;
      }
    })
    .forEach(m => m.parentNode && m.parentNode.removeChild(m));

  Array.from(document.querySelectorAll('dialog[open]')).forEach(d => {
    try {
      d.close();
    } catch (e) {
      d.parentNode && d.parentNode.removeChild(d);
    }
  });

  Array.from(document.querySelectorAll('.modal-backdrop'))
    .forEach(b => b.parentNode && b.parentNode.removeChild(b));
  document.body.classList.remove('modal-open');
}
"""

_CLEAR_OBSTRUCTIONS_JS = """
() => {
  Array.from(document.querySelectorAll('.modal, .modal-backdrop'))
    .forEach(m => m.parentNode && m.parentNode.removeChild(m));

  Array.from(document.querySelectorAll(
    '.overlay, .loading-overlay, .spinner-overlay, [class*="overlay"], [class*="loading"]'
  )).forEach(o => {
    const style = window.getComputedStyle(o);
    if ((style.position === 'fixed' || style.position === 'absolute') && o.parentNode) {
      o.parentNode.removeChild(o);
    }
  });

  Array.from(document.querySelectorAll('*')).forEach(el => {
    const style = window.getComputedStyle(el);
    const zIndex = parseInt(style.zIndex);
    if (zIndex > 1000 && (style.position === 'fixed' || style.position === 'absolute')) {
      const rect = el.getBoundingClientRect();
      if (rect.width > window.innerWidth * 0.5 || rect.height > window.innerHeight * 0.5) {
        if (el.parentNode && !el.classList.contains('nav') && !el.classList.contains('header')) {
          el.parentNode.removeChild(el);
        }
      }
    }
  });
}
"""


class Diagnostics:
    """Writes screenshots and HTML dumps for a page into one artifact dir."""

    def __init__(self, page: Page, artifact_dir: str | Path):
        self.page = page
        self.artifact_dir = Path(artifact_dir)

    def path_for(self, name: str, suffix: str) -> Path:
        self.artifact_dir.mkdir(parents=True, exist_ok=True)
        return self.artifact_dir / f"{name}.{suffix}"

    def screenshot(self, name: str, full_page: bool = True) -> bool:
        # The page may already be closed when a test times out.
        try:
            path = self.path_for(name, "png")
        except OSError as exc:
            logger.warning("Cannot create artifact dir %s: %s", self.artifact_dir, exc)
            return False
        try:
            self.page.screenshot(path=str(path), full_page=full_page)
        except (PlaywrightError, OSError) as exc:
            logger.warning("Failed to take screenshot (%s) - page/context may be closed: %s", path, exc)
            return False
        logger.warning("%s: saved screenshot for debugging", name)
        return True

    def dump_html(self, name: str, html: str | None = None) -> Path | None:
        try:
            if html is None:
                html = self.page.content()
        except PlaywrightError as exc:
            logger.warning("Failed to capture HTML for %s: %s", name, exc)
            return None
        try:
            path = self.path_for(name, "html")
            path.write_text(html, encoding="utf-8")
        except OSError as exc:
            logger.warning("Failed to write HTML dump %s: %s", name, exc)
            return None
        return path

    def capture(self, name: str) -> None:
        self.screenshot(name)
        self.dump_html(name)


def _retry(
    action: Callable[[], None],
    diagnostics: Diagnostics,
    label: str,
    kind: str,
    retries: int,
    wait_ms: int,
) -> None:
    if retries < 1:
        raise ValueError(f"retries must be at least 1, got {retries}")
    for attempt in range(retries):
        try:
            action()
            return
        except (AssertionError, PlaywrightError) as exc:
            if attempt == retries - 1:
                diagnostics.capture(f"{kind}-fail-{label}-{attempt}")
                raise InteractionError(label, f"Failed to {kind} {label}: {exc}", attempts=retries) from exc
            logger.warning("%s %s failed (attempt %d/%d): %s", kind, label, attempt + 1, retries, exc)
            diagnostics.page.wait_for_timeout(wait_ms)


def resilient_fill(
    locator: Locator,
    value: str,
    diagnostics: Diagnostics,
    label: str,
    retries: int = 3,
    wait_ms: int = RETRY_WAIT_MS,
) -> None:
    def _fill() -> None:
        locator.fill(value)
        expect(locator).to_have_value(value, timeout=EXPECT_TIMEOUT_MS)

    _retry(_fill, diagnostics, label, "fill", retries, wait_ms)


def resilient_click(
    locator: Locator,
    diagnostics: Diagnostics,
    label: str,
    retries: int = 3,
    wait_ms: int = RETRY_WAIT_MS,
) -> None:
    def _click() -> None:
        expect(locator).to_be_visible(timeout=EXPECT_TIMEOUT_MS)
        locator.click()

    _retry(_click, diagnostics, label, "click", retries, wait_ms)


def resilient_expect_visible(
    locator: Locator,
    diagnostics: Diagnostics,
    label: str,
    retries: int = 3,
    wait_ms: int = RETRY_WAIT_MS,
) -> None:
    def _visible() -> None:
        expect(locator).to_be_visible(timeout=EXPECT_TIMEOUT_MS)

    _retry(_visible, diagnostics, label, "expect-visible", retries, wait_ms)


def is_shown(locator: Locator) -> bool:
    try:
        return locator.count() > 0 and locator.first.is_visible()
    except PlaywrightError:
        return False


def first_present(*locators: Locator) -> Locator:
    """First candidate that matches anything; the last one otherwise."""
    for locator in locators:
        if locator.count() > 0:
            return locator
    return locators[-1]


def has_box(handle) -> bool:
    box = handle.bounding_box()
    return bool(box) and box["width"] > 0 and box["height"] > 0


def poll(predicate: Callable[[], bool], page: Page, attempts: int, interval_ms: int = RETRY_WAIT_MS) -> bool:
    for _ in range(attempts):
        if predicate():
            return True
        page.wait_for_timeout(interval_ms)
    return False


def click_exact_text(
    page: Page,
    text: str,
    attempts: int = 5,
    hover: bool = False,
    interval_ms: int = RETRY_WAIT_MS,
) -> bool:
    """
    Clicks the first rendered ``button``/``a`` whose trimmed text is ``text``.

    ``has_text`` also matches "More info" or hidden duplicates, so handles are
    filtered by exact text and a non-empty bounding box before clicking.
    """
    for attempt in range(attempts):
        try:
            for handle in page.locator("button, a", has_text=text).element_handles():
                if (handle.text_content() or "").strip() != text:
                    continue
                if not has_box(handle):
                    continue
                if hover:
                    handle.hover()
                handle.click()
                return True
        except PlaywrightError as exc:
            if "Execution context was destroyed" in str(exc):
                logger.warning("Execution context destroyed, retrying %s...", text)
                page.wait_for_load_state("networkidle")
            else:
                logger.warning("%s click attempt %d failed: %s", text, attempt + 1, exc)
        page.wait_for_timeout(interval_ms)
    return False


def click_first_visible(locator: Locator) -> bool:
    for index in range(locator.count()):
        candidate = locator.nth(index)
        if candidate.is_visible() and candidate.is_enabled():
            candidate.click()
            return True
    return False


def wait_for_visible_modal(page: Page, attempts: int = 5, interval_ms: int = RETRY_WAIT_MS) -> Locator | None:
    modal = page.locator(".modal:visible")
    if poll(lambda: is_shown(modal), page, attempts, interval_ms):
        return modal.first
    for handle in page.locator(".modal").element_handles():
        if not has_box(handle):
            continue
        modal_id = handle.get_attribute("id")
        if modal_id:
            return page.locator(f"#{modal_id}")
    return None


def force_remove_modals(page: Page) -> None:
    page.evaluate(_REMOVE_MODALS_JS)


def clear_obstructions(page: Page) -> None:
    logger.info("Clearing page obstructions...")
    try:
        page.evaluate(_CLEAR_OBSTRUCTIONS_JS)
    except PlaywrightError as exc:
        logger.warning("Error clearing page obstructions: %s", exc)
    press_escape(page)
    page.wait_for_timeout(500)


def press_escape(page: Page) -> None:
    try:
        page.keyboard.press("Escape")
    except PlaywrightError as exc:
        logger.debug("Escape press failed: %s", exc)


def click_blank_area(page: Page) -> None:
    page.locator("body").click(position={"x": 10, "y": 10})


def accept_next_dialog(page: Page) -> dict:
    """Arms a one-shot handler for the next JS dialog and reports what it saw."""
    seen = {"handled": False, "message": ""}

    def _on_dialog(dialog) -> None:
        seen["message"] = dialog.message
        logger.info("Accepting dialog: %s", dialog.message)
        dialog.accept()
        seen["handled"] = True

    page.once("dialog", _on_dialog)
    return seen


def visible_within(locator: Locator, timeout_ms: int) -> bool:
    try:
        locator.wait_for(state="visible", timeout=timeout_ms)
    except PlaywrightError:
        return False
    return True
