"""
Payment collection task on the service page.

The task modal on the service page is the least predictable screen in the
CRM: "New Task" exists in several containers, the post-save modal may be a
bootstrap ``.modal`` or a ``<dialog>``, and closing it occasionally bounces
the browser to the dashboard. Every step here therefore has a fallback
chain and writes diagnostics before giving up.
"""
from __future__ import annotations

import json

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Locator, expect

from abis_e2e.errors import ElementNotFoundError, InteractionError
from abis_e2e.generators import days_from_today
from abis_e2e.pages.base import BasePage, traced
from abis_e2e.resilience import (
    clear_obstructions,
    click_blank_area,
    force_remove_modals,
    has_box,
    is_shown,
    poll,
    press_escape,
    resilient_click,
    wait_for_visible_modal,
)

TASK_SUBJECT = "Payment Collection"
TASK_STATUS = "In Progress"
TASKS_TAB = 'a[role="tab"][data-group="project_tasks"]'
TASK_ROW = f'tr:has-text("{TASK_SUBJECT}"), .task-card:has-text("{TASK_SUBJECT}")'
TOAST = ".toast-success, .toast-message, .notification-success"

_SUBJECT_INPUT = 'input#subject, input[name="name"], input[name="subject"], input[placeholder*="Subject"]'
_DUE_DATE_INPUT = 'input#duedate, input[name="duedate"], input[name="due_date"], input[placeholder*="Due Date"]'
_ASSIGNEE_SELECT = 'select[name="assigned"], select[name="assigned_to"], select#assigned, select#assigned_to'
_CLOSE_BUTTONS = 'button:has-text("Close"), button.close, .modal-header .close, button:has-text("×")'
_X_BUTTONS = "button.close, .modal-header .close"

_CLICK_IN_ACTIONS_JS = """
() => {
  const container = Array.from(document.querySelectorAll('div'))
    .find(d => d.querySelector('a') && d.textContent && d.textContent.includes('Go to Customer'));
  if (!container) return false;
  const el = Array.from(container.querySelectorAll('a, button'))
    .find(e => (e.innerText || '').trim().includes('New Task'));
  if (!el) return false;
  el.scrollIntoView({ block: 'center', inline: 'center' });
  el.click();
  return true;
}
"""

_CLICK_ANY_VISIBLE_JS = """
() => {
  for (const el of Array.from(document.querySelectorAll('a, button'))) {
    const text = (el.innerText || '').trim();
    const rect = el.getBoundingClientRect();
    if (text && /New\\s*Task/i.test(text) && rect.width > 0 && rect.height > 0) {
      el.scrollIntoView({ block: 'center', inline: 'center' });
      el.click();
      return { ok: true, tag: el.tagName, text: text, id: el.id || '' };
    }
  }
  return { ok: false };
}
"""

_SCROLL_AND_CLICK_JS = "(el) => { el.scrollIntoView({ block: 'center', inline: 'center' }); el.click(); }"


def _is_dashboard(url: str) -> bool:
    return "/admin" in url and "/clients/" not in url and "/projects/" not in url


class TaskPage(BasePage):
    @traced
    def create_payment_collection_task(self) -> None:
        self._click_new_task()
        self._require_task_modal()
        self._fill_form(self._modal())
        self._save()
        self._set_status()
        self._close_modal()
        self._open_tasks_tab()

        self.log.info("Waiting extra time for %s task to appear...", TASK_SUBJECT)
        self.wait(3000)
        if self._task_listed():
            self.log.info("%s task found in Tasks panel.", TASK_SUBJECT)
            return
        self.log.info("%s task not found, attempting to create again", TASK_SUBJECT)
        self._retry_creation()

    def _modal(self) -> Locator:
        return self.page.locator(".modal:visible")

    def _candidates(self) -> tuple[Locator, Locator]:
        page = self.page
        actions = page.locator("div").filter(has=page.locator("a", has_text="Go to Customer")).first
        candidates = actions.locator("a, button", has_text="New Task")
        if not candidates.count():
            candidates = page.locator("a, button", has_text="New Task")
        return candidates, actions

    def _click_candidate(self, candidates: Locator, label: str) -> bool:
        count = candidates.count()
        if count == 1:
            resilient_click(candidates.first, self.diag, label)
            return True
        for index in range(count):
            candidate = candidates.nth(index)
            try:
                if candidate.is_visible():
                    resilient_click(candidate, self.diag, f"{label}-{index}")
                    return True
            except InteractionError as exc:
                self.log.debug("New Task candidate %d not clickable: %s", index, exc)
        for index in range(count):
            handle = candidates.nth(index).element_handle()
            if handle is not None and has_box(handle):
                handle.click()
                return True
        return False

    def _click_new_task(self) -> None:
        self.wait(2000)
        candidates, _ = self._candidates()
        if not candidates.count():
            self.diag.screenshot("new-task-not-found")
            raise ElementNotFoundError("new-task", "New Task button not found")

        clicked = self._click_candidate(candidates, "new-task-btn")
        if not clicked:
            clicked = self._click_new_task_with_js(candidates)
        if not clicked:
            self.diag.screenshot("new-task-click-fail")
            raise InteractionError("new-task", "Failed to click New Task (no clickable candidate)")
        self.step("New Task button clicked")

    def _modal_opened(self) -> bool:
        self.wait(500)
        return is_shown(self._modal())

    def _click_new_task_with_js(self, candidates: Locator) -> bool:
        self.log.warning("Primary New Task click attempts failed; trying JS/evaluate fallbacks")
        for index in range(candidates.count()):
            try:
                handle = candidates.nth(index).element_handle()
                if handle is None:
                    continue
                handle.evaluate(_SCROLL_AND_CLICK_JS)
                if self._modal_opened():
                    self.log.info("New Task clicked via evaluate on candidate %d", index)
                    return True
            except PlaywrightError as exc:
                self.log.debug("Evaluate click on candidate %d failed: %s", index, exc)

        try:
            if self.page.evaluate(_CLICK_IN_ACTIONS_JS) and self._modal_opened():
                self.log.info("New Task clicked via document-level JS click")
                return True
        except PlaywrightError as exc:
            self.log.warning("Document-level JS click attempt failed: %s", exc)

        self.log.warning("All previous New Task click attempts failed, trying document-wide visible click")
        try:
            result = self.page.evaluate(_CLICK_ANY_VISIBLE_JS)
        except PlaywrightError as exc:
            self.log.warning("Aggressive document click attempt failed: %s", exc)
            return False
        if not result.get("ok"):
            self.log.warning("Aggressive New Task click did not find a visible element to click")
            return False
        self.log.info("Aggressive New Task click succeeded. Element: %s %s %s", result["tag"], result["text"], result["id"])
        return self._modal_opened()

    def _require_task_modal(self) -> Locator:
        modal = wait_for_visible_modal(self.page, attempts=5)
        if modal is None:
            self.diag.capture("task-modal-not-found")
            raise ElementNotFoundError("task-modal", "Task modal not found after clicking New Task")
        self.step("Task modal opened")
        return modal

    def _fill_form(self, modal: Locator) -> None:
        subject = modal.locator(_SUBJECT_INPUT).first
        expect(subject).to_be_visible(timeout=10000)
        subject.click()
        subject.fill(TASK_SUBJECT)
        self.log.info("Subject set to %s", TASK_SUBJECT)

        due_date = modal.locator(_DUE_DATE_INPUT).first
        expect(due_date).to_be_visible(timeout=10000)
        tomorrow = days_from_today(1)
        due_date.fill(tomorrow)
        self.log.info("Due Date set: %s", tomorrow)

        assignee = modal.locator(_ASSIGNEE_SELECT)
        if is_shown(assignee):
            for option in assignee.first.locator("option").all_text_contents():
                if option and "select" not in option.lower():
                    assignee.first.select_option(label=option)
                    self.log.info("Assigned to: %s", option)
                    break

    def _save(self) -> None:
        network_log: list[dict] = []

        def on_request(request) -> None:
            if "/task" in request.url:
                network_log.append({"type": "request", "url": request.url, "method": request.method})

        def on_response(response) -> None:
            if "/task" in response.url:
                network_log.append({"type": "response", "url": response.url, "status": response.status})

        self.page.on("request", on_request)
        self.page.on("response", on_response)
        try:
            save = self._modal().locator("button, a", has_text="Save").first
            expect(save).to_be_visible(timeout=10000)
            save.click()
            self.step("Task Save clicked")

            toast = self.page.locator(TOAST)
            if poll(lambda: is_shown(toast), self.page, attempts=10):
                self.log.info("Success toast appeared after Save")
            else:
                self.log.warning("No success toast appeared after Save. See diagnostics and network log.")
                path = self.diag.path_for("task-save-network", "json")
                path.write_text(json.dumps(network_log, indent=2), encoding="utf-8")
        finally:
            self.page.remove_listener("request", on_request)
            self.page.remove_listener("response", on_response)

    def _set_status(self) -> None:
        modal = self._modal()
        if not poll(lambda: is_shown(modal), self.page, attempts=10):
            self.diag.capture("post-save-modal-not-found")
            raise ElementNotFoundError("post-save-modal", "Post-save modal not found after saving task")
        self.step("Post-save modal opened")

        in_progress = modal.get_by_text(TASK_STATUS, exact=False).first
        status_select = modal.locator("select#status")
        status_button = modal.get_by_text("Status", exact=False)
        status_aria = modal.locator(f'[aria-label*="Status"], [aria-label*="{TASK_STATUS}"]')

        status_set = False
        if is_shown(status_select):
            status_select.first.select_option(label=TASK_STATUS)
            status_set = True
            self.log.info("Task status set to %s via select", TASK_STATUS)
        elif is_shown(status_button) or is_shown(status_aria):
            via = "button" if is_shown(status_button) else "aria-label"
            (status_button if via == "button" else status_aria).first.click()
            if is_shown(in_progress):
                in_progress.click()
                status_set = True
                self.log.info("Task status set to %s via %s", TASK_STATUS, via)
        elif is_shown(in_progress):
            in_progress.click()
            status_set = True
            self.log.info("Task status set to %s via direct text", TASK_STATUS)

        if not status_set:
            self.diag.dump_html("task-status-modal-debug", modal.first.inner_html())
            self.log.warning("Could not find status selector for task modal. Modal HTML saved for debugging")

    def _close_modal(self) -> None:
        page = self.page
        self.step("Attempting to close task modal")
        url_before = page.url
        self.log.info("URL before modal close: %s", url_before)

        modal = page.locator(".modal:visible, dialog[open]")
        if not modal.count():
            self.log.info("No modal/dialog found to close")
            return

        close = modal.locator(_CLOSE_BUTTONS)
        if close.count():
            try:
                close.first.click(timeout=2000)
                self.wait(500)
                self.log.info("Clicked close button")
            except PlaywrightError as exc:
                self.log.warning("Failed to click close button: %s", exc)

        press_escape(page)
        self.wait(500)
        if is_shown(modal):
            self.log.info("Modal still visible, forcing removal")
            force_remove_modals(page)
            self.wait(500)

        if is_shown(modal) or is_shown(page.locator(".modal-backdrop")):
            self.log.warning("Modal/backdrop still visible after all attempts")
            self._close_modal_loop(modal)
        else:
            self.step("Task modal successfully closed")

        self.wait(1000)
        url_after = page.url
        self.log.info("URL after modal close: %s", url_after)
        if url_after != url_before:
            self.log.warning("URL changed after modal close! Before: %s, After: %s", url_before, url_after)
            if _is_dashboard(url_after):
                self.log.warning("Navigated to dashboard, attempting to return to service page")
                try:
                    page.go_back(wait_until="domcontentloaded")
                except PlaywrightError as exc:
                    self.log.warning("Going back failed: %s", exc)
                self.wait(1500)
                self.log.info("URL after going back: %s", page.url)

    def _close_modal_loop(self, modal: Locator) -> None:
        page = self.page
        backdrop = page.locator(".modal-backdrop")
        close = modal.locator("button, a", has_text="Close")
        x_button = modal.locator(_X_BUTTONS)

        for _ in range(10):
            if not is_shown(modal):
                break
            press_escape(page)
            click_blank_area(page)
            target = close if is_shown(close) else x_button
            if is_shown(target):
                try:
                    target.first.click(timeout=2000)
                except PlaywrightError:
                    self.log.warning("Close control not stable or detached, skipping click")
                    break
            self.wait(1000)

        if is_shown(modal):
            force_remove_modals(page)
            self.wait(1000)

        if not is_shown(modal) and not poll(lambda: not is_shown(backdrop), page, attempts=5):
            press_escape(page)
            click_blank_area(page)

        if is_shown(modal) or is_shown(backdrop):
            if not page.is_closed():
                self.diag.capture("modal-not-closed-fallback")
            raise InteractionError("task-modal-close", "Modal did not close after all fallback actions", attempts=10)
        self.log.info("Modal and backdrop removed from DOM.")

    def _open_tasks_tab(self) -> None:
        page = self.page
        self.step("Navigating to Tasks tab")
        try:
            page.wait_for_load_state("domcontentloaded")
        except PlaywrightError as exc:
            self.log.debug("domcontentloaded wait failed: %s", exc)
        self.wait(1500)

        url = page.url
        self.log.info("Current URL before Tasks tab: %s", url)
        if "?taskid=" in url:
            clean = url.split("?")[0]
            self.log.warning("Removing taskid parameter from URL: %s", clean)
            page.goto(clean, wait_until="domcontentloaded")
            self.wait(1000)
            url = page.url

        if _is_dashboard(url):
            self.log.warning("Detected dashboard/wrong page, waiting for navigation to complete...")
            self.wait(3000)
            if _is_dashboard(page.url):
                self.diag.screenshot("wrong-page-before-tasks-tab")
                raise InteractionError("tasks-tab", f"Wrong page detected: {page.url}. Expected customer or service detail page.")

        tab = page.locator(TASKS_TAB)
        try:
            tab.wait_for(state="visible", timeout=15000)
        except PlaywrightError as exc:
            self.diag.screenshot("tasks-tab-not-visible")
            raise ElementNotFoundError("tasks-tab", f"Tasks tab not visible after 15 seconds. Current URL: {page.url}") from exc

        self._click_tab(tab)
        self.wait(1500)

        heading = page.locator(
            'h4:has-text("Tasks Summary"), h3:has-text("Tasks Summary"), h4:has-text("Tasks"), h3:has-text("Tasks")'
        ).first
        try:
            heading.wait_for(state="visible", timeout=10000)
        except PlaywrightError as exc:
            self.diag.capture("tasks-summary-not-visible")
            raise ElementNotFoundError("tasks-summary", "Tasks Summary heading not visible after clicking tab") from exc
        self.step("Tasks Summary heading is visible")

    def _click_tab(self, tab: Locator) -> None:
        try:
            tab.click(timeout=3000)
            self.step("Tasks tab clicked (standard)")
            return
        except PlaywrightError:
            clear_obstructions(self.page)
        try:
            tab.click(force=True, timeout=3000)
            self.step("Tasks tab clicked (force)")
            return
        except PlaywrightError:
            pass
        try:
            tab.evaluate("(el) => el.click()")
        except PlaywrightError as exc:
            self.diag.screenshot("tasks-tab-click-failed")
            raise InteractionError("tasks-tab", "Failed to click Tasks tab after all methods", attempts=3) from exc
        self.step("Tasks tab clicked (JS)")

    def _task_listed(self) -> bool:
        row = self.page.locator(TASK_ROW)
        for attempt in range(10):
            if is_shown(row):
                self.log.info("%s task found on attempt %d", TASK_SUBJECT, attempt)
                return True
            self.log.warning("%s task not found, attempt %d", TASK_SUBJECT, attempt)
            self.wait(1500)
        return False

    def _dismiss(self, name: str) -> None:
        self.diag.screenshot(name)
        press_escape(self.page)
        click_blank_area(self.page)

    def _retry_creation(self) -> None:
        candidates, _ = self._candidates()
        tab = self.page.locator(TASKS_TAB)
        summary = self.page.locator('h4:has-text("Tasks Summary")').first

        for attempt in range(3):
            if candidates.count():
                if not self._click_candidate(candidates, f"new-task-retry-{attempt}"):
                    self.log.warning("Attempt %d to click New Task failed (no clickable candidate), retrying", attempt)

                modal = self._modal()
                if not poll(lambda: is_shown(modal), self.page, attempts=10):
                    self._dismiss(f"task-modal-not-visible-attempt-{attempt}")
                    continue
                if not poll(lambda: is_shown(modal.locator(_SUBJECT_INPUT)), self.page, attempts=10):
                    self._dismiss(f"subject-input-not-visible-attempt-{attempt}")
                    continue

                self._fill_form(modal)
                save = modal.locator("button, a", has_text="Save").first
                if poll(lambda: is_shown(save), self.page, attempts=10):
                    save.click()
                poll(lambda: not is_shown(modal), self.page, attempts=10)

                tab.click()
                expect(summary).to_be_visible(timeout=10000)
                if self._task_listed():
                    return
            self.wait(1000)

        self.diag.capture("payment-collection-task-not-found")
        raise InteractionError(
            "payment-collection-task",
            f"{TASK_SUBJECT} task not found after creation and retry",
            attempts=3,
        )
