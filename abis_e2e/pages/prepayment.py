from __future__ import annotations

import re

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import expect

from abis_e2e.errors import ElementNotFoundError, InteractionError
from abis_e2e.extract import credit_note_id_from_url, prepayment_number
from abis_e2e.pages.base import BasePage, traced
from abis_e2e.resilience import accept_next_dialog, click_exact_text, first_present

RATE = "100"
SERVICE_OPTIONS = "#project_ajax_search_wrapper .inner.open ul li a span.text"
PAYMENT_MODE_SELECT = (
    '.modal:visible select[name="custom_fields[credit_note][1]"], select[name="custom_fields[credit_note][1]"]'
)

_HAS_SERVICE_OPTIONS_JS = f"""
() => Array.from(document.querySelectorAll('{SERVICE_OPTIONS}'))
  .some(opt => opt.textContent && opt.textContent.trim().length > 0)
"""


class PrePaymentPage(BasePage):
    """Advance payment (credit note) created from the customer page and approved."""

    @traced
    def create_and_approve(self) -> str:
        self._open_form()
        self._select_service()
        self._select_payment_mode()
        self._enter_rate()

        tick = self.page.locator("#btnAdditem")
        expect(tick).to_be_visible(timeout=10000)
        tick.click()
        self.step("Clicked blue tick mark button")

        self._save()
        number = self._extract_number()
        self._approve(number)
        return number

    def _open_form(self) -> None:
        page = self.page
        self.step("Navigating to Pre Payment section")

        go_to_customer = page.locator("a", has_text="Go to Customer").first
        expect(go_to_customer).to_be_visible(timeout=10000)
        go_to_customer.click()
        self.step("Clicked Go to Customer link")

        tab = page.get_by_role("link", name="Pre Payment", exact=True)
        expect(tab).to_be_visible(timeout=10000)
        tab.click()
        self.step("Clicked Pre Payment tab")

        new_link = page.get_by_role("link", name=re.compile("New Pre Payment", re.IGNORECASE)).first
        expect(new_link).to_be_visible(timeout=10000)
        new_link.click()
        self.step("Clicked New Pre Payment link")

        heading = page.get_by_role("heading", name=re.compile("New Pre Payment", re.IGNORECASE)).first
        expect(heading).to_be_visible(timeout=15000)
        self.step("Pre Payment form loaded")

    def _select_service(self) -> None:
        page = self.page
        self.step("Selecting service from dropdown")
        try:
            button = page.locator('button[data-id="project_id"]')
            button.wait_for(state="visible", timeout=15000)
            button.click()

            search = page.locator("#project_ajax_search_wrapper .bs-searchbox input")
            search.wait_for(state="visible", timeout=10000)
            self.wait(1000)
            # a single space makes the ajax endpoint return every service
            search.press_sequentially(" ", delay=100)
            self.step("Typed space in service search to trigger AJAX")
            self.wait(2000)

            page.wait_for_function(_HAS_SERVICE_OPTIONS_JS, timeout=10000)
            options = page.locator(SERVICE_OPTIONS)
            self.log.info("Service options found: %d items", options.count())
            options.filter(has_text=re.compile(r".+")).first.click()
            self.step("Selected first service option")
        except PlaywrightError as exc:
            try:
                wrapper_html = page.locator("#project_ajax_search_wrapper").inner_html(timeout=2000)
            except PlaywrightError:
                wrapper_html = "Could not capture HTML"
            self.log.error("service-dropdown-debug: %s", wrapper_html[:500])
            self.diag.capture("service-dropdown-no-options")
            raise ElementNotFoundError(
                "prepayment-service",
                "No service options found after space AJAX search. AJAX may have timed out or returned no results.",
            ) from exc

    def _select_payment_mode(self) -> None:
        select = self.page.locator(PAYMENT_MODE_SELECT).first
        expect(select).to_be_visible(timeout=10000)
        mode = next((item.strip() for item in select.locator("option").all_text_contents() if item.strip()), "")
        if not mode:
            self.diag.capture("payment-mode-select-not-found")
            raise ElementNotFoundError("payment-mode", "No valid Payment Mode options found")
        select.select_option(label=mode)
        self.step("Selected Payment Mode: %s", mode)

    def _enter_rate(self) -> None:
        page = self.page
        rate = first_present(
            page.locator('table input[name="rate"]'),
            page.locator('table input[placeholder*="Rate" i]'),
            page.locator("table input"),
        ).first
        expect(rate).to_be_visible(timeout=10000)
        rate.fill(RATE)
        expect(rate).to_have_value(RATE, timeout=5000)
        self.step("Entered %s in Rate field", RATE)

    def _save(self) -> None:
        page = self.page
        save = page.get_by_role("button", name=re.compile("Save", re.IGNORECASE)).first
        expect(save).to_be_visible(timeout=10000)
        save.click()
        self.step("Clicked Save for Pre Payment")

        try:
            page.wait_for_url(re.compile("credit_notes"), timeout=15000)
        except PlaywrightError:
            self.log.warning("Did not navigate to credit_notes page as expected")
        page.wait_for_load_state("domcontentloaded")
        try:
            page.wait_for_load_state("networkidle")
        except PlaywrightError:
            self.log.warning("networkidle timeout, proceeding anyway")
        self.wait(2000)
        self.step("Pre-payment saved and page loaded")

    def _extract_number(self) -> str:
        page = self.page
        number = prepayment_number(page.content())
        if not number and credit_note_id_from_url(page.url):
            heading = page.locator("h4, h3, h2").first
            try:
                number = prepayment_number(heading.text_content(timeout=2000) or "")
            except PlaywrightError as exc:
                self.log.warning("Could not extract prepayment number: %s", exc)

        if number:
            self.log.info("Extracted pre-payment number: %s", number)
        else:
            self.log.warning("Pre-payment number not found, will use first prepayment")
        return number

    def _approve(self, number: str) -> None:
        page = self.page
        self.step("Navigating to pre-payment detail page for approval")
        if "credit_notes/view" not in page.url:
            self.log.info("Not on detail page, navigating to Pre Payment list")
            self.open("credit_notes")
            page.wait_for_load_state("networkidle")
            self.wait(1000)

        if number:
            link = page.locator("a", has_text=number).first
            expect(link).to_be_visible(timeout=10000)
            link.click()
            self.step("Clicked prepayment link: %s", number)
        else:
            page.locator("table tbody tr").first.locator("a").first.click()
            self.log.warning("Prepayment number not found, clicked first prepayment in list")
        page.wait_for_load_state("networkidle")
        self.wait(1000)

        if not click_exact_text(page, "More", attempts=5):
            self.diag.screenshot("more-dropdown-not-found")
            raise InteractionError("prepayment-more", "More dropdown not found or not clickable after 5 attempts", attempts=5)
        self.step("More dropdown clicked successfully")

        approve = page.locator("a, button", has_text="Approve Payment").first
        expect(approve).to_be_visible(timeout=10000)
        seen = accept_next_dialog(page)
        approve.click()
        self.step("Clicked Approve Payment button")

        self.wait(2000)
        if not seen["handled"]:
            self.log.warning("No alert popup appeared or was handled after Approve Payment")
        page.wait_for_load_state("networkidle")
        self.step("Pre-payment approved successfully")
