"""
Invoice lifecycle after an accepted proforma.

Converts the proforma, records the invoice fields in the scratch file,
applies credits, records and approves a payment and finally returns to
the invoice through the payment's "Payment for Invoice" link.
"""
from __future__ import annotations

import re
from dataclasses import dataclass

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Locator, expect

from abis_e2e import extract
from abis_e2e.errors import ElementNotFoundError, InteractionError
from abis_e2e.generators import transaction_id
from abis_e2e.pages.base import BasePage, traced
from abis_e2e.resilience import click_exact_text, click_first_visible, is_shown, poll, visible_within

CREDIT_AMOUNT = "100"
SUCCESS_INDICATORS = ".toast-success, .alert-success, .notification-success"
APPLY_CREDITS_MODAL = "#apply_credits"


@dataclass
class InvoiceDetails:
    invoice_number: str
    invoice_date: str
    due_date: str
    sales_agent: str
    total: str
    payment_id: str = ""

    def to_record(self) -> dict:
        return {
            "invoiceNumber": self.invoice_number,
            "invoiceDate": self.invoice_date,
            "dueDate": self.due_date,
            "salesAgent": self.sales_agent,
            "total": self.total,
        }

    @property
    def complete(self) -> bool:
        return all((self.invoice_number, self.invoice_date, self.due_date, self.sales_agent, self.total))


class InvoicePage(BasePage):
    @traced
    def process(self) -> InvoiceDetails:
        self._convert()
        details = self._capture()
        self._apply_credits()
        self._record_payment()
        details.payment_id = self._approve_payment()
        self._back_to_invoice()
        return details

    def _convert(self) -> None:
        page = self.page
        try:
            page.wait_for_load_state("networkidle")
            self.wait(1000)

            dropdown = page.locator("button", has_text=re.compile("Convert to Invoice", re.IGNORECASE))
            if not poll(lambda: is_shown(dropdown), page, attempts=5):
                self.log.warning("Could not find or click Convert to Invoice dropdown button")
                raise ElementNotFoundError("convert-to-invoice", "Convert to Invoice dropdown button not found")
            dropdown.first.click()
            self.step("Clicked Convert to Invoice dropdown button")

            option = page.locator("a, button", has_text=re.compile(r"^Convert$", re.IGNORECASE)).first
            expect(option).to_be_visible(timeout=10000)
            url_before = page.url
            option.click()
            self.step("Clicked Convert option in dropdown")

            success = page.locator(SUCCESS_INDICATORS).or_(page.get_by_text("Invoice created successfully"))
            if not poll(lambda: page.url != url_before or is_shown(success), page, attempts=20, interval_ms=500):
                raise InteractionError("convert-to-invoice", "Invoice conversion did not trigger success indicator")
            self.log.info("Invoice conversion success confirmed")
            self.wait(2000)
        except (PlaywrightError, AssertionError, ElementNotFoundError, InteractionError) as exc:
            self.log.error("Error during Convert to invoice workflow: %s", exc)
            if not page.is_closed():
                self.diag.screenshot("convert-to-invoice-failed")
            raise

    def _capture(self) -> InvoiceDetails:
        page = self.page
        html = page.content()

        total = ""
        try:
            if not page.is_closed():
                rows = [row.text_content() or "" for row in page.locator('tr:has-text("Total")').all()]
                total = extract.total_from_rows(rows, html)
        except PlaywrightError as exc:
            self.log.warning("Could not find Invoice total: %s", exc)

        details = InvoiceDetails(
            invoice_number=extract.invoice_number(html),
            invoice_date=extract.invoice_date(html),
            due_date=extract.due_date(html),
            sales_agent=extract.sale_agent(html),
            total=total,
        )
        self.store.update_section("invoice", **details.to_record())
        self.log.info(
            "Invoice Details - Number: %s, Date: %s, Due: %s, Agent: %s, Total: %s",
            details.invoice_number,
            details.invoice_date,
            details.due_date,
            details.sales_agent,
            details.total,
        )
        if not details.complete:
            self.log.warning("Invoice details missing")
            if not page.is_closed():
                self.diag.screenshot("invoice-details-missing")
        return details

    def _apply_credits(self) -> None:
        page = self.page
        link = page.locator(
            f'a[data-toggle="modal"][data-target="{APPLY_CREDITS_MODAL}"]', has_text="Apply Credits"
        ).first
        expect(link).to_be_visible(timeout=10000)
        link.click()
        self.step("Clicked Apply Credits link")

        modal = page.locator(APPLY_CREDITS_MODAL)
        expect(modal).to_be_visible(timeout=10000)
        self.wait(500)

        inputs = modal.locator("input")
        if not poll(lambda: inputs.count() > 0, page, attempts=20, interval_ms=500):
            self.diag.dump_html("apply-credits-modal-debug", modal.inner_html())
            self.log.error("No input found in Apply Credits modal")
            raise ElementNotFoundError("apply-credits-input", "No input found in Apply Credits modal")

        amount = inputs.first
        for index in range(inputs.count()):
            candidate = inputs.nth(index)
            if candidate.is_visible():
                name = candidate.get_attribute("name")
                amount = modal.locator(f"input[name='{name}']") if name else candidate
                break

        expect(amount).to_be_visible(timeout=5000)
        amount.fill(CREDIT_AMOUNT)
        self.step("Entered %s in Amount to Credit", CREDIT_AMOUNT)

        apply = modal.locator("button, a", has_text="Apply").first
        expect(apply).to_be_visible(timeout=5000)
        apply.click()
        self.step("Clicked Apply in Apply Credits modal")

    def _payment_panel(self) -> Locator:
        page = self.page
        heading = page.get_by_role("heading", name=re.compile("Record Payment", re.IGNORECASE))
        for _ in range(20):
            form = page.locator("#record_payment_form")
            if is_shown(form):
                return form.first
            if is_shown(heading):
                panels = page.locator(".panel_s, .panel-body").filter(has=heading)
                for index in range(panels.count()):
                    if panels.nth(index).is_visible():
                        return panels.nth(index)
            self.wait(500)

        self.diag.dump_html("payment-panel-debug")
        self.log.error("No visible payment panel found")
        raise ElementNotFoundError("payment-panel", "No visible Payment panel found")

    def _record_payment(self) -> None:
        button = self.page.locator("a.btn.btn-primary", has_text="Payment").first
        expect(button).to_be_visible(timeout=10000)
        button.click()
        self.step("Clicked Payment button")

        panel = self._payment_panel()
        expect(panel).to_be_visible(timeout=10000)

        mode_select = panel.locator('select[name="paymentmode"]').first
        expect(mode_select).to_be_visible(timeout=10000)
        modes = extract.valid_options(
            [item.strip() for item in mode_select.locator("option").all_text_contents()],
            exclude_containing=("select",),
        )
        if not modes:
            raise ElementNotFoundError("payment-mode", "No valid payment modes available")
        mode = self.rng.choice(modes)
        mode_select.select_option(label=mode)
        self.log.info("Selected Payment Mode: %s", mode)

        txn = transaction_id(rng=self.rng)
        txn_input = panel.locator(
            'input[name="transactionid"], input[name="transaction_id"], input[placeholder*="Transaction"]'
        ).first
        expect(txn_input).to_be_visible(timeout=10000)
        txn_input.fill(txn)
        self.log.info("Entered Transaction ID: %s", txn)

        save = panel.locator("button, a", has_text="Save").first
        expect(save).to_be_visible(timeout=10000)
        save.click()
        self.step("Clicked Save in Payment panel")

    def _approve_payment(self) -> str:
        page = self.page
        try:
            if not click_exact_text(page, "More", attempts=5, hover=True):
                self.log.warning("Could not find or click More dropdown")
                raise InteractionError("payment-more", "More dropdown not found", attempts=5)
            self.step("Clicked More dropdown for Approve Payment")

            approve = page.locator("a, button", has_text="Approve Payment")
            if not visible_within(approve.first, 5000):
                self.log.warning("Approve Payment button did not become visible")

            clicked = False
            for attempt in range(5):
                # the desktop and mobile menus both render the item, only one is visible
                if click_first_visible(approve):
                    clicked = True
                    self.step("Clicked Approve Payment in More dropdown")
                    break
                self.log.warning("Attempt %d: No visible Approve Payment button, retrying...", attempt + 1)
                self.wait(1000)
                if click_exact_text(page, "More", attempts=1, hover=True):
                    self.step("Re-clicked More dropdown (retry)")
            if not clicked:
                raise InteractionError("approve-payment", "No visible Approve Payment button found", attempts=5)

            confirm = page.locator("button, a", has_text="Yes, approve it!").first
            expect(confirm).to_be_visible(timeout=10000)
            confirm.click()
            self.step("Clicked Yes, approve it! in confirmation popup")
            self.wait(2000)
        except (PlaywrightError, AssertionError, InteractionError) as exc:
            self.log.error("Error during Approve Payment workflow: %s", exc)
            raise

        payment_id = extract.trailing_id(page.url)
        if payment_id:
            self.store.update_section("payment", paymentId=payment_id)
            self.log.info("Payment ID captured: %s", payment_id)
        else:
            self.log.warning("Payment ID not found in URL: %s", page.url)
        return payment_id

    def _back_to_invoice(self) -> None:
        link = self.page.locator("text=Payment for Invoice").first.locator("..").locator("a").first
        expect(link).to_be_visible(timeout=10000)
        link.click()
        self.page.wait_for_load_state("networkidle")
        self.step("Navigated back to Invoice via Payment for Invoice link")
