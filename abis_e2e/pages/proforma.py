from __future__ import annotations

import json
import re
from dataclasses import dataclass

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import expect

from abis_e2e.errors import ElementNotFoundError, InteractionError
from abis_e2e.extract import first_date, labelled_date, nearest_date, proforma_number, total_from_rows
from abis_e2e.pages.base import BasePage, traced
from abis_e2e.resilience import click_exact_text, is_shown, poll, visible_within

ITEMS_PANEL = ".panel_s.accounting-template"
SUCCESS_INDICATORS = ".toast-success, .alert-success, .notification-success"

_UNLOCK_ITEM_FIELDS_JS = f"""
() => {{
  document.querySelectorAll(
    '{ITEMS_PANEL} input[readonly], {ITEMS_PANEL} textarea[readonly]'
  ).forEach(el => el.removeAttribute('readonly'));
}}
"""


@dataclass
class ProformaDetails:
    proforma_number: str
    proforma_date: str
    expiry_date: str
    total: str

    def to_record(self) -> dict:
        return {
            "proformaNumber": self.proforma_number,
            "proformaDate": self.proforma_date,
            "expiryDate": self.expiry_date,
            "total": self.total,
        }

    @property
    def complete(self) -> bool:
        return bool(self.proforma_date and self.expiry_date and self.total)


class ProformaPage(BasePage):
    """Proforma (estimate) for a customer, saved and marked as accepted."""

    @traced
    def create_and_accept(self, client_id: str) -> ProformaDetails:
        page = self.page
        self.open(f"clients/client/{client_id}")
        self.step("Navigated to client page")

        tab = page.get_by_role("link", name="Proforma", exact=True)
        expect(tab).to_be_visible(timeout=10000)
        tab.click()
        self.step("Clicked Proforma tab in customer page")

        create = page.locator("a.btn.btn-primary.mbot15", has_text="Create New Proforma").first
        expect(create).to_be_visible(timeout=10000)
        with page.expect_navigation(timeout=10000):
            create.click()
        self.step("Clicked Create New Proforma and navigated to Proforma creation page")
        self.wait(3000)

        self._select_billing_company()
        self._add_service_from_modal()
        page.evaluate(_UNLOCK_ITEM_FIELDS_JS)
        self._click_tick()
        self._save()
        self._mark_as_accepted()

        details = self._capture()
        self.store.update_section("proforma", **details.to_record())
        self.log.info(
            "Proforma Details - Number: %s, Date: %s, Expiry: %s, Total: %s",
            details.proforma_number,
            details.proforma_date,
            details.expiry_date,
            details.total,
        )
        if not details.complete:
            self.log.warning(
                "Proforma details missing: date='%s', expiry='%s', total='%s'",
                details.proforma_date,
                details.expiry_date,
                details.total,
            )
            self.diag.screenshot("proforma-details-missing")
        return details

    def _billing_company(self) -> str:
        details = self.store.read() or {}
        services = (details.get("proposal") or {}).get("services") or []
        if services and services[0].get("company"):
            return services[0]["company"]
        return (details.get("company") or {}).get("company", "")

    def _select_billing_company(self) -> None:
        company = self._billing_company()
        dropdown = self.page.locator('select[name="c_id"], #mastercompany').first
        if visible_within(dropdown, 10000):
            dropdown.select_option(label=company)
            self.step("Selected Billing From company: %s", company)
        else:
            self.log.warning("Billing From dropdown not found or not visible. Skipping dropdown step.")

    def _add_service_from_modal(self) -> None:
        view_services = self.page.get_by_role("button", name=re.compile("View Services", re.IGNORECASE)).first
        if not visible_within(view_services, 5000):
            return
        view_services.click()
        self.step("Clicked View Services")

        modal = self.page.locator(".modal:visible").filter(has_text="Services").first
        expect(modal).to_be_visible(timeout=10000)
        add = modal.locator("a.btn.addtoestimate").first
        if not visible_within(add, 10000):
            links = modal.locator("a").all_text_contents()
            self.log.error("Add link not found/visible in Services modal. All visible links: %s", json.dumps(links))
            raise ElementNotFoundError("proforma-add-service", "Add link not found in Services modal")
        add.click()
        self.step("Clicked Add in services modal")

    def _click_tick(self) -> None:
        tick = self.page.locator(ITEMS_PANEL).locator("button.btn-primary:has(i.fa-check)").first
        if not visible_within(tick, 10000):
            buttons = self.page.locator("button").all_text_contents()
            self.log.error("Tick mark button not found. Buttons: %s", json.dumps(buttons))
            raise ElementNotFoundError("proforma-tick", "Tick mark button not found in items panel")
        tick.click()
        self.step("Clicked blue tick mark button in Proforma page")

    def _save(self) -> None:
        page = self.page
        save = page.get_by_role("button", name=re.compile("Save", re.IGNORECASE)).first
        expect(save).to_be_enabled(timeout=10000)
        url_before = page.url
        save.click()
        self.step("Clicked Save in Proforma page")

        success = page.locator(SUCCESS_INDICATORS).or_(page.get_by_text("Proforma created successfully"))
        if not poll(lambda: page.url != url_before or is_shown(success), page, attempts=20, interval_ms=500):
            self.log.warning("No success indicator found after Save")
            self.diag.capture("proforma-save-failed")
            raise InteractionError("proforma-save", "Proforma Save did not trigger success indicator")
        self.log.info("Proforma Save success confirmed")
        self.wait(2000)

    def _mark_as_accepted(self) -> None:
        if not click_exact_text(self.page, "More", attempts=5):
            self.log.warning("Could not find or click More dropdown for Mark as Accepted")
            raise InteractionError("proforma-more", "More dropdown not found or not clickable", attempts=5)
        self.step("Clicked More dropdown in Proforma page")

        accept = self.page.locator("a, button", has_text="Mark as Accepted").first
        expect(accept).to_be_visible(timeout=10000)
        accept.click()
        self.step("Clicked Mark as Accepted in Proforma page")
        self.wait(2000)

    def _input_value(self, selector: str) -> str:
        field = self.page.locator(selector)
        if is_shown(field):
            return field.first.input_value()
        return ""

    def _expiry_near_label(self) -> str:
        label = self.page.locator("text=Expiry Date").first
        if not label.count():
            return ""
        sibling = label.locator("xpath=following-sibling::*[1]")
        if sibling.count():
            found = first_date(sibling.text_content() or "")
            if found:
                return found
        row = label.locator("xpath=ancestor::tr[1]")
        if row.count():
            return first_date(row.text_content() or "")
        return ""

    def _capture(self) -> ProformaDetails:
        page = self.page
        html = page.content()
        number = proforma_number(html)

        date = ""
        try:
            date = self._input_value('input[name="date"], input#date') or labelled_date(html, "Date", loose=True)
        except PlaywrightError as exc:
            self.log.warning("Could not find Proforma date: %s", exc)

        expiry = ""
        try:
            expiry = (
                self._input_value('input[name="expiry_date"], input#expiry_date')
                or self._expiry_near_label()
                or nearest_date(html, "Expiry")
            )
        except PlaywrightError as exc:
            self.log.warning("Could not find Expiry date: %s", exc)

        total = ""
        try:
            rows = [row.text_content() or "" for row in page.locator('tr:has-text("Total")').all()]
            total = total_from_rows(rows, html)
        except PlaywrightError as exc:
            self.log.warning("Could not find Proforma total: %s", exc)

        return ProformaDetails(proforma_number=number, proforma_date=date, expiry_date=expiry, total=total)
