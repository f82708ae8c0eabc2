from __future__ import annotations

import re
from dataclasses import dataclass

from faker import Faker
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Locator, expect

from abis_e2e.errors import ElementNotFoundError
from abis_e2e.extract import lead_id_from_href, lead_id_from_text
from abis_e2e.generators import LeadData, fake_lead
from abis_e2e.pages.base import BasePage, traced
from abis_e2e.resilience import first_present, resilient_click, resilient_expect_visible, resilient_fill

LEAD_MODAL = "#lead-modal"


@dataclass
class LeadDetails:
    lead_id: str
    name: str
    email: str
    phone: str
    company: str
    address: str
    city: str
    state: str | None
    zip: str

    def to_record(self) -> dict:
        return {
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "zip": self.zip,
        }


class LeadPage(BasePage):
    @traced
    def create_lead(self, data: LeadData | None = None) -> LeadDetails:
        page = self.page
        data = data or fake_lead(Faker(), self.rng)

        self.step("Navigating to leads page")
        self.open("leads")

        new_lead_link = page.locator("a", has_text="New Lead")
        resilient_expect_visible(new_lead_link, self.diag, "new-lead-link")
        resilient_click(new_lead_link, self.diag, "new-lead-link")
        self.step("Clicked New Lead link")

        resilient_expect_visible(
            page.get_by_role("heading", name=re.compile("Add new lead", re.IGNORECASE)),
            self.diag,
            "lead-form-heading",
        )
        self.step("Lead form heading visible")

        form = page.locator("#lead_form")
        resilient_fill(form.locator("input#name"), data.name, self.diag, "lead-name")
        resilient_fill(form.locator("input#email"), data.email, self.diag, "lead-email")
        resilient_fill(form.locator("input#phonenumber"), data.phone, self.diag, "lead-phone")
        resilient_fill(form.locator("input#company"), data.company, self.diag, "lead-company")
        self.log.info("Lead Company: %s", data.company)

        form.locator("input#address").fill(data.address)
        expect(form.locator("input#address")).to_have_value(data.address)
        form.locator("input#city").fill(data.city)
        expect(form.locator("input#city")).to_have_value(data.city)

        state_dropdown = form.locator("select#state")
        expect(state_dropdown).to_be_visible()
        state_dropdown.select_option(label=self.config.state)
        selected_state = state_dropdown.locator("option:checked").text_content()
        self.log.info("Lead State: %s", selected_state)

        self._fill_zip(form, data.zip)

        save_button = form.locator('button:has-text("Save")')
        expect(save_button).to_be_visible()
        expect(save_button).to_be_enabled()
        save_button.click()
        self.step("Lead saved, waiting for modal...")

        dialog = page.locator(LEAD_MODAL)
        expect(dialog).to_be_visible(timeout=10000)
        self.wait(3000)

        return LeadDetails(
            lead_id=self._extract_lead_id(dialog),
            name=data.name,
            email=data.email,
            phone=data.phone,
            company=data.company,
            address=data.address,
            city=data.city,
            state=selected_state,
            zip=data.zip,
        )

    def _fill_zip(self, form: Locator, zip_code: str) -> None:
        zip_input = first_present(
            form.locator("input#zipcode"),
            form.locator("input[name='zipcode']"),
            form.locator("input[name*='zip']"),
            form.locator("input[name*='postal']"),
            form.locator("input[name*='pincode']"),
        )
        if not zip_input.count():
            self.log.warning("Zip code field not found, skipping zip code entry.")
            return
        zip_input = zip_input.first
        zip_input.fill(zip_code)
        self.wait(500)
        actual = zip_input.input_value()
        if actual == zip_code:
            self.log.info("Lead Zip code: %s", zip_code)
        else:
            self.log.warning("Zip code field did not update as expected. Expected: %s, Actual: %s", zip_code, actual)

    def _extract_lead_id(self, dialog: Locator) -> str:
        lead_id = ""
        try:
            link = dialog.locator('a[href*="/leads/"], a[href*="leadid="]').first
            if link.count():
                lead_id = lead_id_from_href(link.get_attribute("href") or "")
                if lead_id:
                    self.log.info("Captured Lead ID from link: %s", lead_id)

            if not lead_id:
                lead_id = lead_id_from_text(dialog.text_content() or "")
                if lead_id:
                    self.log.info("Captured Lead ID from modal content: %s", lead_id)

            if not lead_id:
                lead_id = dialog.get_attribute("data-leadid") or dialog.get_attribute("data-id") or ""
                tagged = dialog.locator("[data-leadid], [data-id]").first
                if not lead_id and tagged.count():
                    lead_id = tagged.get_attribute("data-leadid") or tagged.get_attribute("data-id") or ""
                if lead_id:
                    self.log.info("Captured Lead ID from data attribute: %s", lead_id)
        except PlaywrightError as exc:
            self.log.error("Error extracting Lead ID: %s", exc)
            lead_id = ""

        if not lead_id:
            self.log.warning("Could not extract Lead ID from modal")
            return "N/A"
        return lead_id

    @traced
    def open_lead(self, name: str) -> Locator:
        page = self.page
        self.open("leads")

        search = first_present(
            page.locator('table thead input[type="search"]'),
            page.locator('table thead input[placeholder*="search" i]'),
            page.locator('table thead input:not([type="checkbox"]):not([type="button"]):not([type="submit"])'),
            page.locator('input[placeholder*="search" i]'),
        )
        if not search.count():
            raise ElementNotFoundError("lead-search", "Could not find datatable search input")
        search = search.first
        expect(search).to_be_visible()
        search.fill(name)
        self.wait(2000)

        lead_link = page.locator("a", has_text=name).first
        expect(lead_link).to_be_visible(timeout=10000)
        lead_link.click()

        modal = page.locator(LEAD_MODAL)
        expect(modal).to_be_visible(timeout=10000)
        expect(modal.locator("h4, h3, h2, h1").first).to_be_visible(timeout=10000)
        self.step("Opened lead modal for %s", name)
        return modal
