from __future__ import annotations

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Locator, expect

from abis_e2e.extract import client_id
from abis_e2e.generators import generate_gst, generate_pan
from abis_e2e.pages.base import BasePage, traced
from abis_e2e.resilience import first_present, is_shown

PROFILE_TAB = 'a[data-group="profile"]'
ADMINS_MODAL = "#customer_admins_assign"


class CustomerPage(BasePage):
    """Lead to customer conversion and customer admin assignment."""

    @traced
    def convert_and_assign_admin(self, lead_name: str, lead_modal: Locator) -> tuple[str, str]:
        client = self._convert(lead_name, lead_modal)

        profile_tab = self.page.locator(PROFILE_TAB)
        expect(profile_tab).to_be_visible(timeout=10000)
        profile_tab.click()
        self.step("--- Profile tab clicked ---")

        admin = self._assign_admin()
        return client, admin.strip()

    def _convert(self, lead_name: str, lead_modal: Locator) -> str:
        convert_link = lead_modal.locator('a:has-text("Convert to customer")').first
        expect(convert_link).to_be_visible(timeout=10000)
        convert_link.click()
        self.step("--- Clicked Convert to customer for lead: %s ---", lead_name)

        self.page.wait_for_load_state("networkidle")
        self.wait(1000)
        self._fill_pan_and_gst()

        save = self.page.locator("#custformsubmit")
        expect(save).to_be_visible(timeout=15000)
        expect(save).to_be_enabled()
        save.click()
        self.step("--- Clicked Save after Convert to customer ---")

        expect(self.page.locator(PROFILE_TAB)).to_be_visible(timeout=15000)
        return self._capture_client_id()

    def _fill_pan_and_gst(self) -> None:
        page = self.page
        modal = page.locator(".modal:visible")
        expect(modal.first).to_be_visible(timeout=10000)

        pan_input = first_present(
            modal.locator("input[name='pan_num']"),
            modal.locator("#pan_num"),
            page.locator("input[name='pan_num']"),
            page.locator("#pan_num"),
        )
        gst_input = first_present(
            modal.locator("input[name='vat']"),
            modal.locator("input[name='gst']"),
            page.locator("input[name='vat']"),
            page.locator("input[name='gst']"),
        )

        pan = generate_pan(self.rng)
        gst = generate_gst(pan, self.rng)

        pan_filled = gst_filled = False
        for _ in range(3):
            if not pan_filled and pan_input.count():
                pan_input.first.fill(pan)
                pan_filled = True
                self.log.info("Entered PAN Number: %s", pan)
            if not gst_filled and gst_input.count():
                gst_input.first.fill(gst)
                gst_filled = True
                self.log.info("Entered GST Number: %s", gst)
            if pan_filled and gst_filled:
                break
            self.wait(1000)

        if not pan_filled:
            self.log.warning("PAN Number field not found")
        if not gst_filled:
            self.log.warning("GST Number field not found")

    def _capture_client_id(self) -> str:
        self.wait(1000)
        found = client_id(self.page.evaluate("() => document.body.innerText"))
        if found:
            self.log.info("Captured Client ID: %s", found)
        else:
            self.log.warning("Client ID not found at beginning of page.")
        return found

    def _assign_admin(self) -> str:
        page = self.page
        admins_tab = page.locator("button, a", has_text="Customer Admins").first
        expect(admins_tab).to_be_visible(timeout=10000)
        admins_tab.click()
        self.step("--- Customer Admins tab clicked ---")

        panel = page.locator('div[role="tabpanel"]:has-text("Assign Admin")')
        try:
            panel.first.wait_for(state="visible", timeout=15000)
        except PlaywrightError:
            self.log.debug("Customer Admins panel did not report visible, re-clicking tab")

        assign = page.locator("button, a", has_text="Assign Admin")
        for _ in range(3):
            if is_shown(assign):
                break
            admins_tab.click()
            self.wait(2000)
        expect(assign.first).to_be_visible(timeout=15000)
        assign.first.click()
        self.step("--- Assign Admin button clicked ---")

        modal = page.locator(ADMINS_MODAL)
        expect(modal).to_be_visible(timeout=20000)

        admin = self._select_random_admin(modal)

        save = modal.locator("button, a", has_text="Save").first
        expect(save).to_be_visible(timeout=10000)
        save.click()
        self.step("--- Customer Admin modal Save clicked ---")
        expect(modal).not_to_be_visible(timeout=15000)
        return admin

    def _select_random_admin(self, modal: Locator) -> str:
        dropdown = modal.locator("select").first
        expect(dropdown).to_be_visible(timeout=10000)
        options = dropdown.locator("option").all_text_contents()
        if len(options) > 1:
            dropdown.select_option(index=self.rng.randint(1, len(options) - 1))
        else:
            self.log.warning("Customer Admin dropdown has no selectable options: %s", options)

        if modal.is_visible() and dropdown.is_visible():
            selected = dropdown.locator("option:checked").text_content() or ""
            self.log.info("Randomly selected Customer Admin: %s", selected)
            return selected
        self.log.warning("Dropdown or modal not visible after selecting option, skipping reading selected option.")
        return ""
