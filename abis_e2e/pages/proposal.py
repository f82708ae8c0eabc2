from __future__ import annotations

import re
from dataclasses import dataclass, field

from playwright.sync_api import Locator, expect

from abis_e2e.errors import ElementNotFoundError, InteractionError
from abis_e2e.extract import proposal_number
from abis_e2e.pages.base import BasePage, traced

CHOOSE_SERVICE = "Choose Service"
SENT_STATUS = 'span.proposal-status-4, .label-info:has-text("Sent")'

_DISPATCH_CHANGE_JS = """
(selector) => {
  const el = document.querySelector(selector);
  if (el) {
    el.dispatchEvent(new Event('change', { bubbles: true }));
  }
}
"""


@dataclass
class ProposalDetails:
    proposal_number: str
    services: list[dict] = field(default_factory=list)

    def to_record(self) -> dict:
        return {"proposalNumber": self.proposal_number, "services": list(self.services)}


class ProposalPage(BasePage):
    """Proposal creation from inside an open lead modal."""

    @traced
    def create_and_process(self, modal_selector: str = "#lead-modal") -> ProposalDetails:
        """Two services, mark as sent, then accept one row and decline the other."""
        self._open_new_proposal(self.page.locator(modal_selector))
        self.page.wait_for_load_state("networkidle")

        company = self._select_company()
        first_name, first_index = self._select_service()
        self._add_item()
        second_name = self._select_second_service(first_index, first_name)

        services = []
        if first_name and first_name != CHOOSE_SERVICE:
            services.append({"name": first_name, "company": company})
        if second_name and second_name not in (CHOOSE_SERVICE, first_name):
            services.append({"name": second_name, "company": company})

        self._save()
        self._mark_as_sent()
        self._accept_and_decline()
        return ProposalDetails(proposal_number=self._extract_number(), services=services)

    @traced
    def create_and_accept(self, modal_selector: str = "#lead-modal") -> ProposalDetails:
        """Single service proposal accepted as a whole."""
        self._open_new_proposal(self.page.locator(modal_selector))
        self.wait(2000)

        company = self._select_company()
        name, _ = self._select_service()
        self._add_item()
        self._save()
        self._mark_as_sent()

        accept = self.page.get_by_role("button", name=re.compile("Accept", re.IGNORECASE)).first
        expect(accept).to_be_visible()
        expect(accept).to_be_enabled()
        accept.click()
        self.step("Clicked Accept button, waiting for page to load...")
        self.page.wait_for_load_state("networkidle")
        self.wait(2000)

        return ProposalDetails(
            proposal_number=self._extract_number(),
            services=[{"name": name, "company": company}] if name else [],
        )

    def _open_new_proposal(self, dialog: Locator) -> None:
        proposals_tab = dialog.locator("button, a", has_text="Proposals").first
        expect(proposals_tab).to_be_visible()
        proposals_tab.click()
        self.step("Proposals tab clicked")

        with self.page.expect_navigation():
            dialog.locator("button, a", has_text="New Proposal").first.click()

        expect(self.page.get_by_role("heading", name="New Proposal")).to_be_visible(timeout=10000)

    def _select_company(self) -> str:
        dropdown = self.page.locator("select").nth(0)
        expect(dropdown).to_be_visible()
        options = dropdown.locator("option").all_text_contents()
        if len(options) < 2:
            raise ElementNotFoundError("proposal-company", f"Company dropdown has no selectable options: {options}")
        dropdown.select_option(index=self.rng.randint(1, len(options) - 1))
        company = dropdown.locator("option:checked").text_content() or ""
        self.log.info("Randomly selected company dropdown option: %s", company)

        # the services dropdown only cascades on a bubbling change event
        self.page.evaluate(_DISPATCH_CHANGE_JS, "select")
        self.wait(5000)
        return company

    def _service_dropdown(self) -> Locator:
        return self.page.locator("select").nth(1)

    def _select_service(self) -> tuple[str, int]:
        dropdown = self._service_dropdown()
        expect(dropdown).to_be_visible()
        expect(dropdown).to_be_enabled(timeout=10000)

        options = dropdown.locator("option").all_text_contents()
        if len(options) < 3:
            raise ElementNotFoundError("proposal-service", f"Service dropdown does not have enough options: {options}")
        candidates = [i for i, text in enumerate(options) if i > 0 and text != CHOOSE_SERVICE]
        if not candidates:
            raise ElementNotFoundError("proposal-service", f"Service dropdown only offers placeholders: {options}")

        index = self.rng.choice(candidates)
        dropdown.select_option(index=index)
        name = dropdown.locator("option:checked").text_content() or ""
        self.log.info("Randomly selected service dropdown option: %s", name)
        self.wait(3000)
        return name, index

    def _select_second_service(self, first_index: int, first_name: str) -> str:
        dropdown = self._service_dropdown()
        options = dropdown.locator("option").all_text_contents()
        remaining = [i for i in range(1, len(options)) if i != first_index]
        if not remaining:
            self.log.warning("Not enough services to add a second distinct service.")
            return ""

        second = ""
        for _ in range(10):
            dropdown.select_option(index=self.rng.choice(remaining))
            second = dropdown.locator("option:checked").text_content() or ""
            if second not in (CHOOSE_SERVICE, first_name):
                break

        if second in (CHOOSE_SERVICE, first_name):
            self.log.warning("Could not find a distinct second service.")
            return ""

        self.log.info("Randomly selected second service dropdown option: %s", second)
        self.wait(2000)
        self._add_item()
        self.log.info("Second service added: %s", second)
        return second

    def _add_item(self) -> None:
        add_item = self.page.locator("#btnAdditem")
        expect(add_item).to_be_visible()
        add_item.click()

    def _save(self) -> None:
        save = self.page.get_by_role("button", name=re.compile("Save$", re.IGNORECASE)).first
        expect(save).to_be_visible()
        expect(save).to_be_enabled()
        save.click()
        self.step("Proposal save clicked, waiting for status...")
        self.wait(3000)

    def _mark_as_sent(self) -> None:
        more = self.page.locator('button:has-text("More")').first
        more.wait_for(state="visible")
        more.click()
        mark_sent = self.page.locator("text=Mark as Sent").first
        mark_sent.wait_for(state="visible")
        mark_sent.click()
        self.step("Clicked Mark as Sent, waiting for status update...")
        expect(self.page.locator(SENT_STATUS).first).to_be_visible()

    def _accept_and_decline(self) -> None:
        actionable = []
        for row in self.page.locator("tr").all():
            accept = row.locator('button:has-text("Accept")')
            decline = row.locator('button:has-text("Decline")')
            if not (accept.count() and decline.count()):
                continue
            accept, decline = accept.first, decline.first
            if accept.is_visible() and accept.is_enabled() and decline.is_visible() and decline.is_enabled():
                actionable.append((accept, decline))

        if len(actionable) < 2:
            self.diag.screenshot("service-actionable-rows-debug")
            raise InteractionError(
                "proposal-service-rows",
                f"Not enough actionable service rows found. Found: {len(actionable)}",
            )

        accept_index = self.rng.randint(0, 1)
        decline_index = 1 - accept_index

        accept_button = actionable[accept_index][0]
        expect(accept_button).to_be_enabled()
        accept_button.click()
        self.log.info("Accepted service in row %d", accept_index)
        self.wait(1000)

        decline_button = actionable[decline_index][1]
        expect(decline_button).to_be_enabled()
        decline_button.click()
        self.log.info("Declined service in row %d", decline_index)
        self.wait(1000)

        self.page.wait_for_load_state("networkidle")
        self.wait(2000)
        self.step("Clicked Accept, waiting for final state...")

    def _extract_number(self) -> str:
        number = proposal_number(self.page.content())
        if number:
            self.log.info("Extracted proposal number: %s", number)
        else:
            self.log.warning("Proposal number not found in page content")
        return number
