from __future__ import annotations

from dataclasses import dataclass

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Locator, expect

from abis_e2e.errors import ElementNotFoundError, ExtractionError
from abis_e2e.extract import match_proposal_option, proposal_digits, service_number_from_url, valid_options
from abis_e2e.generators import days_from_today
from abis_e2e.pages.base import BasePage, traced
from abis_e2e.resilience import first_present

DEADLINE_DAYS = 7

_OPTION_TRIPLES_JS = """
(options) => options.map(o => [
  (o.textContent || '').trim(),
  o.getAttribute('data-text') || '',
  o.getAttribute('value') || '',
])
"""

_SET_SELECT_VALUE_JS = """
({ selector, value }) => {
  const el = document.querySelector(selector);
  if (!el) return false;
  el.value = value;
  el.dispatchEvent(new Event('change', { bubbles: true }));
  return true;
}
"""


@dataclass
class ServiceDetails:
    service_number: str
    service_name: str
    deadline: str

    def to_record(self) -> dict:
        return {"serviceNumber": self.service_number, "deadline": self.deadline}


class ServicePage(BasePage):
    """Creates a customer service (project) from an accepted proposal."""

    @traced
    def create(self, proposal_number: str) -> ServiceDetails:
        page = self.page
        services_tab = page.locator('a[data-group="projects"]')
        expect(services_tab).to_be_visible(timeout=10000)
        services_tab.click()
        self.step("Services tab clicked")

        new_service = page.locator("button, a", has_text="New service").first
        expect(new_service).to_be_visible(timeout=10000)
        new_service.click()
        self.step("New service button clicked")
        self.wait(2000)

        self._select_accepted_proposal(proposal_number)
        service_name = self._select_proposal_service()
        deadline_before = self._set_deadline_if_empty()

        save = page.locator('button#btnsubmit[type="submit"]')
        expect(save).to_be_visible(timeout=10000)
        expect(save).to_be_enabled()
        save.click()
        self.step("Service Save clicked")
        self.wait(4000)

        service_number = service_number_from_url(page.url)
        if not service_number:
            self.diag.capture("service-number-missing")
            raise ExtractionError("serviceNumber", f"Service number not found in URL after save: {page.url}")
        deadline = ""
        deadline_input = page.locator("input#deadline")
        if deadline_input.count():
            deadline = deadline_input.first.input_value() or deadline_before

        self.log.info("Service created - Number: %s Name: %s Deadline: %s", service_number, service_name, deadline)
        return ServiceDetails(service_number=service_number, service_name=service_name, deadline=deadline)

    def _dropdown(self, element_id: str) -> Locator:
        modal = self.page.locator(".modal:visible")
        return first_present(
            self.page.locator(f"select#{element_id}"),
            self.page.locator(f'select[name="{element_id}"]'),
            modal.locator(f"select#{element_id}"),
            modal.locator(f'select[name="{element_id}"]'),
        ).first

    def _option_triples(self, dropdown: Locator) -> list[tuple[str, str, str]]:
        return [tuple(item) for item in dropdown.locator("option").evaluate_all(_OPTION_TRIPLES_JS)]

    def _select_accepted_proposal(self, proposal_number: str) -> None:
        dropdown = self._dropdown("proposal_id")
        expect(dropdown).to_be_visible(timeout=20000)

        normalized = (proposal_number or "").strip()
        raw, as_int = proposal_digits(normalized)
        self.log.info("Looking for proposal: %s digitsRaw: %s digitsInt: %s", normalized, raw, as_int)

        value = ""
        for _ in range(5):
            options = self._option_triples(dropdown)
            for text, data_text, option_value in options:
                self.log.debug('Proposal option: text="%s", data-text="%s", value="%s"', text, data_text, option_value)
            value = match_proposal_option(options, normalized)
            if value:
                break
            self.wait(1000)

        if value:
            self._select_by_value(dropdown, value, normalized, as_int)
        else:
            self._select_fallback(dropdown, as_int)

    def _select_by_value(self, dropdown: Locator, value: str, normalized: str, as_int: str) -> None:
        try:
            dropdown.select_option(value=value)
            self.log.info("Accepted Proposal selected by value: %s", value)
            return
        except PlaywrightError as exc:
            self.log.warning("select_option by value failed, falling back to label selection. Value: %s Error: %s", value, exc)
            labels = dropdown.locator("option").all_text_contents()
            label = next((item for item in labels if item and normalized and normalized in item), None)
            label = label or next((item for item in labels if item and as_int and as_int in item), None)
            if not label:
                raise
        dropdown.select_option(label=label.strip())
        self.log.info("Accepted Proposal selected by label fallback: %s", label.strip())

    def _select_fallback(self, dropdown: Locator, as_int: str) -> None:
        labels = dropdown.locator("option").all_text_contents()
        self.log.warning("Expected proposal not found. Available proposal options after retries: %s", labels)
        candidates = valid_options(labels, exclude_containing=("select proposal",))
        if not candidates:
            raise ElementNotFoundError("accepted-proposal", "No valid proposal options available")

        fallback_label = candidates[0].strip()
        self.log.info("Attempting fallback selection by label -> %s", fallback_label)
        found_value = ""
        for text, _, option_value in self._option_triples(dropdown):
            if fallback_label in text:
                found_value = option_value
                break

        if not found_value:
            dropdown.select_option(label=fallback_label)
            self.log.info("Selected available proposal by label (direct fallback): %s", fallback_label)
            return

        was_set = self.page.evaluate(
            _SET_SELECT_VALUE_JS,
            {"selector": 'select#proposal_id, select[name="proposal_id"]', "value": found_value},
        )
        if not was_set:
            dropdown.select_option(value=found_value)

        checked = (dropdown.locator("option:checked").text_content() or "").strip()
        if checked and (fallback_label in checked or (as_int and as_int in checked)):
            self.log.info("Selected available proposal by value (fallback): %s label: %s", found_value, checked)
        else:
            self.log.warning("Fallback selection did not stick. checkedText: %s attemptedValue: %s", checked, found_value)

    def _select_proposal_service(self) -> str:
        dropdown = self._dropdown("itemable_id")
        expect(dropdown).to_be_visible(timeout=10000)
        self.wait(1500)

        candidates: list[str] = []
        for _ in range(5):
            candidates = valid_options(
                dropdown.locator("option").all_text_contents(),
                exclude_exact=("Please Select",),
            )
            if candidates:
                break
            self.wait(1000)

        if not candidates:
            self.diag.capture("proposal-service-options-not-found")
            raise ElementNotFoundError("proposal-service", "No valid proposal services found after retries")

        choice = self.rng.choice(candidates)
        dropdown.select_option(label=choice.strip())
        self.log.info("Proposal Service selected: %s", choice)
        self.wait(2000)
        return choice.strip()

    def _set_deadline_if_empty(self) -> str:
        deadline_input = self.page.locator("input#deadline")
        if not deadline_input.count():
            return ""
        current = deadline_input.first.input_value()
        if current:
            return current
        deadline = days_from_today(DEADLINE_DAYS)
        deadline_input.first.fill(deadline)
        self.log.info("Default deadline set: %s", deadline)
        return deadline
