"""
Sequencing of the CRM flows.

Tests stay thin: they build a workflow around the pytest-playwright ``page``
and call ``run()``. Every step runs in script order and persists what it
produced before the next step starts, so a failing run still leaves the
numbers it got as far as in the scratch file.
"""
from __future__ import annotations

import logging
import random
from pathlib import Path
from typing import Any

from playwright.sync_api import Page

from abis_e2e.config import E2EConfig
from abis_e2e.details import ExecutionDetailsStore
from abis_e2e.errors import WorkflowStateError
from abis_e2e.logging_utils import step
from abis_e2e.pages import (
    CustomerPage,
    InvoicePage,
    LeadPage,
    LoginPage,
    PrePaymentPage,
    ProformaPage,
    ProposalPage,
    ServicePage,
    TaskPage,
)
from abis_e2e.pages.lead import LEAD_MODAL
from abis_e2e.resilience import Diagnostics
from abis_e2e.timeout import RunBudget

logger = logging.getLogger("abis_e2e.workflow")

LEAD_DETAILS_FILE = "lead_details.json"


class _Flow:
    login_page = LoginPage
    lead_page = LeadPage
    proposal_page = ProposalPage

    def __init__(
        self,
        page: Page,
        config: E2EConfig,
        store: ExecutionDetailsStore | None = None,
        rng: random.Random | None = None,
    ):
        self.page = page
        self.config = config
        self.store = store or ExecutionDetailsStore(config.details_path)
        self.rng = rng or random.Random()

    def _make(self, page_cls):
        return page_cls(self.page, self.config, self.store, self.rng)

    def _budget(self, label: str, artifact: str) -> RunBudget:
        # whatever page the run is stuck on ends up in the artifact dir
        diag = Diagnostics(self.page, self.config.artifact_dir)
        return RunBudget(self.config.test_timeout_s, label, on_expire=lambda: diag.capture(artifact))


class SanityWorkflow(_Flow):
    """Lead to payment: the full sanity path through the CRM."""

    customer_page = CustomerPage
    service_page = ServicePage
    task_page = TaskPage
    prepayment_page = PrePaymentPage
    proforma_page = ProformaPage
    invoice_page = InvoicePage

    def run(self) -> dict[str, Any]:
        logger.info("Starting ABIS Sanity Test")
        logger.info("Using APP_BASE_URL: %s", self.config.base_url)
        logger.info("Using E2E_USER: %s", self.config.user)
        with self._budget("ABIS sanity", "sanity-timeout"):
            self._run()
        return self.store.read() or {}

    def _run(self) -> None:
        self._make(self.login_page).login()

        leads = self._make(self.lead_page)
        lead = leads.create_lead()
        proposal = self._make(self.proposal_page).create_and_process(LEAD_MODAL)

        lead_modal = leads.open_lead(lead.name)
        client_id, customer_admin = self._make(self.customer_page).convert_and_assign_admin(lead.name, lead_modal)

        self.store.write(
            {
                "lead": lead.to_record(),
                "proposal": proposal.to_record(),
                "company": {
                    "clientId": client_id,
                    "company": lead.company,
                    "customerAdmin": (customer_admin or "").strip(),
                },
            }
        )

        service = self._make(self.service_page).create(proposal.proposal_number or "")
        self.store.update_section("service", **service.to_record())
        logger.info("Service details updated in JSON: %s", service.to_record())

        self._make(self.task_page).create_payment_collection_task()

        prepayment_number = self._make(self.prepayment_page).create_and_approve()
        self.store.update_section("service", prepaymentNumber=prepayment_number)
        logger.info("Prepayment number updated in %s: %s", self.store.path, prepayment_number)

        client = self.proforma_client_id()
        self._make(self.proforma_page).create_and_accept(client)
        self._make(self.invoice_page).process()
        step(logger, "ABIS sanity workflow completed")

    def proforma_client_id(self) -> str:
        raw = str(self.store.get("company", "clientId", ""))
        client = raw.removeprefix("#").strip()
        if not client:
            raise WorkflowStateError(
                f"clientId not found in {self.store.path}",
                section="company",
                key="clientId",
            )
        return client


class LeadProposalFlow(_Flow):
    """Login, one lead, one accepted single-service proposal."""

    def __init__(
        self,
        page: Page,
        config: E2EConfig,
        store: ExecutionDetailsStore | None = None,
        rng: random.Random | None = None,
    ):
        store = store or ExecutionDetailsStore(Path(config.details_path).with_name(LEAD_DETAILS_FILE))
        super().__init__(page, config, store, rng)

    def run(self) -> dict[str, Any]:
        with self._budget("lead/proposal flow", "lead-proposal-timeout"):
            self._make(self.login_page).login()
            lead = self._make(self.lead_page).create_lead()
            record = {"name": lead.name, "email": lead.email, "phone": lead.phone}
            self.store.write(record)
            logger.info("Lead details saved to JSON file: %s", record)

            proposal = self._make(self.proposal_page).create_and_accept(LEAD_MODAL)
            if proposal.proposal_number:
                record["proposalNumber"] = proposal.proposal_number
                self.store.write(record)
                logger.info("Lead details with proposal number saved to JSON file: %s", record)
        return record
