from __future__ import annotations

import dataclasses
import random
import signal
import time
from pathlib import Path

import pytest

from abis_e2e.config import E2EConfig
from abis_e2e.details import ExecutionDetailsStore
from abis_e2e.errors import InteractionError, RunTimeoutError, WorkflowStateError
from abis_e2e.pages import LeadDetails, ProposalDetails, ServiceDetails
from abis_e2e.workflow import LeadProposalFlow, SanityWorkflow


def _config(tmp_path: Path) -> E2EConfig:
    return E2EConfig(
        base_url="https://crm.example.test/admin",
        user="qa@example.test",
        password="secret",
        details_path=tmp_path / "abis_execution_details.json",
        artifact_dir=tmp_path / "artifacts",
        action_timeout_ms=1000,
        navigation_timeout_ms=1000,
        expect_timeout_ms=1000,
        test_timeout_s=0,
        slow_mo_ms=0,
        state="Tamil Nadu",
        log_level="INFO",
    )


LEAD = LeadDetails(
    lead_id="315",
    name="Meera Iyer",
    email="meera.iyer@example.com",
    phone="9991234567",
    company="Iyer Textiles Pvt Ltd",
    address="12 Mount Road",
    city="Chennai",
    state="Tamil Nadu",
    zip="600002",
)


class _Fake:
    calls: list = []

    def __init__(self, page, config, store, rng) -> None:
        self.store = store

    def _call(self, *entry):
        type(self).calls.append(entry)


class FakeLogin(_Fake):
    def login(self) -> None:
        self._call("login")


class FakeLeads(_Fake):
    def create_lead(self) -> LeadDetails:
        self._call("create_lead")
        return LEAD

    def open_lead(self, name: str) -> str:
        self._call("open_lead", name)
        return "lead-modal-locator"


class FakeProposal(_Fake):
    def create_and_process(self, modal_selector: str) -> ProposalDetails:
        self._call("create_and_process", modal_selector)
        return ProposalDetails("PRO-000012", [{"name": "GST Filing", "status": "accepted"}])

    def create_and_accept(self, modal_selector: str) -> ProposalDetails:
        self._call("create_and_accept", modal_selector)
        return ProposalDetails("PRO-000013")


class FakeCustomer(_Fake):
    def convert_and_assign_admin(self, lead_name: str, lead_modal) -> tuple[str, str]:
        self._call("convert", lead_name, lead_modal)
        return "#1042", "  Kavya Rao \n"


class FakeService(_Fake):
    def create(self, proposal_number: str) -> ServiceDetails:
        self._call("service", proposal_number)
        return ServiceDetails("58", "GST Filing", "26-10-2026")


class FakeTask(_Fake):
    def create_payment_collection_task(self) -> None:
        self._call("task", self.store.get("service", "serviceNumber"))


class FailingTask(_Fake):
    def create_payment_collection_task(self) -> None:
        raise InteractionError("new-task", "New Task button not found", attempts=3)


class FakePrePayment(_Fake):
    def create_and_approve(self) -> str:
        self._call("prepayment")
        return "PP-4"


class FakeProforma(_Fake):
    def create_and_accept(self, client_id: str) -> None:
        self._call("proforma", client_id)
        self.store.update_section("proforma", proformaNumber="EST-000031")


class FakeInvoice(_Fake):
    def process(self) -> None:
        self._call("invoice")
        self.store.update_section("invoice", invoiceNumber="INV-000871")


class FakeSanity(SanityWorkflow):
    login_page = FakeLogin
    lead_page = FakeLeads
    proposal_page = FakeProposal
    customer_page = FakeCustomer
    service_page = FakeService
    task_page = FakeTask
    prepayment_page = FakePrePayment
    proforma_page = FakeProforma
    invoice_page = FakeInvoice


@pytest.fixture(autouse=True)
def _reset_calls():
    _Fake.calls = []
    yield
    _Fake.calls = []


def test_sanity_runs_steps_in_order_and_persists(tmp_path: Path) -> None:
    flow = FakeSanity(page=None, config=_config(tmp_path), rng=random.Random(0))

    result = flow.run()

    assert _Fake.calls == [
        ("login",),
        ("create_lead",),
        ("create_and_process", "#lead-modal"),
        ("open_lead", "Meera Iyer"),
        ("convert", "Meera Iyer", "lead-modal-locator"),
        ("service", "PRO-000012"),
        ("task", "58"),
        ("prepayment",),
        ("proforma", "1042"),
        ("invoice",),
    ]
    assert result["lead"]["zip"] == "600002"
    assert result["proposal"] == {
        "proposalNumber": "PRO-000012",
        "services": [{"name": "GST Filing", "status": "accepted"}],
    }
    assert result["company"] == {
        "clientId": "#1042",
        "company": "Iyer Textiles Pvt Ltd",
        "customerAdmin": "Kavya Rao",
    }
    assert result["service"] == {"serviceNumber": "58", "deadline": "26-10-2026", "prepaymentNumber": "PP-4"}
    assert result["proforma"] == {"proformaNumber": "EST-000031"}
    assert result["invoice"] == {"invoiceNumber": "INV-000871"}


def test_failure_keeps_what_was_already_recorded(tmp_path: Path) -> None:
    class Broken(FakeSanity):
        task_page = FailingTask

    config = _config(tmp_path)

    with pytest.raises(InteractionError):
        Broken(page=None, config=config).run()

    saved = ExecutionDetailsStore(config.details_path).read()
    assert saved["service"]["serviceNumber"] == "58"
    assert "prepaymentNumber" not in saved["service"]
    assert ("prepayment",) not in _Fake.calls


def test_proforma_client_id_requires_company_section(tmp_path: Path) -> None:
    config = _config(tmp_path)
    store = ExecutionDetailsStore(config.details_path)
    flow = FakeSanity(page=None, config=config, store=store)

    with pytest.raises(WorkflowStateError) as excinfo:
        flow.proforma_client_id()
    assert excinfo.value.details == {"section": "company", "key": "clientId"}

    store.write({"company": {"clientId": "#77 "}})
    assert flow.proforma_client_id() == "77"


def test_lead_proposal_flow_writes_its_own_file(tmp_path: Path) -> None:
    class FakeLeadProposal(LeadProposalFlow):
        login_page = FakeLogin
        lead_page = FakeLeads
        proposal_page = FakeProposal

    config = _config(tmp_path)

    record = FakeLeadProposal(page=None, config=config).run()

    assert record == {
        "name": "Meera Iyer",
        "email": "meera.iyer@example.com",
        "phone": "9991234567",
        "proposalNumber": "PRO-000013",
    }
    assert ExecutionDetailsStore(tmp_path / "lead_details.json").read() == record
    assert not config.details_path.exists()
    assert _Fake.calls == [("login",), ("create_lead",), ("create_and_accept", "#lead-modal")]


class StuckPage:
    def screenshot(self, path: str, full_page: bool = True) -> None:
        Path(path).write_bytes(b"png")

    def content(self) -> str:
        return "<html><body>Creating task...</body></html>"


class SlowTask(_Fake):
    def create_payment_collection_task(self) -> None:
        self._call("task")
        time.sleep(3)


@pytest.mark.skipif(not hasattr(signal, "SIGALRM"), reason="needs SIGALRM")
def test_expired_budget_captures_the_stuck_page(tmp_path: Path) -> None:
    class Stuck(FakeSanity):
        task_page = SlowTask

    config = dataclasses.replace(_config(tmp_path), test_timeout_s=1)

    with pytest.raises(RunTimeoutError, match="ABIS sanity exceeded 1s"):
        Stuck(page=StuckPage(), config=config).run()

    assert (config.artifact_dir / "sanity-timeout.png").read_bytes() == b"png"
    assert "Creating task" in (config.artifact_dir / "sanity-timeout.html").read_text(encoding="utf-8")
    assert ExecutionDetailsStore(config.details_path).get("service", "serviceNumber") == "58"
    assert ("prepayment",) not in _Fake.calls
