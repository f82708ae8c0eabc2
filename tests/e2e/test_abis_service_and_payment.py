from __future__ import annotations

import importlib.util

import pytest

from abis_e2e.generators import days_from_today

pytestmark = [
    pytest.mark.skipif(
        importlib.util.find_spec("playwright") is None,
        reason="playwright not installed",
    ),
    pytest.mark.e2e,
]


def test_accepted_proposal_matched_by_data_text(page, crm_server, stub_config, stub_store):
    from playwright.sync_api import expect

    from abis_e2e.pages import ServicePage

    page.goto(f"{crm_server}/clients/client/7?open=1")

    ServicePage(page, stub_config, stub_store)._select_accepted_proposal("PRO-001156")

    expect(page.locator("select#proposal_id")).to_have_value("12")


def test_unknown_proposal_falls_back_to_first_real_option(page, crm_server, stub_config, stub_store):
    from playwright.sync_api import expect

    from abis_e2e.pages import ServicePage

    page.goto(f"{crm_server}/clients/client/7?open=1")

    ServicePage(page, stub_config, stub_store)._select_accepted_proposal("PRO-009999")

    expect(page.locator("select#proposal_id")).to_have_value("11")


def test_service_created_from_accepted_proposal(page, crm_app, crm_server, stub_config, stub_store, seeded_rng):
    from abis_e2e.pages import ServicePage

    page.goto(f"{crm_server}/clients/client/7")

    details = ServicePage(page, stub_config, stub_store, seeded_rng).create("PRO-001156")

    saved = crm_app.config["PROJECTS"][-1]
    assert saved["proposal_id"] == "12"
    assert saved["itemable_id"] in ("GST Filing", "Audit")
    assert details.service_number == str(saved["id"])
    assert details.service_name == saved["itemable_id"]
    assert details.deadline == days_from_today(7)
    assert details.to_record() == {"serviceNumber": str(saved["id"]), "deadline": days_from_today(7)}


def test_payment_approval_records_payment_id(page, crm_server, stub_config, stub_store):
    from playwright.sync_api import expect

    from abis_e2e.pages import InvoicePage

    stub_store.write({"invoice": {"invoiceNumber": "INV-000871"}})
    page.goto(f"{crm_server}/payments/payment/91")

    payment_id = InvoicePage(page, stub_config, stub_store)._approve_payment()

    assert payment_id == "91"
    expect(page.locator("#status")).to_have_text("approved")
    assert stub_store.read() == {
        "invoice": {"invoiceNumber": "INV-000871"},
        "payment": {"paymentId": "91"},
    }
