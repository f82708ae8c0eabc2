from __future__ import annotations

import importlib.util

import pytest

pytestmark = [
    pytest.mark.skipif(
        importlib.util.find_spec("playwright") is None,
        reason="playwright not installed",
    ),
    pytest.mark.e2e,
]


def test_login_reaches_dashboard(page, stub_config, stub_store):
    from abis_e2e.pages import LoginPage

    LoginPage(page, stub_config, stub_store).login()

    assert page.get_by_text("Invoices Awaiting Payment").is_visible()


def test_login_with_wrong_password_fails_at_dashboard_check(page, stub_config, stub_store):
    from abis_e2e.errors import InteractionError
    from abis_e2e.pages import LoginPage

    login = LoginPage(page, stub_config, stub_store)
    with pytest.raises(InteractionError) as excinfo:
        login.login(password="wrong")

    assert excinfo.value.label == "login-success"
    assert list(stub_config.artifact_dir.glob("expect-visible-fail-login-success-*.png"))


def test_create_lead_then_reopen_it_from_search(page, stub_config, stub_store, seeded_rng):
    from abis_e2e.generators import LeadData
    from abis_e2e.pages import LeadPage, LoginPage

    LoginPage(page, stub_config, stub_store).login()
    leads = LeadPage(page, stub_config, stub_store, seeded_rng)
    data = LeadData(
        name="Meera Iyer",
        email="meera.iyer@example.com",
        phone="9991234567",
        company="Iyer Textiles Pvt Ltd",
        address="12 Mount Road",
        city="Chennai",
        zip="600002",
    )

    lead = leads.create_lead(data)

    assert lead.lead_id.isdigit()
    assert lead.state == "Tamil Nadu"
    assert lead.to_record()["zip"] == "600002"
    assert "company" not in lead.to_record()

    modal = leads.open_lead("Meera Iyer")
    assert modal.locator("h4").first.inner_text() == "Meera Iyer"
    assert f"/leads/{lead.lead_id}" in page.url


def test_open_lead_without_match_times_out(page, stub_config, stub_store):
    from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

    from abis_e2e.pages import LeadPage, LoginPage

    LoginPage(page, stub_config, stub_store).login()
    page.set_default_timeout(2000)

    with pytest.raises((AssertionError, PlaywrightTimeoutError)):
        LeadPage(page, stub_config, stub_store).open_lead("Nobody Matches This Name")
