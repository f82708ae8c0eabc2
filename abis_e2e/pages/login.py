from __future__ import annotations

from abis_e2e.pages.base import BasePage, traced
from abis_e2e.resilience import resilient_click, resilient_expect_visible, resilient_fill

DASHBOARD_MARKER = "Invoices Awaiting Payment"


class LoginPage(BasePage):
    def goto(self) -> None:
        self.step("Login page navigation")
        self.open()

    @traced
    def login(self, user: str | None = None, password: str | None = None) -> None:
        user = user if user is not None else self.config.user
        password = password if password is not None else self.config.password

        self.goto()
        self.step("Filling login credentials")
        resilient_fill(self.page.locator('input[name="email"]'), user, self.diag, "login-email")
        self.step("Filled email")
        resilient_fill(self.page.locator('input[name="password"]'), password, self.diag, "login-password")
        self.step("Filled password")
        resilient_click(self.page.locator('button:has-text("Login")'), self.diag, "login-button")
        self.step("Clicked login button")
        resilient_expect_visible(self.page.locator(f"text={DASHBOARD_MARKER}"), self.diag, "login-success")
        self.step("Login success confirmed")
