from __future__ import annotations

import logging
import random
from functools import wraps

from playwright.sync_api import Page

from abis_e2e.config import E2EConfig
from abis_e2e.details import ExecutionDetailsStore
from abis_e2e.logging_utils import step
from abis_e2e.resilience import Diagnostics


def traced(func):
    """Logs ENTER/EXIT around a page operation and re-raises failures."""

    @wraps(func)
    def wrapper(self, *args, **kwargs):
        name = func.__name__
        self.log.info("→ ENTER: %s()", name)
        try:
            result = func(self, *args, **kwargs)
        except Exception as exc:
            self.log.error("← EXIT: %s() - Failed: %s", name, exc)
            raise
        self.log.info("← EXIT: %s() - Success", name)
        return result

    return wrapper


class BasePage:
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
        self.diag = Diagnostics(page, config.artifact_dir)
        self.log = logging.getLogger(f"abis_e2e.pages.{type(self).__name__}")

    def step(self, message: str, *args) -> None:
        step(self.log, message, *args)

    def open(self, path: str = "") -> None:
        self.page.goto(self.config.url(path))

    def wait(self, ms: int) -> None:
        self.page.wait_for_timeout(ms)
