from __future__ import annotations

import pytest

from abis_e2e.config import E2EConfig, load_config
from abis_e2e.details import ExecutionDetailsStore
from abis_e2e.logging_utils import setup_logging


@pytest.fixture(scope="session")
def live_config() -> E2EConfig:
    config = load_config()
    missing = config.missing_live_settings()
    if missing:
        pytest.skip(f"live CRM not configured: {', '.join(missing)}")
    setup_logging(config.log_level)
    return config


@pytest.fixture(scope="session")
def base_url(live_config: E2EConfig) -> str:
    return live_config.base_url


@pytest.fixture(scope="session")
def browser_type_launch_args(browser_type_launch_args, live_config: E2EConfig):
    return {**browser_type_launch_args, "slow_mo": live_config.slow_mo_ms}


@pytest.fixture(scope="session")
def browser_context_args(browser_context_args):
    return {**browser_context_args, "viewport": {"width": 1440, "height": 900}}


@pytest.fixture()
def live_page(page, live_config: E2EConfig):
    page.set_default_timeout(live_config.action_timeout_ms)
    page.set_default_navigation_timeout(live_config.navigation_timeout_ms)
    return page


@pytest.fixture()
def live_store(live_config: E2EConfig) -> ExecutionDetailsStore:
    return ExecutionDetailsStore(live_config.details_path)
