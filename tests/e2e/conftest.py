from __future__ import annotations

import random
from pathlib import Path
from threading import Thread

import pytest
from werkzeug.serving import make_server

from abis_e2e.config import E2EConfig
from abis_e2e.details import ExecutionDetailsStore
from stubs.crm_stub import STUB_PASS, STUB_USER, create_app


@pytest.fixture(scope="session")
def crm_app():
    app = create_app()
    app.config.update(TESTING=True)
    return app


@pytest.fixture(scope="session")
def crm_server(crm_app):
    server = make_server("127.0.0.1", 0, crm_app)
    host, port = server.server_address
    thread = Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://{host}:{port}"
    finally:
        server.shutdown()
        thread.join(timeout=5)


@pytest.fixture(scope="session")
def base_url(crm_server: str) -> str:
    return crm_server


@pytest.fixture()
def stub_config(crm_server: str, tmp_path: Path) -> E2EConfig:
    return E2EConfig(
        base_url=crm_server,
        user=STUB_USER,
        password=STUB_PASS,
        details_path=tmp_path / "abis_execution_details.json",
        artifact_dir=tmp_path / "artifacts",
        action_timeout_ms=5000,
        navigation_timeout_ms=10000,
        expect_timeout_ms=5000,
        test_timeout_s=0,
        slow_mo_ms=0,
        state="Tamil Nadu",
        log_level="INFO",
    )


@pytest.fixture()
def stub_store(stub_config: E2EConfig) -> ExecutionDetailsStore:
    return ExecutionDetailsStore(stub_config.details_path)


@pytest.fixture()
def seeded_rng() -> random.Random:
    return random.Random(1234)
