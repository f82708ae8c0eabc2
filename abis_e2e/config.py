from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

from abis_e2e.errors import ConfigError


def _env(key: str, default: str = "") -> str:
    return os.environ.get(key, default)


def _env_int(key: str, default: int) -> int:
    raw = _env(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} must be an integer, got {raw!r}", key=key) from exc


@dataclass(frozen=True)
class E2EConfig:
    base_url: str
    user: str
    password: str
    details_path: Path
    artifact_dir: Path
    action_timeout_ms: int
    navigation_timeout_ms: int
    expect_timeout_ms: int
    test_timeout_s: int
    slow_mo_ms: int
    state: str
    log_level: str

    def url(self, path: str = "") -> str:
        if not path:
            return self.base_url
        return f"{self.base_url}/{path.lstrip('/')}"

    def missing_live_settings(self) -> list[str]:
        missing = []
        if not self.base_url:
            missing.append("APP_BASE_URL")
        if not self.user:
            missing.append("E2E_USER")
        if not self.password:
            missing.append("E2E_PASS")
        return missing

    def require_live(self) -> "E2EConfig":
        missing = self.missing_live_settings()
        if missing:
            raise ConfigError(
                f"Missing required environment variables: {', '.join(missing)}",
                key=",".join(missing),
            )
        return self


def load_config(env_file: str | os.PathLike | None = None) -> E2EConfig:
    # Variables already exported in the shell win over the .env file.
    if env_file is None:
        env_file = find_dotenv(usecwd=True)
    load_dotenv(dotenv_path=env_file, override=False)
    ci = bool(_env("CI"))
    return E2EConfig(
        base_url=_env("APP_BASE_URL").strip().rstrip("/"),
        user=_env("E2E_USER"),
        password=_env("E2E_PASS"),
        details_path=Path(_env("ABIS_DETAILS_FILE", "abis_execution_details.json")),
        artifact_dir=Path(_env("ABIS_ARTIFACT_DIR", "output/playwright")),
        action_timeout_ms=_env_int("ABIS_ACTION_TIMEOUT_MS", 15000),
        navigation_timeout_ms=_env_int("ABIS_NAVIGATION_TIMEOUT_MS", 30000),
        expect_timeout_ms=_env_int("ABIS_EXPECT_TIMEOUT_MS", 10000),
        test_timeout_s=_env_int("ABIS_TEST_TIMEOUT_S", 300),
        slow_mo_ms=_env_int("ABIS_SLOW_MO_MS", 0 if ci else 100),
        state=_env("ABIS_LEAD_STATE", "Tamil Nadu"),
        log_level=_env("ABIS_LOG_LEVEL", "INFO").upper(),
    )


def _mask(value: str) -> str:
    if not value:
        return ""
    return f"{value[:2]}***"


def doctor_report() -> dict:
    config = load_config()
    return {
        "base_url": config.base_url,
        "user": _mask(config.user),
        "password_set": bool(config.password),
        "details_path": str(config.details_path),
        "artifact_dir": str(config.artifact_dir),
        "timeouts": {
            "action_ms": config.action_timeout_ms,
            "navigation_ms": config.navigation_timeout_ms,
            "expect_ms": config.expect_timeout_ms,
            "test_s": config.test_timeout_s,
        },
        "slow_mo_ms": config.slow_mo_ms,
        "missing": config.missing_live_settings(),
        "paths": {
            "details_exists": config.details_path.exists(),
            "artifact_dir_exists": config.artifact_dir.exists(),
        },
    }
