"""
Error types raised by the ABIS end-to-end suite.

Every failure that should stop a workflow surfaces as an ``AbisE2EError``
subclass so the test report names the UI element or data that was missing.
"""
from __future__ import annotations

from datetime import datetime, timezone


class AbisE2EError(Exception):
    """Base exception for controlled suite failures."""

    def __init__(self, message: str, error_code: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()


class ConfigError(AbisE2EError):
    def __init__(self, message: str, key: str | None = None):
        super().__init__(message, "config_error", {"key": key})


class ElementNotFoundError(AbisE2EError):
    def __init__(self, label: str, message: str | None = None):
        super().__init__(message or f"{label} not found", "not_found", {"label": label})
        self.label = label


class InteractionError(AbisE2EError):
    def __init__(self, label: str, message: str, attempts: int = 1):
        super().__init__(
            message,
            "interaction_failed",
            {"label": label, "attempts": attempts},
        )
        self.label = label
        self.attempts = attempts


class ExtractionError(AbisE2EError):
    def __init__(self, field: str, message: str | None = None):
        super().__init__(message or f"Could not extract {field}", "extraction_failed", {"field": field})
        self.field = field


class WorkflowStateError(AbisE2EError):
    def __init__(self, message: str, section: str | None = None, key: str | None = None):
        super().__init__(message, "workflow_state", {"section": section, "key": key})


class RunTimeoutError(AbisE2EError):
    def __init__(self, label: str, seconds: int):
        super().__init__(f"{label} exceeded {seconds}s", "run_timeout", {"label": label, "seconds": seconds})
        self.label = label
        self.seconds = seconds
