"""
JSON scratch document shared between workflow steps.

Each step writes the values it produced (numbers, dates, ids) into its own
section and later steps read them back. There is no locking or history:
the last write wins and the file only lives for one run.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger("abis_e2e.details")

DEFAULT_DETAILS_FILE = "abis_execution_details.json"
SECTIONS = ("lead", "proposal", "company", "service", "proforma", "invoice", "payment")


class ExecutionDetailsStore:
    def __init__(self, path: str | Path = DEFAULT_DETAILS_FILE):
        self.path = Path(path)

    def write(self, details: dict[str, Any]) -> None:
        if self.path.parent and not self.path.parent.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(details, indent=2, ensure_ascii=False), encoding="utf-8")

    def read(self) -> dict[str, Any] | None:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            logger.error("Error reading %s: file does not exist", self.path)
            return None
        except (OSError, json.JSONDecodeError) as exc:
            logger.error("Error reading %s: %s", self.path, exc)
            return None
        if not isinstance(data, dict):
            logger.error("Error reading %s: top level is %s, expected object", self.path, type(data).__name__)
            return None
        return data

    def update_section(self, section: str, **values: Any) -> dict[str, Any]:
        if section not in SECTIONS:
            logger.warning("Writing unknown details section %r to %s", section, self.path)
        details = self.read() if self.path.exists() else None
        details = details or {}
        current = details.get(section)
        if not isinstance(current, dict):
            current = {}
        current.update(values)
        details[section] = current
        self.write(details)
        return details

    def get(self, section: str, key: str, default: Any = "") -> Any:
        details = self.read() if self.path.exists() else None
        if not details:
            return default
        current = details.get(section)
        if not isinstance(current, dict):
            return default
        value = current.get(key)
        return default if value is None else value

    def reset(self) -> bool:
        if self.path.exists():
            self.path.unlink()
            return True
        return False
