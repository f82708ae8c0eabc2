"""
Wall-clock budget for one workflow run.

The sanity path has to finish inside ``ABIS_TEST_TIMEOUT_S``. When the
budget runs out the current page is captured (screenshot + HTML) before
``RunTimeoutError`` unwinds the step that was running, so the report shows
where the run got stuck.
"""
from __future__ import annotations

import logging
import signal
import threading
import time
from typing import Callable

from abis_e2e.errors import RunTimeoutError

logger = logging.getLogger("abis_e2e.timeout")


class RunBudget:
    def __init__(self, seconds: int, label: str = "workflow", on_expire: Callable[[], None] | None = None):
        self.seconds = seconds
        self.label = label
        self.on_expire = on_expire
        self.started: float | None = None
        self._old_handler = None
        self._armed = False

    @property
    def enforced(self) -> bool:
        return (
            self.seconds > 0
            and hasattr(signal, "SIGALRM")
            and threading.current_thread() is threading.main_thread()
        )

    def elapsed(self) -> float:
        if self.started is None:
            return 0.0
        return time.monotonic() - self.started

    def remaining(self) -> float | None:
        if self.seconds <= 0:
            return None
        return max(0.0, self.seconds - self.elapsed())

    def _expired(self, signum, frame) -> None:
        logger.error("%s exceeded its %ds budget", self.label, self.seconds)
        if self.on_expire is not None:
            self.on_expire()
        raise RunTimeoutError(self.label, self.seconds)

    def __enter__(self) -> "RunBudget":
        self.started = time.monotonic()
        if self.enforced:
            self._old_handler = signal.signal(signal.SIGALRM, self._expired)
            signal.setitimer(signal.ITIMER_REAL, self.seconds)
            self._armed = True
        elif self.seconds > 0:
            logger.debug("%s budget of %ds not enforced here", self.label, self.seconds)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._armed:
            signal.setitimer(signal.ITIMER_REAL, 0)
            signal.signal(signal.SIGALRM, self._old_handler)
            self._armed = False
        logger.info("%s took %.1fs", self.label, self.elapsed())
