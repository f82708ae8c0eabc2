from __future__ import annotations

from pathlib import Path

import pytest
from playwright.sync_api import Error as PlaywrightError

from abis_e2e import resilience
from abis_e2e.errors import InteractionError


class _Expectation:
    def to_be_visible(self, timeout=None) -> None:
        return None

    def to_have_value(self, value, timeout=None) -> None:
        return None


class FakePage:
    def __init__(self) -> None:
        self.waits: list[int] = []
        self.handlers: dict[str, object] = {}

    def wait_for_timeout(self, ms: int) -> None:
        self.waits.append(ms)

    def screenshot(self, path: str, full_page: bool = True) -> None:
        Path(path).write_bytes(b"\x89PNG")

    def content(self) -> str:
        return "<html><body>stub</body></html>"

    def once(self, event: str, handler) -> None:
        self.handlers[event] = handler


class FakeLocator:
    def __init__(self, matches: int = 1, failures: int = 0, visible: bool = True) -> None:
        self.matches = matches
        self.failures = failures
        self.visible = visible
        self.clicks = 0
        self.values: list[str] = []

    def count(self) -> int:
        return self.matches

    @property
    def first(self) -> "FakeLocator":
        return self

    def is_visible(self) -> bool:
        return self.visible

    def click(self) -> None:
        self.clicks += 1
        if self.clicks <= self.failures:
            raise PlaywrightError("element is not attached to the DOM")

    def fill(self, value: str) -> None:
        self.values.append(value)


class FakeDialog:
    message = "Are you sure?"

    def __init__(self) -> None:
        self.accepted = False

    def accept(self) -> None:
        self.accepted = True


@pytest.fixture()
def no_expect(monkeypatch):
    monkeypatch.setattr(resilience, "expect", lambda locator: _Expectation())


def test_resilient_click_retries_then_succeeds(no_expect, tmp_path: Path) -> None:
    page = FakePage()
    diag = resilience.Diagnostics(page, tmp_path)
    locator = FakeLocator(failures=2)

    resilience.resilient_click(locator, diag, "save", retries=3, wait_ms=10)

    assert locator.clicks == 3
    assert page.waits == [10, 10]
    assert not list(tmp_path.iterdir())


def test_resilient_click_gives_up_with_artifacts(no_expect, tmp_path: Path) -> None:
    page = FakePage()
    diag = resilience.Diagnostics(page, tmp_path)
    locator = FakeLocator(failures=10)

    with pytest.raises(InteractionError) as excinfo:
        resilience.resilient_click(locator, diag, "save", retries=3, wait_ms=10)

    assert excinfo.value.label == "save"
    assert excinfo.value.attempts == 3
    assert "Failed to click save" in excinfo.value.message
    assert isinstance(excinfo.value.__cause__, PlaywrightError)
    assert (tmp_path / "click-fail-save-2.png").exists()
    assert (tmp_path / "click-fail-save-2.html").read_text(encoding="utf-8").startswith("<html>")


def test_resilient_fill_passes_value(no_expect, tmp_path: Path) -> None:
    locator = FakeLocator()

    resilience.resilient_fill(locator, "Meera Iyer", resilience.Diagnostics(FakePage(), tmp_path), "lead-name")

    assert locator.values == ["Meera Iyer"]


def test_failed_assertion_is_retried(monkeypatch, tmp_path: Path) -> None:
    calls = {"n": 0}

    class _Flaky(_Expectation):
        def to_be_visible(self, timeout=None) -> None:
            calls["n"] += 1
            if calls["n"] < 3:
                raise AssertionError("not visible yet")

    monkeypatch.setattr(resilience, "expect", lambda locator: _Flaky())
    page = FakePage()

    resilience.resilient_expect_visible(FakeLocator(), resilience.Diagnostics(page, tmp_path), "dashboard", wait_ms=5)

    assert calls["n"] == 3
    assert page.waits == [5, 5]


def test_poll_stops_on_first_success() -> None:
    page = FakePage()
    answers = iter([False, False, True, True])

    assert resilience.poll(lambda: next(answers), page, attempts=5, interval_ms=50)
    assert page.waits == [50, 50]

    assert not resilience.poll(lambda: False, page, attempts=2, interval_ms=7)
    assert page.waits[-2:] == [7, 7]


def test_first_present_and_is_shown() -> None:
    empty, hidden, shown = FakeLocator(matches=0), FakeLocator(visible=False), FakeLocator()

    assert resilience.first_present(empty, hidden, shown) is hidden
    assert resilience.first_present(empty, empty) is empty
    assert not resilience.is_shown(empty)
    assert not resilience.is_shown(hidden)
    assert resilience.is_shown(shown)


def test_is_shown_swallows_detached_elements() -> None:
    class _Detached(FakeLocator):
        def count(self) -> int:
            raise PlaywrightError("Target page, context or browser has been closed")

    assert resilience.is_shown(_Detached()) is False


def test_click_first_visible_skips_hidden_duplicates() -> None:
    class _Group:
        def __init__(self, items) -> None:
            self.items = items

        def count(self) -> int:
            return len(self.items)

        def nth(self, index: int):
            return self.items[index]

    class _Item(FakeLocator):
        def is_enabled(self) -> bool:
            return True

    mobile, desktop = _Item(visible=False), _Item()

    assert resilience.click_first_visible(_Group([mobile, desktop]))
    assert (mobile.clicks, desktop.clicks) == (0, 1)
    assert not resilience.click_first_visible(_Group([_Item(visible=False)]))


def test_has_box() -> None:
    class _Handle:
        def __init__(self, box) -> None:
            self.box = box

        def bounding_box(self):
            return self.box

    assert resilience.has_box(_Handle({"x": 0, "y": 0, "width": 40, "height": 20}))
    assert not resilience.has_box(_Handle({"x": 0, "y": 0, "width": 0, "height": 20}))
    assert not resilience.has_box(_Handle(None))


def test_accept_next_dialog_reports_message() -> None:
    page = FakePage()
    seen = resilience.accept_next_dialog(page)
    dialog = FakeDialog()

    page.handlers["dialog"](dialog)

    assert dialog.accepted
    assert seen == {"handled": True, "message": "Are you sure?"}


def test_screenshot_failure_is_reported_not_raised(tmp_path: Path) -> None:
    class _ClosedPage(FakePage):
        def screenshot(self, path: str, full_page: bool = True) -> None:
            raise PlaywrightError("Target page, context or browser has been closed")

        def content(self) -> str:
            raise PlaywrightError("Target page, context or browser has been closed")

    diag = resilience.Diagnostics(_ClosedPage(), tmp_path / "out")

    assert diag.screenshot("late") is False
    assert diag.dump_html("late") is None
    assert diag.dump_html("given", "<p>kept</p>") == tmp_path / "out" / "given.html"


def test_zero_retries_is_rejected(no_expect, tmp_path: Path) -> None:
    locator = FakeLocator()

    with pytest.raises(ValueError, match="at least 1"):
        resilience.resilient_click(locator, resilience.Diagnostics(FakePage(), tmp_path), "save", retries=0)

    assert locator.clicks == 0


def test_unwritable_artifact_dir_keeps_interaction_error(no_expect, tmp_path: Path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("", encoding="utf-8")
    diag = resilience.Diagnostics(FakePage(), blocker / "artifacts")

    with pytest.raises(InteractionError) as excinfo:
        resilience.resilient_click(FakeLocator(failures=5), diag, "save", retries=2, wait_ms=1)

    assert excinfo.value.attempts == 2
    assert diag.screenshot("again") is False
    assert diag.dump_html("again", "<p>x</p>") is None
