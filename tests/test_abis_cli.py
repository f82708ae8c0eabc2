from __future__ import annotations

import json
from pathlib import Path

import pytest

from abis_e2e import cli


@pytest.fixture()
def details_file(monkeypatch, tmp_path: Path) -> Path:
    path = tmp_path / "details.json"
    monkeypatch.setenv("ABIS_DETAILS_FILE", str(path))
    monkeypatch.setattr("abis_e2e.config.load_dotenv", lambda **kwargs: False)
    return path


def test_pytest_args_for_sanity_suite() -> None:
    args = cli.build_parser().parse_args(["run", "--headed", "--browser", "firefox", "tests/sanity", "-k", "invoice"])

    out = cli.pytest_args(args, "output/playwright", Path("/srv/abis/tests"))

    assert out[:3] == [str(Path("/srv/abis/tests")), "-m", "sanity"]
    assert out[out.index("--browser") + 1] == "firefox"
    assert out[out.index("--output") + 1] == "output/playwright"
    assert "--headed" in out
    assert out[-3:] == ["tests/sanity", "-k", "invoice"]


def test_pytest_args_all_suite_has_no_marker() -> None:
    args = cli.build_parser().parse_args(["run", "--suite", "all"])

    out = cli.pytest_args(args, "artifacts")

    assert "-m" not in out
    assert out[0] == "--browser"
    assert "--headed" not in out
    assert out[out.index("--browser") + 1] == "chromium"


def test_details_show_and_reset(details_file: Path, capsys) -> None:
    details_file.write_text(json.dumps({"company": {"clientId": "#12"}}), encoding="utf-8")

    assert cli.main(["details", "show"]) == 0
    assert json.loads(capsys.readouterr().out) == {"company": {"clientId": "#12"}}

    assert cli.main(["details", "reset"]) == 0
    assert json.loads(capsys.readouterr().out) == {"path": str(details_file), "removed": True}
    assert not details_file.exists()

    assert cli.main(["details", "show"]) == 1


def test_doctor_flags_missing_settings(details_file: Path, monkeypatch, capsys) -> None:
    for key in ("APP_BASE_URL", "E2E_USER", "E2E_PASS"):
        monkeypatch.delenv(key, raising=False)

    assert cli.main(["doctor"]) == 1
    report = json.loads(capsys.readouterr().out)
    assert report["missing"] == ["APP_BASE_URL", "E2E_USER", "E2E_PASS"]
    assert report["details_path"] == str(details_file)


def test_run_sanity_without_credentials_is_config_error(details_file: Path, monkeypatch, capsys) -> None:
    for key in ("APP_BASE_URL", "E2E_USER", "E2E_PASS"):
        monkeypatch.delenv(key, raising=False)

    assert cli.main(["run", "--suite", "sanity"]) == 2
    err = json.loads(capsys.readouterr().err)
    assert err["code"] == "config_error"
    assert "APP_BASE_URL" in err["error"]


def test_subcommand_is_required() -> None:
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([])


def test_tests_dir_prefers_checkout_then_cwd(monkeypatch, tmp_path: Path) -> None:
    checkout = tmp_path / "checkout"
    (checkout / "tests" / "sanity").mkdir(parents=True)
    elsewhere = tmp_path / "elsewhere"
    (elsewhere / "tests" / "sanity").mkdir(parents=True)

    monkeypatch.setattr(cli, "PROJECT_ROOT", checkout)
    assert cli.tests_dir(cwd=elsewhere) == checkout / "tests"

    monkeypatch.setattr(cli, "PROJECT_ROOT", tmp_path / "site-packages")
    assert cli.tests_dir(cwd=elsewhere) == elsewhere / "tests"
    assert cli.tests_dir(cwd=tmp_path) is None


def test_run_passes_resolved_suite_to_pytest(details_file: Path, monkeypatch, tmp_path: Path) -> None:
    import pytest as pytest_mod

    checkout = tmp_path / "checkout"
    (checkout / "tests" / "sanity").mkdir(parents=True)
    monkeypatch.setattr(cli, "PROJECT_ROOT", checkout)
    seen = {}

    def fake_main(argv):
        seen["argv"] = argv
        return 0

    monkeypatch.setattr(pytest_mod, "main", fake_main)

    assert cli.main(["run", "--suite", "e2e"]) == 0
    assert seen["argv"][:3] == [str(checkout / "tests"), "-m", "e2e"]
