from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from abis_e2e.config import doctor_report, load_config
from abis_e2e.details import ExecutionDetailsStore
from abis_e2e.errors import AbisE2EError
from abis_e2e.logging_utils import setup_logging

SUITE_MARKERS = {"sanity": "sanity", "e2e": "e2e", "all": None}
PROJECT_ROOT = Path(__file__).resolve().parents[1]


def _store() -> ExecutionDetailsStore:
    return ExecutionDetailsStore(load_config().details_path)


def _cmd_doctor(args: argparse.Namespace) -> int:
    del args
    report = doctor_report()
    print(json.dumps(report, indent=2, sort_keys=True))
    return 0 if not report["missing"] else 1


def _cmd_details_show(args: argparse.Namespace) -> int:
    del args
    details = _store().read()
    if details is None:
        return 1
    print(json.dumps(details, indent=2, ensure_ascii=False))
    return 0


def _cmd_details_reset(args: argparse.Namespace) -> int:
    del args
    store = _store()
    removed = store.reset()
    print(json.dumps({"path": str(store.path), "removed": removed}, sort_keys=True))
    return 0


def tests_dir(cwd: Path | None = None) -> Path | None:
    """The suite next to the package (source checkout), else one under the cwd."""
    for base in (PROJECT_ROOT, cwd or Path.cwd()):
        candidate = base / "tests"
        if (candidate / "sanity").is_dir():
            return candidate
    return None


def pytest_args(args: argparse.Namespace, artifact_dir: str, suite_dir: Path | None = None) -> list[str]:
    # without a known location pytest falls back to its testpaths setting
    out = [str(suite_dir)] if suite_dir else []
    marker = SUITE_MARKERS[args.suite]
    if marker:
        out += ["-m", marker]
    out += [
        "--browser",
        args.browser,
        "--output",
        artifact_dir,
        "--screenshot",
        "only-on-failure",
        "--video",
        "retain-on-failure",
        "--tracing",
        "retain-on-failure",
    ]
    if args.headed:
        out.append("--headed")
    return out + list(args.pytest_args)


def _cmd_run(args: argparse.Namespace) -> int:
    import pytest

    config = load_config()
    if args.suite == "sanity":
        config.require_live()
    return int(pytest.main(pytest_args(args, str(config.artifact_dir), tests_dir())))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="abis-e2e")
    parser.add_argument("--log-level", default=None)
    sub = parser.add_subparsers(dest="cmd", required=True)

    doctor = sub.add_parser("doctor", help="show resolved configuration")
    doctor.set_defaults(func=_cmd_doctor)

    details = sub.add_parser("details", help="inspect the execution details file")
    details_sub = details.add_subparsers(dest="details_cmd", required=True)
    show = details_sub.add_parser("show")
    show.set_defaults(func=_cmd_details_show)
    reset = details_sub.add_parser("reset")
    reset.set_defaults(func=_cmd_details_reset)

    run = sub.add_parser("run", help="run the browser suites through pytest")
    run.add_argument("--headed", action="store_true")
    run.add_argument("--browser", default="chromium", choices=["chromium", "firefox", "webkit"])
    run.add_argument("--suite", default="sanity", choices=sorted(SUITE_MARKERS))
    run.add_argument("pytest_args", nargs=argparse.REMAINDER)
    run.set_defaults(func=_cmd_run)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        setup_logging(args.log_level or load_config().log_level)
        return int(args.func(args))
    except AbisE2EError as exc:
        print(json.dumps({"error": exc.message, "code": exc.error_code}), file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
