"""Command line entry point for running acceptance suites."""

from __future__ import annotations

import argparse
import importlib
import logging
import sys
import uuid
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from acceptance.dsl.compiler import load_suite, register_suite
from acceptance.registry import ScenarioRegistry, default_registry
from acceptance.runner import SuiteRunner
from driver.config import RunConfig, load_config
from driver.structured_logging import StructuredLogger, prepare_log_paths

log = logging.getLogger(__name__)

EXIT_USAGE = 2


def _common_options(*, suppress: bool) -> argparse.ArgumentParser:
    # Subcommand copies default to SUPPRESS so a value given before the subcommand survives
    extra = {"default": argparse.SUPPRESS} if suppress else {}
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", type=Path, help="TOML file with an [acceptance] table", **extra)
    common.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging", **extra)
    return common


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="acceptance",
        description="Run declarative browser acceptance suites",
        parents=[_common_options(suppress=False)],
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    subcommand_options = _common_options(suppress=True)

    run_parser = subparsers.add_parser(
        "run",
        parents=[subcommand_options],
        help="Run scenario groups and report the outcome",
    )
    _add_suite_arguments(run_parser)
    run_parser.add_argument("--base-url", help="Override the base URL of every suite")
    run_parser.add_argument("--parallel", action="store_true", default=None, help="Run groups concurrently")
    run_parser.add_argument("--headful", action="store_true", help="Show the browser window")
    run_parser.add_argument(
        "--browser",
        choices=["chromium", "firefox", "webkit"],
        help="Browser engine to launch",
    )
    run_parser.add_argument("--report", type=Path, help="Write the JSON report to this path")

    list_parser = subparsers.add_parser(
        "list",
        parents=[subcommand_options],
        help="List scenario groups and cases without running them",
    )
    _add_suite_arguments(list_parser)
    return parser


def _add_suite_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("suites", nargs="*", type=Path, help="Suite files (.json or .toml)")
    parser.add_argument(
        "--module",
        "-m",
        action="append",
        default=[],
        help="Python module defining register(registry), or registering on the default registry when imported",
    )


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def collect_groups(
    args: argparse.Namespace,
    config: RunConfig,
    registry: ScenarioRegistry,
    *,
    shots_dir: Optional[Path] = None,
) -> ScenarioRegistry:
    for module_name in args.module:
        module = importlib.import_module(module_name)
        register = getattr(module, "register", None)
        if callable(register):
            register(registry)
    for path in args.suites:
        suite = load_suite(path)
        register_suite(
            suite,
            registry,
            base_url=config.base_url,
            base_url_override=getattr(args, "base_url", None),
            shots_dir=shots_dir,
        )
    return registry


def _list(registry: ScenarioRegistry) -> int:
    for group in registry:
        print(group.name)
        for case in group.cases:
            print(f"  - {case.description}")
    print(f"{len(registry)} group(s), {registry.case_count()} case(s)")
    return 0


def _run(args: argparse.Namespace, config: RunConfig, registry: ScenarioRegistry) -> int:
    run_id = f"run_{datetime.now().strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:6]}"
    paths = prepare_log_paths(run_id, config.log_root / run_id)
    try:
        collect_groups(args, config, registry, shots_dir=paths.shots)
    except (OSError, ValueError, ImportError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_USAGE

    if not len(registry):
        print("error: no scenario groups to run", file=sys.stderr)
        return EXIT_USAGE

    events = StructuredLogger(run_id, paths)
    try:
        runner = SuiteRunner(config, events=events, shots_dir=paths.shots)
        report = runner.run(registry.groups(), run_id=run_id)
    finally:
        events.close()

    report_path = args.report or paths.base / "report.json"
    report.write_json(report_path)
    print(report.render_text())
    print(f"Report: {report_path}")
    return report.exit_code


def main(argv: Optional[List[str]] = None, *, registry: Optional[ScenarioRegistry] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        config = load_config(args.config)
    except (OSError, ValueError) as exc:
        parser.error(f"invalid configuration: {exc}")

    target = registry if registry is not None else default_registry

    if args.command == "list":
        try:
            collect_groups(args, config, target)
        except (OSError, ValueError, ImportError) as exc:
            print(f"error: {exc}", file=sys.stderr)
            return EXIT_USAGE
        return _list(target)

    config = config.with_overrides(
        base_url=args.base_url,
        parallel_groups=args.parallel,
        headless=False if args.headful else None,
        browser=args.browser,
    )
    return _run(args, config, target)
