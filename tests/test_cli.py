import json
from pathlib import Path

import pytest

from acceptance import cli
from acceptance.registry import ScenarioRegistry
from acceptance.runner import SuiteRunner
from driver.session import BrowserSession

from conftest import FakePage

SUITES = Path(__file__).resolve().parents[1] / "suites"


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "acceptance.toml"
    path.write_text(
        "\n".join(
            [
                "[acceptance]",
                'base_url = "http://localhost:62449"',
                "expect_timeout_ms = 50",
                "settle_timeout_ms = 200",
                "action_timeout_ms = 200",
                "case_timeout_ms = 2000",
                f'log_root = "{(tmp_path / "runs").as_posix()}"',
            ]
        ),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def fake_runner(monkeypatch):
    """Route the CLI's runner onto fake pages instead of a real browser."""

    class FakeBrowserRunner(SuiteRunner):
        def __init__(self, config, **kwargs):
            kwargs["session_factory"] = lambda group: BrowserSession(config, page=FakePage())
            super().__init__(config, **kwargs)

    monkeypatch.setattr(cli, "SuiteRunner", FakeBrowserRunner)
    return FakeBrowserRunner


def test_parser_run_options():
    args = cli.build_parser().parse_args(
        ["run", "a.json", "b.toml", "--base-url", "http://x", "--parallel", "--browser", "webkit"]
    )

    assert args.command == "run"
    assert args.suites == [Path("a.json"), Path("b.toml")]
    assert args.base_url == "http://x"
    assert args.parallel is True
    assert args.browser == "webkit"
    assert args.module == []


def test_parser_leaves_parallel_unset_by_default():
    args = cli.build_parser().parse_args(["run", "a.json"])

    assert args.parallel is None
    assert args.headful is False


@pytest.mark.parametrize(
    "argv",
    [
        ["--config", "a.toml", "-v", "run", "x.json"],
        ["run", "x.json", "--config", "a.toml", "--verbose"],
    ],
)
def test_common_options_accepted_on_either_side_of_the_subcommand(argv):
    args = cli.build_parser().parse_args(argv)

    assert args.config == Path("a.toml")
    assert args.verbose is True


def test_common_options_default_when_absent():
    args = cli.build_parser().parse_args(["list", "x.json"])

    assert args.config is None
    assert args.verbose is False


def test_list_prints_groups_and_cases(config_file, capsys):
    code = cli.main(
        ["--config", str(config_file), "list", str(SUITES / "tag_management.json")],
        registry=ScenarioRegistry(),
    )

    out = capsys.readouterr().out
    assert code == 0
    assert "トップページ\n" in out
    assert '  - should contain "タグ一覧"' in out
    assert "2 group(s), 4 case(s)" in out


def test_unreadable_suite_is_a_usage_error(config_file, tmp_path, capsys):
    broken = tmp_path / "broken.json"
    broken.write_text('{"groups": [{"name": "g", "cases": [{"it": "x", "steps": [{"type": "hover"}]}]}]}')

    code = cli.main(["--config", str(config_file), "run", str(broken)], registry=ScenarioRegistry())

    assert code == cli.EXIT_USAGE
    assert "error:" in capsys.readouterr().err


def test_missing_suite_file_is_a_usage_error(config_file, tmp_path):
    code = cli.main(
        ["--config", str(config_file), "list", str(tmp_path / "nope.json")],
        registry=ScenarioRegistry(),
    )

    assert code == cli.EXIT_USAGE


def test_run_without_groups_is_a_usage_error(config_file):
    assert cli.main(["--config", str(config_file), "run"], registry=ScenarioRegistry()) == cli.EXIT_USAGE


def test_invalid_config_exits_through_parser(tmp_path):
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--config", str(tmp_path / "missing.toml"), "list"], registry=ScenarioRegistry())

    assert excinfo.value.code == 2


def test_run_passing_suite_writes_report(config_file, fake_runner, tmp_path, capsys):
    report_path = tmp_path / "report.json"

    code = cli.main(
        ["--config", str(config_file), "run", str(SUITES / "tag_management.json"), "--report", str(report_path)],
        registry=ScenarioRegistry(),
    )

    assert code == 0
    data = json.loads(report_path.read_text(encoding="utf-8"))
    assert data["success"] is True
    assert data["total"] == 4
    out = capsys.readouterr().out
    assert "Total: 4, Passed: 4, Failed: 0" in out

    run_dirs = list((tmp_path / "runs").iterdir())
    assert len(run_dirs) == 1
    events = (run_dirs[0] / "events.jsonl").read_text(encoding="utf-8").splitlines()
    assert len(events) == 4


def test_run_failing_suite_exits_one(config_file, fake_runner, tmp_path, capsys):
    suite = tmp_path / "failing.json"
    suite.write_text(
        json.dumps(
            {
                "base_url": "http://localhost:62449",
                "groups": [
                    {
                        "name": "トップページ",
                        "before_all": [{"type": "navigate", "url": "/"}],
                        "cases": [
                            {"it": "has the tag list", "steps": [{"type": "expect_text", "text": "タグ一覧"}]},
                            {"it": "has a missing heading", "steps": [{"type": "expect_text", "text": "ユーザー一覧"}]},
                        ],
                    }
                ],
            },
            ensure_ascii=False,
        ),
        encoding="utf-8",
    )

    code = cli.main(["--config", str(config_file), "run", str(suite), "--parallel"], registry=ScenarioRegistry())

    assert code == 1
    out = capsys.readouterr().out
    assert "expected: 'ユーザー一覧'" in out
    assert "Total: 2, Passed: 1, Failed: 1" in out

    (run_dir,) = list((tmp_path / "runs").iterdir())
    report = json.loads((run_dir / "report.json").read_text(encoding="utf-8"))
    assert report["failed"] == 1
    shots = list((run_dir / "shots").iterdir())
    assert len(shots) == 1


def test_base_url_override_reaches_suite(config_file, fake_runner, tmp_path):
    code = cli.main(
        [
            "--config",
            str(config_file),
            "run",
            str(SUITES / "tag_management.json"),
            "--base-url",
            "http://localhost:1",
            "--report",
            str(tmp_path / "report.json"),
        ],
        registry=ScenarioRegistry(),
    )

    data = json.loads((tmp_path / "report.json").read_text(encoding="utf-8"))
    assert code == 1
    assert {case["error"]["kind"] for case in data["cases"]} == {"NavigationError"}


def test_run_accepts_config_after_the_subcommand(config_file, fake_runner, tmp_path):
    report_path = tmp_path / "report.json"

    code = cli.main(
        ["run", str(SUITES / "tag_management.json"), "--config", str(config_file), "--report", str(report_path)],
        registry=ScenarioRegistry(),
    )

    assert code == 0
    assert json.loads(report_path.read_text(encoding="utf-8"))["total"] == 4


def test_python_suite_module_passes_against_configured_base_url(config_file, fake_runner, tmp_path):
    report_path = tmp_path / "report.json"

    code = cli.main(
        ["--config", str(config_file), "run", "-m", "suites.tag_management", "--report", str(report_path)],
        registry=ScenarioRegistry(),
    )

    data = json.loads(report_path.read_text(encoding="utf-8"))
    assert code == 0
    assert data["total"] == 4
    assert {case["group"] for case in data["cases"]} == {"トップページ (python)", "トップページでのクリック (python)"}


def test_python_suite_module_follows_base_url_override(config_file, fake_runner, tmp_path):
    report_path = tmp_path / "report.json"

    code = cli.main(
        [
            "--config",
            str(config_file),
            "run",
            "-m",
            "suites.tag_management",
            "--base-url",
            "http://localhost:9999",
            "--report",
            str(report_path),
        ],
        registry=ScenarioRegistry(),
    )

    data = json.loads(report_path.read_text(encoding="utf-8"))
    assert code == 1
    assert data["total"] == 4
    assert {case["error"]["kind"] for case in data["cases"]} == {"NavigationError"}
    assert all("localhost:9999" in case["error"]["message"] for case in data["cases"])
