"""Tests for worker_inline.cli — argument parsing and exit codes."""

from unittest.mock import patch

import pytest

from worker_inline.cli import build_parser, main

IDIOM = "new Worker(new URL('./x.worker.js', import.meta.url))"


@pytest.fixture(autouse=True)
def no_logging_setup():
    """Keep main() from replacing pytest's log handlers."""
    with patch("worker_inline.cli.setup_logging") as mock_setup:
        yield mock_setup


@pytest.fixture
def project(tmp_path):
    src = tmp_path / "src"
    src.mkdir()
    (src / "a.js").write_text(f"const w = {IDIOM};\n", encoding="utf-8")
    (src / "x.worker.js").write_text("onmessage = () => {};", encoding="utf-8")
    return src


class TestParser:
    def test_transform_defaults(self):
        args = build_parser().parse_args(["transform"])
        assert args.command == "transform"
        assert args.root is None
        assert args.strategy is None
        assert args.dry_run is False

    def test_repeatable_options(self):
        args = build_parser().parse_args(
            ["transform", "src", "--marker", ".worker.js", "--marker", "-worker.js", "--ext", ".mjs"]
        )
        assert args.markers == [".worker.js", "-worker.js"]
        assert args.extensions == [".mjs"]

    def test_unknown_strategy_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["transform", "--strategy", "guess"])

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestMain:
    def test_transform_success(self, project):
        assert main(["transform", str(project)]) == 0
        assert IDIOM not in (project / "a.js").read_text(encoding="utf-8")

    def test_noop_run_exits_zero(self, project):
        main(["transform", str(project)])
        assert main(["transform", str(project)]) == 0

    def test_dry_run(self, project):
        before = (project / "a.js").read_bytes()
        assert main(["transform", str(project), "--dry-run"]) == 0
        assert (project / "a.js").read_bytes() == before

    def test_naming_strategy(self, project):
        assert main(["transform", str(project), "--strategy", "naming", "--marker", ".worker.js"]) == 0
        assert IDIOM not in (project / "a.js").read_text(encoding="utf-8")

    def test_missing_root_exits_nonzero(self, tmp_path):
        assert main(["transform", str(tmp_path / "nope")]) == 1

    def test_write_failure_exits_nonzero(self, project):
        with patch(
            "worker_inline.workers.orchestrator.Orchestrator._write_atomic",
            side_effect=PermissionError("read-only"),
        ):
            assert main(["transform", str(project)]) == 1

    def test_log_level_passed_through(self, project, no_logging_setup):
        main(["--log-level", "DEBUG", "transform", str(project)])
        assert no_logging_setup.call_args.kwargs["level"] == "DEBUG"

    def test_serve_uses_settings(self):
        with patch("uvicorn.run") as mock_run:
            assert main(["serve", "--port", "9000"]) == 0
        kwargs = mock_run.call_args.kwargs
        assert kwargs["port"] == 9000
        assert kwargs["host"] == "127.0.0.1"
