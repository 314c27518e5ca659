"""CLI parser and command behaviour tests."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from commitgate import cli
from commitgate.cli import HOOK_SCRIPT, _build_parser, install_hook
from commitgate.git.diff import StagedDiff
from commitgate.models import GateReport, GuardResult
from tests._fixtures.fakes import FakeGit


def test_cli_accepts_verbose_before_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["--verbose", "run"])
    assert args.verbose is True
    assert args.command == "run"


def test_cli_accepts_verbose_after_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["run", "--verbose"])
    assert args.verbose is True
    assert args.command == "run"


def test_cli_run_defaults_to_current_directory() -> None:
    parser = _build_parser()
    args = parser.parse_args(["run"])
    assert args.path == "."
    assert args.log_file is None


def test_cli_classify_accepts_explicit_files() -> None:
    parser = _build_parser()
    args = parser.parse_args(["classify", "lib/foo.js", "README.md"])
    assert args.command == "classify"
    assert args.files == ["lib/foo.js", "README.md"]


def test_cli_requires_a_command() -> None:
    parser = _build_parser()
    with pytest.raises(SystemExit):
        parser.parse_args([])


class _StubGate:
    def __init__(self, report: GateReport) -> None:
        self.report = report

    def run(self, path):  # type: ignore[no-untyped-def]
        return self.report


def test_run_exits_zero_when_gate_passes(monkeypatch) -> None:
    monkeypatch.setattr(cli, "Gate", lambda: _StubGate(GateReport(guard=GuardResult())))

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["run"])

    assert excinfo.value.code == 0


def test_run_exits_one_and_names_category(monkeypatch, capsys) -> None:
    report = GateReport(guard=GuardResult(), failed_category="markdown")
    monkeypatch.setattr(cli, "Gate", lambda: _StubGate(report))

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["run"])

    assert excinfo.value.code == 1
    assert "markdown check failed" in capsys.readouterr().err


def test_categories_lists_dispatch_order(monkeypatch, capsys) -> None:
    monkeypatch.setenv("SKIP_LINT_PYTHON", "1")

    cli.main(["categories"])

    lines = capsys.readouterr().out.splitlines()
    assert lines[0].split()[0] == "filenames"
    assert lines[-1].split()[0] == "license-headers"
    python_line = next(line for line in lines if line.startswith("python "))
    assert python_line.split() == ["python", "SKIP_LINT_PYTHON", "skip"]


def test_install_hook_writes_executable_script(tmp_path: Path) -> None:
    diff = StagedDiff(runner=FakeGit(tmp_path))

    hook = install_hook(tmp_path, diff=diff)

    assert hook == tmp_path / ".git" / "hooks" / "pre-commit"
    assert hook.read_text(encoding="utf-8") == HOOK_SCRIPT
    assert os.access(hook, os.X_OK)


def test_install_hook_refuses_to_overwrite(tmp_path: Path) -> None:
    diff = StagedDiff(runner=FakeGit(tmp_path))
    hooks = tmp_path / ".git" / "hooks"
    hooks.mkdir(parents=True)
    (hooks / "pre-commit").write_text("#!/bin/sh\nexit 0\n", encoding="utf-8")

    with pytest.raises(FileExistsError):
        install_hook(tmp_path, diff=diff)

    install_hook(tmp_path, force=True, diff=diff)
    assert (hooks / "pre-commit").read_text(encoding="utf-8") == HOOK_SCRIPT


def test_install_hook_follows_configured_hooks_path(tmp_path: Path) -> None:
    (tmp_path / ".git").write_text("gitdir: /elsewhere/.git/worktrees/feature\n", encoding="utf-8")
    git = FakeGit(tmp_path, hooks_path="tools/hooks")

    hook = install_hook(tmp_path, diff=StagedDiff(runner=git))

    assert hook == tmp_path / "tools" / "hooks" / "pre-commit"
    assert hook.read_text(encoding="utf-8") == HOOK_SCRIPT
    assert ["git", "rev-parse", "--git-path", "hooks"] in git.calls
