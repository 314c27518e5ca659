"""End-to-end gate behaviour with fake git and checker boundaries."""

from __future__ import annotations

import io
import logging
from pathlib import Path

import pytest

from commitgate.checkers import CheckerRegistry
from commitgate.config import GateConfig, SkipPolicy, load_config
from commitgate.gate import Gate
from commitgate.git.diff import StagedDiff
from commitgate.git.stager import Stager
from commitgate.models import NON_ASCII_FILENAME, Category, GateReport, GuardResult, RunResult
from tests._fixtures.fakes import FakeCheckers, FakeGit, which_all


def _gate(git: FakeGit, checkers: FakeCheckers, first_lines=None, stream=None) -> Gate:
    lines = first_lines or {}
    return Gate(
        StagedDiff(runner=git),
        Stager(runner=git),
        checker_runner=checkers,
        which=which_all,
        reader_factory=lambda _root: lines.get,
        stream=stream,
    )


def test_non_ascii_name_aborts_before_any_checker(tmp_path: Path) -> None:
    git = FakeGit(
        tmp_path,
        ["lib/foo.js", "lib/foo/test/test.js", "README.md", "package.json", "unicodeé.txt"],
    )
    checkers = FakeCheckers()

    report = _gate(git, checkers).run(tmp_path, environ={})

    assert report.exit_code == 1
    assert report.failed_category == NON_ASCII_FILENAME
    assert report.guard.offending == ("unicodeé.txt",)
    assert report.results == []
    assert checkers.calls == []
    assert git.added == []


def test_fixed_source_is_restaged(tmp_path: Path) -> None:
    git = FakeGit(tmp_path, ["lib/foo.js"])
    checkers = FakeCheckers()

    report = _gate(git, checkers).run(tmp_path, environ={})

    assert report.exit_code == 0
    assert report.restaged == ["lib/foo.js"]
    assert git.added == [["lib/foo.js"]]
    assert checkers.targets == [
        "lint-filenames-files",
        "lint-javascript-files",
        "lint-license-headers-files",
    ]
    # The fix is staged after the JavaScript pass and before license headers run.
    add_index = git.calls.index(["git", "add", "--", "lib/foo.js"])
    assert add_index == len(git.calls) - 1


def test_missing_python_tooling_is_soft(tmp_path: Path, caplog) -> None:
    git = FakeGit(tmp_path, ["script.py"])
    checkers = FakeCheckers({"check-python-linters": 2})

    with caplog.at_level(logging.WARNING, logger="commitgate"):
        report = _gate(git, checkers).run(tmp_path, environ={})

    assert report.exit_code == 0
    assert "lint-python-files" not in checkers.targets
    python = [result for result in report.results if result.category is Category.PYTHON]
    assert python[0].attempted is False
    assert "Unable to lint python files" in caplog.text


def test_first_hard_failure_short_circuits(tmp_path: Path) -> None:
    git = FakeGit(tmp_path, ["README.md", "lib/foo.js", "lib/foo/package.json"])
    checkers = FakeCheckers({"lint-markdown-files": 1}, output="README.md: bad heading\n")
    stream = io.StringIO()

    report = _gate(git, checkers, stream=stream).run(tmp_path, environ={})

    assert report.exit_code == 1
    assert report.failed_category == "markdown"
    assert checkers.targets == ["lint-filenames-files", "lint-markdown-files"]
    assert git.added == []
    assert "bad heading" in stream.getvalue()


def test_failed_fix_run_is_not_restaged(tmp_path: Path) -> None:
    git = FakeGit(tmp_path, ["lib/foo.js"])
    checkers = FakeCheckers({"lint-javascript-files": 1})

    report = _gate(git, checkers, stream=io.StringIO()).run(tmp_path, environ={})

    assert report.failed_category == "javascript-src"
    assert git.added == []
    assert report.restaged == []


def test_skipped_category_never_runs_or_fails(tmp_path: Path) -> None:
    git = FakeGit(tmp_path, ["README.md", "lib/foo.js"])
    checkers = FakeCheckers({"lint-markdown-files": 1})

    report = _gate(git, checkers).run(tmp_path, environ={"SKIP_LINT_MARKDOWN": "1"})

    assert report.exit_code == 0
    assert "lint-markdown-files" not in checkers.targets
    assert all(result.category is not Category.MARKDOWN for result in report.results)


def test_skipping_one_category_leaves_others_running(tmp_path: Path) -> None:
    git = FakeGit(tmp_path, ["lib/foo.js"])
    checkers = FakeCheckers()

    _gate(git, checkers).run(
        tmp_path,
        environ={"SKIP_LINT_FILENAMES": "1", "SKIP_LINT_LICENSE_HEADERS": "1"},
    )

    assert checkers.targets == ["lint-javascript-files"]


def test_shell_scripts_need_a_bash_shebang(tmp_path: Path) -> None:
    git = FakeGit(tmp_path, ["tools/run", "tools/plain"])
    checkers = FakeCheckers()
    first_lines = {"tools/run": "#!/usr/bin/env bash", "tools/plain": "hello"}

    _gate(git, checkers, first_lines).run(
        tmp_path,
        environ={"SKIP_LINT_FILENAMES": "1", "SKIP_LINT_LICENSE_HEADERS": "1"},
    )

    assert checkers.calls == [
        ["make", "check-shell-linters"],
        ["make", "lint-shell-files", "FILES=tools/run"],
    ]


def test_nothing_staged_passes_without_checkers(tmp_path: Path) -> None:
    git = FakeGit(tmp_path, [])
    checkers = FakeCheckers()

    report = _gate(git, checkers).run(tmp_path, environ={})

    assert report.exit_code == 0
    assert checkers.calls == []
    assert all(not result.attempted for result in report.results)


def test_repository_config_is_applied(tmp_path: Path) -> None:
    (tmp_path / ".commitgate.yml").write_text(
        "checkers:\n  markdown:\n    command: [remark, --frail, \"{files}\"]\n",
        encoding="utf-8",
    )
    git = FakeGit(tmp_path, ["README.md"])
    checkers = FakeCheckers()

    _gate(git, checkers).run(
        tmp_path,
        environ={"SKIP_LINT_FILENAMES": "1", "SKIP_LINT_LICENSE_HEADERS": "1"},
    )

    assert checkers.calls == [["remark", "--frail", "README.md"]]


class _CountingRegistry(CheckerRegistry):
    def __init__(self, root: Path) -> None:
        super().__init__(root, runner=FakeCheckers(), which=which_all)
        self.invoked: list[Category] = []

    def run_category(self, category, files):  # type: ignore[no-untyped-def]
        self.invoked.append(category)
        return super().run_category(category, files)


@pytest.mark.parametrize("category", list(Category))
def test_dispatch_never_invokes_skipped_category(tmp_path: Path, category: Category) -> None:
    registry = _CountingRegistry(tmp_path)
    partition = {member: ("some/file",) for member in Category}
    gate = Gate(StagedDiff(runner=FakeGit(tmp_path)), Stager(runner=FakeGit(tmp_path)))

    report = gate.dispatch(
        partition,
        SkipPolicy(skipped=frozenset({category})),
        registry,
        tmp_path,
        GateReport(guard=GuardResult()),
    )

    assert category not in registry.invoked
    assert registry.invoked == [member for member in Category.ordered() if member is not category]
    assert report.passed


def test_run_with_config_accepts_prebuilt_config(tmp_path: Path) -> None:
    git = FakeGit(tmp_path, ["docs/repl.txt"])
    checkers = FakeCheckers()
    config = GateConfig(root=tmp_path, skip=SkipPolicy.from_environ({}))

    report = _gate(git, checkers).run_with_config(config)

    assert report.passed
    assert "lint-repl-txt-files" in checkers.targets
    assert isinstance(report.results[0], RunResult)
    assert load_config(tmp_path, environ={}).root == tmp_path.resolve()
