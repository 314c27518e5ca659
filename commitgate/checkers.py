"""Checker registry and per-category dispatch."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from types import MappingProxyType
from typing import Callable, Iterable, List, Mapping, Optional, Sequence

from .logging import get_logger
from .models import Category, CheckerSpec, RunResult

Runner = Callable[..., "subprocess.CompletedProcess[str]"]
ToolLocator = Callable[[str], Optional[str]]

TIMEOUT_EXIT_STATUS = 124
MISSING_EXIT_STATUS = 127

_FILES = "{files}"
_CONFIG = "{config}"


def _make(target: str, *extra: str) -> tuple[str, ...]:
    return ("make", target, f"FILES={_FILES}", *extra)


DEFAULT_CHECKERS: Mapping[Category, CheckerSpec] = MappingProxyType(
    {
        Category.FILENAMES: CheckerSpec(_make("lint-filenames-files")),
        Category.MARKDOWN: CheckerSpec(_make("lint-markdown-files")),
        Category.PACKAGE_JSON: CheckerSpec(_make("lint-pkg-json-files")),
        Category.REPL_TXT: CheckerSpec(_make("lint-repl-txt-files")),
        Category.JAVASCRIPT_SRC: CheckerSpec(_make("lint-javascript-files", "FIX=1"), fix=True),
        Category.JAVASCRIPT_CLI: CheckerSpec(_make("lint-javascript-files", "FIX=1"), fix=True),
        Category.JAVASCRIPT_EXAMPLES: CheckerSpec(
            _make("lint-javascript-files", "FIX=1", f"ESLINT_CONF={_CONFIG}"),
            config="etc/eslint/.eslintrc.examples.js",
            fix=True,
        ),
        Category.JAVASCRIPT_TESTS: CheckerSpec(
            _make("lint-javascript-files", "FIX=1", f"ESLINT_CONF={_CONFIG}"),
            config="etc/eslint/.eslintrc.tests.js",
            fix=True,
        ),
        Category.JAVASCRIPT_BENCHMARKS: CheckerSpec(
            _make("lint-javascript-files", "FIX=1", f"ESLINT_CONF={_CONFIG}"),
            config="etc/eslint/.eslintrc.benchmarks.js",
            fix=True,
        ),
        Category.PYTHON: CheckerSpec(
            _make("lint-python-files"),
            optional=True,
            probe=("make", "check-python-linters"),
        ),
        Category.R: CheckerSpec(
            _make("lint-r-files"),
            optional=True,
            probe=("make", "check-r-linters"),
        ),
        Category.C_SRC: CheckerSpec(
            _make("lint-c-files", f"C_LINTER_SUPPRESSIONS={_CONFIG}"),
            config="etc/cppcheck/suppressions.src.txt",
            optional=True,
            probe=("make", "check-c-linters"),
        ),
        Category.C_EXAMPLES: CheckerSpec(
            _make("lint-c-files", f"C_LINTER_SUPPRESSIONS={_CONFIG}"),
            config="etc/cppcheck/suppressions.examples.txt",
            optional=True,
            probe=("make", "check-c-linters"),
        ),
        Category.C_BENCHMARKS: CheckerSpec(
            _make("lint-c-files", f"C_LINTER_SUPPRESSIONS={_CONFIG}"),
            config="etc/cppcheck/suppressions.benchmarks.txt",
            optional=True,
            probe=("make", "check-c-linters"),
        ),
        Category.C_TESTS_FIXTURES: CheckerSpec(
            _make("lint-c-files"),
            optional=True,
            probe=("make", "check-c-linters"),
        ),
        Category.SHELL: CheckerSpec(
            _make("lint-shell-files"),
            optional=True,
            probe=("make", "check-shell-linters"),
        ),
        Category.TYPESCRIPT_DECLARATIONS: CheckerSpec(
            _make("lint-typescript-declarations-files"),
            optional=True,
            probe=("make", "check-typescript-linters"),
        ),
        Category.LICENSE_HEADERS: CheckerSpec(_make("lint-license-headers-files")),
    }
)


def build_command(spec: CheckerSpec, files: Sequence[str]) -> List[str]:
    """Expand ``{files}`` and ``{config}`` placeholders in the checker command.

    A token equal to ``{files}`` expands into one argument per file; a token
    embedding it receives the space-joined list. Tokens referencing ``{config}``
    are dropped when the checker has no auxiliary config. When the template
    never mentions ``{files}`` the paths are appended.
    """
    argv: List[str] = []
    placed = False
    for token in spec.command:
        if _CONFIG in token:
            if not spec.config:
                continue
            token = token.replace(_CONFIG, spec.config)
        if token == _FILES:
            argv.extend(files)
            placed = True
        elif _FILES in token:
            argv.append(token.replace(_FILES, " ".join(files)))
            placed = True
        else:
            argv.append(token)
    if not placed:
        argv.extend(files)
    return argv


class CheckerRegistry:
    """Maps categories to checkers and runs them against file sets."""

    def __init__(
        self,
        root: Path,
        checkers: Mapping[Category, CheckerSpec] | None = None,
        *,
        runner: Runner | None = None,
        which: ToolLocator | None = None,
        timeout: float | None = None,
    ) -> None:
        self.root = root
        self.checkers = dict(checkers if checkers is not None else DEFAULT_CHECKERS)
        self._runner = runner or self._default_runner
        self._which = which or shutil.which
        self._timeout = timeout
        self.logger = get_logger("checkers")

    def spec_for(self, category: Category) -> CheckerSpec:
        try:
            return self.checkers[category]
        except KeyError:
            raise KeyError(f"No checker registered for category '{category.value}'") from None

    def run_category(self, category: Category, files: Iterable[str]) -> RunResult:
        """Run the checker registered for ``category`` against ``files``."""
        targets = tuple(files)
        if not targets:
            return RunResult(category=category, attempted=False)

        spec = self.spec_for(category)
        if spec.optional:
            reason = self._missing_reason(spec)
            if reason:
                message = f"Unable to lint {category.value} files: {reason}. Ensure that linters are installed."
                self.logger.warning("%s", message)
                return RunResult(category=category, attempted=False, files=targets, message=message)

        argv = build_command(spec, targets)
        self.logger.info("Linting %d %s file(s)", len(targets), category.value)
        self.logger.debug("Running %s", " ".join(argv))
        try:
            completed = self._run(argv)
        except FileNotFoundError:
            message = f"Checker for {category.value} is not available: {argv[0]} not found"
            return RunResult(
                category=category,
                attempted=True,
                exit_status=MISSING_EXIT_STATUS,
                files=targets,
                message=message,
            )
        except subprocess.TimeoutExpired as exc:
            return RunResult(
                category=category,
                attempted=True,
                exit_status=TIMEOUT_EXIT_STATUS,
                files=targets,
                output=_combine(exc.stdout, exc.stderr),
                message=f"Checker for {category.value} timed out after {exc.timeout:g}s",
            )

        output = _combine(completed.stdout, completed.stderr)
        status = completed.returncode
        # The checker cannot report what it rewrote; assume a successful fix run touched every target.
        fixed = spec.fix and status == 0
        message = "" if status == 0 else f"Linting {category.value} files failed (exit status {status})"
        return RunResult(
            category=category,
            attempted=True,
            exit_status=status,
            fixed_files=fixed,
            files=targets,
            output=output,
            message=message,
        )

    # ------------------------------------------------------------------
    # Internals

    def _missing_reason(self, spec: CheckerSpec) -> str:
        executables = [spec.command[0]]
        if spec.probe and spec.probe[0] not in executables:
            executables.append(spec.probe[0])
        for executable in executables:
            if self._which(executable) is None:
                return f"{executable} not found"
        if spec.probe:
            try:
                probe = self._run(list(spec.probe))
            except (FileNotFoundError, subprocess.TimeoutExpired):
                return f"`{' '.join(spec.probe)}` could not run"
            if probe.returncode != 0:
                return f"`{' '.join(spec.probe)}` reported missing tooling"
        return ""

    def _run(self, argv: Sequence[str]) -> "subprocess.CompletedProcess[str]":
        return self._runner(argv, cwd=self.root, timeout=self._timeout)

    @staticmethod
    def _default_runner(
        args: Iterable[str],
        *,
        cwd: Path,
        timeout: float | None = None,
    ) -> "subprocess.CompletedProcess[str]":
        return subprocess.run(
            list(args),
            cwd=str(cwd),
            check=False,
            text=True,
            errors="replace",
            capture_output=True,
            timeout=timeout,
        )


def _combine(stdout: object, stderr: object) -> str:
    parts = []
    for stream in (stdout, stderr):
        if not stream:
            continue
        if isinstance(stream, bytes):
            stream = stream.decode("utf-8", errors="replace")
        parts.append(str(stream))
    return "".join(parts)


__all__ = [
    "CheckerRegistry",
    "DEFAULT_CHECKERS",
    "MISSING_EXIT_STATUS",
    "TIMEOUT_EXIT_STATUS",
    "build_command",
]
