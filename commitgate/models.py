"""Core data models shared across commitgate components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence, Tuple


class Category(str, Enum):
    """Classification buckets for staged files, declared in dispatch order."""

    FILENAMES = "filenames"
    MARKDOWN = "markdown"
    PACKAGE_JSON = "package-json"
    REPL_TXT = "repl-txt"
    JAVASCRIPT_SRC = "javascript-src"
    JAVASCRIPT_CLI = "javascript-cli"
    JAVASCRIPT_EXAMPLES = "javascript-examples"
    JAVASCRIPT_TESTS = "javascript-tests"
    JAVASCRIPT_BENCHMARKS = "javascript-benchmarks"
    PYTHON = "python"
    R = "r"
    C_SRC = "c-src"
    C_EXAMPLES = "c-examples"
    C_BENCHMARKS = "c-benchmarks"
    C_TESTS_FIXTURES = "c-tests-fixtures"
    SHELL = "shell"
    TYPESCRIPT_DECLARATIONS = "typescript-declarations"
    LICENSE_HEADERS = "license-headers"

    @classmethod
    def ordered(cls) -> Tuple["Category", ...]:
        return tuple(cls)

    @classmethod
    def from_name(cls, name: str) -> "Category":
        try:
            return cls(name.strip().lower().replace("_", "-"))
        except ValueError:
            known = ", ".join(category.value for category in cls)
            raise ValueError(f"Unknown category '{name}' (expected one of: {known})") from None


NON_ASCII_FILENAME = "non-ascii-filename"


@dataclass(frozen=True)
class StagedFileSet:
    """Snapshot of the paths staged for the pending commit."""

    paths: Tuple[str, ...] = ()

    @classmethod
    def from_paths(cls, paths: Sequence[str]) -> "StagedFileSet":
        seen: set[str] = set()
        ordered = []
        for path in paths:
            if path and path not in seen:
                seen.add(path)
                ordered.append(path)
        return cls(paths=tuple(ordered))

    def __iter__(self):
        return iter(self.paths)

    def __len__(self) -> int:
        return len(self.paths)


@dataclass(frozen=True)
class CheckerSpec:
    """How to invoke the external checker for one category."""

    command: Tuple[str, ...]
    config: Optional[str] = None
    fix: bool = False
    optional: bool = False
    probe: Optional[Tuple[str, ...]] = None


@dataclass(frozen=True)
class RunResult:
    """Outcome of dispatching one category."""

    category: Category
    attempted: bool
    exit_status: int = 0
    fixed_files: bool = False
    files: Tuple[str, ...] = ()
    output: str = ""
    message: str = ""

    @property
    def failed(self) -> bool:
        return self.attempted and self.exit_status != 0


@dataclass(frozen=True)
class GuardResult:
    """Outcome of the filename/encoding pre-check."""

    offending: Tuple[str, ...] = ()
    against: str = "HEAD"

    @property
    def passed(self) -> bool:
        return not self.offending


@dataclass
class GateReport:
    """Aggregated outcome of a gate run."""

    guard: GuardResult
    results: list[RunResult] = field(default_factory=list)
    failed_category: Optional[str] = None
    restaged: list[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.failed_category is None

    @property
    def exit_code(self) -> int:
        return 0 if self.passed else 1
