"""Path and content based classification of staged files."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .logging import get_logger
from .models import Category

FirstLineReader = Callable[[str], Optional[str]]

DEFAULT_BUILD_ROOTS: Tuple[str, ...] = ("build/",)

_BASH_SHEBANG = re.compile(r"^#!\s*(?:/usr/bin/env\s+bash|/(?:usr/)?bin/bash)(?:\s|$)")

_NON_SOURCE_SEGMENTS: Tuple[str, ...] = ("/examples", "/test", "/benchmark")

logger = get_logger("classifier")


def is_bash_shebang(line: Optional[str]) -> bool:
    """Return True when ``line`` starts with a bash interpreter directive."""
    if not line:
        return False
    return bool(_BASH_SHEBANG.match(line))


@dataclass(frozen=True)
class CategoryRule:
    """Associates a category with suffix, path segment and content predicates."""

    category: Category
    suffixes: Tuple[str, ...] = ()
    excluded_suffixes: Tuple[str, ...] = ()
    segments: Tuple[str, ...] = ()
    excluded_segments: Tuple[str, ...] = ()
    excluded_prefixes: Tuple[str, ...] = ()
    requires_shebang: bool = False
    match_all: bool = False

    def matches(self, path: str, first_line: Optional[str] = None) -> bool:
        if not self.match_all:
            if self.suffixes and not path.endswith(self.suffixes):
                return False
            if self.excluded_suffixes and path.endswith(self.excluded_suffixes):
                return False
            if any(segment not in path for segment in self.segments):
                return False
            if any(segment in path for segment in self.excluded_segments):
                return False
            if self.excluded_prefixes and path.startswith(self.excluded_prefixes):
                return False
        if self.requires_shebang and not is_bash_shebang(first_line):
            return False
        return True


@dataclass(frozen=True)
class ClassifierPass:
    """A group of mutually exclusive rules; the first matching rule wins."""

    name: str
    rules: Tuple[CategoryRule, ...]

    @property
    def sniffs_content(self) -> bool:
        return any(rule.requires_shebang for rule in self.rules)

    def classify(self, path: str, first_line: Optional[str] = None) -> Optional[Category]:
        for rule in self.rules:
            if rule.matches(path, first_line):
                return rule.category
        return None


def build_passes(build_roots: Sequence[str] = DEFAULT_BUILD_ROOTS) -> Tuple[ClassifierPass, ...]:
    """Return the classification passes, with plain-source rules excluding ``build_roots``."""
    roots = tuple(build_roots)
    return (
        ClassifierPass("filenames", (CategoryRule(Category.FILENAMES, match_all=True),)),
        ClassifierPass(
            "documents",
            (
                CategoryRule(Category.MARKDOWN, suffixes=(".md",)),
                CategoryRule(
                    Category.PACKAGE_JSON,
                    suffixes=("package.json",),
                    excluded_suffixes=("datapackage.json",),
                ),
                CategoryRule(Category.REPL_TXT, suffixes=("repl.txt",)),
            ),
        ),
        ClassifierPass(
            "javascript",
            (
                CategoryRule(Category.JAVASCRIPT_CLI, suffixes=("/bin/cli",)),
                CategoryRule(Category.JAVASCRIPT_EXAMPLES, suffixes=(".js",), segments=("/examples/",)),
                CategoryRule(Category.JAVASCRIPT_TESTS, suffixes=(".js",), segments=("/test/",)),
                CategoryRule(Category.JAVASCRIPT_BENCHMARKS, suffixes=(".js",), segments=("/benchmark/",)),
                CategoryRule(
                    Category.JAVASCRIPT_SRC,
                    suffixes=(".js",),
                    excluded_segments=_NON_SOURCE_SEGMENTS,
                    excluded_prefixes=roots,
                ),
            ),
        ),
        ClassifierPass("python", (CategoryRule(Category.PYTHON, suffixes=(".py",)),)),
        ClassifierPass("r", (CategoryRule(Category.R, suffixes=(".R",)),)),
        ClassifierPass(
            "c",
            (
                CategoryRule(Category.C_TESTS_FIXTURES, suffixes=(".c",), segments=("/test/fixtures/",)),
                CategoryRule(Category.C_EXAMPLES, suffixes=(".c",), segments=("/examples/",)),
                CategoryRule(Category.C_BENCHMARKS, suffixes=(".c",), segments=("/benchmark/",)),
                CategoryRule(
                    Category.C_SRC,
                    suffixes=(".c",),
                    excluded_segments=_NON_SOURCE_SEGMENTS,
                    excluded_prefixes=roots,
                ),
            ),
        ),
        ClassifierPass("shell", (CategoryRule(Category.SHELL, match_all=True, requires_shebang=True),)),
        ClassifierPass(
            "typescript",
            (CategoryRule(Category.TYPESCRIPT_DECLARATIONS, suffixes=(".d.ts",)),),
        ),
        ClassifierPass("license-headers", (CategoryRule(Category.LICENSE_HEADERS, match_all=True),)),
    )


class Classifier:
    """Partitions a staged file set into per-category file lists."""

    def __init__(
        self,
        passes: Sequence[ClassifierPass] | None = None,
        reader: FirstLineReader | None = None,
    ) -> None:
        self.passes = tuple(passes) if passes is not None else build_passes()
        self._reader = reader or (lambda _path: None)

    def partition(self, files: Iterable[str]) -> Dict[Category, Tuple[str, ...]]:
        """Return the files of every category, preserving staged order."""
        buckets: Dict[Category, List[str]] = {category: [] for category in Category.ordered()}
        paths = list(files)
        first_lines: Dict[str, Optional[str]] = {}

        for classifier_pass in self.passes:
            for path in paths:
                first_line = None
                if classifier_pass.sniffs_content:
                    if path not in first_lines:
                        first_lines[path] = self._reader(path)
                    first_line = first_lines[path]
                category = classifier_pass.classify(path, first_line)
                if category is not None:
                    logger.debug("%s -> %s", path, category.value)
                    buckets[category].append(path)

        return {category: tuple(items) for category, items in buckets.items()}


def file_first_line_reader(root: Path, *, limit: int = 256) -> FirstLineReader:
    """Return a reader yielding the first line of ``root / path`` or None when unreadable."""

    def _read(path: str) -> Optional[str]:
        try:
            with (root / path).open("rb") as handle:
                head = handle.readline(limit)
        except OSError:
            return None
        return head.decode("utf-8", errors="replace").rstrip("\r\n")

    return _read


__all__ = [
    "CategoryRule",
    "Classifier",
    "ClassifierPass",
    "DEFAULT_BUILD_ROOTS",
    "FirstLineReader",
    "build_passes",
    "file_first_line_reader",
    "is_bash_shebang",
]
