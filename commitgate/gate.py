"""Pipeline orchestration for the pre-commit gate."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Callable, Mapping, Optional, TextIO

from .checkers import CheckerRegistry, Runner, ToolLocator
from .classifier import Classifier, FirstLineReader, build_passes, file_first_line_reader
from .config import SKIP_VARIABLES, GateConfig, SkipPolicy, load_config
from .git.diff import StagedDiff
from .git.stager import Stager
from .guard import check_filenames
from .logging import get_logger
from .models import NON_ASCII_FILENAME, Category, GateReport, StagedFileSet


class Gate:
    """Coordinates the guard, classification, dispatch and re-staging steps."""

    def __init__(
        self,
        diff: StagedDiff | None = None,
        stager: Stager | None = None,
        *,
        checker_runner: Runner | None = None,
        which: ToolLocator | None = None,
        reader_factory: Optional[Callable[[Path], FirstLineReader]] = None,
        stream: TextIO | None = None,
    ) -> None:
        self.diff = diff or StagedDiff()
        self.stager = stager or Stager()
        self._checker_runner = checker_runner
        self._which = which
        self._reader_factory = reader_factory or file_first_line_reader
        self._stream = stream
        self.logger = get_logger("gate")

    def run(self, path: str | Path = ".", *, environ: Mapping[str, str] | None = None) -> GateReport:
        """Run the gate for the repository containing ``path``."""
        env = os.environ if environ is None else environ
        repo = self.diff.toplevel(Path(path).expanduser().resolve())
        config = load_config(repo, env)
        if config.source is not None:
            self.logger.debug("Loaded configuration from %s", config.source)
        return self.run_with_config(config)

    def run_with_config(self, config: GateConfig) -> GateReport:
        repo = config.root
        guard = check_filenames(self.diff, repo)
        report = GateReport(guard=guard)
        if not guard.passed:
            self.logger.error(
                "Attempt to add a non-ASCII file name (%s). Rename %s to use printable ASCII only.",
                NON_ASCII_FILENAME,
                ", ".join(ascii(name) for name in guard.offending),
            )
            report.failed_category = NON_ASCII_FILENAME
            return report

        staged = self.diff.staged_files(repo)
        self.logger.debug("Staged %d file(s)", len(staged))
        partition = self.classify(config, staged)
        registry = self.registry_for(config)
        return self.dispatch(partition, config.skip, registry, repo, report)

    def classify(self, config: GateConfig, staged: StagedFileSet) -> dict[Category, tuple[str, ...]]:
        classifier = Classifier(
            build_passes(config.build_roots),
            reader=self._reader_factory(config.root),
        )
        return classifier.partition(staged)

    def registry_for(self, config: GateConfig) -> CheckerRegistry:
        return CheckerRegistry(
            config.root,
            config.checkers,
            runner=self._checker_runner,
            which=self._which,
            timeout=config.timeout,
        )

    def dispatch(
        self,
        partition: Mapping[Category, tuple[str, ...]],
        skip: SkipPolicy,
        registry: CheckerRegistry,
        repo: Path,
        report: GateReport,
    ) -> GateReport:
        """Run categories in order, stopping at the first hard failure."""
        for category in Category.ordered():
            if skip.skips(category):
                self.logger.debug("Skipping %s (%s is set)", category.value, SKIP_VARIABLES[category])
                continue

            result = registry.run_category(category, partition.get(category, ()))
            report.results.append(result)

            if result.failed:
                self._emit(result.output)
                self.logger.error("%s", result.message)
                self.logger.error("Commit aborted: %s checks failed.", category.value)
                report.failed_category = category.value
                return report

            if result.output:
                self.logger.debug("%s", result.output.rstrip())

            # Fixes are only kept once the category has passed.
            if result.fixed_files:
                restaged = self.stager.restage(repo, result.files)
                self.logger.info("Re-staged %d fixed %s file(s)", len(restaged), category.value)
                report.restaged.extend(restaged)

        return report

    def _emit(self, output: str) -> None:
        if not output:
            return
        stream = self._stream or sys.stderr
        stream.write(output if output.endswith("\n") else f"{output}\n")
        stream.flush()


__all__ = ["Gate"]
