"""CLI entrypoints for commitgate commands."""

from __future__ import annotations

import argparse
import stat
import sys
from pathlib import Path

from .config import SKIP_VARIABLES, ConfigError, SkipPolicy, load_config
from .gate import Gate
from .git.diff import GitError, StagedDiff
from .logging import configure_logging
from .models import Category, StagedFileSet

HOOK_SCRIPT = """#!/bin/sh
# Installed by commitgate; remove or re-run `commitgate install-hook --force` to change.
exec commitgate run "$@"
"""


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_path_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path inside the repository (defaults to current directory).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="commitgate",
        description="Lint staged files by category before allowing a commit.",
    )
    _add_verbose_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser(
        "run",
        help="Check staged files and exit non-zero when the commit must be aborted.",
    )
    _add_verbose_option(run_parser, suppress_default=True)
    _add_path_argument(run_parser)
    run_parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only report warnings and failures.",
    )
    run_parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write log records to this file.",
    )

    classify_parser = subparsers.add_parser(
        "classify",
        help="Show which category each staged file falls into without running checkers.",
    )
    _add_verbose_option(classify_parser, suppress_default=True)
    classify_parser.add_argument(
        "--path",
        default=".",
        help="Path inside the repository (defaults to current directory).",
    )
    classify_parser.add_argument(
        "files",
        nargs="*",
        help="Classify these repository-relative paths instead of the staged set.",
    )

    categories_parser = subparsers.add_parser(
        "categories",
        help="List categories in dispatch order with their skip variables.",
    )
    _add_verbose_option(categories_parser, suppress_default=True)

    install_parser = subparsers.add_parser(
        "install-hook",
        help="Install a git pre-commit hook that runs `commitgate run`.",
    )
    _add_verbose_option(install_parser, suppress_default=True)
    _add_path_argument(install_parser)
    install_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing pre-commit hook.",
    )

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for commitgate commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(
        verbose=bool(args.verbose),
        quiet=bool(getattr(args, "quiet", False)),
        log_file=getattr(args, "log_file", None),
    )

    if args.command == "run":
        try:
            report = Gate().run(args.path)
        except (ConfigError, GitError) as exc:
            parser.exit(1, f"commitgate: {exc}\n")
        if not report.passed:
            parser.exit(1, f"commitgate: {report.failed_category} check failed; commit aborted.\n")
        parser.exit(0)
    elif args.command == "classify":
        try:
            _print_partition(args.path, args.files)
        except (ConfigError, GitError) as exc:
            parser.exit(1, f"commitgate: {exc}\n")
    elif args.command == "categories":
        _print_categories(SkipPolicy.from_environ())
    elif args.command == "install-hook":
        try:
            hook = install_hook(Path(args.path), force=bool(args.force))
        except (FileExistsError, GitError) as exc:
            parser.exit(1, f"commitgate: {exc}\n")
        print(f"Installed pre-commit hook at {hook}")
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _print_partition(path: str, files: list[str]) -> None:
    gate = Gate()
    repo = gate.diff.toplevel(Path(path).expanduser().resolve())
    config = load_config(repo)
    staged = StagedFileSet.from_paths(files) if files else gate.diff.staged_files(repo)
    partition = gate.classify(config, staged)
    for category in Category.ordered():
        members = partition.get(category, ())
        if not members:
            continue
        marker = " (skipped)" if config.skip.skips(category) else ""
        print(f"{category.value}{marker}:")
        for member in members:
            print(f"  {member}")


def _print_categories(skip: SkipPolicy) -> None:
    width = max(len(category.value) for category in Category)
    for category in Category.ordered():
        state = "skip" if skip.skips(category) else "run"
        print(f"{category.value:<{width}}  {SKIP_VARIABLES[category]:<34}  {state}")


def install_hook(path: Path, *, force: bool = False, diff: StagedDiff | None = None) -> Path:
    """Write a pre-commit hook invoking commitgate and return its path."""
    diff = diff or StagedDiff()
    repo = diff.toplevel(path.expanduser().resolve())
    hooks_dir = diff.hooks_dir(repo)
    hook = hooks_dir / "pre-commit"
    if hook.exists() and not force:
        raise FileExistsError(f"{hook} already exists; use --force to replace it")
    hooks_dir.mkdir(parents=True, exist_ok=True)
    hook.write_text(HOOK_SCRIPT, encoding="utf-8")
    mode = hook.stat().st_mode
    hook.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return hook


if __name__ == "__main__":
    main(sys.argv[1:])
