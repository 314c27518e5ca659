"""Filename/encoding guard run before any category is dispatched."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Tuple

from .git.diff import StagedDiff
from .logging import get_logger
from .models import GuardResult

_PRINTABLE_MIN = 0x20
_PRINTABLE_MAX = 0x7E

logger = get_logger("guard")


def is_portable_name(path: str) -> bool:
    """Return True when every character of ``path`` is printable ASCII."""
    return all(_PRINTABLE_MIN <= ord(char) <= _PRINTABLE_MAX for char in path)


def find_non_portable(paths: Iterable[str]) -> Tuple[str, ...]:
    return tuple(path for path in paths if not is_portable_name(path))


def check_filenames(diff: StagedDiff, repo: Path) -> GuardResult:
    """Reject the commit when a staged path relative to the prior commit is not printable ASCII."""
    against = diff.against(repo)
    offending = find_non_portable(diff.changed_names(repo, against))
    if offending:
        logger.debug("Non-portable file names against %s: %s", against, ", ".join(map(ascii, offending)))
    return GuardResult(offending=offending, against=against)


__all__ = ["check_filenames", "find_non_portable", "is_portable_name"]
