"""Re-staging of files rewritten by fix-capable checkers."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Callable, Iterable, List, Sequence

from .diff import GitError


class Stager:
    """Adds files back to the index so the commit includes checker fixes."""

    def __init__(self, runner: Callable[..., str] | None = None) -> None:
        self._runner = runner or self._default_runner

    def restage(self, repo: Path, files: Sequence[str]) -> List[str]:
        """Run ``git add`` for ``files`` and return the paths that were re-added."""
        paths = [path for path in files if path]
        if not paths:
            return []
        try:
            self._runner(["git", "add", "--", *paths], cwd=repo)
        except FileNotFoundError as exc:
            raise GitError("git executable not found") from exc
        except subprocess.CalledProcessError as exc:
            raise GitError(f"Failed to re-stage fixed files: {exc}") from exc
        return paths

    @staticmethod
    def _default_runner(
        args: Iterable[str],
        *,
        cwd: Path,
    ) -> str:
        subprocess.run(list(args), cwd=str(cwd), check=True)
        return ""


__all__ = ["Stager"]
