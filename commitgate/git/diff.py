"""Staged diff inspection utilities."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Callable, Iterable, List

from ..models import StagedFileSet

# Hash of the empty tree object, used as diff base before the first commit.
EMPTY_TREE = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"


class GitError(RuntimeError):
    """Raised when a git command needed by the gate cannot run."""


class StagedDiff:
    """Reads the pending commit snapshot through a narrow git command interface."""

    def __init__(self, runner: Callable[..., str] | None = None) -> None:
        self._runner = runner or self._default_runner

    def toplevel(self, path: Path) -> Path:
        """Return the root of the work tree containing ``path``."""
        output = self._git(["git", "rev-parse", "--show-toplevel"], cwd=path)
        root = output.strip()
        if not root:
            raise GitError(f"{path} is not inside a Git work tree")
        return Path(root)

    def hooks_dir(self, repo: Path) -> Path:
        """Return the hooks directory git uses for ``repo``, honouring worktrees and core.hooksPath."""
        output = self._git(["git", "rev-parse", "--git-path", "hooks"], cwd=repo).strip()
        if not output:
            raise GitError(f"Unable to resolve the hooks directory for {repo}")
        hooks = Path(output)
        return hooks if hooks.is_absolute() else repo / hooks

    def against(self, repo: Path) -> str:
        """Return the commit to diff against, or the empty tree for an initial commit."""
        try:
            self._run(["git", "rev-parse", "--verify", "-q", "HEAD"], cwd=repo, capture_output=True)
        except subprocess.CalledProcessError:
            return EMPTY_TREE
        return "HEAD"

    def staged_files(self, repo: Path) -> StagedFileSet:
        """Return added, copied, modified and renamed paths staged in ``repo``."""
        output = self._git(
            ["git", "diff", "--cached", "--name-only", "--diff-filter=ACMR", "-z"],
            cwd=repo,
        )
        return StagedFileSet.from_paths(_split_nul(output))

    def changed_names(self, repo: Path, against: str) -> List[str]:
        """Return raw names of added, copied, modified and renamed paths relative to ``against``."""
        output = self._git(
            ["git", "diff", "--cached", "--name-only", "--diff-filter=ACMR", "-z", against],
            cwd=repo,
        )
        return _split_nul(output)

    # ------------------------------------------------------------------
    # Internals

    def _git(self, args: List[str], *, cwd: Path) -> str:
        try:
            return self._run(args, cwd=cwd, capture_output=True)
        except FileNotFoundError as exc:
            raise GitError("git executable not found") from exc
        except subprocess.CalledProcessError as exc:
            detail = (exc.stderr or "").strip() if isinstance(exc.stderr, str) else ""
            raise GitError(f"`{' '.join(args)}` failed: {detail or exc}") from exc

    def _run(
        self,
        args: Iterable[str],
        *,
        cwd: Path,
        capture_output: bool = False,
    ) -> str:
        return self._runner(args, cwd=cwd, capture_output=capture_output)

    @staticmethod
    def _default_runner(
        args: Iterable[str],
        *,
        cwd: Path,
        capture_output: bool = False,
    ) -> str:
        completed = subprocess.run(
            list(args),
            cwd=str(cwd),
            check=True,
            text=True,
            encoding="utf-8",
            errors="surrogateescape",
            capture_output=capture_output,
        )
        return completed.stdout if capture_output else ""


def _split_nul(output: str) -> List[str]:
    if "\0" in output:
        return [item for item in output.split("\0") if item]
    return [line for line in output.splitlines() if line]
