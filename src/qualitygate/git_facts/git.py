# git.py
# Small, focused wrapper around the Git CLI.
# Hook installation goes through here so the rest of the
# codebase never calls subprocess("git ...") directly.

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Optional


def _git(args: list[str], cwd: Optional[str | Path] = None) -> str:
    """
    Execute a git command and return its stdout as a clean string.

    Args:
        args: List of git arguments (e.g. ["rev-parse", "--git-path", "hooks"])
        cwd: Optional working directory in which to run the git command.

    Returns:
        Stdout from the git command with surrounding whitespace removed.

    Raises:
        subprocess.CalledProcessError: git exited non-zero (e.g. not a repo).
        FileNotFoundError: git is not installed.
    """
    out = subprocess.check_output(
        ["git", *args],
        cwd=str(cwd) if cwd is not None else None,
        text=True,
        stderr=subprocess.PIPE,
    )
    return out.strip()


def hooks_dir(cwd: Optional[str | Path] = None) -> Path:
    """
    Directory git reads hooks from.

    Honours core.hooksPath and worktrees, which a hard-coded
    ``.git/hooks`` would not.
    """
    path = Path(_git(["rev-parse", "--git-path", "hooks"], cwd=cwd))
    if not path.is_absolute():
        base = Path(cwd) if cwd is not None else Path.cwd()
        path = (base / path).resolve()
    return path
