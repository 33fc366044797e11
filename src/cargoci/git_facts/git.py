# git.py
# Small wrapper around the Git CLI.
# The runner uses it to resolve $(Build.SourcesDirectory) the way a hosted
# agent would: the root of the checked-out repository.

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Optional


def _git(args: list[str], cwd: Optional[str | Path] = None) -> str:
    """
    Execute a git command and return its stdout as a clean string.

    Args:
        args: List of git arguments (e.g. ["rev-parse", "--show-toplevel"])
        cwd: Optional working directory in which to run the git command.

    Returns:
        Stdout from the git command with surrounding whitespace removed.

    Raises:
        subprocess.CalledProcessError: git exited non-zero.
        FileNotFoundError: git is not installed.
    """
    out = subprocess.check_output(
        ["git", *args],
        cwd=str(cwd) if cwd is not None else None,
        text=True,
        stderr=subprocess.DEVNULL,
    )
    return out.strip()


def repo_root(cwd: Optional[str | Path] = None) -> Path:
    """
    Return the absolute path to the root of the Git repository containing `cwd`.

    Uses git itself as the source of truth rather than guessing from the
    filesystem layout.
    """
    return Path(_git(["rev-parse", "--show-toplevel"], cwd=cwd))


def remote_url(remote: str = "origin", cwd: Optional[str | Path] = None) -> str:
    """Return the fetch URL configured for `remote`."""
    return _git(["remote", "get-url", remote], cwd=cwd)


def repo_name(cwd: Optional[str | Path] = None) -> str:
    """
    Best-effort display name for the repository.

    Prefers the origin URL's last path segment, falls back to the directory name.
    """
    try:
        url = remote_url(cwd=cwd)
        return url.rstrip("/").split("/")[-1].removesuffix(".git")
    except (subprocess.CalledProcessError, FileNotFoundError):
        base = Path(cwd) if cwd is not None else Path(".")
        return base.resolve().name
