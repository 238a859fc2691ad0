"""Environment information recorded alongside baselines.

Captures the VCS revision of the working tree and an identifier for
the running interpreter, so a stored baseline can be traced back to
the code and runtime that produced it.
"""

from __future__ import annotations

import logging
import platform
import subprocess
from dataclasses import dataclass
from pathlib import Path

log = logging.getLogger("benchmeter")


@dataclass(frozen=True)
class GitInfo:
    """Revision and branch of a git checkout."""

    commit: str | None
    branch: str | None


def _git(args: list[str], cwd: Path | None) -> str | None:
    try:
        proc = subprocess.run(
            ["git", *args],
            capture_output=True,
            text=True,
            timeout=10,
            cwd=str(cwd) if cwd else None,
        )
    except (subprocess.TimeoutExpired, FileNotFoundError, OSError) as exc:
        log.debug("git %s failed: %s", " ".join(args), exc)
        return None
    if proc.returncode != 0:
        log.debug("git %s exited %d: %s", " ".join(args), proc.returncode, proc.stderr.strip())
        return None
    return proc.stdout.strip() or None


def git_info(cwd: Path | None = None) -> GitInfo | None:
    """Return the current commit and branch, or None outside a checkout.

    A detached HEAD reports a commit with no branch.
    """
    commit = _git(["rev-parse", "HEAD"], cwd)
    if commit is None:
        return None
    branch = _git(["rev-parse", "--abbrev-ref", "HEAD"], cwd)
    if branch == "HEAD":
        branch = None
    return GitInfo(commit=commit, branch=branch)


def runtime_version() -> str:
    """Identifier of the running interpreter, e.g. ``'CPython 3.12.4'``."""
    return f"{platform.python_implementation()} {platform.python_version()}"
