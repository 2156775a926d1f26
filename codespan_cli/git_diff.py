"""Thin wrapper around ``git diff`` for changed files and hunk headers."""

from __future__ import annotations

import logging
import os
import re
import subprocess
from typing import List, Optional, Sequence

from .errors import CodespanError

logger = logging.getLogger(__name__)

HUNK_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@", re.M)

# Git and anything it spawns must never page.
NO_PAGER_ENV = {"PAGER": "cat", "GIT_PAGER": "cat", "LESS": "FRX"}


class GitError(CodespanError):
    """git is missing or could not be run."""


def parse_changed_lines(patch: str) -> List[int]:
    """New-side line numbers touched by the hunks of a ``--unified=0`` patch.

    A zero-count hunk (pure deletion) contributes its start line as the
    insertion point.
    """
    changed = set()
    for m in HUNK_RE.finditer(patch):
        new_start = int(m.group(3))
        new_count = int(m.group(4) or "1")
        if new_count == 0:
            changed.add(new_start)
        else:
            changed.update(range(new_start, new_start + new_count))
    return sorted(changed)


def is_binary_patch(patch: str) -> bool:
    return any(
        line.startswith("Binary files ") or line == "GIT binary patch"
        for line in patch.splitlines()
    )


def _run_git(args: Sequence[str], cwd: Optional[str] = None) -> subprocess.CompletedProcess:
    env = dict(os.environ, **NO_PAGER_ENV)
    try:
        return subprocess.run(
            ["git", "--no-pager", *args],
            capture_output=True,
            cwd=cwd,
            env=env,
        )
    except OSError as exc:
        raise GitError(f"could not run git: {exc}") from exc


def _diff_args(revspec: Sequence[str], cached: bool) -> List[str]:
    return (["--cached"] if cached else []) + list(revspec)


def changed_files(revspec: Sequence[str] = (), cached: bool = False, cwd: Optional[str] = None) -> List[str]:
    """Paths (relative to *cwd*) changed by ``git diff [--cached] REVSPEC``."""
    result = _run_git(["diff", "--name-only", "-z", "--relative", *_diff_args(revspec, cached)], cwd)
    if result.returncode != 0:
        logger.debug("git diff --name-only failed: %s", result.stderr.decode("utf-8", "replace").strip())
        return []
    names = result.stdout.decode("utf-8", "surrogateescape").split("\0")
    return [name for name in names if name]


def file_patch(path: str, revspec: Sequence[str] = (), cached: bool = False, cwd: Optional[str] = None) -> str:
    """Zero-context patch for one file, or "" when git reports nothing."""
    args = ["diff", "--unified=0", "--no-color", *_diff_args(revspec, cached), "--", path]
    result = _run_git(args, cwd)
    return result.stdout.decode("utf-8", "replace")


def render_git_diff(
    path: str,
    revspec: Sequence[str] = (),
    cached: bool = False,
    color: bool = False,
    cwd: Optional[str] = None,
) -> str:
    """Full ``git diff`` output for one file, as shown by ``--diff``."""
    color_arg = "--color=always" if color else "--no-color"
    result = _run_git(["diff", color_arg, *_diff_args(revspec, cached), "--", path], cwd)
    return result.stdout.decode("utf-8", "replace")
