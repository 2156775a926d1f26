"""File discovery: explicit files, directory walks and glob expansion."""

from __future__ import annotations

import glob
import logging
import os
import tokenize
from typing import Iterator, List, Sequence, Tuple

from .config import DEFAULT_IGNORE_DIRS, PYTHON_SUFFIXES
from .errors import FileError

logger = logging.getLogger(__name__)

GLOB_CHARS = ("*", "?", "[")


def is_python_path(path: str) -> bool:
    return path.endswith(PYTHON_SUFFIXES)


def is_glob(arg: str) -> bool:
    return any(ch in arg for ch in GLOB_CHARS)


def _keep(path: str, type_filter: str) -> bool:
    return type_filter != "py" or is_python_path(path)


def walk_directory(root: str, type_filter: str = "py") -> Iterator[str]:
    """Yield files under *root* in sorted order, pruning ignored directories."""
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in DEFAULT_IGNORE_DIRS)
        for name in sorted(filenames):
            full_path = os.path.join(dirpath, name)
            if _keep(full_path, type_filter):
                yield full_path


def expand_roots(roots: Sequence[str], type_filter: str = "py") -> Tuple[List[str], List[str]]:
    """Expand roots into an ordered, deduplicated file list.

    Args:
        roots: Files, directories or glob patterns, in command-line order
        type_filter: ``py`` keeps only Python files from walks and globs

    Returns:
        ``(paths, warnings)``. Explicitly named files are always kept; a
        missing root or an empty glob produces a warning instead of a path.
    """
    paths: List[str] = []
    warnings: List[str] = []

    for root in roots:
        if os.path.isfile(root):
            paths.append(root)
        elif os.path.isdir(root):
            paths.extend(walk_directory(root, type_filter))
        elif is_glob(root):
            expanded = sorted(glob.glob(root, recursive=True))
            if not expanded:
                warnings.append(f"glob matched no files: {root}")
                continue
            for match in expanded:
                if os.path.isfile(match):
                    if _keep(match, type_filter):
                        paths.append(match)
                elif os.path.isdir(match):
                    paths.extend(walk_directory(match, type_filter))
        else:
            warnings.append(f"file not found: {root}")

    seen = set()
    deduped: List[str] = []
    for path in paths:
        key = os.path.abspath(path)
        if key in seen:
            continue
        seen.add(key)
        deduped.append(path)

    logger.debug("Discovered %d file(s) from %d root(s)", len(deduped), len(roots))
    return deduped, warnings


def read_source(path: str) -> str:
    """Read a source file honouring its PEP 263 encoding declaration.

    Raises:
        FileError: If the file cannot be read or decoded.
    """
    try:
        with tokenize.open(path) as f:
            return f.read()
    except (OSError, SyntaxError, UnicodeDecodeError) as exc:
        raise FileError(path, str(exc)) from exc
