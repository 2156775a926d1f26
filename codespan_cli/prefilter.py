"""Optional ripgrep pre-filter for name queries.

Only narrows the candidate file list; the resolver never relies on it, so
turning it off changes speed, not output.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from typing import List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

# Keep each rg invocation well below typical argv limits.
RG_CHUNK_SIZE = 256


def find_rg() -> Optional[str]:
    return shutil.which("rg")


def rg_prefilter(paths: Sequence[str], needle: str, rg_path: str) -> Tuple[List[str], List[str]]:
    """Keep only the *paths* that contain *needle* literally.

    Returns:
        ``(paths, warnings)``. When rg fails (exit status >= 2) a warning is
        returned and every path is kept.
    """
    hits = set()
    for i in range(0, len(paths), RG_CHUNK_SIZE):
        chunk = list(paths[i:i + RG_CHUNK_SIZE])
        cmd = [rg_path, "--files-with-matches", "--fixed-strings", "--", needle, *chunk]
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, errors="surrogateescape")
        except OSError as exc:
            logger.warning("Could not run rg: %s", exc)
            return list(paths), [f"rg failed ({exc})"]
        if result.returncode >= 2:
            message = f"rg failed (exit {result.returncode})"
            detail = result.stderr.strip()
            if detail:
                message = f"{message}: {detail}"
            return list(paths), [message]
        hits.update(os.path.normpath(line) for line in result.stdout.splitlines() if line)

    kept = [p for p in paths if os.path.normpath(p) in hits]
    logger.debug("rg kept %d of %d file(s) for %r", len(kept), len(paths), needle)
    return kept, []
