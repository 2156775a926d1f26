"""Best-enclosing-block selection and padded line windows."""

from __future__ import annotations

from typing import Iterable, Optional, Tuple

from .models import Block


def pick_best_enclosing(blocks: Iterable[Block], start: int, end: int) -> Optional[Block]:
    """Return the smallest eligible block containing ``[start, end]``.

    Smallest span wins (most specific); on equal size a function or class is
    preferred over other block kinds, then the earliest start line.
    """
    candidates = [b for b in blocks if b.contains(start, end)]
    if not candidates:
        return None
    return min(candidates, key=lambda b: (b.size, 0 if b.is_definition else 1, b.start_line))


def padded_range(start: int, end: int, pad: int, line_count: int) -> Tuple[int, int]:
    """Expand ``[start, end]`` by *pad* lines on each side, clamped to the file."""
    return max(1, start - pad), min(line_count, end + pad)
