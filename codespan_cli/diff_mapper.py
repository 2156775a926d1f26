"""Map changed line numbers onto the definitions that contain them."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .models import Definition

MODULE_LABEL = "module"
DIFF_CONTEXT_LABEL = "diff context"


@dataclass(frozen=True)
class ContextRange:
    label: str
    start_line: int
    end_line: int


def merge_ranges(ranges: Iterable[Tuple[int, int]]) -> List[Tuple[int, int]]:
    """Merge overlapping or adjacent (gap <= 1) intervals, ascending."""
    merged: List[List[int]] = []
    for start, end in sorted(ranges):
        if merged and start <= merged[-1][1] + 1:
            merged[-1][1] = max(merged[-1][1], end)
        else:
            merged.append([start, end])
    return [(a, b) for a, b in merged]


def ranges_around(lines: Iterable[int], context: int, line_count: int) -> List[Tuple[int, int]]:
    """Pad every line by *context* on both sides, clamp to the file, merge."""
    return merge_ranges(
        (max(1, ln - context), min(line_count, ln + context)) for ln in lines
    )


def clamp_changed_lines(lines: Iterable[int], line_count: int) -> List[int]:
    """Sorted, deduplicated line numbers clamped to ``[1, line_count]``."""
    if line_count < 1:
        return []
    return sorted({min(max(ln, 1), line_count) for ln in lines})


def innermost(spans: Sequence[Definition], line: int) -> Optional[Definition]:
    """Smallest span containing *line*; ties go to the earlier start, then the deeper node."""
    candidates = [s for s in spans if s.contains_line(line)]
    if not candidates:
        return None
    return min(candidates, key=lambda s: (s.end_line - s.start_line, s.start_line, -s.depth))


@dataclass
class DiffMapping:
    """Changed lines partitioned into definitions and labelled leftovers."""

    definition_lines: Dict[Definition, List[int]] = field(default_factory=dict)
    other_lines: Dict[str, List[int]] = field(default_factory=dict)

    @property
    def definitions(self) -> List[Definition]:
        return sorted(self.definition_lines, key=lambda d: (d.start_line, d.end_line, d.qualname))

    def context_ranges(self, context: int, line_count: int) -> List[ContextRange]:
        out: List[ContextRange] = []
        for label, lines in self.other_lines.items():
            for start, end in ranges_around(sorted(set(lines)), context, line_count):
                out.append(ContextRange(label, start, end))
        return out


def map_changed_lines(
    changed: Iterable[int],
    definitions: Sequence[Definition],
    classes: Sequence[Definition] = (),
) -> DiffMapping:
    """Bucket each changed line under its innermost definition, class or the module.

    A definition is recorded once however many changed lines fall inside it.
    Lines outside every definition are grouped as ``class <qualname>`` for
    the innermost enclosing class, or ``module`` otherwise.
    """
    mapping = DiffMapping()
    for line in changed:
        definition = innermost(definitions, line)
        if definition is not None:
            mapping.definition_lines.setdefault(definition, []).append(line)
            continue

        container = innermost(classes, line)
        label = f"class {container.qualname}" if container is not None else MODULE_LABEL
        mapping.other_lines.setdefault(label, []).append(line)
    return mapping


def diff_context_ranges(changed: Iterable[int], context: int, line_count: int) -> List[ContextRange]:
    """Structure-agnostic view: padded, merged ranges around every changed line."""
    return [
        ContextRange(DIFF_CONTEXT_LABEL, start, end)
        for start, end in ranges_around(changed, context, line_count)
    ]
