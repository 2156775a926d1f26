"""Query classification and positional-argument splitting.

A query is classified once per invocation from its literal form:

- ``foo`` / ``Class.method`` -- exact name or qualified name
- ``--regex PATTERN`` -- unanchored search over qualified names
- ``lines 10-20`` / ``file.py:10-20`` -- raw line range
- ``~10-20`` / ``file.py:~10-20`` -- smart range (best enclosing block)
- ``--at PATTERN`` -- first matching line, resolved as a smart range
- ``--list`` -- definition listing, optionally filtered by name or regex
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Pattern, Sequence

from .errors import UsageError
from .models import Definition

QUERY_NAME = "name"
QUERY_REGEX = "regex"
QUERY_RANGE = "range"
QUERY_SMART = "smart"
QUERY_PATTERN = "pattern"
QUERY_LIST = "list"

# Kinds that only make sense for structurally parsed files.
STRUCTURAL_KINDS = frozenset({QUERY_NAME, QUERY_REGEX, QUERY_LIST})

_RANGE_RE = re.compile(r"^~?\d+[-–]\d+$")
_FILE_RANGE_RE = re.compile(r"^(.+):(~?\d+[-–]\d+)$")
_GLOB_CHARS = ("*", "?")


@dataclass(frozen=True)
class LineSpec:
    smart: bool
    start: int
    end: int


@dataclass(frozen=True)
class Query:
    """One classified query, shared by every file of a run."""

    kind: str
    target: str = ""
    regex: Optional[Pattern[str]] = None
    pattern: Optional[Pattern[str]] = None
    start: int = 0
    end: int = 0

    @property
    def is_structural(self) -> bool:
        return self.kind in STRUCTURAL_KINDS

    @property
    def simple_name(self) -> str:
        """Last dotted segment of the name query ("" for other kinds)."""
        if self.kind != QUERY_NAME:
            return ""
        return self.target.rsplit(".", 1)[-1]

    def matches(self, definition: Definition) -> bool:
        """Name/regex filter; an unfiltered list query matches everything."""
        if self.regex is not None:
            return bool(self.regex.search(definition.qualname))
        if self.target and "." in self.target:
            return definition.qualname == self.target
        if self.target:
            return definition.name == self.target
        return self.kind == QUERY_LIST


def is_line_range(arg: str) -> bool:
    return bool(_RANGE_RE.match(arg))


def parse_line_spec(spec: str) -> LineSpec:
    """Parse ``S-E`` or ``~S-E`` (en-dash accepted); endpoints are reordered.

    Raises:
        UsageError: If the text is not a range or an endpoint is below 1.
    """
    text = spec.strip()
    smart = text.startswith("~")
    if smart:
        text = text[1:].strip()
    text = text.replace("–", "-")
    m = re.fullmatch(r"(\d+)-(\d+)", text)
    if not m:
        raise UsageError(f"Invalid range: {text}")
    a, b = int(m.group(1)), int(m.group(2))
    if a <= 0 or b <= 0:
        raise UsageError("Line numbers must be >= 1")
    return LineSpec(smart=smart, start=min(a, b), end=max(a, b))


def compile_pattern(pattern: str, option: str = "regex") -> Pattern[str]:
    try:
        return re.compile(pattern)
    except re.error as exc:
        label = "regex" if option == "regex" else f"{option} regex"
        raise UsageError(f"invalid {label}: {pattern}\n  {exc}") from None


def build_query(
    target: Optional[str] = None,
    regex: Optional[str] = None,
    at: Optional[str] = None,
    line_spec: Optional[str] = None,
    list_mode: bool = False,
) -> Query:
    """Validate option combinations and classify the query.

    Raises:
        UsageError: For missing or conflicting query forms and invalid patterns.
    """
    if not (list_mode or regex or at or target or line_spec):
        raise UsageError("Missing FUNCTION_NAME (or use --at / --regex / --list / lines START-END)")

    if at:
        if regex:
            raise UsageError("--at and --regex cannot be used together")
        if list_mode:
            raise UsageError("--at and --list cannot be used together")
        if target:
            raise UsageError("--at replaces QUERY; do not provide both")
        if line_spec:
            raise UsageError("--at and explicit line ranges cannot be used together")
        return Query(kind=QUERY_PATTERN, pattern=compile_pattern(at, "--at"))

    if line_spec:
        spec = parse_line_spec(line_spec)
        return Query(kind=QUERY_SMART if spec.smart else QUERY_RANGE, start=spec.start, end=spec.end)

    compiled = compile_pattern(regex) if regex else None
    if list_mode:
        return Query(kind=QUERY_LIST, target=target or "", regex=compiled)
    if compiled is not None:
        return Query(kind=QUERY_REGEX, regex=compiled)
    return Query(kind=QUERY_NAME, target=target or "")


@dataclass
class Positionals:
    """Positional arguments split into query text, line spec and roots."""

    target: str = ""
    line_spec: str = ""
    roots: List[str] = field(default_factory=list)
    list_mode: bool = False


def split_positionals(
    args: Sequence[str],
    has_regex: bool = False,
    has_at: bool = False,
    list_mode: bool = False,
    exists: Callable[[str], bool] = os.path.exists,
) -> Positionals:
    """Split free-form positional arguments the way users type them.

    Rules, in order: a ``lines S-E`` keyword pair; ``file:S-E`` (the file
    must exist, one range at most); existing paths; a bare range before any
    query; glob-looking words; otherwise the first word is the query and the
    rest are roots. Roots without any query switch to list mode.
    """
    out = Positionals(list_mode=list_mode)
    skip = set()

    for i, arg in enumerate(args[:-1]):
        if arg == "lines" and is_line_range(args[i + 1]):
            out.line_spec = args[i + 1]
            skip = {i, i + 1}
            break

    for i, arg in enumerate(args):
        if i in skip:
            continue

        m = _FILE_RANGE_RE.match(arg)
        if m:
            filename, spec = m.group(1), m.group(2)
            if not exists(filename):
                raise UsageError(f"file not found in 'file:range' syntax: {filename}")
            if out.line_spec:
                raise UsageError("multiple line ranges specified")
            out.line_spec = spec
            out.roots.append(filename)
            continue

        if exists(arg):
            out.roots.append(arg)
            continue

        has_mode = has_regex or has_at or out.list_mode or bool(out.target) or bool(out.line_spec)
        if not has_mode and is_line_range(arg):
            out.line_spec = arg
            continue

        if has_mode:
            if is_line_range(arg):
                raise UsageError(f"line range '{arg}' must be preceded by 'lines' (or be the first arg).")
            out.roots.append(arg)
        elif any(ch in arg for ch in _GLOB_CHARS):
            out.roots.append(arg)
        else:
            out.target = arg

    if out.roots and not (out.target or has_regex or has_at or out.line_spec):
        out.list_mode = True
    return out
