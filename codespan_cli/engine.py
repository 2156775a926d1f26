"""Run-level orchestration for ``show``/``list`` and ``diff``.

Files are processed one at a time, in discovery order. Per-file read and
parse failures are collected, never raised, so one bad file cannot stop a
run; only :class:`~codespan_cli.errors.UsageError` aborts.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence, Tuple

from .config import EngineConfig, PYTHON_SUFFIXES
from .diff_mapper import ContextRange, clamp_changed_lines, diff_context_ranges, map_changed_lines
from .discovery import read_source
from .errors import FileError, ParseError
from .extractor import extract_span, source_lines
from .git_diff import is_binary_patch, parse_changed_lines
from .models import Definition, FileResult
from .parser import Parser, PythonSourceParser
from .prefilter import find_rg, rg_prefilter
from .query import QUERY_NAME, Query
from .resolver import SpanResolver, definition_span

logger = logging.getLogger(__name__)

EXIT_MATCH = 0
EXIT_NO_MATCH = 1
EXIT_ERROR = 2


def exit_status(any_match: bool, had_error: bool) -> int:
    """0 when anything matched, else 2 if some file failed, else 1."""
    if any_match:
        return EXIT_MATCH
    return EXIT_ERROR if had_error else EXIT_NO_MATCH


@dataclass
class RunSummary:
    any_match: bool = False
    had_error: bool = False

    def record(self, result: FileResult) -> None:
        if result.error:
            self.had_error = True
        if result.has_match:
            self.any_match = True

    @property
    def exit_code(self) -> int:
        return exit_status(self.any_match, self.had_error)


@dataclass(frozen=True)
class FunctionHit:
    definition: Definition
    text: str

    @property
    def label(self) -> str:
        return f"function {self.definition.qualname}"


@dataclass
class DiffFileReport:
    """Everything ``cspan diff`` prints for one changed file."""

    path: str
    skipped: Optional[str] = None
    notes: List[str] = field(default_factory=list)
    functions: List[FunctionHit] = field(default_factory=list)
    excerpts: List[ContextRange] = field(default_factory=list)
    lines: List[str] = field(default_factory=list)
    structured: bool = False

    @property
    def show_whole_file(self) -> bool:
        return self.skipped is None and not (self.notes or self.functions or self.excerpts)


class SpanEngine:
    """Shared entry point for every command; holds the config and one parser."""

    def __init__(self, config: EngineConfig, parser: Optional[Parser] = None) -> None:
        self.config = config
        self.parser = parser or PythonSourceParser(config.parser_backend)

    # ------------------------------------------------------------------
    # show / list
    # ------------------------------------------------------------------

    def candidate_paths(self, paths: Sequence[str], query: Query) -> Tuple[List[str], List[str]]:
        """Apply the rg pre-filter where it is allowed; returns ``(paths, warnings)``."""
        if (
            query.kind != QUERY_NAME
            or not self.config.use_prefilter
            or self.config.type_filter != "py"
            or not paths
        ):
            return list(paths), []
        rg_path = find_rg()
        if rg_path is None:
            return list(paths), []
        return rg_prefilter(paths, query.simple_name, rg_path)

    def show(
        self,
        paths: Sequence[str],
        query: Query,
        candidates: Optional[Sequence[str]] = None,
    ) -> Iterator[FileResult]:
        """Resolve *paths* in order.

        Paths missing from *candidates* (the pre-filter result) are still read
        and syntax-checked, so filtering never changes errors or exit status.
        """
        keep = None if candidates is None else {os.path.normpath(p) for p in candidates}
        resolver = SpanResolver(query, self.config, self.parser)
        for path in paths:
            candidate = keep is None or os.path.normpath(path) in keep
            yield resolver.resolve_file(path, candidate=candidate)

    # ------------------------------------------------------------------
    # diff
    # ------------------------------------------------------------------

    def analyze_diff(self, path: str, patch: str) -> DiffFileReport:
        """Map the hunks of *patch* onto *path* as it exists on disk."""
        report = DiffFileReport(path)
        if not os.path.isfile(path):
            report.skipped = f"{path} (file not found - likely deleted)"
            return report
        if not patch.strip():
            return report
        if is_binary_patch(patch):
            report.notes.append("Binary diff (no text hunks)")
            return report

        changed = parse_changed_lines(patch)
        if not changed:
            report.notes.append("No text hunks found")
            return report

        try:
            source = read_source(path)
        except FileError as exc:
            report.notes.append(f"Could not read file: {exc.message}")
            return report

        lines = source_lines(source)
        report.lines = lines
        if not lines:
            report.notes.append("Empty file")
            return report

        changed = clamp_changed_lines(changed, len(lines))
        context = self.config.diff_context

        if path.endswith(PYTHON_SUFFIXES):
            try:
                index = self.parser.index(source, include_nested=True, path=path)
            except ParseError as exc:
                report.notes.append(f"Python parse failed: {exc.message}")
            else:
                mapping = map_changed_lines(changed, index.definitions, index.classes)
                report.structured = True
                report.functions = [
                    FunctionHit(d, extract_span(lines, definition_span(d))) for d in mapping.definitions
                ]
                report.excerpts = mapping.context_ranges(context, len(lines))
                return report

        report.excerpts = diff_context_ranges(changed, context, len(lines))
        return report
