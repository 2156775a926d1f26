"""Per-file query resolution.

:class:`SpanResolver` turns one classified :class:`~codespan_cli.query.Query`
into the match set of a single file. Line ranges never need a parse; smart
ranges and ``--at`` patterns use the best enclosing block when the file is
Python and fall back to a padded window otherwise; name, regex and list
queries work over the indexed definitions.
"""

from __future__ import annotations

import logging
from typing import Optional, Pattern, Sequence

from .config import EngineConfig
from .discovery import is_python_path, read_source
from .errors import FileError, ParseError
from .extractor import extract_blocks, import_prefix, source_lines
from .imports_filter import filter_imports
from .models import (
    SPAN_BLOCK,
    SPAN_DEFINITION,
    SPAN_PADDED,
    SPAN_RANGE,
    Definition,
    FileResult,
    ListEntry,
    MatchSpan,
)
from .parser import Parser, PythonSourceParser, parse_module
from .query import QUERY_LIST, QUERY_NAME, QUERY_PATTERN, QUERY_RANGE, QUERY_SMART, Query
from .selector import padded_range, pick_best_enclosing

logger = logging.getLogger(__name__)


def first_matching_line(lines: Sequence[str], pattern: Pattern[str]) -> Optional[int]:
    for number, line in enumerate(lines, start=1):
        if pattern.search(line):
            return number
    return None


def definition_span(definition: Definition) -> MatchSpan:
    return MatchSpan(
        label=definition.qualname,
        start_line=definition.start_line,
        end_line=definition.end_line,
        kind=SPAN_DEFINITION,
        anchor_line=definition.start_line,
        end_col=definition.end_col,
        definition=definition,
    )


class SpanResolver:
    """Resolve one query against individual files."""

    def __init__(self, query: Query, config: EngineConfig, parser: Optional[Parser] = None) -> None:
        self.query = query
        self.config = config
        self.parser = parser or PythonSourceParser(config.parser_backend)

    def resolve_file(self, path: str, candidate: bool = True) -> FileResult:
        """Read and resolve *path*; read and parse failures land in ``error``.

        A path the pre-filter ruled out (``candidate=False``) is only read and
        syntax-checked, so it reports the same errors as a resolved one.
        """
        try:
            source = read_source(path)
        except FileError as exc:
            return FileResult(path, error=f"Error reading {path}: {exc.message}")
        try:
            if not candidate:
                return self._check_only(path, source)
            return self.resolve_source(path, source)
        except ParseError as exc:
            logger.debug("Skipping %s after parse failure", path)
            return FileResult(path, error=f"Error parsing {path}: {exc.message}")

    def resolve_source(self, path: str, source: str) -> FileResult:
        """Resolve the query against already-read *source*.

        Raises:
            ParseError: If the query needs structure and *source* does not parse.
        """
        query = self.query
        lines = source_lines(source)
        is_python = is_python_path(path)

        if query.kind == QUERY_RANGE:
            return FileResult(path, blocks=extract_blocks(path, lines, [self._raw_range(lines)]))

        if query.kind == QUERY_SMART:
            span = self._smart_range(path, source, lines, query.start, query.end, is_python)
            return FileResult(path, blocks=extract_blocks(path, lines, [span]))

        if query.kind == QUERY_PATTERN:
            hit = first_matching_line(lines, query.pattern)
            if hit is None:
                return FileResult(path)
            span = self._smart_range(path, source, lines, hit, hit, is_python, match_line=hit)
            return FileResult(path, blocks=extract_blocks(path, lines, [span]))

        if not is_python:
            return FileResult(path)

        # A file that never mentions the simple name cannot define it.
        if query.kind == QUERY_NAME and self.config.use_prefilter and query.simple_name not in source:
            return self._check_only(path, source)

        index = self.parser.index(source, include_nested=self.config.include_nested, path=path)
        matched = [d for d in index.definitions if query.matches(d)]

        if query.kind == QUERY_LIST:
            return FileResult(path, listing=[ListEntry(d.qualname, d.start_line) for d in matched])

        if self.config.first_only:
            matched = matched[:1]
        if not matched:
            return FileResult(path)

        imports = filter_imports(index, matched, self.config.import_mode)
        prefix = import_prefix(lines, imports)
        spans = [definition_span(d) for d in matched]
        return FileResult(path, blocks=extract_blocks(path, lines, spans, prefix))

    def _check_only(self, path: str, source: str) -> FileResult:
        if self.query.is_structural and is_python_path(path):
            parse_module(source, path)
        return FileResult(path)

    def _raw_range(self, lines: Sequence[str]) -> MatchSpan:
        query = self.query
        context = self.config.context_lines
        start, end = padded_range(query.start, query.end, context, len(lines))
        return MatchSpan(
            label=f"lines {query.start}-{query.end}",
            start_line=start,
            end_line=end,
            kind=SPAN_RANGE,
            requested=(query.start, query.end),
            context=context,
        )

    def _smart_range(
        self,
        path: str,
        source: str,
        lines: Sequence[str],
        start: int,
        end: int,
        is_python: bool,
        match_line: Optional[int] = None,
    ) -> MatchSpan:
        context = self.config.context_lines
        line_count = len(lines)

        if is_python:
            index = self.parser.index(source, include_nested=self.config.include_nested, path=path)
            block = pick_best_enclosing(index.blocks, start, end)
            if block is not None:
                if context > 0:
                    s, e = padded_range(block.start_line, block.end_line, context, line_count)
                    end_col = None
                else:
                    s, e, end_col = block.start_line, block.end_line, block.end_col
                return MatchSpan(
                    label=block.name,
                    start_line=s,
                    end_line=e,
                    kind=SPAN_BLOCK,
                    anchor_line=block.start_line,
                    requested=(start, end),
                    context=context,
                    match_line=match_line,
                    end_col=end_col,
                )
            logger.debug("No enclosing block for %d-%d in %s; padding", start, end, path)

        pad = context if context > 0 else self.config.smart_padding
        s, e = padded_range(start, end, pad, line_count)
        return MatchSpan(
            label=f"lines {start}-{end}",
            start_line=s,
            end_line=e,
            kind=SPAN_PADDED,
            requested=(start, end),
            context=pad,
            match_line=match_line,
        )
