"""Span extraction and deterministic plain-text rendering."""

from __future__ import annotations

import io
from typing import Iterable, List, Optional, Sequence

from .models import (
    SPAN_BLOCK,
    SPAN_DEFINITION,
    SPAN_PADDED,
    ExtractedBlock,
    Import,
    ListEntry,
    MatchSpan,
)

IMPORT_DELIMITER = "#" * 20
MIN_LIST_COLUMN = 40


def source_lines(source: str) -> List[str]:
    """Split *source* into lines (endings kept) the way the parsers count them."""
    return io.StringIO(source, newline="").readlines()


def slice_lines(lines: Sequence[str], start: int, end: int, end_col: Optional[int] = None) -> str:
    """Return lines ``start..end`` verbatim, trimming the last one at *end_col*.

    *end_col* is a UTF-8 byte offset, as reported by both parser backends.
    Anything after the node's end on its last physical line (a trailing
    comment, for instance) is left out of the extracted text.
    """
    if start < 1:
        start = 1
    seg = list(lines[start - 1:end])
    if not seg:
        return ""
    if end_col is not None and end <= len(lines):
        raw = seg[-1].encode("utf-8", errors="surrogatepass")
        seg[-1] = raw[:end_col].decode("utf-8", errors="replace")
    return "".join(seg)


def extract_span(lines: Sequence[str], span: MatchSpan) -> str:
    return slice_lines(lines, span.start_line, span.end_line, span.end_col).rstrip("\n")


def import_prefix(lines: Sequence[str], imports: Iterable[Import]) -> str:
    """Imports text followed by the visual delimiter, or "" when there are none."""
    text = "\n".join(
        slice_lines(lines, imp.start_line, imp.end_line, imp.end_col).rstrip() for imp in imports
    )
    if not text:
        return ""
    return f"{text}\n\n{IMPORT_DELIMITER}\n\n"


def span_header(path: str, span: MatchSpan) -> str:
    if span.kind == SPAN_DEFINITION:
        anchor = span.anchor_line or span.start_line
        return f"==> {path}:{span.label} (line {anchor}) <=="

    if span.kind == SPAN_BLOCK:
        anchor = span.anchor_line or span.start_line
        match = f"; match line {span.match_line}" if span.match_line else ""
        ctx = f" (+{span.context} context)" if span.context else ""
        return f"==> {path}:{span.label} (line {anchor}{match}){ctx} <=="

    match = f" (match line {span.match_line})" if span.match_line else ""
    if span.kind == SPAN_PADDED:
        return f"==> {path}:{span.label} (+{span.context} context){match} (padded) <=="
    ctx = f" (+{span.context} context)" if span.context else ""
    return f"==> {path}:{span.label}{ctx}{match} <=="


def extract_blocks(
    path: str,
    lines: Sequence[str],
    spans: Sequence[MatchSpan],
    prefix: str = "",
) -> List[ExtractedBlock]:
    """Extract every span; *prefix* (imports) is attached to the first one only."""
    blocks: List[ExtractedBlock] = []
    for i, span in enumerate(spans):
        text = extract_span(lines, span)
        if i == 0 and prefix:
            text = prefix + text
        blocks.append(ExtractedBlock(
            path=path,
            label=span.label,
            start_line=span.start_line,
            end_line=span.end_line,
            header=span_header(path, span),
            text=text,
        ))
    return blocks


def render_blocks(blocks: Iterable[ExtractedBlock]) -> str:
    return "".join(f"{block.header}\n{block.text}\n\n" for block in blocks)


def render_listing(path: str, entries: Sequence[ListEntry]) -> str:
    """One aligned row per definition; the column width adapts to this file."""
    longest = max((len(e.qualname) for e in entries), default=0)
    width = max(longest + 4, MIN_LIST_COLUMN)
    rows = "".join(f"{e.qualname:<{width}} line {e.start_line}\n" for e in entries)
    return f"==> {path} <==\n{rows}\n"


def numbered_excerpt(lines: Sequence[str], start: int, end: int) -> str:
    """Plain numbered excerpt using real file line numbers."""
    out = []
    for number in range(max(1, start), min(end, len(lines)) + 1):
        text = lines[number - 1].rstrip("\r\n")
        out.append(f"{number:<6}\t{text}")
    return "\n".join(out)
