"""Typer-based CLI for codespan: print exactly the code you asked for."""

from __future__ import annotations

import logging
import sys
from typing import List, Optional

import typer

from . import __version__, config
from .cli_groups import config_grp
from .discovery import expand_roots, read_source
from .engine import DiffFileReport, RunSummary, SpanEngine
from .errors import CodespanError, UsageError
from .extractor import numbered_excerpt, render_blocks, render_listing, source_lines
from .git_diff import GitError, changed_files, file_patch, render_git_diff
from .highlight import highlight
from .models import FileResult
from .query import QUERY_NAME, Query, build_query, split_positionals

app = typer.Typer(
    help="✂️  codespan: print the exact span of code you asked for.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Register configuration commands
app.add_typer(config_grp, name="config")

RULE = "─" * 49


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"codespan v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Log engine decisions to stderr."),
):
    """codespan: extract functions, classes, line ranges and diff context from Python code."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(levelname)s %(name)s: %(message)s",
            stream=sys.stderr,
        )


# ===================================================================
# Helpers
# ===================================================================

def _fail(message: str) -> None:
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(code=2)


def _engine_config(**overrides) -> config.EngineConfig:
    try:
        return config.load_engine_config().with_overrides(**overrides)
    except UsageError as exc:
        _fail(str(exc))


def _use_color(mode: str) -> bool:
    try:
        return config.resolve_color(mode)
    except UsageError as exc:
        _fail(str(exc))


def _echo_result(result: FileResult, color: bool) -> None:
    if result.error:
        typer.echo(result.error, err=True)
    if result.listing:
        typer.echo(render_listing(result.path, result.listing), nl=False)
        return
    if not color:
        if result.blocks:
            typer.echo(render_blocks(result.blocks), nl=False)
        return
    for block in result.blocks:
        typer.echo(block.header)
        typer.echo(highlight(block.text, block.path))
        typer.echo("")


def _run(roots: List[str], query: Query, cfg: config.EngineConfig, color: bool) -> None:
    paths, warnings = expand_roots(roots, cfg.type_filter)
    for warning in warnings:
        typer.echo(f"Warning: {warning}", err=True)

    try:
        engine = SpanEngine(cfg)
    except UsageError as exc:
        _fail(str(exc))

    candidates, prefilter_warnings = engine.candidate_paths(paths, query)
    for warning in prefilter_warnings:
        typer.echo(f"Warning: {warning}", err=True)

    summary = RunSummary()
    for result in engine.show(paths, query, candidates):
        summary.record(result)
        _echo_result(result, color)

    if not summary.any_match:
        if query.kind == QUERY_NAME and cfg.type_filter == "py" and sys.stderr.isatty():
            typer.echo("Tip: run with --list to see available definitions.", err=True)
    raise typer.Exit(code=summary.exit_code)


# ===================================================================
# show / list
# ===================================================================

@app.command("show")
def show(
    args: Optional[List[str]] = typer.Argument(
        None,
        help="QUERY and FILES/DIRS/GLOBS, e.g. 'foo app.py', 'C.run src/', 'lines 10-20 a.py', 'app.py:~40-60'.",
    ),
    regex: Optional[str] = typer.Option(None, "--regex", "-r", help="Match qualified names by regex."),
    at: Optional[str] = typer.Option(
        None, "--at", help="Extract the block around the first line matching this regex."
    ),
    list_mode: bool = typer.Option(False, "--list", "-l", help="List definitions instead of printing them."),
    first: bool = typer.Option(False, "--first", help="Print only the first match per file."),
    include_nested: bool = typer.Option(False, "--all", "-a", help="Include nested functions."),
    imports: Optional[str] = typer.Option(
        None, "--imports", "-i", help="Print imports too: none, all or used."
    ),
    context: Optional[int] = typer.Option(
        None, "--context", "-C", help="Lines of context around line-mode matches (max 5000)."
    ),
    type_filter: Optional[str] = typer.Option(None, "--type", "-t", help="File filter: py (default) or all."),
    color: str = typer.Option("auto", "--color", help="Color output: auto, always or never."),
    no_prefilter: bool = typer.Option(False, "--no-prefilter", help="Do not narrow files with ripgrep."),
):
    """Print functions, methods, line ranges or the block around a match."""
    cfg = _engine_config(
        include_nested=True if include_nested else None,
        first_only=True if first else None,
        import_mode=imports,
        context_lines=context,
        type_filter=type_filter,
        use_prefilter=False if no_prefilter else None,
    )
    use_color = _use_color(color)

    try:
        positionals = split_positionals(
            args or [],
            has_regex=bool(regex),
            has_at=bool(at),
            list_mode=list_mode,
        )
        query = build_query(
            target=positionals.target or None,
            regex=regex,
            at=at,
            line_spec=positionals.line_spec or None,
            list_mode=positionals.list_mode,
        )
    except UsageError as exc:
        _fail(str(exc))

    if not positionals.roots:
        typer.echo("Error: Missing FILES/ROOTS", err=True)
        typer.echo("Run with --help for usage information.", err=True)
        raise typer.Exit(code=2)

    _run(positionals.roots, query, cfg, use_color)


@app.command("list")
def list_definitions(
    roots: Optional[List[str]] = typer.Argument(None, help="Files, directories or globs (default: .)."),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Only names equal to this (or Class.method)."),
    regex: Optional[str] = typer.Option(None, "--regex", "-r", help="Only qualified names matching this regex."),
    include_nested: bool = typer.Option(False, "--all", "-a", help="Include nested functions."),
    type_filter: Optional[str] = typer.Option(None, "--type", "-t", help="File filter: py (default) or all."),
):
    """List the definitions available in the given files."""
    cfg = _engine_config(
        include_nested=True if include_nested else None,
        type_filter=type_filter,
    )
    try:
        query = build_query(target=name, regex=regex, list_mode=True)
    except UsageError as exc:
        _fail(str(exc))
    _run(roots or ["."], query, cfg, color=False)


# ===================================================================
# diff
# ===================================================================

def _echo_excerpt(report: DiffFileReport, label: str, start: int, end: int, color: bool) -> None:
    typer.echo(f"--- {label} (lines {start}-{end}) ---")
    if color:
        code = "".join(report.lines[start - 1:end]).rstrip("\n")
        typer.echo(highlight(code, report.path, line_numbers=True, start_line=start))
    else:
        typer.echo(numbered_excerpt(report.lines, start, end))
    typer.echo("")


def _echo_diff_report(report: DiffFileReport, whole_file: bool, color: bool) -> None:
    if whole_file or report.show_whole_file:
        if not report.lines:
            try:
                report.lines = source_lines(read_source(report.path))
            except CodespanError as exc:
                typer.echo(f"Notes:  Could not read file: {exc}")
                return
        if report.lines:
            _echo_excerpt(report, "whole file", 1, len(report.lines), color)
        return

    for note in report.notes:
        typer.echo(f"Notes:  {note}")
    if report.notes:
        typer.echo("")

    for hit in report.functions:
        definition = hit.definition
        typer.echo(f"--- {hit.label} (lines {definition.start_line}-{definition.end_line}) ---")
        typer.echo(f"==> {report.path}:{definition.qualname} (line {definition.start_line}) <==")
        typer.echo(highlight(hit.text, report.path) if color else hit.text)
        typer.echo("")

    for excerpt in report.excerpts:
        _echo_excerpt(report, excerpt.label, excerpt.start_line, excerpt.end_line, color)


@app.command("diff")
def diff(
    revspec: Optional[List[str]] = typer.Argument(None, help="git diff revisions, e.g. HEAD or main.."),
    cached: bool = typer.Option(False, "--cached", help="Use staged changes."),
    whole_file: bool = typer.Option(False, "--whole-file", "-w", help="Print every changed file in full."),
    show_diff: bool = typer.Option(False, "--diff", help="Also print the git diff of each file."),
    context: Optional[int] = typer.Option(None, "--context", "-C", help="Lines of context around changes."),
    color: str = typer.Option("auto", "--color", help="Color output: auto, always or never."),
):
    """Show the functions and context touched by a git diff."""
    cfg = _engine_config(diff_context=context)
    use_color = _use_color(color)
    revspec = revspec or []

    try:
        files = changed_files(revspec, cached=cached)
        engine = SpanEngine(cfg)
    except (GitError, UsageError) as exc:
        _fail(str(exc))

    if not files:
        shown = " ".join((["--cached"] if cached else []) + revspec)
        typer.echo(f"No changes found for: git diff {shown}".rstrip())
        typer.echo("Try: cspan diff --cached")
        raise typer.Exit(code=0)

    typer.echo(f"Showing {len(files)} changed file(s):")
    for path in files:
        typer.echo(f"   {path}")
    typer.echo(RULE)

    for path in files:
        typer.echo("")
        typer.echo(f"===== {path} =====")
        report = engine.analyze_diff(path, file_patch(path, revspec, cached=cached))
        if report.skipped:
            typer.echo(f"SKIPPED: {report.skipped}")
            continue
        typer.echo("")

        if show_diff:
            typer.echo("--- Git Diff ---")
            typer.echo(render_git_diff(path, revspec, cached=cached, color=use_color).rstrip("\n"))
            typer.echo("")

        _echo_diff_report(report, whole_file, use_color)

    typer.echo(f"Done! {len(files)} files shown.")


if __name__ == "__main__":
    app()
