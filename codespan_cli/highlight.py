"""Syntax highlighting for terminal output via rich."""

from __future__ import annotations

from rich.console import Console
from rich.syntax import Syntax

from .discovery import is_python_path

THEME = "monokai"


def _lexer_for(path: str, code: str) -> str:
    if is_python_path(path):
        return "python"
    return Syntax.guess_lexer(path, code)


def highlight(code: str, path: str, line_numbers: bool = False, start_line: int = 1) -> str:
    """Return *code* rendered with ANSI colors; line numbers start at *start_line*."""
    if not code:
        return code
    width = max(len(line.expandtabs(8)) for line in code.splitlines() or [""]) + 16
    syntax = Syntax(
        code,
        _lexer_for(path, code),
        theme=THEME,
        line_numbers=line_numbers,
        start_line=start_line,
        background_color="default",
        word_wrap=False,
    )
    console = Console(force_terminal=True, color_system="256", width=max(width, 80), highlight=False)
    with console.capture() as capture:
        console.print(syntax, end="")
    return capture.get().rstrip("\n")
