"""Exception hierarchy shared by the engine and the CLI."""

from __future__ import annotations

from typing import Optional


class CodespanError(Exception):
    """Base class for every error raised by codespan."""


class UsageError(CodespanError):
    """Bad query syntax, invalid regex or conflicting modes. Aborts the run."""


class FileError(CodespanError):
    """A single file could not be read or parsed. The run continues."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path
        self.message = message


class ParseError(FileError):
    """Source text could not be structurally parsed."""

    def __init__(self, message: str, path: str = "<source>", line: Optional[int] = None) -> None:
        super().__init__(path, message)
        self.line = line
