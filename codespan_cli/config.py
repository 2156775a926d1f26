"""Configuration paths, defaults and the engine configuration value."""

from __future__ import annotations

import os
import sys
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional

from .errors import UsageError

BASE_DIR = Path(os.environ.get("CODESPAN_HOME", str(Path.home() / ".codespan"))).expanduser()
CONFIG_FILE = BASE_DIR / "config.toml"

PYTHON_SUFFIXES = (".py", ".pyw")

DEFAULT_IGNORE_DIRS = {
    ".git", ".venv", "venv", "__pycache__", "build", "dist",
    ".mypy_cache", ".ruff_cache", "node_modules", ".idea", ".vscode",
}

MAX_CONTEXT_LINES = 5000
DEFAULT_SMART_PADDING = 25
DEFAULT_DIFF_CONTEXT = 20

IMPORT_MODES = ("none", "all", "used")
TYPE_FILTERS = ("py", "all")
PARSER_BACKENDS = ("auto", "tree-sitter", "ast")
COLOR_MODES = ("auto", "always", "never")


@dataclass(frozen=True)
class EngineConfig:
    """Every toggle that influences resolution, passed explicitly to each entry point."""

    include_nested: bool = False
    first_only: bool = False
    import_mode: str = "none"
    context_lines: int = 0
    smart_padding: int = DEFAULT_SMART_PADDING
    diff_context: int = DEFAULT_DIFF_CONTEXT
    type_filter: str = "py"
    parser_backend: str = "auto"
    use_prefilter: bool = True

    def __post_init__(self) -> None:
        if self.import_mode not in IMPORT_MODES:
            raise UsageError(
                f"unknown import mode {self.import_mode!r} (expected one of: {', '.join(IMPORT_MODES)})"
            )
        if self.type_filter not in TYPE_FILTERS:
            raise UsageError(f"unknown --type {self.type_filter!r} (expected 'py' or 'all')")
        if self.parser_backend not in PARSER_BACKENDS:
            raise UsageError(
                f"unknown parser backend {self.parser_backend!r} "
                f"(expected one of: {', '.join(PARSER_BACKENDS)})"
            )
        for name in ("context_lines", "smart_padding", "diff_context"):
            if getattr(self, name) < 0:
                raise UsageError(f"{name} must be a non-negative integer")
        # Oversized context widths are clamped, not rejected.
        if self.context_lines > MAX_CONTEXT_LINES:
            object.__setattr__(self, "context_lines", MAX_CONTEXT_LINES)

    def with_overrides(self, **overrides: Any) -> "EngineConfig":
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _coerce(field_name: str, value: Any) -> Any:
    default = getattr(EngineConfig(), field_name)
    if isinstance(default, bool):
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes", "on"}
        return bool(value)
    if isinstance(default, int):
        try:
            return int(value)
        except (TypeError, ValueError):
            raise UsageError(f"{field_name} requires an integer (got {value!r})") from None
    return str(value)


def engine_config_from_mapping(values: Dict[str, Any]) -> EngineConfig:
    """Build an EngineConfig from loosely typed settings, ignoring unknown keys."""
    known = EngineConfig.__dataclass_fields__
    kwargs = {k: _coerce(k, v) for k, v in values.items() if k in known}
    return EngineConfig(**kwargs)


def load_engine_config() -> EngineConfig:
    """Load defaults from ``[engine]`` in config.toml, then apply environment overrides."""
    from .config_manager import load_engine_section

    values: Dict[str, Any] = dict(load_engine_section())

    diff_context = os.environ.get("CODESPAN_DIFF_CONTEXT")
    if diff_context:
        values["diff_context"] = diff_context
    if os.environ.get("CODESPAN_DISABLE_RG") == "1":
        values["use_prefilter"] = False

    return engine_config_from_mapping(values)


def resolve_color(mode: str, stream: Optional[Any] = None) -> bool:
    """Decide whether output should carry ANSI color."""
    if mode not in COLOR_MODES:
        raise UsageError(f"invalid color mode {mode!r}; use always, never, or auto")
    if (
        mode == "never"
        or os.environ.get("NO_COLOR")
        or os.environ.get("CLICOLOR", "1") == "0"
        or os.environ.get("TERM") == "dumb"
    ):
        return False
    if mode == "always" or os.environ.get("CODESPAN_FORCE_COLOR") == "1":
        return True
    stream = stream if stream is not None else sys.stdout
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())
