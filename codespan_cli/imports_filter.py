"""Import-usage filter.

``used`` mode is a heuristic: it keeps imports whose bound names appear as
root identifiers inside the selected definitions, and always keeps wildcard
imports because their bindings cannot be known statically. Dynamic attribute
access is missed; shadowed names may over-include.
"""

from __future__ import annotations

from typing import Iterable, List, Set

from .errors import UsageError
from .models import Definition, Import, SourceIndex


def used_root_names(index: SourceIndex, definitions: Iterable[Definition]) -> Set[str]:
    names: Set[str] = set()
    for definition in definitions:
        names |= index.root_names(definition)
    return names


def filter_imports(index: SourceIndex, selected: Iterable[Definition], mode: str) -> List[Import]:
    """Return the imports to print alongside *selected* for the given mode."""
    if mode == "none":
        return []
    imports = sorted(index.imports, key=lambda i: (i.start_line, i.start_col, i.end_line))
    if mode == "all":
        return imports
    if mode != "used":
        raise UsageError(f"unknown import mode {mode!r}")

    used = used_root_names(index, selected)
    return [imp for imp in imports if imp.is_wildcard or imp.provided_names & used]
