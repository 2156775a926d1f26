"""Core data models shared by indexing, resolution and formatting layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, FrozenSet, List, Optional, Set, Tuple

# Block kinds that count as declarations when ranking enclosing blocks.
DEFINITION_KINDS = frozenset({"function", "class"})

# MatchSpan kinds
SPAN_DEFINITION = "definition"
SPAN_BLOCK = "block"
SPAN_RANGE = "range"
SPAN_PADDED = "padded"


@dataclass(frozen=True)
class Definition:
    qualname: str
    name: str
    start_line: int
    end_line: int
    is_async: bool = False
    kind: str = "function"
    start_col: int = 0
    end_col: Optional[int] = None
    depth: int = 0
    node: Any = field(default=None, compare=False, repr=False, hash=False)

    @property
    def span(self) -> Tuple[int, int]:
        return (self.start_line, self.end_line)

    @property
    def position(self) -> Tuple[int, int, int, int]:
        """Full start/end position used for ordering and exact-duplicate checks."""
        end_col = self.end_col if self.end_col is not None else 0
        return (self.start_line, self.start_col, self.end_line, end_col)

    def contains_line(self, line: int) -> bool:
        return self.start_line <= line <= self.end_line


@dataclass(frozen=True)
class Import:
    start_line: int
    end_line: int
    provided_names: FrozenSet[str]
    start_col: int = 0
    end_col: Optional[int] = None

    @property
    def is_wildcard(self) -> bool:
        return "*" in self.provided_names


@dataclass(frozen=True)
class Block:
    """A structural node eligible for best-enclosing-block selection."""

    kind: str
    name: str
    start_line: int
    end_line: int
    end_col: Optional[int] = None

    @property
    def is_definition(self) -> bool:
        return self.kind in DEFINITION_KINDS

    @property
    def size(self) -> int:
        return self.end_line - self.start_line

    def contains(self, start: int, end: int) -> bool:
        return self.start_line <= start and self.end_line >= end


@dataclass
class SourceIndex:
    """Everything one parse pass learns about a single file."""

    definitions: List[Definition]
    classes: List[Definition]
    imports: List[Import]
    blocks: List[Block]
    backend: str
    name_collector: Callable[[Any], Set[str]] = field(repr=False, default=lambda node: set())

    def root_names(self, definition: Definition) -> Set[str]:
        """Root identifiers referenced anywhere inside *definition*."""
        if definition.node is None:
            return set()
        return self.name_collector(definition.node)


@dataclass(frozen=True)
class MatchSpan:
    label: str
    start_line: int
    end_line: int
    kind: str = SPAN_DEFINITION
    anchor_line: Optional[int] = None
    requested: Optional[Tuple[int, int]] = None
    context: int = 0
    match_line: Optional[int] = None
    end_col: Optional[int] = None
    definition: Optional[Definition] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class ExtractedBlock:
    path: str
    label: str
    start_line: int
    end_line: int
    header: str
    text: str


@dataclass(frozen=True)
class ListEntry:
    qualname: str
    start_line: int


@dataclass
class FileResult:
    path: str
    blocks: List[ExtractedBlock] = field(default_factory=list)
    listing: List[ListEntry] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def has_match(self) -> bool:
        return bool(self.blocks or self.listing)
