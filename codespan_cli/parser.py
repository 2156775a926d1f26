"""Structural indexer for Python source.

Tree-sitter is the primary backend; Python's built-in ``ast`` module is used
when tree-sitter is unavailable or explicitly requested, and it decides
whether every source is valid Python before either backend indexes it. Both
backends produce the same :class:`~codespan_cli.models.SourceIndex`:

- function/method Definitions with dotted qualified names,
- class containers (for diff mapping),
- module/class-scope imports and the names they bind,
- every block eligible for best-enclosing-block selection.

Lines are 1-based and columns are UTF-8 byte offsets in both backends.
"""

from __future__ import annotations

import ast
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Set, Tuple

from .errors import ParseError, UsageError
from .models import Block, Definition, Import, SourceIndex

logger = logging.getLogger(__name__)


class _Scope(NamedTuple):
    """Enclosing class and function names, passed down by value."""

    classes: Tuple[str, ...] = ()
    functions: Tuple[str, ...] = ()
    function_depth: int = 0

    def qualify(self, name: str) -> str:
        return ".".join(self.classes + self.functions + (name,))

    @property
    def depth(self) -> int:
        return len(self.classes) + len(self.functions)

    def enter_class(self, name: str) -> "_Scope":
        return _Scope(self.classes + (name,), self.functions, self.function_depth)

    def enter_function(self, name: str) -> "_Scope":
        return _Scope(self.classes, self.functions + (name,), self.function_depth + 1)


@dataclass
class _Collected:
    definitions: List[Definition] = field(default_factory=list)
    classes: List[Definition] = field(default_factory=list)
    imports: List[Import] = field(default_factory=list)


def dedup_definitions(definitions: Iterable[Definition]) -> List[Definition]:
    """Sort by position and drop exact position duplicates.

    Only identical (start_line, start_col, end_line, end_col) tuples are
    merged; redefinitions sharing a qualname are kept.
    """
    seen: Set[Tuple[int, int, int, int]] = set()
    out: List[Definition] = []
    for definition in sorted(definitions, key=lambda d: d.position):
        if definition.position in seen:
            continue
        seen.add(definition.position)
        out.append(definition)
    return out


def _build_index(collected: _Collected, blocks: List[Block], backend: str, collector: Any) -> SourceIndex:
    return SourceIndex(
        definitions=dedup_definitions(collected.definitions),
        classes=dedup_definitions(collected.classes),
        imports=sorted(collected.imports, key=lambda i: (i.start_line, i.start_col, i.end_line)),
        blocks=sorted(blocks, key=lambda b: (b.start_line, b.end_line, b.kind)),
        backend=backend,
        name_collector=collector,
    )


# ===================================================================
# Abstract Parser Interface
# ===================================================================

class Parser(ABC):
    """Abstract base class for structural indexers."""

    name: str = "abstract"

    @abstractmethod
    def index(self, source: str, include_nested: bool = False, path: str = "<source>") -> SourceIndex:
        """Index one file's source text.

        Raises:
            ParseError: If the source cannot be structurally parsed.
        """
        ...

    @abstractmethod
    def supports_language(self, language: str) -> bool:
        """Return True if this parser can handle *language*."""
        ...


# ===================================================================
# Tree-sitter Parser (Primary)
# ===================================================================

_TS_BLOCK_TYPES: Dict[str, str] = {
    "if_statement": "if",
    "elif_clause": "if",
    "for_statement": "for",
    "while_statement": "while",
    "with_statement": "with",
    "try_statement": "try",
    "match_statement": "match",
}

_TS_IMPORT_TYPES = frozenset({"import_statement", "import_from_statement", "future_import_statement"})

# Nodes whose children may hold further statements (and thus definitions/imports).
_TS_CONTAINER_TYPES = frozenset({
    "block",
    "if_statement", "elif_clause", "else_clause",
    "for_statement", "while_statement",
    "try_statement", "except_clause", "except_group_clause", "finally_clause",
    "with_statement",
    "match_statement", "case_clause",
})


def _ts_text(node: Any) -> str:
    if node is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def _ts_is_async(func_node: Any) -> bool:
    return any(child.type == "async" for child in func_node.children)


def _ts_first_error_line(root: Any) -> Optional[int]:
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            return node.start_point[0] + 1
        if node.has_error:
            stack.extend(reversed(node.children))
    return None


# Tree-sitter attaches comments and stray semicolons that follow the last
# statement of a body to the enclosing block; ast never counts them.
_TS_TRAILING_TYPES = frozenset({"comment", ";"})


def _ts_end_point(node: Any) -> Tuple[int, int]:
    """End of *node* as ``(row, byte column)``, ignoring trailing comments."""
    current = node
    while current.children:
        last = None
        for child in reversed(current.children):
            if child.type not in _TS_TRAILING_TYPES:
                last = child
                break
        if last is None:
            break
        current = last
    return current.end_point[0], current.end_point[1]


def _ts_binding(node: Any, plain_import: bool) -> str:
    if node.type == "aliased_import":
        alias = node.child_by_field_name("alias")
        if alias is not None:
            return _ts_text(alias)
        node = node.child_by_field_name("name")
    text = _ts_text(node)
    return text.split(".")[0] if plain_import else text


def _ts_import(node: Any) -> Import:
    plain = node.type == "import_statement"
    names = {_ts_binding(child, plain) for child in node.children_by_field_name("name")}
    if any(child.type == "wildcard_import" for child in node.children):
        names.add("*")
    names.discard("")
    return Import(
        start_line=node.start_point[0] + 1,
        end_line=node.end_point[0] + 1,
        provided_names=frozenset(names),
        start_col=node.start_point[1],
        end_col=node.end_point[1],
    )


def _ts_blocks(root: Any) -> List[Block]:
    blocks: List[Block] = []
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type in ("function_definition", "class_definition"):
            parent = node.parent
            outer = parent if parent is not None and parent.type == "decorated_definition" else node
            end_row, end_col = _ts_end_point(node)
            blocks.append(Block(
                kind="function" if node.type == "function_definition" else "class",
                name=_ts_text(node.child_by_field_name("name")) or node.type,
                start_line=outer.start_point[0] + 1,
                end_line=end_row + 1,
                end_col=end_col,
            ))
        elif node.type in _TS_BLOCK_TYPES:
            kind = _TS_BLOCK_TYPES[node.type]
            # an elif behaves like a nested if running to the end of the chain
            end_node = node.parent if node.type == "elif_clause" and node.parent is not None else node
            end_row, end_col = _ts_end_point(end_node)
            blocks.append(Block(
                kind=kind,
                name=kind,
                start_line=node.start_point[0] + 1,
                end_line=end_row + 1,
                end_col=end_col,
            ))
        stack.extend(node.children)
    return blocks


def _ts_root_names(node: Any) -> Set[str]:
    """Identifiers used under *node*, keeping only the root of attribute chains."""
    names: Set[str] = set()
    stack = [node]
    while stack:
        current = stack.pop()
        kind = current.type
        if kind == "identifier":
            names.add(_ts_text(current))
            continue
        if kind in _TS_IMPORT_TYPES or kind in ("global_statement", "nonlocal_statement"):
            continue
        if kind == "attribute":
            obj = current.child_by_field_name("object")
            if obj is not None:
                stack.append(obj)
            continue
        if kind == "keyword_argument":
            value = current.child_by_field_name("value")
            if value is not None:
                stack.append(value)
            continue
        if kind in ("parameters", "lambda_parameters"):
            for param in current.children:
                for field_name in ("type", "value"):
                    if param.type in ("typed_parameter", "default_parameter", "typed_default_parameter"):
                        sub = param.child_by_field_name(field_name)
                        if sub is not None:
                            stack.append(sub)
            continue
        if kind in ("function_definition", "class_definition"):
            name_node = current.child_by_field_name("name")
            for child in current.children:
                if name_node is not None and child.start_byte == name_node.start_byte and child.type == "identifier":
                    continue
                stack.append(child)
            continue
        stack.extend(current.children)
    names.discard("")
    return names


class TreeSitterParser(Parser):
    """Python indexer built on Tree-sitter.

    Uses the ``tree-sitter-python`` grammar package. A tree containing
    ERROR or MISSING nodes is reported as a :class:`ParseError` so callers
    can decide whether to retry with the ``ast`` backend.
    """

    name = "tree-sitter"

    def __init__(self) -> None:
        self._parser: Any = None
        self._init_parser()

    def _init_parser(self) -> None:
        try:
            import tree_sitter_python  # type: ignore[import-untyped]
            from tree_sitter import Language, Parser as TSParser  # type: ignore[import-untyped]
        except ImportError:
            logger.warning(
                "tree-sitter is not installed -- "
                "Tree-sitter parsing unavailable. "
                "Install with: pip install tree-sitter tree-sitter-python"
            )
            return
        try:
            # tree-sitter >=0.22 per-language packages expose a
            # language() function that returns the Language capsule.
            self._parser = TSParser(Language(tree_sitter_python.language()))
            logger.debug("Loaded tree-sitter parser for python")
        except (TypeError, ValueError) as exc:
            logger.warning("Could not load tree-sitter grammar for python: %s", exc)

    def supports_language(self, language: str) -> bool:
        return language == "python" and self._parser is not None

    def index(self, source: str, include_nested: bool = False, path: str = "<source>") -> SourceIndex:
        if self._parser is None:
            raise ParseError("tree-sitter grammar for python is not available", path)

        tree = self._parser.parse(source.encode("utf-8", errors="surrogatepass"))
        root = tree.root_node
        if root.has_error:
            line = _ts_first_error_line(root)
            raise ParseError(f"syntax error near line {line}", path, line)

        collected = _Collected()
        self._walk(root, _Scope(), include_nested, collected)
        return _build_index(collected, _ts_blocks(root), self.name, _ts_root_names)

    def _walk(self, ts_node: Any, scope: _Scope, include_nested: bool, out: _Collected) -> None:
        """Collect definitions and imports from the statements under *ts_node*."""
        for child in ts_node.children:
            outer_node = child
            actual_def = child

            # Unwrap @decorated_definition -> inner function/class
            if child.type == "decorated_definition":
                inner = child.child_by_field_name("definition")
                if inner is None:
                    continue
                actual_def = inner

            if actual_def.type == "function_definition":
                self._process_function(outer_node, actual_def, scope, include_nested, out)
            elif actual_def.type == "class_definition":
                self._process_class(outer_node, actual_def, scope, include_nested, out)
            elif actual_def.type in _TS_IMPORT_TYPES:
                if scope.function_depth == 0:
                    out.imports.append(_ts_import(actual_def))
            elif child.type in _TS_CONTAINER_TYPES:
                self._walk(child, scope, include_nested, out)

    def _definition(self, outer_node: Any, def_node: Any, scope: _Scope, kind: str) -> Optional[Definition]:
        name_node = def_node.child_by_field_name("name")
        if name_node is None:
            return None
        name = _ts_text(name_node)
        end_row, end_col = _ts_end_point(outer_node)
        return Definition(
            qualname=scope.qualify(name),
            name=name,
            start_line=outer_node.start_point[0] + 1,
            end_line=end_row + 1,
            is_async=kind == "function" and _ts_is_async(def_node),
            kind=kind,
            start_col=outer_node.start_point[1],
            end_col=end_col,
            depth=scope.depth,
            node=outer_node,
        )

    def _process_function(
        self,
        outer_node: Any,
        func_node: Any,
        scope: _Scope,
        include_nested: bool,
        out: _Collected,
    ) -> None:
        definition = self._definition(outer_node, func_node, scope, "function")
        if definition is None:
            return
        out.definitions.append(definition)

        if not include_nested:
            return
        body = func_node.child_by_field_name("body")
        if body is not None:
            self._walk(body, scope.enter_function(definition.name), include_nested, out)

    def _process_class(
        self,
        outer_node: Any,
        class_node: Any,
        scope: _Scope,
        include_nested: bool,
        out: _Collected,
    ) -> None:
        definition = self._definition(outer_node, class_node, scope, "class")
        if definition is None:
            return
        out.classes.append(definition)

        # Walk class body for methods / nested classes
        body = class_node.child_by_field_name("body")
        if body is not None:
            self._walk(body, scope.enter_class(definition.name), include_nested, out)


# ===================================================================
# AST Fallback Parser
# ===================================================================

def _ast_block_types() -> Tuple[Tuple[type, str], ...]:
    types: List[Tuple[type, str]] = [
        (ast.FunctionDef, "function"), (ast.AsyncFunctionDef, "function"),
        (ast.ClassDef, "class"),
        (ast.If, "if"),
        (ast.For, "for"), (ast.AsyncFor, "for"),
        (ast.While, "while"),
        (ast.With, "with"), (ast.AsyncWith, "with"),
        (ast.Try, "try"),
    ]
    if hasattr(ast, "TryStar"):
        types.append((ast.TryStar, "try"))
    if hasattr(ast, "Match"):
        types.append((ast.Match, "match"))
    return tuple(types)


_AST_BLOCK_TYPES = _ast_block_types()

# Statement containers that are not themselves statements.
_AST_CONTAINERS: Tuple[type, ...] = (ast.stmt, ast.excepthandler) + (
    (ast.match_case,) if hasattr(ast, "match_case") else ()
)


def parse_module(source: str, path: str = "<source>") -> ast.Module:
    """Parse *source* with the interpreter's own grammar.

    Raises:
        ParseError: If the source is not valid Python.
    """
    try:
        return ast.parse(source, filename=path)
    except SyntaxError as exc:
        raise ParseError(str(exc), path, exc.lineno) from exc
    except ValueError as exc:
        # e.g. source code string cannot contain null bytes
        raise ParseError(str(exc), path) from exc


def _ast_start_line(node: ast.AST) -> int:
    start = node.lineno
    for dec in getattr(node, "decorator_list", []):
        start = min(start, dec.lineno)
    return start


def _ast_import(node: ast.AST) -> Import:
    names: Set[str] = set()
    if isinstance(node, ast.Import):
        for alias in node.names:
            names.add(alias.asname or alias.name.split(".")[0])
    else:
        for alias in node.names:
            names.add("*" if alias.name == "*" else (alias.asname or alias.name))
    return Import(
        start_line=node.lineno,
        end_line=node.end_lineno or node.lineno,
        provided_names=frozenset(names),
        start_col=node.col_offset,
        end_col=node.end_col_offset,
    )


def _ast_blocks(tree: ast.AST) -> List[Block]:
    blocks: List[Block] = []
    for node in ast.walk(tree):
        for node_type, kind in _AST_BLOCK_TYPES:
            if isinstance(node, node_type):
                blocks.append(Block(
                    kind=kind,
                    name=getattr(node, "name", kind),
                    start_line=_ast_start_line(node),
                    end_line=node.end_lineno or node.lineno,
                    end_col=node.end_col_offset,
                ))
                break
    return blocks


def _ast_root_names(node: ast.AST) -> Set[str]:
    # Attribute.attr and keyword.arg are plain strings, so every Name seen
    # here is already the root of its attribute/subscript chain.
    return {n.id for n in ast.walk(node) if isinstance(n, ast.Name)}


class ASTFallbackParser(Parser):
    """Pure-Python indexer using the built-in ``ast`` module."""

    name = "ast"

    def supports_language(self, language: str) -> bool:
        return language == "python"

    def index(self, source: str, include_nested: bool = False, path: str = "<source>") -> SourceIndex:
        tree = parse_module(source, path)
        collected = _Collected()
        self._walk(tree, _Scope(), include_nested, collected)
        return _build_index(collected, _ast_blocks(tree), self.name, _ast_root_names)

    def _walk(self, node: ast.AST, scope: _Scope, include_nested: bool, out: _Collected) -> None:
        for child in ast.iter_child_nodes(node):
            if isinstance(child, (ast.Import, ast.ImportFrom)):
                if scope.function_depth == 0:
                    out.imports.append(_ast_import(child))
            elif isinstance(child, ast.ClassDef):
                out.classes.append(self._definition(child, scope, "class"))
                self._walk(child, scope.enter_class(child.name), include_nested, out)
            elif isinstance(child, (ast.FunctionDef, ast.AsyncFunctionDef)):
                out.definitions.append(self._definition(child, scope, "function"))
                if include_nested:
                    self._walk(child, scope.enter_function(child.name), include_nested, out)
            elif isinstance(child, _AST_CONTAINERS):
                self._walk(child, scope, include_nested, out)

    @staticmethod
    def _definition(node: Any, scope: _Scope, kind: str) -> Definition:
        return Definition(
            qualname=scope.qualify(node.name),
            name=node.name,
            start_line=_ast_start_line(node),
            end_line=node.end_lineno or node.lineno,
            is_async=isinstance(node, ast.AsyncFunctionDef),
            kind=kind,
            start_col=node.col_offset,
            end_col=node.end_col_offset,
            depth=scope.depth,
            node=node,
        )


# ===================================================================
# Backend selection
# ===================================================================

class PythonSourceParser(Parser):
    """Indexer that picks a backend once and delegates to it.

    ``auto`` selects **TreeSitterParser** when tree-sitter is available,
    otherwise the built-in AST parser. Every source is first checked with
    ``ast``, so validity is always decided by the interpreter's grammar;
    tree-sitter only indexes sources that pass. If tree-sitter still finds
    error nodes in such a source, it is indexed with ``ast`` instead.
    """

    def __init__(self, backend: str = "auto") -> None:
        self._fallback = ASTFallbackParser()
        self._primary: Optional[Parser] = None

        if backend in ("auto", "tree-sitter"):
            ts = TreeSitterParser()
            if ts.supports_language("python"):
                self._primary = ts
                logger.info("Using Tree-sitter parser")
            elif backend == "tree-sitter":
                raise UsageError("tree-sitter backend requested but tree-sitter-python is not installed")
        if self._primary is None:
            logger.info("Using AST fallback parser")

    @property
    def name(self) -> str:  # type: ignore[override]
        return (self._primary or self._fallback).name

    def supports_language(self, language: str) -> bool:
        return self._fallback.supports_language(language)

    def index(self, source: str, include_nested: bool = False, path: str = "<source>") -> SourceIndex:
        if self._primary is None:
            return self._fallback.index(source, include_nested, path)
        parse_module(source, path)
        try:
            return self._primary.index(source, include_nested, path)
        except ParseError as exc:
            logger.debug("tree-sitter reported %s in %s; indexing with ast", exc.message, path)
            return self._fallback.index(source, include_nested, path)
