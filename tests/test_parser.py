"""Tests for the structural indexer (both backends)."""

import ast
import textwrap

import pytest

from codespan_cli.errors import ParseError, UsageError
from codespan_cli.extractor import extract_span, source_lines
from codespan_cli.models import Definition
from codespan_cli.parser import ASTFallbackParser, PythonSourceParser, dedup_definitions
from codespan_cli.resolver import definition_span


def _spans(index):
    return [(d.qualname, d.start_line, d.end_line) for d in index.definitions]


def test_definitions_and_qualnames(indexer, sample_python_code: str):
    """Methods are qualified by their classes; nested functions are skipped by default."""
    index = indexer.index(sample_python_code)

    assert _spans(index) == [
        ("hello", 10, 12),
        ("cached", 15, 17),
        ("fetch", 20, 21),
        ("Calculator.add", 29, 31),
        ("Calculator.Inner.ping", 34, 35),
        ("outer", 38, 44),
    ]


def test_decorators_lower_start_line(indexer, sample_python_code: str):
    index = indexer.index(sample_python_code)
    cached = next(d for d in index.definitions if d.name == "cached")

    assert cached.start_line == 15
    assert cached.end_line == 17


def test_async_flag(indexer, sample_python_code: str):
    index = indexer.index(sample_python_code)
    flags = {d.name: d.is_async for d in index.definitions}

    assert flags["fetch"] is True
    assert flags["hello"] is False


def test_nested_functions_when_enabled(indexer, sample_python_code: str):
    index = indexer.index(sample_python_code, include_nested=True)
    qualnames = [d.qualname for d in index.definitions]

    assert "outer.inner" in qualnames
    inner = next(d for d in index.definitions if d.qualname == "outer.inner")
    assert (inner.start_line, inner.end_line) == (41, 42)
    assert inner.depth == 1


def test_classes_collected(indexer, sample_python_code: str):
    index = indexer.index(sample_python_code)

    assert [(c.qualname, c.start_line, c.end_line) for c in index.classes] == [
        ("Calculator", 24, 35),
        ("Calculator.Inner", 33, 35),
    ]


def test_import_provided_names(indexer, sample_python_code: str):
    """Alias, first dotted segment, imported symbol and the wildcard sentinel."""
    index = indexer.index(sample_python_code)
    provided = [(imp.start_line, set(imp.provided_names)) for imp in index.imports]

    assert provided == [
        (3, {"functools"}),
        (4, {"os"}),
        (5, {"np"}),
        (6, {"L", "Optional"}),
        (7, {"*"}),
        (27, {"Decimal"}),
    ]


def test_imports_inside_functions_are_never_collected(indexer, sample_python_code: str):
    for include_nested in (False, True):
        index = indexer.index(sample_python_code, include_nested=include_nested)
        assert all("json" not in imp.provided_names for imp in index.imports)


def test_module_level_conditional_imports(indexer):
    source = textwrap.dedent("""\
        import sys

        if sys.version_info >= (3, 8):
            from functools import cached_property
        else:
            cached_property = property
        """)
    index = indexer.index(source)

    names = set()
    for imp in index.imports:
        names |= imp.provided_names
    assert names == {"sys", "cached_property"}


def test_redefinitions_are_kept(indexer):
    source = textwrap.dedent("""\
        def dup():
            return 1


        def dup():
            return 2
        """)
    index = indexer.index(source)

    assert _spans(index) == [("dup", 1, 2), ("dup", 5, 6)]


def test_syntax_error_raises_parse_error(indexer):
    with pytest.raises(ParseError) as exc_info:
        indexer.index("def broken(:\n    pass\n", path="broken.py")

    assert exc_info.value.path == "broken.py"


def test_blocks_cover_control_flow(indexer):
    source = textwrap.dedent("""\
        def run(items):
            for item in items:
                if item > 1:
                    print(item)
                elif item < 0:
                    print(-item)
                else:
                    pass
            return items
        """)
    index = indexer.index(source)
    blocks = {(b.kind, b.start_line, b.end_line) for b in index.blocks}

    assert ("function", 1, 9) in blocks
    assert ("for", 2, 8) in blocks
    assert ("if", 3, 8) in blocks
    # an elif runs from its own line to the end of the whole chain
    assert ("if", 5, 8) in blocks


def test_block_names(indexer, sample_python_code: str):
    index = indexer.index(sample_python_code)
    names = {(b.kind, b.name) for b in index.blocks}

    assert ("class", "Calculator") in names
    assert ("function", "add") in names


def test_root_names_keep_only_chain_roots(indexer):
    source = textwrap.dedent("""\
        import os


        def work(self, path=os.sep):
            value = self.config.path
            call(key=value)
            return items[0].name
        """)
    index = indexer.index(source)
    names = index.root_names(index.definitions[0])

    assert {"os", "self", "value", "call", "items"} <= names
    assert "config" not in names
    assert "key" not in names
    assert "name" not in names


def test_extracted_definitions_reparse(indexer, sample_python_code: str):
    """Every extracted definition is a valid declaration with the same name."""
    index = indexer.index(sample_python_code, include_nested=True)
    lines = source_lines(sample_python_code)

    for definition in index.definitions:
        text = textwrap.dedent(extract_span(lines, definition_span(definition)))
        tree = ast.parse(text)
        node = tree.body[0]
        assert isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef))
        assert node.name == definition.name


def test_dedup_only_drops_exact_positions():
    a = Definition("f", "f", 1, 2, start_col=0, end_col=10)
    same = Definition("f", "f", 1, 2, start_col=0, end_col=10)
    redefined = Definition("f", "f", 4, 5, start_col=0, end_col=10)

    assert dedup_definitions([redefined, a, same]) == [a, redefined]


def test_auto_backend_falls_back_to_ast_for_bad_trees():
    parser = PythonSourceParser("auto")
    index = parser.index("def ok():\n    return 1\n")

    assert index.definitions[0].qualname == "ok"
    with pytest.raises(ParseError):
        parser.index("def broken(:\n")


def test_forced_ast_backend():
    parser = PythonSourceParser("ast")

    assert parser.name == "ast"
    assert parser.index("def f():\n    pass\n").backend == "ast"


def test_forced_tree_sitter_backend_requires_grammar(monkeypatch):
    monkeypatch.setattr("codespan_cli.parser.TreeSitterParser.supports_language", lambda self, lang: False)

    with pytest.raises(UsageError):
        PythonSourceParser("tree-sitter")


def test_null_bytes_are_a_parse_error():
    with pytest.raises(ParseError):
        ASTFallbackParser().index("x = 1\x00\n")


@pytest.mark.parametrize("source", [
    "f(**k, *a)\n",
    "f(x for x in y, 1)\n",
    "print 'hi'\n",
    "def run(a):\n    return g(**a, *a)\n",
])
def test_auto_backend_rejects_what_python_rejects(source):
    """Validity is decided by Python's own grammar whichever backend indexes."""
    with pytest.raises(ParseError):
        PythonSourceParser("auto").index(source, path="invalid.py")


def test_trailing_comment_is_not_part_of_a_function(indexer):
    index = indexer.index("def foo():\n    return 1\n    # trailing note\n\nx = 1\n")

    assert _spans(index) == [("foo", 1, 2)]
    assert index.definitions[0].end_col == len("    return 1")


def test_trailing_comment_after_a_method(indexer):
    source = textwrap.dedent("""\
        class C:
            def m(self):
                return 1
                # note about m
        """)
    index = indexer.index(source)

    assert _spans(index) == [("C.m", 2, 3)]
    assert [(c.qualname, c.start_line, c.end_line) for c in index.classes] == [("C", 1, 3)]


def test_block_ends_ignore_trailing_comments(indexer):
    source = textwrap.dedent("""\
        def run(x):
            if x:
                y = 1
                # done with x
            return x
        """)
    blocks = {(b.kind, b.start_line, b.end_line) for b in indexer.index(source).blocks}

    assert ("if", 2, 3) in blocks
    assert ("function", 1, 5) in blocks
