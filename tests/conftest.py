"""Pytest configuration and fixtures for codespan tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from codespan_cli.parser import ASTFallbackParser, TreeSitterParser


# Line numbers below are relied on by the scenario tests:
#   foo      10-16
#   class C  19-23, C.foo 20-23
#   RESULT   25 (module level)
SCENARIO_SOURCE = '''import os
from sys import path as p


CONSTANT = 1




def foo():
    cwd = os.getcwd()
    parts = cwd.split("/")
    count = len(parts)
    first = parts[0]
    last = parts[-1]
    return count, first, last


class C:
    def foo(self):
        total = 0
        total += 1
        return total

RESULT = foo()
'''


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch) -> Path:
    """Keep every test away from the user's real config and environment."""
    base_dir = tmp_path / "codespan_home"
    config_file = base_dir / "config.toml"

    # Patch both config AND config_manager (config_manager imports at module load)
    monkeypatch.setattr("codespan_cli.config.BASE_DIR", base_dir)
    monkeypatch.setattr("codespan_cli.config.CONFIG_FILE", config_file)
    monkeypatch.setattr("codespan_cli.config_manager.BASE_DIR", base_dir)
    monkeypatch.setattr("codespan_cli.config_manager.CONFIG_FILE", config_file)

    for var in (
        "CODESPAN_DIFF_CONTEXT", "CODESPAN_DISABLE_RG", "CODESPAN_FORCE_COLOR",
        "NO_COLOR", "CLICOLOR", "TERM",
    ):
        monkeypatch.delenv(var, raising=False)
    return config_file


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def sample_project_path() -> Path:
    """Get path to sample test project."""
    return Path(__file__).parent / "fixtures" / "sample_project"


@pytest.fixture
def bad_project_path() -> Path:
    """Directory holding a file that does not parse."""
    return Path(__file__).parent / "fixtures" / "bad"


@pytest.fixture
def scenario_source() -> str:
    return SCENARIO_SOURCE


@pytest.fixture
def scenario_file(temp_dir: Path) -> Path:
    """SCENARIO_SOURCE written to disk as scenario.py."""
    path = temp_dir / "scenario.py"
    path.write_text(SCENARIO_SOURCE)
    return path


@pytest.fixture
def sample_python_code() -> str:
    """Sample Python code for testing the indexer."""
    return '''"""Sample module for testing."""

import functools
import os.path
import numpy as np
from typing import List as L, Optional
from helpers import *


def hello(name: str) -> str:
    """Say hello."""
    return f"Hello, {name}!"


@functools.lru_cache(maxsize=None)
def cached(value):
    return value * 2


async def fetch(url):
    return url


class Calculator:
    """Simple calculator."""

    from decimal import Decimal

    def add(self, a: int, b: int) -> int:
        """Add two numbers."""
        return a + b

    class Inner:
        def ping(self):
            return "pong"


def outer():
    import json

    def inner():
        return json.dumps({})

    return inner
'''


@pytest.fixture(params=["ast", "tree-sitter"])
def indexer(request):
    """Each parser backend in turn; tree-sitter is skipped when not installed."""
    if request.param == "ast":
        return ASTFallbackParser()
    pytest.importorskip("tree_sitter")
    pytest.importorskip("tree_sitter_python")
    parser = TreeSitterParser()
    if not parser.supports_language("python"):
        pytest.skip("tree-sitter grammar for python could not be loaded")
    return parser
