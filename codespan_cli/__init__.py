"""codespan: resolve queries to exact spans of Python source."""

__version__ = "1.0.0"
