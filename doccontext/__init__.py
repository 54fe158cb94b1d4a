"""Top-level package marker for doccontext."""

from .core import ContextEngine
from .retrieval.assembler import build_context_string

__all__ = [
    "ContextEngine",
    "build_context_string",
    "config",
    "embeddings",
    "ingestion",
    "monitoring",
    "retrieval",
    "storage",
    "utils",
]
