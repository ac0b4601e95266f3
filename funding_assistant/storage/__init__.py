"""
Call store implementations.

- CallStore: async repository interface
- InMemoryCallStore: dict-backed, for tests and ephemeral runs
- SqliteCallStore: file-backed, float32 BLOB embeddings
"""

from .base import CallStore
from .memory import InMemoryCallStore
from .sqlite import SqliteCallStore

__all__ = ["CallStore", "InMemoryCallStore", "SqliteCallStore"]
