"""Collaborator contracts and their implementations.

- ``protocols``: what the core expects from schema providers and stores
- ``memory``: deterministic in-memory store with seedable fault injection
- ``postgres``: psycopg2-backed store
- ``schema_file``: YAML schema provider
"""

from .memory import FaultInjector, InMemoryEntityStore
from .protocols import (
    BatchCommitResponse,
    IndexResult,
    InsertBatchResponse,
    InsertPersistence,
    RowCommitResult,
    RowPersistence,
    RowUpdate,
    SchemaProvider,
    SingleCommitResponse,
)
from .schema_file import YamlSchemaProvider

__all__ = [
    "BatchCommitResponse",
    "FaultInjector",
    "InMemoryEntityStore",
    "IndexResult",
    "InsertBatchResponse",
    "InsertPersistence",
    "RowCommitResult",
    "RowPersistence",
    "RowUpdate",
    "SchemaProvider",
    "SingleCommitResponse",
    "YamlSchemaProvider",
]
