"""
Record operations engine.

Resolves request records to backend identities, applies create, read,
update and delete with their fallback rules, and reports per-record
outcomes.
"""

from .containers import container_filename, encode_container
from .errors import (
    CONFLICT_STATUS,
    MISSING_IDENTIFIER_STATUS,
    BackendFailure,
    ConflictError,
    NotFoundError,
    RecordOperationError,
    ValidationFailure,
)
from .record_ops import RecordOperations, is_unique_key
from .repetitions import from_repetitions, split_repetition, to_repetitions
from .schema_cache import SchemaCache

__all__ = [
    "RecordOperations",
    "is_unique_key",
    "RecordOperationError",
    "NotFoundError",
    "ConflictError",
    "BackendFailure",
    "ValidationFailure",
    "CONFLICT_STATUS",
    "MISSING_IDENTIFIER_STATUS",
    "to_repetitions",
    "from_repetitions",
    "split_repetition",
    "container_filename",
    "encode_container",
    "SchemaCache",
]
