# ------------------------------------------------------------
# Module: importer/ingest/errors.py
# Purpose: Define typed import exceptions for clear, fail-fast error handling.
# ------------------------------------------------------------

"""Exception types for the import core.

Only unrecoverable setup failures are raised. Record- and row-level problems
are recovered locally and surface as `FailedItem` entries instead.

Responsibilities
----------------
- Provide a base `IngestError` for catch-all handling.
- Surface missing/unreadable sources before any parsing starts.
- Surface destination-schema and storage statement failures.
- Surface inference setup failures (missing source table, no columns).
"""


class IngestError(Exception):
    """Base class for import failures."""


class SourceNotFoundError(IngestError, FileNotFoundError):
    """Raised when the source file does not exist."""


class SourceUnreadableError(IngestError):
    """Raised when the source exists but cannot be opened or decoded."""


class SchemaError(IngestError):
    """Raised when a destination table or column cannot be created."""


class StorageError(IngestError):
    """Raised on storage connection/statement failures."""


class FileWriteError(IngestError):
    """Raised on failed-item JSONL write failures."""


class InferenceError(IngestError):
    """Raised when type inference cannot start (missing table, no columns)."""
