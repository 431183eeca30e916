# ------------------------------------------------------------
# Module: importer/core/config.py
# Purpose: Central, typed import settings (code-only; no .env).
# ------------------------------------------------------------

"""Typed configuration hub for the import core (code-only defaults; no .env).

Responsibilities
----------------
- Provide batch sizing, memory ceiling, and read-buffer parameters.
- Provide type-inference knobs (sample size, copy batch size, typed suffix).
- Provide logging toggles and DuckDB resource knobs.

Notes
-----
- This build intentionally **does not** read OS environment variables or `.env`.
- Override per job with `settings.model_copy(update={...})`; validators do not
  re-run on copies, so prefer constructing `Settings(...)` for untrusted input.
"""

from __future__ import annotations

import re
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

_MEMORY_LIMIT_RE = re.compile(r"^\s*\d+(?:\.\d+)?\s*[KMG]?B?\s*$", re.IGNORECASE)


class Settings(BaseModel):
    """
    Import configuration with code-only defaults (no env reads).

    Notes
    -----
    - Extras are forbidden to surface typos/unknown keys early.
    - `BATCH_SIZE` is the ceiling the governor may grow back to; it never
      exceeds it and never drops below `MIN_BATCH_SIZE`.
    """

    model_config = dict(extra="forbid")

    # Logging
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    MUTE_ALL_LOGS: bool = False

    # ---- Batching / memory governance ----
    BATCH_SIZE: int = Field(100, ge=1, description="Initial and ceiling batch size")
    MIN_BATCH_SIZE: int = Field(10, ge=1, description="Floor for adaptive shrink")
    MEMORY_LIMIT: str = Field("256M", description="Memory ceiling, value + K/M/G")
    GOVERNOR_CHECK_INTERVAL: int = Field(
        1, ge=1, description="Evaluate memory pressure every N records"
    )
    READ_CHUNK_SIZE: int = Field(
        64 * 1024, ge=1024, description="Source reader buffer size in bytes"
    )

    # ---- Type inference ----
    INFERENCE_SAMPLE_SIZE: int = Field(200, ge=1)
    COPY_BATCH_SIZE: int = Field(500, ge=1)
    TYPED_SUFFIX: str = "_typed"

    # ---- DuckDB resource knobs (used by importer.storage.duckdb_connection) ----
    DUCKDB_THREADS: int = Field(4, ge=1, description="DuckDB PRAGMA threads")
    DUCKDB_MEM: str = Field("1GB", description="DuckDB PRAGMA memory_limit")

    @field_validator("MEMORY_LIMIT")
    @classmethod
    def _check_memory_limit(cls, v: str) -> str:
        if not _MEMORY_LIMIT_RE.match(v):
            raise ValueError(f"MEMORY_LIMIT must look like '256M', '1G' or '1048576': {v!r}")
        return v.strip()

    @field_validator("TYPED_SUFFIX")
    @classmethod
    def _check_suffix(cls, v: str) -> str:
        if not v or not re.fullmatch(r"[A-Za-z0-9_]+", v):
            raise ValueError("TYPED_SUFFIX must be a non-empty identifier fragment")
        return v

    @model_validator(mode="after")
    def _check_batch_bounds(self) -> "Settings":
        if self.MIN_BATCH_SIZE > self.BATCH_SIZE:
            raise ValueError(
                f"MIN_BATCH_SIZE ({self.MIN_BATCH_SIZE}) exceeds BATCH_SIZE ({self.BATCH_SIZE})"
            )
        return self


settings = Settings()
