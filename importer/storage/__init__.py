"""Storage sink contract and the DuckDB implementation."""
