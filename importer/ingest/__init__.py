"""Streaming ingestion: source reading, parsing, extraction, batching, governance."""
