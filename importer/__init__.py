"""Streaming import core: WXR/CSV ingestion under a memory ceiling plus type inference."""

__version__ = "0.1.0"
