"""Occurrence selection, deduplication, preview, formatting and posting operations."""
