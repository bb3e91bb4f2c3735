"""HTTP API for calpost_lite."""
