"""
Observability utilities for runtime debugging.

This package provides:
- live_logs: in-memory ring buffer of recent log records
- live_logs_router: read-only HTTP endpoint exposing that buffer
"""
