"""
plugsync core - Execution primitives.

This package provides:
- Subprocess jobs (asyncio)
- Bounded-concurrency task scheduler
- Per-plugin result maps and merging
- Display sinks for progress reporting
"""

__all__ = []
