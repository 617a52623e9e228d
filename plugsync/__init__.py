"""
plugsync - Reconciliation and execution engine for a plugin manager.

This is the main package that exports the public API:
- load_config: read settings and declared plugins from TOML
- SyncOrchestrator: install / update / sync / clean pipeline
- Unit, Registry, Hook: declared plugin model
"""

__version__ = "0.1.0"

from plugsync.actions import SyncOrchestrator
from plugsync.config import Settings, load_config
from plugsync.errors import PlugsyncError
from plugsync.plugin.hooks import Hook
from plugsync.plugin.unit import Registry, Unit

__all__ = [
    "__version__",
    "Hook",
    "PlugsyncError",
    "Registry",
    "Settings",
    "SyncOrchestrator",
    "Unit",
    "load_config",
]
