"""
plugsync plugin system - Declared plugins and their on-disk state.

This package handles:
- Plugin declarations and the registry
- Filesystem state of the install roots
- Backends (git, local) performing install/update work
- Post install/update hooks
- Loading plugins into the host process
- Documentation index regeneration
"""

__all__ = []
