"""
Dynamic Plugin Loader.

This module loads a plugin's entry modules into the running process.

Key features:
- importlib integration for dynamic loading
- Every ``plugin/*.py`` file of an install directory, in name order
- Module caching so a plugin is only executed once per process
- Unload support
"""

import importlib.util
import re
import sys
from pathlib import Path
from types import ModuleType

from plugsync.errors import PlugsyncError
from plugsync.plugin.unit import Unit

ENTRY_DIR = "plugin"


class LoaderError(PlugsyncError):
    """Base exception for loader-related errors."""

    pass


# Module cache: plugin_name -> loaded entry modules
_module_cache: dict[str, list[ModuleType]] = {}


def _module_name(plugin_name: str, stem: str) -> str:
    safe = re.sub(r"\W", "_", f"{plugin_name}_{stem}")
    return f"plugsync_plugin_{safe}"


def _load_file(module_name: str, entry_point: Path) -> ModuleType:
    spec = importlib.util.spec_from_file_location(module_name, entry_point)
    if spec is None or spec.loader is None:
        raise LoaderError(f"Failed to create module spec for {entry_point}")

    module = importlib.util.module_from_spec(spec)

    # Add to sys.modules before execution
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        del sys.modules[module_name]
        raise LoaderError(f"Failed to load {entry_point}: {e}") from e

    return module


def load_unit(unit: Unit) -> list[ModuleType]:
    """
    Load a plugin's entry modules.

    A plugin without a ``plugin/`` directory loads nothing and is still
    marked as loaded.

    Args:
        unit: Installed plugin

    Returns:
        Loaded modules, in load order

    Raises:
        LoaderError: If the install directory is missing or a module fails
    """
    if unit.name in _module_cache:
        return _module_cache[unit.name]

    if not unit.install_path.is_dir():
        raise LoaderError(f"Plugin {unit.name} is not installed at {unit.install_path}")

    modules = []
    entry_dir = unit.install_path / ENTRY_DIR
    if entry_dir.is_dir():
        for entry_point in sorted(entry_dir.glob("*.py")):
            try:
                modules.append(_load_file(_module_name(unit.name, entry_point.stem), entry_point))
            except LoaderError:
                for module in modules:
                    sys.modules.pop(module.__name__, None)
                raise

    _module_cache[unit.name] = modules
    return modules


def unload_unit(plugin_name: str) -> None:
    """
    Unload a plugin's modules and clear them from the cache.

    Args:
        plugin_name: Name of plugin to unload
    """
    for module in _module_cache.pop(plugin_name, []):
        sys.modules.pop(module.__name__, None)


def is_loaded(plugin_name: str) -> bool:
    return plugin_name in _module_cache


def clear_cache() -> None:
    """Unload every cached plugin."""
    for plugin_name in list(_module_cache):
        unload_unit(plugin_name)
