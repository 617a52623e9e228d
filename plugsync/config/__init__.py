"""
plugsync Configuration - TOML-based settings and plugin declarations.

This module provides:
- Settings loaded and validated from the [settings] table
- Plugin declarations turned into a Registry from the [plugins] table
- A commented starter config

Example ``plugsync.toml``:

    [settings]
    package_root = "~/.local/share/nvim/site/pack/plugsync"
    max_jobs = 8

    [plugins."tpope/vim-fugitive"]
    start = true

    [plugins."nvim-treesitter/nvim-treesitter"]
    run = ":TSUpdate"
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from plugsync.config.schema import (
    PLUGIN_SCHEMA,
    SETTINGS_SCHEMA,
    ValidationError,
    validate_config,
)
from plugsync.config.toml_handler import TOMLError, read_toml, render_config_template
from plugsync.errors import ConfigError
from plugsync.plugin.unit import Registry, unit_from_spec

DEFAULT_CONFIG_FILE = Path("plugsync.toml")
CONFIG_ENV_VAR = "PLUGSYNC_CONFIG"


@dataclass
class Settings:
    """
    Validated settings.

    Attributes:
        package_root: Directory holding both roots
        start_dir: Root for always-loaded plugins
        opt_dir: Root for lazily-loaded plugins
        max_jobs: Concurrent task limit (None = no limit)
        autoremove: Clean without asking
        lockfile: Lockfile path
        git_cmd: git executable
        default_url_format: Format turning owner/repo into a clone URL
        clone_timeout: Seconds allowed for network git operations
    """

    package_root: Path
    start_dir: Path
    opt_dir: Path
    max_jobs: int | None = None
    autoremove: bool = False
    lockfile: Path = Path("plugsync-lock.toml")
    git_cmd: str = "git"
    default_url_format: str = "https://github.com/%s"
    clone_timeout: int = 60

    @classmethod
    def from_table(cls, table: dict[str, Any], base_dir: Path | None = None) -> "Settings":
        """
        Build settings from a [settings] table.

        Args:
            table: Raw table (missing fields take their defaults)
            base_dir: Directory relative lockfile paths resolve against

        Raises:
            ValidationError: If the table is invalid
        """
        values = validate_config(table, SETTINGS_SCHEMA, "settings")
        base_dir = base_dir or Path.cwd()

        package_root = Path(values["package_root"]).expanduser()
        lockfile = Path(values["lockfile"]).expanduser()

        return cls(
            package_root=package_root,
            # an absolute start_dir/opt_dir replaces package_root
            start_dir=package_root / Path(values["start_dir"]).expanduser(),
            opt_dir=package_root / Path(values["opt_dir"]).expanduser(),
            max_jobs=values["max_jobs"] or None,
            autoremove=values["autoremove"],
            lockfile=lockfile if lockfile.is_absolute() else base_dir / lockfile,
            git_cmd=values["git_cmd"],
            default_url_format=values["default_url_format"],
            clone_timeout=values["clone_timeout"],
        )


def build_registry(plugins: dict[str, Any], settings: Settings) -> Registry:
    """
    Turn a [plugins] table into a Registry.

    Raises:
        ConfigError: If a declaration is malformed or names collide
    """
    registry = Registry(settings.start_dir, settings.opt_dir)
    for spec, options in plugins.items():
        if not isinstance(options, dict):
            raise ConfigError(f"Plugin '{spec}' must be a table, got {type(options).__name__}")
        values = validate_config(options, PLUGIN_SCHEMA, f'plugins."{spec}"')
        registry.add(unit_from_spec(spec, values, settings.default_url_format))
    return registry


def find_config_file(path: Path | None = None) -> Path:
    """Resolve the config path: explicit argument, then $PLUGSYNC_CONFIG, then ./plugsync.toml."""
    if path is not None:
        return path
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_FILE


def load_config(path: Path | None = None) -> tuple[Settings, Registry]:
    """
    Load settings and declared plugins.

    Args:
        path: Config file (see find_config_file for the fallback order)

    Returns:
        (Settings, Registry)

    Raises:
        ConfigError: If the file is missing, unparsable or invalid
    """
    config_file = find_config_file(path)
    data = read_toml(config_file)

    settings = Settings.from_table(data.get("settings", {}), base_dir=config_file.parent)
    registry = build_registry(data.get("plugins", {}), settings)
    return settings, registry


def generate_default_config() -> str:
    """Return the text of a starter config file."""
    return render_config_template(SETTINGS_SCHEMA)


__all__ = [
    "ConfigError",
    "Settings",
    "TOMLError",
    "ValidationError",
    "build_registry",
    "find_config_file",
    "generate_default_config",
    "load_config",
]
