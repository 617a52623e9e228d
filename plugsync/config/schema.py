"""
Configuration Schema System.

This module declares the fields accepted in ``plugsync.toml`` and checks
tables read from it.

Key features:
- One ConfigField per accepted key, with type, bounds and choices
- SETTINGS_SCHEMA for [settings], PLUGIN_SCHEMA for each [plugins."..."] table
- Omitted keys take their default, unknown keys are rejected
"""

from dataclasses import dataclass
from typing import Any

from plugsync.errors import ConfigError

_TYPE_NAMES = {bool: "a boolean", int: "an integer", float: "a number", str: "a string"}


class SchemaError(ConfigError):
    """Raised when a field definition itself is inconsistent."""

    pass


class ValidationError(SchemaError):
    """Raised when a configured value does not satisfy its field."""

    pass


def _type_name(type_: type) -> str:
    return _TYPE_NAMES.get(type_, type_.__name__)


def _is_instance(value: Any, type_: type) -> bool:
    # bool is an int subclass; `max_jobs = true` is a mistake, not 1
    if isinstance(value, bool) and type_ is not bool:
        return False
    return isinstance(value, type_)


@dataclass
class ConfigField:
    """
    One accepted configuration key.

    Attributes:
        type_: Python type the TOML value must parse to
        default: Value used when the key is omitted
        description: Shown as a comment in the starter config
        min: Lower bound (numeric fields only)
        max: Upper bound (numeric fields only)
        choices: Allowed values
    """

    type_: type
    default: Any
    description: str = ""
    min: Any = None
    max: Any = None
    choices: list[Any] | None = None

    def __post_init__(self):
        if not _is_instance(self.default, self.type_):
            raise SchemaError(
                f"Default {self.default!r} is not {_type_name(self.type_)}"
            )
        bounded = self.min is not None or self.max is not None
        if bounded and self.type_ not in (int, float):
            raise SchemaError(f"Bounds need a numeric field, not {_type_name(self.type_)}")
        if self.choices is not None and self.default not in self.choices:
            raise SchemaError(f"Default {self.default!r} is not one of {self.choices}")

    def validate(self, value: Any) -> Any:
        """
        Check a configured value.

        Returns:
            The value unchanged

        Raises:
            ValidationError: If the value has the wrong type, is out of
                bounds, or is not an allowed choice
        """
        if not _is_instance(value, self.type_):
            raise ValidationError(
                f"expected {_type_name(self.type_)}, got {type(value).__name__} {value!r}"
            )
        if self.choices is not None and value not in self.choices:
            raise ValidationError(f"{value!r} is not one of {self.choices}")
        if self.min is not None and value < self.min:
            raise ValidationError(f"{value} is below the minimum of {self.min}")
        if self.max is not None and value > self.max:
            raise ValidationError(f"{value} is above the maximum of {self.max}")
        return value


SETTINGS_SCHEMA: dict[str, ConfigField] = {
    "package_root": ConfigField(
        str, "~/.local/share/plugsync/pack", "Directory holding the start and opt roots"
    ),
    "start_dir": ConfigField(str, "start", "Always-loaded plugins, relative to package_root"),
    "opt_dir": ConfigField(str, "opt", "Lazily-loaded plugins, relative to package_root"),
    "max_jobs": ConfigField(int, 0, "Concurrent plugin tasks (0 = no limit)", min=0),
    "autoremove": ConfigField(bool, False, "Remove extra/dirty directories without asking"),
    "lockfile": ConfigField(str, "plugsync-lock.toml", "Lockfile path, relative to the config file"),
    "git_cmd": ConfigField(str, "git", "git executable"),
    "default_url_format": ConfigField(
        str, "https://github.com/%s", "Format turning owner/repo into a clone URL"
    ),
    "clone_timeout": ConfigField(int, 60, "Seconds allowed for clone/fetch/pull", min=1),
}

PLUGIN_SCHEMA: dict[str, ConfigField] = {
    "start": ConfigField(bool, False, "Install under the always-loaded root"),
    "lock": ConfigField(bool, False, "Skip this plugin when updating"),
    "branch": ConfigField(str, "", "Branch to track"),
    "tag": ConfigField(str, "", "Tag to check out ('*' = latest vX.Y.Z)"),
    "commit": ConfigField(str, "", "Commit to pin"),
    "run": ConfigField(str, "", "Hook: shell command, or ':Command' for a host command"),
    "as": ConfigField(str, "", "Install under this name instead of the repo name"),
    "type": ConfigField(str, "", "Backend type", choices=["", "git", "local"]),
}


def validate_config(
    config: dict[str, Any], schema: dict[str, ConfigField], section: str = ""
) -> dict[str, Any]:
    """
    Check a table against a schema.

    Args:
        config: Table as read from TOML
        schema: Accepted keys
        section: Table name used in error messages

    Returns:
        A new table holding every schema key

    Raises:
        ValidationError: On the first unknown or invalid key
    """
    where = f" in [{section}]" if section else ""

    unknown = sorted(set(config) - set(schema))
    if unknown:
        raise ValidationError(f"Unknown configuration field{where}: {', '.join(unknown)}")

    values = {}
    for key, field in schema.items():
        try:
            values[key] = field.validate(config.get(key, field.default))
        except ValidationError as e:
            raise ValidationError(f"Field '{key}'{where}: {e}") from e
    return values


def defaults(schema: dict[str, ConfigField]) -> dict[str, Any]:
    """Table of every key at its default."""
    return {key: field.default for key, field in schema.items()}
