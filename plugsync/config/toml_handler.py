"""
TOML File I/O Handler.

Config files and lockfiles are read with ``tomllib`` and written with
``tomlkit``, so comments and ordering survive in generated files.

Key features:
- read_toml / write_toml with errors mapped to TOMLError
- A commented starter config rendered from the settings schema
"""

import tomllib
from pathlib import Path
from typing import Any

import tomlkit

from plugsync.errors import ConfigError


class TOMLError(ConfigError):
    """Raised when a TOML file cannot be read, parsed or written."""

    pass


def read_toml(file_path: Path) -> dict[str, Any]:
    """
    Parse a TOML file.

    Raises:
        TOMLError: If the file is missing, unreadable or not valid TOML
    """
    try:
        data = file_path.read_bytes()
    except FileNotFoundError as e:
        raise TOMLError(f"TOML file not found: {file_path}") from e
    except OSError as e:
        raise TOMLError(f"Cannot read {file_path}: {e}") from e

    try:
        return tomllib.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, tomllib.TOMLDecodeError) as e:
        raise TOMLError(f"Failed to parse {file_path}: {e}") from e


def write_toml(file_path: Path, data: dict[str, Any] | tomlkit.TOMLDocument) -> None:
    """
    Write a table or tomlkit document, creating parent directories.

    Raises:
        TOMLError: If the file cannot be written
    """
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(tomlkit.dumps(data), encoding="utf-8")
    except OSError as e:
        raise TOMLError(f"Cannot write {file_path}: {e}") from e


def _field_comments(field) -> list[str]:
    comments = [field.description] if field.description else []
    limits = []
    if field.min is not None:
        limits.append(f">= {field.min}")
    if field.max is not None:
        limits.append(f"<= {field.max}")
    if field.choices is not None:
        limits.append("one of " + ", ".join(repr(choice) for choice in field.choices))
    if limits:
        comments.append("Allowed: " + ", ".join(limits))
    return comments


def render_config_template(settings_schema: dict[str, Any]) -> str:
    """
    Render a starter ``plugsync.toml``: every setting at its default with its
    description as a comment, followed by an example plugin table.

    Args:
        settings_schema: field name -> ConfigField

    Returns:
        TOML text
    """
    doc = tomlkit.document()
    doc.add(tomlkit.comment("plugsync configuration"))
    doc.add(tomlkit.nl())

    settings = tomlkit.table()
    for key, field in settings_schema.items():
        for comment in _field_comments(field):
            settings.add(tomlkit.comment(comment))
        settings.add(key, field.default)
    doc.add("settings", settings)

    example = tomlkit.table()
    example.add(tomlkit.comment('"owner/repo", a git URL, or a local path'))
    example.add("start", True)
    plugins = tomlkit.table(is_super_table=True)
    plugins.add("tpope/vim-fugitive", example)
    doc.add(tomlkit.nl())
    doc.add("plugins", plugins)

    return tomlkit.dumps(doc)
