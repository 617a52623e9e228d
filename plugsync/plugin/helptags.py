"""
Documentation index (helptags) regeneration.

A plugin's ``doc/`` directory holds help sources (``*.txt`` and translated
``*.xxx`` files such as ``*.jax``) and generated indexes (``tags`` and
``tags-xx``). An index lists every ``*anchor*`` found in the sources.
"""

import logging
import re
from pathlib import Path

from plugsync.plugin.unit import Registry

logger = logging.getLogger(__name__)

DOC_DIR = "doc"

_ANCHOR_RE = re.compile(r"\*([^\s*|]+)\*")
_TRANSLATED_RE = re.compile(r"^\.([a-z][a-z])x$")


def _doc_sources(doc_dir: Path) -> list[Path]:
    sources = list(doc_dir.glob("*.txt"))
    sources.extend(doc_dir.glob("*.[a-z][a-z]x"))
    return sorted(sources)


def _doc_indexes(doc_dir: Path) -> list[Path]:
    indexes = list(doc_dir.glob("tags"))
    indexes.extend(doc_dir.glob("tags-[a-z][a-z]"))
    return sorted(indexes)


def helptags_stale(doc_dir: Path) -> bool:
    """
    Decide whether the indexes in doc_dir must be regenerated.

    Returns:
        False if there are no sources (any leftover index is kept),
        True if there are sources but no index, otherwise whether the newest
        source is newer than the oldest index.
    """
    sources = _doc_sources(doc_dir)
    if not sources:
        if _doc_indexes(doc_dir):
            logger.debug("%s has indexes but no doc sources, leaving them", doc_dir)
        return False

    indexes = _doc_indexes(doc_dir)
    if not indexes:
        return True

    source_newest = max(path.stat().st_mtime for path in sources)
    index_oldest = min(path.stat().st_mtime for path in indexes)
    return source_newest > index_oldest


def _index_name(source: Path) -> str:
    if source.suffix == ".txt":
        return "tags"
    match = _TRANSLATED_RE.match(source.suffix)
    return f"tags-{match.group(1)}" if match else "tags"


def _escape(tag: str) -> str:
    return tag.replace("\\", "\\\\").replace("/", "\\/")


def generate_helptags(doc_dir: Path) -> list[str]:
    """
    Write the index files for doc_dir.

    Duplicate anchors keep their first occurrence and are reported.

    Returns:
        Duplicate-tag messages (empty when the sources are clean)
    """
    indexes: dict[str, dict[str, str]] = {}
    problems: list[str] = []

    for source in _doc_sources(doc_dir):
        tags = indexes.setdefault(_index_name(source), {})
        text = source.read_text(encoding="utf-8", errors="replace")
        for tag in _ANCHOR_RE.findall(text):
            if tag in tags:
                problems.append(f"Duplicate tag '{tag}' in {source.name}")
                continue
            tags[tag] = source.name

    for index_name, tags in indexes.items():
        lines = [f"{tag}\t{tags[tag]}\t/*{_escape(tag)}*" for tag in sorted(tags)]
        (doc_dir / index_name).write_text("\n".join(lines) + "\n", encoding="utf-8")

    # every remaining index maps to a current source
    for index in _doc_indexes(doc_dir):
        if index.name not in indexes:
            logger.debug("Removing orphaned index %s", index)
            index.unlink()

    return problems


def update_helptags(names: list[str], registry: Registry) -> list[Path]:
    """
    Regenerate stale indexes for the given plugins.

    Args:
        names: Plugins eligible for regeneration
        registry: Registry resolving names to install paths

    Returns:
        Doc directories that were regenerated. A directory that cannot be
        read or written is logged and skipped.
    """
    updated = []
    for name in names:
        unit = registry.get(name)
        if unit is None:
            continue
        doc_dir = unit.install_path / DOC_DIR
        try:
            if not doc_dir.is_dir() or not helptags_stale(doc_dir):
                continue
            logger.debug("Updating helptags for %s", doc_dir)
            problems = generate_helptags(doc_dir)
        except OSError as e:
            logger.warning("Could not update helptags for %s: %s", name, e)
            continue
        for problem in problems:
            logger.warning("%s: %s", name, problem)
        updated.append(doc_dir)
    return updated
