"""
Declared plugins and the registry holding them.

A Unit is created from configuration when the registry is built. Its
static fields describe the declaration; the runtime fields (installed,
revs, messages, err) are written by orchestration stages only.
"""

import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path

from plugsync.errors import ConfigError
from plugsync.plugin.hooks import Hook

DEFAULT_URL_FORMAT = "https://github.com/%s"

_LOCAL_PREFIXES = ("~", "/", ".")
_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


@dataclass
class Unit:
    """
    A managed plugin.

    Attributes:
        name: Unique name, also the install directory name
        spec: Declaration string (owner/repo, URL, or local path)
        type: Backend type tag ("git" or "local")
        url: Clone URL or local source directory
        start: True for the always-loaded root, False for the lazy root
        lock: Exempt from updates
        branch: Branch to track (git)
        tag: Tag to check out; "*" selects the latest semantic version (git)
        commit: Commit to pin (git)
        run: Post install/update hook
        install_path: Desired install directory (set by Registry)
        installed: Install directory existed after the last install
        revs: Revision before and after the last update
        messages: Change-log lines from the last update
        err: Error lines from the last stage that touched the plugin
    """

    name: str
    spec: str = ""
    type: str = "git"
    url: str = ""
    start: bool = False
    lock: bool = False
    branch: str | None = None
    tag: str | None = None
    commit: str | None = None
    run: Hook | None = None
    install_path: Path = field(default_factory=Path)
    installed: bool = False
    revs: tuple[str | None, str | None] = (None, None)
    messages: list[str] = field(default_factory=list)
    err: list[str] | None = None


def name_from_spec(spec: str) -> str:
    """
    Derive a plugin name from its declaration.

    >>> name_from_spec("tpope/vim-fugitive")
    'vim-fugitive'
    >>> name_from_spec("https://example.com/x/foo.nvim.git")
    'foo.nvim'
    """
    tail = spec.rstrip("/").replace(":", "/").split("/")[-1]
    if tail.endswith(".git"):
        tail = tail[: -len(".git")]
    return tail


def unit_from_spec(
    spec: str,
    options: dict | None = None,
    url_format: str = DEFAULT_URL_FORMAT,
) -> Unit:
    """
    Build a Unit from a declaration string and its options.

    Args:
        spec: owner/repo, a git URL, or a local path
        options: Validated option table (start, lock, branch, tag, commit, run, as, type)
        url_format: printf-style format turning owner/repo into a URL

    Returns:
        Unit (install_path is assigned when added to a Registry)

    Raises:
        ConfigError: If no valid name can be derived
    """
    options = options or {}
    plugin_type = options.get("type") or (
        "local" if spec.startswith(_LOCAL_PREFIXES) else "git"
    )

    if plugin_type == "local":
        url = str(Path(spec).expanduser())
    elif "://" in spec or spec.startswith("git@"):
        url = spec
    else:
        url = url_format % spec

    name = options.get("as") or name_from_spec(spec)
    if not _NAME_RE.match(name):
        raise ConfigError(f"Invalid plugin name '{name}' derived from '{spec}'")

    return Unit(
        name=name,
        spec=spec,
        type=plugin_type,
        url=url,
        start=bool(options.get("start", False)),
        lock=bool(options.get("lock", False)),
        branch=options.get("branch") or None,
        tag=options.get("tag") or None,
        commit=options.get("commit") or None,
        run=Hook.parse(options.get("run")),
    )


class Registry:
    """
    Declared plugins keyed by name, plus the two install roots.

    Passed explicitly to every stage of a batch.
    """

    def __init__(self, start_dir: Path, opt_dir: Path, units: list[Unit] | None = None):
        self.start_dir = start_dir
        self.opt_dir = opt_dir
        self._units: dict[str, Unit] = {}
        for unit in units or []:
            self.add(unit)

    def install_path_for(self, name: str, start: bool) -> Path:
        return (self.start_dir if start else self.opt_dir) / name

    def add(self, unit: Unit) -> Unit:
        """
        Register a unit and assign its install path.

        Raises:
            ConfigError: If a unit with the same name is already declared
        """
        if unit.name in self._units:
            existing = self._units[unit.name]
            raise ConfigError(
                f"Plugin name '{unit.name}' declared twice ({existing.spec!r} and {unit.spec!r})"
            )
        unit.install_path = self.install_path_for(unit.name, unit.start)
        self._units[unit.name] = unit
        return unit

    def set_placement(self, name: str, start: bool) -> None:
        """Change a unit's placement flag and its desired install path."""
        unit = self._units[name]
        unit.start = start
        unit.install_path = self.install_path_for(name, start)

    def get(self, name: str) -> Unit | None:
        return self._units.get(name)

    def names(self) -> list[str]:
        return sorted(self._units)

    def __contains__(self, name: object) -> bool:
        return name in self._units

    def __iter__(self) -> Iterator[Unit]:
        return iter([self._units[name] for name in self.names()])

    def __len__(self) -> int:
        return len(self._units)
