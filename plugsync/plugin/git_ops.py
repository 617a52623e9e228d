"""
Git Operations for Plugin Management.

This module provides the git backend used to install and update plugins.

Key features:
- Clone plugins, optionally at a branch, tag or commit
- Fast-forward updates with change-log collection
- Latest semantic-version tag resolution (tag = "*")
- Diff, revert, revision lookup and checkout
- Remote URL integrity check on existing clones
"""

import configparser
import re
from pathlib import Path

from plugsync.core import jobs
from plugsync.core.display import Display
from plugsync.plugin.backends import Backend, BackendError, DiffCallback, UpdateInfo
from plugsync.plugin.unit import Unit

LATEST_TAG = "*"
LOG_FORMAT = "%h %s (%cr)"

_SEMVER_RE = re.compile(r"^\d+\.\d+\.\d+$")


class GitError(BackendError):
    """Base exception for git-related errors."""

    pass


async def _git(
    git_cmd: str,
    args: list[str],
    cwd: Path | None = None,
    timeout: float | None = None,
) -> list[str]:
    """
    Run a git command and return its stdout lines.

    Raises:
        GitError: If git is missing, times out or exits non-zero
    """
    try:
        result = await jobs.run(
            [git_cmd, *args],
            cwd=cwd,
            env={"GIT_TERMINAL_PROMPT": "0"},
            timeout=timeout,
        )
    except jobs.JobError as e:
        raise GitError(f"git {args[0]} failed: {e}") from e

    if not result.ok:
        output = "\n".join(result.stderr or result.stdout)
        raise GitError(f"git {args[0]} failed: {output}")

    return result.stdout


async def clone_plugin(
    git_cmd: str,
    repo_url: str,
    target_dir: Path,
    branch: str | None = None,
    timeout: float | None = None,
) -> None:
    """
    Clone a plugin repository.

    Args:
        git_cmd: git executable
        repo_url: Git repository URL
        target_dir: Target directory for clone
        branch: Optional branch or tag to check out
        timeout: Seconds before the clone is killed

    Raises:
        GitError: If clone operation fails
    """
    target_dir.parent.mkdir(parents=True, exist_ok=True)

    args = ["clone", "--no-single-branch"]
    if branch:
        args.extend(["--branch", branch])
    args.extend([repo_url, str(target_dir)])

    await _git(git_cmd, args, timeout=timeout)


async def list_tags(git_cmd: str, repo_dir: Path) -> list[str]:
    """List all tags in repository."""
    lines = await _git(git_cmd, ["tag", "-l"], cwd=repo_dir)
    return [line.strip() for line in lines if line.strip()]


async def get_latest_tag(git_cmd: str, repo_dir: Path, prefix: str = "v") -> str | None:
    """
    Get the latest semantic version tag.

    Args:
        git_cmd: git executable
        repo_dir: Plugin repository directory
        prefix: Tag prefix (default: "v")

    Returns:
        Latest tag name, or None if no tags found
    """
    return pick_latest_tag(await list_tags(git_cmd, repo_dir), prefix)


def pick_latest_tag(tags: list[str], prefix: str = "v") -> str | None:
    """Return the highest ``<prefix>X.Y.Z`` tag, or None."""
    version_tags = []
    for tag in tags:
        if tag.startswith(prefix) and _SEMVER_RE.match(tag[len(prefix):]):
            version_tags.append((_parse_semver(tag[len(prefix):]), tag))

    if not version_tags:
        return None

    version_tags.sort(reverse=True)
    return version_tags[0][1]


def _parse_semver(version: str) -> tuple[int, int, int]:
    major, minor, patch = version.split(".")
    return (int(major), int(minor), int(patch))


def _normalize_url(url: str) -> str:
    url = url.strip().rstrip("/")
    if url.endswith(".git"):
        url = url[: -len(".git")]
    return url


def read_remote_url(repo_dir: Path, remote: str = "origin") -> str | None:
    """Read a remote's URL straight from .git/config, without running git."""
    config_path = repo_dir / ".git" / "config"
    if not config_path.is_file():
        return None

    parser = configparser.ConfigParser(strict=False, interpolation=None)
    try:
        parser.read(config_path, encoding="utf-8")
    except configparser.Error:
        return None

    section = f'remote "{remote}"'
    if not parser.has_section(section):
        return None
    return parser.get(section, "url", fallback=None)


class GitBackend(Backend):
    """
    Backend for plugins cloned from git.

    Args:
        git_cmd: git executable
        timeout: Seconds allowed for network operations (clone/fetch/pull)
    """

    name = "git"

    def __init__(self, git_cmd: str = "git", timeout: float | None = 60):
        self.git_cmd = git_cmd
        self.timeout = timeout

    async def _target_ref(self, unit: Unit) -> str | None:
        if unit.commit:
            return unit.commit
        if unit.tag == LATEST_TAG:
            return await get_latest_tag(self.git_cmd, unit.install_path)
        return unit.tag

    async def rev_parse(self, unit: Unit, short: bool = True) -> str:
        args = ["rev-parse", "--short", "HEAD"] if short else ["rev-parse", "HEAD"]
        lines = await _git(self.git_cmd, args, cwd=unit.install_path)
        return lines[0].strip() if lines else ""

    async def installer(self, unit: Unit, disp: Display) -> list[str] | None:
        disp.task_update(unit.name, "cloning...")
        branch = unit.branch or (unit.tag if unit.tag != LATEST_TAG else None)
        try:
            await clone_plugin(
                self.git_cmd, unit.url, unit.install_path, branch=branch, timeout=self.timeout
            )
            if unit.commit or unit.tag == LATEST_TAG:
                ref = await self._target_ref(unit)
                if ref:
                    disp.task_update(unit.name, f"checking out {ref}...")
                    await _git(self.git_cmd, ["checkout", ref], cwd=unit.install_path)
        except GitError as e:
            return [str(e)]
        return None

    async def updater(self, unit: Unit, disp: Display) -> UpdateInfo:
        try:
            before = await self.rev_parse(unit)
        except GitError as e:
            return UpdateInfo(err=[str(e)])

        try:
            if unit.commit or unit.tag:
                disp.task_update(unit.name, "fetching updates...")
                await _git(
                    self.git_cmd,
                    ["fetch", "--tags", "--force"],
                    cwd=unit.install_path,
                    timeout=self.timeout,
                )
                ref = await self._target_ref(unit)
                if ref:
                    await _git(self.git_cmd, ["checkout", ref], cwd=unit.install_path)
            else:
                disp.task_update(unit.name, "pulling updates...")
                await _git(
                    self.git_cmd,
                    ["pull", "--ff-only", "--progress"],
                    cwd=unit.install_path,
                    timeout=self.timeout,
                )
            after = await self.rev_parse(unit)
        except GitError as e:
            return UpdateInfo(revs=(before, before), err=[str(e)])

        messages: list[str] = []
        if before != after:
            try:
                messages = await _git(
                    self.git_cmd,
                    ["log", "--color=never", f"--pretty=format:{LOG_FORMAT}", f"{before}..{after}"],
                    cwd=unit.install_path,
                )
            except GitError:
                # a checkout to an older ref has no forward log
                messages = []

        return UpdateInfo(revs=(before, after), messages=messages)

    async def diff(self, unit: Unit, ref: str, callback: DiffCallback) -> None:
        try:
            lines = await _git(
                self.git_cmd, ["show", "--no-color", "--pretty=medium", ref], cwd=unit.install_path
            )
        except GitError as e:
            callback([], [str(e)])
            return
        callback(lines, None)

    async def revert_last(self, unit: Unit) -> list[str] | None:
        try:
            await _git(self.git_cmd, ["reset", "--hard", "HEAD@{1}"], cwd=unit.install_path)
        except GitError as e:
            return [str(e)]
        return None

    async def get_rev(self, unit: Unit) -> str | None:
        try:
            return await self.rev_parse(unit, short=False)
        except GitError:
            return None

    async def checkout(self, unit: Unit, rev: str) -> list[str] | None:
        try:
            await _git(self.git_cmd, ["checkout", rev], cwd=unit.install_path)
        except GitError as e:
            return [str(e)]
        return None

    def is_intact(self, unit: Unit, path: Path) -> bool:
        """A clone is intact when its origin still points at the declared URL."""
        if not (path / ".git").exists():
            return False
        if (path / ".git").is_file():
            # worktree or submodule checkout, no local config to compare
            return True
        remote = read_remote_url(path)
        if remote is None:
            return False
        return _normalize_url(remote) == _normalize_url(unit.url)
