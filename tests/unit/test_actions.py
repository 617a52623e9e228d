"""
Tests for the sync orchestrator.

This test suite covers:
1. The full sync pipeline (placement fix, clean, install, update, docs)
2. Partial failure isolation
3. Idempotence and placement round trips
4. Update outcomes (updated, up to date, failed, locked)
5. Clean confirmation and removal failures
6. Name filters, status and report callbacks
"""

import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from plugsync.actions import SyncOrchestrator
from plugsync.config import Settings
from plugsync.core.display import Display
from plugsync.errors import RemovalWarning, UpdateError
from plugsync.host import Host
from plugsync.plugin.backends import Backend, UpdateInfo
from plugsync.plugin.hooks import Hook
from plugsync.plugin.unit import Registry, Unit

MARKER = ".fake-installed"


class FakeBackend(Backend):
    """In-memory backend creating plain directories."""

    def __init__(self, fail_install=(), crash_install=(), fail_update=(), updates=None):
        self.fail_install = set(fail_install)
        self.crash_install = set(crash_install)
        self.fail_update = set(fail_update)
        self.updates = updates or {}
        self.installed: list[str] = []
        self.updated: list[str] = []

    async def installer(self, unit, disp):
        if unit.name in self.crash_install:
            raise RuntimeError("backend crashed")
        if unit.name in self.fail_install:
            return ["clone failed"]
        make_plugin(unit.install_path, unit.name)
        self.installed.append(unit.name)
        return None

    async def updater(self, unit, disp):
        self.updated.append(unit.name)
        if unit.name in self.fail_update:
            raise UpdateError("pull failed")
        messages = self.updates.get(unit.name)
        if messages is None:
            return UpdateInfo(revs=("abc", "abc"))
        return UpdateInfo(revs=("abc", "def"), messages=messages)

    async def get_rev(self, unit):
        return "abc"

    async def checkout(self, unit, rev):
        return None

    def is_intact(self, unit, path):
        return (path / MARKER).exists()


class RecordingDisplay(Display):
    """Display recording every event."""

    def __init__(self, confirm=True):
        self.confirm = confirm
        self.events = []
        self.asked = []

    def task_succeeded(self, name, message, info=None):
        self.events.append(("succeeded", name, message))

    def task_failed(self, name, message, err=None):
        self.events.append(("failed", name, message))

    def task_done(self, name, message):
        self.events.append(("done", name, message))

    async def ask_user(self, prompt, lines):
        self.asked.append(lines)
        return self.confirm


def make_plugin(path: Path, name: str) -> Path:
    (path / "doc").mkdir(parents=True, exist_ok=True)
    (path / MARKER).write_text("")
    (path / "doc" / f"{name}.txt").write_text(f"*{name}*\n")
    return path


def make_settings(root: Path, **overrides) -> Settings:
    values = dict(
        package_root=root,
        start_dir=root / "start",
        opt_dir=root / "opt",
        autoremove=True,
        lockfile=root / "lock.toml",
    )
    values.update(overrides)
    return Settings(**values)


def make_orchestrator(root: Path, units, backend=None, display=None, **overrides):
    settings = make_settings(root, **overrides)
    registry = Registry(settings.start_dir, settings.opt_dir, units)
    display = display or RecordingDisplay()
    orchestrator = SyncOrchestrator(
        registry,
        settings,
        backends={"git": backend or FakeBackend()},
        host=Host(loader=lambda unit: None),
        display_factory=lambda: display,
    )
    return orchestrator, display


class TestSyncPipeline:
    """Test the full sync pipeline."""

    @pytest.mark.asyncio
    async def test_missing_misplaced_and_extra(self):
        """A is installed, B is moved to start, C is removed; docs for A and B."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            backend = FakeBackend()
            orchestrator, _ = make_orchestrator(
                root, [Unit(name="A", start=True), Unit(name="B", start=True)], backend
            )
            make_plugin(root / "opt" / "B", "B")
            make_plugin(root / "opt" / "C", "C")

            report = await orchestrator.sync()

            assert report["B"].status == "up to date"
            assert orchestrator.fs_state().start == {
                root / "start" / "A": "A",
                root / "start" / "B": "B",
            }
            assert not (root / "opt" / "B").exists()
            assert not (root / "opt" / "C").exists()
            assert report[str(root / "opt" / "C")].status == "removed"
            assert report["A"].status == "installed"
            assert backend.installed == ["A"]
            assert backend.updated == ["B"]
            assert (root / "start" / "A" / "doc" / "tags").exists()
            assert (root / "start" / "B" / "doc" / "tags").exists()

    def test_move_result_has_paths(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            orchestrator, _ = make_orchestrator(root, [Unit(name="B", start=True)])
            make_plugin(root / "opt" / "B", "B")
            moves = {}

            fs_state = orchestrator.fs_state()
            orchestrator._fix_plugin_types(fs_state, moves)

            assert moves["B"].status == "moved"
            assert moves["B"].from_path == root / "opt" / "B"
            assert moves["B"].to_path == root / "start" / "B"
            assert fs_state.start == {root / "start" / "B": "B"}
            assert fs_state.extra == {}
            assert fs_state.missing == {}

    def test_failed_move_leaves_state(self, caplog):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            orchestrator, _ = make_orchestrator(root, [Unit(name="B", start=True)])
            make_plugin(root / "opt" / "B", "B")
            moves = {}

            fs_state = orchestrator.fs_state()
            with patch("plugsync.actions.os.rename", side_effect=OSError("busy")):
                with caplog.at_level("ERROR", logger="plugsync"):
                    orchestrator._fix_plugin_types(fs_state, moves)

            assert moves["B"].status == "failed"
            assert "busy" in moves["B"].err[0]
            assert fs_state.extra == {root / "opt" / "B": "B"}
            assert fs_state.missing == {"B": "B"}
            assert "Failed to move" in caplog.text

    @pytest.mark.asyncio
    async def test_failed_move_then_reinstall(self):
        """The stray copy is cleaned and B reinstalled; the move failure keeps its own key."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            backend = FakeBackend()
            orchestrator, _ = make_orchestrator(root, [Unit(name="B", start=True)], backend)
            make_plugin(root / "opt" / "B", "B")

            with patch("plugsync.actions.os.rename", side_effect=OSError("busy")):
                report = await orchestrator.sync()

            assert backend.installed == ["B"]
            assert report["B"].status == "installed"
            assert report["move:B"].status == "failed"
            assert "busy" in report["move:B"].err[0]
            assert report[str(root / "opt" / "B")].status == "removed"
            assert not (root / "opt" / "B").exists()
            assert (root / "start" / "B" / "doc" / "tags").exists()

    @pytest.mark.asyncio
    async def test_unreadable_docs_do_not_abort(self, caplog):
        """A dangling doc symlink in A skips A's docs only."""

        class BrokenDocBackend(FakeBackend):
            async def installer(self, unit, disp):
                err = await super().installer(unit, disp)
                if unit.name == "A":
                    (unit.install_path / "doc" / "broken.txt").symlink_to(
                        unit.install_path / "missing.txt"
                    )
                return err

        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            callback_reports = []
            orchestrator, _ = make_orchestrator(
                root, [Unit(name="A"), Unit(name="B")], BrokenDocBackend()
            )

            with caplog.at_level("WARNING", logger="plugsync"):
                report = await orchestrator.sync(callback=callback_reports.append)

            assert report["A"].status == "installed"
            assert report["B"].status == "installed"
            assert callback_reports == [report]
            assert not (root / "opt" / "A" / "doc" / "tags").exists()
            assert (root / "opt" / "B" / "doc" / "tags").exists()
            assert "Could not update helptags for A" in caplog.text

    @pytest.mark.asyncio
    async def test_docs_skipped_for_failed_units(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            backend = FakeBackend(fail_update=["old"])
            orchestrator, _ = make_orchestrator(root, [Unit(name="old")], backend)
            make_plugin(root / "opt" / "old", "old")

            report = await orchestrator.sync()

            assert report["old"].status == "failed"
            assert not (root / "opt" / "old" / "doc" / "tags").exists()

    @pytest.mark.asyncio
    async def test_dirty_unit_is_removed_and_reinstalled(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            backend = FakeBackend()
            orchestrator, _ = make_orchestrator(root, [Unit(name="d")], backend)
            (root / "opt" / "d").mkdir(parents=True)

            report = await orchestrator.sync()

            assert report[str(root / "opt" / "d")].status == "removed"
            assert report["d"].status == "installed"
            assert (root / "opt" / "d" / MARKER).exists()


class TestPartialFailure:
    """Test that one failing unit does not block the rest."""

    @pytest.mark.asyncio
    async def test_one_of_five_fails(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            backend = FakeBackend(fail_install=["u3"])
            units = [Unit(name=f"u{i}") for i in range(1, 6)]
            orchestrator, display = make_orchestrator(root, units, backend, max_jobs=2)

            report = await orchestrator.install()

            assert len(report) == 5
            assert [name for name, r in report.items() if not r.ok] == ["u3"]
            assert report["u3"].err == ["clone failed"]
            assert sum(1 for r in report.values() if r.status == "installed") == 4
            assert ("failed", "u3", "failed to install") in display.events

    @pytest.mark.asyncio
    async def test_crashing_backend_is_isolated(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            backend = FakeBackend(crash_install=["bad"])
            orchestrator, _ = make_orchestrator(
                root, [Unit(name="bad"), Unit(name="good")], backend
            )

            report = await orchestrator.install()

            assert report["good"].status == "installed"
            assert report["bad"].status == "failed"
            assert report["bad"].err == ["Unexpected error: backend crashed"]

    @pytest.mark.asyncio
    async def test_install_without_directory_fails(self):
        """Success is judged by the directory existing, not by the backend."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)

            class LyingBackend(FakeBackend):
                async def installer(self, unit, disp):
                    return None

            orchestrator, _ = make_orchestrator(root, [Unit(name="x")], LyingBackend())

            report = await orchestrator.install()

            assert report["x"].status == "failed"
            assert orchestrator.registry.get("x").installed is False

    @pytest.mark.asyncio
    async def test_failing_hook_fails_install(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)

            def hook():
                raise RuntimeError("build failed")

            orchestrator, _ = make_orchestrator(root, [Unit(name="x", run=Hook.call(hook))])

            report = await orchestrator.install()

            assert report["x"].status == "failed"
            assert "build failed" in report["x"].err[0]


class TestIdempotence:
    """Test that repeated syncs settle."""

    @pytest.mark.asyncio
    async def test_second_sync_changes_nothing(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            backend = FakeBackend()
            orchestrator, _ = make_orchestrator(
                root, [Unit(name="a", start=True), Unit(name="b"), Unit(name="c", start=True)], backend
            )
            make_plugin(root / "opt" / "c", "c")
            make_plugin(root / "start" / "stray", "stray")

            await orchestrator.sync()
            report = await orchestrator.sync()

            assert {r.status for r in report.values()} == {"up to date"}
            assert set(report) == {"a", "b", "c"}
            assert sorted(backend.installed) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_placement_round_trip(self):
        """Toggling start twice returns the directory to its original root."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            orchestrator, _ = make_orchestrator(root, [Unit(name="p")])
            make_plugin(root / "opt" / "p", "p")

            orchestrator.registry.set_placement("p", True)
            report = await orchestrator.sync()
            assert report["p"].status != "failed"
            assert (root / "start" / "p").is_dir()
            assert not (root / "opt" / "p").exists()

            orchestrator.registry.set_placement("p", False)
            await orchestrator.sync()
            assert (root / "opt" / "p" / MARKER).exists()
            assert not (root / "start" / "p").exists()


class TestUpdate:
    """Test update outcomes."""

    @pytest.mark.asyncio
    async def test_update_outcomes(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            hook_runs = []
            backend = FakeBackend(
                fail_update=["broken"],
                updates={"changed": ["abc1 first", "abc2 second\nabc3 third"]},
            )
            units = [
                Unit(name="changed", run=Hook.call(lambda: hook_runs.append("changed"))),
                Unit(name="same", run=Hook.call(lambda: hook_runs.append("same"))),
                Unit(name="broken"),
                Unit(name="pinned", lock=True),
            ]
            orchestrator, display = make_orchestrator(root, units, backend)
            for unit in units:
                make_plugin(unit.install_path, unit.name)

            report = await orchestrator.update()

            assert report["changed"].status == "updated"
            assert report["same"].status == "up to date"
            assert report["broken"].status == "failed"
            assert report["broken"].err == ["pull failed"]
            assert report["pinned"].status == "locked"
            assert report["pinned"].ok
            assert "pinned" not in backend.updated
            assert hook_runs == ["changed"]
            assert ("succeeded", "changed", "updated: 3 new commits") in display.events
            assert ("done", "same", "already up to date") in display.events
            assert ("succeeded", "pinned", "locked") in display.events
            assert orchestrator.registry.get("changed").revs == ("abc", "def")

    @pytest.mark.asyncio
    async def test_locked_unit_docs_untouched(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            units = [Unit(name="pinned", lock=True)]
            orchestrator, _ = make_orchestrator(root, units)
            make_plugin(units[0].install_path, "pinned")

            await orchestrator.update()

            assert not (units[0].install_path / "doc" / "tags").exists()

    @pytest.mark.asyncio
    async def test_missing_units_are_not_updated(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            backend = FakeBackend()
            orchestrator, _ = make_orchestrator(root, [Unit(name="gone")], backend)

            report = await orchestrator.update()

            assert report == {}
            assert backend.updated == []


class TestClean:
    """Test clean confirmation and removal."""

    @pytest.mark.asyncio
    async def test_declined_confirmation_keeps_directories(self, caplog):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            display = RecordingDisplay(confirm=False)
            orchestrator, _ = make_orchestrator(root, [], display=display, autoremove=False)
            make_plugin(root / "opt" / "stray", "stray")

            with caplog.at_level("WARNING", logger="plugsync"):
                report = await orchestrator.clean()

            assert report == {}
            assert (root / "opt" / "stray").is_dir()
            assert display.asked == [[f"  - {root / 'opt' / 'stray'}"]]
            assert "Cleaning cancelled!" in caplog.text

    @pytest.mark.asyncio
    async def test_confirmed_clean_removes(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            display = RecordingDisplay(confirm=True)
            orchestrator, _ = make_orchestrator(root, [], display=display, autoremove=False)
            make_plugin(root / "opt" / "stray", "stray")
            (root / "start").mkdir()
            (root / "start" / "link").symlink_to(root / "opt")

            report = await orchestrator.clean()

            assert set(report) == {str(root / "opt" / "stray"), str(root / "start" / "link")}
            assert not (root / "opt" / "stray").exists()
            assert not (root / "start" / "link").is_symlink()
            assert (root / "opt").is_dir()

    @pytest.mark.asyncio
    async def test_already_clean(self, caplog):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            display = RecordingDisplay()
            orchestrator, _ = make_orchestrator(root, [], display=display, autoremove=False)

            with caplog.at_level("INFO", logger="plugsync"):
                report = await orchestrator.clean()

            assert report == {}
            assert display.asked == []
            assert "Already clean!" in caplog.text

    @pytest.mark.asyncio
    async def test_removal_failure_warns_and_continues(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            orchestrator, _ = make_orchestrator(root, [])
            make_plugin(root / "opt" / "a", "a")
            make_plugin(root / "opt" / "b", "b")

            from plugsync import actions

            real_remove = actions._remove_path

            def flaky_remove(path):
                if path.name == "a":
                    raise PermissionError("read-only")
                real_remove(path)

            with patch("plugsync.actions._remove_path", side_effect=flaky_remove):
                with pytest.warns(RemovalWarning):
                    report = await orchestrator.clean()

            assert set(report) == {str(root / "opt" / "b")}
            assert (root / "opt" / "a").is_dir()


class TestFiltersAndStatus:
    """Test name filters, status and callbacks."""

    @pytest.mark.asyncio
    async def test_install_filter(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            backend = FakeBackend()
            orchestrator, _ = make_orchestrator(root, [Unit(name="a"), Unit(name="b")], backend)

            report = await orchestrator.install(["b", "nope"])

            assert set(report) == {"b"}
            assert backend.installed == ["b"]

    @pytest.mark.asyncio
    async def test_no_matching_names(self, caplog):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            backend = FakeBackend()
            orchestrator, _ = make_orchestrator(root, [Unit(name="a")], backend)
            reports = []

            with caplog.at_level("ERROR", logger="plugsync"):
                report = await orchestrator.sync(["nope"], callback=reports.append)

            assert report == {}
            assert reports == [{}]
            assert backend.installed == []
            assert "Unknown plugin: nope" in caplog.text

    @pytest.mark.asyncio
    async def test_callback_receives_report(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            orchestrator, _ = make_orchestrator(root, [Unit(name="a")])
            reports = []

            report = await orchestrator.install(callback=reports.append)

            assert reports == [report]
            assert report["a"].status == "installed"

    def test_status(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            units = [
                Unit(name="ok"),
                Unit(name="gone"),
                Unit(name="wrong", start=True),
                Unit(name="dirty"),
            ]
            orchestrator, _ = make_orchestrator(root, units)
            make_plugin(root / "opt" / "ok", "ok")
            make_plugin(root / "opt" / "wrong", "wrong")
            (root / "opt" / "dirty").mkdir()
            make_plugin(root / "opt" / "stray", "stray")

            assert orchestrator.status() == {
                "ok": "installed",
                "gone": "missing",
                "wrong": "misplaced",
                "dirty": "dirty",
                str(root / "opt" / "stray"): "extra",
            }

    def test_unknown_backend_type_counts_as_intact(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            orchestrator, _ = make_orchestrator(root, [Unit(name="odd", type="svn")])
            (root / "opt" / "odd").mkdir(parents=True)

            assert orchestrator.status() == {"odd": "installed"}

    @pytest.mark.asyncio
    async def test_unknown_backend_type_fails_install(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            orchestrator, _ = make_orchestrator(root, [Unit(name="odd", type="svn")])

            report = await orchestrator.install()

            assert report["odd"].status == "failed"
            assert "No backend" in report["odd"].err[0]

    @pytest.mark.asyncio
    async def test_diff_and_revert_unknown_plugin(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            orchestrator, _ = make_orchestrator(Path(tmpdir), [])
            received = []

            await orchestrator.diff("nope", "HEAD", lambda lines, err: received.append(err))

            assert received == [["Unknown plugin: nope"]]
            assert await orchestrator.revert_last("nope") == ["Unknown plugin: nope"]
