"""Tests for the watch coordinator and vault watcher."""

import signal
import threading
from pathlib import Path

import pytest
from watchdog.events import (
    DirModifiedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from obsidian_exporter.core import watch as watch_module
from obsidian_exporter.core.mapping import PathMapper
from obsidian_exporter.core.models import ExportError, ExportResult, WatchError
from obsidian_exporter.core.pipeline import ExportPipeline
from obsidian_exporter.core.signatures import SignatureTable
from obsidian_exporter.core.watch import (
    CoordinatorState,
    VaultWatcher,
    WatchCoordinator,
    _VaultEventHandler,
    watch_vault,
)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class RecordingRunner:
    def __init__(self, on_run=None):
        self.calls = []
        self.on_run = on_run

    def __call__(self, paths, cancel):
        self.calls.append(list(paths))
        if self.on_run:
            self.on_run(paths, cancel)
        return ExportResult()


@pytest.fixture
def clock():
    return FakeClock()


class TestWatchCoordinator:
    """Tests for WatchCoordinator."""

    def test_burst_becomes_one_pass(self, clock):
        runner = RecordingRunner()
        coordinator = WatchCoordinator(runner, debounce_seconds=0.5, clock=clock)

        for name in ["a.md", "b.md", "a.md", "c.md"]:
            coordinator.notify(Path(name))
        assert coordinator.poll() is None
        assert coordinator.state is CoordinatorState.DEBOUNCING

        clock.now = 0.3
        coordinator.notify(Path("b.md"))
        assert coordinator.poll() is None

        # Deadline moved to 0.8 by the last event
        clock.now = 0.7
        assert coordinator.poll() is None
        assert runner.calls == []

        clock.now = 0.9
        assert isinstance(coordinator.poll(), ExportResult)
        assert runner.calls == [[Path("a.md"), Path("b.md"), Path("c.md")]]
        assert coordinator.passes_run == 1
        assert coordinator.state is CoordinatorState.IDLE

    def test_idle_without_events(self, clock):
        runner = RecordingRunner()
        coordinator = WatchCoordinator(runner, clock=clock)
        clock.now = 10
        assert coordinator.poll() is None
        assert coordinator.state is CoordinatorState.IDLE
        assert runner.calls == []

    def test_events_during_pass_trigger_one_follow_up(self, clock):
        coordinator = None

        def during_run(paths, cancel):
            if len(runner.calls) == 1:
                assert coordinator.state is CoordinatorState.RUNNING
                coordinator.notify(Path("late.md"))
                coordinator.notify(Path("late.md"))

        runner = RecordingRunner(during_run)
        coordinator = WatchCoordinator(runner, debounce_seconds=0.5, clock=clock)

        coordinator.notify(Path("a.md"))
        coordinator.poll()
        clock.now = 1.0
        coordinator.poll()
        assert coordinator.state is CoordinatorState.DEBOUNCING
        assert coordinator.pending == {Path("late.md")}

        clock.now = 1.2
        coordinator.poll()
        assert len(runner.calls) == 1

        clock.now = 1.6
        coordinator.poll()
        assert runner.calls == [[Path("a.md")], [Path("late.md")]]
        assert coordinator.state is CoordinatorState.IDLE

    def test_signature_filter_skips_pass(self, tmp_path, clock):
        (tmp_path / "a.md").write_text("same")
        signatures = SignatureTable()
        signatures.initialize(tmp_path)
        runner = RecordingRunner()
        coordinator = WatchCoordinator(runner, signatures=signatures, debounce_seconds=0.1, clock=clock)

        (tmp_path / "a.md").write_text("same")
        coordinator.notify(tmp_path / "a.md")
        coordinator.poll()
        clock.now = 1.0
        coordinator.poll()

        assert runner.calls == []
        assert coordinator.passes_run == 0
        assert coordinator.state is CoordinatorState.IDLE

        (tmp_path / "a.md").write_text("different")
        coordinator.notify(tmp_path / "a.md")
        coordinator.poll()
        clock.now = 2.0
        coordinator.poll()
        assert runner.calls == [[tmp_path / "a.md"]]

    def test_failed_pass_returns_to_idle(self, clock):
        def failing(paths, cancel):
            raise ExportError("destination gone")

        coordinator = WatchCoordinator(failing, debounce_seconds=0, clock=clock)
        coordinator.notify(Path("a.md"))
        assert coordinator.poll() is None
        assert coordinator.state is CoordinatorState.IDLE

    def test_shutdown_sets_cancel(self, clock):
        seen = []
        runner = RecordingRunner(lambda paths, cancel: seen.append(cancel.is_set()))
        coordinator = WatchCoordinator(runner, debounce_seconds=0, clock=clock)

        coordinator.shutdown()
        coordinator.notify(Path("a.md"))
        coordinator.poll()

        assert seen == [True]

    def test_run_until_stopped(self):
        stop = threading.Event()
        runner = RecordingRunner(lambda paths, cancel: stop.set())
        coordinator = WatchCoordinator(runner, debounce_seconds=0)

        coordinator.notify(Path("a.md"))
        coordinator.run(stop, tick=0.01)

        assert runner.calls == [[Path("a.md")]]


class TestVaultEventHandler:
    """Tests for the watchdog event handler."""

    @pytest.fixture
    def received(self):
        return []

    @pytest.fixture
    def handler(self, tmp_path, received):
        return _VaultEventHandler(tmp_path, received.append)

    def test_forwards_file_events(self, tmp_path, handler, received):
        handler.on_created(FileCreatedEvent(str(tmp_path / "a.md")))
        handler.on_modified(FileModifiedEvent(str(tmp_path / "b.md")))
        handler.on_deleted(FileDeletedEvent(str(tmp_path / "c.png")))
        assert received == [tmp_path / "a.md", tmp_path / "b.md", tmp_path / "c.png"]

    def test_move_forwards_both_ends(self, tmp_path, handler, received):
        handler.on_moved(FileMovedEvent(str(tmp_path / "old.md"), str(tmp_path / "new.md")))
        assert received == [tmp_path / "old.md", tmp_path / "new.md"]

    def test_ignores_directory_modified(self, tmp_path, handler, received):
        handler.on_modified(DirModifiedEvent(str(tmp_path / "sub")))
        assert received == []

    def test_ignores_hidden_and_outside(self, tmp_path, handler, received):
        handler.on_modified(FileModifiedEvent(str(tmp_path / ".obsidian" / "workspace.json")))
        handler.on_created(FileCreatedEvent(str(tmp_path / "note.md~")))
        handler.on_created(FileCreatedEvent(str(tmp_path.parent / "elsewhere.md")))
        assert received == []


class TestVaultWatcher:
    """Tests for VaultWatcher."""

    def test_start_failure_raises_watch_error(self, tmp_path, monkeypatch):
        class BrokenObserver:
            def schedule(self, *args, **kwargs):
                raise OSError("inotify watch limit reached")

        monkeypatch.setattr(watch_module, "Observer", BrokenObserver)
        watcher = VaultWatcher(tmp_path, lambda path: None)

        with pytest.raises(WatchError):
            watcher.start()

    def test_start_and_stop(self, tmp_path):
        watcher = VaultWatcher(tmp_path, lambda path: None)
        watcher.start()
        watcher.stop()
        watcher.stop()


class TestWatchVault:
    """Tests for watch_vault."""

    def test_initial_full_pass_then_stop(self, tmp_path):
        vault = tmp_path / "vault"
        vault.mkdir()
        (vault / "a.md").write_text("---\npublish: web\n---\nHello\n")
        site = tmp_path / "site"
        pipeline = ExportPipeline(vault, PathMapper(site))
        handler_before = signal.getsignal(signal.SIGINT)

        stop = threading.Event()
        stop.set()
        watch_vault(pipeline, debounce_seconds=0, stop=stop)

        assert (site / "content" / "posts" / "a.md").exists()
        assert signal.getsignal(signal.SIGINT) is handler_before
