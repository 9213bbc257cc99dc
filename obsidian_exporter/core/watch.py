"""Vault watching: filesystem events -> debounced incremental passes.

``VaultWatcher`` turns watchdog notifications into ``notify`` calls.
``WatchCoordinator`` owns the event queue and a small state machine:

    Idle --event--> Debouncing --quiet for debounce_seconds--> Running
    Running --pass done, queue empty--> Idle
    Running --pass done, events arrived meanwhile--> Debouncing

Events never trigger work directly; they are queued and drained by
``poll``, so at most one pass runs at a time and a burst of events becomes
a single pass.
"""

import logging
import queue
import signal
import threading
import time
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Set

from watchdog.events import FileSystemEvent, FileSystemEventHandler, FileSystemMovedEvent
from watchdog.observers import Observer

from obsidian_exporter.core.discovery import is_ignored_name
from obsidian_exporter.core.models import ExporterError, ExportResult, WatchError
from obsidian_exporter.core.signatures import SignatureTable

logger = logging.getLogger(__name__)

PassRunner = Callable[[List[Path], threading.Event], Optional[ExportResult]]


class CoordinatorState(Enum):
    IDLE = "idle"
    DEBOUNCING = "debouncing"
    RUNNING = "running"


class WatchCoordinator:
    """Debounces vault events and runs one incremental pass at a time.

    Usage:
        coordinator = WatchCoordinator(pipeline.incremental_pass, signatures)
        watcher = VaultWatcher(vault_path, coordinator.notify)
        watcher.start()
        coordinator.run(stop_event)
    """

    def __init__(
        self,
        run_pass: PassRunner,
        signatures: Optional[SignatureTable] = None,
        debounce_seconds: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize WatchCoordinator.

        Args:
            run_pass: Called with the changed paths and the cancel event
            signatures: Table used to drop events without a content change
            debounce_seconds: Quiet period before a pass starts
            clock: Monotonic time source
        """
        self._run_pass = run_pass
        self.signatures = signatures
        self.debounce_seconds = debounce_seconds
        self._clock = clock

        self._events: "queue.Queue[Path]" = queue.Queue()
        self._pending: Set[Path] = set()
        self._deadline: Optional[float] = None
        self.state = CoordinatorState.IDLE
        self.cancel = threading.Event()
        self.passes_run = 0

    def notify(self, path: Path) -> None:
        """Queue a changed path. Safe to call from any thread."""
        self._events.put(Path(path))

    @property
    def pending(self) -> Set[Path]:
        return set(self._pending)

    def poll(self) -> Optional[ExportResult]:
        """Advance the state machine once.

        Returns:
            The result of the pass if one ran, else None
        """
        if self._drain():
            self.state = CoordinatorState.DEBOUNCING
            self._deadline = self._clock() + self.debounce_seconds

        if self.state is CoordinatorState.DEBOUNCING and self._clock() >= self._deadline:
            return self._run()
        return None

    def run(self, stop: threading.Event, tick: float = 0.1) -> None:
        """Poll until ``stop`` is set."""
        while not stop.is_set():
            self.poll()
            stop.wait(tick)

    def shutdown(self) -> None:
        """Ask an in-flight pass to stop at its next file-write boundary."""
        self.cancel.set()

    def _drain(self) -> bool:
        drained = False
        while True:
            try:
                path = self._events.get_nowait()
            except queue.Empty:
                return drained
            self._pending.add(path)
            drained = True

    def _run(self) -> Optional[ExportResult]:
        self.state = CoordinatorState.RUNNING
        paths = sorted(self._pending)
        self._pending = set()
        self._deadline = None

        result = None
        try:
            if self.signatures is not None:
                paths = self.signatures.changed(paths)
            if not paths:
                logger.debug("Events without content changes, nothing to export")
            else:
                logger.info("Change detected in %d file(s)", len(paths))
                self.passes_run += 1
                result = self._run_pass(paths, self.cancel)
        except (ExporterError, OSError) as e:
            logger.error("Incremental pass failed: %s", e)
        finally:
            if self._drain():
                self.state = CoordinatorState.DEBOUNCING
                self._deadline = self._clock() + self.debounce_seconds
            else:
                self.state = CoordinatorState.IDLE
        return result


class _VaultEventHandler(FileSystemEventHandler):
    """Forwards file system events under the vault to a callback."""

    def __init__(self, vault_root: Path, on_change: Callable[[Path], None]) -> None:
        self.vault_root = vault_root
        self.on_change = on_change

    def _should_process(self, path: str) -> bool:
        try:
            rel = Path(path).relative_to(self.vault_root)
        except ValueError:
            return False
        return bool(rel.parts) and not any(is_ignored_name(part) for part in rel.parts)

    def _forward(self, path: str) -> None:
        if self._should_process(path):
            self.on_change(Path(path))

    def on_created(self, event: FileSystemEvent) -> None:
        logger.debug("Created: %s", event.src_path)
        self._forward(event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        # Directory mtimes change whenever their content does
        if not event.is_directory:
            self._forward(event.src_path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        logger.debug("Deleted: %s", event.src_path)
        self._forward(event.src_path)

    def on_moved(self, event: FileSystemMovedEvent) -> None:
        logger.debug("Moved: %s -> %s", event.src_path, event.dest_path)
        self._forward(event.src_path)
        self._forward(event.dest_path)


class VaultWatcher:
    """Watches the Obsidian vault for file changes.

    Usage:
        watcher = VaultWatcher(vault_path, on_change=my_callback)
        watcher.start()  # non-blocking
        ...
        watcher.stop()
    """

    def __init__(self, vault_path: Path, on_change: Callable[[Path], None]) -> None:
        self.vault_path = Path(vault_path)
        self.handler = _VaultEventHandler(self.vault_path, on_change)
        self._observer: Optional[Observer] = None

    def start(self) -> None:
        """Start watching the vault directory (non-blocking).

        Raises:
            WatchError: If the observer cannot be established
        """
        observer = Observer()
        try:
            observer.schedule(self.handler, str(self.vault_path), recursive=True)
            observer.start()
        except (OSError, RuntimeError) as e:
            raise WatchError(f"Cannot watch {self.vault_path}: {e}") from e
        self._observer = observer
        logger.info("Watching vault at %s", self.vault_path)

    def stop(self) -> None:
        """Stop the watcher."""
        if self._observer:
            self._observer.stop()
            self._observer.join()
            self._observer = None
            logger.info("Vault watcher stopped")


def watch_vault(
    pipeline,
    debounce_seconds: float = 0.5,
    stop: Optional[threading.Event] = None,
) -> None:
    """Export the vault, then keep the destination in sync until stopped.

    Signatures are recorded and the observer started before the initial
    full pass, so edits made during that pass are picked up afterwards.
    Ctrl-C stops the loop once the current file write has finished.

    Args:
        pipeline: ExportPipeline to drive
        debounce_seconds: Quiet period before an incremental pass
        stop: Event that ends the loop (default: run until interrupted)

    Raises:
        WatchError: If the vault cannot be observed
    """
    stop = stop or threading.Event()
    signatures = SignatureTable()
    signatures.initialize(pipeline.vault_path)
    coordinator = WatchCoordinator(
        pipeline.incremental_pass,
        signatures=signatures,
        debounce_seconds=debounce_seconds,
    )
    watcher = VaultWatcher(pipeline.vault_path, coordinator.notify)

    def interrupt(signum, frame) -> None:
        logger.info("Interrupted, finishing current file")
        coordinator.shutdown()
        stop.set()

    previous_handler = None
    if threading.current_thread() is threading.main_thread():
        previous_handler = signal.signal(signal.SIGINT, interrupt)

    try:
        watcher.start()
        pipeline.full_pass(coordinator.cancel)
        coordinator.run(stop)
    finally:
        watcher.stop()
        signatures.teardown()
        if previous_handler is not None:
            signal.signal(signal.SIGINT, previous_handler)
