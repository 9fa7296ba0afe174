"""Filesystem watcher that debounces change bursts into a single rebuild.

The debouncer is a two-state machine (``IDLE`` / ``PENDING_REBUILD``) with a
single cancellable timer. Every event while pending restarts the timer; when
it finally fires the rebuild runs and the state returns to ``IDLE``. Rebuild
errors are handed to an error callback and the watcher stays armed.
"""

from __future__ import annotations

import os
import threading
from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import Any

import structlog
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .config import CONFIG_FILE, load_config
from .exceptions import WatchError
from .generators import generate_all_rules
from .ingestion import build_all_skills
from .models import MergeResult, SkillBuilderConfig
from .sources import resolve_source_path

log = structlog.get_logger()

DEFAULT_DEBOUNCE_SECONDS = 1.0
SKILLS_DIR = "skills"
WATCHED_EVENTS = frozenset({"created", "modified", "deleted", "moved"})


class WatchState(str, Enum):
    """Debouncer states."""

    IDLE = "idle"
    PENDING_REBUILD = "pending_rebuild"


class Debouncer:
    """Coalesces bursts of triggers into one call of ``action``."""

    def __init__(
        self,
        action: Callable[[], Any],
        interval: float = DEFAULT_DEBOUNCE_SECONDS,
        on_error: Callable[[Exception], None] | None = None,
        timer_factory: Callable[..., Any] = threading.Timer,
    ) -> None:
        """Initialize debouncer.

        Args:
            action: Called once per quiet period after the last trigger
            interval: Quiet period in seconds
            on_error: Receives any exception raised by ``action``
            timer_factory: ``threading.Timer``-compatible constructor
        """
        self.action = action
        self.interval = interval
        self.on_error = on_error
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._run_lock = threading.Lock()
        self._timer: Any = None
        self._generation = 0
        self._state = WatchState.IDLE

    @property
    def state(self) -> WatchState:
        return self._state

    def trigger(self) -> None:
        """Start the quiet period, or restart it if one is already pending."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            generation = self._generation
            self._timer = self._timer_factory(self.interval, self._fire, args=(generation,))
            self._timer.daemon = True
            self._state = WatchState.PENDING_REBUILD
            self._timer.start()

    def _fire(self, generation: int) -> None:
        with self._lock:
            # Superseded by a later trigger or cancelled.
            if generation != self._generation:
                return
            self._timer = None

        with self._run_lock:
            try:
                self.action()
            except Exception as e:  # noqa: BLE001
                log.error("rebuild_failed", error=str(e))
                if self.on_error is not None:
                    self.on_error(e)

        with self._lock:
            if generation == self._generation:
                self._state = WatchState.IDLE

    def cancel(self) -> None:
        """Drop any pending run. Safe to call repeatedly."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._generation += 1
            self._state = WatchState.IDLE


class _ChangeHandler(FileSystemEventHandler):
    """Forwards relevant watchdog events to a SkillWatcher."""

    def __init__(self, watcher: SkillWatcher) -> None:
        super().__init__()
        self.watcher = watcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type not in WATCHED_EVENTS:
            return
        if event.is_directory and event.event_type == "modified":
            return
        paths = [event.src_path, getattr(event, "dest_path", "")]
        for raw in paths:
            if raw and self.watcher.is_watched(Path(os.fsdecode(raw))):
                self.watcher.notify(Path(os.fsdecode(raw)))
                return


class SkillWatcher:
    """Rebuilds skills and regenerates rules when watched files change."""

    def __init__(
        self,
        repo_root: Path,
        config: SkillBuilderConfig,
        on_rebuild: Callable[[], Any] | None = None,
        on_error: Callable[[Exception], None] | None = None,
        on_complete: Callable[[list[MergeResult]], None] | None = None,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        observer_factory: Callable[[], Any] = Observer,
        timer_factory: Callable[..., Any] = threading.Timer,
    ) -> None:
        """Initialize watcher.

        Args:
            repo_root: Repository root containing skillbuilder.json
            config: Configuration used to pick the watched source files
            on_rebuild: Replaces the default build-and-sync rebuild
            on_error: Receives rebuild failures
            on_complete: Receives merge results after a default rebuild
            debounce_seconds: Quiet period before a rebuild runs
            observer_factory: watchdog ``Observer``-compatible constructor
            timer_factory: ``threading.Timer``-compatible constructor
        """
        self.repo_root = Path(repo_root).resolve()
        self.config = config
        self.on_complete = on_complete
        self._observer_factory = observer_factory
        self._observer: Any = None
        self.debouncer = Debouncer(
            on_rebuild or self.rebuild,
            interval=debounce_seconds,
            on_error=on_error,
            timer_factory=timer_factory,
        )

    @property
    def state(self) -> WatchState:
        return self.debouncer.state

    @property
    def skills_dir(self) -> Path:
        return self.repo_root / SKILLS_DIR

    def source_paths(self) -> list[Path]:
        """Absolute paths of every declared file source."""
        return [
            resolve_source_path(file_path, self.repo_root).resolve()
            for skill in self.config.skills
            for file_path in skill.sources.files
        ]

    def watch_paths(self) -> list[Path]:
        """Config file, skills directory and every declared source file."""
        return [self.repo_root / CONFIG_FILE, self.skills_dir, *self.source_paths()]

    def is_watched(self, path: Path) -> bool:
        """Whether a change to ``path`` should trigger a rebuild."""
        path = path.resolve()
        if path == self.skills_dir or self.skills_dir in path.parents:
            return True
        return path in self.watch_paths()

    def notify(self, path: Path) -> None:
        """Record a filesystem event for ``path``."""
        log.info("change_detected", path=str(path))
        self.debouncer.trigger()

    def rebuild(self) -> list[MergeResult]:
        """Reload config, rebuild every skill and regenerate all targets."""
        self.config = load_config(self.repo_root)
        contents = build_all_skills(self.config, self.repo_root)
        results = generate_all_rules(self.config, self.repo_root, contents)
        log.info("sync_complete", files=len(results))
        if self.on_complete is not None:
            self.on_complete(results)
        return results

    def _watch_dirs(self) -> dict[Path, bool]:
        dirs: dict[Path, bool] = {self.repo_root: False}
        if self.skills_dir.is_dir():
            dirs[self.skills_dir] = True
        for path in self.source_paths():
            parent = path.parent
            if parent.is_dir():
                dirs.setdefault(parent, False)
        return dirs

    def start(self) -> None:
        """Begin watching.

        Raises:
            WatchError: If the observer cannot be started
        """
        if self._observer is not None:
            return
        handler = _ChangeHandler(self)
        observer = self._observer_factory()
        try:
            for directory, recursive in self._watch_dirs().items():
                observer.schedule(handler, str(directory), recursive=recursive)
            observer.start()
        except OSError as e:
            msg = f"Failed to start watching {self.repo_root}: {e}"
            raise WatchError(msg) from e
        self._observer = observer
        log.info("watch_started", paths=len(self.watch_paths()))

    def stop(self) -> None:
        """Release watch handles, then cancel any pending rebuild. Idempotent.

        Events delivered while the observer shuts down are cancelled too.
        """
        observer, self._observer = self._observer, None
        if observer is not None:
            observer.stop()
            observer.join()
        self.debouncer.cancel()
        if observer is not None:
            log.info("watch_stopped")
