"""Filesystem change watcher for mdhost.

Watches every directory of a content root and re-renders pages when sources
change:

- A source file created, modified or deleted triggers a full reload. Child
  listings make any page depend on its sibling directories, so every page is
  re-rendered rather than only the edited one.
- A change to the site template triggers a full reload as well.
- A created directory is added to the watch set together with its
  subdirectories; if sources already exist inside it, a reload follows.
- A deleted directory is dropped from the watch set. Nothing is rendered or
  deleted for it.

Raw watchdog events are turned into ChangeEvent values on a queue, and one
consumer thread iterates over them. A single recursive observer watch on the
root covers the whole tree; the WatchSet owned by the watcher records which
directories are accounted for.

Key classes:
- ChangeEvent: One filesystem change.
- WatchSet: Directories currently being watched.
- ChangeWatcher: Owns the observer, the watch set and the consumer thread.
"""

from __future__ import annotations

import os
import queue
import threading
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from .errors import ConfigurationError
from .log_utils import get_logger
from .paths import is_located_in
from .utils import iter_directories

if TYPE_CHECKING:
    from .content import ContentResolver

CREATED = "created"
MODIFIED = "modified"
DELETED = "deleted"

logger = get_logger("watcher")


@dataclass(frozen=True)
class ChangeEvent:
    """A single filesystem change.

    Attributes:
        kind: One of "created", "modified" or "deleted".
        path: Path that changed.
        is_directory: Whether the path is a directory.
    """

    kind: str
    path: Path
    is_directory: bool


def _decode(path: str | bytes) -> Path:
    return Path(os.fsdecode(path))


def to_change_events(event: FileSystemEvent) -> list[ChangeEvent]:
    """Convert a watchdog event into change events.

    Moves become a deletion of the source and a creation of the destination.
    Directory modifications and open/close notifications carry nothing
    actionable and yield no events.

    Args:
        event: Raw watchdog event.

    Returns:
        List of change events, possibly empty.
    """
    is_dir = event.is_directory
    if event.event_type == EVENT_TYPE_MOVED:
        return [
            ChangeEvent(DELETED, _decode(event.src_path), is_dir),
            ChangeEvent(CREATED, _decode(event.dest_path), is_dir),
        ]
    if event.event_type == EVENT_TYPE_CREATED:
        return [ChangeEvent(CREATED, _decode(event.src_path), is_dir)]
    if event.event_type == EVENT_TYPE_DELETED:
        return [ChangeEvent(DELETED, _decode(event.src_path), is_dir)]
    if event.event_type == EVENT_TYPE_MODIFIED and not is_dir:
        return [ChangeEvent(MODIFIED, _decode(event.src_path), is_dir)]
    return []


class _QueueingHandler(FileSystemEventHandler):
    """Puts converted watchdog events on a queue."""

    def __init__(self, events: queue.Queue):
        super().__init__()
        self.events = events

    def on_any_event(self, event):
        for change in to_change_events(event):
            self.events.put(change)


class WatchSet:
    """Directories of the content root the watcher accounts for.

    One recursive observer watch on the root delivers the events; the set
    records which directories are currently covered. Adding and removing are
    idempotent. The set must only be mutated from one thread at a time.
    """

    def __init__(self):
        self._paths: set[Path] = set()

    def __contains__(self, path: Path) -> bool:
        return Path(path) in self._paths

    def __len__(self) -> int:
        return len(self._paths)

    def paths(self) -> list[Path]:
        return sorted(self._paths)

    def add(self, path: Path) -> bool:
        """Record a directory. Returns False if it was already watched."""
        path = Path(path)
        if path in self._paths:
            return False
        self._paths.add(path)
        logger.debug("Watching %s", path)
        return True

    def remove(self, path: Path) -> bool:
        """Drop a directory and any watched directory below it.

        Returns:
            True if anything was removed.
        """
        path = Path(path)
        targets = [watched for watched in self._paths if is_located_in(watched, path)]
        for watched in targets:
            self._paths.discard(watched)
            logger.debug("Stopped watching %s", watched)
        return bool(targets)

    def clear(self) -> None:
        """Drop every directory."""
        self._paths.clear()


_STOP = object()


class ChangeWatcher:
    """Watches a content root and keeps rendered pages up to date.

    Attributes:
        resolver: Content resolver whose pages are re-rendered.
        observer_factory: Callable creating the watchdog observer.
        watch_set: Currently watched directories.
    """

    def __init__(
        self,
        resolver: ContentResolver,
        observer_factory: Callable[[], BaseObserver] = Observer,
    ):
        self.resolver = resolver
        self.observer_factory = observer_factory
        self.watch_set = WatchSet()
        self._events: queue.Queue = queue.Queue()
        self._observer: BaseObserver | None = None
        self._thread: threading.Thread | None = None
        self._stopping = threading.Event()
        self.reload_count = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Watch every directory of the root and start consuming events.

        If the observer cannot start, the failure is logged and the watcher
        stays idle.
        """
        if self._observer is not None:
            return
        root = self.resolver.root
        self._events = queue.Queue()
        self._stopping.clear()
        self.watch_set.clear()
        for directory in iter_directories(root):
            self.watch_set.add(directory)
        observer = self.observer_factory()
        try:
            observer.schedule(_QueueingHandler(self._events), str(root), recursive=True)
            observer.start()
        except OSError as exc:
            # Requests still render stale pages on demand.
            logger.error("Cannot watch %s: %s", root, exc)
            self.watch_set.clear()
            return
        self._observer = observer
        self._thread = threading.Thread(
            target=self._consume, name="mdhost-watcher", daemon=True
        )
        self._thread.start()
        logger.info("Watching %d directories under %s", len(self.watch_set), root)

    def stop(self) -> None:
        """Stop the consumer thread, drop every watch and stop the observer.

        The consumer is joined before the watch set is cleared, so no
        directory is added back afterwards and no reload starts once stopping
        has begun.
        """
        self._stopping.set()
        self._events.put(_STOP)
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        self.watch_set.clear()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None

    def events(self) -> Iterator[ChangeEvent]:
        """Yield change events as they arrive until the watcher stops."""
        while True:
            item = self._events.get()
            if item is _STOP or self._stopping.is_set():
                return
            yield item

    def _pending(self) -> list[ChangeEvent]:
        """Take every event already queued, without blocking.

        A stop request found while draining is put back for ``events``.
        """
        drained: list[ChangeEvent] = []
        while True:
            try:
                item = self._events.get_nowait()
            except queue.Empty:
                return drained
            if item is _STOP:
                self._events.put(_STOP)
                return drained
            drained.append(item)

    def _consume(self) -> None:
        for event in self.events():
            if not self.handle(event):
                continue
            # Coalesce a burst of changes into a single reload.
            for pending in self._pending():
                self.handle(pending)
            if self._stopping.is_set():
                return
            self.reload()

    def reload(self) -> None:
        """Re-render every document, keeping the watcher alive on failure."""
        try:
            self.resolver.reload()
        except ConfigurationError as exc:
            logger.error("Reload failed: %s", exc)
        self.reload_count += 1

    def handle(self, event: ChangeEvent) -> bool:
        """Apply a change event to the watch set.

        Args:
            event: Change to apply.

        Returns:
            True if the change requires a full reload.
        """
        layout = self.resolver.layout
        if event.is_directory:
            if event.kind == CREATED:
                return self._add_tree(event.path)
            if event.kind == DELETED:
                self.watch_set.remove(event.path)
            return False
        if event.path.name == layout.source_name:
            return True
        return (
            event.kind != DELETED
            and event.path.parent == self.resolver.root
            and event.path.name == layout.template_name
        )

    def _add_tree(self, directory: Path) -> bool:
        """Watch a new directory and everything below it.

        Returns:
            True if the new tree already contains a source file.
        """
        has_sources = False
        for path in iter_directories(directory):
            if self._stopping.is_set():
                break
            self.watch_set.add(path)
            if (path / self.resolver.layout.source_name).is_file():
                has_sources = True
        return has_sources
