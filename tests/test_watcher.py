import time

from watchdog.events import (
    DirCreatedEvent,
    DirModifiedEvent,
    FileClosedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)
from watchdog.observers.polling import PollingObserver

from mdhost.content import ContentResolver
from mdhost.watcher import (
    CREATED,
    DELETED,
    MODIFIED,
    ChangeEvent,
    ChangeWatcher,
    WatchSet,
    _STOP,
    to_change_events,
)


class DummyObserver:
    def __init__(self):
        self.scheduled = []
        self.unscheduled = []
        self.started = False
        self.stopped = False

    def schedule(self, handler, path, recursive=False):
        watch = ("watch", path, recursive)
        self.scheduled.append(watch)
        return watch

    def unschedule(self, watch):
        self.unscheduled.append(watch)

    def start(self):
        self.started = True

    def stop(self):
        self.stopped = True

    def join(self, timeout=None):
        pass


def _watcher(resolver):
    return ChangeWatcher(resolver, observer_factory=DummyObserver)


def test_to_change_events_splits_moves():
    events = to_change_events(FileMovedEvent("/r/a/index.md", "/r/b/index.md"))
    assert [(e.kind, str(e.path)) for e in events] == [
        (DELETED, "/r/a/index.md"),
        (CREATED, "/r/b/index.md"),
    ]


def test_to_change_events_simple_kinds():
    created = to_change_events(FileCreatedEvent("/r/x"))
    assert [(e.kind, e.is_directory) for e in created] == [(CREATED, False)]
    assert to_change_events(FileDeletedEvent("/r/x"))[0].kind == DELETED
    assert to_change_events(FileModifiedEvent("/r/x"))[0].kind == MODIFIED
    created_dir = to_change_events(DirCreatedEvent("/r/d"))
    assert created_dir[0].is_directory


def test_to_change_events_drops_noise():
    assert to_change_events(DirModifiedEvent("/r/d")) == []
    assert to_change_events(FileClosedEvent("/r/x")) == []


def test_watch_set_add_is_idempotent(tmp_path):
    watches = WatchSet()
    assert watches.add(tmp_path)
    assert not watches.add(tmp_path)
    assert tmp_path in watches
    assert len(watches) == 1


def test_watch_set_remove_includes_descendants(tmp_path):
    watches = WatchSet()
    for path in (tmp_path, tmp_path / "a", tmp_path / "a" / "b", tmp_path / "ab"):
        watches.add(path)

    assert watches.remove(tmp_path / "a")
    assert watches.paths() == [tmp_path, tmp_path / "ab"]
    assert not watches.remove(tmp_path / "a")
    watches.clear()
    assert len(watches) == 0


def test_start_uses_one_recursive_watch(site):
    resolver = ContentResolver(site, "Site")
    watcher = ChangeWatcher(resolver, observer_factory=DummyObserver)
    watcher.start()
    try:
        assert watcher.running
        assert watcher.watch_set.paths() == [
            site,
            site / "status",
            site / "status" / "404",
            site / "status" / "500",
        ]
        observer = watcher._observer
        assert observer.started
        assert observer.scheduled == [("watch", str(site), True)]
    finally:
        watcher.stop()
    assert not watcher.running
    assert observer.stopped
    assert len(watcher.watch_set) == 0


def test_observer_failure_leaves_watcher_idle(site):
    class ExhaustedObserver(DummyObserver):
        def start(self):
            raise OSError(24, "inotify instance limit reached")

    resolver = ContentResolver(site, "Site")
    watcher = resolver.start_watcher(
        ChangeWatcher(resolver, observer_factory=ExhaustedObserver)
    )
    assert not watcher.running
    assert len(watcher.watch_set) == 0
    # Pages still render on request.
    assert resolver.from_path("") == site / "index.html"
    resolver.stop_watcher()


def test_stop_during_directory_burst_leaves_nothing_watched(site, monkeypatch):
    original_add = WatchSet.add

    def slow_add(self, path):
        time.sleep(0.01)
        return original_add(self, path)

    monkeypatch.setattr(WatchSet, "add", slow_add)
    watcher = ChangeWatcher(ContentResolver(site, "Site"), observer_factory=DummyObserver)
    watcher.start()
    for index in range(30):
        (site / "tree" / f"d{index:02d}").mkdir(parents=True)
    watcher._events.put(ChangeEvent(CREATED, site / "tree", True))
    time.sleep(0.02)

    watcher.stop()

    assert not watcher.running
    assert len(watcher.watch_set) == 0
    assert watcher.reload_count == 0


def test_no_reload_once_stopping(site):
    watcher = _watcher(ContentResolver(site, "Site"))
    watcher._stopping.set()
    watcher._events.put(ChangeEvent(MODIFIED, site / "index.md", False))
    watcher._events.put(_STOP)
    watcher._consume()
    assert watcher.reload_count == 0


def test_handle_directory_created_with_sources(site, write_doc):
    watcher = _watcher(ContentResolver(site, "Site"))
    write_doc(site / "new" / "deep", title="Deep")

    assert watcher.handle(ChangeEvent(CREATED, site / "new", True))
    assert site / "new" in watcher.watch_set
    assert site / "new" / "deep" in watcher.watch_set


def test_handle_directory_created_without_sources(site):
    watcher = _watcher(ContentResolver(site, "Site"))
    (site / "assets").mkdir()

    assert not watcher.handle(ChangeEvent(CREATED, site / "assets", True))
    assert site / "assets" in watcher.watch_set


def test_handle_directory_deleted(site):
    watcher = _watcher(ContentResolver(site, "Site"))
    watcher.watch_set.add(site / "gone")
    watcher.watch_set.add(site / "gone" / "child")

    assert not watcher.handle(ChangeEvent(DELETED, site / "gone", True))
    assert len(watcher.watch_set) == 0


def test_handle_source_changes_trigger_reload(site):
    watcher = _watcher(ContentResolver(site, "Site"))
    for kind in (CREATED, MODIFIED, DELETED):
        assert watcher.handle(ChangeEvent(kind, site / "blog" / "index.md", False))
    assert not watcher.handle(ChangeEvent(MODIFIED, site / "notes.txt", False))
    assert not watcher.handle(ChangeEvent(MODIFIED, site / "index.html", False))


def test_handle_template_changes(site):
    watcher = _watcher(ContentResolver(site, "Site"))
    assert watcher.handle(ChangeEvent(MODIFIED, site / "template.html", False))
    assert watcher.handle(ChangeEvent(CREATED, site / "template.html", False))
    assert not watcher.handle(ChangeEvent(DELETED, site / "template.html", False))
    assert not watcher.handle(ChangeEvent(MODIFIED, site / "blog" / "template.html", False))


def test_burst_of_changes_reloads_once(site):
    resolver = ContentResolver(site, "Site")
    watcher = _watcher(resolver)
    for _ in range(3):
        watcher._events.put(ChangeEvent(MODIFIED, site / "index.md", False))
    watcher._events.put(ChangeEvent(MODIFIED, site / "notes.txt", False))
    watcher._events.put(_STOP)

    watcher._consume()

    assert watcher.reload_count == 1
    assert (site / "index.html").exists()
    assert (site / "status" / "404" / "index.html").exists()


def test_unrelated_changes_do_not_reload(site):
    watcher = _watcher(ContentResolver(site, "Site"))
    watcher._events.put(ChangeEvent(MODIFIED, site / "notes.txt", False))
    watcher._events.put(_STOP)
    watcher._consume()
    assert watcher.reload_count == 0


def test_reload_survives_missing_template(site):
    (site / "template.html").unlink()
    watcher = _watcher(ContentResolver(site, "Site"))
    watcher.reload()
    assert watcher.reload_count == 1


def _wait_for(predicate, timeout=10.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.05)
    return False


def test_polling_watcher_renders_new_and_edited_pages(site, write_doc):
    resolver = ContentResolver(site, "Site")
    resolver.reload()
    watcher = ChangeWatcher(
        resolver, observer_factory=lambda: PollingObserver(timeout=0.1)
    )
    resolver.start_watcher(watcher)
    try:
        write_doc(site / "fresh", title="Fresh", body="Brand new page")
        artifact = site / "fresh" / "index.html"
        assert _wait_for(artifact.exists)
        assert "Brand new page" in artifact.read_text(encoding="utf-8")

        write_doc(site, title="Home", body="Edited home page")
        home = site / "index.html"
        assert _wait_for(lambda: "Edited home page" in home.read_text(encoding="utf-8"))
    finally:
        resolver.stop_watcher()
    assert not watcher.running


def test_native_observer_handles_many_directories(site, write_doc):
    for index in range(200):
        (site / "many" / f"d{index:03d}").mkdir(parents=True)
    resolver = ContentResolver(site, "Site")
    watcher = resolver.start_watcher(ChangeWatcher(resolver))
    try:
        assert watcher.running
        assert len(watcher.watch_set) >= 201
        write_doc(site / "many" / "d150", title="Deep", body="Deep page")
        artifact = site / "many" / "d150" / "index.html"
        assert _wait_for(artifact.exists)
    finally:
        resolver.stop_watcher()
    assert len(watcher.watch_set) == 0
