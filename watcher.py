"""
Directory watcher for the image folder.

Wraps a watchdog observer and exposes the folder's file additions and
removals as a lazy iterator of ChangeEvent, in the order the observer
reports them.
"""

import os
import queue
from collections import namedtuple
from enum import Enum

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from errors import WatcherFailure
from logger_config import get_logger

logger = get_logger('watcher')


class ChangeKind(Enum):
    ADDED = 'added'
    REMOVED = 'removed'
    OTHER = 'other'


ChangeEvent = namedtuple('ChangeEvent', ['kind', 'path'])

PROPAGATED_KINDS = (ChangeKind.ADDED, ChangeKind.REMOVED)

_STOP = object()
_FOLDER_GONE = object()


def _normalize(path):
    return os.path.normcase(os.path.abspath(os.fsdecode(path)))


def _same_path(a, b):
    return _normalize(a) == _normalize(b)


def classify(event):
    """Translate a watchdog event into ChangeEvents"""
    if event.is_directory:
        return [ChangeEvent(ChangeKind.OTHER, event.src_path)]
    if event.event_type == 'created':
        return [ChangeEvent(ChangeKind.ADDED, event.src_path)]
    if event.event_type == 'deleted':
        return [ChangeEvent(ChangeKind.REMOVED, event.src_path)]
    if event.event_type == 'moved':
        return [
            ChangeEvent(ChangeKind.REMOVED, event.src_path),
            ChangeEvent(ChangeKind.ADDED, event.dest_path),
        ]
    return [ChangeEvent(ChangeKind.OTHER, event.src_path)]


class FolderEventHandler(FileSystemEventHandler):
    def __init__(self, event_queue, folder):
        super().__init__()
        self.event_queue = event_queue
        self.folder = folder

    def on_any_event(self, event):
        # The watched folder itself was deleted or moved away
        if (event.is_directory and event.event_type in ('deleted', 'moved')
                and _same_path(event.src_path, self.folder)):
            self.event_queue.put(_FOLDER_GONE)
            return
        for change in classify(event):
            self.event_queue.put(change)


class DirectoryWatcher:
    def __init__(self, path, observer=None, poll_interval=1.0):
        self.path = path
        self.poll_interval = poll_interval
        self._observer = observer if observer is not None else Observer()
        self._queue = queue.Queue()
        self._handler = FolderEventHandler(self._queue, path)
        self._consumed = False
        self._started = False
        self._stopped = False

    def _start(self):
        if not os.path.isdir(self.path):
            raise WatcherFailure(f"Cannot watch {self.path}: not a directory")
        try:
            self._observer.schedule(self._handler, self.path, recursive=False)
            self._observer.start()
        except OSError as e:
            raise WatcherFailure(f"Cannot watch {self.path}: {e}") from e
        self._started = True
        logger.info(f"Watching {self.path} for image changes")

    def events(self):
        """
        Start observing and return the iterator of added/removed events.

        The iterator only ends after stop(). It can be obtained once per
        watcher; a second call raises WatcherFailure.
        """
        if self._consumed:
            raise WatcherFailure("Directory watcher events can only be consumed once")
        self._consumed = True
        self._start()
        return self._iter_events()

    def _iter_events(self):
        while True:
            try:
                change = self._queue.get(timeout=self.poll_interval)
            except queue.Empty:
                if self._stopped:
                    return
                if not os.path.isdir(self.path):
                    raise WatcherFailure(f"Watched folder {self.path} is no longer accessible")
                if not self._observer.is_alive():
                    raise WatcherFailure(f"Observer for {self.path} stopped unexpectedly")
                continue
            if change is _STOP:
                return
            if change is _FOLDER_GONE:
                raise WatcherFailure(f"Watched folder {self.path} was removed")
            if change.kind in PROPAGATED_KINDS:
                yield change

    def stop(self):
        if self._stopped:
            return
        self._stopped = True
        self._queue.put(_STOP)
        if self._started:
            self._observer.stop()
            self._observer.join(timeout=2.0)
