"""
filewatcher.py
--------------

Watch one config file and hand its bytes to every registered callback when it
changes.

A watchdog observer subscribes to the file's directory and forwards events
for the watched path into a queue. A single dispatch thread drains that queue:

* write to the file (or an editor's atomic rename onto it) -> re-read the
  file and call every callback with its contents
* file removed or renamed away -> log a warning and stop (terminal)
* stop request -> exit, closing the observer as the last step

Usage:

    fw = FileWatcher("/etc/app/config.json")
    fw.register_callback(lambda data: print(len(data)), "printer")
    fw.call_once_all()          # initial load
    fw.start_watching()
    ...
    fw.stop_watching()
"""

import logging
import os
import queue
import threading
from typing import Callable, Dict, List, Optional, Tuple

from watchdog.events import (
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from .errors import CallbackNotFoundError, DuplicateCallbackError
from .utils import path_exists

logger = logging.getLogger(__name__)

ByteCallback = Callable[[bytes], None]

_WRITE = "write"
_REMOVE = "remove"
_ERROR = "error"
_STOP = "stop"


def _same_path(raw, target: str) -> bool:
    return bool(raw) and os.path.abspath(os.fsdecode(raw)) == target


class _PathEventHandler(FileSystemEventHandler):
    """Translate watchdog events for one path into dispatch queue items."""

    def __init__(self, file_path: str, events: "queue.Queue"):
        super().__init__()
        self._file_path = file_path
        self._events = events

    def on_any_event(self, event) -> None:
        if event.is_directory:
            return
        try:
            kind = self._classify(event)
        except Exception as e:
            self._events.put((_ERROR, e))
            return
        if kind is not None:
            self._events.put((kind, event))

    def _classify(self, event) -> Optional[str]:
        if event.event_type == EVENT_TYPE_MOVED:
            if _same_path(getattr(event, "dest_path", ""), self._file_path):
                return _WRITE
            if _same_path(event.src_path, self._file_path):
                return _REMOVE
            return None
        if not _same_path(event.src_path, self._file_path):
            return None
        if event.event_type == EVENT_TYPE_MODIFIED:
            return _WRITE
        if event.event_type == EVENT_TYPE_DELETED:
            return _REMOVE
        return None


class FileWatcher:
    """
    Keyed registry of byte callbacks attached to one file.

    Each instance owns its observer subscription and dispatch thread. It is
    started once and stopped once; a stopped watcher (including one that
    stopped itself because the file was removed) cannot be restarted.
    """

    def __init__(self, file_path: str, stop_timeout: float = 5.0):
        """
        Args:
            file_path: File to watch; must exist.
            stop_timeout: Seconds ``stop_watching`` waits for the dispatch
                thread to exit.

        Raises:
            FileNotFoundError: *file_path* does not exist.
        """
        path = os.path.abspath(os.fspath(file_path))
        if not path_exists(path):
            raise FileNotFoundError(f"file [{path}] not exist")

        self._file_path = path
        self._stop_timeout = stop_timeout
        self._callbacks: Dict[str, ByteCallback] = {}
        self._lock = threading.Lock()
        # serialises dispatch cycles; re-entrant so callbacks may call back in
        self._dispatch_lock = threading.RLock()
        self._state_lock = threading.Lock()
        self._events: "queue.Queue" = queue.Queue()
        self._done = threading.Event()
        self._pending: Optional[Tuple[str, object]] = None
        self._observer: Optional[Observer] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def file_path(self) -> str:
        return self._file_path

    @property
    def is_watching(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive() and not self._done.is_set()

    # ------------------------------------------------------------------ #
    # Registry
    # ------------------------------------------------------------------ #
    def register_callback(self, callback: ByteCallback, key: str) -> None:
        """
        Register *callback* to receive the file contents on every change.

        Raises:
            DuplicateCallbackError: *key* is already registered.
        """
        with self._lock:
            if key in self._callbacks:
                raise DuplicateCallbackError(key)
            self._callbacks[key] = callback
        logger.debug("[local] filewatcher to %s registered callback: %s", self._file_path, key)

    def deregister_callback(self, key: str) -> None:
        """Remove the callback under *key*; unknown keys only log a warning."""
        with self._lock:
            if key not in self._callbacks:
                logger.warning("[local] FileWatcher callback %s not registered", key)
                return
            del self._callbacks[key]
        logger.info("[local] filewatcher to %s deregistered callback: %s", self._file_path, key)

    def _snapshot(self) -> List[Tuple[str, ByteCallback]]:
        with self._lock:
            return list(self._callbacks.items())

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #
    def start_watching(self) -> None:
        """
        Subscribe to filesystem events and launch the dispatch thread.

        Returns as soon as the thread is running.

        Raises:
            FileNotFoundError: the file disappeared since construction.
            RuntimeError: already started, or already stopped.
        """
        with self._state_lock:
            if self._done.is_set():
                raise RuntimeError(
                    f"file watcher for {self._file_path} is stopped; create a new one"
                )
            if self._thread is not None:
                raise RuntimeError(f"file watcher for {self._file_path} already started")
            if not path_exists(self._file_path):
                raise FileNotFoundError(f"file [{self._file_path}] not exist")

            observer = Observer()
            observer.schedule(
                _PathEventHandler(self._file_path, self._events),
                os.path.dirname(self._file_path),
                recursive=False,
            )
            observer.start()
            self._observer = observer

            self._thread = threading.Thread(
                target=self._run,
                name=f"filewatcher:{os.path.basename(self._file_path)}",
                daemon=True,
            )
            self._thread.start()
        logger.info("[local] start watching file: %s", self._file_path)

    def stop_watching(self) -> None:
        """
        Ask the dispatch thread to exit and close the subscription.

        Cooperative: an in-flight read or callback finishes first. Calling it
        again, or after the watcher stopped itself, does nothing.
        """
        if not self._signal_stop():
            logger.debug("[local] file watcher for %s already stopped", self._file_path)
            return
        logger.info("[local] stop watching file: %s", self._file_path)

        thread = self._thread
        if thread is None:
            return
        if thread is not threading.current_thread():
            thread.join(self._stop_timeout)
            if thread.is_alive():
                logger.warning(
                    "[local] file watcher for %s did not exit within %.1fs",
                    self._file_path, self._stop_timeout,
                )

    def _signal_stop(self) -> bool:
        with self._state_lock:
            if self._done.is_set():
                return False
            self._done.set()
        self._events.put((_STOP, None))
        return True

    def _close_observer(self) -> None:
        observer = self._observer
        if observer is None:
            return
        try:
            observer.stop()
            observer.join(self._stop_timeout)
        except Exception:
            logger.exception("[local] failed to close observer for %s", self._file_path)

    # ------------------------------------------------------------------ #
    # Dispatch
    # ------------------------------------------------------------------ #
    def _run(self) -> None:
        try:
            while not self._done.is_set():
                kind, payload = self._next_item()
                if kind == _STOP:
                    break
                try:
                    if not self._handle(kind, payload):
                        break
                except Exception:
                    logger.exception("[local] file watcher for %s hit an unexpected error",
                                     self._file_path)
        finally:
            self._close_observer()
            logger.debug("[local] dispatch loop for %s exited", self._file_path)

    def _handle(self, kind: str, payload) -> bool:
        """Process one queue item; return False when the loop must exit."""
        if kind == _WRITE:
            self._drain_writes()
            try:
                self.call_once_all()
            except OSError as e:
                logger.error("[local] read config file failed: %s", e)
            return True
        if kind == _REMOVE:
            logger.warning("[local] file %s is removed, stop watching", self._file_path)
            self._signal_stop()
            return False
        if kind == _ERROR:
            logger.error("[local] file watcher meet error: %s", payload)
        return True

    def _next_item(self) -> Tuple[str, object]:
        item, self._pending = self._pending, None
        if item is not None:
            return item
        return self._events.get()

    def _drain_writes(self) -> None:
        # Collapse a burst of write events into one read; the first non-write
        # item is held back and processed next.
        while self._pending is None:
            try:
                item = self._events.get_nowait()
            except queue.Empty:
                return
            if item[0] != _WRITE:
                self._pending = item

    def call_once_all(self) -> None:
        """
        Read the file and pass its contents to every registered callback.

        Callbacks run on a snapshot of the registry, outside the registry
        lock, in no guaranteed order. A callback that raises is logged and the
        remaining callbacks still run.

        Raises:
            OSError: the file could not be read.
        """
        with self._dispatch_lock:
            data = self._read()
            for key, callback in self._snapshot():
                self._invoke(key, callback, data)

    def call_once_specific(self, key: str) -> None:
        """
        Read the file and pass its contents to the callback under *key*.

        Raises:
            CallbackNotFoundError: nothing is registered under *key*.
            OSError: the file could not be read.
        """
        with self._dispatch_lock:
            with self._lock:
                callback = self._callbacks.get(key)
            if callback is None:
                raise CallbackNotFoundError(key)
            self._invoke(key, callback, self._read())

    def _read(self) -> bytes:
        with open(self._file_path, "rb") as f:
            return f.read()

    def _invoke(self, key: str, callback: ByteCallback, data: bytes) -> None:
        try:
            callback(data)
        except Exception:
            logger.exception("[local] callback %s for %s failed", key, self._file_path)
