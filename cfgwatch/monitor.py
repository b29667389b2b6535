"""
monitor.py
----------

Follow one key (usually a service name) inside a shared config file.

A :py:class:`ConfigMonitor` sits on top of a :py:class:`FileWatcher`. It owns
the decode step, keeps the last sub-config that parsed cleanly for its key,
and tells its own zero-argument callbacks whenever that sub-config has been
replaced. Consumers then call :py:meth:`ConfigMonitor.config` to read it.
"""

import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple

from .errors import DecodeError, DuplicateCallbackError, ManagerNotSetError
from .filewatcher import FileWatcher
from .parser import ConfigManager

logger = logging.getLogger(__name__)


class ConfigMonitor:
    """
    Parse the watched file for one key and fan out change notifications.

    A parse that fails, or a document that no longer contains the key, leaves
    the previous config in place: last good config wins.
    """

    def __init__(self, key: str, file_watcher: FileWatcher):
        if not key:
            raise ValueError("empty config key")
        if file_watcher is None:
            raise ValueError("filewatcher is nil")

        self._key = key
        self._file_watcher = file_watcher
        self._manager: Optional[ConfigManager] = None
        self._config: Any = None
        self._callbacks: Dict[str, Callable[[], None]] = {}
        self._lock = threading.Lock()
        # re-entrant: a consumer may trigger another dispatch from its callback
        self._parse_lock = threading.RLock()

    @property
    def key(self) -> str:
        return self._key

    @property
    def file_watcher(self) -> FileWatcher:
        return self._file_watcher

    def config(self) -> Any:
        """Return the last successfully extracted sub-config, or None."""
        with self._lock:
            return self._config

    def set_manager(self, manager: ConfigManager) -> None:
        self._manager = manager

    def start(self) -> None:
        """
        Load the current file once, then follow the FileWatcher's updates.

        Raises:
            ManagerNotSetError: :py:meth:`set_manager` was never called.
            OSError: the initial read failed.
            DuplicateCallbackError: another monitor with the same key is
                already attached to the FileWatcher.
        """
        if self._manager is None:
            raise ManagerNotSetError("not set manager for config file")

        # the monitor key doubles as the FileWatcher registry key; register before the
        # first read so a write racing start() is still dispatched
        self._file_watcher.register_callback(self._parse_handler, self._key)
        try:
            with open(self._file_watcher.file_path, "rb") as f:
                data = f.read()
        except OSError as e:
            logger.error("[local] read config file failed: %s", e)
            self._file_watcher.deregister_callback(self._key)
            raise
        self._parse_handler(data)

    def stop(self) -> None:
        """Drop every consumer callback and detach from the FileWatcher.

        The FileWatcher itself keeps running; other monitors may share it.
        """
        with self._lock:
            keys = list(self._callbacks)
        for k in keys:
            self.deregister_callback(k)
        self._file_watcher.deregister_callback(self._key)

    def register_callback(self, callback: Callable[[], None], key: str) -> None:
        """
        Call *callback* after every successful refresh of this key's config.

        Raises:
            DuplicateCallbackError: *key* is already registered.
        """
        with self._lock:
            if key in self._callbacks:
                raise DuplicateCallbackError(key)
            self._callbacks[key] = callback

    def deregister_callback(self, key: str) -> None:
        with self._lock:
            if key not in self._callbacks:
                logger.warning("[local] ConfigMonitor callback %s not registered", key)
                return
            del self._callbacks[key]

    def _snapshot(self) -> List[Tuple[str, Callable[[], None]]]:
        with self._lock:
            return list(self._callbacks.items())

    def _parse_handler(self, data: bytes) -> None:
        """Decode *data*, store this key's sub-config and notify callbacks."""
        with self._parse_lock:
            manager = self._manager
            try:
                document = manager.decode(data)
            except DecodeError as e:
                logger.error("[local] failed to parse the config file: %s", e)
                return

            config = manager.get_config(document, self._key)
            if config is None:
                logger.warning(
                    "[local] not matching key found, skip. current key: %s", self._key
                )
                return

            with self._lock:
                self._config = config

            for name, callback in self._snapshot():
                try:
                    callback()
                except Exception:
                    logger.exception(
                        "[local] config callback %s for key %s failed", name, self._key
                    )
        logger.info("[local] config parse and update complete, key: %s", self._key)
