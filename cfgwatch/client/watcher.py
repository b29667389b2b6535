"""
client/watcher.py
-----------------

Typed view of one destination service's section in the client config file.
"""

import logging
from typing import Callable, Optional

from ..filewatcher import FileWatcher
from ..monitor import ConfigMonitor
from ..parser import ClientFileConfig, ClientFileManager

logger = logging.getLogger(__name__)


class ClientConfigWatcher:
    """
    Follow the client policies for calls to *dest_service*.

    Policy consumers (retry, circuit breaker, timeouts) attach through
    :py:meth:`add_callback` and read :py:meth:`config` when notified.
    """

    def __init__(self, file_watcher: FileWatcher, dest_service: str):
        self._monitor = ConfigMonitor(dest_service, file_watcher)
        self._monitor.set_manager(ClientFileManager())

    def key(self) -> str:
        return self._monitor.key

    def to_service(self) -> str:
        return self._monitor.key

    def config(self) -> Optional[ClientFileConfig]:
        return self._monitor.config()

    def add_callback(self, key: str, callback: Callable[[], None]) -> None:
        self._monitor.register_callback(callback, key)

    def remove_callback(self, key: str) -> None:
        self._monitor.deregister_callback(key)

    def start(self) -> None:
        self._monitor.start()
        logger.info("[local] client config watcher started for %s", self.to_service())

    def stop(self) -> None:
        self._monitor.stop()
        logger.info("[local] client config watcher stopped for %s", self.to_service())
