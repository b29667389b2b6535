"""
server/watcher.py
-----------------

Typed view of one service's section in the server config file.
"""

import logging
from typing import Callable, Optional

from ..filewatcher import FileWatcher
from ..monitor import ConfigMonitor
from ..parser import ServerFileConfig, ServerFileManager

logger = logging.getLogger(__name__)


class ServerConfigWatcher:
    def __init__(self, file_watcher: FileWatcher, service: str):
        self._monitor = ConfigMonitor(service, file_watcher)
        self._monitor.set_manager(ServerFileManager())

    def key(self) -> str:
        return self._monitor.key

    def config(self) -> Optional[ServerFileConfig]:
        return self._monitor.config()

    def add_callback(self, key: str, callback: Callable[[], None]) -> None:
        self._monitor.register_callback(callback, key)

    def remove_callback(self, key: str) -> None:
        self._monitor.deregister_callback(key)

    def start(self) -> None:
        self._monitor.start()
        logger.info("[local] server config watcher started for %s", self.key())

    def stop(self) -> None:
        self._monitor.stop()
        logger.info("[local] stop watching server config for %s", self.key())
