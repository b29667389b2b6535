"""
server/limiter.py
-----------------

Connection and QPS limits driven by the ``limit`` section of the server
config file. Zero means unlimited.
"""

import logging
import threading
from typing import Optional

from ..parser import LimiterConfig
from .watcher import ServerConfigWatcher

logger = logging.getLogger(__name__)

LIMIT_CALLBACK_KEY = "limiter"


class Limiter:
    def __init__(self, config: Optional[LimiterConfig] = None):
        self._lock = threading.Lock()
        self._config = config or LimiterConfig()

    def update(self, config: LimiterConfig) -> None:
        with self._lock:
            self._config = config
        logger.info(
            "[local] limiter updated: connection_limit=%d, qps_limit=%d",
            config.connection_limit, config.qps_limit,
        )

    @property
    def connection_limit(self) -> int:
        with self._lock:
            return self._config.connection_limit

    @property
    def qps_limit(self) -> int:
        with self._lock:
            return self._config.qps_limit


def with_limit(watcher: ServerConfigWatcher) -> Limiter:
    """Create a Limiter that tracks *watcher*'s limit section.

    A refresh without a limit section keeps the current limits.
    """
    limiter = Limiter()

    def on_change() -> None:
        config = watcher.config()
        if config is None or config.limit is None:
            logger.warning("[local] %s server limit config not found, skip", watcher.key())
            return
        limiter.update(config.limit)

    watcher.add_callback(LIMIT_CALLBACK_KEY, on_change)
    if watcher.config() is not None:
        on_change()
    return limiter
