"""
client/rpc_timeout.py
---------------------

Per-method RPC and connect timeouts driven by the ``timeout`` section of the
client config file.
"""

import logging
import threading
from typing import Dict, Optional

from ..parser import RPCTimeout
from ..utils import ThreadSafeSet
from .watcher import ClientConfigWatcher

logger = logging.getLogger(__name__)

WILDCARD_METHOD = "*"
TIMEOUT_CALLBACK_KEY = "rpc_timeout"


class RPCTimeoutContainer:
    """Timeouts by method, falling back to ``*`` and then to *default*."""

    def __init__(self, default: Optional[RPCTimeout] = None):
        self._lock = threading.Lock()
        self._default = default or RPCTimeout()
        self._timeouts: Dict[str, RPCTimeout] = {}

    def notify_policy_change(self, method: str, timeout: RPCTimeout) -> None:
        with self._lock:
            self._timeouts[method] = timeout

    def delete_policy(self, method: str) -> None:
        with self._lock:
            self._timeouts.pop(method, None)

    def timeouts(self, method: str) -> RPCTimeout:
        with self._lock:
            found = self._timeouts.get(method)
            if found is None:
                found = self._timeouts.get(WILDCARD_METHOD, self._default)
            return found


def with_rpc_timeout(watcher: ClientConfigWatcher,
                     default: Optional[RPCTimeout] = None) -> RPCTimeoutContainer:
    container = RPCTimeoutContainer(default)
    known = ThreadSafeSet()

    def on_change() -> None:
        config = watcher.config()
        if config is None:
            return
        for method, timeout in config.timeout.items():
            container.notify_policy_change(method, timeout)
        for method in known.diff_and_emplace(config.methods("timeout")):
            logger.info("[local] remove method timeout config: %s", method)
            container.delete_policy(method)

    watcher.add_callback(TIMEOUT_CALLBACK_KEY, on_change)
    if watcher.config() is not None:
        on_change()
    return container
