"""
client/circuit_breaker.py
-------------------------

Per-method circuit-breaker thresholds driven by the ``circuitbreaker``
section of the client config file.

Breaker lookups must always resolve to some configuration, so methods that
vanish from the file are reset to :py:func:`get_default_cb_config` instead of
being deleted.
"""

import logging
import threading
from typing import Dict, Optional

from ..parser import CBConfig
from ..utils import ThreadSafeSet
from .watcher import ClientConfigWatcher

logger = logging.getLogger(__name__)

CB_CALLBACK_KEY = "circuit_breaker"


def get_default_cb_config() -> CBConfig:
    return CBConfig(enable=False, err_rate=0.5, min_sample=200)


def gen_service_cb_key(to_service: str, method: str) -> str:
    return f"{to_service}/{method}"


class _Counter:
    __slots__ = ("total", "failures")

    def __init__(self):
        self.total = 0
        self.failures = 0


class CBSuite:
    """
    Keyed breaker state.

    Each key (``service/method``) has a threshold config and a sample
    counter. With ``enable`` on, the breaker opens once at least
    ``min_sample`` calls were recorded and the error rate reaches
    ``err_rate``. A config update resets that key's counter.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._configs: Dict[str, CBConfig] = {}
        self._counters: Dict[str, _Counter] = {}

    def update_service_cb_config(self, key: str, config: CBConfig) -> None:
        with self._lock:
            self._configs[key] = config
            self._counters.pop(key, None)

    def config_for(self, key: str) -> CBConfig:
        with self._lock:
            return self._configs.get(key) or get_default_cb_config()

    def record(self, key: str, success: bool) -> None:
        with self._lock:
            counter = self._counters.setdefault(key, _Counter())
            counter.total += 1
            if not success:
                counter.failures += 1

    def is_allowed(self, key: str) -> bool:
        with self._lock:
            config = self._configs.get(key) or get_default_cb_config()
            counter = self._counters.get(key)
            if not config.enable or counter is None:
                return True
            if counter.total < config.min_sample:
                return True
            return counter.failures / counter.total < config.err_rate

    def close(self) -> None:
        with self._lock:
            self._configs.clear()
            self._counters.clear()


def with_circuit_breaker(watcher: ClientConfigWatcher, suite: Optional[CBSuite] = None) -> CBSuite:
    """Keep *suite* (or a new CBSuite) in line with *watcher*'s breaker section."""
    cb = suite or CBSuite()
    known = ThreadSafeSet()

    def on_change() -> None:
        config = watcher.config()
        if config is None:
            return

        seen = config.methods("circuitbreaker")
        for method, cb_config in config.circuitbreaker.items():
            cb.update_service_cb_config(gen_service_cb_key(watcher.to_service(), method), cb_config)

        for method in known.diff_and_emplace(seen):
            logger.info("[local] remove method CB config: %s", method)
            cb.update_service_cb_config(
                gen_service_cb_key(watcher.to_service(), method), get_default_cb_config()
            )

    watcher.add_callback(CB_CALLBACK_KEY, on_change)
    if watcher.config() is not None:
        on_change()
    return cb
