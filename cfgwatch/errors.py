"""
errors.py
---------

Exceptions raised synchronously to callers of the watcher and monitor APIs.

Runtime failures inside the dispatch thread (unreadable file, malformed
document, a consumer callback blowing up) are logged instead of raised; see
`cfgwatch.filewatcher` and `cfgwatch.monitor`.
"""


class ConfigWatchError(Exception):
    """Base class for every cfgwatch-specific error."""


class DuplicateCallbackError(ConfigWatchError, KeyError):
    """A callback is already registered under this key."""

    def __init__(self, key: str):
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"callback key {self.key!r} already exists"


class CallbackNotFoundError(ConfigWatchError, KeyError):
    """No callback is registered under this key."""

    def __init__(self, key: str):
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"not found callback for key: {self.key!r}"


class ManagerNotSetError(ConfigWatchError, RuntimeError):
    """A ConfigMonitor was started before a config manager was installed."""


class DecodeError(ConfigWatchError, ValueError):
    """The config file bytes could not be decoded into a typed document."""
