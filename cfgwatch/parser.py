"""
parser.py
---------

Decoder contract and the typed documents read from the watched config file.

The watcher engine never looks at the file format; it only calls a
:py:class:`ConfigManager`. The managers shipped here read JSON documents
keyed by service name::

    {
      "svcA": {
        "retry": {"*": {"failure_policy": {"stop_policy": {"max_retry_times": 2}}}},
        "circuitbreaker": {"Echo": {"enable": true, "err_rate": 0.3, "min_sample": 100}},
        "timeout": {"Echo": {"rpc_timeout_ms": 800, "conn_timeout_ms": 100}}
      }
    }

Server documents carry a ``limit`` section instead.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generic, Mapping, Optional, Set, Tuple, TypeVar

from .errors import DecodeError

logger = logging.getLogger(__name__)

T = TypeVar("T")

FAILURE_POLICY_TYPE = 0
BACKUP_POLICY_TYPE = 1

BACKOFF_NONE = "none"
BACKOFF_FIXED = "fixed"
BACKOFF_RANDOM = "random"


def decode(data: bytes) -> Dict[str, Any]:
    """
    Decode raw file bytes into a JSON object.

    Raises:
        DecodeError: the bytes are not valid UTF-8 JSON or the top level is
            not an object.
    """
    try:
        doc = json.loads(data)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DecodeError(f"invalid config document: {e}") from e
    if not isinstance(doc, dict):
        raise DecodeError(
            f"config document must be an object, got {type(doc).__name__}"
        )
    return doc


def _section(raw: Mapping[str, Any], name: str) -> Dict[str, Any]:
    value = raw.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise DecodeError(f"{name!r} must be an object, got {type(value).__name__}")
    return value


def _value(raw: Mapping[str, Any], name: str, kind, default):
    value = raw.get(name, default)
    if value is None:
        return default
    # bool is an int subclass; reject it where a number is expected
    if kind in (int, float) and isinstance(value, bool):
        raise DecodeError(f"{name!r} must be a number, got bool")
    if kind is float and isinstance(value, int):
        return float(value)
    if not isinstance(value, kind):
        raise DecodeError(
            f"{name!r} must be {kind.__name__}, got {type(value).__name__}"
        )
    return value


# --------------------------------------------------------------------------- #
# Client policies
# --------------------------------------------------------------------------- #
@dataclass(frozen=True)
class CBPolicy:
    error_rate: float = 0.1

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "CBPolicy":
        return cls(error_rate=_value(raw, "error_rate", float, 0.1))


@dataclass(frozen=True)
class StopPolicy:
    max_retry_times: int = 2
    max_duration_ms: int = 0
    disable_chain_stop: bool = False
    cb_policy: CBPolicy = field(default_factory=CBPolicy)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "StopPolicy":
        return cls(
            max_retry_times=_value(raw, "max_retry_times", int, 2),
            max_duration_ms=_value(raw, "max_duration_ms", int, 0),
            disable_chain_stop=_value(raw, "disable_chain_stop", bool, False),
            cb_policy=CBPolicy.from_dict(_section(raw, "cb_policy")),
        )


@dataclass(frozen=True)
class BackoffPolicy:
    backoff_type: str = BACKOFF_NONE
    cfg_items: Dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "BackoffPolicy":
        backoff_type = _value(raw, "backoff_type", str, BACKOFF_NONE)
        if backoff_type not in (BACKOFF_NONE, BACKOFF_FIXED, BACKOFF_RANDOM):
            raise DecodeError(f"unknown backoff_type {backoff_type!r}")
        items = _section(raw, "cfg_items")
        return cls(
            backoff_type=backoff_type,
            cfg_items={k: _value(items, k, float, 0.0) for k in items},
        )


@dataclass(frozen=True)
class FailurePolicy:
    stop_policy: StopPolicy = field(default_factory=StopPolicy)
    backoff_policy: BackoffPolicy = field(default_factory=BackoffPolicy)
    retry_same_node: bool = False

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "FailurePolicy":
        return cls(
            stop_policy=StopPolicy.from_dict(_section(raw, "stop_policy")),
            backoff_policy=BackoffPolicy.from_dict(_section(raw, "backoff_policy")),
            retry_same_node=_value(raw, "retry_same_node", bool, False),
        )


@dataclass(frozen=True)
class BackupPolicy:
    retry_delay_ms: int = 0
    stop_policy: StopPolicy = field(default_factory=StopPolicy)
    retry_same_node: bool = False

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "BackupPolicy":
        return cls(
            retry_delay_ms=_value(raw, "retry_delay_ms", int, 0),
            stop_policy=StopPolicy.from_dict(_section(raw, "stop_policy")),
            retry_same_node=_value(raw, "retry_same_node", bool, False),
        )


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry policy for one method.

    Exactly one of ``failure_policy`` / ``backup_policy`` is expected to be
    set; the decoder keeps whatever the file says and leaves that check to the
    retry consumer. A method whose fields have the wrong type is dropped from
    its section and listed in ``ClientFileConfig.invalid`` instead.
    """

    enable: bool = True
    type: int = FAILURE_POLICY_TYPE
    failure_policy: Optional[FailurePolicy] = None
    backup_policy: Optional[BackupPolicy] = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "RetryPolicy":
        failure = raw.get("failure_policy")
        backup = raw.get("backup_policy")
        if failure is not None:
            failure = FailurePolicy.from_dict(_section(raw, "failure_policy"))
        if backup is not None:
            backup = BackupPolicy.from_dict(_section(raw, "backup_policy"))
        default_type = BACKUP_POLICY_TYPE if backup is not None and failure is None \
            else FAILURE_POLICY_TYPE
        return cls(
            enable=_value(raw, "enable", bool, True),
            type=_value(raw, "type", int, default_type),
            failure_policy=failure,
            backup_policy=backup,
        )


@dataclass(frozen=True)
class CBConfig:
    enable: bool = False
    err_rate: float = 0.5
    min_sample: int = 200

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "CBConfig":
        return cls(
            enable=_value(raw, "enable", bool, False),
            err_rate=_value(raw, "err_rate", float, 0.5),
            min_sample=_value(raw, "min_sample", int, 200),
        )


@dataclass(frozen=True)
class RPCTimeout:
    rpc_timeout_ms: int = 0
    conn_timeout_ms: int = 0

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "RPCTimeout":
        return cls(
            rpc_timeout_ms=_value(raw, "rpc_timeout_ms", int, 0),
            conn_timeout_ms=_value(raw, "conn_timeout_ms", int, 0),
        )


@dataclass(frozen=True)
class ClientFileConfig:
    """Everything the file says about calls to one destination service."""

    retry: Dict[str, RetryPolicy] = field(default_factory=dict)
    circuitbreaker: Dict[str, CBConfig] = field(default_factory=dict)
    timeout: Dict[str, RPCTimeout] = field(default_factory=dict)
    # section name -> methods whose entry failed to decode
    invalid: Dict[str, Tuple[str, ...]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "ClientFileConfig":
        invalid: Dict[str, Tuple[str, ...]] = {}
        retry = _entries(raw, "retry", RetryPolicy.from_dict, invalid)
        cb = _entries(raw, "circuitbreaker", CBConfig.from_dict, invalid)
        timeout = _entries(raw, "timeout", RPCTimeout.from_dict, invalid)
        return cls(retry=retry, circuitbreaker=cb, timeout=timeout, invalid=invalid)

    def methods(self, section: str) -> Set[str]:
        """Every method named in *section*, including entries that failed to decode."""
        return set(getattr(self, section)) | set(self.invalid.get(section, ()))


def _entries(raw: Mapping[str, Any], name: str, build: Callable[[Mapping[str, Any]], T],
             invalid: Dict[str, Tuple[str, ...]]) -> Dict[str, T]:
    """Decode each method of section *name* on its own; a bad entry is skipped."""
    section = _section(raw, name)
    entries: Dict[str, T] = {}
    skipped = []
    for method in section:
        try:
            entries[method] = build(_section(section, method))
        except DecodeError as e:
            logger.warning("[local] skip %s config for method %s: %s", name, method, e)
            skipped.append(method)
    if skipped:
        invalid[name] = tuple(sorted(skipped))
    return entries


# --------------------------------------------------------------------------- #
# Server policies
# --------------------------------------------------------------------------- #
@dataclass(frozen=True)
class LimiterConfig:
    connection_limit: int = 0
    qps_limit: int = 0

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "LimiterConfig":
        return cls(
            connection_limit=_value(raw, "connection_limit", int, 0),
            qps_limit=_value(raw, "qps_limit", int, 0),
        )


@dataclass(frozen=True)
class ServerFileConfig:
    limit: Optional[LimiterConfig] = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "ServerFileConfig":
        limit = raw.get("limit")
        if limit is not None:
            limit = LimiterConfig.from_dict(_section(raw, "limit"))
        return cls(limit=limit)


# --------------------------------------------------------------------------- #
# Managers
# --------------------------------------------------------------------------- #
class ConfigManager(ABC, Generic[T]):
    """
    Pluggable decode target used by :py:class:`cfgwatch.monitor.ConfigMonitor`.

    ``decode`` must build a fresh document on every call; documents are never
    mutated after ``get_config`` has handed a sub-config out.
    """

    @abstractmethod
    def decode(self, data: bytes) -> Dict[str, T]:
        """Turn raw file bytes into a document, raising DecodeError."""
        raise NotImplementedError

    def get_config(self, document: Mapping[str, T], key: str) -> Optional[T]:
        """Return the sub-config for *key*, or None if the key is absent."""
        return document.get(key)


class ClientFileManager(ConfigManager[ClientFileConfig]):
    """Decodes ``{service: ClientFileConfig}`` documents."""

    def decode(self, data: bytes) -> Dict[str, ClientFileConfig]:
        raw = decode(data)
        # a null service counts as absent so get_config reports it missing
        return {name: ClientFileConfig.from_dict(_section(raw, name))
                for name in raw if raw[name] is not None}


class ServerFileManager(ConfigManager[ServerFileConfig]):
    """Decodes ``{service: ServerFileConfig}`` documents."""

    def decode(self, data: bytes) -> Dict[str, ServerFileConfig]:
        raw = decode(data)
        return {name: ServerFileConfig.from_dict(_section(raw, name))
                for name in raw if raw[name] is not None}
