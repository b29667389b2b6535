"""
client/retry.py
---------------

Live per-method retry policies driven by the ``retry`` section of the client
config file.

Usage:

    watcher = ClientConfigWatcher(fw, "svcA")
    container = with_retry_policy(watcher)
    watcher.start()
    container.call("Echo", client.echo, request)
"""

import logging
import threading
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from typing import Any, Callable, Dict, List, Optional

from ..parser import BACKUP_POLICY_TYPE, BackupPolicy, RetryPolicy
from ..utils import ThreadSafeSet
from ..utils.retry import retrying_for
from .watcher import ClientConfigWatcher

logger = logging.getLogger(__name__)

WILDCARD_METHOD = "*"
RETRY_CALLBACK_KEY = "retry"


class RetryContainer:
    """Per-method retry policies, looked up by exact method then ``*``."""

    def __init__(self):
        self._lock = threading.Lock()
        self._policies: Dict[str, RetryPolicy] = {}

    def notify_policy_change(self, method: str, policy: RetryPolicy) -> None:
        with self._lock:
            self._policies[method] = policy
        logger.info("[local] retry policy updated for method %s", method)

    def delete_policy(self, method: str) -> None:
        with self._lock:
            removed = self._policies.pop(method, None)
        if removed is not None:
            logger.info("[local] retry policy deleted for method %s", method)

    def policy(self, method: str) -> Optional[RetryPolicy]:
        with self._lock:
            found = self._policies.get(method)
            if found is None:
                found = self._policies.get(WILDCARD_METHOD)
            return found

    def methods(self) -> List[str]:
        with self._lock:
            return sorted(self._policies)

    def call(self, method: str, fn: Callable[..., Any], *args, **kwargs) -> Any:
        """
        Run ``fn(*args, **kwargs)`` under the policy installed for *method*.

        Failure policies retry sequentially with the configured backoff;
        backup policies fire an extra request whenever the outstanding ones
        have not answered within ``retry_delay_ms``. Without an enabled policy
        *fn* runs once.
        """
        policy = self.policy(method)
        if policy is None or not policy.enable:
            return fn(*args, **kwargs)
        if policy.type == BACKUP_POLICY_TYPE and policy.backup_policy is not None:
            return _call_with_backup(policy.backup_policy, fn, args, kwargs)
        if policy.failure_policy is not None:
            return retrying_for(policy.failure_policy)(fn, *args, **kwargs)
        return fn(*args, **kwargs)


def _call_with_backup(policy: BackupPolicy, fn, args, kwargs):
    attempts = max(policy.stop_policy.max_retry_times, 0) + 1
    delay = policy.retry_delay_ms / 1000.0
    pool = ThreadPoolExecutor(max_workers=attempts)
    try:
        pending = {pool.submit(fn, *args, **kwargs)}
        issued = 1
        last_error: Optional[BaseException] = None
        while pending:
            timeout = delay if issued < attempts else None
            done, pending = wait(pending, timeout=timeout, return_when=FIRST_COMPLETED)
            for future in done:
                error = future.exception()
                if error is None:
                    return future.result()
                last_error = error
            if issued < attempts and (not done or not pending):
                pending.add(pool.submit(fn, *args, **kwargs))
                issued += 1
        raise last_error
    finally:
        pool.shutdown(wait=False)


def _validate(key: str, method: str, policy: RetryPolicy) -> bool:
    if policy.backup_policy is not None and policy.failure_policy is not None:
        logger.warning(
            "[local] %s client policy for method %s BackupPolicy and FailurePolicy "
            "must not be set at same time", key, method,
        )
        return False
    if policy.backup_policy is None and policy.failure_policy is None:
        logger.warning(
            "[local] %s client policy for method %s BackupPolicy and FailurePolicy "
            "must not be empty at same time", key, method,
        )
        return False
    return True


def with_retry_policy(watcher: ClientConfigWatcher) -> RetryContainer:
    """
    Create a RetryContainer that follows *watcher*'s retry section.

    Every refresh installs the valid per-method policies (a method with both
    or neither of backup/failure policy is skipped with a warning) and
    deletes the methods that disappeared since the previous refresh.
    """
    container = RetryContainer()
    known = ThreadSafeSet()

    def on_change() -> None:
        config = watcher.config()
        if config is None:
            logger.warning(
                "[local] %s file retry config: failed as the config not found, skip...",
                watcher.key(),
            )
            return

        # undecodable entries stay in the generation so their old policy is kept
        seen = config.methods("retry")
        for method, policy in config.retry.items():
            if _validate(watcher.key(), method, policy):
                container.notify_policy_change(method, policy)

        for method in known.diff_and_emplace(seen):
            container.delete_policy(method)

    watcher.add_callback(RETRY_CALLBACK_KEY, on_change)
    if watcher.config() is not None:
        on_change()
    return container
