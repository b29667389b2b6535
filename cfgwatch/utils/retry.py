"""
Retry helpers that turn a decoded failure policy into a tenacity controller.

Usage example:

    from cfgwatch.utils.retry import retrying_for

    for attempt in retrying_for(policy):
        with attempt:
            call_backend()
"""

from tenacity import (
    Retrying,
    stop_after_attempt,
    stop_after_delay,
    wait_fixed,
    wait_none,
    wait_random,
)

from ..parser import BACKOFF_FIXED, BACKOFF_RANDOM, FailurePolicy


def _wait_for(policy: FailurePolicy):
    backoff = policy.backoff_policy
    items = backoff.cfg_items
    if backoff.backoff_type == BACKOFF_FIXED:
        return wait_fixed(items.get("fix_ms", 0.0) / 1000.0)
    if backoff.backoff_type == BACKOFF_RANDOM:
        low = items.get("min_ms", 0.0) / 1000.0
        high = items.get("max_ms", 0.0) / 1000.0
        return wait_random(min=low, max=max(low, high))
    return wait_none()


def retrying_for(policy: FailurePolicy) -> Retrying:
    """Build a Retrying controller: first call plus ``max_retry_times`` retries,
    bounded by ``max_duration_ms`` when it is positive, re-raising the last
    error once attempts run out.
    """
    stop_policy = policy.stop_policy
    stop = stop_after_attempt(max(stop_policy.max_retry_times, 0) + 1)
    if stop_policy.max_duration_ms > 0:
        stop = stop | stop_after_delay(stop_policy.max_duration_ms / 1000.0)
    return Retrying(
        stop=stop,
        wait=_wait_for(policy),
        reraise=True,
    )
