"""Registry of pods with an eviction in flight.

The registry is shared between the housekeeping loop and the readiness
waits running on worker threads. Every operation takes the same lock; no
caller ever holds it across two calls.
"""

import threading
import time
from collections.abc import Callable

from pod_rebalancer.grouping import group_key
from pod_rebalancer.models.pod import Pod


class PendingActionRegistry:
    """Thread-safe set of pods currently being evicted, keyed by pod name."""

    def __init__(self):
        # pod name -> group key (None for ungrouped pods)
        self._pending: dict[str, str | None] = {}
        self._lock = threading.Lock()

    def add(self, pod: Pod) -> None:
        """Register a pod. Registering the same pod twice keeps one entry."""
        with self._lock:
            self._pending[pod.name] = group_key(pod)

    def remove(self, pod: Pod) -> None:
        """Unregister a pod. Unknown pods are ignored."""
        with self._lock:
            self._pending.pop(pod.name, None)

    def contains(self, pod: Pod) -> bool:
        return self.contains_name(pod.name)

    def contains_name(self, name: str) -> bool:
        with self._lock:
            return name in self._pending

    def group_in_flight(self, pod: Pod) -> bool:
        """Whether any registered pod belongs to the same group as ``pod``.

        Pods without a group key never block each other.
        """
        key = group_key(pod)
        if key is None:
            return False
        with self._lock:
            return key in self._pending.values()

    def snapshot(self) -> list[str]:
        """Return the registered pod names, sorted."""
        with self._lock:
            return sorted(self._pending)

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)


def wait_until(
    condition: Callable[[], bool],
    timeout: float | None = None,
    interval: float = 1.0,
    stop_event: threading.Event | None = None,
    deadline: float | None = None,
) -> bool:
    """Poll ``condition`` every ``interval`` seconds until it holds.

    Args:
        condition: Zero-argument callable checked on every poll
        timeout: Seconds after which polling gives up, counted from the call
        interval: Seconds between polls
        stop_event: Optional event that cancels the wait when set
        deadline: Absolute ``time.monotonic()`` value at which polling gives up;
            takes precedence over ``timeout``. The condition is still checked
            once if the deadline has already passed.

    Returns:
        True if the condition held before the deadline, False on timeout or
        cancellation
    """
    stop_event = stop_event or threading.Event()
    if deadline is None:
        if timeout is None:
            raise ValueError("either timeout or deadline is required")
        deadline = time.monotonic() + timeout

    while not stop_event.is_set():
        if condition():
            return True
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return False
        stop_event.wait(min(interval, remaining))

    return False
