"""Per-key mutual exclusion for in-process work.

Works for a single process. For multi-worker deployments a distributed
lock (Postgres advisory lock, Redis) would be required.
"""

import threading
from collections.abc import Hashable


class KeyedLock:
    """A registry of ``threading.Lock`` objects, one per key.

    Locks are created on first use and discarded once no thread holds or
    waits for them, so the registry does not grow with the number of keys
    ever seen.
    """

    def __init__(self):
        self._guard = threading.Lock()
        # key -> (lock, number of holders + waiters)
        self._locks: dict[Hashable, tuple[threading.Lock, int]] = {}

    def acquire(self, key: Hashable, timeout: float | None = None) -> bool:
        """Acquire the lock for ``key``.

        Args:
            key: Any hashable key.
            timeout: Seconds to wait. ``None`` waits forever, ``0`` does not wait.

        Returns:
            True if acquired, False if the wait timed out.
        """
        with self._guard:
            lock, users = self._locks.get(key, (None, 0))
            if lock is None:
                lock = threading.Lock()
            self._locks[key] = (lock, users + 1)

        if timeout is None:
            acquired = lock.acquire()
        elif timeout <= 0:
            acquired = lock.acquire(blocking=False)
        else:
            acquired = lock.acquire(timeout=timeout)

        if not acquired:
            self._forget(key)
        return acquired

    def release(self, key: Hashable) -> None:
        """Release the lock for ``key``.

        Raises:
            RuntimeError: If the key is not currently locked.
        """
        with self._guard:
            entry = self._locks.get(key)
        if entry is None or not entry[0].locked():
            raise RuntimeError(f"release of unlocked key {key!r}")
        entry[0].release()
        self._forget(key)

    def is_locked(self, key: Hashable) -> bool:
        """Check if a lock for ``key`` is currently held."""
        with self._guard:
            entry = self._locks.get(key)
        return entry is not None and entry[0].locked()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _forget(self, key: Hashable) -> None:
        with self._guard:
            lock, users = self._locks[key]
            if users <= 1:
                del self._locks[key]
            else:
                self._locks[key] = (lock, users - 1)
