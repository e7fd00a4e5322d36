"""
Per-(user, client) mutual exclusion.

The lifecycle tracker and the revocation service both read the active
authorization row and then decide what to write. Two workers doing that for
the same pair at the same time could each conclude "no active row" and insert
one. Every such read-then-write runs under the pair's lock; different pairs
never wait on each other.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator


class PairLockRegistry:
    """Reference-counted map of (user_id, client_id) -> threading.Lock."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[tuple[str, str], threading.Lock] = {}
        self._holders: dict[tuple[str, str], int] = {}

    @contextmanager
    def hold(self, user_id: str, client_id: str) -> Iterator[None]:
        key = (str(user_id), str(client_id))
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._holders[key] = self._holders.get(key, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._holders[key] -= 1
                if self._holders[key] == 0:
                    del self._holders[key]
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


# Shared by the tracker and the revocation service within one process
pair_locks = PairLockRegistry()
