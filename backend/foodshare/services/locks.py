from __future__ import annotations

from contextlib import contextmanager
from threading import Lock
from typing import Dict, Iterator, List

# Per-listing mutual exclusion inside one process. Row locks (SELECT ... FOR UPDATE)
# taken by the listing store cover other processes on PostgreSQL.


class ListingLocks:
    def __init__(self) -> None:
        self._lock = Lock()
        # listing id -> [lock, number of holders and waiters]
        self._entries: Dict[int, List] = {}

    def _checkout(self, listing_id: int) -> Lock:
        with self._lock:
            entry = self._entries.setdefault(listing_id, [Lock(), 0])
            entry[1] += 1
            return entry[0]

    def _checkin(self, listing_id: int) -> None:
        with self._lock:
            entry = self._entries.get(listing_id)
            if entry is None:
                return
            entry[1] -= 1
            if entry[1] <= 0:
                self._entries.pop(listing_id, None)

    @contextmanager
    def hold(self, listing_id: int) -> Iterator[None]:
        lock = self._checkout(listing_id)
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            self._checkin(listing_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


listing_locks = ListingLocks()
