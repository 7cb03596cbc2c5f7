"""Per-subject serialization for archetype mutations."""

import asyncio
from contextlib import asynccontextmanager

import structlog

logger = structlog.get_logger()


class DuplicateRequestError(Exception):
    """An identical request for the same subject is already in flight."""


class SubjectLockRegistry:
    """Owns one asyncio.Lock per subject plus a set of in-flight request keys.

    The in-flight check rejects an identical concurrent request before it
    queues; distinct requests for the same subject wait on the lock in
    arrival order, and different subjects never block each other.
    """

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._in_flight: set[tuple] = set()

    def lock_for(self, subject_id: str) -> asyncio.Lock:
        lock = self._locks.get(subject_id)
        if lock is None:
            lock = self._locks[subject_id] = asyncio.Lock()
        return lock

    def is_locked(self, subject_id: str) -> bool:
        lock = self._locks.get(subject_id)
        return lock is not None and lock.locked()

    def in_flight(self, key: tuple) -> bool:
        return key in self._in_flight

    @asynccontextmanager
    async def hold(self, subject_id: str, request_key: tuple):
        """Mark ``request_key`` in flight, then acquire the subject lock.

        Raises DuplicateRequestError without waiting if the key is already
        in flight.
        """
        # check-and-mark must not be separated by an await
        if request_key in self._in_flight:
            raise DuplicateRequestError(request_key)
        self._in_flight.add(request_key)
        try:
            async with self.lock_for(subject_id):
                logger.debug("subject_lock_acquired", subject=subject_id, request=request_key)
                yield
        finally:
            self._in_flight.discard(request_key)
            lock = self._locks.get(subject_id)
            if lock is not None and not lock.locked() and not self._has_pending(subject_id):
                self._locks.pop(subject_id, None)

    def _has_pending(self, subject_id: str) -> bool:
        return any(key[1] == subject_id for key in self._in_flight)
