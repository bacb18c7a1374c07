"""Scoped Locks pro Ressourcen-Pfad für Recovery-Aktionen."""

import asyncio
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List


class ResourceLocks:
    """
    Ein asyncio.Lock pro Ressource (z.B. Zertifikatsverzeichnis).

    Mehrere Ressourcen werden in sortierter Reihenfolge gesperrt und auf jedem
    Ausgangspfad, auch bei Timeout oder Cancellation, wieder freigegeben.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}

    @staticmethod
    def _key(resource: str) -> str:
        return os.path.normpath(str(resource))

    def locked(self, resource: str) -> bool:
        lock = self._locks.get(self._key(resource))
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def acquire(self, *resources: str) -> AsyncIterator[None]:
        keys = sorted({self._key(r) for r in resources})
        held: List[asyncio.Lock] = []
        try:
            for key in keys:
                lock = self._locks.setdefault(key, asyncio.Lock())
                await lock.acquire()
                held.append(lock)
            yield
        finally:
            for lock in reversed(held):
                lock.release()
