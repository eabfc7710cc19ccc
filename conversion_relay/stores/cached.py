from __future__ import annotations

from threading import Lock
from typing import Callable

from cachetools import TTLCache

from conversion_relay.models.clients import ClientRecord, ClientUpdate
from conversion_relay.observability import incr_metric
from conversion_relay.stores.base import ClientStore


DEFAULT_TTL_SECONDS = 600
DEFAULT_MAXSIZE = 10000


class CachedClientStore:
    """Read-through TTL cache in front of another ClientStore.

    A successful merge drops the cached entry as soon as the backend write
    returns. Each id carries a write generation; a lookup that raced a merge
    does not put its (possibly pre-merge) result back into the cache.
    """

    def __init__(
        self,
        backend: ClientStore,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        maxsize: int = DEFAULT_MAXSIZE,
        timer: Callable[[], float] | None = None,
    ) -> None:
        self.backend = backend
        if timer is None:
            self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl_seconds)
        else:
            self._cache = TTLCache(maxsize=maxsize, ttl=ttl_seconds, timer=timer)
        self._generations: dict[str, int] = {}
        self._lock = Lock()

    def get(self, client_id: str) -> ClientRecord | None:
        with self._lock:
            cached = self._cache.get(client_id)
            generation = self._generations.get(client_id, 0)
        if cached is not None:
            incr_metric("client_cache.hit")
            return cached

        incr_metric("client_cache.miss")
        record = self.backend.get(client_id)
        if record is not None:
            with self._lock:
                if self._generations.get(client_id, 0) == generation:
                    self._cache[client_id] = record
        return record

    def merge(self, client_id: str, update: ClientUpdate) -> None:
        # A failed write leaves the last good cached record in place.
        self.backend.merge(client_id, update)
        self.invalidate(client_id)

    def invalidate(self, client_id: str) -> None:
        with self._lock:
            self._generations[client_id] = self._generations.get(client_id, 0) + 1
            self._cache.pop(client_id, None)

    def list_clients(self) -> list[ClientRecord]:
        return self.backend.list_clients()
