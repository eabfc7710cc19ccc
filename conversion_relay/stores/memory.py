from __future__ import annotations

from threading import Lock

from conversion_relay.models.clients import ClientRecord, ClientUpdate
from conversion_relay.stores.base import sort_by_last_activity, utc_now


class InMemoryClientStore:
    """Process-local store. Records are replaced whole under a lock so readers
    never see half of a merge."""

    def __init__(self, records: list[ClientRecord] | None = None) -> None:
        self._lock = Lock()
        self._records: dict[str, ClientRecord] = {record.id: record for record in records or []}

    def get(self, client_id: str) -> ClientRecord | None:
        with self._lock:
            return self._records.get(client_id)

    def merge(self, client_id: str, update: ClientUpdate) -> None:
        now = utc_now()
        with self._lock:
            current = self._records.get(client_id) or ClientRecord(id=client_id)
            self._records[client_id] = update.apply_to(current, now=now)

    def list_clients(self) -> list[ClientRecord]:
        with self._lock:
            records = list(self._records.values())
        return sort_by_last_activity(records)
