from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol

from conversion_relay.domain.errors import StoreError
from conversion_relay.models.clients import ClientRecord, ClientUpdate


class ClientStore(Protocol):
    def get(self, client_id: str) -> ClientRecord | None: ...

    def merge(self, client_id: str, update: ClientUpdate) -> None: ...

    def list_clients(self) -> list[ClientRecord]: ...


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def sort_by_last_activity(records: list[ClientRecord]) -> list[ClientRecord]:
    """Most recent activity first; clients never active go last."""
    floor = datetime.min.replace(tzinfo=timezone.utc)
    return sorted(records, key=lambda record: record.last_activity or floor, reverse=True)


__all__ = ["ClientStore", "StoreError", "sort_by_last_activity", "utc_now"]
