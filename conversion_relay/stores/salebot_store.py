from __future__ import annotations

from conversion_relay.domain.errors import StoreError
from conversion_relay.models.clients import ClientRecord, ClientUpdate
from conversion_relay.providers.salebot import client as salebot_client
from conversion_relay.providers.salebot.client import SalebotProviderError
from conversion_relay.stores.base import sort_by_last_activity, utc_now


class SalebotClientStore:
    """Client records kept as Salebot client variables."""

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str | None = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url
        self.timeout_seconds = timeout_seconds

    def get(self, client_id: str) -> ClientRecord | None:
        try:
            row = salebot_client.get_client(
                self.api_key,
                client_id,
                base_url=self.base_url,
                timeout_seconds=self.timeout_seconds,
            )
        except SalebotProviderError as exc:
            raise StoreError(str(exc)) from exc
        return ClientRecord.from_row(row) if row else None

    def merge(self, client_id: str, update: ClientUpdate) -> None:
        update_data = update.to_row()
        update_data["last_activity"] = utc_now().isoformat()
        try:
            salebot_client.update_client(
                self.api_key,
                client_id,
                update_data,
                base_url=self.base_url,
                timeout_seconds=self.timeout_seconds,
            )
        except SalebotProviderError as exc:
            raise StoreError(str(exc)) from exc

    def list_clients(self) -> list[ClientRecord]:
        try:
            rows = salebot_client.list_clients(
                self.api_key,
                base_url=self.base_url,
                timeout_seconds=self.timeout_seconds,
            )
        except SalebotProviderError as exc:
            raise StoreError(str(exc)) from exc
        return sort_by_last_activity([ClientRecord.from_row(row) for row in rows if row.get("id") is not None])
