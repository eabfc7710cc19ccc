from __future__ import annotations

from typing import Any

import httpx

from conversion_relay.domain.errors import StoreError
from conversion_relay.models.clients import ClientRecord, ClientUpdate
from conversion_relay.stores.base import utc_now


CLIENT_COLUMNS = "id, name, status, utm_source, utm_campaign, utm_fb_pixel, utm_fb_token, ip, user_agent, fbclid, last_activity"


class SupabaseClientStore:
    """Client records in a Postgres table reached through Supabase."""

    def __init__(self, supabase: Any, table_name: str = "clients") -> None:
        self.supabase = supabase
        self.table_name = table_name

    def _execute(self, operation: str, query: Any) -> Any:
        try:
            return query.execute()
        except httpx.HTTPError as exc:
            raise StoreError(f"Supabase connectivity error during {operation}: {exc}") from exc
        except Exception as exc:
            raise StoreError(f"Supabase {operation} failed: {exc}") from exc

    def get(self, client_id: str) -> ClientRecord | None:
        result = self._execute(
            "get",
            self.supabase.table(self.table_name).select(CLIENT_COLUMNS).eq("id", client_id),
        )
        rows = result.data or []
        if not rows:
            return None
        return ClientRecord.from_row(rows[0])

    def merge(self, client_id: str, update: ClientUpdate) -> None:
        # PostgREST upserts only the columns present in the payload.
        row = {"id": client_id, **update.to_row(), "last_activity": utc_now().isoformat()}
        self._execute(
            "merge",
            self.supabase.table(self.table_name).upsert(row, on_conflict="id"),
        )

    def list_clients(self) -> list[ClientRecord]:
        result = self._execute(
            "list",
            self.supabase.table(self.table_name)
            .select(CLIENT_COLUMNS)
            .order("last_activity", desc=True, nullsfirst=False),
        )
        return [ClientRecord.from_row(row) for row in result.data or []]
