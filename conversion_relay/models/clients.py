from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field


class Attribution(BaseModel):
    source: str | None = None
    campaign: str | None = None
    pixel_id: str | None = None
    access_token: str | None = None

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)

    def has_destination(self) -> bool:
        return bool(self.pixel_id and self.access_token)


# Attribution field -> persisted column, using the messaging platform's names.
ATTRIBUTION_COLUMNS: dict[str, str] = {
    "source": "utm_source",
    "campaign": "utm_campaign",
    "pixel_id": "utm_fb_pixel",
    "access_token": "utm_fb_token",
}
PROFILE_COLUMNS: dict[str, str] = {
    "name": "name",
    "status": "status",
    "ip": "ip",
    "user_agent": "user_agent",
    "click_id": "fbclid",
}


def parse_timestamp(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        # Salebot reports epoch seconds; some exports use milliseconds.
        seconds = value / 1000 if value > 10_000_000_000 else value
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    text = str(value).strip()
    if text.isdigit():
        return parse_timestamp(int(text))
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


class ClientRecord(BaseModel):
    """One client of the messaging platform with its stored attribution."""

    id: str
    name: str | None = None
    status: str | None = None
    attribution: Attribution = Field(default_factory=Attribution)
    ip: str | None = None
    user_agent: str | None = None
    click_id: str | None = None
    last_activity: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ClientRecord":
        attribution = Attribution(
            **{
                field: _optional_str(row.get(column))
                for field, column in ATTRIBUTION_COLUMNS.items()
            }
        )
        profile = {field: _optional_str(row.get(column)) for field, column in PROFILE_COLUMNS.items()}
        return cls(
            id=str(row["id"]),
            attribution=attribution,
            last_activity=parse_timestamp(row.get("last_activity")),
            **profile,
        )


class ClientUpdate(BaseModel):
    """Partial update for a client. Fields left as None are never written."""

    name: str | None = None
    status: str | None = None
    ip: str | None = None
    user_agent: str | None = None
    click_id: str | None = None
    attribution: Attribution = Field(default_factory=Attribution)

    def _profile_changes(self) -> dict[str, str]:
        return {field: getattr(self, field) for field in PROFILE_COLUMNS if getattr(self, field) is not None}

    def to_row(self) -> dict[str, Any]:
        row: dict[str, Any] = {PROFILE_COLUMNS[field]: value for field, value in self._profile_changes().items()}
        for field, column in ATTRIBUTION_COLUMNS.items():
            value = getattr(self.attribution, field)
            if value is not None:
                row[column] = value
        return row

    def apply_to(self, record: ClientRecord, *, now: datetime) -> ClientRecord:
        attribution = record.attribution.model_copy(update=self.attribution.model_dump(exclude_none=True))
        changes: dict[str, Any] = {"attribution": attribution, "last_activity": now, **self._profile_changes()}
        return record.model_copy(update=changes)


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text if text else None
