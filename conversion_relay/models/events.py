from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


ConversionEventName = Literal["Subscribe", "CompleteRegistration", "Purchase"]


class Destination(BaseModel):
    pixel_id: str
    access_token: str


class UserData(BaseModel):
    ip: str | None = None
    user_agent: str | None = None
    click_id: str | None = None


class ConversionEvent(BaseModel):
    name: ConversionEventName
    time_seconds: int
    user_data: UserData = Field(default_factory=UserData)
    custom_data: dict[str, Any] = Field(default_factory=dict)


class ForwardResult(BaseModel):
    """Outcome of one delivery attempt. Callers log it and move on."""

    delivered: bool
    event_name: str
    pixel_id: str
    status_code: int | None = None
    error: str | None = None
    error_category: str | None = None


class InboundWebhook(BaseModel):
    """Normalized webhook body from the messaging platform."""

    client_id: str | None = None
    event_type: str | None = None
    name: str | None = None
    status: str | None = None
    ip: str | None = None
    user_agent: str | None = None
    click_id: str | None = None
    raw: dict[str, Any] = Field(default_factory=dict)


class WebhookAcceptedResponse(BaseModel):
    status: Literal["accepted"] = "accepted"
