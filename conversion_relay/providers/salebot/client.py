from __future__ import annotations

from typing import Any

import httpx


SALEBOT_API_BASE = "https://api.salebot.pro/api/v1"


class SalebotProviderError(Exception):
    """Provider-level exception for Salebot integration failures."""


def _build_base_url(base_url: str | None) -> str:
    return (base_url or SALEBOT_API_BASE).rstrip("/")


def _request_json(
    path: str,
    api_key: str | None,
    json_payload: dict[str, Any],
    base_url: str | None = None,
    timeout_seconds: float = 10.0,
) -> Any:
    if not api_key:
        raise SalebotProviderError("Missing Salebot API key")

    url = f"{_build_base_url(base_url)}{path}"
    try:
        with httpx.Client(timeout=timeout_seconds) as client:
            response = client.post(url, json={"api_key": api_key, **json_payload})
    except httpx.HTTPError as exc:
        raise SalebotProviderError(f"Salebot connectivity error: {exc}") from exc

    if response.status_code in {401, 403}:
        raise SalebotProviderError("Invalid Salebot API key")
    if response.status_code >= 400:
        raise SalebotProviderError(
            f"Salebot API returned HTTP {response.status_code}: {response.text[:200]}"
        )
    try:
        return response.json()
    except ValueError as exc:
        raise SalebotProviderError("Salebot returned non-JSON response") from exc


def get_client(
    api_key: str | None,
    client_id: str,
    base_url: str | None = None,
    timeout_seconds: float = 10.0,
) -> dict[str, Any] | None:
    data = _request_json(
        "/get_client",
        api_key,
        {"id": client_id},
        base_url=base_url,
        timeout_seconds=timeout_seconds,
    )
    if not isinstance(data, dict):
        raise SalebotProviderError("Unexpected Salebot get_client response type")
    client = data.get("client")
    if client is None:
        return None
    if not isinstance(client, dict):
        raise SalebotProviderError("Unexpected Salebot get_client response shape")
    client.setdefault("id", client_id)
    return client


def update_client(
    api_key: str | None,
    client_id: str,
    update_data: dict[str, Any],
    base_url: str | None = None,
    timeout_seconds: float = 10.0,
) -> None:
    _request_json(
        "/update_client",
        api_key,
        {"client_id": client_id, "update_data": update_data},
        base_url=base_url,
        timeout_seconds=timeout_seconds,
    )


def list_clients(
    api_key: str | None,
    base_url: str | None = None,
    timeout_seconds: float = 10.0,
) -> list[dict[str, Any]]:
    data = _request_json(
        "/get_clients",
        api_key,
        {},
        base_url=base_url,
        timeout_seconds=timeout_seconds,
    )
    if isinstance(data, list):
        return data
    if isinstance(data, dict) and isinstance(data.get("clients"), list):
        return data["clients"]
    raise SalebotProviderError("Unexpected Salebot get_clients response shape")
