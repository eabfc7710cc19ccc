from __future__ import annotations

from typing import Mapping

from conversion_relay.models.clients import Attribution


# Query parameter -> Attribution field.
ATTRIBUTION_PARAMS: dict[str, str] = {
    "utm_source": "source",
    "utm_campaign": "campaign",
    "utm_fb_pixel": "pixel_id",
    "utm_fb_token": "access_token",
}


def extract_attribution(params: Mapping[str, str | None]) -> Attribution:
    """Build a partial Attribution from webhook query parameters.

    Only parameters that are present and non-blank are carried over. Missing
    fields stay None so a later merge leaves the stored values alone. A pixel
    without a token (or the reverse) is returned as-is.
    """
    fields: dict[str, str] = {}
    for param, field in ATTRIBUTION_PARAMS.items():
        raw = params.get(param)
        if raw is None:
            continue
        value = str(raw).strip()
        if value:
            fields[field] = value
    return Attribution(**fields)
