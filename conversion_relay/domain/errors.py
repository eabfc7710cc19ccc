from __future__ import annotations

_TRANSIENT_MARKERS = (
    "connectivity error",
    "timed out",
    "http 429",
    "http 500",
    "http 502",
    "http 503",
    "http 504",
)
_TERMINAL_MARKERS = (
    "http 400",
    "http 401",
    "http 403",
    "http 404",
    "missing",
    "invalid",
    "unexpected",
    "not configured",
)


def classify_error_message(message: str) -> str:
    text = message.lower()
    if any(marker in text for marker in _TRANSIENT_MARKERS):
        return "transient"
    if any(marker in text for marker in _TERMINAL_MARKERS):
        return "terminal"
    return "unknown"


class _ClassifiedError(Exception):
    @property
    def category(self) -> str:
        return classify_error_message(str(self))

    @property
    def retryable(self) -> bool:
        return self.category == "transient"


class StoreError(_ClassifiedError):
    """Durable read/write failure in a client store backend."""


class ForwardError(_ClassifiedError):
    """Outbound conversion event could not be delivered."""
