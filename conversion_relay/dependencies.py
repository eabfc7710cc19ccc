from functools import lru_cache

from fastapi import Depends

from conversion_relay.config import settings
from conversion_relay.domain.reconciler import EventReconciler, EventSender
from conversion_relay.providers.facebook.client import FacebookConversionsClient
from conversion_relay.stores import ClientStore, build_client_store


@lru_cache(maxsize=1)
def get_client_store() -> ClientStore:
    """Process-wide store handle; tests swap it through app.dependency_overrides."""
    return build_client_store(settings)


@lru_cache(maxsize=1)
def get_event_sender() -> EventSender:
    return FacebookConversionsClient(
        api_base=settings.facebook_graph_api_base,
        api_version=settings.facebook_graph_api_version,
        timeout_seconds=settings.facebook_timeout_seconds,
    )


def get_reconciler(
    store: ClientStore = Depends(get_client_store),
    sender: EventSender = Depends(get_event_sender),
) -> EventReconciler:
    return EventReconciler(store, sender, currency=settings.conversion_currency)
