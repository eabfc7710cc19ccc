from conversion_relay.config import Settings
from conversion_relay.stores.base import ClientStore, StoreError
from conversion_relay.stores.cached import CachedClientStore
from conversion_relay.stores.memory import InMemoryClientStore
from conversion_relay.stores.salebot_store import SalebotClientStore
from conversion_relay.stores.supabase_store import SupabaseClientStore

STORE_BACKENDS = {"memory", "supabase", "salebot"}


def build_client_store(settings: Settings) -> ClientStore:
    """Create the configured backend, wrapped in the TTL cache unless disabled."""
    backend_name = settings.client_store_backend.strip().lower()
    if backend_name not in STORE_BACKENDS:
        raise ValueError(
            f"Unsupported CLIENT_STORE_BACKEND {settings.client_store_backend!r}; "
            f"expected one of: {', '.join(sorted(STORE_BACKENDS))}"
        )

    backend: ClientStore
    if backend_name == "supabase":
        from conversion_relay.db import get_supabase

        backend = SupabaseClientStore(get_supabase(), table_name=settings.supabase_clients_table)
    elif backend_name == "salebot":
        backend = SalebotClientStore(
            api_key=settings.salebot_api_key,
            base_url=settings.salebot_api_url,
            timeout_seconds=settings.salebot_timeout_seconds,
        )
    else:
        backend = InMemoryClientStore()

    if settings.client_cache_ttl_seconds > 0:
        return CachedClientStore(
            backend,
            ttl_seconds=settings.client_cache_ttl_seconds,
            maxsize=settings.client_cache_maxsize,
        )
    return backend


__all__ = [
    "CachedClientStore",
    "ClientStore",
    "InMemoryClientStore",
    "SalebotClientStore",
    "StoreError",
    "SupabaseClientStore",
    "build_client_store",
]
