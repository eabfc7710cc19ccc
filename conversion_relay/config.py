from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    admin_user: str | None = None
    admin_password: str | None = None
    webhook_secret: str | None = None
    client_store_backend: str = "memory"  # memory | supabase | salebot
    supabase_url: str | None = None
    supabase_service_role_key: str | None = None
    supabase_clients_table: str = "clients"
    salebot_api_url: str = "https://api.salebot.pro/api/v1"
    salebot_api_key: str | None = None
    salebot_timeout_seconds: float = 10.0
    client_cache_ttl_seconds: int = 600
    client_cache_maxsize: int = 10000
    facebook_graph_api_base: str = "https://graph.facebook.com"
    facebook_graph_api_version: str = "v12.0"
    facebook_timeout_seconds: float = 10.0
    conversion_currency: str = "USD"
    log_level: str = "INFO"
    port: int = 3000

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
