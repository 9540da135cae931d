from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    backend_url: str = "http://localhost:8000"
    request_timeout: float = 10.0
    log_level: str = "INFO"

    # Freshness windows (seconds) for lazily revalidated resources
    menu_stale_time: float = 30.0
    admin_menu_stale_time: float = 0.0
    profile_stale_time: float = 300.0

    # Poll intervals (seconds) for live resources while observed
    order_detail_poll_interval: float = 8.0
    order_list_poll_interval: float = 15.0

    # Session-scoped storage backing the cart and courier-access flag
    session_storage_path: str | None = None
    courier_pin: str = "1953"

    # Observability
    otlp_endpoint: str = ""

    model_config = {"env_file": ".env", "env_prefix": "STOREFRONT_"}


settings = Settings()
