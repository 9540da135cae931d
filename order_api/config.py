from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "postgresql+asyncpg://postgres:postgres@db:5432/storefront"
    log_level: str = "INFO"

    # Callers whose bearer principal grants the staff/courier role
    staff_principals: list[str] = []

    seed_menu: bool = True

    # Observability
    otlp_endpoint: str = "http://jaeger:4318/v1/traces"

    model_config = {"env_file": ".env"}


settings = Settings()
