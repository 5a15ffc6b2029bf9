"""Central environment-driven settings for the ledger service.

The process loads this once at startup. Behavior is controlled by environment
variables (see `.env.example`).
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed view of runtime configuration from environment variables."""

    service_name: str = "ledger"
    log_level: str = "INFO"
    database_url: str
    api_key: str
    otel_exporter_otlp_endpoint: str = "http://otel-collector:4318/v1/traces"
    tracing_enabled: bool = True
    trace_sample_ratio: float = 1.0
    report_timezone: str = "UTC"
    history_page_limit: int = 500
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
