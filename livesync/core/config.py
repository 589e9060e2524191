from pydantic_settings import BaseSettings

from livesync.domain.streams import Streams


class Settings(BaseSettings):
    # Streams
    streams: list[str] = Streams.all_streams()
    history_capacity: int = 100  # points kept per stream
    recent_transactions_limit: int = 10
    historical_series_limit: int = 100
    change_primary_fields: dict[str, list[str]] = {
        Streams.BLOCK_INFO: ["block_height"],
        Streams.MARKET_DATA: ["market_price"],
        Streams.RECENT_TRANSACTIONS: ["tx_hashes"],
    }

    # Refresh cadence
    refresh_period_seconds: float = 1.0
    fetch_timeout_seconds: float = 0.8  # must stay below the refresh period
    history_warming_enabled: bool = True

    # Clickhouse (data source)
    clickhouse_host: str = "clickhouse"
    clickhouse_port: int = 8123
    clickhouse_db: str = "blockchain_monitor"
    clickhouse_user: str = "default"
    clickhouse_password: str = ""

    # Redis (change notifications)
    change_notify_enabled: bool = False
    redis_host: str = "redis"
    redis_port: int = 6379
    redis_db: int = 0

    # HTTP listener
    api_host: str = "0.0.0.0"
    api_port: int = 3000
    cors_allow_origins: list[str] = ["*"]  # browser displays poll from other origins

    # Display client
    client_base_url: str = "http://localhost:3000"
    client_poll_interval_seconds: float = 1.0
    client_timeout_seconds: float = 2.0

    # Logging
    app_log_level: str = "INFO"
    app_log_redaction_patterns: list[str] = [
        "password",
        "token",
        "secret",
        "authorization",
        "cookie",
    ]

    otel_service_name: str = "livesync"
    app_environment: str = "production"


settings = Settings()
