import logging
import os
import sys
from typing import Optional

from pydantic import computed_field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def split_csv(value: str | None) -> tuple[str, ...]:
    """Split a comma separated setting into its non-empty, stripped parts.

    Examples:
        >>> split_csv("na, eu,,sg")
        ('na', 'eu', 'sg')
    """
    if not value:
        return ()
    return tuple(part.strip() for part in value.split(",") if part.strip())


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="allow")

    app_version: str = os.environ.get("FEEDLINE_VERSION", "DEV")
    api_prefix: str = "/api"

    # Infrastructure dependencies
    postgres_user: str
    postgres_host: str
    postgres_password: str
    postgres_port: int
    postgres_db: str
    redis_host: str
    redis_port: int
    redis_db: Optional[int] = None

    # Per-category databases (default to the main database)
    regular_database_url: Optional[str] = None
    brawl_database_url: Optional[str] = None
    tournament_database_url: Optional[str] = None

    # Redis connection resilience
    redis_conn_timeout: int = 5
    redis_conn_retries: int = 5
    redis_conn_retry_delay: int = 1
    redis_retry_on_timeout: bool = True
    redis_socket_keepalive: bool = True
    redis_health_check_interval: int = 30
    redis_max_connections: Optional[int] = None

    # Upstream search API
    upstream_api_url: str = "https://api.dc01.gamelockerapp.com/shards/{region}/players"
    upstream_api_token: Optional[str] = None
    upstream_title_id: str = "semc-vainglory"
    upstream_rate_limit_delay: float = 0.1  # seconds between rate-limited attempts
    upstream_rate_limit_max_attempts: int = 50
    upstream_max_concurrency: int = 8  # shared by every search in this process
    upstream_request_timeout: float = 30.0

    # Queue targets
    grab_queue: str = "grab"
    grab_brawl_queue: str = "grab_brawl"
    grab_tournament_queue: str = "grab_tournament"
    player_process_queue: str = "process"
    player_brawl_process_queue: str = "process_brawl"
    player_tournament_process_queue: str = "process_tournament"
    crunch_queue: str = "crunch"
    crunch_tournament_queue: str = "crunch_tournament"
    analyze_queue: str = "analyze"
    analyze_tournament_queue: str = "analyze_tournament"
    sample_queue: str = "telesuck"
    sample_tournament_queue: str = "telesuck"

    # Pipes: one logical category fans out to several categories' queues
    pipe_regular_out: str = "regular"
    pipe_brawl_out: str = "brawl"
    pipe_tournament_out: str = "tournament"
    pipe_regular_player_out: str = "regular_player,brawl_player"
    pipe_brawl_player_out: str = "regular_player,brawl_player"
    pipe_tournament_player_out: str = "tournament_player"

    # Regions and game modes
    regions: str = "na,eu,sg,sa,ea,cn"
    tournament_regions: str = "tournament-na,tournament-eu,tournament-sg,tournament-sa,tournament-ea"
    regular_modes: str = "casual,ranked"
    brawl_modes: str = "casual_aral,blitz_pvp_ranked"
    tournament_modes: str = "private,private_party_draft_match"
    analyze_modes: str = "casual,ranked"

    # Default start of a subject's history per category
    grabstart: str = "2017-02-01T00:00:00Z"
    brawl_grabstart: str = "2017-02-01T00:00:00Z"
    tournament_grabstart: str = "2017-02-12T00:00:00Z"

    # Job enqueueing
    max_window_span_days: int = 28  # upstream refuses wider createdAt ranges
    clock_skew_seconds: int = 60  # upstream clock runs behind, never ask for "now"
    min_update_interval_minutes: int = 30
    serialization_max_attempts: int = 5
    job_isolation_level: Optional[str] = "SERIALIZABLE"
    job_wakeup_enabled: bool = True

    # Shovel
    shovel_size: int = 1000
    sweep_lock_ttl_seconds: int = 60 * 10
    cursor_key_type: str = "crunch"

    # Notifications
    notify_exchange: str = "amq.topic"

    # Background worker configuration
    worker_max_jobs: int = 20
    worker_queue_name: str = "arq:feedline"
    wakeup_queue_prefix: str = "arq:"
    crunch_cron_minute: int = 15
    analyze_cron_minute: int = 45

    # Dev
    testing: bool = False
    dev: bool = False

    @model_validator(mode="after")
    def validate_pipeline_settings(self):
        """Ensure sweep and enqueue tuning values are sane."""
        if self.shovel_size <= 0:
            logging.error(
                "SHOVEL_SIZE must be greater than zero. Current value: %s",
                self.shovel_size,
            )
            sys.exit(1)

        if self.max_window_span_days <= 0:
            logging.error(
                "MAX_WINDOW_SPAN_DAYS must be greater than zero. Current value: %s",
                self.max_window_span_days,
            )
            sys.exit(1)

        if self.serialization_max_attempts <= 0:
            logging.error(
                "SERIALIZATION_MAX_ATTEMPTS must be greater than zero. Current value: %s",
                self.serialization_max_attempts,
            )
            sys.exit(1)

        if self.upstream_rate_limit_max_attempts <= 0:
            logging.error(
                "UPSTREAM_RATE_LIMIT_MAX_ATTEMPTS must be greater than zero. Current value: %s",
                self.upstream_rate_limit_max_attempts,
            )
            sys.exit(1)

        if self.upstream_max_concurrency <= 0:
            logging.error(
                "UPSTREAM_MAX_CONCURRENCY must be greater than zero. Current value: %s",
                self.upstream_max_concurrency,
            )
            sys.exit(1)

        if self.upstream_rate_limit_delay <= 0:
            logging.warning(
                "UPSTREAM_RATE_LIMIT_DELAY is %s; rate-limited searches will retry without pausing.",
                self.upstream_rate_limit_delay,
            )

        return self

    @computed_field
    @property
    def sync_database_url(self) -> str:
        return (
            f"postgresql://{self.postgres_user}:"
            f"{self.postgres_password}@{self.postgres_host}:"
            f"{self.postgres_port}/{self.postgres_db}"
        )

    @computed_field
    @property
    def database_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.postgres_user}:"
            f"{self.postgres_password}@{self.postgres_host}:"
            f"{self.postgres_port}/{self.postgres_db}"
        )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get settings singleton, creating it if needed.

    Returns:
        Settings: The application settings instance.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def set_settings(settings: Settings) -> None:
    """Override settings (primarily for testing).

    Args:
        settings: The Settings instance to use.
    """
    global _settings
    _settings = settings


def reset_settings() -> None:
    """Reset settings to None (for test cleanup)."""
    global _settings
    _settings = None


def get_loglevel():
    loglevel = os.getenv("LOGLEVEL", "INFO")

    match loglevel:
        case "INFO":
            return logging.INFO
        case "WARNING":
            return logging.WARNING
        case "ERROR":
            return logging.ERROR
        case "CRITICAL":
            return logging.CRITICAL
        case "DEBUG":
            return logging.DEBUG
        case _:
            return logging.INFO
