"""Application configuration using pydantic-settings."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_REMOTE_FIELDS = (
    "id,sku,name,regular_price,sale_price,stock_quantity,manage_stock,"
    "status,date_modified_gmt,type,hurt_price,ean"
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="STOCKSYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "stocksync"
    version: str = "1.0.0"
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = Field(default=8085, description="Operator API port")

    # Paths
    config_path: Path = Field(
        default=Path("./config"),
        description="Path for the database and local state",
    )
    database_url: str | None = Field(
        default=None,
        description="Database URL override (defaults to SQLite under config_path)",
    )

    # Components
    sync_enabled: bool = Field(
        default=True,
        description="Start the periodic components with the application",
    )
    enabled_components: list[str] = Field(
        default=["importer", "remote_cache"],
        description="Component identifiers to start",
    )

    # Import pipeline
    watch_dir: Path = Field(
        default=Path("./xml_in"),
        description="Directory polled for exported catalog files",
    )
    import_file_prefix: str = Field(
        default="exp_wyk_",
        description="Filename prefix of export files",
    )
    import_poll_seconds: int = Field(
        default=10,
        ge=1,
        le=3600,
        description="Seconds between watch directory scans",
    )
    import_batch_size: int = Field(
        default=500,
        ge=1,
        le=10000,
        description="Rows per multi-row staging insert",
    )

    # Remote catalog (WooCommerce REST API)
    remote_base_url: str = Field(
        default="https://example.com",
        description="Storefront base URL",
    )
    remote_consumer_key: str = Field(default="", description="REST API consumer key")
    remote_consumer_secret: str = Field(default="", description="REST API consumer secret")
    remote_fields: str = Field(
        default=DEFAULT_REMOTE_FIELDS,
        description="Comma-separated field list requested from the products endpoint",
    )
    remote_per_page: int = Field(default=100, ge=1, le=100)
    remote_timeout: float = Field(default=20.0, gt=0, description="Per-request timeout (s)")
    remote_prime_on_start: bool = Field(
        default=False,
        description="Page the whole remote catalog once when the sweeper starts",
    )
    sweep_interval_minutes: int = Field(
        default=360,
        description="Minutes between incremental sweeps (<= 0 disables the sweeper)",
    )
    sweep_lookback_hours: int = Field(
        default=24,
        ge=1,
        description="Look-back window used when no watermark has been persisted",
    )

    # Linker
    linker_purge_scope: Literal["global", "file"] = Field(
        default="global",
        description="Which link issues are purged before a relink",
    )

    @property
    def db_path(self) -> Path:
        """Get the SQLite database file path."""
        return self.config_path / "stocksync.db"

    @property
    def remote_configured(self) -> bool:
        """Check if remote API credentials are configured."""
        return bool(self.remote_consumer_key and self.remote_consumer_secret)


# Global settings instance
settings = Settings()
