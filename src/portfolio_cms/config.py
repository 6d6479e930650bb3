"""Centralized configuration for portfolio-cms using Pydantic Settings."""

from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Strictly typed configuration loaded from ``PORTFOLIO_*`` environment variables.

    Everything is validated at startup; a bad value stops the process before the
    store is touched.
    """

    model_config = SettingsConfigDict(
        env_prefix="PORTFOLIO_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
    )

    # Storage
    database_path: Path = Field(default=Path("portfolio.db"), description="Primary SQLite database file")
    legacy_database_path: Path = Field(
        default=Path("portfolio_old.db"),
        description="Designated legacy database file; recovered into the primary store at startup when present",
    )
    upload_dir: Path = Field(default=Path("uploads"), description="Root directory for uploaded images")
    site_dir: Path = Field(default=Path("site"), description="Directory holding index.html and admin.html")
    max_upload_bytes: int = Field(default=10 * 1024 * 1024, ge=1, description="Largest accepted image upload")
    busy_timeout_ms: int = Field(default=5000, ge=0, description="SQLite busy timeout in milliseconds")

    # Search
    search_strategy: Literal["fts", "fuzzy"] = Field(
        default="fts",
        description="fts: FTS5 index synchronised with every write; fuzzy: in-memory match with a TTL cache",
    )
    fuzzy_threshold: float = Field(
        default=0.4,
        ge=0.0,
        le=1.0,
        description="Highest fuzzy score (0 = perfect match) a row may have and still be returned",
    )
    search_cache_ttl_seconds: float = Field(default=300.0, ge=0.0, description="Lifetime of cached search id lists")
    reindex_on_startup: bool = Field(
        default=True,
        description="Rebuild every search index at startup instead of only the inconsistent ones",
    )

    # Pagination
    public_page_size: int = Field(default=9, ge=1, le=100, description="Items per page on the public listing")
    admin_page_size: int = Field(default=5, ge=1, le=100, description="Items per page on the admin listing")

    # Server settings
    host: str = Field(default="127.0.0.1", description="Bind host")
    port: int = Field(default=3000, ge=1, le=65535, description="Bind port")
    tls_enabled: bool = Field(default=False, description="Serve HTTPS; cert and key files become mandatory")
    tls_cert_path: Path = Field(default=Path("cert.pem"), description="TLS certificate file")
    tls_key_path: Path = Field(default=Path("key.pem"), description="TLS private key file")

    # Logging / observability
    log_level: str = Field(default="info", description="Logging level")
    log_json: bool = Field(default=True, description="Emit structured JSON logs")
    access_log: bool = Field(default=False, description="Keep uvicorn access logs at INFO")
    otlp_endpoint: str = Field(default="", description="OTLP collector endpoint for traces; empty disables export")
    otlp_protocol: Literal["http", "grpc"] = Field(default="http", description="OTLP transport")

    @model_validator(mode="after")
    def _check_page_sizes(self) -> "Settings":
        if self.admin_page_size > self.public_page_size:
            raise ValueError(
                "PORTFOLIO_ADMIN_PAGE_SIZE must not exceed PORTFOLIO_PUBLIC_PAGE_SIZE "
                f"({self.admin_page_size} > {self.public_page_size})"
            )
        return self

    def uses_fts(self) -> bool:
        """Check whether the engine-maintained FTS5 index is active."""
        return self.search_strategy == "fts"

    def tls_files(self) -> tuple[Path, Path] | None:
        """Return ``(cert, key)`` when TLS is enabled, otherwise None."""
        if not self.tls_enabled:
            return None
        return self.tls_cert_path, self.tls_key_path

    def missing_tls_files(self) -> list[Path]:
        """List TLS files that are required but absent."""
        files = self.tls_files()
        if files is None:
            return []
        return [path for path in files if not path.is_file()]
