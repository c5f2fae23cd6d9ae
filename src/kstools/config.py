"""Configuration management for kstools using pydantic-settings."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from kstools.core.exceptions import UnsupportedFormatError
from kstools.keystore.base import StoreFormat

if TYPE_CHECKING:
    from kstools.core.tls import ClientTLSConfig


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables are prefixed with KSTOOLS_ (e.g., KSTOOLS_SERVER_HOST).
    """

    model_config = SettingsConfigDict(
        env_prefix="KSTOOLS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Remote endpoint
    server_host: str = Field(default="127.0.0.1", description="TLS server host")
    server_port: int = Field(default=8800, description="TLS server port")

    # Client identity
    client_keystore_path: Path | None = Field(
        default=None,
        description="Keystore holding the client private key and certificate chain",
    )
    client_keystore_password: str = Field(
        default="",
        description="Client keystore password (also used as the key password)",
    )
    keystore_format: StoreFormat | None = Field(
        default=None,
        description="Client keystore format (auto-detected when unset)",
    )
    key_alias: str | None = Field(
        default=None,
        description="Alias of the client key entry (first key entry when unset)",
    )

    # Trust
    truststore_path: Path | None = Field(
        default=None,
        description="Keystore holding the trusted server certificate or its CA",
    )
    truststore_password: str = Field(default="", description="Trust store password")
    truststore_format: StoreFormat | None = Field(
        default=None,
        description="Trust store format (auto-detected when unset)",
    )

    # Connection
    connect_timeout: float = Field(
        default=10.0,
        description="Connect and handshake timeout in seconds",
    )
    check_hostname: bool = Field(
        default=True,
        description="Verify the server certificate matches the host name",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Log level",
    )
    log_format: Literal["json", "text"] = Field(
        default="text",
        description="Log output format",
    )

    @field_validator("server_port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate the port is in the TCP range."""
        if not 1 <= v <= 65535:
            raise ValueError("server_port must be between 1 and 65535")
        return v

    @field_validator("connect_timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("connect_timeout must be positive")
        return v

    @field_validator("keystore_format", "truststore_format", mode="before")
    @classmethod
    def parse_store_format(cls, v: str | StoreFormat | None) -> StoreFormat | None:
        """Accept format names case-insensitively; empty means auto-detect."""
        if isinstance(v, str):
            if not v.strip():
                return None
            try:
                return StoreFormat.from_name(v)
            except UnsupportedFormatError as e:
                raise ValueError(str(e)) from e
        return v

    def client_tls_config(self) -> "ClientTLSConfig":
        """
        Build a client TLS configuration from these settings.

        Raises:
            ValueError: If the keystore or trust store path is not configured
        """
        from kstools.core.tls import ClientTLSConfig

        if self.client_keystore_path is None:
            raise ValueError("KSTOOLS_CLIENT_KEYSTORE_PATH is not set")
        if self.truststore_path is None:
            raise ValueError("KSTOOLS_TRUSTSTORE_PATH is not set")

        return ClientTLSConfig(
            host=self.server_host,
            port=self.server_port,
            keystore_path=self.client_keystore_path,
            keystore_password=self.client_keystore_password,
            truststore_path=self.truststore_path,
            truststore_password=self.truststore_password,
            keystore_format=self.keystore_format,
            truststore_format=self.truststore_format,
            key_alias=self.key_alias,
            timeout=self.connect_timeout,
            check_hostname=self.check_hostname,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
