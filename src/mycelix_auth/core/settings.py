"""Application settings and configuration.

This module defines all configuration options for the Mycelix authorization
service. Settings are loaded from environment variables with sensible defaults.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files. They are
    read once at process start; components receive the values they need through
    their constructors.
    """

    # Application metadata
    app_name: str = Field(default="Mycelix Music API", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Signature freshness window and replay protection
    signature_ttl_ms: int = Field(default=300_000, gt=0, alias="SIGNATURE_TTL_MS")
    redis_url: str | None = Field(default=None, alias="REDIS_URL")
    replay_key_prefix: str = Field(default="mycelix:replay", alias="REPLAY_KEY_PREFIX")

    # EIP-712 typed-data domain
    eip712_name: str = Field(default="MycelixMusic", alias="EIP712_NAME")
    eip712_version: str = Field(default="1", alias="EIP712_VERSION")
    eip712_chain_id: int = Field(default=31337, alias="EIP712_CHAIN_ID")
    eip712_verifier: str | None = Field(default=None, alias="EIP712_VERIFIER")
    router_address: str | None = Field(default=None, alias="ROUTER_ADDRESS")

    # Admin capability and feature flags
    api_admin_key: str | None = Field(default=None, alias="API_ADMIN_KEY")
    enable_uploads: bool = Field(default=True, alias="ENABLE_UPLOADS")
    upload_auth_mode: Literal["admin", "open"] = Field(default="admin", alias="UPLOAD_AUTH_MODE")
    enable_manual_play: bool = Field(default=False, alias="ENABLE_MANUAL_PLAY")
    auth_config_public: bool = Field(default=False, alias="AUTH_CONFIG_PUBLIC")

    ipfs_gateway_url: str = Field(default="https://w3s.link/ipfs", alias="IPFS_GATEWAY_URL")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS")
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(default=["*"], alias="CORS_ALLOW_HEADERS")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def verifying_contract(self) -> str | None:
        """Return the EIP-712 verifying contract, falling back to the router address."""
        return self.eip712_verifier or self.router_address or None


settings = Settings()
