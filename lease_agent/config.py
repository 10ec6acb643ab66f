# lease_agent/config.py
"""
Agent Configuration
Uses pydantic-settings for environment variable management
"""

from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class AgentSettings(BaseSettings):
    """
    Agent settings loaded from environment variables
    Create a .env file for local development
    """

    # === Device ===
    DEVICE_NAME: str = "wg0"
    TUNNEL_BACKEND: Literal["kernel", "userspace"] = "kernel"
    WIREGUARD_GO_BINARY: str = "wireguard-go"
    WG_BINARY: str = "wg"

    # === Lease Server ===
    LEASE_SERVER_URL: Optional[str] = None
    LEASE_AUTH_TOKEN: Optional[str] = None
    LEASE_RENEW_INTERVAL: int = 300  # seconds, 0 disables renewal
    LEASE_REQUEST_TIMEOUT: Optional[float] = None  # None = wait forever

    # === Peer ===
    PERSISTENT_KEEPALIVE: Optional[int] = None

    # === Shutdown ===
    STOP_JOIN_TIMEOUT: float = 5.0

    # === Logging ===
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def renewal_enabled(self) -> bool:
        return self.LEASE_RENEW_INTERVAL > 0


@lru_cache()
def get_settings() -> AgentSettings:
    """
    Cached settings instance
    Use this to get settings throughout the agent
    """
    return AgentSettings()
