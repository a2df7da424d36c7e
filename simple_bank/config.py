"""
Configuration Management Module

Provides configuration using pydantic-settings for environment-based
configuration. Instances are created explicitly and passed to the
components that need them.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class BankConfig(BaseSettings):
    """Simple bank configuration"""

    model_config = SettingsConfigDict(
        env_prefix="SIMPLE_BANK_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Database configuration
    database_url: str = "sqlite:///simple_bank.db"  # memory://, sqlite:///path, postgresql://...
    lock_timeout_seconds: float = 5.0  # How long a unit waits for a row lock

    # Transfer rules
    max_transfer_retries: int = 3
    retry_backoff_seconds: float = 0.05
    allow_negative_balance: bool = False

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8080

    # Token configuration
    token_symmetric_key: str = "change-me-in-production-32-chars-min"

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text


def load_config(**overrides) -> BankConfig:
    """Build a configuration from the environment, applying overrides"""
    return BankConfig(**overrides)
