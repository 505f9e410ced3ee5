"""
Fulfillment API settings, read from the environment or a .env file.

Secrets (delete password, carrier and store credentials) are never logged.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """
    Environment-driven settings.

    Integration credentials are optional; each integration reports
    itself unconfigured until its keys are present.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # SUPABASE
    # ===================
    supabase_url: str = Field(
        ...,
        description="Supabase project URL"
    )
    supabase_key: str = Field(
        ...,
        description="Supabase anon/public key"
    )

    # ===================
    # SECURITY
    # ===================
    order_delete_password: Optional[str] = Field(
        None,
        description="Shared password required to delete orders and shipments"
    )

    # ===================
    # FEDEX
    # ===================
    fedex_api_key: Optional[str] = Field(
        None,
        description="FedEx API client id"
    )
    fedex_secret_key: Optional[str] = Field(
        None,
        description="FedEx API client secret"
    )
    fedex_account_number: Optional[str] = Field(
        None,
        description="FedEx shipper account number"
    )
    fedex_base_url: str = Field(
        default="https://apis.fedex.com",
        description="FedEx API base URL (use apis-sandbox.fedex.com for testing)"
    )

    # ===================
    # MAGENTO
    # ===================
    magento_store_url: Optional[str] = Field(
        None,
        description="Magento store base URL"
    )
    magento_api_key: Optional[str] = Field(
        None,
        description="Magento integration access token"
    )
    magento_import_status: str = Field(
        default="Order Received - Awaiting Fulfillment.",
        description="Magento order status that marks orders ready to import"
    )
    magento_import_since: str = Field(
        default="2025-11-01 00:00:00",
        description="Only import Magento orders created on or after this timestamp"
    )
    magento_page_size: int = Field(
        default=100,
        ge=1,
        le=500,
        description="Magento searchCriteria page size"
    )
    magento_max_pages_incremental: int = Field(
        default=10,
        ge=1,
        description="Page cap for incremental order imports"
    )
    magento_max_pages_full: int = Field(
        default=50,
        ge=1,
        description="Page cap for full order imports"
    )

    # ===================
    # LLM
    # ===================
    anthropic_api_key: Optional[str] = Field(
        None,
        description="Anthropic API key for insight features"
    )
    llm_model: str = Field(
        default="claude-sonnet-4-20250514",
        description="Model used for insights and priority suggestions"
    )
    llm_max_tokens: int = Field(
        default=2048,
        ge=256,
        le=8192,
        description="Maximum tokens per LLM response"
    )

    # ===================
    # EMAIL
    # ===================
    smtp_host: Optional[str] = Field(
        None,
        description="SMTP host for production list emails"
    )
    smtp_port: int = Field(
        default=587,
        ge=1,
        le=65535,
        description="SMTP port"
    )
    smtp_username: Optional[str] = Field(
        None,
        description="SMTP username"
    )
    smtp_password: Optional[str] = Field(
        None,
        description="SMTP password"
    )
    smtp_sender: str = Field(
        default="operations@localhost",
        description="From address for outgoing email"
    )

    # ===================
    # WORKFLOW
    # ===================
    queue_fetch_limit: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Maximum orders fetched per workflow queue (no pagination beyond)"
    )
    status_compare_and_swap: bool = Field(
        default=False,
        description="Guard workflow actions with a compare-and-swap on the current status"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=8000,
        ge=1000,
        le=65535,
        description="API port"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def fedex_configured(self) -> bool:
        """Check if FedEx credentials are complete."""
        return bool(self.fedex_api_key and self.fedex_secret_key and self.fedex_account_number)

    @property
    def magento_configured(self) -> bool:
        """Check if Magento credentials are set."""
        return bool(self.magento_store_url and self.magento_api_key)

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host)


@lru_cache()
def get_settings() -> Settings:
    """
    Settings, loaded once per process.

    Raises:
        ValidationError: SUPABASE_URL or SUPABASE_KEY missing, or a value out of range
    """
    return Settings()


# Module-level instance used across the app
settings = get_settings()
