"""
Configuration module.

Exports:
    settings: Application settings instance
    get_settings: Cached settings accessor
    get_supabase_client: Cached Supabase client
    check_connection: Health check for the main tables
"""

from config.settings import settings, get_settings, Settings
from config.database import (
    get_supabase_client,
    check_connection,
    reset_connection,
    DatabaseConnectionError,
)

__all__ = [
    # Settings
    "settings",
    "get_settings",
    "Settings",

    # Database
    "get_supabase_client",
    "check_connection",
    "reset_connection",
    "DatabaseConnectionError",
]
