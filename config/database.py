"""
Supabase connection.

One cached client shared by every EntityStore. Tables are created by the
hosting platform; nothing here manages schema.
"""

from supabase import create_client, Client
from functools import lru_cache
import structlog

from config.settings import settings

logger = structlog.get_logger(__name__)

# Tables counted by the health check
HEALTH_TABLES = ("orders", "products", "shipments")


class DatabaseConnectionError(Exception):
    """Supabase client could not be created."""
    pass


@lru_cache()
def get_supabase_client() -> Client:
    """
    Cached Supabase client.

    Raises:
        DatabaseConnectionError: Bad URL or key
    """
    try:
        client = create_client(settings.supabase_url, settings.supabase_key)
    except Exception as e:
        logger.error(
            "supabase_client_failed",
            error=str(e),
            error_type=type(e).__name__
        )
        raise DatabaseConnectionError(f"Failed to connect to Supabase: {e}") from e

    logger.info("supabase_client_created", url=settings.supabase_url[:30] + "...")
    return client


def check_connection() -> dict:
    """
    Row counts for the main tables, or the error that stopped the query.

    Never raises; the health endpoint reports the result as-is.
    """
    try:
        client = get_supabase_client()
        counts = {}
        for table in HEALTH_TABLES:
            result = client.table(table).select("id", count="exact").limit(1).execute()
            counts[f"{table}_count"] = result.count
        return {"status": "healthy", **counts}

    except Exception as e:
        return {"status": "unhealthy", "error": str(e)}


def reset_connection() -> None:
    """Drop the cached client so the next call reconnects."""
    get_supabase_client.cache_clear()
    logger.info("database_connection_reset")
