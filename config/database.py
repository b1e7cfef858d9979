"""
Supabase client for the menu store and import job records.

The client is created once per process. Services grab it in their
constructor, so tests patch get_supabase_client before a service is built.
"""

from functools import lru_cache

import structlog
from supabase import Client, create_client

from config.settings import settings
from exceptions import DatabaseError

logger = structlog.get_logger(__name__)

# Tables the health check reports on
HEALTH_TABLES = ("menus", "menu_items", "menu_import_jobs")


@lru_cache()
def get_supabase_client() -> Client:
    """
    Create the Supabase client and run a one-row probe against menus.

    Raises:
        DatabaseError: If the client cannot be created or the probe fails
    """
    # Only the host part goes to the log
    logger.info("supabase_client_creating", url=settings.supabase_url.split("//")[-1][:30])

    try:
        client = create_client(settings.supabase_url, settings.supabase_key)
        client.table("menus").select("id").limit(1).execute()
    except Exception as e:
        logger.error("supabase_client_failed", error=str(e), error_type=type(e).__name__)
        raise DatabaseError("connect", str(e)) from e

    logger.info("supabase_client_ready")
    return client


db = get_supabase_client


def check_connection() -> dict:
    """
    Row counts for the menu tables, or the failure reason.

    Never raises; the result feeds /health and the startup log.
    """
    try:
        client = get_supabase_client()
        counts = {
            f"{table}_count": client.table(table).select("id", count="exact").execute().count
            for table in HEALTH_TABLES
        }
    except Exception as e:
        return {"status": "unhealthy", "error": str(e)}

    return {"status": "healthy", **counts}
