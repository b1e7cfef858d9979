"""
Configuration: environment settings and the Supabase client.

    from config import settings, get_supabase_client
"""

from config.settings import Settings, get_settings, settings
from config.database import check_connection, db, get_supabase_client

__all__ = [
    "Settings",
    "get_settings",
    "settings",
    "check_connection",
    "db",
    "get_supabase_client",
]
