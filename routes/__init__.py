"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.menus import router as menus_router
from routes.menu_upload import router as menu_upload_router
from routes.menu_import import router as menu_import_router

__all__ = [
    "menus_router",
    "menu_upload_router",
    "menu_import_router",
]
