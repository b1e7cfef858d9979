"""
Temporary storage for menu upload previews.
Holds the preview workspace in memory with TTL expiration.
Single-server only; a restart drops every open preview.
"""
from datetime import datetime, timedelta
from typing import Optional

import structlog

from config import settings
from models.menu_upload import MenuUploadPreview

logger = structlog.get_logger(__name__)

_cache: dict[str, tuple[datetime, MenuUploadPreview]] = {}


def _expiry(ttl_minutes: Optional[int]) -> datetime:
    return datetime.now() + timedelta(minutes=ttl_minutes or settings.preview_ttl_minutes)


def store_preview(preview: MenuUploadPreview, ttl_minutes: Optional[int] = None) -> str:
    """Store a preview under its own preview_id, return the id."""
    _cache[preview.preview_id] = (_expiry(ttl_minutes), preview)
    _cleanup_expired()
    return preview.preview_id


def retrieve_preview(preview_id: str) -> Optional[MenuUploadPreview]:
    """Retrieve a preview by id. Returns None if expired/not found."""
    entry = _cache.get(preview_id)
    if entry is None:
        return None
    expires_at, preview = entry
    if datetime.now() > expires_at:
        del _cache[preview_id]
        logger.info("preview_expired", preview_id=preview_id)
        return None
    return preview


def touch_preview(preview_id: str, ttl_minutes: Optional[int] = None) -> None:
    """Extend the TTL of a preview the user is still working on."""
    entry = _cache.get(preview_id)
    if entry is not None:
        _cache[preview_id] = (_expiry(ttl_minutes), entry[1])


def delete_preview(preview_id: str) -> None:
    """Remove preview after import or cancel."""
    _cache.pop(preview_id, None)


def clear_previews() -> None:
    _cache.clear()


def _cleanup_expired() -> None:
    """Remove all expired entries."""
    now = datetime.now()
    expired = [k for k, (exp, _) in _cache.items() if now > exp]
    for k in expired:
        del _cache[k]
