"""
Text utilities for menu categories and item names.

normalize_category is the single canonicalization routine for category
names. Preview building, the editing workspace and the conflict resolver
all go through it.
"""

import re
import unicodedata
from typing import Optional

UNCATEGORIZED = "Uncategorized"

_WHITESPACE = re.compile(r"\s+")


def normalize_category(raw: Optional[str]) -> str:
    """
    Canonicalize a free-text category name.

    - None / "" / "   " → "Uncategorized"
    - " fine DINING " → "Fine Dining"
    - "wine  list" → "Wine List"

    Idempotent: normalize_category(normalize_category(x)) == normalize_category(x).

    Args:
        raw: Category name as extracted or typed

    Returns:
        Title-cased category name with single spaces
    """
    if raw is None:
        return UNCATEGORIZED

    words = str(raw).strip().lower().split()
    if not words:
        return UNCATEGORIZED

    return " ".join(_capitalize_first(word) for word in words)


def _capitalize_first(word: str) -> str:
    first = word[0].upper()
    # "ß".upper() == "SS" would change the word length and break idempotence
    if len(first) != 1:
        first = word[0]
    return first + word[1:]


def normalize_item_name(name: Optional[str]) -> Optional[str]:
    """
    Build the comparison key for menu item names.

    Handles accents, case and spacing:
    - "Crème Brûlée" → "creme brulee"
    - "  Caesar   SALAD " → "caesar salad"

    Args:
        name: Item name (may have accents, mixed case)

    Returns:
        Lowercase ASCII key, or None if input is empty
    """
    if not name:
        return None

    name = _WHITESPACE.sub(" ", str(name)).strip()

    if not name:
        return None

    # NFD splits base characters from their accents
    normalized = unicodedata.normalize('NFD', name)

    ascii_name = ''.join(
        c for c in normalized
        if unicodedata.category(c) != 'Mn'
    )

    return ascii_name.casefold()


def split_list_text(value: Optional[str]) -> list[str]:
    """
    Split comma separated text into trimmed, non-empty entries.

    "Merlot, Cabernet ,  " → ["Merlot", "Cabernet"]
    """
    if not value:
        return []
    return [part.strip() for part in str(value).split(",") if part.strip()]
