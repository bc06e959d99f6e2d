"""Watchlist Management Configuration.

Enums, limits, and configuration for the watchlist store and sharing.
"""

from dataclasses import dataclass
from enum import Enum


# =============================================================================
# Enums
# =============================================================================

class FailureReason(str, Enum):
    """Why a store operation returned its failure sentinel."""
    INVALID_NAME_LENGTH = "invalid_name_length"
    DUPLICATE_NAME = "duplicate_name"
    WATCHLIST_LIMIT_EXCEEDED = "watchlist_limit_exceeded"
    ITEM_ALREADY_PRESENT = "item_already_present"
    ITEM_NOT_FOUND = "item_not_found"
    ITEM_LIMIT_EXCEEDED = "item_limit_exceeded"
    NOTE_TOO_LONG = "note_too_long"
    CANNOT_MODIFY_DEFAULT = "cannot_modify_default"
    UNKNOWN_ID = "unknown_id"
    INVALID_ITEM_ID = "invalid_item_id"


class ItemSortKey(str, Enum):
    """Sort keys for watchlist items."""
    NAME = "name"
    ADDED_AT = "added_at"
    ITEM_ID = "item_id"


# =============================================================================
# Constants
# =============================================================================

# Limits
MAX_WATCHLISTS = 10
MAX_ITEMS_PER_WATCHLIST = 100
MIN_NAME_LENGTH = 1
MAX_NAME_LENGTH = 50
MAX_NOTE_LENGTH = 500

# Default watchlist
DEFAULT_WATCHLIST_ID = "default-favorites"
DEFAULT_WATCHLIST_NAME = "Favorites"

# Persisted state layout version
SCHEMA_VERSION = 1

# Export documents
EXPORT_FORMAT_VERSION = "1.0.0"
EXPORT_SOURCE = "pricewatch"

# Display copy only; the server decides the real expiry.
DEFAULT_SHARE_EXPIRY_LABEL = "7 days"


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class WatchlistConfig:
    """Configuration for watchlist management."""
    max_watchlists: int = MAX_WATCHLISTS
    max_items_per_watchlist: int = MAX_ITEMS_PER_WATCHLIST
    min_name_length: int = MIN_NAME_LENGTH
    max_name_length: int = MAX_NAME_LENGTH
    max_note_length: int = MAX_NOTE_LENGTH
    default_watchlist_id: str = DEFAULT_WATCHLIST_ID
    default_watchlist_name: str = DEFAULT_WATCHLIST_NAME


DEFAULT_WATCHLIST_CONFIG = WatchlistConfig()
