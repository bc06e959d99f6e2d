"""Watchlist Data Models.

Dataclasses for watchlists, items, shares, legacy favorites, and the
persisted store state.
"""

import copy
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional
import uuid

from src.watchlist.config import (
    DEFAULT_WATCHLIST_ID,
    EXPORT_FORMAT_VERSION,
    EXPORT_SOURCE,
    SCHEMA_VERSION,
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


# =============================================================================
# Core Watchlist Models
# =============================================================================

@dataclass
class WatchlistItem:
    """An item in a watchlist.

    ``name`` and ``icon_url`` are display copies taken when the item was
    added; they are not kept in sync with the item catalog.
    """
    item_id: int = 0
    name: str = ""
    icon_url: str = ""
    added_at: datetime = field(default_factory=_utc_now)
    notes: Optional[str] = None

    @property
    def has_notes(self) -> bool:
        return bool(self.notes)


@dataclass
class Watchlist:
    """A named, ordered collection of items."""
    watchlist_id: str = field(default_factory=_new_id)
    name: str = ""
    items: list[WatchlistItem] = field(default_factory=list)
    created_at: datetime = field(default_factory=_utc_now)
    updated_at: datetime = field(default_factory=_utc_now)
    is_default: bool = False

    @property
    def item_count(self) -> int:
        return len(self.items)

    def get_item(self, item_id: int) -> Optional[WatchlistItem]:
        """Get item by catalog ID."""
        for item in self.items:
            if item.item_id == item_id:
                return item
        return None

    def has_item(self, item_id: int) -> bool:
        """Check if an item is in the watchlist."""
        return any(item.item_id == item_id for item in self.items)

    def snapshot(self) -> "Watchlist":
        """Return a deep copy detached from the store."""
        return copy.deepcopy(self)


# =============================================================================
# Sharing Models
# =============================================================================

@dataclass
class WatchlistShare:
    """A shared, read-only snapshot of a watchlist.

    ``expires_at`` and ``access_count`` are reported by the share server;
    the client only displays them.
    """
    token: str = ""
    watchlist: Watchlist = field(default_factory=Watchlist)
    expires_at: datetime = field(default_factory=_utc_now)
    access_count: int = 0

    @property
    def is_expired(self) -> bool:
        return _utc_now() >= self.expires_at

    @property
    def time_remaining(self) -> timedelta:
        """Time until expiry, floored at zero."""
        return max(self.expires_at - _utc_now(), timedelta(0))


# =============================================================================
# Legacy Favorites
# =============================================================================

@dataclass
class LegacyFavorite:
    """A record from the legacy single-list favorites store."""
    item_id: int = 0
    name: str = ""
    icon_url: str = ""
    added_at: datetime = field(default_factory=_utc_now)


# =============================================================================
# Store State
# =============================================================================

@dataclass
class WatchlistState:
    """Everything the store persists as one durable record."""
    watchlists: dict[str, Watchlist] = field(default_factory=dict)
    active_watchlist_id: str = DEFAULT_WATCHLIST_ID
    migrated: bool = False
    schema_version: int = SCHEMA_VERSION


@dataclass
class WatchlistExport:
    """Backup/download document for one or more watchlists."""
    watchlists: list[Watchlist] = field(default_factory=list)
    version: str = EXPORT_FORMAT_VERSION
    source: str = EXPORT_SOURCE
    exported_at: datetime = field(default_factory=_utc_now)
