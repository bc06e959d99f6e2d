"""Watchlist Management & Sharing.

Named watchlists of tracked items with a protected default list,
cross-list moves, backup import/export, migration from the legacy
favorites list, and short-lived share links.

Example:
    from src.watchlist import (
        WatchlistStore, JsonFileWatchlistRepository, WatchlistItem,
        ShareApiClient, ShareService, is_valid_share_token,
    )

    store = WatchlistStore(JsonFileWatchlistRepository("data/watchlists.json"))

    # Create a watchlist and add an item
    wl_id = store.create_watchlist("PvM Gear")
    store.add_item_to_watchlist(
        wl_id,
        WatchlistItem(item_id=4151, name="Abyssal whip", icon_url="https://example.com/4151.png"),
    )

    # Share it
    async with ShareApiClient() as client:
        share = await ShareService(client).create_share(store.export_watchlist(wl_id))
"""

from src.watchlist.config import (
    FailureReason,
    ItemSortKey,
    MAX_WATCHLISTS,
    MAX_ITEMS_PER_WATCHLIST,
    MIN_NAME_LENGTH,
    MAX_NAME_LENGTH,
    MAX_NOTE_LENGTH,
    DEFAULT_WATCHLIST_ID,
    DEFAULT_WATCHLIST_NAME,
    DEFAULT_SHARE_EXPIRY_LABEL,
    SCHEMA_VERSION,
    WatchlistConfig,
    DEFAULT_WATCHLIST_CONFIG,
)

from src.watchlist.models import (
    WatchlistItem,
    Watchlist,
    WatchlistShare,
    LegacyFavorite,
    WatchlistState,
    WatchlistExport,
)

from src.watchlist.exceptions import (
    WatchlistError,
    ShareApiError,
    ShareCancelledError,
    PersistenceError,
)

from src.watchlist.tokens import SHARE_TOKEN_PATTERN, is_valid_share_token
from src.watchlist.repository import (
    WatchlistRepository,
    InMemoryWatchlistRepository,
    JsonFileWatchlistRepository,
)
from src.watchlist.migration import (
    favorites_to_items,
    load_legacy_favorites,
    migrate_legacy_favorites,
)
from src.watchlist.store import WatchlistStore
from src.watchlist.exports import (
    WatchlistValidationResult,
    dump_watchlist_export,
    generate_export_filename,
    parse_watchlist_import,
)
from src.watchlist.sharing import (
    CancellationToken,
    ShareApiClient,
    ShareApiConfig,
    ShareService,
)


__all__ = [
    # Config
    "FailureReason",
    "ItemSortKey",
    "MAX_WATCHLISTS",
    "MAX_ITEMS_PER_WATCHLIST",
    "MIN_NAME_LENGTH",
    "MAX_NAME_LENGTH",
    "MAX_NOTE_LENGTH",
    "DEFAULT_WATCHLIST_ID",
    "DEFAULT_WATCHLIST_NAME",
    "DEFAULT_SHARE_EXPIRY_LABEL",
    "SCHEMA_VERSION",
    "WatchlistConfig",
    "DEFAULT_WATCHLIST_CONFIG",
    # Models
    "WatchlistItem",
    "Watchlist",
    "WatchlistShare",
    "LegacyFavorite",
    "WatchlistState",
    "WatchlistExport",
    # Errors
    "WatchlistError",
    "ShareApiError",
    "ShareCancelledError",
    "PersistenceError",
    # Tokens
    "SHARE_TOKEN_PATTERN",
    "is_valid_share_token",
    # Persistence
    "WatchlistRepository",
    "InMemoryWatchlistRepository",
    "JsonFileWatchlistRepository",
    # Migration
    "favorites_to_items",
    "load_legacy_favorites",
    "migrate_legacy_favorites",
    # Store
    "WatchlistStore",
    # Export / import
    "WatchlistValidationResult",
    "dump_watchlist_export",
    "generate_export_filename",
    "parse_watchlist_import",
    # Sharing
    "CancellationToken",
    "ShareApiClient",
    "ShareApiConfig",
    "ShareService",
]
