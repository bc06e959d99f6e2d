"""Legacy favorites migration.

Converts the old single-list "favorites" record into watchlist items
for the default watchlist. The store's ``migrate_from_favorites`` does
the one-shot bookkeeping; this module handles reading and converting
the legacy data.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Union

from pydantic import ValidationError

from src.watchlist.models import LegacyFavorite, WatchlistItem
from src.watchlist.schemas import LegacyFavoritesSchema

if TYPE_CHECKING:
    from src.watchlist.store import WatchlistStore

logger = logging.getLogger(__name__)


def favorites_to_items(
    favorites: Union[Mapping[Any, LegacyFavorite], Iterable[LegacyFavorite]],
) -> list[WatchlistItem]:
    """Convert legacy favorites 1:1 into watchlist items.

    Accepts either the legacy ``{item_id: favorite}`` mapping or any
    iterable of favorites. The original ``added_at`` is kept.
    """
    records = favorites.values() if isinstance(favorites, Mapping) else favorites
    return [
        WatchlistItem(
            item_id=fav.item_id,
            name=fav.name,
            icon_url=fav.icon_url,
            added_at=fav.added_at,
        )
        for fav in records
    ]


def parse_legacy_favorites(data: Any) -> list[LegacyFavorite]:
    """Validate a decoded legacy record.

    Both ``{"favorites": {...}}`` and the wrapped form the legacy app
    persisted, ``{"state": {"favorites": {...}}, "version": 0}``, are
    accepted.

    Raises:
        pydantic.ValidationError: The record does not have the legacy shape.
    """
    if isinstance(data, dict) and isinstance(data.get("state"), dict):
        data = data["state"]
    schema = LegacyFavoritesSchema.model_validate(data)
    return [fav.to_model() for fav in schema.favorites.values()]


def load_legacy_favorites(path: Union[str, Path]) -> list[LegacyFavorite]:
    """Read legacy favorites from a JSON file. Missing file means none."""
    path = Path(path)
    if not path.exists():
        return []
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    return parse_legacy_favorites(data)


def migrate_legacy_favorites(store: WatchlistStore, path: Union[str, Path]) -> bool:
    """Startup hook: migrate legacy favorites into ``store`` if needed.

    Returns:
        True if the store is migrated afterwards. A legacy file that cannot
        be read or parsed is logged and leaves the store unmigrated so a
        fixed file can be picked up on a later start.
    """
    if store.migrated:
        return True

    try:
        favorites = load_legacy_favorites(path)
    except (OSError, ValueError, ValidationError):
        logger.error("Failed to migrate favorites from %s", path, exc_info=True)
        return False

    store.migrate_from_favorites(favorites)
    return True
