"""Watchlist Store.

Owns the collection of watchlists and every operation on it. Validation
failures return a sentinel (``None`` or ``False``) and record the reason
in ``last_failure``; they never raise. Each successful mutation is
written through to the injected repository.
"""

import copy
from datetime import datetime, timezone
from typing import Callable, Iterable, Mapping, Optional, Union
import logging
import uuid

from src.watchlist.config import (
    DEFAULT_WATCHLIST_CONFIG,
    SCHEMA_VERSION,
    FailureReason,
    WatchlistConfig,
)
from src.watchlist.exceptions import PersistenceError
from src.watchlist.migration import favorites_to_items
from src.watchlist.models import (
    LegacyFavorite,
    Watchlist,
    WatchlistItem,
    WatchlistState,
)
from src.watchlist.repository import InMemoryWatchlistRepository, WatchlistRepository

logger = logging.getLogger(__name__)


def _is_valid_item_id(item_id) -> bool:
    """Catalog ids are positive integers; anything else cannot be persisted."""
    return isinstance(item_id, int) and not isinstance(item_id, bool) and item_id > 0


def _utc_now_ms() -> datetime:
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond - now.microsecond % 1000)


class WatchlistStore:
    """Manages watchlists and their items.

    One store per user session. All operations are synchronous and meant
    to be called from a single thread.

    Example:
        store = WatchlistStore(JsonFileWatchlistRepository("watchlists.json"))

        wl_id = store.create_watchlist("PvM Gear")
        store.add_item_to_watchlist(wl_id, WatchlistItem(item_id=4151, name="Abyssal whip"))
        store.move_item_between_watchlists(wl_id, store.default_watchlist_id, 4151)
    """

    def __init__(
        self,
        repository: Optional[WatchlistRepository] = None,
        config: Optional[WatchlistConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.config = config or DEFAULT_WATCHLIST_CONFIG
        self._repository = repository or InMemoryWatchlistRepository()
        self._clock = clock or _utc_now_ms
        self.last_failure: Optional[FailureReason] = None

        state = self._repository.load()
        if state is None:
            state = self._initial_state()
        else:
            self._repair_state(state)
        self._state = state

    # =========================================================================
    # Internals
    # =========================================================================

    def _now(self) -> datetime:
        return self._clock()

    def _new_default_watchlist(self) -> Watchlist:
        now = self._now()
        return Watchlist(
            watchlist_id=self.config.default_watchlist_id,
            name=self.config.default_watchlist_name,
            created_at=now,
            updated_at=now,
            is_default=True,
        )

    def _initial_state(self) -> WatchlistState:
        default = self._new_default_watchlist()
        return WatchlistState(
            watchlists={default.watchlist_id: default},
            active_watchlist_id=default.watchlist_id,
            migrated=False,
            schema_version=SCHEMA_VERSION,
        )

    def _repair_state(self, state: WatchlistState) -> None:
        """Make a loaded state satisfy the store invariants.

        Watchlists are keyed by their own ID, exactly one is the default,
        names are unique (case-insensitive), and the active ID exists.
        """
        if any(key != wl.watchlist_id for key, wl in state.watchlists.items()):
            logger.warning("Stored watchlist keys did not match their IDs; re-keyed")
            state.watchlists = {wl.watchlist_id: wl for wl in state.watchlists.values()}

        defaults = [wl for wl in state.watchlists.values() if wl.is_default]
        if not defaults:
            default = state.watchlists.get(self.config.default_watchlist_id)
            if default is None:
                default = self._new_default_watchlist()
                state.watchlists[default.watchlist_id] = default
                logger.warning("Stored state had no default watchlist; re-created it")
            default.is_default = True
        elif len(defaults) > 1:
            keep = state.watchlists.get(self.config.default_watchlist_id) or defaults[0]
            for wl in defaults:
                wl.is_default = wl is keep
            logger.warning("Stored state had %d default watchlists; kept %s", len(defaults), keep.watchlist_id)

        taken: set[str] = set()
        for wl in sorted(state.watchlists.values(), key=lambda w: not w.is_default):
            if wl.name.lower() in taken:
                renamed = self._unique_name(wl.name, taken)
                if renamed is not None:
                    logger.warning("Renamed duplicate watchlist %r to %r", wl.name, renamed)
                    wl.name = renamed
            taken.add(wl.name.lower())

        if state.active_watchlist_id not in state.watchlists:
            state.active_watchlist_id = self._default_id_for(state)
        state.schema_version = SCHEMA_VERSION

    @staticmethod
    def _default_id_for(state: WatchlistState) -> str:
        for wl in state.watchlists.values():
            if wl.is_default:
                return wl.watchlist_id
        raise LookupError("state has no default watchlist")

    def _fail(self, reason: FailureReason, message: str, *args) -> None:
        self.last_failure = reason
        logger.warning(message, *args)

    def _commit(self, message: str, *args) -> None:
        """Record success and write the whole state through."""
        self.last_failure = None
        logger.debug(message, *args)
        try:
            self._repository.save(self._state)
        except PersistenceError:
            logger.error("Failed to persist watchlists", exc_info=True)

    def _normalize_notes(self, notes: Optional[str]) -> Optional[str]:
        if notes is None:
            return None
        return notes.strip() or None

    # =========================================================================
    # Watchlist CRUD
    # =========================================================================

    @property
    def default_watchlist_id(self) -> str:
        return self._default_id_for(self._state)

    @property
    def active_watchlist_id(self) -> str:
        return self._state.active_watchlist_id

    @property
    def migrated(self) -> bool:
        return self._state.migrated

    def check_watchlist_name(
        self,
        name: str,
        exclude_id: Optional[str] = None,
    ) -> Optional[FailureReason]:
        """Validate a candidate watchlist name.

        Args:
            name: Candidate name (trimmed before checking).
            exclude_id: Watchlist whose own name should not count as a duplicate.

        Returns:
            None if the name is acceptable, otherwise the failure reason.
        """
        trimmed = name.strip()
        if not self.config.min_name_length <= len(trimmed) <= self.config.max_name_length:
            return FailureReason.INVALID_NAME_LENGTH

        lowered = trimmed.lower()
        for wl in self._state.watchlists.values():
            if wl.watchlist_id != exclude_id and wl.name.lower() == lowered:
                return FailureReason.DUPLICATE_NAME
        return None

    def create_watchlist(self, name: str) -> Optional[str]:
        """Create a new, empty watchlist.

        Args:
            name: Watchlist name. Surrounding whitespace is removed.

        Returns:
            The new watchlist ID, or None if the limit is reached, the name
            length is out of bounds, or the name is already taken.
        """
        if len(self._state.watchlists) >= self.config.max_watchlists:
            self._fail(FailureReason.WATCHLIST_LIMIT_EXCEEDED, "Maximum watchlist limit reached")
            return None

        reason = self.check_watchlist_name(name)
        if reason is not None:
            self._fail(reason, "Cannot create watchlist %r: %s", name, reason.value)
            return None

        now = self._now()
        watchlist = Watchlist(
            watchlist_id=str(uuid.uuid4()),
            name=name.strip(),
            created_at=now,
            updated_at=now,
            is_default=False,
        )
        self._state.watchlists[watchlist.watchlist_id] = watchlist
        self._commit("Created watchlist %s (%s)", watchlist.watchlist_id, watchlist.name)
        return watchlist.watchlist_id

    def get_watchlist(self, watchlist_id: str) -> Optional[Watchlist]:
        """Get watchlist by ID."""
        return self._state.watchlists.get(watchlist_id)

    def get_watchlist_by_name(self, name: str) -> Optional[Watchlist]:
        """Get watchlist by name (case-insensitive)."""
        lowered = name.strip().lower()
        for wl in self._state.watchlists.values():
            if wl.name.lower() == lowered:
                return wl
        return None

    def get_default_watchlist(self) -> Watchlist:
        """Get the default watchlist."""
        return self._state.watchlists[self.default_watchlist_id]

    def get_all_watchlists(self) -> list[Watchlist]:
        """Get all watchlists: default first, then newest first."""
        return sorted(
            self._state.watchlists.values(),
            key=lambda w: (not w.is_default, -w.created_at.timestamp()),
        )

    def get_watchlist_count(self) -> int:
        return len(self._state.watchlists)

    def rename_watchlist(self, watchlist_id: str, name: str) -> bool:
        """Rename a watchlist. The default watchlist cannot be renamed."""
        watchlist = self._state.watchlists.get(watchlist_id)
        if not watchlist:
            self._fail(FailureReason.UNKNOWN_ID, "Cannot rename unknown watchlist %s", watchlist_id)
            return False

        if watchlist.is_default:
            self._fail(FailureReason.CANNOT_MODIFY_DEFAULT, "Cannot rename default watchlist")
            return False

        reason = self.check_watchlist_name(name, exclude_id=watchlist_id)
        if reason is not None:
            self._fail(reason, "Cannot rename watchlist to %r: %s", name, reason.value)
            return False

        watchlist.name = name.strip()
        watchlist.updated_at = self._now()
        self._commit("Renamed watchlist %s to %s", watchlist_id, watchlist.name)
        return True

    def delete_watchlist(self, watchlist_id: str) -> bool:
        """Delete a watchlist. The default watchlist cannot be deleted."""
        watchlist = self._state.watchlists.get(watchlist_id)
        if not watchlist:
            self._fail(FailureReason.UNKNOWN_ID, "Cannot delete unknown watchlist %s", watchlist_id)
            return False

        if watchlist.is_default:
            self._fail(FailureReason.CANNOT_MODIFY_DEFAULT, "Cannot delete default watchlist")
            return False

        del self._state.watchlists[watchlist_id]
        if self._state.active_watchlist_id == watchlist_id:
            self._state.active_watchlist_id = self.default_watchlist_id
        self._commit("Deleted watchlist %s", watchlist_id)
        return True

    def set_active_watchlist(self, watchlist_id: str) -> bool:
        """Select the watchlist the UI shows. Unknown IDs are ignored."""
        if watchlist_id not in self._state.watchlists:
            self._fail(FailureReason.UNKNOWN_ID, "Cannot activate unknown watchlist %s", watchlist_id)
            return False

        self._state.active_watchlist_id = watchlist_id
        self._commit("Active watchlist is now %s", watchlist_id)
        return True

    def get_active_watchlist(self) -> Watchlist:
        return self._state.watchlists[self._state.active_watchlist_id]

    # =========================================================================
    # Item CRUD
    # =========================================================================

    def add_item_to_watchlist(self, watchlist_id: str, item: WatchlistItem) -> bool:
        """Add an item to a watchlist.

        The stored copy gets ``added_at`` set to now; whatever ``added_at``
        the caller passed is ignored.

        Returns:
            False if the watchlist is unknown, already holds the item, is
            full, or the item's notes are too long.
        """
        watchlist = self._state.watchlists.get(watchlist_id)
        if not watchlist:
            self._fail(FailureReason.UNKNOWN_ID, "Cannot add item to unknown watchlist %s", watchlist_id)
            return False

        if not _is_valid_item_id(item.item_id):
            self._fail(FailureReason.INVALID_ITEM_ID, "Invalid item id %r", item.item_id)
            return False

        if watchlist.has_item(item.item_id):
            self._fail(FailureReason.ITEM_ALREADY_PRESENT, "Item already in watchlist")
            return False

        if len(watchlist.items) >= self.config.max_items_per_watchlist:
            self._fail(FailureReason.ITEM_LIMIT_EXCEEDED, "Watchlist item limit reached")
            return False

        notes = self._normalize_notes(item.notes)
        if notes and len(notes) > self.config.max_note_length:
            self._fail(FailureReason.NOTE_TOO_LONG, "Item notes exceed %d characters", self.config.max_note_length)
            return False

        now = self._now()
        watchlist.items.append(WatchlistItem(
            item_id=item.item_id,
            name=item.name,
            icon_url=item.icon_url,
            added_at=now,
            notes=notes,
        ))
        watchlist.updated_at = now
        self._commit("Added item %s to watchlist %s", item.item_id, watchlist_id)
        return True

    def get_item(self, watchlist_id: str, item_id: int) -> Optional[WatchlistItem]:
        """Get an item from a watchlist."""
        watchlist = self._state.watchlists.get(watchlist_id)
        if watchlist:
            return watchlist.get_item(item_id)
        return None

    def remove_item_from_watchlist(self, watchlist_id: str, item_id: int) -> None:
        """Remove an item from a watchlist. No-op if either is absent."""
        watchlist = self._state.watchlists.get(watchlist_id)
        if not watchlist:
            return

        item = watchlist.get_item(item_id)
        if item:
            watchlist.items.remove(item)
            watchlist.updated_at = self._now()
            self._commit("Removed item %s from watchlist %s", item_id, watchlist_id)

    def move_item_between_watchlists(self, from_id: str, to_id: str, item_id: int) -> bool:
        """Move an item from one watchlist to another.

        Every check runs before anything changes, so a False return leaves
        both watchlists untouched. The moved item gets a fresh ``added_at``.
        """
        source = self._state.watchlists.get(from_id)
        target = self._state.watchlists.get(to_id)
        if not source or not target:
            self._fail(FailureReason.UNKNOWN_ID, "Cannot move item between %s and %s", from_id, to_id)
            return False

        if not _is_valid_item_id(item_id):
            self._fail(FailureReason.INVALID_ITEM_ID, "Invalid item id %r", item_id)
            return False

        item = source.get_item(item_id)
        if not item:
            self._fail(FailureReason.ITEM_NOT_FOUND, "Item %s not in watchlist %s", item_id, from_id)
            return False

        if target.has_item(item_id):
            self._fail(FailureReason.ITEM_ALREADY_PRESENT, "Item %s already in watchlist %s", item_id, to_id)
            return False

        if len(target.items) >= self.config.max_items_per_watchlist:
            self._fail(FailureReason.ITEM_LIMIT_EXCEEDED, "Watchlist item limit reached")
            return False

        now = self._now()
        source.items.remove(item)
        source.updated_at = now
        target.items.append(WatchlistItem(
            item_id=item.item_id,
            name=item.name,
            icon_url=item.icon_url,
            added_at=now,
            notes=item.notes,
        ))
        target.updated_at = now
        self._commit("Moved item %s from %s to %s", item_id, from_id, to_id)
        return True

    def is_item_in_watchlist(self, watchlist_id: str, item_id: int) -> bool:
        watchlist = self._state.watchlists.get(watchlist_id)
        return watchlist.has_item(item_id) if watchlist else False

    def get_item_watchlists(self, item_id: int) -> list[Watchlist]:
        """Find all watchlists containing an item."""
        return [wl for wl in self._state.watchlists.values() if wl.has_item(item_id)]

    def update_item_notes(self, watchlist_id: str, item_id: int, notes: str) -> bool:
        """Set an item's notes.

        Notes are trimmed; whitespace-only notes clear the field.

        Returns:
            False if the watchlist or item is unknown, or the trimmed notes
            are longer than ``max_note_length``.
        """
        watchlist = self._state.watchlists.get(watchlist_id)
        if not watchlist:
            self._fail(FailureReason.UNKNOWN_ID, "Cannot update notes in unknown watchlist %s", watchlist_id)
            return False

        item = watchlist.get_item(item_id)
        if not item:
            self._fail(FailureReason.ITEM_NOT_FOUND, "Item %s not in watchlist %s", item_id, watchlist_id)
            return False

        trimmed = notes.strip()
        if len(trimmed) > self.config.max_note_length:
            self._fail(FailureReason.NOTE_TOO_LONG, "Item notes exceed %d characters", self.config.max_note_length)
            return False

        item.notes = trimmed or None
        watchlist.updated_at = self._now()
        self._commit("Updated notes for item %s in %s", item_id, watchlist_id)
        return True

    # =========================================================================
    # Bulk Operations
    # =========================================================================

    def clear_watchlist(self, watchlist_id: str) -> None:
        """Remove every item from a watchlist. No-op for unknown IDs."""
        watchlist = self._state.watchlists.get(watchlist_id)
        if not watchlist:
            return

        watchlist.items.clear()
        watchlist.updated_at = self._now()
        self._commit("Cleared watchlist %s", watchlist_id)

    def export_watchlist(self, watchlist_id: str) -> Optional[Watchlist]:
        """Snapshot one watchlist for download or sharing."""
        watchlist = self._state.watchlists.get(watchlist_id)
        return watchlist.snapshot() if watchlist else None

    def export_all_watchlists(self) -> list[Watchlist]:
        """Snapshot every watchlist, in storage order."""
        return [wl.snapshot() for wl in self._state.watchlists.values()]

    def _unique_name(self, name: str, taken: set[str]) -> Optional[str]:
        """First of ``name``, ``name (2)``, ``name (3)``... not in ``taken`` (lower-cased).

        Returns None when no candidate fits the name length limits.
        """
        low, high = self.config.min_name_length, self.config.max_name_length
        base = name.strip()[:high].rstrip()
        if low <= len(base) <= high and base.lower() not in taken:
            return base

        for n in range(2, len(taken) + 3):
            suffix = f" ({n})"
            stem = base[: high - len(suffix)].rstrip() if high > len(suffix) else ""
            if not stem:
                return None
            candidate = stem + suffix
            if candidate.lower() not in taken:
                return candidate
        return None

    def _unique_import_name(self, name: str) -> Optional[str]:
        taken = {wl.name.lower() for wl in self._state.watchlists.values()}
        return self._unique_name(name.strip() or "Imported Watchlist", taken)

    def import_watchlist(self, watchlist: Watchlist) -> Optional[str]:
        """Add a copy of an external watchlist.

        The copy always gets a new ID, ``is_default=False``, and fresh
        timestamps. Items keep their original ``added_at``. A name that
        collides with an existing watchlist gets a numeric suffix.

        Returns:
            The new watchlist ID, or None if the watchlist limit is reached or
            no unique name fits within the name length limits.
        """
        if len(self._state.watchlists) >= self.config.max_watchlists:
            self._fail(FailureReason.WATCHLIST_LIMIT_EXCEEDED, "Maximum watchlist limit reached")
            return None

        name = self._unique_import_name(watchlist.name)
        if name is None:
            self._fail(FailureReason.INVALID_NAME_LENGTH, "No unique name fits for imported watchlist %r", watchlist.name)
            return None

        items: list[WatchlistItem] = []
        seen: set[int] = set()
        for item in watchlist.items:
            if not _is_valid_item_id(item.item_id):
                logger.warning("Skipping imported item with invalid item id %r", item.item_id)
                continue
            if item.item_id in seen:
                continue
            if len(items) >= self.config.max_items_per_watchlist:
                logger.warning(
                    "Import of %r truncated to %d items",
                    watchlist.name, self.config.max_items_per_watchlist,
                )
                break
            seen.add(item.item_id)
            imported = copy.deepcopy(item)
            if imported.notes and len(imported.notes) > self.config.max_note_length:
                imported.notes = imported.notes[: self.config.max_note_length]
            items.append(imported)

        now = self._now()
        imported_watchlist = Watchlist(
            watchlist_id=str(uuid.uuid4()),
            name=name,
            items=items,
            created_at=now,
            updated_at=now,
            is_default=False,
        )
        self._state.watchlists[imported_watchlist.watchlist_id] = imported_watchlist
        self._commit(
            "Imported watchlist %s as %s (%d items)",
            watchlist.watchlist_id, imported_watchlist.watchlist_id, len(items),
        )
        return imported_watchlist.watchlist_id

    # =========================================================================
    # Migration
    # =========================================================================

    def migrate_from_favorites(
        self,
        favorites: Union[Mapping[int, LegacyFavorite], Iterable[LegacyFavorite]],
    ) -> None:
        """Move legacy favorites into the default watchlist, once.

        Runs at most once per store: the ``migrated`` flag is set even when
        there is nothing to migrate, so a fresh install never re-runs it.
        Items already in the default watchlist are skipped, and appending
        stops when the watchlist is full.
        """
        if self._state.migrated:
            return

        default = self.get_default_watchlist()
        added = 0
        for item in favorites_to_items(favorites):
            if not _is_valid_item_id(item.item_id):
                logger.warning("Skipping favorite with invalid item id %r", item.item_id)
                continue
            if default.has_item(item.item_id):
                continue
            if len(default.items) >= self.config.max_items_per_watchlist:
                logger.warning("Default watchlist full; remaining favorites not migrated")
                break
            default.items.append(item)
            added += 1

        if added:
            default.updated_at = self._now()
            logger.info("Migrated %d favorites to default watchlist", added)

        self._state.migrated = True
        self._commit("Marked favorites migration complete")
