"""Watchlist export and import documents.

Backup files hold one or more watchlists in a versioned envelope.
Imports are validated watchlist by watchlist: a bad entry is skipped
with a warning instead of rejecting the whole file.
"""

import copy
import json
import re
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Iterable, Optional, Union

from pydantic import ValidationError

from src.watchlist.config import (
    DEFAULT_WATCHLIST_CONFIG,
    EXPORT_SOURCE,
    ItemSortKey,
    WatchlistConfig,
)
from src.watchlist.models import Watchlist, WatchlistExport, WatchlistItem
from src.watchlist.schemas import WatchlistExportSchema, WatchlistSchema


@dataclass
class WatchlistValidationResult:
    """Outcome of validating an import document."""
    valid: bool = False
    watchlists: list[Watchlist] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


# =============================================================================
# Export
# =============================================================================

def format_watchlist_export(watchlists: Iterable[Watchlist]) -> WatchlistExport:
    """Wrap watchlists in an export envelope."""
    return WatchlistExport(watchlists=[wl.snapshot() for wl in watchlists])


def dump_watchlist_export(watchlists: Iterable[Watchlist]) -> str:
    """Serialize watchlists to an indented JSON export document."""
    export = format_watchlist_export(watchlists)
    return json.dumps(WatchlistExportSchema.from_model(export).model_dump(mode="json", by_alias=True), indent=2)


def generate_export_filename(
    watchlist_name: Optional[str] = None,
    today: Optional[date] = None,
) -> str:
    """Build a download filename like ``pricewatch-watchlist-pvm-gear-2026-10-18.json``."""
    today = today or datetime.now(timezone.utc).date()
    slug = ""
    if watchlist_name:
        slug = "-" + re.sub(r"\s+", "-", watchlist_name.strip().lower())
    return f"{EXPORT_SOURCE}-watchlist{slug}-{today.isoformat()}.json"


# =============================================================================
# Import
# =============================================================================

def _format_errors(exc: ValidationError) -> list[str]:
    return [
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
        for err in exc.errors()
    ]


def _limit_errors(watchlist: Watchlist, config: WatchlistConfig) -> list[str]:
    errors = []
    if not config.min_name_length <= len(watchlist.name.strip()) <= config.max_name_length:
        errors.append(
            f"name: must be {config.min_name_length}-{config.max_name_length} characters"
        )
    if len(watchlist.items) > config.max_items_per_watchlist:
        errors.append(f"items: at most {config.max_items_per_watchlist} items allowed")
    for i, item in enumerate(watchlist.items):
        if item.notes and len(item.notes) > config.max_note_length:
            errors.append(f"items.{i}.notes: at most {config.max_note_length} characters")
    return errors


def validate_watchlist_import(
    data: Any,
    config: Optional[WatchlistConfig] = None,
) -> WatchlistValidationResult:
    """Validate a decoded export document, keeping every valid watchlist."""
    config = config or DEFAULT_WATCHLIST_CONFIG
    try:
        envelope = WatchlistExportSchema.model_validate(data)
    except ValidationError:
        return WatchlistValidationResult(
            errors=["Invalid export format: missing required fields or invalid structure"],
        )

    result = WatchlistValidationResult()
    for i, raw in enumerate(envelope.watchlists):
        label = raw["name"] if isinstance(raw, dict) and isinstance(raw.get("name"), str) else f"#{i + 1}"
        try:
            watchlist = WatchlistSchema.model_validate(raw).to_model()
            errors = _limit_errors(watchlist, config)
        except ValidationError as exc:
            errors = _format_errors(exc)

        if errors:
            result.warnings.append(f'Watchlist "{label}" has validation errors and was skipped')
            result.errors.extend(f"Watchlist {label} - {e}" for e in errors)
        else:
            result.watchlists.append(watchlist)

    if not result.watchlists:
        result.errors.insert(0, "No valid watchlists found in import")
        return result

    result.valid = True
    return result


def parse_watchlist_import(
    text: Union[str, bytes],
    config: Optional[WatchlistConfig] = None,
) -> WatchlistValidationResult:
    """Parse and validate an export document from raw JSON text."""
    try:
        data = json.loads(text)
    except ValueError as exc:
        return WatchlistValidationResult(errors=[f"Invalid JSON: {exc}"])
    return validate_watchlist_import(data, config)


# =============================================================================
# Helpers
# =============================================================================

def get_total_item_count(watchlists: Iterable[Watchlist]) -> int:
    return sum(wl.item_count for wl in watchlists)


def get_unique_items(watchlists: Iterable[Watchlist]) -> list[WatchlistItem]:
    """Items across watchlists, first occurrence of each item ID wins."""
    seen: dict[int, WatchlistItem] = {}
    for wl in watchlists:
        for item in wl.items:
            seen.setdefault(item.item_id, item)
    return list(seen.values())


def sort_watchlist_items(
    items: Iterable[WatchlistItem],
    sort_by: Union[ItemSortKey, str],
) -> list[WatchlistItem]:
    """Sort items by name, newest ``added_at`` first, or item ID."""
    sort_by = ItemSortKey(sort_by)
    if sort_by == ItemSortKey.NAME:
        return sorted(items, key=lambda i: i.name.lower())
    if sort_by == ItemSortKey.ADDED_AT:
        return sorted(items, key=lambda i: i.added_at, reverse=True)
    return sorted(items, key=lambda i: i.item_id)


def search_watchlist_items(items: list[WatchlistItem], query: str) -> list[WatchlistItem]:
    """Case-insensitive match on item name or notes. Empty query returns everything."""
    query = query.strip().lower()
    if not query:
        return list(items)
    return [
        item for item in items
        if query in item.name.lower() or (item.notes and query in item.notes.lower())
    ]


def merge_watchlists(watchlists: Iterable[Watchlist], name: str) -> Watchlist:
    """Combine watchlists into a new, non-default one without duplicate items."""
    now = datetime.now(timezone.utc)
    return Watchlist(
        watchlist_id=str(uuid.uuid4()),
        name=name,
        items=copy.deepcopy(get_unique_items(watchlists)),
        created_at=now,
        updated_at=now,
        is_default=False,
    )


def duplicate_watchlist(watchlist: Watchlist, name: str) -> Watchlist:
    """Copy a watchlist under a new name and ID."""
    now = datetime.now(timezone.utc)
    return Watchlist(
        watchlist_id=str(uuid.uuid4()),
        name=name,
        items=copy.deepcopy(watchlist.items),
        created_at=now,
        updated_at=now,
        is_default=False,
    )


def format_item_count(count: int) -> str:
    if count == 0:
        return "No items"
    if count == 1:
        return "1 item"
    return f"{count} items"
