"""CLI entry point: python main.py list | create "PvM Gear" | share <id> | ..."""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

from src.logging_config import configure_logging
from src.settings import Settings, get_settings
from src.watchlist import (
    DEFAULT_SHARE_EXPIRY_LABEL,
    JsonFileWatchlistRepository,
    ShareApiClient,
    ShareApiError,
    ShareService,
    Watchlist,
    WatchlistItem,
    WatchlistShare,
    WatchlistStore,
    dump_watchlist_export,
    generate_export_filename,
    is_valid_share_token,
    migrate_legacy_favorites,
    parse_watchlist_import,
)
from src.watchlist.exports import format_item_count


def build_store(settings: Settings) -> WatchlistStore:
    """Compose the store from settings and run the one-time favorites migration."""
    store = WatchlistStore(
        JsonFileWatchlistRepository(settings.state_path),
        config=settings.watchlist_config(),
    )
    migrate_legacy_favorites(store, settings.legacy_favorites_path)
    return store


def format_watchlist_table(watchlists: list[Watchlist], active_id: str) -> str:
    lines = [f"{'':2s}{'ID':38s} {'Name':30s} {'Items':>10s}", "-" * 82]
    for wl in watchlists:
        marker = "*" if wl.watchlist_id == active_id else " "
        name = f"{wl.name} (default)" if wl.is_default else wl.name
        lines.append(f"{marker} {wl.watchlist_id:38s} {name:30s} {format_item_count(wl.item_count):>10s}")
    return "\n".join(lines)


def format_watchlist(wl: Watchlist) -> str:
    lines = [f"{wl.name}  [{wl.watchlist_id}]", f"  {format_item_count(wl.item_count)}"]
    for item in wl.items:
        line = f"  {item.item_id:>8d}  {item.name:30s}  added {item.added_at:%Y-%m-%d %H:%M}"
        if item.notes:
            line += f"  - {item.notes}"
        lines.append(line)
    return "\n".join(lines)


def format_share(share: WatchlistShare) -> str:
    return "\n".join([
        f"Token:    {share.token}",
        f"Expires:  {share.expires_at:%Y-%m-%d %H:%M} UTC",
        f"Accessed: {share.access_count} times",
        "",
        format_watchlist(share.watchlist),
    ])


def _failed(store: WatchlistStore, action: str) -> int:
    reason = store.last_failure.value if store.last_failure else "unknown"
    print(f"Could not {action}: {reason.replace('_', ' ')}", file=sys.stderr)
    return 1


# =============================================================================
# Commands
# =============================================================================

def cmd_list(store: WatchlistStore, args: argparse.Namespace) -> int:
    print(format_watchlist_table(store.get_all_watchlists(), store.active_watchlist_id))
    return 0


def cmd_show(store: WatchlistStore, args: argparse.Namespace) -> int:
    wl = store.get_watchlist(args.watchlist_id or store.active_watchlist_id)
    if wl is None:
        print(f"No watchlist {args.watchlist_id}", file=sys.stderr)
        return 1
    print(format_watchlist(wl))
    return 0


def cmd_create(store: WatchlistStore, args: argparse.Namespace) -> int:
    wl_id = store.create_watchlist(args.name)
    if wl_id is None:
        return _failed(store, "create watchlist")
    print(wl_id)
    return 0


def cmd_rename(store: WatchlistStore, args: argparse.Namespace) -> int:
    if not store.rename_watchlist(args.watchlist_id, args.name):
        return _failed(store, "rename watchlist")
    return 0


def cmd_delete(store: WatchlistStore, args: argparse.Namespace) -> int:
    if not store.delete_watchlist(args.watchlist_id):
        return _failed(store, "delete watchlist")
    return 0


def cmd_activate(store: WatchlistStore, args: argparse.Namespace) -> int:
    if not store.set_active_watchlist(args.watchlist_id):
        return _failed(store, "activate watchlist")
    return 0


def cmd_add(store: WatchlistStore, args: argparse.Namespace) -> int:
    item = WatchlistItem(item_id=args.item_id, name=args.name, icon_url=args.icon_url, notes=args.notes)
    if not store.add_item_to_watchlist(args.watchlist_id, item):
        return _failed(store, "add item")
    return 0


def cmd_remove(store: WatchlistStore, args: argparse.Namespace) -> int:
    store.remove_item_from_watchlist(args.watchlist_id, args.item_id)
    return 0


def cmd_move(store: WatchlistStore, args: argparse.Namespace) -> int:
    if not store.move_item_between_watchlists(args.from_id, args.to_id, args.item_id):
        return _failed(store, "move item")
    return 0


def cmd_notes(store: WatchlistStore, args: argparse.Namespace) -> int:
    if not store.update_item_notes(args.watchlist_id, args.item_id, args.notes):
        return _failed(store, "update notes")
    return 0


def cmd_clear(store: WatchlistStore, args: argparse.Namespace) -> int:
    store.clear_watchlist(args.watchlist_id)
    return 0


def cmd_export(store: WatchlistStore, args: argparse.Namespace) -> int:
    if args.watchlist_id:
        wl = store.export_watchlist(args.watchlist_id)
        if wl is None:
            print(f"No watchlist {args.watchlist_id}", file=sys.stderr)
            return 1
        watchlists, name = [wl], wl.name
    else:
        watchlists, name = store.export_all_watchlists(), None

    out = Path(args.output or generate_export_filename(name))
    out.write_text(dump_watchlist_export(watchlists), encoding="utf-8")
    print(f"Exported {len(watchlists)} watchlist(s) to {out}")
    return 0


def cmd_import(store: WatchlistStore, args: argparse.Namespace) -> int:
    result = parse_watchlist_import(Path(args.file).read_text(encoding="utf-8"), store.config)
    for warning in result.warnings:
        print(f"Warning: {warning}", file=sys.stderr)
    if not result.valid:
        for error in result.errors:
            print(error, file=sys.stderr)
        return 1

    imported = 0
    for wl in result.watchlists:
        new_id = store.import_watchlist(wl)
        if new_id is None:
            return _failed(store, f"import {wl.name!r}")
        print(f"Imported {store.get_watchlist(new_id).name!r} as {new_id}")
        imported += 1
    print(f"Imported {imported} watchlist(s)")
    return 0


async def _create_share(settings: Settings, watchlist: Watchlist) -> WatchlistShare:
    async with ShareApiClient(settings.share_api_config()) as client:
        return await ShareService(client).create_share(watchlist)


async def _retrieve_share(settings: Settings, token: str) -> WatchlistShare:
    async with ShareApiClient(settings.share_api_config()) as client:
        return await ShareService(client).retrieve_share(token)


def cmd_share(store: WatchlistStore, args: argparse.Namespace, settings: Settings) -> int:
    wl = store.export_watchlist(args.watchlist_id)
    if wl is None:
        print(f"No watchlist {args.watchlist_id}", file=sys.stderr)
        return 1

    print(f"Creating share link (links usually expire after {DEFAULT_SHARE_EXPIRY_LABEL})...")
    try:
        share = asyncio.run(_create_share(settings, wl))
    except ShareApiError as exc:
        print(f"Share failed ({exc.status}): {exc.message}", file=sys.stderr)
        return 1
    print(format_share(share))
    return 0


def cmd_retrieve(store: WatchlistStore, args: argparse.Namespace, settings: Settings) -> int:
    token = args.token.strip()
    if not is_valid_share_token(token):
        print("Share token must look like: swift-golden-dragon", file=sys.stderr)
        return 1

    try:
        share = asyncio.run(_retrieve_share(settings, token))
    except ShareApiError as exc:
        print(f"Could not open share ({exc.status}): {exc.message}", file=sys.stderr)
        return 1
    print(format_share(share))

    if args.save:
        new_id = store.import_watchlist(share.watchlist)
        if new_id is None:
            return _failed(store, "save shared watchlist")
        print(f"\nSaved as {new_id}")
    return 0


# =============================================================================
# Entry Point
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="pricewatch - watchlist manager")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="List watchlists")

    p = sub.add_parser("show", help="Show a watchlist's items")
    p.add_argument("watchlist_id", nargs="?", default=None)

    p = sub.add_parser("create", help="Create a watchlist")
    p.add_argument("name")

    p = sub.add_parser("rename", help="Rename a watchlist")
    p.add_argument("watchlist_id")
    p.add_argument("name")

    p = sub.add_parser("delete", help="Delete a watchlist")
    p.add_argument("watchlist_id")

    p = sub.add_parser("activate", help="Set the active watchlist")
    p.add_argument("watchlist_id")

    p = sub.add_parser("add", help="Add an item to a watchlist")
    p.add_argument("watchlist_id")
    p.add_argument("item_id", type=int)
    p.add_argument("name")
    p.add_argument("--icon-url", default="")
    p.add_argument("--notes", default=None)

    p = sub.add_parser("remove", help="Remove an item from a watchlist")
    p.add_argument("watchlist_id")
    p.add_argument("item_id", type=int)

    p = sub.add_parser("move", help="Move an item between watchlists")
    p.add_argument("from_id")
    p.add_argument("to_id")
    p.add_argument("item_id", type=int)

    p = sub.add_parser("notes", help="Set an item's notes")
    p.add_argument("watchlist_id")
    p.add_argument("item_id", type=int)
    p.add_argument("notes")

    p = sub.add_parser("clear", help="Remove all items from a watchlist")
    p.add_argument("watchlist_id")

    p = sub.add_parser("export", help="Export watchlists to a JSON file")
    p.add_argument("watchlist_id", nargs="?", default=None)
    p.add_argument("--output", "-o", default=None)

    p = sub.add_parser("import", help="Import watchlists from a JSON export")
    p.add_argument("file")

    p = sub.add_parser("share", help="Create a share link for a watchlist")
    p.add_argument("watchlist_id")

    p = sub.add_parser("retrieve", help="Open a shared watchlist")
    p.add_argument("token")
    p.add_argument("--save", action="store_true", help="Import it as a new watchlist")

    return parser


COMMANDS = {
    "list": cmd_list,
    "show": cmd_show,
    "create": cmd_create,
    "rename": cmd_rename,
    "delete": cmd_delete,
    "activate": cmd_activate,
    "add": cmd_add,
    "remove": cmd_remove,
    "move": cmd_move,
    "notes": cmd_notes,
    "clear": cmd_clear,
    "export": cmd_export,
    "import": cmd_import,
}

REMOTE_COMMANDS = {
    "share": cmd_share,
    "retrieve": cmd_retrieve,
}


def main(argv: Optional[list[str]] = None, settings: Optional[Settings] = None) -> int:
    args = build_parser().parse_args(argv)
    if settings is None:
        settings = get_settings()
    configure_logging(settings.logging_config())

    store = build_store(settings)

    if args.command in REMOTE_COMMANDS:
        return REMOTE_COMMANDS[args.command](store, args, settings)
    return COMMANDS[args.command](store, args)


if __name__ == "__main__":
    sys.exit(main())
