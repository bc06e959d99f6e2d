"""Watchlist wire and storage schemas.

Pydantic models for everything that crosses a boundary: the persisted
store record, legacy favorites, export documents, and share-server
responses. Domain code works with the dataclasses in ``models``; these
schemas validate and convert at the edges.

Watchlist timestamps are stored as epoch milliseconds so files stay
compatible with exports from the legacy app. Share expiry arrives as an
ISO-8601 string (epoch numbers are accepted too).
"""

from datetime import datetime, timezone
from typing import Annotated, Any, Optional

from pydantic import (
    AfterValidator,
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
)
from pydantic.alias_generators import to_camel

from src.watchlist.config import EXPORT_FORMAT_VERSION, EXPORT_SOURCE, SCHEMA_VERSION
from src.watchlist.models import (
    LegacyFavorite,
    Watchlist,
    WatchlistExport,
    WatchlistItem,
    WatchlistState,
)


def _ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_epoch_ms(value: datetime) -> int:
    return round(value.timestamp() * 1000)


# Parses ISO strings or epoch seconds/milliseconds; always yields aware UTC.
UtcDatetime = Annotated[datetime, AfterValidator(_ensure_utc)]

# Same parsing, serialized back as epoch milliseconds.
EpochMillis = Annotated[
    datetime,
    AfterValidator(_ensure_utc),
    PlainSerializer(_to_epoch_ms, return_type=int),
]


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ─── Watchlists ──────────────────────────────────────────────────────────


class WatchlistItemSchema(_CamelModel):
    """Serialized watchlist item."""

    item_id: int = Field(gt=0)
    name: str
    icon_url: str = ""
    added_at: EpochMillis
    notes: Optional[str] = None

    @classmethod
    def from_model(cls, item: WatchlistItem) -> "WatchlistItemSchema":
        return cls(
            item_id=item.item_id,
            name=item.name,
            icon_url=item.icon_url,
            added_at=item.added_at,
            notes=item.notes,
        )

    def to_model(self) -> WatchlistItem:
        return WatchlistItem(
            item_id=self.item_id,
            name=self.name,
            icon_url=self.icon_url,
            added_at=self.added_at,
            notes=self.notes,
        )


class WatchlistSchema(_CamelModel):
    """Serialized watchlist."""

    watchlist_id: str = Field(alias="id", min_length=1)
    name: str = Field(min_length=1)
    items: list[WatchlistItemSchema] = Field(default_factory=list)
    created_at: EpochMillis
    updated_at: EpochMillis
    is_default: bool = False

    @classmethod
    def from_model(cls, watchlist: Watchlist) -> "WatchlistSchema":
        return cls(
            watchlist_id=watchlist.watchlist_id,
            name=watchlist.name,
            items=[WatchlistItemSchema.from_model(i) for i in watchlist.items],
            created_at=watchlist.created_at,
            updated_at=watchlist.updated_at,
            is_default=watchlist.is_default,
        )

    def to_model(self) -> Watchlist:
        return Watchlist(
            watchlist_id=self.watchlist_id,
            name=self.name,
            items=[i.to_model() for i in self.items],
            created_at=self.created_at,
            updated_at=self.updated_at,
            is_default=self.is_default,
        )


def watchlist_to_json(watchlist: Watchlist) -> dict[str, Any]:
    """Serialize a watchlist to its JSON wire/storage shape."""
    return WatchlistSchema.from_model(watchlist).to_json_dict()


def watchlist_from_json(data: Any) -> Watchlist:
    """Validate and convert a JSON watchlist. Raises pydantic.ValidationError."""
    return WatchlistSchema.model_validate(data).to_model()


# ─── Store State ─────────────────────────────────────────────────────────


class WatchlistStateSchema(_CamelModel):
    """The single persisted record of a store."""

    watchlists: dict[str, WatchlistSchema] = Field(default_factory=dict)
    active_watchlist_id: str
    migrated: bool = False
    schema_version: int = SCHEMA_VERSION

    @classmethod
    def from_model(cls, state: WatchlistState) -> "WatchlistStateSchema":
        return cls(
            watchlists={
                wl_id: WatchlistSchema.from_model(wl)
                for wl_id, wl in state.watchlists.items()
            },
            active_watchlist_id=state.active_watchlist_id,
            migrated=state.migrated,
            schema_version=state.schema_version,
        )

    def to_model(self) -> WatchlistState:
        return WatchlistState(
            watchlists={wl_id: wl.to_model() for wl_id, wl in self.watchlists.items()},
            active_watchlist_id=self.active_watchlist_id,
            migrated=self.migrated,
            schema_version=self.schema_version,
        )


# ─── Legacy Favorites ────────────────────────────────────────────────────


class LegacyFavoriteSchema(_CamelModel):
    """One record of the legacy favorites map."""

    item_id: int = Field(gt=0)
    name: str
    icon_url: str = ""
    added_at: EpochMillis

    def to_model(self) -> LegacyFavorite:
        return LegacyFavorite(
            item_id=self.item_id,
            name=self.name,
            icon_url=self.icon_url,
            added_at=self.added_at,
        )


class LegacyFavoritesSchema(_CamelModel):
    """Legacy durable record: ``{"favorites": {itemId: record}}``."""

    favorites: dict[str, LegacyFavoriteSchema] = Field(default_factory=dict)


# ─── Export Documents ────────────────────────────────────────────────────


class ExportMetadataSchema(_CamelModel):
    exported_at: str
    source: str


class WatchlistExportSchema(_CamelModel):
    """Export document envelope.

    ``watchlists`` is left unvalidated so each entry can be checked on its
    own and bad entries skipped.
    """

    version: str
    metadata: ExportMetadataSchema
    watchlists: list[Any]

    @classmethod
    def from_model(cls, export: WatchlistExport) -> "WatchlistExportSchema":
        return cls(
            version=export.version or EXPORT_FORMAT_VERSION,
            metadata=ExportMetadataSchema(
                exported_at=export.exported_at.isoformat(),
                source=export.source or EXPORT_SOURCE,
            ),
            watchlists=[watchlist_to_json(wl) for wl in export.watchlists],
        )


# ─── Share Server ────────────────────────────────────────────────────────


class ShareCreatedResponse(BaseModel):
    """Response body of ``POST /watchlists/share``."""

    model_config = ConfigDict(extra="ignore")

    token: str
    expires_at: UtcDatetime = Field(
        validation_alias=AliasChoices("expiresAt", "expires_at"),
    )


class ShareRetrievedResponse(BaseModel):
    """Response body of ``GET /watchlists/share/{token}``."""

    model_config = ConfigDict(extra="ignore")

    watchlist: WatchlistSchema = Field(
        validation_alias=AliasChoices("watchlist", "watchlist_data", "watchlistData"),
    )
    access_count: int = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices("accessCount", "access_count"),
    )
    expires_at: UtcDatetime = Field(
        validation_alias=AliasChoices("expiresAt", "expires_at"),
    )


class ApiErrorBody(BaseModel):
    """Error body returned by the share server. Every field is optional."""

    model_config = ConfigDict(extra="ignore")

    error: Optional[str] = None
    message: Optional[str] = None
    request_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("requestId", "request_id"),
    )
    details: Optional[dict[str, Any]] = None
