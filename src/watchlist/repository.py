"""Watchlist Persistence.

Repository interface the store writes through on every successful
mutation, with an in-memory implementation for tests and a JSON file
implementation for the CLI.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from src.watchlist.config import SCHEMA_VERSION
from src.watchlist.exceptions import PersistenceError
from src.watchlist.models import WatchlistState
from src.watchlist.schemas import WatchlistStateSchema

logger = logging.getLogger(__name__)


def dump_state(state: WatchlistState) -> str:
    """Serialize store state to a JSON document.

    Raises:
        PersistenceError: The state holds values the stored layout cannot represent.
    """
    try:
        schema = WatchlistStateSchema.from_model(state)
    except ValidationError as exc:
        raise PersistenceError(
            f"Cannot serialize watchlist state: {exc.error_count()} validation error(s)"
        ) from exc
    return json.dumps(schema.to_json_dict(), indent=2)


def load_state(text: str, path: Optional[str] = None) -> WatchlistState:
    """Parse a JSON document into store state.

    Raises:
        PersistenceError: The document is not valid JSON, does not match the
            state layout, or was written by a newer schema version.
    """
    try:
        schema = WatchlistStateSchema.model_validate_json(text)
    except ValidationError as exc:
        raise PersistenceError(
            f"Invalid watchlist state: {exc.error_count()} validation error(s)",
            path=path,
        ) from exc

    if schema.schema_version > SCHEMA_VERSION:
        raise PersistenceError(
            f"Unsupported schema version {schema.schema_version} "
            f"(max supported: {SCHEMA_VERSION})",
            path=path,
        )
    return schema.to_model()


class WatchlistRepository(ABC):
    """Durable storage for one store's state."""

    @abstractmethod
    def load(self) -> Optional[WatchlistState]:
        """Return the stored state, or None when nothing was saved yet."""

    @abstractmethod
    def save(self, state: WatchlistState) -> None:
        """Replace the stored state."""


class InMemoryWatchlistRepository(WatchlistRepository):
    """Keeps the serialized state in memory.

    State is stored as JSON text so later mutations of the store's
    objects never leak into what was "saved".
    """

    def __init__(self, initial: Optional[WatchlistState] = None) -> None:
        self._document: Optional[str] = dump_state(initial) if initial else None
        self.save_count = 0

    def load(self) -> Optional[WatchlistState]:
        if self._document is None:
            return None
        return load_state(self._document)

    def save(self, state: WatchlistState) -> None:
        self._document = dump_state(state)
        self.save_count += 1

    @property
    def document(self) -> Optional[str]:
        return self._document


class JsonFileWatchlistRepository(WatchlistRepository):
    """Stores state as a single JSON file.

    Writes go to a temporary file in the same directory which then
    replaces the target, so a crash mid-write never leaves a truncated
    document behind.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def load(self) -> Optional[WatchlistState]:
        if not self.path.exists():
            logger.debug("No watchlist state at %s", self.path)
            return None
        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise PersistenceError(f"Cannot read {self.path}: {exc}", path=str(self.path)) from exc
        state = load_state(text, path=str(self.path))
        logger.debug("Loaded %d watchlists from %s", len(state.watchlists), self.path)
        return state

    def save(self, state: WatchlistState) -> None:
        document = dump_state(state)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(document)
            os.replace(tmp_path, self.path)
        except OSError as exc:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise PersistenceError(f"Cannot write {self.path}: {exc}", path=str(self.path)) from exc
        logger.debug("Saved %d watchlists to %s", len(state.watchlists), self.path)
