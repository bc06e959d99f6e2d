"""Tests for settings and the command line entry point."""

import json
import logging
from pathlib import Path

import pytest

import main
from src.logging_config import LogFormat, LogLevel
from src.settings import Settings, get_settings
from src.watchlist import DEFAULT_WATCHLIST_ID, JsonFileWatchlistRepository


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def settings(tmp_path):
    return Settings(data_dir=tmp_path, log_level=LogLevel.ERROR)


def _state(settings):
    return JsonFileWatchlistRepository(settings.state_path).load()


# =============================================================================
# Test Settings
# =============================================================================

class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self):
        s = Settings()
        assert s.api_base_url == "http://localhost:8080/api/v1"
        assert s.state_path == Path("data") / "watchlists.json"
        assert s.legacy_favorites_path == Path("data") / "favorites.json"
        assert s.log_format == LogFormat.CONSOLE

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("PRICEWATCH_API_BASE_URL", "https://ge.example/api/v1")
        monkeypatch.setenv("PRICEWATCH_MAX_NOTE_LENGTH", "200")
        monkeypatch.setenv("PRICEWATCH_LOG_LEVEL", "DEBUG")

        s = get_settings()

        assert s.share_api_config().base_url == "https://ge.example/api/v1"
        assert s.watchlist_config().max_note_length == 200
        assert s.logging_config().level == LogLevel.DEBUG

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()


# =============================================================================
# Test CLI
# =============================================================================

class TestCli:
    """Tests for main.py sub-commands."""

    def test_create_and_list(self, settings, capsys):
        assert main.main(["create", "PvM Gear"], settings=settings) == 0
        wl_id = capsys.readouterr().out.strip()

        assert main.main(["list"], settings=settings) == 0
        out = capsys.readouterr().out
        assert "Favorites (default)" in out
        assert "PvM Gear" in out
        assert wl_id in _state(settings).watchlists

    def test_create_duplicate_fails(self, settings, capsys):
        main.main(["create", "PvM Gear"], settings=settings)
        assert main.main(["create", "pvm gear"], settings=settings) == 1
        assert "duplicate name" in capsys.readouterr().err

    def test_add_move_and_notes(self, settings, capsys):
        main.main(["create", "PvM Gear"], settings=settings)
        wl_id = capsys.readouterr().out.strip()

        assert main.main(["add", wl_id, "4151", "Abyssal whip", "--notes", "flip"], settings=settings) == 0
        assert main.main(["move", wl_id, DEFAULT_WATCHLIST_ID, "4151"], settings=settings) == 0
        assert main.main(["notes", DEFAULT_WATCHLIST_ID, "4151", "hold"], settings=settings) == 0

        state = _state(settings)
        assert state.watchlists[wl_id].items == []
        assert state.watchlists[DEFAULT_WATCHLIST_ID].items[0].notes == "hold"

    def test_delete_default_fails(self, settings, capsys):
        assert main.main(["delete", DEFAULT_WATCHLIST_ID], settings=settings) == 1
        assert "cannot modify default" in capsys.readouterr().err

    def test_export_then_import(self, settings, tmp_path, capsys):
        main.main(["create", "PvM Gear"], settings=settings)
        wl_id = capsys.readouterr().out.strip()
        main.main(["add", wl_id, "4151", "Abyssal whip"], settings=settings)

        out_file = tmp_path / "backup.json"
        assert main.main(["export", wl_id, "-o", str(out_file)], settings=settings) == 0
        assert json.loads(out_file.read_text())["version"] == "1.0.0"

        assert main.main(["import", str(out_file)], settings=settings) == 0
        assert "PvM Gear (2)" in capsys.readouterr().out
        assert len(_state(settings).watchlists) == 3

    def test_import_invalid_file(self, settings, tmp_path, capsys):
        bad = tmp_path / "bad.json"
        bad.write_text("{}")
        assert main.main(["import", str(bad)], settings=settings) == 1
        assert "Invalid export format" in capsys.readouterr().err

    def test_retrieve_rejects_bad_token_without_network(self, settings, capsys, monkeypatch):
        def no_network(*args, **kwargs):
            raise AssertionError("network call attempted")

        monkeypatch.setattr(main, "ShareApiClient", no_network)

        assert main.main(["retrieve", "Not-A-Token"], settings=settings) == 1
        assert "swift-golden-dragon" in capsys.readouterr().err

    def test_share_unknown_watchlist(self, settings, capsys):
        assert main.main(["share", "nope"], settings=settings) == 1
        assert "No watchlist nope" in capsys.readouterr().err

    def test_startup_migrates_legacy_favorites(self, settings, capsys):
        settings.legacy_favorites_path.write_text(json.dumps({"state": {"favorites": {
            "453": {"itemId": 453, "name": "Coal", "iconUrl": "", "addedAt": 1700000000000},
        }}}))

        assert main.main(["show"], settings=settings) == 0
        assert "Coal" in capsys.readouterr().out
        assert _state(settings).migrated
