"""Tests for the token file, expiry detection and silent refresh."""

from __future__ import annotations

import json
import os
import stat
from unittest.mock import patch

import pytest

from memberstack_cli.auth.token_store import (
    EXPIRY_BUFFER_SECONDS,
    TokenStore,
    parse_app_id,
)
from memberstack_cli.exceptions import TokenRefreshError
from memberstack_cli.models import Settings, TokenSet


def _token_set(**overrides) -> TokenSet:
    data = {"access_token": "at1", "refresh_token": "rt1", "expires_in": 3600}
    data.update(overrides)
    return TokenSet(**data)


# ---------------------------------------------------------------------------
# App ID decoding
# ---------------------------------------------------------------------------


class TestParseAppId:
    def test_reads_claim(self, make_jwt) -> None:
        assert parse_app_id(make_jwt({"appId": "app_123", "sub": "u1"})) == "app_123"

    def test_missing_claim(self, make_jwt) -> None:
        assert parse_app_id(make_jwt({"sub": "u1"})) is None

    def test_non_string_claim(self, make_jwt) -> None:
        assert parse_app_id(make_jwt({"appId": 42})) is None

    def test_opaque_token(self) -> None:
        assert parse_app_id("opaque-token") is None

    def test_garbage_segment(self) -> None:
        assert parse_app_id("aaa.!!!not-base64!!!.ccc") is None

    def test_non_json_segment(self) -> None:
        assert parse_app_id("aaa.bm90IGpzb24.ccc") is None


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


class TestPersistence:
    def test_load_returns_none_when_no_file(self, store: TokenStore) -> None:
        assert store.load() is None

    def test_save_and_load(self, store: TokenStore, clock, make_jwt) -> None:
        token = make_jwt({"appId": "app_1"})
        saved = store.save(_token_set(access_token=token), client_id="c1")

        loaded = store.load()
        assert loaded == saved
        assert loaded.access_token == token
        assert loaded.refresh_token == "rt1"
        assert loaded.client_id == "c1"
        assert loaded.app_id == "app_1"
        assert loaded.expires_at == int(clock.now) + 3600

    def test_absent_fields_are_omitted(self, store: TokenStore) -> None:
        store.save(_token_set(refresh_token=None), client_id="c1")
        data = json.loads(store.path.read_text())
        assert "refresh_token" not in data
        assert "app_id" not in data
        assert set(data) == {"access_token", "expires_at", "client_id"}

    def test_file_permissions(self, store: TokenStore) -> None:
        store.save(_token_set(), client_id="c1")
        assert stat.S_IMODE(os.stat(store.path).st_mode) == 0o600
        assert stat.S_IMODE(os.stat(store.path.parent).st_mode) == 0o700

    def test_existing_directory_is_tightened(self, store: TokenStore) -> None:
        store.path.parent.mkdir(parents=True, mode=0o755)
        os.chmod(store.path.parent, 0o755)
        store.save(_token_set(), client_id="c1")
        assert stat.S_IMODE(os.stat(store.path.parent).st_mode) == 0o700

    def test_overwrite(self, store: TokenStore) -> None:
        store.save(_token_set(), client_id="c1")
        store.save(_token_set(access_token="at2"), client_id="c2")
        loaded = store.load()
        assert loaded.access_token == "at2"
        assert loaded.client_id == "c2"

    def test_no_temp_files_left(self, store: TokenStore) -> None:
        store.save(_token_set(), client_id="c1")
        assert [p.name for p in store.path.parent.iterdir()] == ["auth.json"]

    def test_corrupted_file_returns_none(self, store: TokenStore) -> None:
        store.path.parent.mkdir(parents=True)
        store.path.write_text("{not json")
        assert store.load() is None

    def test_undecodable_file_returns_none(self, store: TokenStore) -> None:
        store.path.parent.mkdir(parents=True)
        store.path.write_bytes(b"\xff\xfe{not utf8\x80")
        assert store.load() is None
        assert store.get_valid_access_token() is None
        assert store.get_app_id() is None

    def test_invalid_record_returns_none(self, store: TokenStore) -> None:
        store.path.parent.mkdir(parents=True)
        store.path.write_text(json.dumps({"access_token": "at1"}))
        assert store.load() is None

    def test_clear(self, store: TokenStore) -> None:
        store.save(_token_set(), client_id="c1")
        assert store.clear() is True
        assert not store.path.exists()
        assert store.load() is None

    def test_clear_is_idempotent(self, store: TokenStore) -> None:
        assert store.clear() is False
        assert store.clear() is False

    def test_get_app_id(self, store: TokenStore, make_jwt) -> None:
        assert store.get_app_id() is None
        store.save(_token_set(access_token=make_jwt({"appId": "app_9"})), client_id="c1")
        assert store.get_app_id() == "app_9"


# ---------------------------------------------------------------------------
# Access token lifecycle
# ---------------------------------------------------------------------------


class TestGetValidAccessToken:
    def test_none_when_nothing_stored(self, store: TokenStore) -> None:
        assert store.get_valid_access_token() is None

    def test_returns_stored_token_outside_buffer(self, store: TokenStore) -> None:
        store.save(_token_set(expires_in=3600), client_id="c1")
        with patch("memberstack_cli.auth.token_store.refresh_access_token") as mock_refresh:
            assert store.get_valid_access_token() == "at1"
        mock_refresh.assert_not_called()

    def test_buffer_boundary(self, store: TokenStore, clock) -> None:
        store.save(_token_set(expires_in=3600), client_id="c1")
        clock.advance(3600 - EXPIRY_BUFFER_SECONDS - 1)
        assert store.is_usable(store.load())
        clock.advance(1)
        assert not store.is_usable(store.load())

    def test_expired_without_refresh_token(self, store: TokenStore, clock) -> None:
        store.save(_token_set(refresh_token=None, expires_in=30), client_id="c1")
        with patch("memberstack_cli.auth.token_store.refresh_access_token") as mock_refresh:
            assert store.get_valid_access_token() is None
        mock_refresh.assert_not_called()

    def test_refreshes_near_expiry(self, store: TokenStore, settings: Settings, clock) -> None:
        store.save(_token_set(expires_in=3600), client_id="c1")
        clock.advance(3590)

        with patch("memberstack_cli.auth.token_store.refresh_access_token") as mock_refresh:
            mock_refresh.return_value = _token_set(access_token="at2", refresh_token="rt2")
            assert store.get_valid_access_token() == "at2"

        mock_refresh.assert_called_once_with(settings, "c1", "rt1")
        stored = store.load()
        assert stored.access_token == "at2"
        assert stored.refresh_token == "rt2"
        assert stored.client_id == "c1"
        assert stored.expires_at == int(clock.now) + 3600

    def test_refresh_without_rotation_drops_refresh_token(self, store: TokenStore, clock) -> None:
        store.save(_token_set(expires_in=10), client_id="c1")
        with patch("memberstack_cli.auth.token_store.refresh_access_token") as mock_refresh:
            mock_refresh.return_value = _token_set(access_token="at2", refresh_token=None)
            assert store.get_valid_access_token() == "at2"
        assert store.load().refresh_token is None

    def test_refresh_failure_returns_none(self, store: TokenStore) -> None:
        store.save(_token_set(expires_in=10), client_id="c1")
        with patch("memberstack_cli.auth.token_store.refresh_access_token") as mock_refresh:
            mock_refresh.side_effect = TokenRefreshError("Token refresh failed: 400", status_code=400)
            assert store.get_valid_access_token() is None
        # The stale record is left for a later login to replace.
        assert store.load().access_token == "at1"


@pytest.mark.parametrize("remaining,usable", [(61, True), (60, False), (0, False), (-5, False)])
def test_is_usable_buffer(store: TokenStore, clock, remaining: int, usable: bool) -> None:
    store.save(_token_set(expires_in=remaining), client_id="c1")
    assert store.is_usable(store.load()) is usable
