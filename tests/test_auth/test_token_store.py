"""Tests for the encrypted token file."""

from __future__ import annotations

import base64
import json
import stat
import sys
from pathlib import Path

import pytest

from gitpulse.auth.cipher import CredentialCipher
from gitpulse.auth.token_store import TokenStore
from gitpulse.exceptions import ConfigError


class TestStoreAndLoad:
    def test_round_trip(self, token_store: TokenStore) -> None:
        token_store.store("gho_abc123")
        assert token_store.load() == "gho_abc123"

    def test_creates_parent_directories(self, token_store: TokenStore) -> None:
        assert not token_store.path.parent.exists()
        token_store.store("tok")
        assert token_store.path.is_file()

    def test_file_layout(self, token_store: TokenStore) -> None:
        token_store.store("gho_abc123")
        data = json.loads(token_store.path.read_text())
        assert set(data) == {"iv", "authTag", "encrypted"}
        assert len(base64.b64decode(data["iv"])) == 12
        assert len(base64.b64decode(data["authTag"])) == 16
        assert "gho_abc123" not in token_store.path.read_text()

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_file_permissions(self, token_store: TokenStore) -> None:
        token_store.store("tok")
        mode = stat.S_IMODE(token_store.path.stat().st_mode)
        assert mode == 0o600

    def test_overwrite_replaces_record(self, token_store: TokenStore) -> None:
        token_store.store("first")
        token_store.store("second")
        assert token_store.load() == "second"

    def test_no_temp_files_left(self, token_store: TokenStore) -> None:
        token_store.store("tok")
        assert [p.name for p in token_store.path.parent.iterdir()] == ["token.json"]

    def test_exists(self, token_store: TokenStore) -> None:
        assert token_store.exists() is False
        token_store.store("tok")
        assert token_store.exists() is True


class TestLoadErrors:
    def test_missing_file(self, token_store: TokenStore) -> None:
        with pytest.raises(ConfigError, match="No stored token"):
            token_store.load()

    def test_invalid_json(self, token_store: TokenStore) -> None:
        token_store.path.parent.mkdir(parents=True)
        token_store.path.write_text("{not json")
        with pytest.raises(ConfigError, match="not valid JSON"):
            token_store.load()

    def test_non_utf8_bytes(self, token_store: TokenStore) -> None:
        token_store.store("abc123")
        token_store.path.write_bytes(b'{"iv": "\xff\xfe"}')
        with pytest.raises(ConfigError, match="not valid JSON"):
            token_store.load()

    def test_missing_field(self, token_store: TokenStore) -> None:
        token_store.store("tok")
        data = json.loads(token_store.path.read_text())
        del data["authTag"]
        token_store.path.write_text(json.dumps(data))
        with pytest.raises(ConfigError, match="authTag"):
            token_store.load()

    def test_extra_field(self, token_store: TokenStore) -> None:
        token_store.store("tok")
        data = json.loads(token_store.path.read_text())
        data["token"] = "leaked"
        token_store.path.write_text(json.dumps(data))
        with pytest.raises(ConfigError, match="Malformed"):
            token_store.load()

    def test_non_string_field(self, token_store: TokenStore) -> None:
        token_store.path.parent.mkdir(parents=True)
        token_store.path.write_text(json.dumps({"iv": 1, "authTag": "a", "encrypted": "b"}))
        with pytest.raises(ConfigError, match="iv"):
            token_store.load()

    def test_not_an_object(self, token_store: TokenStore) -> None:
        token_store.path.parent.mkdir(parents=True)
        token_store.path.write_text("[]")
        with pytest.raises(ConfigError, match="Malformed"):
            token_store.load()

    def test_bad_base64(self, token_store: TokenStore) -> None:
        token_store.store("tok")
        data = json.loads(token_store.path.read_text())
        data["encrypted"] = "***"
        token_store.path.write_text(json.dumps(data))
        with pytest.raises(ConfigError, match="'encrypted' is not valid base64"):
            token_store.load()

    def test_tampered_ciphertext(self, token_store: TokenStore) -> None:
        token_store.store("gho_abc123")
        data = json.loads(token_store.path.read_text())
        raw = bytearray(base64.b64decode(data["encrypted"]))
        raw[0] ^= 0x01
        data["encrypted"] = base64.b64encode(bytes(raw)).decode()
        token_store.path.write_text(json.dumps(data))
        with pytest.raises(ConfigError, match="Cannot decrypt"):
            token_store.load()

    def test_wrong_key(self, token_store: TokenStore, tmp_path: Path) -> None:
        token_store.store("gho_abc123")
        other = TokenStore(token_store.path, CredentialCipher(b"z" * 32))
        with pytest.raises(ConfigError, match="Cannot decrypt"):
            other.load()


class TestClear:
    def test_removes_file(self, token_store: TokenStore) -> None:
        token_store.store("tok")
        token_store.clear()
        assert not token_store.path.exists()

    def test_missing_is_noop(self, token_store: TokenStore) -> None:
        token_store.clear()
        assert not token_store.path.exists()
