"""Tests for the key-value persistence slots."""
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
import requests

from pkg.taskboard.slots import (
    FileSlot,
    HttpSlot,
    MemorySlot,
    SlotError,
    SqliteSlot,
    build_slot,
)
from pkg.taskboard.store import BoardStore


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Local slots
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestMemorySlot:

    def test_get_missing(self):
        assert MemorySlot().get("board") is None

    def test_set_then_get(self):
        slot = MemorySlot()
        slot.set("board", "{}")
        assert slot.get("board") == "{}"


class TestFileSlot:

    def test_missing_file_is_none(self, tmp_path):
        assert FileSlot(str(tmp_path)).get("board") is None

    def test_writes_utf8_json_file(self, tmp_path):
        slot = FileSlot(str(tmp_path / "nested"))
        slot.set("board", '{"title": "Café"}')
        path = tmp_path / "nested" / "board.json"
        assert path.read_text(encoding="utf-8") == '{"title": "Café"}'
        assert slot.get("board") == '{"title": "Café"}'

    def test_overwrite_leaves_no_temp_files(self, tmp_path):
        slot = FileSlot(str(tmp_path))
        slot.set("board", "one")
        slot.set("board", "two")
        assert slot.get("board") == "two"
        assert [p.name for p in tmp_path.iterdir()] == ["board.json"]

    def test_failed_replace_removes_temp_file(self, tmp_path):
        slot = FileSlot(str(tmp_path))
        with patch("pkg.taskboard.slots.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(SlotError):
                slot.set("board", "one")
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.parametrize("key", ["", "../escape", "a/b", ".hidden"])
    def test_bad_keys_rejected(self, tmp_path, key):
        with pytest.raises(SlotError):
            FileSlot(str(tmp_path)).get(key)


class TestSqliteSlot:

    def test_round_trip(self, tmp_path):
        slot = SqliteSlot(str(tmp_path / "board.db"))
        assert slot.get("board") is None
        slot.set("board", "first")
        slot.set("board", "second")
        assert slot.get("board") == "second"

    def test_survives_reopen(self, tmp_path):
        db = str(tmp_path / "board.db")
        SqliteSlot(db).set("board", "kept")
        assert SqliteSlot(db).get("board") == "kept"

    def test_store_on_sqlite(self, tmp_path):
        db = str(tmp_path / "board.db")
        store = BoardStore(SqliteSlot(db))
        card = store.create_card("todo")
        reloaded = BoardStore(SqliteSlot(db))
        assert reloaded.get_card(card.id) is not None


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# HTTP slot
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def _response(status, text=""):
    r = MagicMock()
    r.status_code = status
    r.ok = 200 <= status < 300
    r.text = text
    return r


class TestHttpSlot:

    def test_get(self):
        with patch("pkg.taskboard.slots.requests.get", return_value=_response(200, "{}")) as get:
            assert HttpSlot("http://board.local/api/slots/").get("board") == "{}"
        assert get.call_args[0][0] == "http://board.local/api/slots/board"

    def test_get_404_is_none(self):
        with patch("pkg.taskboard.slots.requests.get", return_value=_response(404)):
            assert HttpSlot("http://board.local").get("board") is None

    def test_get_server_error(self):
        with patch("pkg.taskboard.slots.requests.get", return_value=_response(500)):
            with pytest.raises(SlotError):
                HttpSlot("http://board.local").get("board")

    def test_connection_error(self):
        with patch("pkg.taskboard.slots.requests.get", side_effect=requests.ConnectionError("down")):
            with pytest.raises(SlotError):
                HttpSlot("http://board.local").get("board")

    def test_put_sends_key_header(self):
        with patch("pkg.taskboard.slots.requests.put", return_value=_response(200)) as put:
            HttpSlot("http://board.local", api_key="s3cret").set("board", "Café")
        kwargs = put.call_args[1]
        assert kwargs["data"] == "Café".encode("utf-8")
        assert kwargs["headers"]["X-API-Key"] == "s3cret"

    def test_put_failure(self):
        with patch("pkg.taskboard.slots.requests.put", return_value=_response(403)):
            with pytest.raises(SlotError):
                HttpSlot("http://board.local").set("board", "x")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# build_slot
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def _cfg(**kwargs):
    defaults = dict(storage_backend="memory", storage_path="", http_url=None,
                    http_timeout=2.0, api_secret="")
    defaults.update(kwargs)
    return SimpleNamespace(**defaults)


def test_build_slot_backends(tmp_path):
    assert isinstance(build_slot(_cfg()), MemorySlot)
    assert isinstance(build_slot(_cfg(storage_backend="file", storage_path=str(tmp_path))), FileSlot)
    assert isinstance(
        build_slot(_cfg(storage_backend="sqlite", storage_path=str(tmp_path / "b.db"))), SqliteSlot
    )
    assert isinstance(build_slot(_cfg(storage_backend="http", http_url="http://x")), HttpSlot)


def test_build_slot_rejects_bad_config():
    with pytest.raises(ValueError):
        build_slot(_cfg(storage_backend="http"))
    with pytest.raises(ValueError):
        build_slot(_cfg(storage_backend="floppy"))
