"""
Persistence targets for the board document.

The store only needs get/set-by-key semantics, so every backend is a small
key-value slot holding one serialized document per key:

    MemorySlot  - in-process dict (tests, embedding)
    FileSlot    - one <key>.json file per key in a directory
    SqliteSlot  - system_state table in a SQLite database
    HttpSlot    - GET/PUT against a remote slot endpoint (see board_server.py)
"""
import logging
import os
import sqlite3
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

import requests

logger = logging.getLogger(__name__)


class SlotError(Exception):
    """Raised when a slot cannot be read or written."""
    pass


class KeyValueSlot:
    """Base class: get(key) -> str | None, set(key, value) -> None."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError


class MemorySlot(KeyValueSlot):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.values: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.values.get(key)

    def set(self, key: str, value: str) -> None:
        self.values[key] = value


class FileSlot(KeyValueSlot):
    """Stores each key as <directory>/<key>.json (UTF-8)."""

    def __init__(self, directory: str):
        self.directory = Path(directory).expanduser()

    def path_for(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise SlotError(f"Invalid slot key: {key!r}")
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise SlotError(f"Cannot read {path}: {e}") from e

    def set(self, key: str, value: str) -> None:
        path = self.path_for(key)
        tmp = None
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            # Write beside the target then rename, so readers never see half a file
            fd, tmp = tempfile.mkstemp(prefix=f".{key}.", suffix=".tmp", dir=self.directory)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp, path)
        except OSError as e:
            if tmp is not None and os.path.exists(tmp):
                os.unlink(tmp)
            raise SlotError(f"Cannot write {path}: {e}") from e


def _connect(db_path: str) -> sqlite3.Connection:
    """Open a connection in WAL mode."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode = WAL")
    return conn


class SqliteSlot(KeyValueSlot):
    """SQLite-backed slot (system_state table keyed by slot key)."""

    def __init__(self, db_path: Optional[str] = None):
        if db_path is None:
            db_path = str(Path.home() / ".local" / "share" / "taskboard" / "board.db")
        self.db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _init_schema(self):
        with _connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS system_state (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.commit()

    def get(self, key: str) -> Optional[str]:
        try:
            with _connect(self.db_path) as conn:
                row = conn.execute(
                    "SELECT value FROM system_state WHERE key = ? LIMIT 1", (key,)
                ).fetchone()
        except sqlite3.Error as e:
            raise SlotError(f"Cannot read slot {key}: {e}") from e
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        now = datetime.now(timezone.utc).isoformat()
        try:
            with _connect(self.db_path) as conn:
                conn.execute("""
                    INSERT INTO system_state (key, value, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at
                """, (key, value, now))
                conn.commit()
        except sqlite3.Error as e:
            raise SlotError(f"Cannot write slot {key}: {e}") from e


class HttpSlot(KeyValueSlot):
    """Remote slot: GET/PUT {base_url}/{key}, 404 meaning 'nothing stored'."""

    def __init__(self, base_url: str, timeout: float = 2.0, api_key: str = ""):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.api_key = api_key

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json; charset=utf-8"}
        if self.api_key:
            headers["X-API-Key"] = self.api_key
        return headers

    def get(self, key: str) -> Optional[str]:
        url = f"{self.base_url}/{key}"
        try:
            r = requests.get(url, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as e:
            raise SlotError(f"GET {url} failed: {e}") from e
        if r.status_code == 404:
            return None
        if not r.ok:
            raise SlotError(f"GET {url} returned {r.status_code}")
        r.encoding = "utf-8"
        return r.text

    def set(self, key: str, value: str) -> None:
        url = f"{self.base_url}/{key}"
        try:
            r = requests.put(
                url,
                data=value.encode("utf-8"),
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise SlotError(f"PUT {url} failed: {e}") from e
        if not r.ok:
            raise SlotError(f"PUT {url} returned {r.status_code}")


def build_slot(config) -> KeyValueSlot:
    """Pick a slot backend from a BoardConfig."""
    backend = config.storage_backend
    if backend == "memory":
        return MemorySlot()
    if backend == "file":
        return FileSlot(config.storage_path)
    if backend == "sqlite":
        return SqliteSlot(config.storage_path)
    if backend == "http":
        if not config.http_url:
            raise ValueError("storage_backend 'http' needs http_url")
        return HttpSlot(config.http_url, timeout=config.http_timeout, api_key=config.api_secret)
    raise ValueError(f"Unknown storage_backend: {backend}")
