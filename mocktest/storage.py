"""
Key-value blob persistence.

Each logical store (questions, results, analytics) is one JSON blob written wholesale
under a fixed key. Reads fall back to a default on missing or corrupt data; writes are
best effort and report failure with a boolean instead of raising.
"""
import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from supabase import create_client

from mocktest.config import Settings
from mocktest.errors import PersistenceError

logger = logging.getLogger(__name__)

QUESTIONS_KEY = "mockTestQuestions"
RESULTS_KEY = "mockTestResults"
ANALYTICS_KEY = "mockTestAnalytics"

SCHEMA_SQL = """
-- Serialized state blobs (one row per logical store)
CREATE TABLE IF NOT EXISTS {table} (
    key VARCHAR(100) PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TIMESTAMPTZ DEFAULT NOW()
);
"""


class BlobStore:
    """read/write/delete of whole serialized blobs. Implementations raise PersistenceError."""

    def read(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def write(self, key: str, blob: str):
        raise NotImplementedError

    def delete(self, key: str):
        raise NotImplementedError


class MemoryBlobStore(BlobStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.blobs: Dict[str, str] = dict(initial or {})

    def read(self, key):
        return self.blobs.get(key)

    def write(self, key, blob):
        self.blobs[key] = blob

    def delete(self, key):
        self.blobs.pop(key, None)


class FileBlobStore(BlobStore):
    """One `<key>.json` file per key under `root`."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        return self.root / f"{key}.json"

    def read(self, key):
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8") if path.exists() else None
        except OSError as e:
            raise PersistenceError(f"Could not read {path}: {e}") from e

    def write(self, key, blob):
        path = self._path(key)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.root, prefix=f".{key}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(blob)
            os.replace(tmp, path)
        except OSError as e:
            raise PersistenceError(f"Could not write {path}: {e}") from e

    def delete(self, key):
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(f"Could not delete {self._path(key)}: {e}") from e


class SupabaseBlobStore(BlobStore):
    """Blobs in a Supabase table (see SCHEMA_SQL)."""

    def __init__(self, client, table: str = "mocktest_blobs"):
        self.client = client
        self.table = table

    def read(self, key):
        try:
            r = self.client.table(self.table).select("value").eq("key", key).limit(1).execute()
        except Exception as e:
            raise PersistenceError(f"Supabase read failed for {key}: {e}") from e
        rows = r.data or []
        return rows[0]["value"] if rows else None

    def write(self, key, blob):
        row = {"key": key, "value": blob, "updated_at": datetime.now(timezone.utc).isoformat()}
        try:
            self.client.table(self.table).upsert(row, on_conflict="key").execute()
        except Exception as e:
            raise PersistenceError(f"Supabase write failed for {key}: {e}") from e

    def delete(self, key):
        try:
            self.client.table(self.table).delete().eq("key", key).execute()
        except Exception as e:
            raise PersistenceError(f"Supabase delete failed for {key}: {e}") from e


def supabase_client(settings: Settings):
    if not settings.supabase_url or not settings.supabase_key:
        raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set")
    return create_client(settings.supabase_url, settings.supabase_key)


def build_store(settings: Settings) -> BlobStore:
    if settings.storage == "memory":
        return MemoryBlobStore()
    if settings.storage == "supabase":
        return SupabaseBlobStore(supabase_client(settings), table=settings.blob_table)
    return FileBlobStore(settings.data_dir)


def load_json(store: BlobStore, key: str, default: Any) -> Any:
    """Parsed blob under `key`, or `default` when missing, unreadable or corrupt."""
    try:
        blob = store.read(key)
    except PersistenceError as e:
        logger.error(f"Error reading {key}: {e}")
        return default
    if blob is None:
        return default
    try:
        return json.loads(blob)
    except (json.JSONDecodeError, TypeError) as e:
        logger.warning(f"Corrupt data under {key}, using defaults: {e}")
        return default


def save_json(store: BlobStore, key: str, data: Any) -> bool:
    try:
        store.write(key, json.dumps(data, default=str))
        return True
    except (PersistenceError, TypeError, ValueError) as e:
        logger.error(f"Error saving {key}: {e}")
        return False


def remove(store: BlobStore, key: str) -> bool:
    try:
        store.delete(key)
        return True
    except PersistenceError as e:
        logger.error(f"Error removing {key}: {e}")
        return False
