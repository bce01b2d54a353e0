"""Runtime settings read from the environment (.env supported)."""
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

STORAGE_BACKENDS = ("file", "supabase", "memory")


@dataclass(frozen=True)
class Settings:
    storage: str = "file"
    data_dir: Path = Path(".mocktest")
    supabase_url: str | None = None
    supabase_key: str | None = None
    blob_table: str = "mocktest_blobs"
    autosave_seconds: float = 30.0
    history_limit: int = 1000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        storage = (os.getenv("MOCKTEST_STORAGE") or "file").strip().lower()
        if storage not in STORAGE_BACKENDS:
            raise ValueError(f"MOCKTEST_STORAGE must be one of {STORAGE_BACKENDS}, got {storage!r}")
        return cls(
            storage=storage,
            data_dir=Path(os.getenv("MOCKTEST_DATA_DIR", ".mocktest")),
            supabase_url=os.getenv("SUPABASE_URL"),
            supabase_key=os.getenv("SUPABASE_KEY"),
            blob_table=os.getenv("MOCKTEST_BLOB_TABLE", "mocktest_blobs"),
            autosave_seconds=float(os.getenv("MOCKTEST_AUTOSAVE_SECONDS", "30")),
            history_limit=int(os.getenv("MOCKTEST_HISTORY_LIMIT", "1000")),
            log_level=os.getenv("MOCKTEST_LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(settings: Settings | None = None):
    level = (settings or Settings.from_env()).log_level
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format="%(levelname)s: %(message)s")
