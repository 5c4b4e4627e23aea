from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List
import json
import os
import time
import pandas as pd

from . import config


# Durable tables and their columns, in write order
TABLES: Dict[str, List[str]] = {
    "users": ["user_id", "refresh_token", "access_token", "expires_in", "issued_at"],
    "events": ["event_id", "name", "date", "locked"],
    "event_users": ["event_id", "user_id", "role"],
    "tracks": ["track_id", "name", "duration_ms", "genre", "artist_id", "artist_name", "album_image"],
    "event_tracks": ["event_id", "track_id", "status"],
    "playlists": ["playlist_id", "event_id", "accepted"],
    "playlist_tracks": ["playlist_id", "track_id", "position"],
}

FORMATS = ("parquet", "csv")


def _default_data_dir() -> Path:
    return config.DATA_DIR


@dataclass
class CacheConfig:
    enabled: bool = True
    dir: Path = field(default_factory=_default_data_dir)
    fmt: str = "parquet"  # parquet or csv

    def __post_init__(self):
        if isinstance(self.dir, str):
            self.dir = Path(self.dir)
        if self.fmt not in FORMATS:
            raise ValueError(f"Unsupported table format: {self.fmt} (expected one of {', '.join(FORMATS)})")


class DataCatalog:
    """
    Reads and writes the event tables under one directory.

    Every table in TABLES is stored as its own file; frames handed back by
    load() always carry the table's columns, even when nothing is on disk.
    catalog_meta.json records when each table was last written.
    """

    def __init__(self, cache: CacheConfig):
        self.cache = cache
        if self.cache.enabled:
            self.cache.dir.mkdir(parents=True, exist_ok=True)
        self._frames: Dict[str, pd.DataFrame] = {}

    @staticmethod
    def columns(table: str) -> List[str]:
        try:
            return TABLES[table]
        except KeyError:
            raise KeyError(f"Unknown table: {table}") from None

    def table_path(self, table: str) -> Path:
        return self.cache.dir / f"{table}.{self.cache.fmt}"

    # ------------------ Metadata ------------------
    def _meta_path(self) -> Path:
        return self.cache.dir / "catalog_meta.json"

    def load_meta(self) -> dict:
        p = self._meta_path()
        if not self.cache.enabled or not p.exists():
            return {}
        return json.loads(p.read_text(encoding="utf-8"))

    def save_meta(self, meta: dict) -> None:
        if self.cache.enabled:
            self._atomic_write(self._meta_path(), lambda tmp: tmp.write_text(
                json.dumps(meta, indent=2, sort_keys=True), encoding="utf-8"
            ))

    # ------------------ Tables ------------------
    def load(self, table: str) -> pd.DataFrame:
        """Stored frame for table, or an empty frame with its columns."""
        columns = self.columns(table)
        if table in self._frames:
            return self._frames[table]
        p = self.table_path(table)
        if not self.cache.enabled or not p.exists():
            return pd.DataFrame(columns=columns)
        if self.cache.fmt == "parquet":
            df = pd.read_parquet(p)
        else:
            # Empty strings are values here (e.g. missing artwork), not NaN
            df = pd.read_csv(p, keep_default_na=False, dtype=str)
        missing = [c for c in columns if c not in df.columns]
        if missing:
            raise ValueError(f"Table {table} at {p} is missing columns: {', '.join(missing)}")
        df = df[columns]
        self._frames[table] = df
        return df

    def save(self, table: str, rows: List[list]) -> pd.DataFrame:
        """Replace table with rows (lists in column order)."""
        df = pd.DataFrame(rows, columns=self.columns(table))
        self._frames[table] = df
        if self.cache.enabled:
            if self.cache.fmt == "parquet":
                self._atomic_write(self.table_path(table), lambda tmp: df.to_parquet(tmp, index=False))
            else:
                self._atomic_write(self.table_path(table), lambda tmp: df.to_csv(tmp, index=False))
        return df

    def save_all(self, tables: Dict[str, List[list]]) -> None:
        """Write several tables and stamp them in the metadata file."""
        meta = self.load_meta()
        stamped = meta.setdefault("tables", {})
        now = time.time()
        for table, rows in tables.items():
            self.save(table, rows)
            stamped[table] = now
        meta["last_flush"] = now
        self.save_meta(meta)

    def _atomic_write(self, path: Path, write) -> None:
        # Readers never see a half-written table
        tmp = path.with_name(f".{path.name}.tmp")
        write(tmp)
        os.replace(tmp, path)

    def clear(self) -> None:
        self._frames.clear()
