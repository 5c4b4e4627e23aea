from __future__ import annotations
from pathlib import Path
from typing import Optional
import pandas as pd

from .store import associations_frame


def export_table(df: pd.DataFrame, out: str) -> str:
    """Write df as parquet or csv depending on the suffix (parquet otherwise)."""
    p = Path(out)
    if p.suffix.lower() not in (".parquet", ".pq", ".csv"):
        p = p.with_suffix(".parquet")
    p.parent.mkdir(parents=True, exist_ok=True)
    if p.suffix.lower() == ".csv":
        df.to_csv(p, index=False)
    else:
        df.to_parquet(p, index=False)
    return str(p)


def event_table(store, event_id: str, playlist_id: Optional[str] = None) -> pd.DataFrame:
    """Event tracks ordered by status (best first), optionally for one playlist."""
    df = associations_frame(store, event_id)
    if playlist_id is not None and not df.empty:
        df = df[df["playlists"].apply(lambda ids: playlist_id in ids)]
    return df.sort_values(["status_rank", "track_name"], ascending=[False, True]).reset_index(drop=True)


def export_event(store, event_id: str, out: str, playlist_id: Optional[str] = None) -> str:
    return export_table(event_table(store, event_id, playlist_id), out)
