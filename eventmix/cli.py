"""
eventmix CLI - generate and curate event playlists from the command line.
"""

from __future__ import annotations

import argparse
import sys

from . import config
from .catalog_client import CatalogClient
from .credentials import CredentialRefresher
from .curation import CurationError, accept_playlist, propose_track, save_playlist
from .error_handling import ConfigurationError, GenerationError, setup_logging
from .export import event_table, export_event
from .models import find_owner
from .orchestrator import PlaylistGenerator
from .store import TableStore
from .tables import CacheConfig


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="eventmix",
        description="Build one shared Spotify playlist from the taste of an event's members.",
    )
    ap.add_argument("--data-dir", default=str(config.DATA_DIR), help="Directory holding the event tables.")
    ap.add_argument("--format", default="parquet", choices=["parquet", "csv"], help="Table format (default: parquet)")
    ap.add_argument("--verbose", "-v", action="store_true", help="Debug logging.")
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_generate = sub.add_parser("generate", help="Regenerate the playlist of an event.")
    ap_generate.add_argument("--event", required=True, help="Event id")
    ap_generate.add_argument("--wait", action="store_true",
                             help="Wait for a running generation of the same event instead of failing.")

    ap_status = sub.add_parser("status", help="Show the tracks of an event.")
    ap_status.add_argument("--event", required=True, help="Event id")

    ap_export = sub.add_parser("export", help="Export the tracks of an event.")
    ap_export.add_argument("--event", required=True, help="Event id")
    ap_export.add_argument("--out", required=True, help="Output path (.parquet or .csv)")
    ap_export.add_argument("--playlist", default=None, help="Only tracks of this playlist")

    ap_accept = sub.add_parser("accept", help="Accept all proposals of a playlist.")
    ap_accept.add_argument("--event", required=True, help="Event id")
    ap_accept.add_argument("--playlist", required=True, help="Spotify playlist id")

    ap_save = sub.add_parser("save", help="Write the curated playlist back to Spotify.")
    ap_save.add_argument("--event", required=True, help="Event id")
    ap_save.add_argument("--playlist", required=True, help="Spotify playlist id")

    ap_search = sub.add_parser("search", help="Search the Spotify catalog for tracks to propose.")
    ap_search.add_argument("--event", required=True, help="Event id")
    ap_search.add_argument("--query", required=True, help="Search text")
    ap_search.add_argument("--user", default=None, help="Member to search as (default: the owner)")
    ap_search.add_argument("--limit", type=int, default=config.SEARCH_LIMIT, help="Maximum results")

    ap_propose = sub.add_parser("propose", help="Propose a track for an event.")
    ap_propose.add_argument("--event", required=True, help="Event id")
    ap_propose.add_argument("--track", required=True, help="Spotify track id")
    ap_propose.add_argument("--user", default=None, help="Proposing member (default: the owner)")
    return ap


def _member_token(store, refresher, event_id: str, user_id=None):
    """The named member (the owner by default) and a fresh token for them."""
    members = store.list_members(event_id)
    if user_id is None:
        member = find_owner(members)
    else:
        member = next((m for m in members if m.user_id == user_id), None)
    if member is None:
        raise CurationError(f"No member {user_id or '(owner)'} in event {event_id}.")
    token = refresher.refresh(member)
    if token is None:
        raise CurationError(f"Could not refresh the access token of {member.user_id}.")
    return member, token


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(config.LOG_DIR, "DEBUG" if args.verbose else config.LOG_LEVEL)
    store = TableStore(CacheConfig(dir=args.data_dir, fmt=args.format))

    try:
        if args.cmd == "status":
            df = event_table(store, args.event)
            if df.empty:
                print(f"No tracks for event {args.event}")
            else:
                print(df[["track_name", "artist_name", "status"]].to_string(index=False))
                print(f"\n{len(df)} tracks: " + ", ".join(
                    f"{status.lower()}={count}" for status, count in df["status"].value_counts().items()
                ))
            return 0

        if args.cmd == "export":
            path = export_event(store, args.event, args.out, playlist_id=args.playlist)
            print(f"✅ Exported event {args.event} to {path}")
            return 0

        if args.cmd == "accept":
            playlist = accept_playlist(store, args.event, args.playlist)
            print(f"✅ Accepted playlist {playlist.id}")
            return 0

        catalog = CatalogClient()
        refresher = CredentialRefresher.from_env(store=store)

        if args.cmd == "generate":
            generator = PlaylistGenerator(store, catalog, refresher, progress=True)
            result = generator.generate(args.event, wait=args.wait)
            print(f"✅ Created playlist {result.playlist_id} with {result.track_count} tracks")
            return 0

        if args.cmd == "save":
            owner = find_owner(store.list_members(args.event))
            token = refresher.refresh(owner) if owner else None
            count = save_playlist(store, catalog, token, args.event, args.playlist)
            print(f"✅ Saved {count} tracks to playlist {args.playlist}")
            return 0

        if args.cmd == "search":
            _, token = _member_token(store, refresher, args.event, args.user)
            results = catalog.search_tracks(token, args.query, limit=args.limit)
            if not results:
                print(f"No tracks found for '{args.query}'")
            for t in results:
                print(f"{t['id']}  {t['name']} - {t['artist']}")
            return 0

        if args.cmd == "propose":
            member, token = _member_token(store, refresher, args.event, args.user)
            assoc = propose_track(store, catalog, token, args.event, args.track, role=member.role)
            print(f"✅ Proposed {assoc.track.name} by {assoc.track.artist_name}")
            return 0
    except (GenerationError, CurationError, ConfigurationError) as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1

    raise SystemExit(f"Unknown command: {args.cmd}")


if __name__ == "__main__":
    sys.exit(main())
