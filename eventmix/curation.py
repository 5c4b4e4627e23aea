"""
Curation of a generated playlist: proposals, status changes, acceptance,
and saving the curated track list back to Spotify.

Callers are expected to have checked the member's permissions already;
the event lock is enforced here from the role they pass in.
"""

from __future__ import annotations

from dataclasses import replace
from typing import List

from . import config
from .error_handling import get_logger
from .models import Playlist, Role, Track, TrackAssociation, TrackStatus
from .ratelimit import chunked

logger = get_logger()

# Statuses only the generator (or a proposal) may assign
AUTOMATIC_STATUSES = frozenset({TrackStatus.PROPOSED, TrackStatus.GENERATED})


class CurationError(Exception):
    """A curation request that cannot be applied."""
    pass


def _current_playlist(store, event_id: str):
    playlists = store.list_playlists(event_id)
    return playlists[0] if playlists else None


def _check_unlocked(event, role: Role) -> None:
    """Participants cannot change the tracks of a locked event; admins and owners can."""
    if event.locked and role < Role.ADMIN:
        raise CurationError(f"Event {event.id} is locked for participants.")


def propose_track(store, catalog, token: str, event_id: str, track_id: str,
                  role: Role = Role.PARTICIPANT) -> TrackAssociation:
    """Add a member's suggestion to the event as a PROPOSED track."""
    event = store.get_event(event_id)
    if event is None:
        raise CurationError(f"Event {event_id} not found.")
    _check_unlocked(event, role)
    if store.get_association(event_id, track_id) is not None:
        raise CurationError(f"Track {track_id} is already part of event {event_id}.")

    track = store.get_track(track_id)
    if track is None:
        payload = catalog.get_track(token, track_id)
        if payload is None:
            raise CurationError(f"Track {track_id} could not be fetched from Spotify.")
        # Proposals label the genre with the album name; no artist lookup
        track = Track.from_spotify(payload, genre=(payload.get("album") or {}).get("name") or config.UNKNOWN_GENRE)
        artists = ", ".join(a.get("name") or "" for a in payload.get("artists") or [] if a)
        track = store.upsert_track(replace(track, artist_name=artists or track.artist_name))

    assoc = TrackAssociation(event_id=event_id, track=track, status=TrackStatus.PROPOSED)
    playlist = _current_playlist(store, event_id)
    if playlist is not None:
        playlist.add_track(track_id)
        assoc.playlist_ids.add(playlist.id)
        store.upsert_playlist(playlist)
    store.upsert_association(assoc)
    store.flush()
    return assoc


def set_track_status(store, event_id: str, track_id: str, status: TrackStatus) -> TrackAssociation:
    """Admin decision on a track. PROPOSED and GENERATED cannot be set by hand."""
    if status in AUTOMATIC_STATUSES:
        raise CurationError(f"Cannot set status {status.name.lower()} manually.")
    assoc = store.get_association(event_id, track_id)
    if assoc is None:
        raise CurationError(f"Track {track_id} not found in event {event_id}.")
    assoc.status = status
    store.upsert_association(assoc)
    store.flush()
    return assoc


def remove_track(store, event_id: str, track_id: str, role: Role = Role.PARTICIPANT) -> None:
    event = store.get_event(event_id)
    if event is not None:
        _check_unlocked(event, role)
    if not store.delete_association(event_id, track_id):
        raise CurationError(f"Track {track_id} not found in event {event_id}.")
    store.flush()


def accept_playlist(store, event_id: str, playlist_id: str) -> Playlist:
    """Accept every proposal on a playlist and mark the playlist accepted."""
    playlist = store.get_playlist(event_id, playlist_id)
    if playlist is None:
        raise CurationError(f"Playlist {playlist_id} not found.")
    promoted = 0
    for track_id in playlist.track_ids:
        assoc = store.get_association(event_id, track_id)
        if assoc is not None and assoc.status is TrackStatus.PROPOSED:
            assoc.status = TrackStatus.ACCEPTED_PLAYLIST
            store.upsert_association(assoc)
            promoted += 1
    playlist.accepted = True
    store.upsert_playlist(playlist)
    store.flush()
    logger.info(f"Accepted playlist {playlist_id}: {promoted} proposal(s) promoted")
    return playlist


def playlist_uris(store, event_id: str, playlist: Playlist) -> List[str]:
    """URIs of the playlist's tracks that are still part of the event."""
    uris = []
    for track_id in playlist.track_ids:
        assoc = store.get_association(event_id, track_id)
        if assoc is not None:
            uris.append(assoc.track.uri)
    return uris


def save_playlist(store, catalog, token: str, event_id: str, playlist_id: str) -> int:
    """
    Overwrite the Spotify playlist with the curated track list.

    Clears the remote playlist, then adds the tracks back in batches of 100.

    Returns:
        Number of tracks written
    """
    playlist = store.get_playlist(event_id, playlist_id)
    if playlist is None:
        raise CurationError(f"Playlist {playlist_id} not found.")
    if not token:
        raise CurationError("User not logged in.")

    catalog.replace_all_tracks(token, playlist_id)

    uris = playlist_uris(store, event_id, playlist)
    if not uris:
        raise CurationError("No accepted tracks in the playlist.")

    for batch in chunked(uris, config.SAVE_BATCH_SIZE):
        if not catalog.add_tracks(token, playlist_id, batch):
            raise CurationError(f"Failed to add tracks to playlist {playlist_id}.")
    logger.info(f"Saved playlist {playlist_id} with {len(uris)} tracks")
    return len(uris)
