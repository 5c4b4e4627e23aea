"""Test configuration and fixtures."""

import pytest

from eventmix.credentials import CredentialRefresher
from eventmix.models import Event, Member, Role, User
from eventmix.store import MemoryStore


def track_payload(track_id, artist_id="a-x", name=None):
    return {
        "id": track_id,
        "name": name or f"Song {track_id}",
        "duration_ms": 180000,
        "artists": [{"id": artist_id, "name": f"Artist {artist_id}"}],
        "album": {"name": f"Album {track_id}", "images": [{"url": f"http://img/{track_id}"}]},
    }


class FakeCatalog:
    """In-memory stand-in for CatalogClient with the same call surface."""

    def __init__(self):
        self.libraries = {}  # token -> {playlist_id: [track ids]}
        self.top = {}  # token -> [{"id", "genres"}]
        self.artist_tracks = {}  # artist_id -> [track ids]
        self.genres_by_artist = {}
        self.seeds = set()
        self.recommendation_batches = []  # consumed one per call; last one repeats
        self.missing_tracks = set()
        self.payloads = {}  # track_id -> get_track payload override
        self.search_results = {}  # query -> [result dicts]
        self.fail_create = False
        self.failing_batches = set()  # batch indexes whose add fails
        self.created = []
        self.batches = []
        self.calls = []

    def list_playlists(self, token):
        self.calls.append(("list_playlists", token))
        return [{"id": pid, "name": pid} for pid in self.libraries.get(token, {})]

    def list_playlist_tracks(self, token, playlist_id):
        self.calls.append(("list_playlist_tracks", token, playlist_id))
        return list(self.libraries.get(token, {}).get(playlist_id, []))

    def top_artists(self, token, limit=20):
        self.calls.append(("top_artists", token, limit))
        return list(self.top.get(token, []))[:limit]

    def artist_top_tracks(self, token, artist_id, country="DE", limit=3):
        self.calls.append(("artist_top_tracks", token, artist_id))
        return list(self.artist_tracks.get(artist_id, []))[:limit]

    def artist_genres(self, token, artist_id):
        return self.genres_by_artist.get(artist_id, ["Unknown"])

    def genre_seeds(self, token):
        self.calls.append(("genre_seeds", token))
        return set(self.seeds)

    def recommendations(self, token, genres, limit=50):
        self.calls.append(("recommendations", token, tuple(genres)))
        if not self.recommendation_batches:
            return []
        if len(self.recommendation_batches) > 1:
            batch = self.recommendation_batches.pop(0)
        else:
            batch = self.recommendation_batches[0]
        return [{"id": tid, "duration_ms": 1000, "artists": []} for tid in batch][:limit]

    def get_track(self, token, track_id):
        self.calls.append(("get_track", token, track_id))
        if track_id in self.missing_tracks:
            return None
        return self.payloads.get(track_id) or track_payload(track_id)

    def search_tracks(self, token, query, limit=10):
        self.calls.append(("search_tracks", token, query))
        return list(self.search_results.get(query, []))[:limit]

    def create_playlist(self, token, owner_id, name, description="", public=True):
        self.calls.append(("create_playlist", token, owner_id, name))
        if self.fail_create:
            return None
        playlist_id = f"pl-{len(self.created) + 1}"
        self.created.append((playlist_id, owner_id, name))
        return playlist_id

    def add_tracks(self, token, playlist_id, uris):
        index = len(self.batches)
        self.batches.append((token, playlist_id, list(uris)))
        return index not in self.failing_batches

    def replace_all_tracks(self, token, playlist_id):
        self.calls.append(("replace_all_tracks", token, playlist_id))
        return True

    def count(self, name):
        return sum(1 for c in self.calls if c[0] == name)


class FakeRefresher(CredentialRefresher):
    """Hands out tok-<user id>; users listed in `failing` get None."""

    def __init__(self, failing=()):
        super().__init__("client-id", "client-secret", max_workers=4)
        self.failing = set(failing)

    def refresh(self, member):
        if member.user_id in self.failing:
            return None
        return f"tok-{member.user_id}"


@pytest.fixture
def catalog():
    return FakeCatalog()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def event(store):
    ev = store.upsert_event(Event(id="e1", name="Summer Party"))
    store.add_member(Member(user=User("alice", refresh_token="r-alice"), event_id="e1", role=Role.OWNER))
    store.add_member(Member(user=User("bob", refresh_token="r-bob"), event_id="e1", role=Role.PARTICIPANT))
    return ev
