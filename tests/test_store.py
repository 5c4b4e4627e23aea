import unittest
from datetime import date
from pathlib import Path
import shutil
import tempfile

import pandas as pd

from eventmix.models import Event, Member, Playlist, Role, Track, TrackAssociation, TrackStatus, User
from eventmix.store import MemoryStore, TableStore, associations_frame
from eventmix.tables import CacheConfig, DataCatalog


def populate(store):
    store.upsert_event(Event(id="e1", name="Summer Party", date=date(2024, 7, 1)))
    store.add_member(Member(User("alice", refresh_token="r-alice", expires_in=3600), "e1", Role.OWNER))
    store.add_member(Member(User("bob"), "e1", Role.PARTICIPANT))
    store.upsert_association(TrackAssociation(
        "e1",
        Track("t1", name="One", duration_ms=1000, genre="pop", artist_id="a1", artist_name="A"),
        TrackStatus.ACCEPTED,
    ))
    store.upsert_association(TrackAssociation("e1", Track("t2", name="Two"), TrackStatus.DENIED))
    playlist = Playlist(id="pl1", event_id="e1")
    for tid in ("t2", "t1"):
        playlist.add_track(tid)
        store.get_association("e1", tid).playlist_ids.add("pl1")
    store.upsert_playlist(playlist)


class TestTableStore(unittest.TestCase):
    fmt = "parquet"

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()
        self.cache = CacheConfig(dir=Path(self.test_dir), fmt=self.fmt)

    def tearDown(self):
        shutil.rmtree(self.test_dir)

    def test_tables_survive_reload(self):
        store = TableStore(self.cache)
        populate(store)
        store.flush()

        reloaded = TableStore(CacheConfig(dir=Path(self.test_dir), fmt=self.fmt))

        event = reloaded.get_event("e1")
        self.assertEqual(event.name, "Summer Party")
        self.assertEqual(event.date, date(2024, 7, 1))
        self.assertFalse(event.locked)

        members = {m.user_id: m for m in reloaded.list_members("e1")}
        self.assertEqual(members["alice"].role, Role.OWNER)
        self.assertEqual(members["alice"].user.refresh_token, "r-alice")
        self.assertEqual(members["alice"].user.expires_in, 3600)
        self.assertIsNone(members["bob"].user.refresh_token)

        t1 = reloaded.get_association("e1", "t1")
        self.assertEqual(t1.status, TrackStatus.ACCEPTED)
        self.assertEqual(t1.track.genre, "pop")
        self.assertEqual(t1.track.duration_ms, 1000)
        self.assertEqual(t1.playlist_ids, {"pl1"})
        self.assertEqual(reloaded.get_association("e1", "t2").status, TrackStatus.DENIED)

        playlist = reloaded.get_playlist("e1", "pl1")
        self.assertEqual(playlist.track_ids, ["t2", "t1"])
        self.assertFalse(playlist.accepted)

    def test_flush_records_metadata(self):
        store = TableStore(self.cache)
        store.flush()
        self.assertIn("last_flush", store.catalog.load_meta())
        self.assertTrue(store.catalog.table_path("event_tracks").exists())

    def test_empty_directory_loads_empty(self):
        store = TableStore(self.cache)
        self.assertEqual(store.list_associations("e1"), [])
        self.assertIsNone(store.get_event("e1"))


class TestTableStoreCsv(TestTableStore):
    fmt = "csv"


class TestMemoryStore(unittest.TestCase):
    def setUp(self):
        self.store = MemoryStore()
        populate(self.store)

    def test_first_track_version_wins(self):
        self.store.upsert_track(Track("t1", name="Renamed"))
        self.assertEqual(self.store.get_track("t1").name, "One")

    def test_delete_association_unlinks_playlist(self):
        self.assertTrue(self.store.delete_association("e1", "t2"))
        self.assertFalse(self.store.delete_association("e1", "t2"))
        self.assertEqual(self.store.get_playlist("e1", "pl1").track_ids, ["t1"])

    def test_playlist_is_scoped_to_event(self):
        self.assertIsNone(self.store.get_playlist("other", "pl1"))

    def test_reset_event_keeps_members_and_tracks(self):
        self.store.reset_event("e1")
        self.assertEqual(self.store.list_associations("e1"), [])
        self.assertEqual(self.store.list_playlists("e1"), [])
        self.assertEqual(len(self.store.list_members("e1")), 2)
        self.assertIsNotNone(self.store.get_track("t1"))

    def test_delete_event(self):
        self.store.delete_event("e1")
        self.assertIsNone(self.store.get_event("e1"))
        self.assertEqual(self.store.list_members("e1"), [])

    def test_associations_frame(self):
        df = associations_frame(self.store, "e1")
        self.assertIsInstance(df, pd.DataFrame)
        self.assertEqual(len(df), 2)
        row = df.set_index("track_id").loc["t1"]
        self.assertEqual(row["status"], "ACCEPTED")
        self.assertEqual(row["status_rank"], 4)
        self.assertEqual(row["playlists"], ["pl1"])
        self.assertEqual(row["uri"], "spotify:track:t1")


class TestCacheConfig(unittest.TestCase):
    def test_rejects_unknown_format(self):
        with self.assertRaises(ValueError):
            CacheConfig(dir=Path(tempfile.gettempdir()), fmt="xlsx")

    def test_string_dir_becomes_path(self):
        cfg = CacheConfig(dir=tempfile.gettempdir())
        self.assertIsInstance(cfg.dir, Path)


class TestDataCatalog(unittest.TestCase):
    def setUp(self):
        self.test_dir = tempfile.mkdtemp()
        self.catalog = DataCatalog(CacheConfig(dir=Path(self.test_dir), fmt="csv"))

    def tearDown(self):
        shutil.rmtree(self.test_dir)

    def test_missing_table_loads_with_columns(self):
        df = self.catalog.load("event_tracks")
        self.assertTrue(df.empty)
        self.assertEqual(list(df.columns), ["event_id", "track_id", "status"])

    def test_unknown_table(self):
        with self.assertRaises(KeyError):
            self.catalog.load("likes")

    def test_save_all_stamps_tables(self):
        self.catalog.save_all({"events": [["e1", "Party", None, False]]})
        meta = self.catalog.load_meta()
        self.assertIn("events", meta["tables"])
        self.assertEqual(meta["last_flush"], meta["tables"]["events"])
        self.assertEqual(list(Path(self.test_dir).glob(".*.tmp")), [])

    def test_table_with_missing_columns_is_rejected(self):
        pd.DataFrame({"event_id": ["e1"]}).to_csv(self.catalog.table_path("events"), index=False)
        with self.assertRaises(ValueError):
            DataCatalog(self.catalog.cache).load("events")


if __name__ == "__main__":
    unittest.main()
