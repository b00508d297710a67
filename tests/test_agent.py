from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from coralbot.agent import build_parser, purge_stale_contexts
from coralbot.memory.context_store import ContextStore
from coralbot.memory.engine import MemoryEngine
from coralbot.memory.event_log import EventLogStore
from coralbot.profile import ensure_profile_directories, load_profile
from coralbot.turns import user_turn


class PurgeStaleContextsTests(unittest.TestCase):
    def test_purge_removes_expired_rows_and_records_sweep(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            profile = load_profile("coral", data_root=Path(tmpdir))
            ensure_profile_directories(profile)
            engine = MemoryEngine(profile.paths.db_path)
            engine.initialize()
            conn = engine.connect()
            store = ContextStore(conn)
            store.save_context(1, [user_turn("stale")])
            store.save_context(2, [user_turn("fresh")])
            conn.execute("UPDATE user_context SET last_updated = datetime('now', '-2 days') WHERE user_id = 1")
            conn.commit()

            self.assertEqual(purge_stale_contexts(profile), 1)
            self.assertEqual(store.load_context(1), [])
            self.assertEqual(store.load_context(2), [user_turn("fresh")])
            sweep = EventLogStore(conn).latest(limit=1)[0]
            self.assertEqual(sweep["event_type"], "context_purged")
            self.assertEqual(sweep["payload"], {"removed": 1, "ttl_hours": 24})
            engine.close()


class ParserTests(unittest.TestCase):
    def test_profile_required(self) -> None:
        args = build_parser().parse_args(["--profile", "coral", "--data-root", "/tmp/x"])
        self.assertEqual(args.profile, "coral")
        self.assertEqual(args.data_root, "/tmp/x")
        self.assertIsNone(args.repo_root)


if __name__ == "__main__":
    unittest.main()
