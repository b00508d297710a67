from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from coralbot.profile import ProfileError, ensure_profile_directories, load_profile


class ProfileTests(unittest.TestCase):
    def setUp(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.root = Path(tmpdir.name)
        (self.root / "config" / "profiles").mkdir(parents=True)

    def _write(self, name: str, body: str) -> None:
        (self.root / "config" / "profiles" / f"{name}.yaml").write_text(body, encoding="utf-8")

    def test_minimal_profile_uses_defaults(self) -> None:
        self._write("coral", "name: coral\ndisplay_name: Coral\n")
        profile = load_profile("coral", repo_root=self.root, data_root=self.root / "data")
        self.assertEqual(profile.model, "command-r-plus")
        self.assertEqual(profile.window_max_turns, 10)
        self.assertEqual(profile.window_max_chars, 2000)
        self.assertEqual(profile.stored_max_turns, 20)
        self.assertEqual(profile.context_ttl_hours, 24)
        self.assertTrue(profile.simulate_typing)
        self.assertEqual(profile.paths.db_path, self.root / "data" / "coral" / "memory.db")

    def test_values_are_clamped(self) -> None:
        self._write(
            "coral",
            "name: coral\ndisplay_name: Coral\nllm_timeout_seconds: 900\ncleanup_interval_seconds: 5\n",
        )
        profile = load_profile("coral", repo_root=self.root, data_root=self.root)
        self.assertEqual(profile.llm_timeout_seconds, 120)
        self.assertEqual(profile.cleanup_interval_seconds, 60)

    def test_name_mismatch(self) -> None:
        self._write("coral", "name: other\ndisplay_name: Coral\n")
        with self.assertRaisesRegex(ProfileError, "mismatch"):
            load_profile("coral", repo_root=self.root)

    def test_missing_keys(self) -> None:
        self._write("coral", "name: coral\n")
        with self.assertRaisesRegex(ProfileError, "display_name"):
            load_profile("coral", repo_root=self.root)

    def test_invalid_limits(self) -> None:
        for body in ("window_max_turns: 0\n", "window_max_chars: lots\n", "context_ttl_hours: -1\n"):
            with self.subTest(body=body):
                self._write("coral", "name: coral\ndisplay_name: Coral\n" + body)
                with self.assertRaises(ProfileError):
                    load_profile("coral", repo_root=self.root)

    def test_missing_profile_and_non_mapping(self) -> None:
        with self.assertRaisesRegex(ProfileError, "not found"):
            load_profile("ghost", repo_root=self.root)
        self._write("listy", "- a\n- b\n")
        with self.assertRaisesRegex(ProfileError, "mapping"):
            load_profile("listy", repo_root=self.root)

    def test_ensure_profile_directories(self) -> None:
        self._write("coral", "name: coral\ndisplay_name: Coral\n")
        profile = load_profile("coral", repo_root=self.root, data_root=self.root / "data")
        ensure_profile_directories(profile)
        self.assertTrue(profile.paths.secrets_dir.is_dir())


class BundledProfileTests(unittest.TestCase):
    def test_repo_profile_loads(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            profile = load_profile("coral", data_root=Path(tmpdir))
        self.assertEqual(profile.display_name, "Coral")


if __name__ == "__main__":
    unittest.main()
