import tempfile
import unittest
from pathlib import Path

from ohmydashboard.db.resolver import (
    JsonBackend,
    SqliteBackend,
    has_json_sessions,
    resolve_backend,
    storage_candidates,
)


class BackendResolverTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.home = self.root / "home"
        self.home.mkdir()

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _storage(self, parent: Path) -> Path:
        storage = parent / "storage"
        (storage / "session").mkdir(parents=True)
        return storage

    def test_json_tree_wins_when_session_files_exist(self) -> None:
        storage = self._storage(self.root / "data")
        (storage / "session" / "proj_1").mkdir()
        (storage / "session" / "proj_1" / "ses_1.json").write_text("{}", encoding="utf-8")
        # A database next to it is ignored.
        (self.root / "data" / "opencode.db").write_bytes(b"")

        backend = resolve_backend(env={"OMD_STORAGE_DIR": str(storage)}, platform="linux", home=self.home)

        self.assertEqual(backend, JsonBackend(base_path=storage))
        self.assertEqual(backend.kind, "json")

    def test_sqlite_used_when_no_session_files(self) -> None:
        storage = self._storage(self.root / "data")
        db_path = self.root / "data" / "opencode.db"
        db_path.write_bytes(b"")

        backend = resolve_backend(env={"OPENCODE_STORAGE_DIR": str(storage)}, platform="linux", home=self.home)

        self.assertIsInstance(backend, SqliteBackend)
        self.assertEqual(backend.db_path, db_path)
        self.assertEqual(backend.base_path, storage)

    def test_database_env_override(self) -> None:
        storage = self._storage(self.root / "data")
        (self.root / "data" / "opencode.db").write_bytes(b"")
        explicit = self.root / "elsewhere.db"
        explicit.write_bytes(b"")

        backend = resolve_backend(
            env={"OMD_STORAGE_DIR": str(storage), "OMD_DB_PATH": str(explicit)},
            platform="linux",
            home=self.home,
        )

        self.assertEqual(backend.db_path, explicit)

    def test_xdg_data_home_is_searched(self) -> None:
        storage = self._storage(self.root / "xdg" / "opencode")
        (storage / "session" / "ses_1.json").write_text("{}", encoding="utf-8")

        backend = resolve_backend(env={"XDG_DATA_HOME": str(self.root / "xdg")}, platform="linux", home=self.home)

        self.assertEqual(backend, JsonBackend(base_path=storage))

    def test_nothing_found_defaults_to_empty_json_backend(self) -> None:
        backend = resolve_backend(env={}, platform="linux", home=self.home)

        self.assertEqual(backend.kind, "json")
        self.assertEqual(backend.base_path, self.home / ".local" / "share" / "opencode" / "storage")

    def test_windows_candidates_include_appdata(self) -> None:
        env = {"LOCALAPPDATA": str(self.root / "local"), "APPDATA": str(self.root / "roaming")}
        candidates = storage_candidates(env, "win32", self.home)

        self.assertEqual(
            candidates,
            [
                self.root / "local" / "opencode" / "storage",
                self.root / "roaming" / "opencode" / "storage",
                self.home / ".local" / "share" / "opencode" / "storage",
            ],
        )
        self.assertEqual(len(storage_candidates(env, "linux", self.home)), 1)

    def test_has_json_sessions_ignores_other_files(self) -> None:
        storage = self._storage(self.root / "data")
        (storage / "session" / "notes.txt").write_text("x", encoding="utf-8")
        self.assertFalse(has_json_sessions(storage))
        self.assertFalse(has_json_sessions(self.root / "missing"))


if __name__ == "__main__":
    unittest.main()
