import importlib
import sqlite3
from contextlib import contextmanager

import pytest


@contextmanager
def _reload_db(tmp_path, monkeypatch):
    db_path = tmp_path / "founder.db"
    monkeypatch.setenv("FOUNDER_DB_PATH", str(db_path))
    import foundermode.common.db as db_module
    yield importlib.reload(db_module)


def test_connection_rolls_back_on_error(tmp_path, monkeypatch):
    with _reload_db(tmp_path, monkeypatch) as db:
        db.execute_script("CREATE TABLE slots (name TEXT PRIMARY KEY);")
        with pytest.raises(sqlite3.IntegrityError):
            with db.get_connection() as conn:
                conn.execute("INSERT INTO slots VALUES ('autosave')")
                conn.execute("INSERT INTO slots VALUES ('autosave')")
        with db.get_connection() as conn:
            assert conn.execute("SELECT COUNT(*) FROM slots").fetchone()[0] == 0
            assert conn.execute("PRAGMA busy_timeout").fetchone()[0] == db.BUSY_TIMEOUT_MS


def test_schema_is_stamped_and_newer_files_are_refused(tmp_path, monkeypatch):
    with _reload_db(tmp_path, monkeypatch) as db:
        assert db.schema_version() == 0
        db.ensure_schema("CREATE TABLE IF NOT EXISTS game_saves (slot TEXT);", 1)
        assert db.schema_version() == 1
        db.ensure_schema("CREATE TABLE IF NOT EXISTS game_saves (slot TEXT);", 1)
        assert db.schema_version() == 1

        with pytest.raises(RuntimeError):
            db.ensure_schema("CREATE TABLE IF NOT EXISTS game_saves (slot TEXT);", 0)


def test_save_slots_stamp_the_database(tmp_path, monkeypatch):
    with _reload_db(tmp_path, monkeypatch) as db:
        from foundermode.sim_manager import snapshots

        snapshots.ensure_schema()
        assert db.schema_version() == snapshots.SAVES_SCHEMA_VERSION
        assert snapshots.list_saves() == []
