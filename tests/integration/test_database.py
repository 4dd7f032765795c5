# tests/integration/test_database.py
import sqlite3

import pytest

from gymtrack.models.database import execute_query, init_db, transaction


def test_init_db_creates_schema(tmp_path):
    db_file = str(tmp_path / "schema.db")
    init_db(db_file)
    init_db(db_file)  # idempotent

    rows = execute_query("SELECT name FROM sqlite_master WHERE type = 'table'", (), db_file, fetch=True)
    tables = {r["name"] for r in rows}
    assert {"system_settings", "gyms", "plans", "members", "check_ins", "announcements", "email_logs"} <= tables


def test_execute_query_returns_lastrowid_and_rows(tmp_path):
    db_file = str(tmp_path / "q.db")
    init_db(db_file)
    gym_id = execute_query("INSERT INTO gyms (name, formatted_gym_id) VALUES (?, ?)", ("G", "GYM-1"), db_file)
    rows = execute_query("SELECT * FROM gyms WHERE id = ?", (gym_id,), db_file, fetch=True)
    assert rows[0]["formatted_gym_id"] == "GYM-1"


def test_execute_query_propagates_errors(tmp_path):
    db_file = str(tmp_path / "q.db")
    init_db(db_file)
    execute_query("INSERT INTO gyms (name, formatted_gym_id) VALUES (?, ?)", ("G", "GYM-1"), db_file)
    with pytest.raises(sqlite3.IntegrityError):
        execute_query("INSERT INTO gyms (name, formatted_gym_id) VALUES (?, ?)", ("H", "GYM-1"), db_file)


def test_transaction_rolls_back_on_error(tmp_path):
    db_file = str(tmp_path / "t.db")
    init_db(db_file)
    with pytest.raises(RuntimeError):
        with transaction(db_file) as conn:
            conn.execute("INSERT INTO gyms (name, formatted_gym_id) VALUES ('G', 'GYM-1')")
            raise RuntimeError("abort")
    assert execute_query("SELECT COUNT(*) FROM gyms", (), db_file, fetch=True)[0][0] == 0

    with transaction(db_file) as conn:
        conn.execute("INSERT INTO gyms (name, formatted_gym_id) VALUES ('G', 'GYM-1')")
    assert execute_query("SELECT COUNT(*) FROM gyms", (), db_file, fetch=True)[0][0] == 1
