# backend/test_migrate.py
# Schema migration checks (SQLite applied; hosted DDL inspected only)

import sqlite3

from backend.migrate import main, postgres_sql, run_sqlite_migrations


def test_sqlite_migrations_are_idempotent(tmp_path):
    db_path = str(tmp_path / "migrated.db")
    run_sqlite_migrations(db_path)
    run_sqlite_migrations(db_path)

    conn = sqlite3.connect(db_path)
    try:
        tables = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
        triggers = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type = 'trigger'")}
    finally:
        conn.close()

    assert {"users", "projects", "pledges", "updates"} <= tables
    assert {"pledges_within_goal", "pledges_roll_up_totals", "updates_owner_only"} <= triggers


def test_hosted_schema_declares_invariants():
    sql = postgres_sql()
    assert "FUNCTION public.place_pledge(p_project_id uuid, p_amount numeric)" in sql
    assert "FOR UPDATE" in sql
    assert "ENABLE ROW LEVEL SECURITY" in sql
    assert '"owners post updates"' in sql


def test_print_sql_cli(capsys):
    assert main(["--print-sql"]) == 0
    assert "CREATE TABLE IF NOT EXISTS public.projects" in capsys.readouterr().out
