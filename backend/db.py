# backend/db.py
# Database layer: SQLite store for local dev/tests, SQLAlchemy engine for
# applying migrations to the hosted Postgres database.

import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path as FsPath
from typing import Generator, Optional, Union
from urllib.parse import urlparse

from sqlalchemy import create_engine, pool
from sqlalchemy.engine import Engine

from backend.config import DATABASE_PATH

# Direct Postgres connection string of the hosted project (migrations only)
DATABASE_URL = os.environ.get("DATABASE_URL", "").strip()
IS_POSTGRES = DATABASE_URL.startswith(("postgres://", "postgresql://"))

_engine: Union[Engine, None] = None

ISO_NOW = "(strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))"

# Pledge quota, aggregates and update ownership are enforced by triggers;
# every insert goes through them.
SQLITE_SCHEMA = [
    f"""
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        email TEXT UNIQUE NOT NULL,
        password_hash TEXT NOT NULL,
        created_at TEXT NOT NULL DEFAULT {ISO_NOW}
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS projects (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL CHECK (length(trim(title)) > 0),
        description TEXT NOT NULL DEFAULT '',
        goal_amount REAL NOT NULL CHECK (goal_amount > 0),
        current_amount REAL NOT NULL DEFAULT 0,
        end_date TEXT NOT NULL,
        backer_count INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL DEFAULT {ISO_NOW},
        user_id TEXT NOT NULL
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS pledges (
        id TEXT PRIMARY KEY,
        amount REAL NOT NULL CHECK (amount > 0),
        project_id TEXT NOT NULL REFERENCES projects(id),
        user_id TEXT NOT NULL,
        created_at TEXT NOT NULL DEFAULT {ISO_NOW}
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS updates (
        id TEXT PRIMARY KEY,
        content TEXT NOT NULL CHECK (length(trim(content)) > 0),
        project_id TEXT NOT NULL REFERENCES projects(id),
        user_id TEXT NOT NULL,
        created_at TEXT NOT NULL DEFAULT {ISO_NOW}
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_pledges_project_id ON pledges(project_id, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_updates_project_id ON updates(project_id, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_projects_created_at ON projects(created_at)",
    """
    CREATE TRIGGER IF NOT EXISTS pledges_within_goal
    BEFORE INSERT ON pledges
    BEGIN
        SELECT RAISE(ABORT, 'pledge exceeds remaining amount')
        WHERE NEW.amount > (
            SELECT goal_amount - current_amount FROM projects WHERE id = NEW.project_id
        );
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS pledges_roll_up_totals
    AFTER INSERT ON pledges
    BEGIN
        UPDATE projects
        SET current_amount = current_amount + NEW.amount,
            backer_count = backer_count + (
                CASE WHEN EXISTS (
                    SELECT 1 FROM pledges
                    WHERE project_id = NEW.project_id
                      AND user_id = NEW.user_id
                      AND id <> NEW.id
                ) THEN 0 ELSE 1 END
            )
        WHERE id = NEW.project_id;
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS updates_owner_only
    BEFORE INSERT ON updates
    BEGIN
        SELECT RAISE(ABORT, 'only the project owner can post updates')
        WHERE NEW.user_id IS NOT (SELECT user_id FROM projects WHERE id = NEW.project_id);
    END
    """,
]


def resolve_sqlite_path(path: Optional[str] = None) -> str:
    """Relative paths are resolved against the backend folder; absolute paths pass through."""
    return str(FsPath(__file__).resolve().parent / (path or DATABASE_PATH))


@contextmanager
def get_db_connection(path: Optional[str] = None) -> Generator[sqlite3.Connection, None, None]:
    """Context manager for a SQLite connection with Row factory and foreign keys on."""
    conn = sqlite3.connect(resolve_sqlite_path(path), check_same_thread=False, timeout=10)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
    finally:
        conn.close()


def init_sqlite_schema(conn: sqlite3.Connection) -> None:
    """Create tables, indexes and triggers (idempotent)."""
    cur = conn.cursor()
    for statement in SQLITE_SCHEMA:
        cur.execute(statement)
    conn.commit()


def row_to_dict(row) -> dict:
    """sqlite3.Row -> dict ({} for None)."""
    if row is None:
        return {}
    return dict(row)


def init_engine() -> Engine:
    """Initialize the SQLAlchemy engine for the hosted Postgres database."""
    global _engine

    if not IS_POSTGRES:
        raise RuntimeError("DATABASE_URL must point at the hosted Postgres database")

    parsed = urlparse(DATABASE_URL)
    if not parsed.scheme or not parsed.netloc:
        raise ValueError(f"Invalid DATABASE_URL: {DATABASE_URL[:20]}...")

    # SQLAlchemy only accepts the postgresql:// scheme
    url = DATABASE_URL.replace("postgres://", "postgresql://", 1)
    _engine = create_engine(
        url,
        poolclass=pool.QueuePool,
        pool_size=2,
        max_overflow=0,
        pool_pre_ping=True,
    )
    print(f"[DB] Using PostgreSQL ({parsed.hostname})")
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        return init_engine()
    return _engine
