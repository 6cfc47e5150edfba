"""Database connection manager for SQLite."""

import sqlite3
from contextlib import contextmanager
from pathlib import Path

from care_log import config

from .schema import SCHEMA

DB_PATH: Path = config.DB_PATH

# Seconds a writer waits for a competing writer before giving up
BUSY_TIMEOUT = 10.0


def get_connection() -> sqlite3.Connection:
    """Get a database connection with row factory enabled."""
    conn = sqlite3.connect(DB_PATH, timeout=BUSY_TIMEOUT)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_database() -> None:
    """Initialize the database with schema."""
    conn = get_connection()
    conn.executescript(SCHEMA)
    conn.commit()
    conn.close()


@contextmanager
def transaction():
    """Yield a connection inside BEGIN IMMEDIATE; commit on success, roll back on any error."""
    conn = get_connection()
    conn.isolation_level = None
    try:
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")
    finally:
        conn.close()
