"""
db.py – PostgreSQL connection helpers.

Reads DATABASE_URL from the environment (loaded from .env by config.py).
Every helper opens a short-lived connection and always closes it.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Sequence

import psycopg2
from psycopg2.extras import RealDictCursor

import waterrisk.config  # noqa: F401 – loads .env so DATABASE_URL is available

_SCHEMA_PATH = Path(__file__).resolve().parent.parent / "schema" / "water_risk.sql"


def get_database_url() -> str:
    url = os.environ.get("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL environment variable is not set. "
            "Add it to .env at the repo root."
        )
    return url


def get_connection(database_url: str | None = None):
    """Return a psycopg2 connection. Caller must close it."""
    return psycopg2.connect(database_url or get_database_url())


def query(conn, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
    """Execute a SELECT on an open connection and return rows as dicts."""
    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(sql, params)
        return [dict(row) for row in cur.fetchall()]


def test_connection(database_url: str) -> tuple[bool, str | None]:
    """
    Connect to PostgreSQL and run SELECT 1. Return (True, None) on success,
    (False, error_message) on failure.
    """
    try:
        conn = get_connection(database_url)
        try:
            with conn.cursor() as cur:
                cur.execute("SELECT 1")
                cur.fetchone()
        finally:
            conn.close()
        return True, None
    except psycopg2.Error as e:
        return False, str(e)


def apply_schema(database_url: str, schema_path: Path | None = None) -> tuple[bool, str | None]:
    """
    Execute the schema SQL file against the database. Creates tables, indexes
    and the AWARE reference rows.  If schema_path is None, uses
    schema/water_risk.sql at the repository root.
    Returns (True, None) on success, (False, error_message) on failure.
    """
    schema_path = schema_path or _SCHEMA_PATH
    if not schema_path.exists():
        return False, f"Schema file not found: {schema_path}"
    sql = schema_path.read_text(encoding="utf-8")
    try:
        conn = get_connection(database_url)
        conn.autocommit = True
        try:
            with conn.cursor() as cur:
                cur.execute(sql)
        finally:
            conn.close()
        return True, None
    except psycopg2.Error as e:
        return False, str(e)
