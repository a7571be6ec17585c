"""
PostgreSQL connection helpers.
Provides get_db() for use by services, connect_db() for scripts that manage
their own connection, plus a small row serializer shared by the route handlers.
"""

import os
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterator, Mapping

import psycopg2
from psycopg2.extras import DictCursor
from dotenv import load_dotenv

# Load .env variables from the project root
load_dotenv()


def connect_db():
    """
    Returns a new psycopg2 connection with dictionary-based row access.
    The caller is responsible for closing it.

    Returns:
        psycopg2.extensions.connection: A connection object with DictCursor factory.

    Raises:
        RuntimeError: If DATABASE_URL is not configured.
        psycopg2.Error: If connection fails.
    """
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise RuntimeError("DATABASE_URL is not set. Please set the environment variable.")

    try:
        conn = psycopg2.connect(database_url)
        # Rows come back as dictionaries (e.g., {"user_id": 1, "email": "..."})
        conn.cursor_factory = DictCursor
        return conn
    except psycopg2.Error as e:
        print(f"Error connecting to database: {e}")
        raise


@contextmanager
def get_db() -> Iterator[Any]:
    """
    One connection per unit of work.

    Usage:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(...)

    Commits when the block finishes, rolls back if it raises, and closes
    the connection either way.
    """
    conn = connect_db()
    try:
        with conn:
            yield conn
    finally:
        conn.close()


def serialize_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Convert a database row into a JSON-safe dict.

    Datetimes and dates become ISO-8601 strings, NUMERIC values become floats.
    """
    out = dict(row)
    for key, value in out.items():
        if isinstance(value, (datetime, date)):
            out[key] = value.isoformat()
        elif isinstance(value, Decimal):
            out[key] = float(value)
    return out
