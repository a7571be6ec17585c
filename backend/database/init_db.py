"""
Apply the EventEase schema and check its integrity.

Runs schema.sql against DATABASE_URL (every statement is idempotent),
then confirms that the critical tables and the active-registration
unique index exist.

Usage:
    python -m backend.database.init_db
"""

import os
import sys

# Ensure the backend module can be found
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..')))

from backend.database.db_connection import connect_db

SCHEMA_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "schema.sql")

CRITICAL_TABLES = ['users', 'events', 'favorites', 'registrations', 'notifications', 'subscriptions']
UNIQUE_INDEX = 'uq_registrations_active_user_event'


def apply_schema(conn) -> None:
    """
    Execute schema.sql in a single transaction.
    """
    with open(SCHEMA_PATH, encoding="utf-8") as f:
        ddl = f.read()

    with conn.cursor() as cur:
        cur.execute(ddl)
    conn.commit()


def missing_objects(conn) -> list:
    """
    Return the names of critical tables/indexes that do not exist.
    """
    missing = []
    with conn.cursor() as cur:
        for t in CRITICAL_TABLES + [UNIQUE_INDEX]:
            cur.execute("SELECT to_regclass(%s);", (t,))
            if not cur.fetchone()[0]:
                missing.append(t)
    return missing


def main() -> int:
    print("--- Initializing EventEase database ---")

    conn = connect_db()
    try:
        with conn.cursor() as cur:
            cur.execute("SELECT NOW();")
            print(f"Connected! Database server time: {cur.fetchone()[0]}")

        apply_schema(conn)
        print("Schema applied.")

        missing = missing_objects(conn)
        for name in CRITICAL_TABLES + [UNIQUE_INDEX]:
            print(f" - {name}: {'MISSING' if name in missing else 'Found'}")

        if missing:
            print("\nDatabase init FAILED: some objects are missing.")
            return 1
    except Exception as e:
        conn.rollback()
        print("\nDatabase init FAILED:")
        print(f" Error: {e}")
        return 1
    finally:
        conn.close()
        print("Database connection closed.")

    print("\nDatabase init PASSED.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
