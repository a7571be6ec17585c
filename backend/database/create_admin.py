"""
Create an admin account, or promote an existing account to admin.

Usage:
    python -m backend.database.create_admin --email admin@eventease.com --password <pw> [--name "Admin User"]

ADMIN_EMAIL / ADMIN_PASSWORD / ADMIN_NAME may be set in .env instead of flags.
"""

import argparse
import os
import sys

# Ensure the backend module can be found
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..')))

from argon2 import PasswordHasher

from backend.database.db_connection import connect_db

ph = PasswordHasher()


def ensure_admin(conn, name: str, email: str, password: str) -> str:
    """
    Insert the admin, or set role='admin' if the email is already taken.

    Returns "created" or "promoted". An existing account keeps its password.
    """
    with conn.cursor() as cur:
        cur.execute("SELECT user_id, role FROM users WHERE email = %s;", (email,))
        existing = cur.fetchone()

        if existing:
            cur.execute(
                "UPDATE users SET role = 'admin', is_active = TRUE, updated_at = CURRENT_TIMESTAMP WHERE user_id = %s;",
                (existing["user_id"],),
            )
            outcome = "promoted"
        else:
            cur.execute(
                "INSERT INTO users (name, email, password_hash, role) VALUES (%s, %s, %s, 'admin');",
                (name, email, ph.hash(password)),
            )
            outcome = "created"
    conn.commit()
    return outcome


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create or promote an EventEase admin account.")
    parser.add_argument("--name", default=os.getenv("ADMIN_NAME", "Admin User"))
    parser.add_argument("--email", default=os.getenv("ADMIN_EMAIL"))
    parser.add_argument("--password", default=os.getenv("ADMIN_PASSWORD"))
    args = parser.parse_args(argv)

    if not args.email or not args.password:
        parser.error("an email and a password are required (flags or ADMIN_EMAIL/ADMIN_PASSWORD)")
    if len(args.password) < 6:
        parser.error("password must be at least 6 characters")

    email = args.email.strip().lower()

    conn = connect_db()
    try:
        outcome = ensure_admin(conn, args.name.strip(), email, args.password)
    except Exception as e:
        conn.rollback()
        print(f"Error creating admin user: {e}")
        return 1
    finally:
        conn.close()

    print(f"Admin user {outcome}: {email}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
