from __future__ import annotations

from typing import Optional

from marble_race.database.connection import get_db_connection

KV_TABLE = "kv_store"


def ensure_kv_table() -> bool:
    conn = get_db_connection()
    if not conn:
        return False
    try:
        with conn.cursor() as cur:
            cur.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {KV_TABLE} (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                );
                """
            )
        conn.commit()
        return True
    except Exception as err:
        conn.rollback()
        print(f"  -> Failed to create {KV_TABLE}: {err}")
        return False
    finally:
        conn.close()


def get_stored_value(key: str) -> Optional[str]:
    """
    Returns the raw string stored under ``key`` or None if it is missing
    or the database is unreachable.
    """
    conn = get_db_connection()
    if not conn:
        return None
    try:
        with conn.cursor() as cur:
            cur.execute(f"SELECT value FROM {KV_TABLE} WHERE key = %s;", (key,))
            row = cur.fetchone()
    finally:
        conn.close()
    return row[0] if row else None


def set_stored_value(key: str, value: str) -> bool:
    conn = get_db_connection()
    if not conn:
        return False
    try:
        with conn.cursor() as cur:
            cur.execute(
                f"""
                INSERT INTO {KV_TABLE} (key, value)
                VALUES (%s, %s)
                ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value, updated_at = NOW();
                """,
                (key, value),
            )
        conn.commit()
        return True
    except Exception as err:
        conn.rollback()
        print(f"  -> Failed to store '{key}': {err}")
        return False
    finally:
        conn.close()
