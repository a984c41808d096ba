"""Database layer: search history and analytics events.

Supports two modes:
- Remote (Turso): when TURSO_DATABASE_URL is set, connects via libsql with embedded replica.
- Local (dev): when TURSO_DATABASE_URL is empty, uses a local SQLite file via libsql.

Nothing here is on the search path's critical section; callers treat every
write as best effort.
"""

import json
from datetime import datetime, timezone

import libsql_experimental as libsql

import config

DB_PATH = config.DB_PATH
TURSO_DATABASE_URL = config.TURSO_DATABASE_URL
TURSO_AUTH_TOKEN = config.TURSO_AUTH_TOKEN


def get_conn():
    if TURSO_DATABASE_URL:
        conn = libsql.connect(
            str(DB_PATH),
            sync_url=TURSO_DATABASE_URL,
            auth_token=TURSO_AUTH_TOKEN,
        )
        conn.sync()
    else:
        conn = libsql.connect(str(DB_PATH))
    return conn


def _commit(conn) -> None:
    conn.commit()
    if TURSO_DATABASE_URL:
        conn.sync()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def init_db() -> None:
    conn = get_conn()
    conn.execute("""
        CREATE TABLE IF NOT EXISTS search_history (
            id            INTEGER PRIMARY KEY AUTOINCREMENT,
            latitude      REAL NOT NULL,
            longitude     REAL NOT NULL,
            categories    TEXT,
            keyword       TEXT,
            results_count INTEGER DEFAULT 0,
            api_provider  TEXT,
            cached        INTEGER DEFAULT 0,
            created_at    TEXT
        )
    """)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS analytics (
            id          INTEGER PRIMARY KEY AUTOINCREMENT,
            event_type  TEXT NOT NULL,
            metadata    TEXT,
            created_at  TEXT
        )
    """)
    conn.execute("CREATE INDEX IF NOT EXISTS idx_analytics_event_type ON analytics(event_type)")
    _commit(conn)
    conn.close()


# ---- Search history ----

def record_search(
    lat: float,
    lon: float,
    categories: list[str],
    keyword: str,
    results_count: int,
    api_provider: str,
    cached: bool,
) -> None:
    conn = get_conn()
    conn.execute(
        """INSERT INTO search_history
           (latitude, longitude, categories, keyword, results_count, api_provider, cached, created_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
        (lat, lon, ",".join(categories) or "all", keyword, results_count, api_provider, int(cached), _now()),
    )
    _commit(conn)
    conn.close()


def get_total_searches() -> int:
    conn = get_conn()
    row = conn.execute("SELECT COUNT(*) FROM search_history").fetchone()
    conn.close()
    return int(row[0]) if row else 0


# ---- Analytics ----

def record_event(event_type: str, metadata: dict | None = None) -> None:
    conn = get_conn()
    conn.execute(
        "INSERT INTO analytics (event_type, metadata, created_at) VALUES (?, ?, ?)",
        (event_type, json.dumps(metadata) if metadata is not None else None, _now()),
    )
    _commit(conn)
    conn.close()


def get_event_counts(since: datetime) -> dict[str, int]:
    conn = get_conn()
    cursor = conn.execute(
        "SELECT event_type, COUNT(*) FROM analytics WHERE created_at >= ? GROUP BY event_type",
        (since.astimezone(timezone.utc).isoformat(),),
    )
    rows = cursor.fetchall()
    conn.close()
    return {event_type: int(count) for event_type, count in rows}
