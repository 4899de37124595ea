"""
SQLite connections for the two stores.

* content store (`DATABASE`)       – posts + categories
* credential store (`USER_DATABASE`) – one document-shaped row per user,
  login history kept as a JSON array
"""

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone

from flask import current_app, g

from penboard.errors import PersistenceError

CONTENT_SCHEMA = """
------------------------------------------------------------
-- 1.  Categories
------------------------------------------------------------
CREATE TABLE IF NOT EXISTS category (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    category    TEXT NOT NULL,
    owner       TEXT NOT NULL,
    created_at  TEXT NOT NULL
);

------------------------------------------------------------
-- 2.  Posts
--     `category` holds category.id without a FK: deleting a
--     category leaves its posts (and the stale id) in place.
------------------------------------------------------------
CREATE TABLE IF NOT EXISTS post (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    title         TEXT,
    body          TEXT,
    feature_image TEXT,
    published     INTEGER NOT NULL DEFAULT 0,
    category      INTEGER,
    owner         TEXT NOT NULL,
    post_date     TEXT NOT NULL,
    last_update   TEXT NOT NULL,
    is_updated    INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_post_owner     ON post(owner);
CREATE INDEX IF NOT EXISTS idx_post_category  ON post(category);
CREATE INDEX IF NOT EXISTS idx_post_published ON post(published, last_update);
CREATE INDEX IF NOT EXISTS idx_category_owner ON category(owner);
"""

USER_SCHEMA = """
CREATE TABLE IF NOT EXISTS user (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    user_name      TEXT UNIQUE NOT NULL,   -- BINARY collation: case-sensitive
    password       TEXT NOT NULL,
    email          TEXT,
    login_history  TEXT NOT NULL DEFAULT '[]'
);
"""

_SCHEMA_READY: set[str] = set()


def _connect(path: str, schema: str) -> sqlite3.Connection:
    try:
        conn = sqlite3.connect(path)
        conn.row_factory = sqlite3.Row
        if path not in _SCHEMA_READY:
            conn.executescript(schema)
            conn.commit()
            _SCHEMA_READY.add(path)
    except sqlite3.Error as exc:
        raise PersistenceError(f"unable to open {path}: {exc}") from exc
    return conn


def get_db() -> sqlite3.Connection:
    """Content store connection for the current app context."""
    if "db" not in g:
        g.db = _connect(current_app.config["DATABASE"], CONTENT_SCHEMA)
    return g.db


def get_user_db() -> sqlite3.Connection:
    """Credential store connection for the current app context."""
    if "user_db" not in g:
        g.user_db = _connect(current_app.config["USER_DATABASE"], USER_SCHEMA)
    return g.user_db


def close_db(error=None):
    for key in ("db", "user_db"):
        conn = g.pop(key, None)
        if conn is not None:
            conn.close()


def init_db():
    """Create both schemas (idempotent)."""
    for path, schema in (
        (current_app.config["DATABASE"], CONTENT_SCHEMA),
        (current_app.config["USER_DATABASE"], USER_SCHEMA),
    ):
        _SCHEMA_READY.discard(path)
        _connect(path, schema).close()


@contextmanager
def store_errors(what: str):
    """Re-raise any sqlite3 failure inside the block as PersistenceError."""
    try:
        yield
    except sqlite3.Error as exc:
        raise PersistenceError(f"{what}: {exc}") from exc


# -------------------------------------------------------------------------
# Time helpers
# -------------------------------------------------------------------------
def utc_now() -> datetime:
    """Return an *aware* datetime in UTC."""
    return datetime.now(timezone.utc)


def now_iso() -> str:
    return utc_now().isoformat(timespec="microseconds")
