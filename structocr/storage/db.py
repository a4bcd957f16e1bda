# storage/db.py
import sqlite3
import os
from pathlib import Path


_DEFAULT_DB_PATH = Path.home() / ".structocr" / "structocr.db"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS sessions (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    name            TEXT    NOT NULL UNIQUE,
    stage           TEXT    NOT NULL DEFAULT 'IDLE',
    language        TEXT    NOT NULL DEFAULT 'auto',
    progress        INTEGER NOT NULL DEFAULT 0,
    error           TEXT,
    auto_run_target TEXT,
    audit_report    TEXT,
    created_at      TEXT    NOT NULL,
    updated_at      TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS chunks (
    session_id          INTEGER NOT NULL,
    chunk_id            INTEGER NOT NULL,
    file_name           TEXT    NOT NULL,
    raw_text            TEXT    NOT NULL,
    cleaned_text        TEXT    NOT NULL DEFAULT '',
    macro_text          TEXT    NOT NULL DEFAULT '',
    micro_text          TEXT    NOT NULL DEFAULT '',
    final_text          TEXT    NOT NULL DEFAULT '',
    translated_text     TEXT,
    status              TEXT    NOT NULL DEFAULT 'PENDING',
    last_headline_level INTEGER,
    FOREIGN KEY (session_id) REFERENCES sessions(id) ON DELETE CASCADE,
    PRIMARY KEY (session_id, chunk_id)
);

CREATE TABLE IF NOT EXISTS quota_usage (
    model       TEXT    NOT NULL,
    date        TEXT    NOT NULL,
    tokens_used INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (model, date)
);
"""


def get_connection(db_path: str | None = None) -> sqlite3.Connection:
    """
    Abre y configura la conexión a SQLite.
    Siempre devuelve rows como dicts (row_factory).
    Activa foreign keys — SQLite las tiene desactivadas por defecto.
    """
    path = db_path or os.environ.get("STRUCTOCR_DB_PATH") or str(_DEFAULT_DB_PATH)

    if path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA journal_mode = WAL")   # mejor performance en lecturas concurrentes
    return conn


def init_schema(conn: sqlite3.Connection) -> None:
    """Crea las tablas si no existen. Idempotente."""
    with conn:
        conn.executescript(_SCHEMA)
