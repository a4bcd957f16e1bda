# storage/repository.py
import logging
import sqlite3
from datetime import date, datetime, timezone
from typing import Optional

from structocr.pipeline_state import PipelineState, Stage
from structocr.processor.models import Chunk, ChunkStatus, Milestone
from structocr.storage.db import get_connection, init_schema
from structocr.storage.models import StoredSession

logger = logging.getLogger(__name__)

_INSERT_CHUNK_SQL = """
    INSERT INTO chunks
        (session_id, chunk_id, file_name, raw_text, cleaned_text,
         macro_text, micro_text, final_text, translated_text,
         status, last_headline_level)
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""


class Repository:
    """
    Única interfaz entre el resto de la aplicación y SQLite.
    Recibe un db_path para facilitar el testing con :memory:.
    """

    def __init__(self, db_path: str | None = None):
        self._conn = get_connection(db_path)
        init_schema(self._conn)

    # ------------------------------------------------------------------
    # Sesiones
    # ------------------------------------------------------------------

    def save_state(self, name: str, state: PipelineState) -> None:
        """
        Guarda el estado completo de la sesión en una sola transacción.
        Los chunks se reescriben: la secuencia guardada es siempre
        exactamente la del estado.
        """
        with self._conn:
            session_id = self._upsert_session(name, state)
            self._conn.execute("DELETE FROM chunks WHERE session_id = ?", (session_id,))
            self._conn.executemany(
                _INSERT_CHUNK_SQL,
                [self._chunk_params(session_id, c) for c in state.chunks],
            )

    def save_session(self, name: str, state: PipelineState) -> None:
        """Solo la fila de la sesión (etapa, progreso, error...). Los chunks no se tocan."""
        with self._conn:
            self._upsert_session(name, state)

    def save_chunk(self, name: str, chunk: Chunk) -> None:
        """
        Upsert de un único chunk. La sesión debe existir: se llama durante
        una etapa, después de que save_state la haya creado.
        """
        with self._conn:
            self._conn.execute(
                _INSERT_CHUNK_SQL + """
                ON CONFLICT (session_id, chunk_id) DO UPDATE SET
                    file_name           = excluded.file_name,
                    raw_text            = excluded.raw_text,
                    cleaned_text        = excluded.cleaned_text,
                    macro_text          = excluded.macro_text,
                    micro_text          = excluded.micro_text,
                    final_text          = excluded.final_text,
                    translated_text     = excluded.translated_text,
                    status              = excluded.status,
                    last_headline_level = excluded.last_headline_level
                """,
                self._chunk_params(self._session_id(name), chunk),
            )

    def load_state(self, name: str) -> PipelineState | None:
        """Devuelve None si la sesión no existe."""
        row = self._conn.execute(
            "SELECT * FROM sessions WHERE name = ?", (name,)
        ).fetchone()
        if not row:
            return None

        chunk_rows = self._conn.execute(
            "SELECT * FROM chunks WHERE session_id = ? ORDER BY chunk_id ASC",
            (row["id"],),
        ).fetchall()

        return PipelineState(
            stage           = Stage(row["stage"]),
            progress        = row["progress"],
            error           = row["error"],
            auto_run_target = Milestone[row["auto_run_target"]] if row["auto_run_target"] else None,
            chunks          = tuple(self._row_to_chunk(r) for r in chunk_rows),
            language        = row["language"],
            audit_report    = row["audit_report"],
        )

    def delete_session(self, name: str) -> bool:
        """True si existía. Los chunks se borran en cascada."""
        with self._conn:
            cursor = self._conn.execute("DELETE FROM sessions WHERE name = ?", (name,))
        return cursor.rowcount > 0

    def list_sessions(self) -> list[StoredSession]:
        rows = self._conn.execute(
            """
            SELECT s.*, COUNT(c.chunk_id) AS chunk_count
            FROM sessions s
            LEFT JOIN chunks c ON c.session_id = s.id
            GROUP BY s.id
            ORDER BY s.updated_at DESC
            """
        ).fetchall()
        return [self._row_to_session(r) for r in rows]

    def _upsert_session(self, name: str, state: PipelineState) -> int:
        now = datetime.now(timezone.utc).isoformat()
        target = state.auto_run_target.name if state.auto_run_target is not None else None

        self._conn.execute(
            """
            INSERT INTO sessions
                (name, stage, language, progress, error, auto_run_target,
                 audit_report, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (name) DO UPDATE SET
                stage           = excluded.stage,
                language        = excluded.language,
                progress        = excluded.progress,
                error           = excluded.error,
                auto_run_target = excluded.auto_run_target,
                audit_report    = excluded.audit_report,
                updated_at      = excluded.updated_at
            """,
            (name, state.stage.value, state.language, state.progress, state.error,
             target, state.audit_report, now, now),
        )
        return self._session_id(name)

    @staticmethod
    def _chunk_params(session_id: int, c: Chunk) -> tuple:
        return (session_id, c.id, c.file_name, c.raw_text, c.cleaned_text,
                c.macro_text, c.micro_text, c.final_text, c.translated_text,
                c.status.value, c.last_headline_level)

    def _session_id(self, name: str) -> int:
        row = self._conn.execute(
            "SELECT id FROM sessions WHERE name = ?", (name,)
        ).fetchone()
        return row["id"]

    # ------------------------------------------------------------------
    # Quota
    # ------------------------------------------------------------------

    def add_token_usage(self, model: str, tokens: int) -> None:
        """
        Upsert: si ya existe el registro de hoy lo incrementa,
        si no existe lo crea.
        """
        today = date.today().isoformat()
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO quota_usage (model, date, tokens_used)
                VALUES (?, ?, ?)
                ON CONFLICT (model, date)
                DO UPDATE SET tokens_used = tokens_used + excluded.tokens_used
                """,
                (model, today, tokens),
            )

    def get_token_usage_today(self, model: str) -> int:
        today = date.today().isoformat()
        row = self._conn.execute(
            "SELECT tokens_used FROM quota_usage WHERE model = ? AND date = ?",
            (model, today),
        ).fetchone()
        return row["tokens_used"] if row else 0

    # ------------------------------------------------------------------
    # Mapeo de rows a dataclasses
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_chunk(row: sqlite3.Row) -> Chunk:
        return Chunk(
            id=row["chunk_id"],
            file_name=row["file_name"],
            raw_text=row["raw_text"],
            cleaned_text=row["cleaned_text"],
            macro_text=row["macro_text"],
            micro_text=row["micro_text"],
            final_text=row["final_text"],
            translated_text=row["translated_text"],
            status=ChunkStatus(row["status"]),
            last_headline_level=row["last_headline_level"],
        )

    @staticmethod
    def _row_to_session(row: sqlite3.Row) -> StoredSession:
        return StoredSession(
            name=row["name"],
            stage=row["stage"],
            language=row["language"],
            progress=row["progress"],
            chunk_count=row["chunk_count"],
            updated_at=row["updated_at"],
            error=row["error"],
        )

    # ------------------------------------------------------------------
    # Cleanup (para tests)
    # ------------------------------------------------------------------

    def close(self) -> None:
        self._conn.close()
