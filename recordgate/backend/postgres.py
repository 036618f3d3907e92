"""
PostgreSQL record backend.

Stores each record as a JSONB document of field name -> repetition list,
keyed by (database, layout). Layout metadata lives in layout_field and
scripts are SQL functions taking (layout text, parameter text).
"""

import json
from typing import Any

import psycopg
from psycopg import errors, sql

from recordgate.core.models import BackendRecord, FieldDescriptor, ScriptHook, ScriptHooks
from recordgate.observability.logger import get_logger

from .base import (
    FIELD_MISSING,
    LAYOUT_MISSING,
    NO_RECORDS_MATCH,
    SCRIPT_MISSING,
    STORE_ERROR,
    BackendError,
    RecordBackend,
    RepetitionValues,
    merge_values,
)
from .connection import DatabaseConnectionPool

logger = get_logger(__name__)

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS layout_field (
        database_name TEXT NOT NULL,
        layout TEXT NOT NULL,
        name TEXT NOT NULL,
        position INTEGER NOT NULL,
        auto_entered BOOLEAN NOT NULL DEFAULT FALSE,
        is_global BOOLEAN NOT NULL DEFAULT FALSE,
        max_repeat INTEGER NOT NULL DEFAULT 1 CHECK (max_repeat >= 1),
        result_type TEXT NOT NULL DEFAULT 'text',
        PRIMARY KEY (database_name, layout, name)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS record_store (
        record_id BIGSERIAL PRIMARY KEY,
        database_name TEXT NOT NULL,
        layout TEXT NOT NULL,
        fields JSONB NOT NULL DEFAULT '{}'::jsonb,
        modified_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_record_store_layout
        ON record_store (database_name, layout)
    """,
    """
    CREATE TABLE IF NOT EXISTS container_blob (
        reference TEXT PRIMARY KEY,
        data BYTEA NOT NULL
    )
    """,
)


class PostgresBackend(RecordBackend):
    """
    Record backend on a PostgreSQL record store.

    Every write runs in one transaction together with its pre and post
    hook functions, so a failing hook rolls the write back.
    """

    def __init__(self, pool: DatabaseConnectionPool, container_base_url: str | None = None):
        """
        Initialize the backend.

        Args:
            pool: Open database connection pool
            container_base_url: Prefix for container URLs, if containers are served over HTTP
        """
        super().__init__()
        self.pool = pool
        self.container_base_url = container_base_url

    # --- setup helpers --- #

    def ensure_schema(self) -> None:
        """Create the record store tables if they do not exist."""
        with self.pool.get_connection() as conn:
            with conn.cursor() as cur:
                for statement in SCHEMA_STATEMENTS:
                    cur.execute(statement)
            conn.commit()
        logger.info("Record store schema ready")

    def register_layout(self, layout: str, fields: list[FieldDescriptor]) -> None:
        """Replace the field definitions of a layout in the current database."""
        with self.pool.get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "DELETE FROM layout_field WHERE database_name = %s AND layout = %s",
                    (self.database, layout),
                )
                for position, descriptor in enumerate(fields):
                    cur.execute(
                        """
                        INSERT INTO layout_field (
                            database_name, layout, name, position,
                            auto_entered, is_global, max_repeat, result_type
                        )
                        VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                        """,
                        (
                            self.database,
                            layout,
                            descriptor.name,
                            position,
                            descriptor.auto_entered,
                            descriptor.is_global,
                            descriptor.max_repeat,
                            descriptor.result_type,
                        ),
                    )
            conn.commit()
        logger.info(
            "Layout registered",
            extra={"database": self.database, "layout": layout, "field_count": len(fields)},
        )

    def put_container(self, layout: str, record_id: str, field: str, filename: str,
                      data: bytes, repetition: int = 0) -> str:
        """
        Store container content and write its reference into the record.

        Returns:
            The container reference stored in the field
        """
        reference = f"/containers/{self.database}/{layout}/{record_id}/{field}/{repetition}/{filename}?v=1"
        self.pool.execute_command(
            """
            INSERT INTO container_blob (reference, data) VALUES (%s, %s)
            ON CONFLICT (reference) DO UPDATE SET data = EXCLUDED.data
            """,
            (reference, data),
        )
        self.update(layout, record_id, {field: {repetition: reference}})
        return reference

    # --- RecordBackend implementation --- #

    def describe_layout(self, layout: str) -> list[FieldDescriptor]:
        with self.pool.get_connection() as conn:
            return list(self._layout_fields(conn, layout).values())

    def find_by_unique_key(self, layout: str, field: str, value: str) -> list[BackendRecord]:
        with self.pool.get_connection() as conn:
            fields = self._layout_fields(conn, layout)
            if field not in fields:
                raise BackendError(FIELD_MISSING, f"Field is missing: {field}")

            rows = self._query(
                conn,
                """
                SELECT record_id, fields FROM record_store
                WHERE database_name = %s AND layout = %s AND fields -> %s::text ->> 0 = %s::text
                ORDER BY record_id
                """,
                (self.database, layout, field, value),
            )
        if not rows:
            raise BackendError(NO_RECORDS_MATCH, "No records match the request")
        return [self._export(row) for row in rows]

    def find_by_id(self, layout: str, record_id: str) -> BackendRecord:
        with self.pool.get_connection() as conn:
            self._layout_fields(conn, layout)
            row = self._fetch(conn, layout, record_id)
        if row is None:
            raise BackendError(NO_RECORDS_MATCH, "No records match the request")
        return self._export(row)

    def create(
        self, layout: str, values: RepetitionValues, hooks: ScriptHooks | None = None
    ) -> list[BackendRecord]:
        with self.pool.get_connection() as conn:
            fields = self._layout_fields(conn, layout)
            self._run_hook(conn, layout, hooks.pre if hooks else None)

            stored: dict[str, list[Any]] = {name: [] for name in fields}
            merge_values(fields, stored, values)
            rows = self._query(
                conn,
                """
                INSERT INTO record_store (database_name, layout, fields)
                VALUES (%s, %s, %s::jsonb)
                RETURNING record_id, fields
                """,
                (self.database, layout, json.dumps(stored)),
            )

            self._run_hook(conn, layout, hooks.post if hooks else None)
            conn.commit()
        return [self._export(rows[0])]

    def update(
        self, layout: str, record_id: str, values: RepetitionValues, hooks: ScriptHooks | None = None
    ) -> None:
        with self.pool.get_connection() as conn:
            fields = self._layout_fields(conn, layout)
            row = self._fetch(conn, layout, record_id, for_update=True)
            if row is None:
                raise BackendError(NO_RECORDS_MATCH, "No records match the request")

            self._run_hook(conn, layout, hooks.pre if hooks else None)
            stored = dict(row["fields"])
            merge_values(fields, stored, values)
            self._query(
                conn,
                """
                UPDATE record_store SET fields = %s::jsonb, modified_at = NOW()
                WHERE record_id = %s
                RETURNING record_id
                """,
                (json.dumps(stored), row["record_id"]),
            )

            self._run_hook(conn, layout, hooks.post if hooks else None)
            conn.commit()

    def delete(self, layout: str, record_id: str, hooks: ScriptHooks | None = None) -> None:
        with self.pool.get_connection() as conn:
            self._layout_fields(conn, layout)
            row = self._fetch(conn, layout, record_id, for_update=True)
            if row is None:
                raise BackendError(NO_RECORDS_MATCH, "No records match the request")

            self._run_hook(conn, layout, hooks.pre if hooks else None)
            self._query(
                conn,
                "DELETE FROM record_store WHERE record_id = %s RETURNING record_id",
                (row["record_id"],),
            )
            self._run_hook(conn, layout, hooks.post if hooks else None)
            conn.commit()

    def run_script(self, layout: str, script: str, parameter: str | None = None) -> list[BackendRecord]:
        """
        Call a set-returning SQL function and load the records it names.

        The function receives (layout, parameter) and returns record ids.
        """
        with self.pool.get_connection() as conn:
            self._layout_fields(conn, layout)
            rows = self._call_function(conn, layout, script, parameter)
            record_ids = [str(value) for row in rows for value in row.values() if value is not None]

            records = []
            for record_id in record_ids:
                row = self._fetch(conn, layout, record_id)
                if row is not None:
                    records.append(self._export(row))
            conn.commit()
        return records

    def get_container_data(self, reference: str) -> bytes:
        rows = self.pool.execute_query(
            "SELECT data FROM container_blob WHERE reference = %s", (reference,)
        )
        if not rows:
            raise BackendError(NO_RECORDS_MATCH, f"Container not found: {reference}")
        return bytes(rows[0]["data"])

    def get_container_url(self, reference: str) -> str | None:
        if self.container_base_url is None:
            return None
        return self.container_base_url.rstrip("/") + reference

    # --- internals --- #

    def _layout_fields(self, conn, layout: str) -> dict[str, FieldDescriptor]:
        rows = self._query(
            conn,
            """
            SELECT name, auto_entered, is_global, max_repeat, result_type
            FROM layout_field
            WHERE database_name = %s AND layout = %s
            ORDER BY position
            """,
            (self.database, layout),
        )
        if not rows:
            raise BackendError(LAYOUT_MISSING, f"Layout is missing: {layout}")
        return {
            row["name"]: FieldDescriptor(
                name=row["name"],
                auto_entered=row["auto_entered"],
                is_global=row["is_global"],
                max_repeat=row["max_repeat"],
                result_type=row["result_type"],
            )
            for row in rows
        }

    def _fetch(self, conn, layout: str, record_id: str, for_update: bool = False) -> dict | None:
        if not (record_id.isascii() and record_id.isdigit()):
            return None
        query = """
            SELECT record_id, fields FROM record_store
            WHERE database_name = %s AND layout = %s AND record_id = %s
        """
        if for_update:
            query += " FOR UPDATE"
        rows = self._query(conn, query, (self.database, layout, int(record_id)))
        return rows[0] if rows else None

    def _run_hook(self, conn, layout: str, hook: ScriptHook | None) -> None:
        if hook is not None:
            self._call_function(conn, layout, hook.script, hook.parameter)

    def _call_function(self, conn, layout: str, script: str, parameter: str | None) -> list[dict]:
        query = sql.SQL("SELECT * FROM {}(%s::text, %s::text)").format(sql.Identifier(script))
        try:
            return self._query(conn, query, (layout, parameter))
        except BackendError as e:
            if isinstance(e.__cause__, errors.UndefinedFunction):
                raise BackendError(SCRIPT_MISSING, f"Script is missing: {script}") from e.__cause__
            raise

    def _query(self, conn, query, params: tuple) -> list[dict]:
        try:
            with conn.cursor() as cur:
                cur.execute(query, params)
                return cur.fetchall() if cur.description is not None else []
        except psycopg.Error as e:
            raise BackendError(STORE_ERROR, str(e)) from e

    @staticmethod
    def _export(row: dict) -> BackendRecord:
        return BackendRecord(record_id=str(row["record_id"]), fields=dict(row["fields"]))
