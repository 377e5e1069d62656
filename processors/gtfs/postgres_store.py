# processors/gtfs/postgres_store.py
# -*- coding: utf-8 -*-
"""
PostgreSQL implementation of FeedStore using Psycopg 3.

Every entity type gets its own table holding the agency key in a column
and the normalised record in a JSONB document:

    id BIGSERIAL PRIMARY KEY, agency_key TEXT NOT NULL, data JSONB NOT NULL

Resolved references are written into the document as the referenced
row's `id`.
"""
import logging
import math
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

import psycopg
from psycopg import Connection as PgConnection
from psycopg import sql
from psycopg.types.json import Jsonb

from common.db_utils import get_db_connection

from .entity_definitions import GTFS_ENTITY_TYPES, EntityType
from .errors import GTFSImportError, PersistenceError, StoreError
from .store import FeedStore, RecordId

module_logger = logging.getLogger(__name__)

MAX_IDENTIFIER_LENGTH = 63


def _json_safe(value: Any) -> Any:
    """Replace NaN and infinities, which JSONB cannot hold, with None."""
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, dict):
        return {key: _json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    return value


def _index_name(table_name: str, suffix: str) -> str:
    return f"idx_{table_name}_{suffix}"[:MAX_IDENTIFIER_LENGTH]


@contextmanager
def _store_errors(action: str, table_name: str) -> Iterator[None]:
    """Re-raise driver errors from the enclosed statements as StoreError."""
    try:
        yield
    except psycopg.Error as e:
        raise StoreError(f"Could not {action} {table_name}: {e}") from e


class PostgresFeedStore(FeedStore):
    """FeedStore backed by one JSONB table per GTFS entity type."""

    def __init__(
        self,
        conn: PgConnection,
        entity_types: Iterable[EntityType] = GTFS_ENTITY_TYPES,
        create_tables: bool = True,
    ):
        self.conn = conn
        if create_tables:
            self.create_tables(entity_types)

    @classmethod
    def connect(
        cls,
        db_params: Optional[Dict[str, str]] = None,
        entity_types: Iterable[EntityType] = GTFS_ENTITY_TYPES,
    ) -> "PostgresFeedStore":
        """Open an autocommit connection and make sure the tables exist."""
        conn = get_db_connection(db_params, autocommit=True)
        if conn is None:
            raise GTFSImportError("Could not connect to the GTFS database.")
        return cls(conn, entity_types)

    def create_tables(self, entity_types: Iterable[EntityType]) -> None:
        with self.conn.cursor() as cursor:
            for entity_type in entity_types:
                create_sql = sql.SQL(
                    "CREATE TABLE IF NOT EXISTS {} ("
                    "id BIGSERIAL PRIMARY KEY, "
                    "agency_key TEXT NOT NULL, "
                    "data JSONB NOT NULL);"
                ).format(sql.Identifier(entity_type.table_name))
                module_logger.debug(f"Ensuring table {entity_type.table_name} exists")
                with _store_errors("create", entity_type.table_name):
                    cursor.execute(create_sql)

    def insert_many(self, entity_type: EntityType, records: List[Dict[str, Any]]) -> int:
        if not records:
            return 0
        table_name = entity_type.table_name
        insert_stmt = sql.SQL(
            "INSERT INTO {} (agency_key, data) VALUES (%s, %s)"
        ).format(sql.Identifier(table_name))
        rows = [
            (record.get("agency_key"), Jsonb(_json_safe(record)))
            for record in records
        ]

        try:
            with self.conn.transaction():
                with self.conn.cursor() as cursor:
                    cursor.executemany(insert_stmt, rows)
            return len(rows)
        except psycopg.Error as e_batch:
            module_logger.warning(
                f"Bulk insert of {len(rows)} records into {table_name} failed: {e_batch}. "
                "Retrying records individually."
            )

        inserted = 0
        errors: List[Dict[str, Any]] = []
        with _store_errors("insert into", table_name):
            with self.conn.transaction():
                with self.conn.cursor() as cursor:
                    for index, row in enumerate(rows):
                        try:
                            with self.conn.transaction():
                                cursor.execute(insert_stmt, row)
                            inserted += 1
                        except psycopg.Error as e_row:
                            errors.append({
                                "index": index,
                                "error": e_row.diag.message_primary or str(e_row),
                            })
        if errors:
            raise PersistenceError(
                f"{len(errors)} of {len(rows)} records rejected by {table_name}",
                inserted_count=inserted,
                errors=errors,
            )
        return inserted

    def delete_agency(self, entity_type: EntityType, agency_key: str) -> int:
        with _store_errors("delete from", entity_type.table_name):
            with self.conn.cursor() as cursor:
                cursor.execute(
                    sql.SQL("DELETE FROM {} WHERE agency_key = %s").format(
                        sql.Identifier(entity_type.table_name)
                    ),
                    (agency_key,),
                )
                return cursor.rowcount

    def iter_records(
        self, entity_type: EntityType, agency_key: str
    ) -> Iterator[Tuple[RecordId, Dict[str, Any]]]:
        with _store_errors("read from", entity_type.table_name):
            with self.conn.cursor() as cursor:
                cursor.execute(
                    sql.SQL("SELECT id, data FROM {} WHERE agency_key = %s ORDER BY id").format(
                        sql.Identifier(entity_type.table_name)
                    ),
                    (agency_key,),
                )
                rows = cursor.fetchall()
        for record_id, data in rows:
            yield record_id, data

    def find_id(
        self,
        entity_type: EntityType,
        agency_key: str,
        field_name: str,
        value: Any,
    ) -> Optional[RecordId]:
        with _store_errors("read from", entity_type.table_name):
            with self.conn.cursor() as cursor:
                cursor.execute(
                    sql.SQL(
                        "SELECT id FROM {} WHERE agency_key = %s AND data ->> %s = %s LIMIT 1"
                    ).format(sql.Identifier(entity_type.table_name)),
                    (agency_key, field_name, str(value)),
                )
                row = cursor.fetchone()
        return row[0] if row else None

    def update_record(
        self, entity_type: EntityType, record_id: RecordId, fields: Dict[str, Any]
    ) -> None:
        with _store_errors("update", entity_type.table_name):
            with self.conn.cursor() as cursor:
                cursor.execute(
                    sql.SQL("UPDATE {} SET data = data || %s WHERE id = %s").format(
                        sql.Identifier(entity_type.table_name)
                    ),
                    (Jsonb(_json_safe(fields)), record_id),
                )

    def update_agency_records(
        self, entity_type: EntityType, agency_key: str, fields: Dict[str, Any]
    ) -> int:
        with _store_errors("update", entity_type.table_name):
            with self.conn.cursor() as cursor:
                cursor.execute(
                    sql.SQL("UPDATE {} SET data = data || %s WHERE agency_key = %s").format(
                        sql.Identifier(entity_type.table_name)
                    ),
                    (Jsonb(_json_safe(fields)), agency_key),
                )
                return cursor.rowcount

    def ensure_indexes(self, entity_type: EntityType) -> None:
        table_name = entity_type.table_name
        statements = [
            sql.SQL("CREATE INDEX IF NOT EXISTS {} ON {} (agency_key)").format(
                sql.Identifier(_index_name(table_name, "agency_key")),
                sql.Identifier(table_name),
            )
        ]
        for field_name in entity_type.index_fields:
            statements.append(
                sql.SQL("CREATE INDEX IF NOT EXISTS {} ON {} (agency_key, (data ->> {}))").format(
                    sql.Identifier(_index_name(table_name, field_name)),
                    sql.Identifier(table_name),
                    sql.Literal(field_name),
                )
            )
        with _store_errors("index", table_name):
            with self.conn.cursor() as cursor:
                for statement in statements:
                    cursor.execute(statement)
        module_logger.debug(f"Indexes ensured on {table_name}")

    def close(self) -> None:
        if self.conn and not self.conn.closed:
            self.conn.close()
            module_logger.info("Database connection closed.")
