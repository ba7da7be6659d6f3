from __future__ import annotations

import logging
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Set

import psycopg2
import psycopg2.extras
from psycopg2 import sql
from psycopg2.extensions import connection as Psycopg2Connection

from tablefill.schema import Table

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ColumnInfo:
    table: str
    column: str
    data_type: str
    udt_name: str
    is_nullable: bool
    char_max_len: Optional[int] = None
    numeric_precision: Optional[int] = None
    numeric_scale: Optional[int] = None
    column_default: Optional[str] = None
    is_identity: bool = False


@dataclass(frozen=True)
class ForeignKeyInfo:
    table: str
    column: str
    ref_table: str
    ref_column: str


class DatabaseConnector(ABC):
    """All database I/O the generator and the analysis phase need."""

    @abstractmethod
    def count_lines(self, table: Table) -> int:
        pass

    @abstractmethod
    def empty_table(self, table: Table) -> None:
        pass

    @abstractmethod
    def execute_raw_query(self, query: str) -> None:
        pass

    @abstractmethod
    def get_values_for_foreign_keys(
        self,
        table: str,
        column: str,
        ref_table: str,
        ref_column: str,
        count: int,
        unique: bool,
        where: Optional[str] = None,
    ) -> List[Any]:
        """
        Sample up to `count` existing values of ref_table.ref_column.

        When `unique`, values already present in table.column are excluded and
        no value is repeated, so fewer than `count` may come back. Otherwise
        exactly `count` values are returned (with repetition) unless the
        referenced column is empty.
        """

    @abstractmethod
    def insert(self, table_name: str, rows: Sequence[Dict[str, Any]]) -> int:
        """Bulk insert; returns how many rows were actually inserted."""

    @abstractmethod
    def get_tables_information(self) -> List[str]:
        pass

    @abstractmethod
    def get_columns_information(self, table: str) -> List[ColumnInfo]:
        pass

    @abstractmethod
    def get_foreign_keys(self, table: str) -> List[ForeignKeyInfo]:
        pass

    def get_unique_columns(self, table: str) -> Set[str]:
        return set()

    def get_enum_values(self) -> Dict[str, List[str]]:
        return {}

    @abstractmethod
    def destroy(self) -> None:
        pass


# -------------------------
# PostgreSQL
# -------------------------
@dataclass(frozen=True)
class PostgresCreds:
    host: str
    port: str
    dbname: str
    user: str
    password: Optional[str]
    schema: str = "public"


def create_pg_connection(creds: PostgresCreds) -> Psycopg2Connection:
    conn = psycopg2.connect(
        host=creds.host,
        port=creds.port,
        dbname=creds.dbname,
        user=creds.user,
        password=creds.password,
    )
    conn.autocommit = True
    with conn.cursor() as cur:
        cur.execute(sql.SQL("SET search_path TO {}").format(sql.Identifier(creds.schema)))
    return conn


class PostgresConnector(DatabaseConnector):
    def __init__(
        self,
        creds: PostgresCreds,
        conn: Optional[Psycopg2Connection] = None,
        rng: Optional[random.Random] = None,
    ):
        self.schema = creds.schema
        self.conn = conn if conn is not None else create_pg_connection(creds)
        self.rng = rng or random.Random()

    def _table(self, name: str) -> sql.Composed:
        return sql.SQL("{}.{}").format(sql.Identifier(self.schema), sql.Identifier(name))

    def count_lines(self, table: Table) -> int:
        with self.conn.cursor() as cur:
            cur.execute(sql.SQL("SELECT COUNT(*) FROM {}").format(self._table(table.name)))
            return int(cur.fetchone()[0])

    def empty_table(self, table: Table) -> None:
        with self.conn.cursor() as cur:
            cur.execute(sql.SQL("TRUNCATE TABLE {} RESTART IDENTITY CASCADE").format(self._table(table.name)))

    def execute_raw_query(self, query: str) -> None:
        logger.debug("raw: %s", query)
        with self.conn.cursor() as cur:
            cur.execute(query)

    def get_values_for_foreign_keys(
        self,
        table: str,
        column: str,
        ref_table: str,
        ref_column: str,
        count: int,
        unique: bool,
        where: Optional[str] = None,
    ) -> List[Any]:
        ref_col = sql.Identifier(ref_column)
        conditions = [sql.SQL("{} IS NOT NULL").format(ref_col)]
        if unique:
            conditions.append(
                sql.SQL("{} NOT IN (SELECT {} FROM {} WHERE {} IS NOT NULL)").format(
                    ref_col,
                    sql.Identifier(column),
                    self._table(table),
                    sql.Identifier(column),
                )
            )
        if where:
            conditions.append(sql.SQL("({})").format(sql.SQL(where)))

        query = sql.SQL(
            "SELECT value FROM (SELECT DISTINCT {} AS value FROM {} WHERE {}) AS candidates "
            "ORDER BY random() LIMIT %s"
        ).format(ref_col, self._table(ref_table), sql.SQL(" AND ").join(conditions))

        with self.conn.cursor() as cur:
            cur.execute(query, (count,))
            values = [r[0] for r in cur.fetchall()]

        if unique or not values:
            return values
        while len(values) < count:
            values.append(self.rng.choice(values))
        return values

    def insert(self, table_name: str, rows: Sequence[Dict[str, Any]]) -> int:
        if not rows:
            return 0
        columns = list(rows[0].keys())
        with self.conn.cursor() as cur:
            if not columns:
                inserted = 0
                stmt = sql.SQL("INSERT INTO {} DEFAULT VALUES ON CONFLICT DO NOTHING").format(self._table(table_name))
                for _ in rows:
                    cur.execute(stmt)
                    inserted += cur.rowcount
                return inserted

            stmt = sql.SQL("INSERT INTO {} ({}) VALUES %s ON CONFLICT DO NOTHING").format(
                self._table(table_name),
                sql.SQL(", ").join(sql.Identifier(c) for c in columns),
            )
            values = [tuple(row.get(c) for c in columns) for row in rows]
            # single page, so rowcount covers the whole batch
            psycopg2.extras.execute_values(cur, stmt, values, page_size=len(values))
            return cur.rowcount

    # -------------------------
    # Introspection
    # -------------------------
    def get_tables_information(self) -> List[str]:
        with self.conn.cursor() as cur:
            cur.execute(
                """
                SELECT table_name
                FROM information_schema.tables
                WHERE table_schema = %s AND table_type='BASE TABLE'
                ORDER BY table_name
                """,
                (self.schema,),
            )
            return [r[0] for r in cur.fetchall()]

    def get_columns_information(self, table: str) -> List[ColumnInfo]:
        with self.conn.cursor() as cur:
            cur.execute(
                """
                SELECT
                  column_name,
                  data_type,
                  udt_name,
                  is_nullable,
                  character_maximum_length,
                  numeric_precision,
                  numeric_scale,
                  column_default,
                  is_identity
                FROM information_schema.columns
                WHERE table_schema = %s AND table_name = %s
                ORDER BY ordinal_position
                """,
                (self.schema, table),
            )
            return [
                ColumnInfo(
                    table=table,
                    column=c,
                    data_type=dt,
                    udt_name=udt,
                    is_nullable=(nul == "YES"),
                    char_max_len=cmax,
                    numeric_precision=prec,
                    numeric_scale=scale,
                    column_default=default,
                    is_identity=(identity == "YES"),
                )
                for c, dt, udt, nul, cmax, prec, scale, default, identity in cur.fetchall()
            ]

    def get_foreign_keys(self, table: str) -> List[ForeignKeyInfo]:
        with self.conn.cursor() as cur:
            cur.execute(
                """
                SELECT
                  kcu.column_name,
                  ccu.table_name AS ref_table_name,
                  ccu.column_name AS ref_column_name
                FROM information_schema.table_constraints tc
                JOIN information_schema.key_column_usage kcu
                  ON tc.constraint_name = kcu.constraint_name
                 AND tc.table_schema = kcu.table_schema
                JOIN information_schema.constraint_column_usage ccu
                  ON ccu.constraint_name = tc.constraint_name
                 AND ccu.table_schema = tc.table_schema
                WHERE tc.table_schema = %s
                  AND tc.table_name = %s
                  AND tc.constraint_type = 'FOREIGN KEY'
                ORDER BY kcu.column_name
                """,
                (self.schema, table),
            )
            return [ForeignKeyInfo(table, c, rt, rc) for c, rt, rc in cur.fetchall()]

    def get_unique_columns(self, table: str) -> Set[str]:
        """Columns covered by a single-column UNIQUE or PRIMARY KEY constraint."""
        with self.conn.cursor() as cur:
            cur.execute(
                """
                WITH uniq AS (
                  SELECT
                    tc.table_schema,
                    tc.table_name,
                    tc.constraint_name,
                    COUNT(kcu.column_name) AS col_count
                  FROM information_schema.table_constraints tc
                  JOIN information_schema.key_column_usage kcu
                    ON tc.constraint_name = kcu.constraint_name
                   AND tc.table_schema = kcu.table_schema
                  WHERE tc.table_schema = %s
                    AND tc.table_name = %s
                    AND tc.constraint_type IN ('UNIQUE', 'PRIMARY KEY')
                  GROUP BY 1,2,3
                )
                SELECT kcu.column_name
                FROM uniq
                JOIN information_schema.key_column_usage kcu
                  ON uniq.constraint_name = kcu.constraint_name
                 AND uniq.table_schema = kcu.table_schema
                 AND uniq.table_name = kcu.table_name
                WHERE uniq.col_count = 1
                """,
                (self.schema, table),
            )
            return {r[0] for r in cur.fetchall()}

    def get_enum_values(self) -> Dict[str, List[str]]:
        with self.conn.cursor() as cur:
            cur.execute(
                """
                SELECT t.typname AS enum_name, e.enumlabel AS enum_value
                FROM pg_type t
                JOIN pg_enum e ON t.oid = e.enumtypid
                ORDER BY t.typname, e.enumsortorder
                """
            )
            out: Dict[str, List[str]] = {}
            for enum_name, enum_value in cur.fetchall():
                out.setdefault(enum_name.lower(), []).append(enum_value)
            return out

    def destroy(self) -> None:
        self.conn.close()
