"""Direct INSERT backend - generates and executes SQL directly."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import psycopg
from psycopg import Connection

from db_seeder.coercion import DEFAULT_POLICY, BoundValue, CoercionPolicy, bind_row, primary_key_reader
from db_seeder.exceptions import DatabaseError
from db_seeder.models import GeneratedEntity, TableInfo

logger = logging.getLogger(__name__)


def quote_ident(name: str) -> str:
    """Quote an SQL identifier."""
    return '"' + name.replace('"', '""') + '"'


def _param_ident(name: str) -> str:
    # Statements run with parameters, so a literal % must be doubled
    return quote_ident(name).replace("%", "%%")


def build_insert_sql(schema: str, table_info: TableInfo, bound: list[BoundValue]) -> str:
    """
    Build the INSERT statement for one row.

    Identifiers are escaped for parameterized execution ('%' becomes '%%').
    Tables with a single-column primary key get a RETURNING clause for it;
    a row with no columns uses DEFAULT VALUES.
    """
    target = f"{_param_ident(schema)}.{_param_ident(table_info.name)}"
    if bound:
        columns_list = ", ".join(_param_ident(b.column) for b in bound)
        placeholders = ", ".join(b.placeholder for b in bound)
        sql = f"INSERT INTO {target} ({columns_list}) VALUES ({placeholders})"
    else:
        sql = f"INSERT INTO {target} DEFAULT VALUES"

    if table_info.primary_key_column is not None:
        sql += f" RETURNING {_param_ident(table_info.primary_key_column)}"
    return sql


class DirectBackend:
    """
    Execute seed inserts using direct INSERT statements.

    Uses PostgreSQL's RETURNING clause to capture primary keys (including
    database-generated ones) after insertion. Rows of one table are written
    inside transaction(): commit after the last row, rollback on any error.
    """

    def __init__(self, conn: Connection, schema: str = "public", policy: CoercionPolicy = DEFAULT_POLICY):
        """
        Initialize backend.

        Args:
            conn: PostgreSQL connection (autocommit off)
            schema: Schema name for qualified table names
            policy: Fallbacks for unparsable integer/boolean values
        """
        self.conn = conn
        self.schema = schema
        self.policy = policy
        self.statements_executed = 0

    @contextmanager
    def transaction(self, table_name: str) -> Iterator[None]:
        """
        Run a batch of inserts atomically.

        Raises:
            DatabaseError: If the commit itself fails
        """
        try:
            yield
        except Exception:
            self.conn.rollback()
            logger.debug(f"Rolled back inserts into '{table_name}'")
            raise
        try:
            self.conn.commit()
        except psycopg.Error as e:
            raise DatabaseError(table_name, str(e)) from e

    def insert_row(self, table_info: TableInfo, row: GeneratedEntity) -> Any | None:
        """
        Insert one row.

        Args:
            table_info: Table metadata
            row: Generated column values

        Returns:
            The row's primary key (converted by column type), or None for
            tables without a single-column primary key

        Raises:
            DatabaseError: If the statement fails
            NullValueError: If a NOT NULL column receives NULL
            UnsupportedColumnTypeError: If the PK type cannot be read back
        """
        reader = primary_key_reader(table_info)
        bound = bind_row(table_info, row, self.policy)
        sql = build_insert_sql(self.schema, table_info, bound)
        values = [b.value for b in bound]

        logger.debug(f"{sql} {values!r}")
        try:
            with self.conn.cursor() as cur:
                cur.execute(sql, values)
                self.statements_executed += 1
                if reader is None:
                    return None
                result = cur.fetchone()
        except psycopg.Error as e:
            raise DatabaseError(table_info.name, str(e)) from e

        if result is None:
            raise DatabaseError(table_info.name, "INSERT ... RETURNING returned no row")
        return reader(result[0])
