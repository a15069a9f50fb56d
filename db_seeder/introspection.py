"""Schema introspection with caching."""

import logging

import psycopg
from psycopg import Connection

from db_seeder.dependency import DependencyGraph
from db_seeder.exceptions import SchemaFetchError, SchemaNotFoundError
from db_seeder.models import ColumnInfo, DbSchema, ForeignKeyInfo, TableInfo

logger = logging.getLogger(__name__)

SCHEMA_EXISTS_SQL = (
    "SELECT EXISTS(SELECT 1 FROM information_schema.schemata WHERE schema_name = %s)"
)

TABLES_SQL = """
    SELECT table_name
    FROM information_schema.tables
    WHERE table_schema = %s
      AND table_type = 'BASE TABLE'
    ORDER BY table_name
"""

COLUMNS_SQL = """
    SELECT column_name, data_type, is_nullable, column_default
    FROM information_schema.columns
    WHERE table_schema = %s
      AND table_name = %s
    ORDER BY ordinal_position
"""

# Read from the index catalog: composite keys return several rows
PRIMARY_KEY_SQL = """
    SELECT a.attname
    FROM pg_index i
    JOIN pg_class c ON c.oid = i.indrelid
    JOIN pg_namespace n ON n.oid = c.relnamespace
    JOIN pg_attribute a ON a.attrelid = i.indrelid
                       AND a.attnum = ANY(i.indkey)
    WHERE i.indisprimary
      AND n.nspname = %s
      AND c.relname = %s
"""

# Referenced columns are matched by position so composite keys pair up
FOREIGN_KEYS_SQL = """
    SELECT
        tc.table_name AS from_table,
        kcu.column_name AS from_column,
        ref.table_name AS to_table,
        ref.column_name AS to_column
    FROM information_schema.table_constraints AS tc
    JOIN information_schema.key_column_usage AS kcu
      ON tc.constraint_name = kcu.constraint_name
      AND tc.table_schema = kcu.table_schema
    JOIN information_schema.referential_constraints AS rc
      ON rc.constraint_name = tc.constraint_name
      AND rc.constraint_schema = tc.table_schema
    JOIN information_schema.key_column_usage AS ref
      ON ref.constraint_name = rc.unique_constraint_name
      AND ref.constraint_schema = rc.unique_constraint_schema
      AND ref.ordinal_position = kcu.position_in_unique_constraint
    WHERE tc.constraint_type = 'FOREIGN KEY'
      AND tc.table_schema = %s
    ORDER BY tc.table_name, tc.constraint_name, kcu.ordinal_position
"""



class SchemaIntrospector:
    """Introspect a PostgreSQL schema into an immutable DbSchema."""

    def __init__(self, conn: Connection, schema: str = "public"):
        self.conn = conn
        self.schema = schema
        self._schema_cache: DbSchema | None = None
        self._dependency_graph_cache: DependencyGraph | None = None

    def fetch(self) -> DbSchema:
        """
        Read tables, columns, primary keys and foreign keys (cached).

        Returns:
            Immutable DbSchema for the configured schema

        Raises:
            SchemaNotFoundError: If the schema does not exist
            SchemaFetchError: If any catalog query fails (no partial catalog)
        """
        if self._schema_cache is not None:
            return self._schema_cache

        try:
            self._validate_schema()
            tables = [
                TableInfo(
                    name=table_name,
                    columns=self.get_columns(table_name),
                    primary_key_column=self.get_primary_key(table_name),
                )
                for table_name in self.get_table_names()
            ]
            foreign_keys = self.get_foreign_keys()
        except psycopg.Error as e:
            self._close_read_transaction()
            raise SchemaFetchError(self.schema, str(e)) from e

        self._close_read_transaction()
        catalog = DbSchema.from_tables(tables, foreign_keys, name=self.schema)
        logger.info(
            f"Read schema '{self.schema}': {len(tables)} tables, "
            f"{len(foreign_keys)} foreign keys"
        )
        self._schema_cache = catalog
        return catalog

    def _validate_schema(self) -> None:
        """Validate that schema exists in database."""
        with self.conn.cursor() as cur:
            cur.execute(SCHEMA_EXISTS_SQL, (self.schema,))
            exists = cur.fetchone()[0]
        if not exists:
            self._close_read_transaction()
            raise SchemaNotFoundError(self.schema)

    def _close_read_transaction(self) -> None:
        # Catalog reads open an implicit transaction; end it before seeding
        try:
            self.conn.rollback()
        except psycopg.Error as e:
            logger.warning(f"Could not close catalog read transaction: {e}")

    def get_table_names(self) -> list[str]:
        """Get base table names in schema, sorted."""
        with self.conn.cursor() as cur:
            cur.execute(TABLES_SQL, (self.schema,))
            rows = cur.fetchall()
        return [row[0] for row in rows]

    def get_columns(self, table_name: str) -> list[ColumnInfo]:
        """Get all columns for a table in ordinal order."""
        with self.conn.cursor() as cur:
            cur.execute(COLUMNS_SQL, (self.schema, table_name))
            rows = cur.fetchall()

        return [
            ColumnInfo(
                name=row[0],
                pg_type=row[1],
                is_nullable=row[2] == "YES",
                default_value=row[3],
            )
            for row in rows
        ]

    def get_primary_key(self, table_name: str) -> str | None:
        """
        Get the single-column primary key of a table.

        Returns:
            Column name, or None for tables without a PK or with a composite PK
        """
        with self.conn.cursor() as cur:
            cur.execute(PRIMARY_KEY_SQL, (self.schema, table_name))
            rows = cur.fetchall()

        if len(rows) != 1:
            if len(rows) > 1:
                logger.info(
                    f"Table '{table_name}' has a composite primary key; "
                    f"treating it as key-less"
                )
            return None
        return rows[0][0]

    def get_foreign_keys(self) -> list[ForeignKeyInfo]:
        """Get all foreign keys in schema."""
        with self.conn.cursor() as cur:
            cur.execute(FOREIGN_KEYS_SQL, (self.schema,))
            rows = cur.fetchall()

        return [
            ForeignKeyInfo(
                from_table=row[0],
                from_column=row[1],
                to_table=row[2],
                to_column=row[3],
            )
            for row in rows
        ]

    def get_dependency_graph(self) -> DependencyGraph:
        """Build the table dependency graph (cached)."""
        if self._dependency_graph_cache is None:
            self._dependency_graph_cache = DependencyGraph.from_schema(self.fetch())
        return self._dependency_graph_cache

    def topological_sort(self) -> list[str]:
        """Sort tables in dependency order."""
        return self.get_dependency_graph().topological_sort()

    def clear_cache(self) -> None:
        """Clear cached introspection data."""
        self._schema_cache = None
        self._dependency_graph_cache = None
