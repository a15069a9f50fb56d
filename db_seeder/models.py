"""Data models and type definitions."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from db_seeder.exceptions import TableNotFoundError

# Generated row: column name -> generic value
GeneratedEntity = dict[str, Any]

# Table name -> primary keys captured so far in this run
PrimaryKeyPool = dict[str, list[Any]]

# Pool name -> materialized values
DataPools = dict[str, list[str]]


@dataclass(frozen=True)
class ColumnInfo:
    """
    Column metadata from database introspection.

    Attributes:
        name: Column name
        pg_type: PostgreSQL data type as reported by information_schema
        is_nullable: Whether column allows NULL values
        default_value: Database default value expression (if any)
    """

    name: str
    pg_type: str
    is_nullable: bool
    default_value: str | None = None

    @property
    def has_default(self) -> bool:
        return self.default_value is not None


@dataclass(frozen=True)
class ForeignKeyInfo:
    """
    Foreign key relationship metadata.

    Attributes:
        from_table: Child table holding the foreign key column
        from_column: Foreign key column in the child table
        to_table: Parent table being referenced
        to_column: Referenced column in the parent table (usually PK)
    """

    from_table: str
    from_column: str
    to_table: str
    to_column: str

    @property
    def is_self_referencing(self) -> bool:
        return self.from_table == self.to_table


@dataclass(frozen=True)
class TableInfo:
    """
    Table metadata.

    Attributes:
        name: Table name
        columns: Columns in ordinal order
        primary_key_column: Single-column primary key name, None for key-less
            tables and composite primary keys
    """

    name: str
    columns: tuple[ColumnInfo, ...]
    primary_key_column: str | None = None

    def __post_init__(self):
        # Accept lists from callers, store an immutable tuple
        object.__setattr__(self, "columns", tuple(self.columns))
        names = [c.name for c in self.columns]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate column names in table '{self.name}'")

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    def get_column(self, name: str) -> ColumnInfo | None:
        """Get column metadata by name, None if the table has no such column."""
        for col in self.columns:
            if col.name == name:
                return col
        return None

    @property
    def pk_column(self) -> ColumnInfo | None:
        """
        Get primary key column metadata.

        Returns:
            ColumnInfo of the primary key or None if no single-column PK
        """
        if self.primary_key_column is None:
            return None
        return self.get_column(self.primary_key_column)


@dataclass(frozen=True)
class DbSchema:
    """
    Immutable catalog of a database schema.

    Attributes:
        tables: Table name -> TableInfo
        foreign_keys: Every foreign key edge in the schema
        name: Database schema the catalog was read from
    """

    tables: Mapping[str, TableInfo]
    foreign_keys: tuple[ForeignKeyInfo, ...] = ()
    name: str = "public"

    def __post_init__(self):
        object.__setattr__(self, "tables", MappingProxyType(dict(self.tables)))
        object.__setattr__(self, "foreign_keys", tuple(self.foreign_keys))

    @classmethod
    def from_tables(
        cls,
        tables: list[TableInfo],
        foreign_keys: list[ForeignKeyInfo] | None = None,
        name: str = "public",
    ) -> "DbSchema":
        """Build a catalog from a list of tables (handy for offline use and tests)."""
        return cls(
            tables={t.name: t for t in tables},
            foreign_keys=tuple(foreign_keys or ()),
            name=name,
        )

    @property
    def table_names(self) -> list[str]:
        return list(self.tables.keys())

    def has_table(self, name: str) -> bool:
        return name in self.tables

    def get_table(self, name: str) -> TableInfo:
        """
        Get table metadata.

        Raises:
            TableNotFoundError: If table is not part of the catalog
        """
        try:
            return self.tables[name]
        except KeyError:
            raise TableNotFoundError(name, self.name) from None

    def foreign_keys_from(self, table: str) -> list[ForeignKeyInfo]:
        """Get foreign keys declared on a (child) table."""
        return [fk for fk in self.foreign_keys if fk.from_table == table]


@dataclass
class SeedReport:
    """
    Outcome of a seeding run.

    Attributes:
        order: Entity names in the order they were processed
        row_counts: Table name -> rows inserted by this run
        primary_keys: Final primary key pool (table -> keys)
    """

    order: list[str] = field(default_factory=list)
    row_counts: dict[str, int] = field(default_factory=dict)
    primary_keys: PrimaryKeyPool = field(default_factory=dict)

    @property
    def total_rows(self) -> int:
        return sum(self.row_counts.values())
