"""Staging backend - in-memory backend for seeding without a database."""

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from db_seeder.coercion import (
    DEFAULT_POLICY,
    PK_TEXT_TYPES,
    CoercionPolicy,
    bind_row,
    primary_key_reader,
)
from db_seeder.exceptions import DatabaseError
from db_seeder.models import GeneratedEntity, TableInfo


class StagingBackend:
    """
    In-memory backend for running seed plans without database.

    Simulates database behavior:
    - Applies the same type coercion as DirectBackend
    - Generates missing primary keys (sequential integers, or UUID text)
    - Rejects unknown columns and NOT NULL columns left without value or default
    - Buffers rows per transaction; only committed rows are visible

    Use case: Fast unit tests, offline development, prototyping plans.
    """

    def __init__(self, policy: CoercionPolicy = DEFAULT_POLICY):
        """Initialize staging backend with empty state."""
        self.policy = policy
        self._data: dict[str, list[dict[str, Any]]] = {}
        self._pk_sequences: dict[str, int] = {}
        self._pending: list[tuple[str, dict[str, Any]]] | None = None
        self.statements_executed = 0
        self.commits = 0
        self.rollbacks = 0

    @contextmanager
    def transaction(self, table_name: str) -> Iterator[None]:
        """Buffer inserts; publish them only if the block succeeds."""
        self._pending = []
        try:
            yield
        except Exception:
            self._pending = None
            self.rollbacks += 1
            raise
        for name, row in self._pending:
            self._data.setdefault(name, []).append(row)
        self._pending = None
        self.commits += 1

    def insert_row(self, table_info: TableInfo, row: GeneratedEntity) -> Any | None:
        """
        Simulate an INSERT (coerce, fill PK, store).

        Returns:
            Primary key of the stored row, None for key-less tables
        """
        reader = primary_key_reader(table_info)
        bound = bind_row(table_info, row, self.policy)
        self.statements_executed += 1

        complete_row: dict[str, Any] = {}
        for item in bound:
            if table_info.get_column(item.column) is None:
                raise DatabaseError(
                    table_info.name, f'column "{item.column}" does not exist'
                )
            complete_row[item.column] = item.value

        pk_name = table_info.primary_key_column
        if pk_name is not None and complete_row.get(pk_name) is None:
            complete_row[pk_name] = self._next_pk(table_info)

        for col in table_info.columns:
            if col.name in complete_row or col.is_nullable or col.has_default:
                continue
            raise DatabaseError(
                table_info.name,
                f'null value in column "{col.name}" violates not-null constraint',
            )

        if self._pending is None:
            self._data.setdefault(table_info.name, []).append(complete_row)
        else:
            self._pending.append((table_info.name, complete_row))

        if reader is None:
            return None
        return reader(complete_row[pk_name])

    def _next_pk(self, table_info: TableInfo) -> Any:
        pk_col = table_info.pk_column
        if pk_col is not None and pk_col.pg_type in PK_TEXT_TYPES:
            return str(uuid.uuid4())
        current = self._pk_sequences.get(table_info.name, 1)
        self._pk_sequences[table_info.name] = current + 1
        return current

    def get_data(self, table_name: str) -> list[dict[str, Any]]:
        """
        Get committed in-memory rows for inspection.

        Args:
            table_name: Table name

        Returns:
            List of row dicts for the table
        """
        return self._data.get(table_name, [])

    def clear(self):
        """Clear all in-memory data and sequences."""
        self._data.clear()
        self._pk_sequences.clear()
        self.statements_executed = 0
        self.commits = 0
        self.rollbacks = 0
