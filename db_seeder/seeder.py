"""Seeder: runs a generation plan against a schema in dependency order."""

import logging
from collections.abc import Sequence
from typing import Any, Protocol

from db_seeder.coercion import primary_key_reader
from db_seeder.config import SeedingTask
from db_seeder.dependency import DependencyGraph
from db_seeder.exceptions import DbSeederError
from db_seeder.generators import EntityGenerator
from db_seeder.models import DataPools, DbSchema, GeneratedEntity, PrimaryKeyPool, SeedReport, TableInfo
from db_seeder.plan import ArchitecturalPlan, EntityTemplate

logger = logging.getLogger(__name__)


class Backend(Protocol):
    """What the seeder needs from a persistence backend."""

    def transaction(self, table_name: str): ...

    def insert_row(self, table_info: TableInfo, row: GeneratedEntity) -> Any | None: ...


class Seeder:
    """
    Orchestrate seed generation across the entities of a plan.

    Entities run strictly one after another in topological order; the rows
    of one entity are generated and inserted one by one inside a single
    transaction. Primary keys captured for an entity's table become visible
    to fk generators of every later entity.

    Example:
        >>> seeder = Seeder(schema, DirectBackend(conn))
        >>> report = seeder.run(plan, tasks=[SeedingTask(table="users", rows=3)], pools={})
        >>> report.row_counts
        {'users': 3}
    """

    def __init__(self, schema: DbSchema, backend: Backend, generator: EntityGenerator | None = None):
        """
        Initialize Seeder.

        Args:
            schema: Catalog of the target database
            backend: DirectBackend or StagingBackend
            generator: Entity generator (default: unseeded, lenient fk)
        """
        self.schema = schema
        self.backend = backend
        self.generator = generator or EntityGenerator()

    def plan_order(self, plan: ArchitecturalPlan) -> list[str]:
        """
        Validate the plan against the schema and sort its entities.

        Returns:
            Entity names, parents before children

        Raises:
            TableNotFoundError: If an entity targets a table missing from the schema
            CyclicDependencyError: If entity dependencies form a cycle
        """
        for template in plan.entity_templates:
            self.schema.get_table(template.target_table)
        return DependencyGraph.from_plan(plan, self.schema).topological_sort()

    def run(
        self,
        plan: ArchitecturalPlan,
        tasks: Sequence[SeedingTask],
        pools: DataPools,
    ) -> SeedReport:
        """
        Execute the plan.

        Args:
            plan: Entity templates and pool declarations
            tasks: Which tables to seed and how many rows each
            pools: Materialized value pools

        Returns:
            SeedReport with order, row counts and captured primary keys

        Raises:
            DbSeederError: Any failure; entity_name/table_name identify the
                entity in progress. Entities committed before it stay committed.
        """
        order = self.plan_order(plan)
        logger.info(f"Entity order: {' -> '.join(order) if order else '(empty)'}")

        tasks_by_table: dict[str, SeedingTask] = {}
        for task in tasks:
            tasks_by_table.setdefault(task.table, task)
        unused = set(tasks_by_table) - set(plan.target_tables)
        if unused:
            logger.warning(f"No entity in plan for tasks: {', '.join(sorted(unused))}")

        report = SeedReport()
        primary_keys: PrimaryKeyPool = {}

        for entity_name in order:
            template = plan.get_entity(entity_name)
            task = tasks_by_table.get(template.target_table)
            if task is None:
                logger.warning(
                    f"Skipping entity '{entity_name}': no task for table '{template.target_table}'"
                )
                continue

            report.order.append(entity_name)
            table_info = self.schema.get_table(template.target_table)
            try:
                keys = self.seed_entity(template, table_info, task.rows, pools, primary_keys)
            except DbSeederError as e:
                e.attach_context(entity_name, table_info.name)
                logger.error(
                    f"Seeding failed for entity '{entity_name}' (table '{table_info.name}'); "
                    f"its rows were rolled back"
                )
                raise

            report.row_counts[table_info.name] = report.row_counts.get(table_info.name, 0) + task.rows
            if table_info.primary_key_column is not None:
                # A later entity for the same table replaces these keys
                primary_keys[table_info.name] = keys

        report.primary_keys = primary_keys
        logger.info(f"Seeding complete: {report.total_rows} rows in {len(report.row_counts)} tables")
        return report

    def seed_entity(
        self,
        template: EntityTemplate,
        table_info: TableInfo,
        rows: int,
        pools: DataPools,
        primary_keys: PrimaryKeyPool,
    ) -> list[Any]:
        """
        Generate and insert the rows of one entity in one transaction.

        Args:
            template: Entity template
            table_info: Target table metadata
            rows: Number of rows
            pools: Materialized value pools
            primary_keys: Keys captured for earlier entities (read-only here)

        Returns:
            Primary keys of the inserted rows (empty for key-less tables)
        """
        # Fail before the first insert if the PK cannot be read back
        primary_key_reader(table_info)

        logger.info(
            f"Seeding table '{table_info.name}' ({rows} rows) with entity '{template.entity_name}'"
        )
        table_keys: list[Any] = []
        # Self-referencing rows may point at siblings inserted earlier
        available = dict(primary_keys)
        if table_info.primary_key_column is not None:
            available[table_info.name] = table_keys

        with self.backend.transaction(table_info.name):
            for _ in range(rows):
                entity = self.generator.generate_entity(template.fields, pools, available)
                pk = self.backend.insert_row(table_info, entity)
                if table_info.primary_key_column is not None:
                    table_keys.append(pk)

        logger.info(f"Committed {rows} rows into '{table_info.name}'")
        return table_keys
