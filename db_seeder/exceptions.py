"""Custom exceptions with helpful error messages."""


class DbSeederError(Exception):
    """
    Base exception for db-seeder errors.

    Attributes:
        entity_name: Plan entity being seeded when the error surfaced (if any)
        table_name: Target table being seeded when the error surfaced (if any)
    """

    entity_name: str | None = None
    table_name: str | None = None

    def attach_context(self, entity_name: str, table_name: str) -> None:
        """Record which entity/table was in progress, keeping the innermost one."""
        if self.entity_name is None:
            self.entity_name = entity_name
        if self.table_name is None:
            self.table_name = table_name


class SchemaNotFoundError(DbSeederError):
    """Schema does not exist in database."""

    def __init__(self, schema: str):
        super().__init__(
            f"Schema '{schema}' not found in database.\n\n"
            f"Suggestions:\n"
            f"1. Check schema name spelling ([database] schema_name in db-seeder.toml)\n"
            f"2. Check database connection settings"
        )


class ConnectionFailedError(DbSeederError):
    """Database connection could not be opened."""

    def __init__(self, reason: str):
        super().__init__(
            f"Could not connect to the database: {reason}\n\n"
            f"Suggestions:\n"
            f"1. Check [database] url in db-seeder.toml or DB_SEEDER_DATABASE__URL\n"
            f"2. Check that PostgreSQL is running and reachable"
        )


class SchemaFetchError(DbSeederError):
    """Catalog query failed while reading the database schema."""

    def __init__(self, schema: str, reason: str):
        super().__init__(
            f"Could not read schema '{schema}': {reason}\n\n"
            f"Suggestions:\n"
            f"1. Check that the role can read information_schema and pg_catalog\n"
            f"2. Check database connection settings"
        )


class TableNotFoundError(DbSeederError):
    """Table does not exist in schema."""

    def __init__(self, table: str, schema: str = "public"):
        super().__init__(
            f"Table '{table}' not found in schema '{schema}'.\n\n"
            f"Suggestions:\n"
            f"1. Check table name spelling in the plan (target_table)\n"
            f"2. Run 'db-seeder order' to see available tables"
        )


class CyclicDependencyError(DbSeederError):
    """Circular dependency detected in foreign key relationships."""

    def __init__(self, nodes: set[str]):
        self.nodes = set(nodes)
        nodes_str = ", ".join(sorted(nodes))
        super().__init__(
            f"Circular dependency detected involving: {nodes_str}\n\n"
            f"Suggestions:\n"
            f"1. Check foreign key relationships for cycles\n"
            f"2. Remove one of the entities in the cycle from the plan\n"
            f"3. Temporarily remove FK constraint, seed data, then re-add constraint"
        )


class UnknownGeneratorError(DbSeederError):
    """Field template names a generator kind outside the fixed vocabulary."""

    def __init__(self, kind: str, column: str):
        from db_seeder.generators.kinds import GeneratorKind

        self.kind = kind
        allowed = ", ".join(k.value for k in GeneratorKind)
        super().__init__(
            f"Unknown generator '{kind}' for column '{column}'.\n\n"
            f"Allowed generators: {allowed}"
        )


class InvalidTemplateError(DbSeederError):
    """Field template is missing a required parameter or has an unusable one."""

    def __init__(self, column: str, generator: str, reason: str):
        super().__init__(
            f"Invalid template for column '{column}' (generator '{generator}'): {reason}"
        )


class PoolNotFoundError(DbSeederError):
    """from_pool generator references a pool that was not materialized."""

    def __init__(self, pool_name: str, column: str):
        self.pool_name = pool_name
        super().__init__(
            f"Data pool '{pool_name}' not found (column '{column}').\n\n"
            f"Suggestions:\n"
            f"1. Declare the pool under data_pools in the plan\n"
            f"2. Provide values for it inline or in the pools file"
        )


class EmptyPoolError(PoolNotFoundError):
    """from_pool generator references a pool with no values."""

    def __init__(self, pool_name: str, column: str):
        self.pool_name = pool_name
        DbSeederError.__init__(
            self,
            f"Data pool '{pool_name}' is empty (column '{column}').\n\n"
            f"Suggestions:\n"
            f"1. Provide at least one value for the pool",
        )


class DependencyNotFoundError(DbSeederError):
    """fk generator references a table with no captured primary keys."""

    def __init__(self, referenced_table: str, column: str, empty: bool = False):
        self.referenced_table = referenced_table
        state = "has no generated rows" if empty else "has no primary key pool"
        super().__init__(
            f"Could not resolve foreign key '{column}': table '{referenced_table}' {state}.\n\n"
            f"Suggestions:\n"
            f"1. Add '{referenced_table}' to the plan and to seeding_plan\n"
            f"2. Check that '{referenced_table}' has a single-column primary key\n"
            f"3. Check that '{referenced_table}' is seeded with at least one row"
        )


class NullValueError(DbSeederError):
    """NULL destined for a NOT NULL column without a default."""

    def __init__(self, column: str, table: str):
        super().__init__(
            f"Column '{column}' in table '{table}' is NOT NULL and has no default, "
            f"but the generated value is NULL.\n\n"
            f"Suggestions:\n"
            f"1. Add a generator for '{column}' to the entity template\n"
            f"2. Check that fk parents were seeded with at least one row"
        )


class CoercionError(DbSeederError):
    """Value could not be converted to the column's storage type (strict policy)."""

    def __init__(self, column: str, pg_type: str, value: object):
        super().__init__(
            f"Cannot convert {value!r} to {pg_type} for column '{column}'."
        )


class UnsupportedColumnTypeError(DbSeederError):
    """Primary key column type has no read-back rule."""

    def __init__(self, column: str, pg_type: str, table: str):
        super().__init__(
            f"Unsupported primary key type '{pg_type}' for column '{column}' "
            f"in table '{table}'.\n\n"
            f"Supported types: text, character varying, character, uuid, "
            f"smallint, integer, bigint"
        )


class DatabaseError(DbSeederError):
    """Database statement failed; the in-flight transaction was rolled back."""

    def __init__(self, table: str, reason: str):
        super().__init__(f"Database error while inserting into '{table}': {reason}")


class PlanLoadError(DbSeederError):
    """Generation plan could not be read or validated."""


class PoolError(DbSeederError):
    """Pool contents could not be materialized."""
