"""
db-seeder - Plan-Driven Seed Data for PostgreSQL

Introspects a PostgreSQL schema, orders tables by their foreign keys, and
inserts generated rows whose references always point at existing parents.
"""

from db_seeder.backends import DirectBackend, StagingBackend
from db_seeder.coercion import CoercionPolicy
from db_seeder.config import Config, SeedingTask
from db_seeder.dependency import DependencyGraph
from db_seeder.exceptions import DbSeederError
from db_seeder.generators import EntityGenerator, GeneratorKind
from db_seeder.introspection import SchemaIntrospector
from db_seeder.models import ColumnInfo, DbSchema, ForeignKeyInfo, SeedReport, TableInfo
from db_seeder.plan import ArchitecturalPlan, EntityTemplate, FieldTemplate, load_plan
from db_seeder.seeder import Seeder

__version__ = "0.1.0"

__all__ = [
    "Seeder",
    "SchemaIntrospector",
    "DependencyGraph",
    "EntityGenerator",
    "GeneratorKind",
    "DirectBackend",
    "StagingBackend",
    "CoercionPolicy",
    "Config",
    "SeedingTask",
    "ArchitecturalPlan",
    "EntityTemplate",
    "FieldTemplate",
    "load_plan",
    "ColumnInfo",
    "ForeignKeyInfo",
    "TableInfo",
    "DbSchema",
    "SeedReport",
    "DbSeederError",
]
