"""Data generators for field templates."""

from db_seeder.generators.entity_generator import EntityGenerator
from db_seeder.generators.kinds import GeneratorKind

__all__ = ["EntityGenerator", "GeneratorKind"]
