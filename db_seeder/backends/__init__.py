"""Backend implementations for seed data execution."""

from db_seeder.backends.direct import DirectBackend
from db_seeder.backends.staging import StagingBackend

__all__ = ["DirectBackend", "StagingBackend"]
