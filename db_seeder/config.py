"""
Configuration management for db-seeder.

Loads and validates configuration from db-seeder.toml files using Pydantic.
Environment variables (prefix DB_SEEDER_, nested with __, also read from a
.env file) override values from the file, e.g. DB_SEEDER_DATABASE__URL.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from db_seeder.coercion import CoercionPolicy

CONFIG_FILENAME = "db-seeder.toml"


class SeedingTask(BaseModel):
    """What to seed: one table and how many rows."""

    model_config = ConfigDict(extra="ignore")

    table: str
    rows: int = Field(ge=0)


class DatabaseConfig(BaseModel):
    """Database connection configuration."""

    url: str = Field(
        default="postgresql://localhost/postgres",
        description="PostgreSQL connection URL",
    )
    schema_name: str = Field(default="public", description="Schema to introspect and seed")


class GenerationConfig(BaseModel):
    """Row generation configuration."""

    seed: Optional[int] = Field(default=None, description="Random seed for reproducible runs")
    strict_fk: bool = Field(
        default=False,
        description="Fail instead of writing NULL when an fk parent table has no rows",
    )
    locale: str = Field(default="en_US", description="Faker locale for words and sentences")


class CoercionConfig(BaseModel):
    """Fallbacks for values that do not fit the column type."""

    integer_fallback: int = Field(default=0, description="Bound for unparsable integers")
    boolean_fallback: bool = Field(default=False, description="Bound for unparsable booleans")
    strict: bool = Field(default=False, description="Fail instead of using fallbacks")

    def to_policy(self) -> CoercionPolicy:
        """Convert to CoercionPolicy instance."""
        return CoercionPolicy(
            integer_fallback=self.integer_fallback,
            boolean_fallback=self.boolean_fallback,
            strict=self.strict,
        )


class PoolsConfig(BaseModel):
    """Pool materialization configuration."""

    max_workers: int = Field(default=4, ge=1, description="Concurrent pool fetches")


class Config(BaseSettings):
    """Main configuration for db-seeder."""

    model_config = SettingsConfigDict(
        env_prefix="DB_SEEDER_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    coercion: CoercionConfig = Field(default_factory=CoercionConfig)
    pools: PoolsConfig = Field(default_factory=PoolsConfig)
    seeding_plan: list[SeedingTask] = Field(default_factory=list)
    default_rows: int = Field(default=10, ge=0, description="Rows per table suggested by `deps`")
    plan_file: Optional[str] = Field(default=None, description="Generation plan (JSON or YAML)")
    pools_file: Optional[str] = Field(default=None, description="Pool values (JSON or YAML)")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Environment beats values loaded from the TOML file
        return env_settings, dotenv_settings, init_settings, file_secret_settings

    @classmethod
    def from_toml(cls, path: Path | str) -> Config:
        """
        Load configuration from TOML file.

        Args:
            path: Path to db-seeder.toml file

        Returns:
            Config instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config file is invalid
        """
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path, "rb") as f:
            data = tomllib.load(f)

        config = cls(**data)
        # Relative plan/pools paths are relative to the config file
        base = config_path.resolve().parent
        if config.plan_file and not Path(config.plan_file).is_absolute():
            config.plan_file = str(base / config.plan_file)
        if config.pools_file and not Path(config.pools_file).is_absolute():
            config.pools_file = str(base / config.pools_file)
        return config

    @classmethod
    def find_and_load(cls, start_dir: Optional[Path] = None) -> Config:
        """
        Find and load configuration from db-seeder.toml.

        Searches for db-seeder.toml starting from start_dir and walking up
        parent directories until found or reaching filesystem root.

        Args:
            start_dir: Directory to start search (defaults to current directory)

        Returns:
            Config instance

        Raises:
            FileNotFoundError: If no config file found
        """
        if start_dir is None:
            start_dir = Path.cwd()

        current = Path(start_dir).resolve()

        # Walk up directory tree
        while True:
            config_path = current / CONFIG_FILENAME
            if config_path.exists():
                return cls.from_toml(config_path)

            parent = current.parent
            if parent == current:
                break
            current = parent

        raise FileNotFoundError(
            f"No {CONFIG_FILENAME} found in {start_dir} or parent directories. "
            f"Run 'db-seeder init' to create one."
        )

    def to_toml(self, path: Path | str) -> None:
        """
        Write configuration to TOML file.

        Args:
            path: Path to write db-seeder.toml
        """
        config_path = Path(path)

        lines = [
            "# db-seeder configuration",
            "",
            "[database]",
            f'url = "{self.database.url}"',
            f'schema_name = "{self.database.schema_name}"',
            "",
            "[generation]",
        ]
        if self.generation.seed is not None:
            lines.append(f"seed = {self.generation.seed}")
        lines += [
            f"strict_fk = {str(self.generation.strict_fk).lower()}",
            f'locale = "{self.generation.locale}"',
            "",
            "[coercion]",
            f"integer_fallback = {self.coercion.integer_fallback}",
            f"boolean_fallback = {str(self.coercion.boolean_fallback).lower()}",
            f"strict = {str(self.coercion.strict).lower()}",
            "",
            "[pools]",
            f"max_workers = {self.pools.max_workers}",
            "",
        ]
        # Top-level keys must precede the [[seeding_plan]] tables
        top_level = [f"default_rows = {self.default_rows}"]
        if self.plan_file:
            top_level.append(f'plan_file = "{self.plan_file}"')
        if self.pools_file:
            top_level.append(f'pools_file = "{self.pools_file}"')
        lines = top_level + [""] + lines

        for task in self.seeding_plan:
            lines += ["[[seeding_plan]]", f'table = "{task.table}"', f"rows = {task.rows}", ""]

        config_path.write_text("\n".join(lines))
