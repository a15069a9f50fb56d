"""CLI commands for db-seeder."""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import click
import psycopg

from db_seeder.backends import DirectBackend, StagingBackend
from db_seeder.config import CONFIG_FILENAME, Config, SeedingTask
from db_seeder.dependency import DependencyGraph
from db_seeder.exceptions import ConnectionFailedError, DbSeederError
from db_seeder.generators import EntityGenerator, GeneratorKind
from db_seeder.introspection import SchemaIntrospector
from db_seeder.models import DbSchema
from db_seeder.plan import load_plan
from db_seeder.pools import StaticPoolSource, load_pools_file, resolve_pools
from db_seeder.seeder import Seeder


@contextmanager
def _connect(config: Config) -> Iterator[psycopg.Connection]:
    try:
        conn = psycopg.connect(config.database.url, autocommit=False)
    except psycopg.Error as e:
        raise ConnectionFailedError(str(e).strip()) from e
    with conn:
        yield conn


def _fetch_schema(conn, config: Config) -> DbSchema:
    return SchemaIntrospector(conn, config.database.schema_name).fetch()


def _load_config(path: str | None) -> Config:
    try:
        if path:
            return Config.from_toml(path)
        return Config.find_and_load()
    except (FileNotFoundError, ValueError) as e:
        # ValueError covers malformed TOML and invalid settings
        raise click.ClickException(str(e)) from e


def _fail(error: DbSeederError) -> None:
    click.echo(f"Error: {error}", err=True)
    if error.entity_name:
        click.echo(
            f"  while seeding entity '{error.entity_name}' (table '{error.table_name}')",
            err=True,
        )
    sys.exit(1)


@click.group()
@click.version_option(package_name="db-seeder")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help=f"Config file (default: nearest {CONFIG_FILENAME})")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """db-seeder - fill a PostgreSQL schema with referentially consistent fake data."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@cli.command()
@click.argument("path", type=click.Path(dir_okay=False), default=CONFIG_FILENAME)
@click.option("--url", default=None, help="PostgreSQL connection URL")
@click.option("--force", is_flag=True, help="Overwrite an existing file")
def init(path: str, url: str | None, force: bool) -> None:
    """Write a starter configuration file."""
    target = Path(path)
    if target.exists() and not force:
        click.echo(f"Error: {target} already exists (use --force to overwrite)", err=True)
        sys.exit(1)

    config = Config()
    if url:
        config.database.url = url
    config.to_toml(target)
    click.echo(f"Wrote {target}")


@cli.command("validate-plan")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
def validate_plan(path: str) -> None:
    """Load a plan and report its entities and generators."""
    try:
        plan = load_plan(path)
    except DbSeederError as e:
        _fail(e)
        return

    click.echo(f"Theme: {plan.theme or '(none)'}")
    click.echo(f"Pools: {', '.join(plan.data_pools) or '(none)'}")
    unknown = []
    for template in plan.entity_templates:
        click.echo(f"{template.entity_name} -> {template.target_table}")
        for field in template.fields:
            marker = ""
            if GeneratorKind.parse(field.generator) is None:
                marker = "  <- unknown generator"
                unknown.append(field.generator)
            click.echo(f"  {field.column_name}: {field.generator}{marker}")

    if unknown:
        click.echo(f"Error: unknown generators: {', '.join(sorted(set(unknown)))}", err=True)
        sys.exit(1)


@cli.command()
@click.pass_context
def order(ctx: click.Context) -> None:
    """Print tables in dependency order with their parents."""
    config = _load_config(ctx.obj["config_path"])
    try:
        with _connect(config) as conn:
            schema = _fetch_schema(conn, config)
        graph = DependencyGraph.from_schema(schema)
        tables = graph.topological_sort()
    except DbSeederError as e:
        _fail(e)
        return

    for i, table in enumerate(tables, start=1):
        parents = graph.parents(table)
        suffix = f" (depends on: {', '.join(parents)})" if parents else ""
        click.echo(f"{i:3d}. {table}{suffix}")


@cli.command()
@click.argument("tables", nargs=-1, required=True)
@click.option("--rows", type=int, default=None, help="Rows per table (default: default_rows)")
@click.pass_context
def deps(ctx: click.Context, tables: tuple[str, ...], rows: int | None) -> None:
    """Print seeding_plan entries for TABLES and everything they depend on."""
    config = _load_config(ctx.obj["config_path"])
    row_count = config.default_rows if rows is None else rows
    try:
        with _connect(config) as conn:
            schema = _fetch_schema(conn, config)
        for table in tables:
            schema.get_table(table)
        needed = DependencyGraph.from_schema(schema).closure(list(tables))
    except DbSeederError as e:
        _fail(e)
        return

    for table in needed:
        click.echo("[[seeding_plan]]")
        click.echo(f'table = "{table}"')
        click.echo(f"rows = {row_count}")
        click.echo("")


@cli.command()
@click.option("--plan", "plan_path", type=click.Path(exists=True, dir_okay=False), help="Plan file (default: plan_file from config)")
@click.option("--pools", "pools_path", type=click.Path(exists=True, dir_okay=False), help="Pool values file (default: pools_file from config)")
@click.option("--seed", type=int, default=None, help="Random seed (overrides config)")
@click.option("--strict-fk", is_flag=True, help="Fail when an fk parent table has no rows")
@click.option("--dry-run", is_flag=True, help="Generate against the live schema but keep rows in memory")
@click.pass_context
def seed(
    ctx: click.Context,
    plan_path: str | None,
    pools_path: str | None,
    seed: int | None,
    strict_fk: bool,
    dry_run: bool,
) -> None:
    """Generate and insert rows for every task in seeding_plan."""
    config = _load_config(ctx.obj["config_path"])

    plan_path = plan_path or config.plan_file
    if not plan_path:
        raise click.UsageError("No plan given: use --plan or set plan_file in the config")
    tasks: list[SeedingTask] = config.seeding_plan
    if not tasks:
        raise click.UsageError("seeding_plan in the config is empty")

    pools_path = pools_path or config.pools_file
    try:
        plan = load_plan(plan_path)
        pool_values = resolve_pools(
            plan,
            StaticPoolSource(load_pools_file(pools_path) if pools_path else None),
            max_workers=config.pools.max_workers,
        )
        generator = EntityGenerator(
            seed=config.generation.seed if seed is None else seed,
            strict_fk=config.generation.strict_fk or strict_fk,
            locale=config.generation.locale,
        )
        policy = config.coercion.to_policy()

        with _connect(config) as conn:
            schema = _fetch_schema(conn, config)
            if dry_run:
                backend = StagingBackend(policy)
            else:
                backend = DirectBackend(conn, schema.name, policy)
            report = Seeder(schema, backend, generator).run(plan, tasks, pool_values)
    except DbSeederError as e:
        _fail(e)
        return

    if plan.theme:
        click.echo(f"Theme: {plan.theme}")
    for table, count in report.row_counts.items():
        click.echo(f"  {table}: {count} rows")
    verb = "Generated" if dry_run else "Inserted"
    click.echo(f"{verb} {report.total_rows} rows into {len(report.row_counts)} tables")


if __name__ == "__main__":
    cli()
