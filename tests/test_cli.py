"""Tests for the db-seeder command line."""

from contextlib import contextmanager

import psycopg
import pytest
from click.testing import CliRunner

from db_seeder.cli import main
from db_seeder.config import CONFIG_FILENAME, Config

PLAN_YAML = """
theme: blog
data_pools:
  first_names:
    values: [Ann, Bob]
entity_templates:
  - entity_name: posts
    target_table: posts
    fields:
      - {column_name: author_id, generator: fk, params: {references: users}}
      - {column_name: title, generator: sentence}
  - entity_name: users
    target_table: users
    fields:
      - {column_name: name, generator: from_pool, params: {pool_name: first_names}}
"""


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def project(tmp_path, monkeypatch, blog_schema):
    """Config + plan on disk, database replaced by the in-memory blog schema."""
    monkeypatch.chdir(tmp_path)
    (tmp_path / "plan.yaml").write_text(PLAN_YAML)
    (tmp_path / CONFIG_FILENAME).write_text(
        'plan_file = "plan.yaml"\n'
        "default_rows = 4\n\n"
        "[generation]\nseed = 1\n\n"
        '[[seeding_plan]]\ntable = "users"\nrows = 2\n\n'
        '[[seeding_plan]]\ntable = "posts"\nrows = 3\n'
    )

    @contextmanager
    def fake_connect(config):
        yield None

    monkeypatch.setattr(main, "_connect", fake_connect)
    monkeypatch.setattr(main, "_fetch_schema", lambda conn, config: blog_schema)
    return tmp_path


def test_help(runner):
    result = runner.invoke(main.cli, ["--help"])

    assert result.exit_code == 0
    for command in ["init", "seed", "order", "deps", "validate-plan"]:
        assert command in result.output


def test_init_writes_config(runner, tmp_path):
    target = tmp_path / CONFIG_FILENAME

    result = runner.invoke(main.cli, ["init", str(target), "--url", "postgresql://me@host/db"])

    assert result.exit_code == 0
    assert Config.from_toml(target).database.url == "postgresql://me@host/db"

    again = runner.invoke(main.cli, ["init", str(target)])
    assert again.exit_code == 1
    assert "already exists" in again.output

    forced = runner.invoke(main.cli, ["init", str(target), "--force"])
    assert forced.exit_code == 0


def test_validate_plan(runner, tmp_path):
    path = tmp_path / "plan.yaml"
    path.write_text(PLAN_YAML)

    result = runner.invoke(main.cli, ["validate-plan", str(path)])

    assert result.exit_code == 0
    assert "users -> users" in result.output
    assert "author_id: fk" in result.output


def test_validate_plan_unknown_generator(runner, tmp_path):
    path = tmp_path / "plan.yaml"
    path.write_text(PLAN_YAML.replace("generator: sentence", "generator: paragraph"))

    result = runner.invoke(main.cli, ["validate-plan", str(path)])

    assert result.exit_code == 1
    assert "unknown generators: paragraph" in result.output


def test_order(runner, project):
    result = runner.invoke(main.cli, ["order"])

    assert result.exit_code == 0
    lines = result.output.strip().splitlines()
    assert lines[0].endswith("users")
    assert lines[1].endswith("posts (depends on: users)")


def test_deps_prints_seeding_plan(runner, project):
    result = runner.invoke(main.cli, ["deps", "posts"])

    assert result.exit_code == 0
    assert result.output.index('table = "users"') < result.output.index('table = "posts"')
    assert "rows = 4" in result.output


def test_deps_unknown_table(runner, project):
    result = runner.invoke(main.cli, ["deps", "ghosts"])

    assert result.exit_code == 1
    assert "ghosts" in result.output


def test_seed_dry_run(runner, project):
    result = runner.invoke(main.cli, ["seed", "--dry-run"])

    assert result.exit_code == 0, result.output
    assert "users: 2 rows" in result.output
    assert "posts: 3 rows" in result.output
    assert "Generated 5 rows into 2 tables" in result.output


def test_seed_reports_failing_entity(runner, project):
    (project / "plan.yaml").write_text(PLAN_YAML.replace("pool_name: first_names", "pool_name: surnames"))

    result = runner.invoke(main.cli, ["seed", "--dry-run"])

    assert result.exit_code == 1
    assert "surnames" in result.output


def test_seed_requires_plan(runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / CONFIG_FILENAME).write_text('[[seeding_plan]]\ntable = "users"\nrows = 1\n')

    result = runner.invoke(main.cli, ["seed"])

    assert result.exit_code == 2
    assert "No plan given" in result.output


def test_missing_config(runner, tmp_path):
    result = runner.invoke(main.cli, ["--config", str(tmp_path / "nope.toml"), "order"])

    assert result.exit_code == 1
    assert "Config file not found" in result.output


def test_malformed_config(runner, tmp_path):
    path = tmp_path / CONFIG_FILENAME
    path.write_text("[database\nurl = ")

    result = runner.invoke(main.cli, ["--config", str(path), "order"])

    assert result.exit_code == 1
    assert "Error:" in result.output
    assert "Traceback" not in result.output


def test_invalid_config_value(runner, tmp_path):
    path = tmp_path / CONFIG_FILENAME
    path.write_text('[[seeding_plan]]\ntable = "users"\nrows = -1\n')

    result = runner.invoke(main.cli, ["--config", str(path), "order"])

    assert result.exit_code == 1
    assert "rows" in result.output


def test_connection_failure(runner, tmp_path, monkeypatch):
    path = tmp_path / CONFIG_FILENAME
    path.write_text('[database]\nurl = "postgresql://nobody@127.0.0.1:1/none"\n')

    def refuse(*args, **kwargs):
        raise psycopg.OperationalError("connection refused")

    monkeypatch.setattr(main.psycopg, "connect", refuse)

    result = runner.invoke(main.cli, ["--config", str(path), "order"])

    assert result.exit_code == 1
    assert "Could not connect to the database: connection refused" in result.output
    assert isinstance(result.exception, SystemExit)
