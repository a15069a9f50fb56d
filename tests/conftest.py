"""Pytest configuration and shared fixtures."""

import os

import psycopg
import pytest
from psycopg import Connection

from db_seeder.models import ColumnInfo, DbSchema, ForeignKeyInfo, TableInfo
from db_seeder.plan import ArchitecturalPlan

TEST_URL_ENV = "DB_SEEDER_TEST_URL"


class FakeCursor:
    """Cursor stand-in that records statements and serves canned rows."""

    def __init__(self, conn: "FakeConnection"):
        self.conn = conn
        self._rows: list[tuple] = []

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, sql, params=None):
        self.conn.executed.append((sql, params))
        if self.conn.fail_on is not None and self.conn.fail_on in sql:
            raise psycopg.Error("simulated failure")
        self._rows = list(self.conn.responder(sql, params))

    def fetchone(self):
        self.conn.fetches += 1
        return self._rows[0] if self._rows else None

    def fetchall(self):
        self.conn.fetches += 1
        return list(self._rows)


class FakeConnection:
    """
    Connection stand-in for unit tests.

    By default every INSERT ... RETURNING answers with the next integer id.
    """

    def __init__(self, responder=None, fail_on: str | None = None):
        self.executed: list[tuple[str, object]] = []
        self.fail_on = fail_on
        self.commits = 0
        self.rollbacks = 0
        self.fetches = 0
        self._next_id = 0
        self.responder = responder or self._default_responder

    def _default_responder(self, sql, params):
        if "RETURNING" in sql:
            self._next_id += 1
            return [(self._next_id,)]
        return []

    def cursor(self):
        return FakeCursor(self)

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1


@pytest.fixture
def fake_conn() -> FakeConnection:
    return FakeConnection()


@pytest.fixture
def users_table() -> TableInfo:
    return TableInfo(
        name="users",
        columns=[
            ColumnInfo("id", "integer", False, "nextval('users_id_seq'::regclass)"),
            ColumnInfo("name", "text", False),
            ColumnInfo("email", "character varying", True),
            ColumnInfo("is_active", "boolean", False, "true"),
            ColumnInfo("created_at", "timestamp with time zone", True),
        ],
        primary_key_column="id",
    )


@pytest.fixture
def posts_table() -> TableInfo:
    return TableInfo(
        name="posts",
        columns=[
            ColumnInfo("id", "integer", False, "nextval('posts_id_seq'::regclass)"),
            ColumnInfo("author_id", "integer", False),
            ColumnInfo("title", "text", False),
            ColumnInfo("body", "text", True),
            ColumnInfo("score", "integer", True),
        ],
        primary_key_column="id",
    )


@pytest.fixture
def blog_schema(users_table: TableInfo, posts_table: TableInfo) -> DbSchema:
    """users <- posts.author_id"""
    return DbSchema.from_tables(
        [users_table, posts_table],
        [ForeignKeyInfo("posts", "author_id", "users", "id")],
    )


@pytest.fixture
def blog_plan() -> ArchitecturalPlan:
    # posts listed first on purpose: order must come from the foreign key
    return ArchitecturalPlan.from_dict(
        {
            "theme": "blog",
            "data_pools": {
                "first_names": {
                    "description": "Given names",
                    "gemini_prompt_for_pool": "List common first names",
                    "values": ["Ann", "Bob", "Cleo"],
                }
            },
            "entity_templates": [
                {
                    "entity_name": "posts",
                    "target_table": "posts",
                    "fields": [
                        {"column_name": "author_id", "generator": "fk", "params": {"references": "users"}},
                        {"column_name": "title", "generator": "sentence", "params": {"min": 3, "max": 6}},
                        {"column_name": "body", "generator": "words", "params": {"min": 5, "max": 12}},
                        {"column_name": "score", "generator": "number_range", "params": {"min": 0, "max": 5}},
                    ],
                },
                {
                    "entity_name": "users",
                    "target_table": "users",
                    "fields": [
                        {"column_name": "name", "generator": "from_pool", "params": {"pool_name": "first_names"}},
                        {
                            "column_name": "email",
                            "generator": "template",
                            "params": {"format": "{name}.{random_digits:4}@example.com"},
                        },
                        {"column_name": "is_active", "generator": "boolean", "params": {"true_chance": 0.8}},
                        {
                            "column_name": "created_at",
                            "generator": "datetime_range",
                            "params": {"start": "2023-01-01", "end": "2023-12-31"},
                        },
                    ],
                },
            ],
        }
    )


@pytest.fixture
def blog_pools() -> dict[str, list[str]]:
    return {"first_names": ["Ann", "Bob", "Cleo"]}


@pytest.fixture
def db_conn() -> Connection:
    """
    Provide a test database connection.

    Skips unless DB_SEEDER_TEST_URL points at a disposable PostgreSQL database.
    """
    url = os.environ.get(TEST_URL_ENV)
    if not url:
        pytest.skip(f"{TEST_URL_ENV} not set")

    conn = psycopg.connect(url, autocommit=False)

    yield conn

    # Rollback any changes
    conn.rollback()
    conn.close()


@pytest.fixture
def test_schema(db_conn: Connection) -> str:
    """
    Create a test schema with sample tables.

    Returns the schema name.
    """
    schema_name = "db_seeder_test"

    with db_conn.cursor() as cur:
        cur.execute(f"DROP SCHEMA IF EXISTS {schema_name} CASCADE")
        cur.execute(f"CREATE SCHEMA {schema_name}")

        cur.execute(f"""
            CREATE TABLE {schema_name}.users (
                id INTEGER GENERATED BY DEFAULT AS IDENTITY PRIMARY KEY,
                name TEXT NOT NULL,
                email VARCHAR(255),
                is_active BOOLEAN NOT NULL DEFAULT true,
                created_at TIMESTAMPTZ
            )
        """)

        cur.execute(f"""
            CREATE TABLE {schema_name}.posts (
                id BIGINT GENERATED BY DEFAULT AS IDENTITY PRIMARY KEY,
                author_id INTEGER NOT NULL REFERENCES {schema_name}.users(id),
                title TEXT NOT NULL,
                body TEXT,
                score INTEGER
            )
        """)

        cur.execute(f"""
            CREATE TABLE {schema_name}.codes (
                code VARCHAR(32) PRIMARY KEY,
                label TEXT NOT NULL
            )
        """)

        db_conn.commit()

    yield schema_name

    # Cleanup
    db_conn.rollback()
    with db_conn.cursor() as cur:
        cur.execute(f"DROP SCHEMA IF EXISTS {schema_name} CASCADE")
        db_conn.commit()


@pytest.fixture
def make_conn():
    """Factory for FakeConnection with a custom responder or failure trigger."""
    return FakeConnection
