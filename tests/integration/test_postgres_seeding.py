"""Integration tests against a live PostgreSQL (set DB_SEEDER_TEST_URL)."""

import pytest
from psycopg import Connection

from db_seeder import DirectBackend, EntityGenerator, SchemaIntrospector, Seeder, SeedingTask
from db_seeder.exceptions import DatabaseError
from db_seeder.plan import ArchitecturalPlan

pytestmark = pytest.mark.integration


def _plan() -> ArchitecturalPlan:
    return ArchitecturalPlan.from_dict(
        {
            "theme": "blog",
            "entity_templates": [
                {
                    "entity_name": "posts",
                    "target_table": "posts",
                    "fields": [
                        {"column_name": "author_id", "generator": "fk", "params": {"references": "users"}},
                        {"column_name": "title", "generator": "sentence"},
                        {"column_name": "score", "generator": "number_range", "params": {"min": 1, "max": 5}},
                    ],
                },
                {
                    "entity_name": "users",
                    "target_table": "users",
                    "fields": [
                        {"column_name": "name", "generator": "words", "params": {"min": 2, "max": 2}},
                        {"column_name": "email", "generator": "template", "params": {"format": "user{random_digits:4}@example.com"}},
                        {"column_name": "is_active", "generator": "boolean"},
                        {"column_name": "created_at", "generator": "datetime_range"},
                    ],
                },
                {
                    "entity_name": "codes",
                    "target_table": "codes",
                    "fields": [
                        {"column_name": "code", "generator": "pk_hash", "params": {"length": 12}},
                        {"column_name": "label", "generator": "words"},
                    ],
                },
            ],
        }
    )


def test_introspection_reads_test_schema(db_conn: Connection, test_schema: str):
    schema = SchemaIntrospector(db_conn, test_schema).fetch()

    assert schema.table_names == ["codes", "posts", "users"]
    assert schema.get_table("users").primary_key_column == "id"
    assert schema.get_table("posts").get_column("created_at") is None
    assert schema.get_table("users").get_column("created_at").pg_type == "timestamp with time zone"
    assert [(fk.from_column, fk.to_table) for fk in schema.foreign_keys] == [("author_id", "users")]


def test_seed_users_and_posts(db_conn: Connection, test_schema: str):
    schema = SchemaIntrospector(db_conn, test_schema).fetch()
    seeder = Seeder(schema, DirectBackend(db_conn, test_schema), EntityGenerator(seed=7))

    report = seeder.run(
        _plan(),
        [
            SeedingTask(table="users", rows=5),
            SeedingTask(table="posts", rows=20),
            SeedingTask(table="codes", rows=3),
        ],
        {},
    )

    assert report.order.index("users") < report.order.index("posts")
    with db_conn.cursor() as cur:
        cur.execute(f"SELECT count(*) FROM {test_schema}.posts p JOIN {test_schema}.users u ON u.id = p.author_id")
        assert cur.fetchone()[0] == 20
        cur.execute(f"SELECT code FROM {test_schema}.codes ORDER BY code")
        stored = {row[0] for row in cur.fetchall()}

    # Text primary keys read back as the generated strings
    assert stored == set(report.primary_keys["codes"])
    assert all(len(code) == 12 for code in stored)
    assert set(report.primary_keys["users"]) == set(range(1, 6))


def test_failed_entity_is_rolled_back(db_conn: Connection, test_schema: str):
    schema = SchemaIntrospector(db_conn, test_schema).fetch()
    plan = ArchitecturalPlan.from_dict(
        {
            "entity_templates": [
                {
                    "entity_name": "codes",
                    "target_table": "codes",
                    "fields": [
                        # Constant primary key: the second row violates uniqueness
                        {"column_name": "code", "generator": "template", "params": {"format": "same"}},
                        {"column_name": "label", "generator": "words"},
                    ],
                }
            ]
        }
    )

    with pytest.raises(DatabaseError) as exc_info:
        Seeder(schema, DirectBackend(db_conn, test_schema)).run(plan, [SeedingTask(table="codes", rows=2)], {})

    assert exc_info.value.entity_name == "codes"
    with db_conn.cursor() as cur:
        cur.execute(f"SELECT count(*) FROM {test_schema}.codes")
        assert cur.fetchone()[0] == 0


def test_composite_foreign_key_columns_pair_up(db_conn: Connection, test_schema: str):
    with db_conn.cursor() as cur:
        cur.execute(f"CREATE TABLE {test_schema}.regions (country TEXT, code TEXT, PRIMARY KEY (country, code))")
        cur.execute(f"""
            CREATE TABLE {test_schema}.offices (
                id INTEGER GENERATED BY DEFAULT AS IDENTITY PRIMARY KEY,
                region_country TEXT,
                region_code TEXT,
                FOREIGN KEY (region_country, region_code) REFERENCES {test_schema}.regions (country, code)
            )
        """)
    db_conn.commit()

    schema = SchemaIntrospector(db_conn, test_schema).fetch()

    assert [(fk.from_column, fk.to_table, fk.to_column) for fk in schema.foreign_keys_from("offices")] == [
        ("region_country", "regions", "country"),
        ("region_code", "regions", "code"),
    ]
