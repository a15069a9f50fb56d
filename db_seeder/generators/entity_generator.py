"""Entity generator: turns field templates into one generated row."""

import random
import string
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime, timezone
from typing import Any

from faker import Faker

from db_seeder.exceptions import (
    DependencyNotFoundError,
    EmptyPoolError,
    InvalidTemplateError,
    PoolNotFoundError,
    UnknownGeneratorError,
)
from db_seeder.generators.kinds import GeneratorKind
from db_seeder.generators.params import get_date_text, get_float, get_int, require_str
from db_seeder.models import GeneratedEntity
from db_seeder.plan import FieldTemplate

ALPHANUMERIC = string.ascii_letters + string.digits
RANDOM_DIGITS_TOKEN = "{random_digits:4}"

DEFAULT_PK_LENGTH = 20
DEFAULT_START_DATE = "2020-01-01"
DEFAULT_END_DATE = "2024-01-01"


class EntityGenerator:
    """
    Evaluate field templates row by row.

    Fields are evaluated in declared order, so a template field can read any
    column generated before it in the same row but never one after it.

    Example:
        >>> gen = EntityGenerator(seed=42)
        >>> fields = [
        ...     FieldTemplate(column_name="id", generator="pk_hash", params={"length": 8}),
        ...     FieldTemplate(column_name="slug", generator="template",
        ...                   params={"format": "user-{id}"}),
        ... ]
        >>> row = gen.generate_entity(fields, pools={}, primary_key_pools={})
        >>> row["slug"] == f"user-{row['id']}"
        True
    """

    def __init__(self, seed: int | None = None, strict_fk: bool = False, locale: str = "en_US"):
        """
        Initialize generator.

        Args:
            seed: Seed for reproducible output (None for random)
            strict_fk: Raise instead of yielding NULL when an fk parent pool is empty
            locale: Faker locale for words and sentences
        """
        self.strict_fk = strict_fk
        self.rng = random.Random(seed)
        self.fake = Faker(locale)
        if seed is not None:
            self.fake.seed_instance(seed)

        self._dispatch: dict[GeneratorKind, Callable[..., Any]] = {
            GeneratorKind.PK_HASH: self._pk_hash,
            GeneratorKind.FROM_POOL: self._from_pool,
            GeneratorKind.TEMPLATE: self._template,
            GeneratorKind.FK: self._fk,
            GeneratorKind.WORDS: self._words,
            GeneratorKind.SENTENCE: self._sentence,
            GeneratorKind.NUMBER_RANGE: self._number_range,
            GeneratorKind.BOOLEAN: self._boolean,
            GeneratorKind.DATETIME_RANGE: self._datetime_range,
        }

    def generate_entity(
        self,
        fields: Sequence[FieldTemplate],
        pools: Mapping[str, Sequence[Any]],
        primary_key_pools: Mapping[str, Sequence[Any]],
    ) -> GeneratedEntity:
        """
        Generate one row.

        Args:
            fields: Field templates in evaluation order
            pools: Materialized value pools by name
            primary_key_pools: Primary keys generated so far, by table name

        Returns:
            Column name -> generated value (None where a generator yields NULL)

        Raises:
            UnknownGeneratorError: If a field names an unknown generator
            InvalidTemplateError: If a required parameter is missing
            PoolNotFoundError: If a from_pool field names a missing pool
            DependencyNotFoundError: If an fk field has no parent keys to use
        """
        entity: GeneratedEntity = {}
        for field in fields:
            kind = GeneratorKind.parse(field.generator)
            if kind is None:
                raise UnknownGeneratorError(field.generator, field.column_name)
            handler = self._dispatch[kind]
            entity[field.column_name] = handler(
                field, entity=entity, pools=pools, primary_key_pools=primary_key_pools
            )
        return entity

    def _pk_hash(self, field: FieldTemplate, **_context: Any) -> str:
        length = get_int(field.params, "length", DEFAULT_PK_LENGTH)
        if length < 0:
            length = DEFAULT_PK_LENGTH
        return "".join(self.rng.choices(ALPHANUMERIC, k=length))

    def _from_pool(self, field: FieldTemplate, pools: Mapping[str, Sequence[Any]], **_context: Any) -> Any:
        pool_name = require_str(field.params, "pool_name", field.column_name, field.generator)
        if pool_name not in pools:
            raise PoolNotFoundError(pool_name, field.column_name)
        pool = pools[pool_name]
        if not pool:
            raise EmptyPoolError(pool_name, field.column_name)
        return self.rng.choice(pool)

    def _template(self, field: FieldTemplate, entity: GeneratedEntity, **_context: Any) -> str:
        result = require_str(field.params, "format", field.column_name, field.generator)
        for column, value in entity.items():
            text = template_text(value)
            if text:
                result = result.replace("{" + column + "}", text)
        if RANDOM_DIGITS_TOKEN in result:
            result = result.replace(RANDOM_DIGITS_TOKEN, f"{self.rng.randint(0, 9999):04d}")
        return result

    def _fk(
        self,
        field: FieldTemplate,
        primary_key_pools: Mapping[str, Sequence[Any]],
        **_context: Any,
    ) -> Any:
        parent_table = require_str(field.params, "references", field.column_name, field.generator)
        if parent_table not in primary_key_pools:
            raise DependencyNotFoundError(parent_table, field.column_name)
        keys = primary_key_pools[parent_table]
        if not keys:
            if self.strict_fk:
                raise DependencyNotFoundError(parent_table, field.column_name, empty=True)
            return None
        return self.rng.choice(keys)

    def _word_count(self, field: FieldTemplate, default_min: int, default_max: int) -> int:
        low = max(get_int(field.params, "min", default_min), 0)
        high = max(get_int(field.params, "max", default_max), 0)
        if low > high:
            low, high = high, low
        return self.rng.randint(low, high)

    def _words(self, field: FieldTemplate, **_context: Any) -> str:
        count = self._word_count(field, 2, 5)
        return " ".join(self.fake.words(nb=count))

    def _sentence(self, field: FieldTemplate, **_context: Any) -> str:
        count = self._word_count(field, 5, 10)
        if count == 0:
            return ""
        return self.fake.sentence(nb_words=count, variable_nb_words=False)

    def _number_range(self, field: FieldTemplate, **_context: Any) -> int:
        low = get_int(field.params, "min", 0)
        high = get_int(field.params, "max", 100)
        if low > high:
            raise InvalidTemplateError(
                field.column_name, field.generator, f"min ({low}) is greater than max ({high})"
            )
        return self.rng.randint(low, high)

    def _boolean(self, field: FieldTemplate, **_context: Any) -> bool:
        chance = min(max(get_float(field.params, "true_chance", 0.5), 0.0), 1.0)
        return self.rng.random() < chance

    def _datetime_range(self, field: FieldTemplate, **_context: Any) -> str:
        start = parse_day(get_date_text(field.params, "start", DEFAULT_START_DATE), "00:00:00")
        end = parse_day(get_date_text(field.params, "end", DEFAULT_END_DATE), "23:59:59")

        start_ts = int(start.timestamp())
        end_ts = int(end.timestamp())
        if start_ts >= end_ts:
            return start.isoformat()

        moment = datetime.fromtimestamp(self.rng.randint(start_ts, end_ts), tz=timezone.utc)
        return moment.isoformat()


def template_text(value: Any) -> str:
    """Stringify a row value for template substitution ('' means skip)."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return ""
    if isinstance(value, (int, float)):
        return str(value)
    return ""


def parse_day(day: str, clock: str) -> datetime:
    """Parse YYYY-MM-DD at the given clock time in UTC; unparsable input means now."""
    try:
        parsed = datetime.strptime(f"{day} {clock}", "%Y-%m-%d %H:%M:%S")
    except ValueError:
        return datetime.now(timezone.utc).replace(microsecond=0)
    return parsed.replace(tzinfo=timezone.utc)
