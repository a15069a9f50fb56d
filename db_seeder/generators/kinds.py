"""Generator vocabulary."""

from enum import Enum


class GeneratorKind(str, Enum):
    """The closed set of generator kinds a field template may name."""

    PK_HASH = "pk_hash"
    FROM_POOL = "from_pool"
    TEMPLATE = "template"
    FK = "fk"
    WORDS = "words"
    SENTENCE = "sentence"
    NUMBER_RANGE = "number_range"
    BOOLEAN = "boolean"
    DATETIME_RANGE = "datetime_range"

    @classmethod
    def parse(cls, name: str) -> "GeneratorKind | None":
        """Map a tag to its kind, None for tags outside the vocabulary."""
        try:
            return cls(name)
        except ValueError:
            return None
