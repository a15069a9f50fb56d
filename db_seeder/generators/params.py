"""Permissive readers for generator parameters.

Plans come from hand-written files or external models, so parameter values
arrive with loose types ("5" instead of 5, 5.0 instead of 5, a YAML date
instead of a string). Optional parameters fall back to their default when a
value cannot be interpreted; required ones raise InvalidTemplateError.
"""

from datetime import date, datetime
from typing import Any

from db_seeder.exceptions import InvalidTemplateError


def get_int(params: dict[str, Any], name: str, default: int) -> int:
    """Read an integer parameter, falling back to default."""
    value = params.get(name)
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            try:
                number = float(value.strip())
            except ValueError:
                return default
            return int(number) if number.is_integer() else default
    return default


def get_float(params: dict[str, Any], name: str, default: float) -> float:
    """Read a float parameter, falling back to default."""
    value = params.get(name)
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return default
    return default


def get_date_text(params: dict[str, Any], name: str, default: str) -> str:
    """Read a calendar date parameter as YYYY-MM-DD text."""
    value = params.get(name)
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        return value.strip()
    return default


def require_str(params: dict[str, Any], name: str, column: str, generator: str) -> str:
    """
    Read a required string parameter.

    Raises:
        InvalidTemplateError: If the parameter is missing, empty or not a string
    """
    value = params.get(name)
    if not isinstance(value, str) or not value:
        raise InvalidTemplateError(column, generator, f"`{name}` is required")
    return value
