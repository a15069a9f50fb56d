"""Value pool materialization.

Pools are fetched before any row is generated. Sources may be slow (files on
network storage, external services), so resolve_pools() fetches them
concurrently and returns only once every pool is in hand; generation then
reads the result without further synchronization.
"""

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Protocol

import yaml

from db_seeder.exceptions import PoolError
from db_seeder.models import DataPools
from db_seeder.plan import ArchitecturalPlan, DataPoolConfig

logger = logging.getLogger(__name__)


class PoolSource(Protocol):
    """Anything that can materialize a pool from its declaration."""

    def fetch(self, name: str, config: DataPoolConfig) -> list[str]: ...


class StaticPoolSource:
    """
    Serve pools from inline plan values or a preloaded mapping.

    Inline `values` in the plan win over the mapping.
    """

    def __init__(self, pools: dict[str, list[str]] | None = None):
        self.pools = pools or {}

    def fetch(self, name: str, config: DataPoolConfig) -> list[str]:
        if config.values is not None:
            return list(config.values)
        if name in self.pools:
            return list(self.pools[name])
        raise PoolError(
            f"No values for pool '{name}'.\n\n"
            f"Suggestions:\n"
            f"1. Add `values` to the pool in the plan\n"
            f"2. Add '{name}' to the pools file (--pools)"
        )


def resolve_pools(plan: ArchitecturalPlan, source: PoolSource, max_workers: int = 4) -> DataPools:
    """
    Materialize every pool the plan declares.

    Args:
        plan: Plan whose data_pools are fetched
        source: Pool source
        max_workers: Concurrent fetches

    Returns:
        Pool name -> values

    Raises:
        PoolError: If any pool cannot be fetched
    """
    names = list(plan.data_pools)
    if not names:
        return {}

    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
        futures = {
            name: executor.submit(source.fetch, name, plan.data_pools[name]) for name in names
        }
        # Barrier: every fetch completes (or raises) before generation starts
        pools = {name: future.result() for name, future in futures.items()}

    for name, values in pools.items():
        logger.info(f"Pool '{name}': {len(values)} values")

    undeclared = plan.referenced_pools() - set(pools)
    if undeclared:
        logger.warning(
            f"Plan references undeclared pools: {', '.join(sorted(undeclared))}"
        )
    return pools


def parse_pool_payload(payload: str | Any) -> list[str]:
    """
    Normalize a pool payload into a list of strings.

    Accepts a JSON array, or an object holding an array in one of its values.
    Strings are kept, numbers and booleans become their JSON text, objects
    contribute their first value; other items are dropped.

    Args:
        payload: JSON text or already-decoded data

    Returns:
        Non-empty list of values

    Raises:
        PoolError: If the payload is not JSON, holds no array, or yields nothing

    Example:
        >>> parse_pool_payload('{"names": ["Ann", "Bob", 3]}')
        ['Ann', 'Bob', '3']
    """
    data = payload
    if isinstance(payload, str):
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            raise PoolError(f"Pool payload is not valid JSON: {e}") from e

    if isinstance(data, dict):
        items = next((v for v in data.values() if isinstance(v, list)), None)
    elif isinstance(data, list):
        items = data
    else:
        items = None

    if items is None:
        raise PoolError("Pool payload is neither an array nor an object containing an array")

    values = []
    for item in items:
        text = _item_text(item)
        if text is not None:
            values.append(text)

    if not values:
        raise PoolError("Pool payload array is empty or has unsupported items")
    return values


def _item_text(item: Any) -> str | None:
    if isinstance(item, str):
        return item
    if isinstance(item, (bool, int, float)):
        return json.dumps(item)
    if isinstance(item, dict) and item:
        first = next(iter(item.values()))
        return first if isinstance(first, str) else json.dumps(first)
    return None


def load_pools_file(path: Path | str) -> dict[str, list[str]]:
    """
    Load pools from a JSON or YAML mapping of pool name -> values.

    Each entry is normalized with parse_pool_payload().

    Raises:
        PoolError: If the file is missing or malformed
    """
    pools_path = Path(path)
    if not pools_path.exists():
        raise PoolError(f"Pools file not found: {pools_path}")

    text = pools_path.read_text()
    try:
        if pools_path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise PoolError(f"Could not parse pools file {pools_path}: {e}") from e

    if not isinstance(data, dict):
        raise PoolError(f"Pools file {pools_path} must contain a mapping at top level")

    pools = {}
    for name, entry in data.items():
        try:
            pools[str(name)] = parse_pool_payload(entry)
        except PoolError as e:
            raise PoolError(f"Pool '{name}' in {pools_path}: {e}") from e
    return pools
