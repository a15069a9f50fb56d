"""Dependency graph over tables or plan entities."""

import heapq
from typing import TYPE_CHECKING

from db_seeder.exceptions import CyclicDependencyError
from db_seeder.models import DbSchema

if TYPE_CHECKING:
    from db_seeder.plan import ArchitecturalPlan


class DependencyGraph:
    """
    Directed graph with edges drawn parent -> child.

    Nodes are table names (discovery mode) or plan entity names (execution
    mode). Insertion order of nodes is remembered and used as the tie-break
    in topological_sort(), so identical input always yields the same order.
    """

    def __init__(self):
        # dicts as ordered sets
        self._children: dict[str, dict[str, None]] = {}
        self._parents: dict[str, dict[str, None]] = {}

    @classmethod
    def from_schema(cls, schema: DbSchema) -> "DependencyGraph":
        """Build a graph over every table of the schema."""
        graph = cls()
        for table_name in schema.table_names:
            graph.add_node(table_name)
        for fk in schema.foreign_keys:
            if schema.has_table(fk.from_table) and schema.has_table(fk.to_table):
                graph.add_edge(fk.to_table, fk.from_table)
        return graph

    @classmethod
    def from_plan(cls, plan: "ArchitecturalPlan", schema: DbSchema) -> "DependencyGraph":
        """
        Build a graph over the plan's entities.

        Each foreign key is mapped through target_table -> entities; keys
        touching a table that no entity targets impose no ordering.
        """
        graph = cls()
        entities_by_table: dict[str, list[str]] = {}
        for template in plan.entity_templates:
            graph.add_node(template.entity_name)
            entities_by_table.setdefault(template.target_table, []).append(
                template.entity_name
            )

        for fk in schema.foreign_keys:
            if fk.is_self_referencing:
                continue
            parents = entities_by_table.get(fk.to_table, [])
            children = entities_by_table.get(fk.from_table, [])
            for parent in parents:
                for child in children:
                    graph.add_edge(parent, child)
        return graph

    def add_node(self, node: str) -> None:
        """Add a node to the graph (no-op if present)."""
        if node not in self._children:
            self._children[node] = {}
            self._parents[node] = {}

    def add_edge(self, parent: str, child: str) -> None:
        """
        Add an edge: child depends on parent.

        Self-loops are dropped; a self-referencing table is seeded row by
        row against its own earlier rows instead.
        """
        self.add_node(parent)
        self.add_node(child)
        if parent == child:
            return
        self._children[parent][child] = None
        self._parents[child][parent] = None

    @property
    def nodes(self) -> list[str]:
        return list(self._children)

    def __contains__(self, node: object) -> bool:
        return node in self._children

    def __len__(self) -> int:
        return len(self._children)

    def parents(self, node: str) -> list[str]:
        """Get direct parents (what this node depends on)."""
        return list(self._parents.get(node, {}))

    def children(self, node: str) -> list[str]:
        """Get direct children (what depends on this node)."""
        return list(self._children.get(node, {}))

    def ancestors(self, node: str) -> set[str]:
        """Get every node this node transitively depends on."""
        return self._walk(node, self._parents)

    def descendants(self, node: str) -> set[str]:
        """Get every node that transitively depends on this node."""
        return self._walk(node, self._children)

    def has_path(self, source: str, target: str) -> bool:
        """Check whether target is reachable from source along parent -> child edges."""
        return target in self.descendants(source)

    def _walk(self, start: str, adjacency: dict[str, dict[str, None]]) -> set[str]:
        seen: set[str] = set()
        stack = list(adjacency.get(start, {}))
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(adjacency.get(current, {}))
        return seen

    def topological_sort(self) -> list[str]:
        """
        Sort nodes in dependency order using Kahn's algorithm.

        Returns:
            Nodes in order such that parents come before children.

        Raises:
            CyclicDependencyError: If circular dependency detected
        """
        position = {node: i for i, node in enumerate(self._children)}
        in_degree = {node: len(parents) for node, parents in self._parents.items()}

        # Min-heap on insertion position for stable output
        ready = [(position[node], node) for node in self._children if in_degree[node] == 0]
        heapq.heapify(ready)
        result = []

        while ready:
            _, node = heapq.heappop(ready)
            result.append(node)

            for child in self._children[node]:
                in_degree[child] -= 1
                if in_degree[child] == 0:
                    heapq.heappush(ready, (position[child], child))

        if len(result) != len(self._children):
            remaining = set(self._children) - set(result)
            raise CyclicDependencyError(remaining)

        return result

    def closure(self, nodes: list[str]) -> list[str]:
        """
        Get the given nodes plus everything they depend on, in dependency order.

        Args:
            nodes: Starting nodes (e.g. tables a user wants to seed)

        Returns:
            Nodes sorted so that parents come first
        """
        wanted = set(nodes)
        for node in nodes:
            wanted |= self.ancestors(node)
        return [node for node in self.topological_sort() if node in wanted]
