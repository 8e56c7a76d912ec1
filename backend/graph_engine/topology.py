"""
Topological ordering and reachability queries over canvas graphs.

Every helper takes plain sequences of nodes (anything with an ``id``) and
edges (anything with ``source``/``target``), so the sorter can be used
directly on unvalidated input.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .errors import PlanningError

logger = logging.getLogger(__name__)


class GraphTopology:
    """Indexes a graph's edges for forward and reverse lookups."""

    def __init__(self, nodes: Sequence, edges: Sequence):
        self.node_ids: List[str] = [node.id for node in nodes]
        self.outgoing: Dict[str, List[str]] = {node_id: [] for node_id in self.node_ids}
        self.incoming: Dict[str, List[str]] = {node_id: [] for node_id in self.node_ids}

        for edge in edges:
            self.outgoing.setdefault(edge.source, []).append(edge.target)
            self.incoming.setdefault(edge.target, []).append(edge.source)

    def get_downstream_nodes(self, node_id: str) -> List[str]:
        return self.outgoing.get(node_id, [])

    def get_upstream_nodes(self, node_id: str) -> List[str]:
        return self.incoming.get(node_id, [])

    def ancestors(self, node_id: str) -> List[str]:
        """All nodes with a path into ``node_id``, in BFS discovery order."""
        return self._walk(node_id, self.incoming)

    def descendants(self, node_id: str) -> List[str]:
        """All nodes reachable from ``node_id``, in BFS discovery order."""
        return self._walk(node_id, self.outgoing)

    @staticmethod
    def _walk(start_id: str, adjacency: Dict[str, List[str]]) -> List[str]:
        seen: Set[str] = set()
        found: List[str] = []
        queue = [start_id]

        while queue:
            current = queue.pop(0)
            for neighbour in adjacency.get(current, []):
                if neighbour in seen:
                    continue
                seen.add(neighbour)
                found.append(neighbour)
                queue.append(neighbour)

        return found


class TopologicalSorter:
    """
    Kahn's algorithm with a stable tie-break.

    The initial queue holds in-degree-zero nodes in the order they appear in
    the node list, and newly freed nodes are appended in edge order, so
    sorting the same ``(nodes, edges)`` twice always yields the same order.
    """

    def __init__(self, nodes: Sequence, edges: Sequence):
        self.nodes = list(nodes)
        self.edges = list(edges)
        self.topology = GraphTopology(self.nodes, self.edges)

    def sort(self) -> List[str]:
        known = set(self.topology.node_ids)
        if len(known) != len(self.topology.node_ids):
            duplicates = sorted({n for n in self.topology.node_ids if self.topology.node_ids.count(n) > 1})
            raise PlanningError(f"Duplicate node ids: {', '.join(duplicates)}")

        for edge in self.edges:
            if edge.source not in known or edge.target not in known:
                raise PlanningError(
                    f"Edge {getattr(edge, 'id', '?')} references an unknown node "
                    f"({edge.source} -> {edge.target})"
                )

        indegree: Dict[str, int] = {node_id: 0 for node_id in self.topology.node_ids}
        for edge in self.edges:
            indegree[edge.target] += 1

        queue = [node_id for node_id, degree in indegree.items() if degree == 0]
        ordered: List[str] = []

        while queue:
            node_id = queue.pop(0)
            ordered.append(node_id)
            for target_id in self.topology.get_downstream_nodes(node_id):
                indegree[target_id] -= 1
                if indegree[target_id] == 0:
                    queue.append(target_id)

        if len(ordered) != len(self.nodes):
            raise PlanningError("Graph contains a cycle - cannot determine execution order")

        logger.debug("Topological order: %s", ordered)
        return ordered

    def ancestors(self, node_id: str) -> List[str]:
        return self.topology.ancestors(node_id)

    def descendants(self, node_id: str) -> List[str]:
        return self.topology.descendants(node_id)


def topological_sort(nodes: Sequence, edges: Sequence) -> List[str]:
    return TopologicalSorter(nodes, edges).sort()


def validate_dag(nodes: Sequence, edges: Sequence) -> Tuple[bool, Optional[str]]:
    """Return ``(True, None)`` for a DAG, else ``(False, reason)``."""
    try:
        topological_sort(nodes, edges)
    except PlanningError as e:
        return False, str(e)
    return True, None


def find_all_paths(nodes: Sequence, edges: Sequence, source_id: str, target_id: str) -> List[List[str]]:
    """Enumerate every simple path from ``source_id`` to ``target_id``."""
    topology = GraphTopology(nodes, edges)
    paths: List[List[str]] = []
    on_path: Set[str] = set()

    def visit(current: str, path: List[str]) -> None:
        if current == target_id:
            paths.append(list(path))
            return
        on_path.add(current)
        for neighbour in topology.get_downstream_nodes(current):
            if neighbour not in on_path:
                path.append(neighbour)
                visit(neighbour, path)
                path.pop()
        on_path.discard(current)

    visit(source_id, [source_id])
    return paths


def detect_cycle(node_ids: Iterable[str], adjacency: Dict[str, List[str]]) -> bool:
    """DFS with a recursion stack; True as soon as a back edge is found."""
    visited: Set[str] = set()
    stack: Set[str] = set()

    def visit(node_id: str) -> bool:
        visited.add(node_id)
        stack.add(node_id)
        for neighbour in adjacency.get(node_id, []):
            if neighbour not in visited:
                if visit(neighbour):
                    return True
            elif neighbour in stack:
                return True
        stack.discard(node_id)
        return False

    for node_id in node_ids:
        if node_id not in visited and visit(node_id):
            return True
    return False
