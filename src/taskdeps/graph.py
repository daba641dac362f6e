"""Dependency graph construction and cycle checks."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable

import networkx as nx

from taskdeps.models import DependencyEdge


def build_graph(edges: Iterable[DependencyEdge]) -> nx.DiGraph:
    """Build an id-keyed DiGraph with one predecessor -> successor arc per edge."""
    G = nx.DiGraph()
    for edge in edges:
        G.add_edge(edge.predecessor_id, edge.successor_id, edge=edge)
    return G


def find_cycle_path(
    predecessor_id: str,
    successor_id: str,
    existing_edges: Iterable[DependencyEdge],
) -> list[str] | None:
    """Return the chain a new ``predecessor -> successor`` edge would close.

    The chain runs from the successor forward to the predecessor along
    existing edges, so appending the new edge makes it a cycle. A
    self-dependency yields ``[predecessor_id]``. ``None`` means the edge is
    safe to add.
    """
    if predecessor_id == successor_id:
        return [predecessor_id]

    G = build_graph(existing_edges)
    if successor_id not in G or predecessor_id not in G:
        return None

    # BFS from the successor, remembering parents to rebuild the path.
    parents: dict[str, str | None] = {successor_id: None}
    queue = deque([successor_id])
    while queue:
        node = queue.popleft()
        if node == predecessor_id:
            path = [node]
            while parents[path[-1]] is not None:
                path.append(parents[path[-1]])
            path.reverse()
            return path
        for nxt in G.successors(node):
            if nxt not in parents:
                parents[nxt] = node
                queue.append(nxt)
    return None


def would_create_cycle(
    predecessor_id: str,
    successor_id: str,
    existing_edges: Iterable[DependencyEdge],
) -> bool:
    """True if adding ``predecessor -> successor`` would make the graph cyclic."""
    return find_cycle_path(predecessor_id, successor_id, existing_edges) is not None


def topological_order(edges: Iterable[DependencyEdge]) -> list[str]:
    """Task ids in dependency order. Raises ValueError if the edges contain a cycle."""
    G = build_graph(edges)
    try:
        return list(nx.topological_sort(G))
    except nx.NetworkXUnfeasible as e:
        raise ValueError("Circular dependency detected") from e
