"""
Groups transactions into batches that can run side by side.

Two transactions conflict when either one reaches the other in the
wait-for graph, directly or through a chain of waits. Greedy coloring of
that conflict graph in get_nodes() order gives each batch a color. The
coloring is order dependent, so chromatic_number is an upper bound.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Dict, List, Set

logger = logging.getLogger(__name__)


@dataclass
class ColoringResult:
    colors: Dict[Any, int]
    groups: Dict[int, List[Any]]
    chromatic_number: int
    conflict_graph: Dict[Any, Set[Any]] = field(default_factory=dict)


def reachable_from(wfg, start):
    """Every node reachable from start by one or more edges, in BFS order."""
    seen = {start}
    reached = []
    queue = deque([start])
    while queue:
        current = queue.popleft()
        for neighbor in wfg.get_neighbors(current):
            if neighbor not in seen:
                seen.add(neighbor)
                reached.append(neighbor)
                queue.append(neighbor)
    return reached


def compute_reachability(wfg):
    return {node: set(reachable_from(wfg, node)) for node in wfg.get_nodes()}


def build_conflict_graph(wfg, reachability=None):
    """Undirected adjacency: a and b are linked iff a reaches b or b reaches a."""
    if reachability is None:
        reachability = compute_reachability(wfg)
    conflicts = {node: set() for node in wfg.get_nodes()}
    for node, reached in reachability.items():
        for other in reached:
            if other == node:
                continue
            conflicts[node].add(other)
            conflicts[other].add(node)
    return conflicts


def greedy_coloring(nodes, conflicts):
    colors = {}
    for node in nodes:
        used = {colors[neighbor] for neighbor in conflicts[node] if neighbor in colors}
        color = 0
        while color in used:
            color += 1
        colors[node] = color
    return colors


def color_conflicts(wfg):
    nodes = wfg.get_nodes()
    conflicts = build_conflict_graph(wfg)
    colors = greedy_coloring(nodes, conflicts)

    groups = {}
    for node in nodes:
        groups.setdefault(colors[node], []).append(node)

    result = ColoringResult(
        colors=colors,
        groups=groups,
        chromatic_number=len(groups),
        conflict_graph=conflicts,
    )
    logger.debug(f"Colored {len(nodes)} transactions into {result.chromatic_number} batches")
    return result


def verify_coloring(wfg, result):
    """Pairs sharing a color where one reaches the other. Empty when the coloring is safe."""
    reachability = compute_reachability(wfg)
    violations = []
    for members in result.groups.values():
        for i, a in enumerate(members):
            for b in members[i + 1:]:
                if b in reachability.get(a, ()) or a in reachability.get(b, ()):
                    violations.append((a, b))
    return violations
