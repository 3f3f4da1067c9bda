"""
Deadlock detection over a wait-for graph.

Two granularities are offered:

  * dfs_detect_cycle   - white/gray/black DFS that stops at the first cycle
                         and records a visit/edge/backtrack trace.
  * tarjan_scc         - every strongly connected component in one pass;
                         components with more than one node are deadlocks.

detect_deadlock() wraps both behind an explicit DetectionMode. All traversals
are iterative and only touch the graph through get_nodes()/get_neighbors().
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional

from wfgsim.utils import format_cycle

logger = logging.getLogger(__name__)

WHITE, GRAY, BLACK = "white", "gray", "black"


class DetectionMode(Enum):
    FIRST = "first"
    ALL = "all"


@dataclass(frozen=True)
class TraceEvent:
    """
    One step of the DFS.

    kind is "visit" (node turns gray, path is the DFS path ending at node),
    "edge" (from_node -> to_node examined), "backtrack" (node turns black)
    or "cycle" (path holds the closed cycle).
    """

    kind: str
    node: Any = None
    from_node: Any = None
    to_node: Any = None
    path: tuple = ()


@dataclass
class CycleSearchResult:
    cycle: Optional[List[Any]]
    trace: List[TraceEvent]
    visited_count: int
    cancelled: bool = False

    @property
    def has_cycle(self):
        return self.cycle is not None


@dataclass
class SCCResult:
    sccs: List[List[Any]]
    deadlocks: List[List[Any]]

    @property
    def has_deadlock(self):
        return bool(self.deadlocks)


@dataclass
class DeadlockReport:
    """Outcome of detect_deadlock(), in either mode."""

    mode: DetectionMode
    cycles: List[List[Any]] = field(default_factory=list)
    deadlock_sets: List[List[Any]] = field(default_factory=list)
    trace: List[TraceEvent] = field(default_factory=list)
    visited_count: int = 0
    detection_time: float = 0.0
    cancelled: bool = False

    @property
    def has_deadlock(self):
        return bool(self.cycles)

    @property
    def cycle(self):
        """The first cycle found, or None."""
        return self.cycles[0] if self.cycles else None


_EXHAUSTED = object()


def _search_first_cycle(nodes, neighbors_of, sink=None):
    trace = []
    state = {}
    cancelled = False

    def emit(event):
        nonlocal cancelled
        trace.append(event)
        if sink is not None and sink(event) is False:
            cancelled = True
        return cancelled

    for root in nodes:
        if state.get(root, WHITE) != WHITE:
            continue

        # path holds the gray nodes in DFS order; position maps node -> index in path
        path = [root]
        position = {root: 0}
        state[root] = GRAY
        if emit(TraceEvent("visit", node=root, path=(root,))):
            break
        stack = [(root, iter(neighbors_of(root)))]

        while stack:
            node, neighbors = stack[-1]
            neighbor = next(neighbors, _EXHAUSTED)

            if neighbor is _EXHAUSTED:
                stack.pop()
                path.pop()
                del position[node]
                state[node] = BLACK
                if emit(TraceEvent("backtrack", node=node)):
                    break
                continue

            if emit(TraceEvent("edge", from_node=node, to_node=neighbor)):
                break

            neighbor_state = state.get(neighbor, WHITE)
            if neighbor_state == WHITE:
                state[neighbor] = GRAY
                position[neighbor] = len(path)
                path.append(neighbor)
                if emit(TraceEvent("visit", node=neighbor, path=tuple(path))):
                    break
                stack.append((neighbor, iter(neighbors_of(neighbor))))
            elif neighbor_state == GRAY:
                cycle = path[position[neighbor]:] + [neighbor]
                emit(TraceEvent("cycle", path=tuple(cycle)))
                return CycleSearchResult(cycle=cycle, trace=trace, visited_count=len(state))
            # black neighbors are finished and never revisited

        if cancelled:
            break

    return CycleSearchResult(cycle=None, trace=trace, visited_count=len(state), cancelled=cancelled)


def dfs_detect_cycle(wfg, sink: Optional[Callable[[TraceEvent], Any]] = None):
    """
    Finds the first cycle in get_nodes() order.

    The cycle is the slice of the current DFS path starting at the first
    occurrence of the back-edge target, closed by repeating that target.
    Every trace event is also passed to sink; a sink returning False stops
    the search and the result is marked cancelled.
    """
    return _search_first_cycle(wfg.get_nodes(), wfg.get_neighbors, sink)


def tarjan_scc(wfg):
    """Tarjan's strongly connected components, iterative, O(V + E)."""
    index = {}
    lowlink = {}
    on_stack = set()
    stack = []
    sccs = []
    counter = 0

    for root in wfg.get_nodes():
        if root in index:
            continue

        index[root] = lowlink[root] = counter
        counter += 1
        stack.append(root)
        on_stack.add(root)
        work = [(root, iter(wfg.get_neighbors(root)))]

        while work:
            node, neighbors = work[-1]
            descended = False
            for neighbor in neighbors:
                if neighbor not in index:
                    index[neighbor] = lowlink[neighbor] = counter
                    counter += 1
                    stack.append(neighbor)
                    on_stack.add(neighbor)
                    work.append((neighbor, iter(wfg.get_neighbors(neighbor))))
                    descended = True
                    break
                if neighbor in on_stack:
                    lowlink[node] = min(lowlink[node], index[neighbor])
            if descended:
                continue

            work.pop()
            if work:
                parent = work[-1][0]
                lowlink[parent] = min(lowlink[parent], lowlink[node])

            if lowlink[node] == index[node]:
                component = []
                while True:
                    member = stack.pop()
                    on_stack.discard(member)
                    component.append(member)
                    if member == node:
                        break
                sccs.append(component)

    return SCCResult(sccs=sccs, deadlocks=[scc for scc in sccs if len(scc) > 1])


def cycle_in_component(wfg, component):
    """A closed cycle through the given SCC, found by DFS restricted to it."""
    members = set(component)
    nodes = [node for node in wfg.get_nodes() if node in members]
    result = _search_first_cycle(
        nodes,
        lambda node: [neighbor for neighbor in wfg.get_neighbors(node) if neighbor in members],
    )
    return result.cycle


def detect_deadlock(wfg, mode=DetectionMode.FIRST, sink=None):
    """
    Runs detection without touching the graph.

    FIRST reports at most one cycle together with the DFS trace. ALL reports
    every deadlock set from Tarjan plus one representative cycle per set.
    """
    mode = DetectionMode(mode)
    start = time.perf_counter()

    if mode is DetectionMode.FIRST:
        result = dfs_detect_cycle(wfg, sink)
        report = DeadlockReport(
            mode=mode,
            cycles=[result.cycle] if result.cycle else [],
            deadlock_sets=[result.cycle[:-1]] if result.cycle else [],
            trace=result.trace,
            visited_count=result.visited_count,
            cancelled=result.cancelled,
        )
    else:
        scc_result = tarjan_scc(wfg)
        report = DeadlockReport(
            mode=mode,
            cycles=[cycle_in_component(wfg, scc) for scc in scc_result.deadlocks],
            deadlock_sets=scc_result.deadlocks,
            visited_count=sum(len(scc) for scc in scc_result.sccs),
        )

    report.detection_time = time.perf_counter() - start
    for cycle in report.cycles:
        logger.debug(f"Cycle found: {format_cycle(cycle)}")
    return report


# --- Cycle utilities ---


def get_shortest_cycle(cycles):
    if not cycles:
        return None
    return min(cycles, key=len)


def get_deadlocked_transactions(cycles):
    """Distinct nodes appearing on any cycle, in first-seen order."""
    seen = {}
    for cycle in cycles:
        for node in cycle:
            seen.setdefault(node, None)
    return list(seen)


def format_cycles(cycles):
    return [
        {
            "id": number,
            "path": format_cycle(cycle),
            "nodes": list(cycle[:-1]),
            "length": len(cycle) - 1,
        }
        for number, cycle in enumerate(cycles, start=1)
    ]


def is_transaction_deadlocked(tx_id, cycles):
    return any(tx_id in cycle for cycle in cycles)


def get_deadlock_edges(cycles):
    """Distinct (from, to) pairs that lie on a cycle."""
    edges = {}
    for cycle in cycles:
        for from_node, to_node in zip(cycle, cycle[1:]):
            edges.setdefault((from_node, to_node), None)
    return list(edges)


def get_node_colors(nodes, cycles):
    deadlocked = set(get_deadlocked_transactions(cycles))
    return {node: "red" if node in deadlocked else "green" for node in nodes}


def analyze_wfg(wfg):
    """Structural summary: counts, average out-degree, free/independent nodes, density."""
    nodes = wfg.get_nodes()
    edges = wfg.get_all_edges()
    in_degrees = wfg.in_degrees()
    node_count, edge_count = len(nodes), len(edges)

    return {
        "total_nodes": node_count,
        "total_edges": edge_count,
        "avg_out_degree": edge_count / node_count if node_count else 0.0,
        # not waiting for anyone
        "free_nodes": [node for node in nodes if not wfg.get_neighbors(node)],
        # nobody waits for them
        "independent_nodes": [node for node in nodes if in_degrees[node] == 0],
        "graph_density": edge_count / (node_count * (node_count - 1)) if node_count > 1 else 0.0,
    }
