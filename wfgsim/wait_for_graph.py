"""
Wait-For Graph (WFG) representations.

An edge A -> B means transaction A is blocked on a resource held by B.
Four interchangeable implementations share one interface:

    AdjacencyListWFG    dict of ordered lists
    AdjacencyMatrixWFG  2D 0/1 matrix, grows and shrinks with the node set
    HashMapSetsWFG      dict of sets
    NetworkXWFG         networkx.DiGraph

Every implementation reports nodes in first-registration order and the
successors of a node in that same order, so identical operation sequences
give identical get_nodes()/get_neighbors() results on all of them.
"""

import itertools
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import wraps

import networkx as nx

logger = logging.getLogger(__name__)


@dataclass
class WFGMetrics:
    """Operation counters for one graph instance."""

    name: str
    operations: int
    total_time: float
    avg_time: float
    memory_usage: int


def tracked(method):
    """Counts and times a graph operation on the owning instance."""

    @wraps(method)
    def wrapper(self, *args, **kwargs):
        start = time.perf_counter()
        try:
            return method(self, *args, **kwargs)
        finally:
            self.operation_count += 1
            self.total_time += time.perf_counter() - start

    return wrapper


class BaseWFG(ABC):
    """Common bookkeeping for all WFG representations."""

    name = "base"

    def __init__(self):
        self.operation_count = 0
        self.total_time = 0.0
        # node -> registration number; defines the order of nodes and neighbors
        self._order = {}
        self._sequence = itertools.count()

    # --- Ordering helpers ---

    def _register(self, node):
        if node in self._order:
            return False
        self._order[node] = next(self._sequence)
        return True

    def _forget(self, node):
        self._order.pop(node, None)

    def _ordered(self, nodes):
        return sorted(nodes, key=self._order.__getitem__)

    def __contains__(self, node):
        return node in self._order

    def __len__(self):
        return len(self._order)

    def __repr__(self):
        return f"<{type(self).__name__} nodes={len(self)} edges={self.edge_count()}>"

    # --- Capability set ---

    @abstractmethod
    def add_node(self, node):
        """Registers a node. Adding a known node does nothing."""

    @abstractmethod
    def add_edge(self, from_node, to_node):
        """Adds from_node -> to_node, creating both endpoints if needed."""

    @abstractmethod
    def remove_edge(self, from_node, to_node):
        """Removes from_node -> to_node if present."""

    @abstractmethod
    def remove_node(self, node):
        """Removes a node and its incident edges. Returns whether it existed."""

    @abstractmethod
    def get_neighbors(self, node):
        """Direct successors of node, empty for unknown nodes."""

    @abstractmethod
    def get_nodes(self):
        pass

    @abstractmethod
    def has_edge(self, from_node, to_node):
        pass

    @abstractmethod
    def _clear_storage(self):
        pass

    @abstractmethod
    def estimate_memory_usage(self):
        """Rough size of the underlying structure in bytes."""

    def clear(self):
        self._clear_storage()
        self._order.clear()
        self._sequence = itertools.count()
        self.reset_metrics()

    # --- Derived queries ---

    def get_all_edges(self):
        return [(node, neighbor) for node in self.get_nodes() for neighbor in self.get_neighbors(node)]

    def edge_count(self):
        return sum(len(self.get_neighbors(node)) for node in self.get_nodes())

    def out_degree(self, node):
        return len(self.get_neighbors(node))

    def in_degrees(self):
        """In-degree of every node, computed in one pass over the edges."""
        degrees = {node: 0 for node in self.get_nodes()}
        for _, to_node in self.get_all_edges():
            degrees[to_node] += 1
        return degrees

    def to_adjacency(self):
        return {node: self.get_neighbors(node) for node in self.get_nodes()}

    def to_networkx(self):
        graph = nx.DiGraph()
        graph.add_nodes_from(self.get_nodes())
        graph.add_edges_from(self.get_all_edges())
        return graph

    # --- Metrics ---

    def get_average_time(self):
        return self.total_time / self.operation_count if self.operation_count else 0.0

    def get_metrics(self):
        return WFGMetrics(
            name=self.name,
            operations=self.operation_count,
            total_time=self.total_time,
            avg_time=self.get_average_time(),
            memory_usage=self.estimate_memory_usage(),
        )

    def reset_metrics(self):
        self.operation_count = 0
        self.total_time = 0.0


class AdjacencyListWFG(BaseWFG):
    """
    Dict of ordered lists.
    add_edge O(k log k), remove_edge O(k), has_edge O(k) for k successors;
    remove_node O(V + E). Space O(V + E).
    """

    name = "Adjacency List"

    def __init__(self):
        super().__init__()
        self.adjacency_list = {}

    @tracked
    def add_node(self, node):
        if self._register(node):
            self.adjacency_list[node] = []

    @tracked
    def add_edge(self, from_node, to_node):
        self.add_node(from_node)
        self.add_node(to_node)
        neighbors = self.adjacency_list[from_node]
        if to_node not in neighbors:
            neighbors.append(to_node)
            neighbors.sort(key=self._order.__getitem__)
            logger.debug(f"Edge added: {from_node} -> {to_node}")

    @tracked
    def remove_edge(self, from_node, to_node):
        neighbors = self.adjacency_list.get(from_node)
        if neighbors and to_node in neighbors:
            neighbors.remove(to_node)
            logger.debug(f"Edge removed: {from_node} -> {to_node}")

    @tracked
    def remove_node(self, node):
        if node not in self.adjacency_list:
            return False
        del self.adjacency_list[node]
        for neighbors in self.adjacency_list.values():
            if node in neighbors:
                neighbors.remove(node)
        self._forget(node)
        return True

    @tracked
    def get_neighbors(self, node):
        return list(self.adjacency_list.get(node, ()))

    def get_nodes(self):
        return list(self.adjacency_list)

    @tracked
    def has_edge(self, from_node, to_node):
        return to_node in self.adjacency_list.get(from_node, ())

    def _clear_storage(self):
        self.adjacency_list = {}

    def estimate_memory_usage(self):
        edges = sum(len(neighbors) for neighbors in self.adjacency_list.values())
        return len(self.adjacency_list) * 50 + edges * 20


class AdjacencyMatrixWFG(BaseWFG):
    """
    Square 0/1 matrix indexed by registration order.
    add_edge/remove_edge/has_edge O(1), get_neighbors O(V),
    add_node/remove_node O(V). Space O(V^2).
    """

    name = "Adjacency Matrix"

    def __init__(self):
        super().__init__()
        self.nodes = []
        self.node_index = {}
        self.matrix = []

    @tracked
    def add_node(self, node):
        if not self._register(node):
            return
        self.node_index[node] = len(self.nodes)
        self.nodes.append(node)
        for row in self.matrix:
            row.append(0)
        self.matrix.append([0] * len(self.nodes))

    @tracked
    def add_edge(self, from_node, to_node):
        self.add_node(from_node)
        self.add_node(to_node)
        self.matrix[self.node_index[from_node]][self.node_index[to_node]] = 1

    @tracked
    def remove_edge(self, from_node, to_node):
        if from_node not in self.node_index or to_node not in self.node_index:
            return
        self.matrix[self.node_index[from_node]][self.node_index[to_node]] = 0

    @tracked
    def remove_node(self, node):
        index = self.node_index.get(node)
        if index is None:
            return False
        del self.nodes[index]
        del self.matrix[index]
        for row in self.matrix:
            del row[index]
        self.node_index = {n: i for i, n in enumerate(self.nodes)}
        self._forget(node)
        return True

    @tracked
    def get_neighbors(self, node):
        index = self.node_index.get(node)
        if index is None:
            return []
        return [self.nodes[j] for j, cell in enumerate(self.matrix[index]) if cell]

    def get_nodes(self):
        return list(self.nodes)

    @tracked
    def has_edge(self, from_node, to_node):
        if from_node not in self.node_index or to_node not in self.node_index:
            return False
        return self.matrix[self.node_index[from_node]][self.node_index[to_node]] == 1

    def _clear_storage(self):
        self.nodes = []
        self.node_index = {}
        self.matrix = []

    def estimate_memory_usage(self):
        size = len(self.nodes)
        return size * size * 4 + size * 50

    def get_matrix(self):
        return [list(row) for row in self.matrix]


class HashMapSetsWFG(BaseWFG):
    """
    Dict of sets.
    add_edge/remove_edge/has_edge O(1), get_neighbors O(k log k)
    because successors are returned in node order. Space O(V + E).
    """

    name = "HashMap of Sets"

    def __init__(self):
        super().__init__()
        self.adjacency_map = {}

    @tracked
    def add_node(self, node):
        if self._register(node):
            self.adjacency_map[node] = set()

    @tracked
    def add_edge(self, from_node, to_node):
        self.add_node(from_node)
        self.add_node(to_node)
        self.adjacency_map[from_node].add(to_node)

    @tracked
    def remove_edge(self, from_node, to_node):
        if from_node in self.adjacency_map:
            self.adjacency_map[from_node].discard(to_node)

    @tracked
    def remove_node(self, node):
        if node not in self.adjacency_map:
            return False
        del self.adjacency_map[node]
        for neighbors in self.adjacency_map.values():
            neighbors.discard(node)
        self._forget(node)
        return True

    @tracked
    def get_neighbors(self, node):
        return self._ordered(self.adjacency_map.get(node, ()))

    def get_nodes(self):
        return list(self.adjacency_map)

    @tracked
    def has_edge(self, from_node, to_node):
        return to_node in self.adjacency_map.get(from_node, ())

    def _clear_storage(self):
        self.adjacency_map = {}

    def estimate_memory_usage(self):
        edges = sum(len(neighbors) for neighbors in self.adjacency_map.values())
        return len(self.adjacency_map) * 60 + edges * 25


class NetworkXWFG(BaseWFG):
    """networkx.DiGraph storage, mainly useful for cross-checking and plotting."""

    name = "NetworkX DiGraph"

    def __init__(self):
        super().__init__()
        self.graph = nx.DiGraph()

    @tracked
    def add_node(self, node):
        if self._register(node):
            self.graph.add_node(node)

    @tracked
    def add_edge(self, from_node, to_node):
        self.add_node(from_node)
        self.add_node(to_node)
        self.graph.add_edge(from_node, to_node)

    @tracked
    def remove_edge(self, from_node, to_node):
        if self.graph.has_edge(from_node, to_node):
            self.graph.remove_edge(from_node, to_node)

    @tracked
    def remove_node(self, node):
        if node not in self.graph:
            return False
        self.graph.remove_node(node)
        self._forget(node)
        return True

    @tracked
    def get_neighbors(self, node):
        if node not in self.graph:
            return []
        return self._ordered(self.graph.successors(node))

    def get_nodes(self):
        return list(self.graph.nodes)

    @tracked
    def has_edge(self, from_node, to_node):
        return self.graph.has_edge(from_node, to_node)

    def _clear_storage(self):
        self.graph.clear()

    def estimate_memory_usage(self):
        # networkx keeps succ, pred and attribute dicts per node and edge
        return self.graph.number_of_nodes() * 120 + self.graph.number_of_edges() * 80

    def to_networkx(self):
        return self.graph.copy()


WFG_TYPES = {
    "adjacency_list": AdjacencyListWFG,
    "adjacency_matrix": AdjacencyMatrixWFG,
    "hashmap_sets": HashMapSetsWFG,
    "networkx": NetworkXWFG,
}


def create_wfg(wfg_type, nodes=()):
    """Factory for a WFG of the given type, pre-populated with nodes."""
    try:
        wfg_class = WFG_TYPES[wfg_type]
    except KeyError:
        raise ValueError(f"Unknown WFG type: {wfg_type}") from None
    wfg = wfg_class()
    for node in nodes:
        wfg.add_node(node)
    return wfg


GRAPH_OPERATIONS = ("add_node", "add_edge", "remove_edge", "remove_node", "has_edge", "get_neighbors")


def apply_graph_operation(wfg, operation):
    """
    Applies one ("method", *args) tuple to a graph and returns its result,
    e.g. ("add_edge", "T1", "T2") or ("remove_node", "T3").
    """
    method, *args = operation
    if method not in GRAPH_OPERATIONS:
        raise ValueError(f"Unsupported graph operation: {method}")
    return getattr(wfg, method)(*args)


def compare_data_structures(operations, nodes=(), wfg_types=None):
    """Runs the same operation list on each representation and returns their metrics."""
    results = {}
    for wfg_type in wfg_types or WFG_TYPES:
        wfg = create_wfg(wfg_type, nodes)
        wfg.reset_metrics()
        for operation in operations:
            apply_graph_operation(wfg, operation)
        results[wfg_type] = wfg.get_metrics()
        logger.debug(f"{wfg.name}: {results[wfg_type]}")
    return results
