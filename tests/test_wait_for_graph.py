"""
Wait-For Graph Representation Tests
===================================
Every representation is run through the same capability checks, then all
of them are replayed against identical operation sequences and must agree
on get_nodes()/get_neighbors() after every step.
"""

import os
import random
import sys
import unittest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from wfgsim.wait_for_graph import (
    WFG_TYPES,
    AdjacencyMatrixWFG,
    apply_graph_operation,
    compare_data_structures,
    create_wfg,
)


def _random_graph_operations(seed, count=300, node_count=8):
    rng = random.Random(seed)
    nodes = [f"T{i}" for i in range(1, node_count + 1)]
    operations = []
    for _ in range(count):
        kind = rng.choice(["add_node", "add_edge", "add_edge", "add_edge", "remove_edge", "remove_node", "has_edge"])
        if kind in ("add_node", "remove_node"):
            operations.append((kind, rng.choice(nodes)))
        else:
            a, b = rng.sample(nodes, 2)
            operations.append((kind, a, b))
    return operations


# ═══════════════════════════════════════════════════════════════════════════
# 1. Capability set, shared by every representation
# ═══════════════════════════════════════════════════════════════════════════

class _GraphContract:
    wfg_type = None

    def setUp(self):
        self.wfg = create_wfg(self.wfg_type)

    def test_add_node_is_idempotent(self):
        self.wfg.add_node("T1")
        self.wfg.add_node("T1")
        self.assertEqual(self.wfg.get_nodes(), ["T1"])

    def test_add_edge_creates_endpoints(self):
        self.wfg.add_edge("T1", "T2")
        self.assertEqual(self.wfg.get_nodes(), ["T1", "T2"])
        self.assertEqual(self.wfg.get_neighbors("T1"), ["T2"])
        self.assertEqual(self.wfg.get_neighbors("T2"), [])
        self.assertTrue(self.wfg.has_edge("T1", "T2"))
        self.assertFalse(self.wfg.has_edge("T2", "T1"))

    def test_add_edge_twice_keeps_one_edge(self):
        self.wfg.add_edge("T1", "T2")
        self.wfg.add_edge("T1", "T2")
        self.assertEqual(self.wfg.get_all_edges(), [("T1", "T2")])
        self.assertEqual(self.wfg.edge_count(), 1)

    def test_remove_missing_edge_is_noop(self):
        self.wfg.add_edge("T1", "T2")
        self.wfg.remove_edge("T2", "T1")
        self.wfg.remove_edge("T8", "T9")
        self.assertEqual(self.wfg.get_all_edges(), [("T1", "T2")])
        self.assertEqual(self.wfg.get_nodes(), ["T1", "T2"])

    def test_remove_edge(self):
        self.wfg.add_edge("T1", "T2")
        self.wfg.remove_edge("T1", "T2")
        self.assertFalse(self.wfg.has_edge("T1", "T2"))
        self.assertEqual(self.wfg.get_nodes(), ["T1", "T2"])

    def test_remove_node_drops_incident_edges(self):
        """Both incoming and outgoing edges disappear with the node."""
        self.wfg.add_edge("T1", "T2")
        self.wfg.add_edge("T2", "T3")
        self.wfg.add_edge("T3", "T1")
        self.assertTrue(self.wfg.remove_node("T2"))
        self.assertEqual(self.wfg.get_nodes(), ["T1", "T3"])
        self.assertEqual(self.wfg.get_all_edges(), [("T3", "T1")])
        self.assertEqual(self.wfg.get_neighbors("T2"), [])

    def test_remove_unknown_node_has_no_side_effects(self):
        self.wfg.add_edge("T1", "T2")
        self.assertFalse(self.wfg.remove_node("T9"))
        self.assertEqual(self.wfg.get_nodes(), ["T1", "T2"])
        self.assertEqual(self.wfg.get_all_edges(), [("T1", "T2")])

    def test_unknown_node_has_no_neighbors(self):
        self.assertEqual(self.wfg.get_neighbors("T42"), [])
        self.assertFalse(self.wfg.has_edge("T42", "T43"))

    def test_neighbors_follow_node_order(self):
        """Successors come back in registration order, not edge insertion order."""
        for node in ("T1", "T2", "T3"):
            self.wfg.add_node(node)
        self.wfg.add_edge("T1", "T3")
        self.wfg.add_edge("T1", "T2")
        self.assertEqual(self.wfg.get_neighbors("T1"), ["T2", "T3"])

    def test_readded_node_moves_to_end(self):
        for node in ("T1", "T2", "T3"):
            self.wfg.add_node(node)
        self.wfg.remove_node("T1")
        self.wfg.add_edge("T2", "T1")
        self.wfg.add_edge("T2", "T3")
        self.assertEqual(self.wfg.get_nodes(), ["T2", "T3", "T1"])
        self.assertEqual(self.wfg.get_neighbors("T2"), ["T3", "T1"])

    def test_clear(self):
        self.wfg.add_edge("T1", "T2")
        self.wfg.clear()
        self.assertEqual(self.wfg.get_nodes(), [])
        self.assertEqual(self.wfg.get_all_edges(), [])
        self.assertEqual(self.wfg.operation_count, 0)

    def test_metrics_track_operations(self):
        self.wfg.add_edge("T1", "T2")
        self.wfg.has_edge("T1", "T2")
        metrics = self.wfg.get_metrics()
        self.assertGreaterEqual(metrics.operations, 2)
        self.assertGreater(metrics.memory_usage, 0)
        self.assertGreaterEqual(metrics.avg_time, 0.0)

    def test_in_degrees(self):
        self.wfg.add_edge("T1", "T3")
        self.wfg.add_edge("T2", "T3")
        self.assertEqual(self.wfg.in_degrees(), {"T1": 0, "T3": 2, "T2": 0})

    def test_to_networkx(self):
        self.wfg.add_edge("T1", "T2")
        self.wfg.add_edge("T2", "T3")
        graph = self.wfg.to_networkx()
        self.assertEqual(list(graph.nodes), ["T1", "T2", "T3"])
        self.assertEqual(set(graph.edges), {("T1", "T2"), ("T2", "T3")})


class TestAdjacencyList(_GraphContract, unittest.TestCase):
    wfg_type = "adjacency_list"


class TestAdjacencyMatrix(_GraphContract, unittest.TestCase):
    wfg_type = "adjacency_matrix"

    def test_matrix_shrinks_on_remove(self):
        self.wfg.add_edge("T1", "T2")
        self.wfg.add_edge("T2", "T3")
        self.wfg.remove_node("T1")
        self.assertEqual(self.wfg.get_matrix(), [[0, 1], [0, 0]])


class TestHashMapSets(_GraphContract, unittest.TestCase):
    wfg_type = "hashmap_sets"


class TestNetworkX(_GraphContract, unittest.TestCase):
    wfg_type = "networkx"


# ═══════════════════════════════════════════════════════════════════════════
# 2. Differential equivalence
# ═══════════════════════════════════════════════════════════════════════════

class TestDifferentialEquivalence(unittest.TestCase):
    """Identical operation sequences give identical graphs on every representation."""

    def test_all_representations_agree_step_by_step(self):
        for seed in range(6):
            with self.subTest(seed=seed):
                graphs = {wfg_type: create_wfg(wfg_type) for wfg_type in WFG_TYPES}
                for operation in _random_graph_operations(seed):
                    results = [apply_graph_operation(g, operation) for g in graphs.values()]
                    self.assertTrue(all(r == results[0] for r in results), operation)

                    reference = graphs["adjacency_list"]
                    for wfg_type, graph in graphs.items():
                        self.assertEqual(graph.get_nodes(), reference.get_nodes(), wfg_type)
                        for node in reference.get_nodes():
                            self.assertEqual(graph.get_neighbors(node), reference.get_neighbors(node), wfg_type)

    def test_factory_prepopulates_nodes(self):
        for wfg_type in WFG_TYPES:
            wfg = create_wfg(wfg_type, ["T1", "T2", "T3"])
            self.assertEqual(wfg.get_nodes(), ["T1", "T2", "T3"])

    def test_factory_rejects_unknown_type(self):
        with self.assertRaises(ValueError):
            create_wfg("linked_list")

    def test_unsupported_operation(self):
        with self.assertRaises(ValueError):
            apply_graph_operation(AdjacencyMatrixWFG(), ("clear",))

    def test_compare_data_structures(self):
        operations = _random_graph_operations(seed=7, count=50)
        results = compare_data_structures(operations, nodes=["T1", "T2"])
        self.assertEqual(set(results), set(WFG_TYPES))
        for wfg_type, metrics in results.items():
            self.assertGreaterEqual(metrics.operations, len(operations), wfg_type)


if __name__ == "__main__":
    unittest.main()
