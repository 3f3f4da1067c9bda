"""
Operation Sequence and Driver Tests
===================================
"""

import os
import random
import shutil
import sys
import tempfile
import unittest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import matplotlib

matplotlib.use("Agg")

import main
from wfgsim.scenario import (
    Operation,
    OperationType,
    abort,
    acquire,
    deadlock_scenario,
    dump_operations,
    generate_random_operation,
    generate_workload,
    load_operations,
    parse_operations,
    release,
)
from wfgsim.transaction_manager import TransactionManager


class TestParsing(unittest.TestCase):

    def test_parse_operations(self):
        text = """
        # two transactions fighting over R1
        acquire T1 R1
        ACQUIRE T2 R1   # T2 waits

        release T1 R1
        abort T2
        """
        self.assertEqual(
            parse_operations(text),
            [acquire("T1", "R1"), acquire("T2", "R1"), release("T1", "R1"), abort("T2")],
        )

    def test_bad_lines_report_line_number(self):
        with self.assertRaisesRegex(ValueError, "line 2"):
            parse_operations("acquire T1 R1\ngrab T1 R1\n")
        with self.assertRaisesRegex(ValueError, "argument"):
            parse_operations("abort T1 R1")
        with self.assertRaises(ValueError):
            parse_operations("release T1")

    def test_dump_and_load(self):
        tmp = tempfile.mkdtemp(prefix="wfgsim_ops_")
        try:
            path = os.path.join(tmp, "ops.txt")
            with open(path, "w") as handle:
                handle.write(dump_operations(deadlock_scenario()))
            self.assertEqual(load_operations(path), deadlock_scenario())
        finally:
            shutil.rmtree(tmp)

    def test_operation_str(self):
        self.assertEqual(str(abort("T4")), "abort T4")
        self.assertEqual(str(Operation(OperationType.RELEASE, "T1", "R2")), "release T1 R2")


class TestRandomWorkload(unittest.TestCase):

    def _manager(self):
        return TransactionManager(transactions=["T1", "T2", "T3"], resources=["R1", "R2"])

    def test_same_seed_same_operations(self):
        first = generate_workload(self._manager(), random.Random(3), 30)
        second = generate_workload(self._manager(), random.Random(3), 30)
        self.assertEqual([op for op, _ in first], [op for op, _ in second])

    def test_releases_only_held_locks(self):
        tm = self._manager()
        history = generate_workload(tm, random.Random(5), 50, release_probability=0.9)
        for operation, result in history:
            if operation.action is OperationType.RELEASE:
                self.assertTrue(result.success, operation)

    def test_no_live_transactions(self):
        tm = self._manager()
        for tx_id in ("T1", "T2", "T3"):
            tm.abort_transaction(tx_id)
        self.assertIsNone(generate_random_operation(tm, random.Random(0)))
        self.assertEqual(generate_workload(tm, random.Random(0), 5), [])


class TestMainDriver(unittest.TestCase):

    def test_deadlock_scenario_is_resolved(self):
        manager = main.main(["--scenario", "deadlock", "--log-level", "WARNING"])
        self.assertFalse(manager.detect_deadlock().has_deadlock)
        aborted = [tx.id for tx in manager.transactions.values() if tx.is_terminal]
        self.assertEqual(len(aborted), 1)

    def test_detect_only(self):
        manager = main.main(["--scenario", "deadlock", "--no-resolve", "--mode", "all", "--log-level", "WARNING"])
        self.assertTrue(manager.detect_deadlock().has_deadlock)

    def test_random_run_with_plot_and_compare(self):
        tmp = tempfile.mkdtemp(prefix="wfgsim_main_")
        try:
            path = os.path.join(tmp, "wfg.png")
            manager = main.main([
                "--wfg-type", "adjacency_matrix", "--operations", "25", "--seed", "1",
                "--compare", "--plot", path, "--log-level", "WARNING",
            ])
            self.assertTrue(os.path.exists(path))
            self.assertEqual(manager.check_consistency(), [])
        finally:
            shutil.rmtree(tmp)

    def test_ops_file_registers_unknown_ids(self):
        tmp = tempfile.mkdtemp(prefix="wfgsim_main_")
        try:
            path = os.path.join(tmp, "ops.txt")
            with open(path, "w") as handle:
                handle.write("acquire A1 DB\nacquire B1 DB\n")
            manager = main.main(["--ops-file", path, "--log-level", "WARNING"])
            self.assertEqual(manager.resources["DB"].locked_by, "A1")
            self.assertEqual(manager.wfg.get_all_edges(), [("B1", "A1")])
        finally:
            shutil.rmtree(tmp)


if __name__ == "__main__":
    unittest.main()
