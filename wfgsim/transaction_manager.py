"""
Lock manager state machine driving the wait-for graph.

Transactions take exclusive locks on resources. A request for a held
resource queues the transaction (FIFO) and adds the edge waiter -> holder.
Releasing a lock hands it to the head of the queue and re-points every
remaining waiter at the new holder, so each waiting transaction always has
exactly one outgoing edge, aimed at the current holder of what it waits on.

Detection never mutates anything; resolution is a separate, explicit call.
Every public operation runs under one re-entrant mutex and validates its
arguments before touching any table, so a rejected call changes nothing.
"""

import logging
import threading
import time
from dataclasses import asdict, dataclass
from functools import wraps
from typing import Any, List, Optional

import config
from wfgsim.conflict_colorer import color_conflicts
from wfgsim.db_resources import Resource, Transaction, TxStatus
from wfgsim.deadlock_detector import DeadlockReport, DetectionMode, detect_deadlock
from wfgsim.errors import DeadlockSimError, ErrorKind, InvalidReferenceError, InvalidStateError
from wfgsim.scenario import OperationType
from wfgsim.snapshot import build_wait_for_graph, take_snapshot
from wfgsim.utils import format_cycle
from wfgsim.victim_selector import select_victim
from wfgsim.wait_for_graph import create_wfg

logger = logging.getLogger(__name__)


@dataclass
class OperationResult:
    """
    success is True when the transaction holds the lock (or the call had
    nothing to hold, as with release/abort). waiting marks a queued request.
    error is set only when the call was rejected.
    """

    success: bool
    message: str
    updated: bool = False
    waiting: bool = False
    error: Optional[ErrorKind] = None

    @property
    def ok(self):
        return self.error is None

    @classmethod
    def failure(cls, exc):
        return cls(success=False, message=exc.message, error=exc.kind)


@dataclass
class ManagerMetrics:
    operations: int = 0
    conflicts: int = 0
    deadlocks_detected: int = 0
    avg_time: float = 0.0  # seconds per operation
    memory_usage: int = 0

    def record(self, duration, memory_usage):
        self.operations += 1
        self.avg_time += (duration - self.avg_time) / self.operations
        self.memory_usage = memory_usage


@dataclass
class ResolutionResult:
    cycle: Optional[List[Any]]
    victim: Optional[Any]
    abort_result: Optional[OperationResult]
    remaining: Optional[DeadlockReport]
    message: str

    @property
    def resolved(self):
        return self.victim is not None


def _operation(counted=True):
    """Runs a public operation atomically and turns simulation errors into results."""

    def decorator(method):
        @wraps(method)
        def wrapper(self, *args, **kwargs):
            start = time.perf_counter()
            with self._mutex:
                try:
                    result = method(self, *args, **kwargs)
                except DeadlockSimError as exc:
                    logger.warning(f"{method.__name__} rejected: {exc.message}")
                    return OperationResult.failure(exc)
                if counted:
                    self.metrics.record(time.perf_counter() - start, self.wfg.estimate_memory_usage())
                return result

        return wrapper

    return decorator


class TransactionManager:
    """Owns transactions, resources and the wait-for graph."""

    def __init__(self, wfg_type=None, transactions=(), resources=()):
        self.wfg_type = wfg_type or config.DEFAULT_WFG_TYPE
        self.wfg = create_wfg(self.wfg_type)
        self.transactions = {}
        self.resources = {}
        self.metrics = ManagerMetrics()
        self._mutex = threading.RLock()

        for tx_id in transactions:
            self._register_transaction(tx_id)
        for res_id in resources:
            self._register_resource(res_id)

    # --- Population ---

    def _register_transaction(self, tx_id):
        if tx_id in self.transactions:
            raise InvalidStateError(f"Transaction {tx_id} already exists")
        self.transactions[tx_id] = Transaction(tx_id)
        self.wfg.add_node(tx_id)

    def _register_resource(self, res_id):
        if res_id in self.resources:
            raise InvalidStateError(f"Resource {res_id} already exists")
        self.resources[res_id] = Resource(res_id)

    @_operation(counted=False)
    def add_transaction(self, tx_id):
        self._register_transaction(tx_id)
        logger.info(f"Transaction {tx_id} injected")
        return OperationResult(True, f"Transaction {tx_id} added", updated=True)

    @_operation(counted=False)
    def add_resource(self, res_id):
        self._register_resource(res_id)
        return OperationResult(True, f"Resource {res_id} added", updated=True)

    # --- Lookups ---

    def _get_transaction(self, tx_id):
        tx = self.transactions.get(tx_id)
        if tx is None:
            raise InvalidReferenceError(f"Unknown transaction {tx_id}")
        return tx

    def _get_resource(self, res_id):
        res = self.resources.get(res_id)
        if res is None:
            raise InvalidReferenceError(f"Unknown resource {res_id}")
        return res

    # --- Lock operations ---

    @_operation()
    def acquire_lock(self, tx_id, res_id):
        tx = self._get_transaction(tx_id)
        res = self._get_resource(res_id)
        if tx.is_terminal:
            raise InvalidStateError(f"Transaction {tx_id} is {tx.status.value}")

        if tx.holds(res_id):
            return OperationResult(True, f"Transaction {tx_id} already holds {res_id}")

        if tx.waiting_for == res_id:
            return OperationResult(
                False, f"Transaction {tx_id} is already waiting for {res_id} held by {res.locked_by}", waiting=True
            )

        # A transaction has at most one outstanding request
        if tx.waiting_for is not None:
            self._withdraw_wait(tx)

        if res.is_free:
            self._grant(tx, res)
            logger.info(f"Lock granted on {res_id} to {tx_id}")
            return OperationResult(True, f"Lock granted on {res_id} to {tx_id}", updated=True)

        holder_id = res.locked_by
        res.enqueue(tx_id)
        tx.wait_on(res_id)
        self._clear_outgoing_edges(tx_id)
        self.wfg.add_edge(tx_id, holder_id)
        self.metrics.conflicts += 1
        logger.info(f"{tx_id} waiting for {res_id} held by {holder_id}")
        return OperationResult(False, f"Waiting for {res_id} held by {holder_id}", updated=True, waiting=True)

    @_operation()
    def release_lock(self, tx_id, res_id):
        tx = self._get_transaction(tx_id)
        res = self._get_resource(res_id)
        if res.locked_by != tx_id:
            raise InvalidStateError(f"Transaction {tx_id} does not hold {res_id}")

        promoted = self._release(tx, res)
        message = f"Lock released on {res_id} by {tx_id}"
        if promoted is not None:
            message += f", granted to {promoted}"
        return OperationResult(True, message, updated=True)

    @_operation()
    def abort_transaction(self, tx_id):
        tx = self._get_transaction(tx_id)
        if tx.is_terminal:
            return OperationResult(True, f"Transaction {tx_id} already aborted")

        tx.status = TxStatus.ABORTED
        for res_id in list(tx.held_locks):
            self._release(tx, self.resources[res_id])
        for res in self.resources.values():
            res.withdraw(tx_id)
        tx.waiting_for = None
        self.wfg.remove_node(tx_id)

        logger.info(f"Transaction {tx_id} aborted")
        return OperationResult(True, f"Transaction {tx_id} aborted", updated=True)

    def _grant(self, tx, res):
        res.locked_by = tx.id
        tx.grant(res.id)
        self._clear_outgoing_edges(tx.id)

    def _release(self, tx, res):
        """Frees res and promotes the head of its queue. Returns the new holder id, if any."""
        res.locked_by = None
        tx.drop(res.id)
        logger.info(f"Lock released on {res.id} by {tx.id}")
        if not res.wait_queue:
            return None

        next_tx = self.transactions[res.dequeue()]
        self._grant(next_tx, res)
        for waiter_id in res.wait_queue:
            self._clear_outgoing_edges(waiter_id)
            self.wfg.add_edge(waiter_id, next_tx.id)
        logger.info(f"Lock on {res.id} passed to {next_tx.id}, {len(res.wait_queue)} still waiting")
        return next_tx.id

    def _withdraw_wait(self, tx):
        self.resources[tx.waiting_for].withdraw(tx.id)
        logger.info(f"{tx.id} stops waiting for {tx.waiting_for}")
        tx.waiting_for = None
        tx.status = TxStatus.ACTIVE
        self._clear_outgoing_edges(tx.id)

    def _clear_outgoing_edges(self, tx_id):
        for neighbor in self.wfg.get_neighbors(tx_id):
            self.wfg.remove_edge(tx_id, neighbor)

    # --- Operation sequences ---

    def apply(self, operation):
        if operation.action is OperationType.ACQUIRE:
            return self.acquire_lock(operation.tx_id, operation.res_id)
        if operation.action is OperationType.RELEASE:
            return self.release_lock(operation.tx_id, operation.res_id)
        return self.abort_transaction(operation.tx_id)

    def run(self, operations, resolve=False, strategy=None):
        """Applies operations in order, optionally breaking deadlocks after each one."""
        results = []
        for operation in operations:
            results.append(self.apply(operation))
            if resolve:
                self.resolve_all_deadlocks(strategy)
        return results

    # --- Deadlock handling ---

    def detect_deadlock(self, mode=None, sink=None):
        with self._mutex:
            report = detect_deadlock(self.wfg, mode or config.DEFAULT_DETECTION_MODE, sink)
            self.metrics.deadlocks_detected += len(report.cycles)
            for cycle in report.cycles:
                logger.error(f"DEADLOCK DETECTED: {format_cycle(cycle)}")
            return report

    def select_victim(self, cycle, strategy=None):
        with self._mutex:
            return select_victim(self.wfg, cycle, strategy or config.DEFAULT_VICTIM_STRATEGY)

    def resolve_deadlock(self, strategy=None):
        """Detects the first cycle, aborts one member and re-checks the graph."""
        with self._mutex:
            report = self.detect_deadlock(DetectionMode.FIRST)
            if not report.has_deadlock:
                return ResolutionResult(None, None, None, report, "No cycle detected, nothing to resolve")

            victim = self.select_victim(report.cycle, strategy)
            abort_result = self.abort_transaction(victim)
            remaining = detect_deadlock(self.wfg)
            message = f"Victim {victim} aborted to break {format_cycle(report.cycle)}"
            logger.warning(message)
            return ResolutionResult(report.cycle, victim, abort_result, remaining, message)

    def resolve_all_deadlocks(self, strategy=None):
        """Keeps resolving until the graph is acyclic. Returns the aborted victims in order."""
        victims = []
        with self._mutex:
            while detect_deadlock(self.wfg).has_deadlock:
                resolution = self.resolve_deadlock(strategy)
                if not resolution.resolved or not resolution.abort_result.ok:
                    break
                victims.append(resolution.victim)
        return victims

    def compute_safe_batches(self):
        with self._mutex:
            return color_conflicts(self.wfg)

    # --- State ---

    def get_state(self):
        with self._mutex:
            return take_snapshot(
                self.transactions.values(), self.resources.values(), self.wfg, asdict(self.metrics)
            )

    def check_consistency(self):
        """
        Compares the maintained WFG with the one implied by the lock tables
        and checks queue bookkeeping. Returns a list of problems, empty when
        everything agrees.
        """
        with self._mutex:
            problems = []
            expected = build_wait_for_graph(self.get_state())
            actual = self.wfg.to_adjacency()

            for tx_id, holders in expected.items():
                if tx_id not in actual:
                    problems.append(f"{tx_id} is live but missing from the wait-for graph")
                elif actual[tx_id] != holders:
                    problems.append(f"{tx_id} points at {actual[tx_id]}, expected {holders}")
            for tx_id in actual:
                if tx_id not in expected:
                    problems.append(f"{tx_id} is in the wait-for graph but not live")

            for res in self.resources.values():
                if res.wait_queue and res.is_free:
                    problems.append(f"{res.id} is free but has waiters {list(res.wait_queue)}")
                if res.locked_by is not None and not self.transactions[res.locked_by].holds(res.id):
                    problems.append(f"{res.id} held by {res.locked_by} which does not record it")
                for waiter_id in res.wait_queue:
                    waiter = self.transactions[waiter_id]
                    if waiter.waiting_for != res.id or waiter.status is not TxStatus.WAITING:
                        problems.append(f"{waiter_id} queued on {res.id} but waiting for {waiter.waiting_for}")
            return problems

    def reset(self):
        with self._mutex:
            for tx in self.transactions.values():
                tx.status = TxStatus.ACTIVE
                tx.held_locks.clear()
                tx.waiting_for = None
            for res in self.resources.values():
                res.locked_by = None
                res.wait_queue.clear()
            self.wfg.clear()
            for tx_id in self.transactions:
                self.wfg.add_node(tx_id)
            self.metrics = ManagerMetrics()
