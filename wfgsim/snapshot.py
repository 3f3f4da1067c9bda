"""
Point-in-time copies of the lock manager state.

A snapshot is immutable and detached from the manager, so callers can keep
it around (before/after a deadlock resolution, for instance) while the
manager keeps running.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class TransactionState:
    id: Any
    status: str
    held_locks: Tuple[Any, ...]
    waiting_for: Optional[Any]


@dataclass(frozen=True)
class ResourceState:
    id: Any
    locked_by: Optional[Any]
    wait_queue: Tuple[Any, ...]


@dataclass(frozen=True)
class Snapshot:
    transactions: Dict[Any, TransactionState]
    resources: Dict[Any, ResourceState]
    nodes: List[Any]
    edges: List[Tuple[Any, Any]]
    metrics: Dict[str, Any] = field(default_factory=dict)


def take_snapshot(transactions, resources, wfg, metrics=None):
    """Copies transaction/resource tables and the WFG edge list."""
    return Snapshot(
        transactions={
            tx.id: TransactionState(
                id=tx.id,
                status=tx.status.value,
                held_locks=tuple(tx.held_locks),
                waiting_for=tx.waiting_for,
            )
            for tx in transactions
        },
        resources={
            res.id: ResourceState(id=res.id, locked_by=res.locked_by, wait_queue=tuple(res.wait_queue))
            for res in resources
        },
        nodes=wfg.get_nodes(),
        edges=wfg.get_all_edges(),
        metrics=dict(metrics or {}),
    )


def build_wait_for_graph(snapshot):
    """
    Derives the wait-for graph from the lock tables alone: each waiting
    transaction points at the current holder of the resource it waits on.
    """
    graph = {tx_id: [] for tx_id, state in snapshot.transactions.items() if state.status != "aborted"}
    for tx_id, state in snapshot.transactions.items():
        if state.waiting_for is None:
            continue
        resource = snapshot.resources.get(state.waiting_for)
        holder = resource.locked_by if resource else None
        if holder is not None and holder != tx_id:
            graph[tx_id].append(holder)
    return graph
