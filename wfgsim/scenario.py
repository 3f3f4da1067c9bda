"""
Operation sequences fed to the TransactionManager.

Sequences are explicit and deterministic. They can be written by hand,
parsed from a small text format, or drawn from a seeded random.Random that
looks at the live manager state:

    # comment
    acquire T1 R1
    release T1 R1
    abort T2
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Optional

import config

logger = logging.getLogger(__name__)


class OperationType(Enum):
    ACQUIRE = "acquire"
    RELEASE = "release"
    ABORT = "abort"


@dataclass(frozen=True)
class Operation:
    action: OperationType
    tx_id: Any
    res_id: Optional[Any] = None

    def __str__(self):
        if self.res_id is None:
            return f"{self.action.value} {self.tx_id}"
        return f"{self.action.value} {self.tx_id} {self.res_id}"


def acquire(tx_id, res_id):
    return Operation(OperationType.ACQUIRE, tx_id, res_id)


def release(tx_id, res_id):
    return Operation(OperationType.RELEASE, tx_id, res_id)


def abort(tx_id):
    return Operation(OperationType.ABORT, tx_id)


def parse_operation(line):
    parts = line.split()
    try:
        action = OperationType(parts[0].lower())
    except (IndexError, ValueError):
        raise ValueError(f"Unknown operation: {line!r}") from None

    expected = 2 if action is OperationType.ABORT else 3
    if len(parts) != expected:
        raise ValueError(f"'{action.value}' takes {expected - 1} argument(s): {line!r}")
    return Operation(action, *parts[1:])


def parse_operations(text):
    operations = []
    for number, raw in enumerate(text.splitlines(), start=1):
        line = raw.split("#", 1)[0].strip()
        if not line:
            continue
        try:
            operations.append(parse_operation(line))
        except ValueError as exc:
            raise ValueError(f"line {number}: {exc}") from None
    return operations


def load_operations(path):
    return parse_operations(Path(path).read_text())


def dump_operations(operations):
    return "\n".join(str(operation) for operation in operations) + "\n"


def transaction_ids(count):
    return [f"T{i}" for i in range(1, count + 1)]


def resource_ids(count):
    return [f"R{i}" for i in range(1, count + 1)]


def deadlock_scenario():
    """
    Three transactions each grab one resource and then ask for the next
    one, closing the cycle T1 -> T2 -> T3 -> T1.
    """
    return [
        acquire("T1", "R1"),
        acquire("T2", "R2"),
        acquire("T3", "R3"),
        acquire("T1", "R2"),
        acquire("T2", "R3"),
        acquire("T3", "R1"),
    ]


def generate_random_operation(manager, rng, release_probability=None):
    """
    Picks a live transaction and either releases one of its locks or asks
    for a random resource. Returns None when every transaction is aborted.
    """
    if release_probability is None:
        release_probability = config.RELEASE_PROBABILITY

    live = [tx for tx in manager.transactions.values() if not tx.is_terminal]
    if not live or not manager.resources:
        return None

    tx = rng.choice(live)
    if tx.held_locks and rng.random() < release_probability:
        return release(tx.id, rng.choice(list(tx.held_locks)))
    return acquire(tx.id, rng.choice(list(manager.resources)))


def generate_workload(manager, rng, count, release_probability=None):
    """Generates and applies count random operations. Returns (operation, result) pairs."""
    history = []
    for _ in range(count):
        operation = generate_random_operation(manager, rng, release_probability)
        if operation is None:
            logger.info("No live transactions left, stopping workload.")
            break
        history.append((operation, manager.apply(operation)))
    return history
