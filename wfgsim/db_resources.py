from collections import deque
from enum import Enum


class TxStatus(Enum):
    ACTIVE = "active"
    WAITING = "waiting"
    BLOCKED = "blocked"
    ABORTED = "aborted"

    @property
    def is_terminal(self):
        return self is TxStatus.ABORTED


class Resource:
    """An exclusively lockable resource with a FIFO queue of waiting transactions."""

    def __init__(self, resource_id):
        self.id = resource_id
        self.locked_by = None
        self.wait_queue = deque()

    @property
    def is_free(self):
        return self.locked_by is None

    def enqueue(self, tx_id):
        """Appends tx_id unless it is already queued. Returns whether it was added."""
        if tx_id in self.wait_queue:
            return False
        self.wait_queue.append(tx_id)
        return True

    def dequeue(self):
        return self.wait_queue.popleft()

    def withdraw(self, tx_id):
        """Drops tx_id from the queue. Returns whether it was there."""
        try:
            self.wait_queue.remove(tx_id)
        except ValueError:
            return False
        return True

    def __str__(self):
        return f"Resource-{self.id}"


class Transaction:
    """A transaction that can hold locks and wait on at most one resource."""

    def __init__(self, tx_id, status=TxStatus.ACTIVE):
        self.id = tx_id
        self.status = status
        # insertion-ordered set of resource ids
        self.held_locks = {}
        self.waiting_for = None

    @property
    def is_terminal(self):
        return self.status.is_terminal

    def holds(self, resource_id):
        return resource_id in self.held_locks

    def grant(self, resource_id):
        self.held_locks[resource_id] = None
        self.status = TxStatus.ACTIVE
        self.waiting_for = None

    def drop(self, resource_id):
        self.held_locks.pop(resource_id, None)

    def wait_on(self, resource_id):
        self.waiting_for = resource_id
        self.status = TxStatus.WAITING

    def __str__(self):
        return f"Transaction-{self.id}"
