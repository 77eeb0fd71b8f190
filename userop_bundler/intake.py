"""
Intake queue for pending user operations.
"""
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional

from .models import OperationOutcome, UserOperation

OutcomeCallback = Callable[[OperationOutcome], None]


@dataclass(frozen=True, eq=False)
class QueuedOperation:
    """
    One accepted submission: the operation and whoever asked to hear its outcome.

    Entries compare by identity, so two submissions of an equal operation stay
    distinct and each callback belongs to exactly one drain.
    """
    operation: UserOperation
    on_outcome: Optional[OutcomeCallback] = None


class IntakeQueue:
    """
    Arrival-ordered buffer of pending operations.

    The only state shared between the ingress (producer) and the bundling
    cycle (consumer). Mutated only by ``enqueue`` and ``drain_all``.
    """

    def __init__(self):
        self._items: List[QueuedOperation] = []
        self._lock = threading.Lock()

    def enqueue(self, op: UserOperation, on_outcome: Optional[OutcomeCallback] = None) -> QueuedOperation:
        """Append an operation to the tail. No validation, no deduplication."""
        entry = QueuedOperation(operation=op, on_outcome=on_outcome)
        with self._lock:
            self._items.append(entry)
        return entry

    def drain_all(self) -> List[QueuedOperation]:
        """
        Atomically remove and return everything queued so far.

        Operations enqueued after this call belong to the next drain.
        """
        with self._lock:
            drained, self._items = self._items, []
        return drained

    def snapshot(self) -> List[UserOperation]:
        """Copy of the queued operations without removing them"""
        with self._lock:
            return [entry.operation for entry in self._items]

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
