"""
Priority ordering of drained operations.
"""
from typing import Iterable, List

from .models import UserOperation


def order_by_fee(operations: Iterable[UserOperation]) -> List[UserOperation]:
    """
    Order operations by max fee per gas, highest first.

    The sort is stable: operations offering the same fee keep their arrival
    order. Nothing is dropped.

    Args:
        operations: Drained operations in arrival order

    Returns:
        New list sorted descending by ``max_fee_per_gas``
    """
    # sorted() with reverse=True keeps equal elements in their original order
    return sorted(operations, key=lambda op: op.max_fee_per_gas, reverse=True)
