"""
Utilities module: Exceptions, money helpers, clock.
"""

from shared.utils.exceptions import (
    NotFoundError,
    NotOwnerError,
    TableUnavailableError,
    ConflictViolationError,
    InvalidBatchError,
    ValidationError,
    ConflictError,
    StoreError,
)
from shared.utils.money import CartTotals, compute_totals, to_money
from shared.utils.clock import utcnow

__all__ = [
    # exceptions
    "NotFoundError",
    "NotOwnerError",
    "TableUnavailableError",
    "ConflictViolationError",
    "InvalidBatchError",
    "ValidationError",
    "ConflictError",
    "StoreError",
    # money
    "CartTotals",
    "compute_totals",
    "to_money",
    # clock
    "utcnow",
]
