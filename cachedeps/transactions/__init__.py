"""
transactions/ - Transaction Model

Nested transactions with commit/rollback notifications. Commit-deferred
work is flushed once, when the outermost transaction commits.
"""

from .schemas import (
    TransactionStatus,
    ChangeOperation,
    RecordChange,
    Transaction,
)

from .manager import TransactionManager

__all__ = [
    # Schemas
    "TransactionStatus",
    "ChangeOperation",
    "RecordChange",
    "Transaction",
    # Manager
    "TransactionManager",
]
