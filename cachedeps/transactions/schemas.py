"""
transactions/schemas.py - Transaction data structures
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple
from datetime import datetime
from enum import Enum
import uuid


class TransactionStatus(Enum):
    """Transaction status."""
    ACTIVE = "active"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class ChangeOperation(Enum):
    """Kind of record write."""
    CREATE = "create"
    UPDATE = "update"
    TOUCH = "touch"
    DESTROY = "destroy"


@dataclass
class RecordChange:
    """Record of a single write inside a transaction."""

    change_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    transaction_id: str = ""

    type_name: str = ""
    pk: Any = None
    operation: ChangeOperation = ChangeOperation.UPDATE

    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "change_id": self.change_id,
            "transaction_id": self.transaction_id,
            "type_name": self.type_name,
            "pk": self.pk,
            "operation": self.operation.value,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class Transaction:
    """Complete transaction record."""

    transaction_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])

    status: TransactionStatus = TransactionStatus.ACTIVE

    started_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None

    # Nesting
    parent_transaction_id: Optional[str] = None
    depth: int = 1

    changes: List[RecordChange] = field(default_factory=list)

    # Snapshot of the backing state, restored on rollback
    initial_snapshot: Any = field(default=None, repr=False)

    # Entity-level after-commit callbacks, run when the outermost transaction commits
    after_commit: List[Tuple[Any, Callable[[Any], None]]] = field(default_factory=list, repr=False)

    source: str = ""
    description: str = ""

    @property
    def is_outermost(self) -> bool:
        return self.parent_transaction_id is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transaction_id": self.transaction_id,
            "status": self.status.value,
            "depth": self.depth,
            "parent_transaction_id": self.parent_transaction_id,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "num_changes": len(self.changes),
            "source": self.source,
        }
