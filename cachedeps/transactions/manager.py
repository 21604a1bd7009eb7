"""
transactions/manager.py - Transaction management

Nested transactions share one outermost boundary: commit-deferred work
runs only when the bottom of the stack commits. Rolling back restores the
snapshot taken when that level began.
"""

from __future__ import annotations
from typing import Any, Callable, Dict, List, Optional
from datetime import datetime
from contextlib import contextmanager
import logging
import uuid

from cachedeps.errors import TransactionError
from .schemas import (
    ChangeOperation,
    RecordChange,
    Transaction,
    TransactionStatus,
)


class TransactionManager:
    """
    Manages nested transactions and their lifecycle notifications.

    ``state`` is optional; when it provides ``snapshot()`` and
    ``restore(snapshot)`` the manager uses them for rollback.
    """

    def __init__(self, state: Any = None, max_history: int = 100):
        self.state = state
        self.logger = logging.getLogger(__name__)

        self._stack: List[Transaction] = []

        # Completed transactions (for audit)
        self._history: List[Transaction] = []
        self._max_history = max_history

        self._outermost_commit_listeners: List[Callable[[Transaction], None]] = []
        self._rollback_listeners: List[Callable[[Transaction, int], None]] = []

    @property
    def active_transaction(self) -> Optional[Transaction]:
        """Innermost active transaction."""
        return self._stack[-1] if self._stack else None

    @property
    def active_transaction_id(self) -> Optional[str]:
        return self._stack[-1].transaction_id if self._stack else None

    @property
    def outermost_transaction_id(self) -> Optional[str]:
        return self._stack[0].transaction_id if self._stack else None

    @property
    def active_transaction_ids(self) -> List[str]:
        """Open transaction ids, outermost first."""
        return [tx.transaction_id for tx in self._stack]

    @property
    def depth(self) -> int:
        return len(self._stack)

    @property
    def in_transaction(self) -> bool:
        return bool(self._stack)

    # =========================================================================
    # LISTENERS
    # =========================================================================

    def on_outermost_commit(self, callback: Callable[[Transaction], None]) -> None:
        """
        Register a callback run each time an outermost transaction commits.

        A failing callback does not stop the ones registered after it; the
        first error is re-raised from ``commit`` once all have run. The
        transaction is committed either way.
        """
        self._outermost_commit_listeners.append(callback)

    def on_rollback(self, callback: Callable[[Transaction, int], None]) -> None:
        """Register a callback run with ``(transaction, depth)`` on every rollback."""
        self._rollback_listeners.append(callback)

    def on_after_commit(self, entity: Any, callback: Callable[[Any], None]) -> None:
        """
        Run ``callback(entity)`` once the enclosing outermost transaction commits.

        Outside a transaction the callback runs immediately.
        """
        tx = self.active_transaction
        if tx is None:
            callback(entity)
            return
        tx.after_commit.append((entity, callback))

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def begin(
        self,
        transaction_id: str = None,
        source: str = "",
        description: str = "",
    ) -> Transaction:
        """Begin a new (possibly nested) transaction."""
        parent = self.active_transaction

        tx = Transaction(
            transaction_id=transaction_id or uuid.uuid4().hex[:8],
            parent_transaction_id=parent.transaction_id if parent else None,
            depth=len(self._stack) + 1,
            source=source,
            description=description,
        )

        if hasattr(self.state, "snapshot"):
            tx.initial_snapshot = self.state.snapshot()

        self._stack.append(tx)
        self.logger.debug(f"Transaction {tx.transaction_id} started (depth {tx.depth})")

        return tx

    def _pop(self, transaction_id: Optional[str], action: str) -> Transaction:
        tx = self.active_transaction
        if tx is None:
            raise TransactionError(f"Cannot {action}: no active transaction", transaction_id)
        if transaction_id is not None and transaction_id != tx.transaction_id:
            raise TransactionError(
                f"Cannot {action}: transaction {transaction_id} is not the innermost "
                f"active transaction ({tx.transaction_id})",
                transaction_id,
            )
        self._stack.pop()
        return tx

    def commit(self, transaction_id: str = None) -> Transaction:
        """Commit the innermost transaction."""
        tx = self._pop(transaction_id, "commit")
        tx.status = TransactionStatus.COMMITTED
        tx.completed_at = datetime.utcnow()
        self._add_to_history(tx)

        parent = self.active_transaction
        if parent is not None:
            # Nested commit folds into the parent; nothing is durable yet
            parent.changes.extend(tx.changes)
            parent.after_commit.extend(tx.after_commit)
            self.logger.debug(f"Transaction {tx.transaction_id} committed into {parent.transaction_id}")
            return tx

        self.logger.info(
            f"Transaction {tx.transaction_id} committed ({len(tx.changes)} changes)"
        )

        for entity, callback in tx.after_commit:
            callback(entity)

        # Every listener runs even if an earlier one fails; the first error is re-raised
        first_error: Optional[Exception] = None
        for listener in list(self._outermost_commit_listeners):
            try:
                listener(tx)
            except Exception as e:
                self.logger.error(f"Outermost commit listener failed for {tx.transaction_id}: {e}")
                if first_error is None:
                    first_error = e
        if first_error is not None:
            raise first_error

        return tx

    def rollback(self, transaction_id: str = None) -> Transaction:
        """Rollback the innermost transaction."""
        tx = self._pop(transaction_id, "rollback")

        if tx.initial_snapshot is not None and hasattr(self.state, "restore"):
            self.state.restore(tx.initial_snapshot)

        tx.status = TransactionStatus.ROLLED_BACK
        tx.completed_at = datetime.utcnow()
        self._add_to_history(tx)

        self.logger.info(f"Transaction {tx.transaction_id} rolled back (depth {tx.depth})")

        for listener in list(self._rollback_listeners):
            listener(tx, tx.depth)

        return tx

    def record_change(self, type_name: str, pk: Any, operation: ChangeOperation) -> Optional[RecordChange]:
        """Record a write in the active transaction."""
        tx = self.active_transaction
        if not tx:
            return None

        change = RecordChange(
            transaction_id=tx.transaction_id,
            type_name=type_name,
            pk=pk,
            operation=operation,
        )
        tx.changes.append(change)
        return change

    @contextmanager
    def transaction(
        self,
        source: str = "",
        description: str = "",
    ):
        """Context manager for transactions."""
        tx = self.begin(source=source, description=description)
        try:
            yield tx
        except Exception:
            self.rollback(tx.transaction_id)
            raise
        self.commit(tx.transaction_id)

    def _add_to_history(self, tx: Transaction) -> None:
        self._history.append(tx)
        if len(self._history) > self._max_history:
            self._history = self._history[-self._max_history:]

    def get_history(self, limit: int = 20) -> List[Transaction]:
        """Get transaction history."""
        return self._history[-limit:]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "active": [tx.to_dict() for tx in self._stack],
            "history": [tx.to_dict() for tx in self._history[-20:]],
        }
