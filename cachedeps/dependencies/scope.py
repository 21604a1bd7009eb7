"""
dependencies/scope.py - Per-transaction invalidation scope

Tracks which identities a transaction has already stamped and which
written entities are still waiting for the outermost commit. Owned by
exactly one transaction and discarded when it ends.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from cachedeps.persistence import EntityProtocol, Identity, identity_of


class EntryState(Enum):
    """State of an identity within one scope."""
    PENDING = "pending"    # Written, waiting for the outermost commit
    STAMPED = "stamped"    # Stamped (or written) and hooks fired


@dataclass
class PendingSource:
    """An entity written inside the transaction."""
    entity: EntityProtocol
    # Transaction ids from outermost to innermost at the time of the write
    transaction_path: Tuple[str, ...] = ()
    # Manual invalidations carry no write of their own and must be stamped
    needs_stamp: bool = False


class InvalidationScope:
    """Visited set plus ordered pending sources for one transaction."""

    def __init__(self, transaction_id: Optional[str] = None):
        self.transaction_id = transaction_id
        self._states: Dict[Identity, EntryState] = {}
        self._pending: Dict[Identity, PendingSource] = {}
        # Transaction ids open when an identity was stamped (empty after commit)
        self._stamp_paths: Dict[Identity, Tuple[str, ...]] = {}

    # =========================================================================
    # PENDING SOURCES
    # =========================================================================

    def mark_pending(
        self,
        entity: EntityProtocol,
        transaction_path: Sequence[str] = (),
        needs_stamp: bool = False,
    ) -> bool:
        """
        Record a write awaiting commit.

        Returns False if the identity was already pending; the first write
        keeps its position and transaction path.
        """
        key = identity_of(entity)
        existing = self._pending.get(key)
        if existing is not None:
            existing.entity = entity
            existing.needs_stamp = existing.needs_stamp or needs_stamp
            return False

        self._pending[key] = PendingSource(
            entity=entity,
            transaction_path=tuple(transaction_path),
            needs_stamp=needs_stamp,
        )
        self._states.setdefault(key, EntryState.PENDING)
        return True

    def pending(self) -> List[PendingSource]:
        """Pending sources in first-write order."""
        return list(self._pending.values())

    def take_pending(self) -> List[PendingSource]:
        """Remove and return pending sources in first-write order."""
        sources = list(self._pending.values())
        self._pending.clear()
        return sources

    def discard_transaction(self, transaction_id: str) -> List[PendingSource]:
        """Drop sources written inside ``transaction_id`` (or a transaction nested in it)."""
        dropped = [s for s in self._pending.values() if transaction_id in s.transaction_path]
        for source in dropped:
            key = identity_of(source.entity)
            del self._pending[key]
            if self._states.get(key) is EntryState.PENDING:
                del self._states[key]
        return dropped

    # =========================================================================
    # VISITED SET
    # =========================================================================

    def visit(self, entity: EntityProtocol, transaction_path: Sequence[str] = ()) -> bool:
        """
        Mark stamped; False if this scope already stamped the identity.

        ``transaction_path`` lists the transactions open while stamping, so
        a nested rollback can take the stamp back with ``release``.
        """
        key = identity_of(entity)
        if self._states.get(key) is EntryState.STAMPED:
            return False
        self._states[key] = EntryState.STAMPED
        if transaction_path:
            self._stamp_paths[key] = tuple(transaction_path)
        return True

    def release(self, transaction_id: str) -> List[Identity]:
        """Forget stamps made inside ``transaction_id``; returns the released identities."""
        released = [k for k, path in self._stamp_paths.items() if transaction_id in path]
        for key in released:
            del self._stamp_paths[key]
            if key in self._pending:
                self._states[key] = EntryState.PENDING
            else:
                self._states.pop(key, None)
        return released

    def state_of(self, entity: EntityProtocol) -> Optional[EntryState]:
        return self._states.get(identity_of(entity))

    def is_stamped(self, entity: EntityProtocol) -> bool:
        return self.state_of(entity) is EntryState.STAMPED

    def stamped(self) -> List[Identity]:
        """Identities stamped so far, in first-seen order."""
        return [k for k, state in self._states.items() if state is EntryState.STAMPED]

    def __contains__(self, entity: Any) -> bool:
        return identity_of(entity) in self._states

    def __len__(self) -> int:
        return len(self._states)

    def __repr__(self) -> str:
        return (
            f"InvalidationScope(transaction_id={self.transaction_id!r}, "
            f"pending={len(self._pending)}, stamped={len(self.stamped())})"
        )
