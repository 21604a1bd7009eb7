"""
dependencies/propagation.py - Cascade invalidation engine

Walks the dependency graph from a changed record to every record that
depends on it, stamping each one once per transaction and firing its
after-invalidation hooks.

Outside a transaction a write propagates immediately. Inside one, the
write is recorded in the outermost transaction's scope and propagated
when that transaction commits; a rollback discards it. Stamps issued
here are never reported back as writes.
"""

from __future__ import annotations
from typing import Any, Dict, Iterator, List, Optional, Tuple
import logging

from cachedeps.persistence import EntityProtocol, PersistenceLayer
from .edges import DependencyEdge
from .graph import DependencyGraph
from .hooks import HookRunner
from .scope import InvalidationScope, PendingSource
from .trigger_log import InvalidationLog, LogEntryKind

logger = logging.getLogger(__name__)


class PropagationEngine:
    """
    Propagates invalidation through a frozen DependencyGraph.

    The engine subscribes itself to the persistence layer's outermost
    commit and rollback notifications; writes are fed to ``on_write``
    (the engine is also callable, so it can be passed as a subscriber).
    """

    def __init__(
        self,
        graph: DependencyGraph,
        persistence: PersistenceLayer,
        hooks: Optional[HookRunner] = None,
        log: Optional[InvalidationLog] = None,
        defer_until_commit: bool = True,
    ):
        self.graph = graph
        self.persistence = persistence
        self.hooks = hooks or HookRunner()
        self.log = log
        self.defer_until_commit = defer_until_commit

        # Outermost transaction id -> scope
        self._scopes: Dict[str, InvalidationScope] = {}

        persistence.on_outermost_commit(self.on_outermost_commit)
        persistence.on_rollback(self.on_rollback)

    def __call__(self, entity: EntityProtocol) -> None:
        self.on_write(entity)

    # =========================================================================
    # NOTIFICATIONS
    # =========================================================================

    def on_write(self, entity: EntityProtocol) -> None:
        """A record was created, updated, touched or destroyed."""
        self._enter(entity, needs_stamp=False)

    def invalidate(self, entity: EntityProtocol) -> None:
        """Mark a record stale without writing it: stamp it, then cascade."""
        self._enter(entity, needs_stamp=True)

    def on_outermost_commit(self, transaction: Any) -> None:
        """Flush the committed transaction's pending writes, in first-write order."""
        scope = self._scopes.pop(transaction.transaction_id, None)
        if scope is None:
            return

        sources = scope.take_pending()
        self._record(LogEntryKind.FLUSHED, None, scope, sources=len(sources))
        logger.info(
            f"Transaction {transaction.transaction_id} committed: "
            f"flushing {len(sources)} pending invalidations"
        )

        for source in sources:
            self._start(source.entity, scope, source.needs_stamp)

    def on_rollback(self, transaction: Any, depth: int) -> None:
        """Drop pending writes made inside the rolled-back transaction."""
        if depth <= 1:
            scope = self._scopes.pop(transaction.transaction_id, None)
            if scope is None:
                return
            dropped = scope.take_pending()
        else:
            scope = self._scopes.get(self.persistence.current_transaction_id())
            if scope is None:
                return
            dropped = scope.discard_transaction(transaction.transaction_id)
            # Stamps made in immediate mode were undone by the rollback too
            released = scope.release(transaction.transaction_id)
            if released:
                logger.debug(
                    f"Transaction {transaction.transaction_id} rolled back: "
                    f"released {len(released)} stamps"
                )

        if dropped:
            self._record(LogEntryKind.DISCARDED, None, scope, sources=len(dropped))
            logger.warning(
                f"Transaction {transaction.transaction_id} rolled back: "
                f"discarded {len(dropped)} pending invalidations"
            )

    # =========================================================================
    # PROPAGATION
    # =========================================================================

    def _enter(self, entity: EntityProtocol, needs_stamp: bool) -> None:
        if not self.graph.is_cascade_enabled(entity.type_name):
            return

        transaction_id = self.persistence.current_transaction_id()
        if transaction_id is None:
            self._start(entity, InvalidationScope(), needs_stamp)
            return

        scope = self._scopes.get(transaction_id)
        if scope is None:
            scope = self._scopes[transaction_id] = InvalidationScope(transaction_id)

        if self.defer_until_commit:
            if scope.mark_pending(entity, self.persistence.active_transaction_ids(), needs_stamp):
                self._record(LogEntryKind.DEFERRED, entity, scope)
        else:
            self._start(entity, scope, needs_stamp, tuple(self.persistence.active_transaction_ids()))

    def _start(
        self,
        entity: EntityProtocol,
        scope: InvalidationScope,
        needs_stamp: bool,
        transaction_path: Tuple[str, ...] = (),
    ) -> None:
        """A written (or manually invalidated) record starts a cascade."""
        if not scope.visit(entity, transaction_path):
            self._record(LogEntryKind.SKIPPED_VISITED, entity, scope)
            return

        if needs_stamp:
            self.persistence.stamp(entity)
        self._record(LogEntryKind.SOURCE, entity, scope)

        self._fire(entity, scope)
        self.propagate(entity, scope, transaction_path)

    def propagate(
        self,
        entity: EntityProtocol,
        scope: InvalidationScope,
        transaction_path: Tuple[str, ...] = (),
    ) -> None:
        """
        Stamp every dependent of ``entity`` not yet stamped in ``scope``.

        Depth-first, in edge declaration order: a dependent's own dependents
        are stamped before its next sibling. Absent related records are
        skipped; already stamped ones are skipped silently. Uses an explicit
        stack, so chain depth is not bounded by the interpreter's recursion
        limit.
        """
        stack: List[Iterator[Tuple[EntityProtocol, DependencyEdge, EntityProtocol]]] = [
            self._walk(entity)
        ]
        while stack:
            step = next(stack[-1], None)
            if step is None:
                stack.pop()
                continue

            cause, edge, dependent = step
            if not scope.visit(dependent, transaction_path):
                self._record(LogEntryKind.SKIPPED_VISITED, dependent, scope, caused_by=cause)
                continue

            self.persistence.stamp(dependent)
            self._record(
                LogEntryKind.STAMPED, dependent, scope,
                caused_by=cause, relationship=edge.relationship,
            )
            logger.debug(f"Stamped {dependent!r} via {edge.source_type}.{edge.relationship}")

            self._fire(dependent, scope)
            stack.append(self._walk(dependent))

    def _walk(self, entity: EntityProtocol) -> Iterator[Tuple[EntityProtocol, DependencyEdge, EntityProtocol]]:
        """Lazily yield ``(entity, edge, dependent)`` for every edge of ``entity``'s type."""
        for edge in self.graph.edges_for(entity.type_name):
            for dependent in self._dependents(entity, edge):
                yield entity, edge, dependent

    def _dependents(self, entity: EntityProtocol, edge: DependencyEdge) -> List[EntityProtocol]:
        related = self.persistence.resolve_relationship(entity, edge.relationship)
        if edge.is_collection:
            candidates = list(related or [])
        else:
            candidates = [related] if related is not None else []
        # A polymorphic link may point at a type this edge does not serve
        return [c for c in candidates if c.type_name == edge.target_type]

    def _fire(self, entity: EntityProtocol, scope: InvalidationScope) -> None:
        count = self.hooks.fire(entity)
        if count:
            self._record(LogEntryKind.HOOKS_FIRED, entity, scope, hooks=count)

    def _record(
        self,
        kind: LogEntryKind,
        entity: Optional[EntityProtocol],
        scope: InvalidationScope,
        **kwargs: Any,
    ) -> None:
        if self.log is not None:
            self.log.record(kind, entity, transaction_id=scope.transaction_id, **kwargs)

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    def active_scope(self) -> Optional[InvalidationScope]:
        """Scope of the currently open outermost transaction, if any."""
        transaction_id = self.persistence.current_transaction_id()
        return self._scopes.get(transaction_id) if transaction_id else None

    def pending(self) -> List[PendingSource]:
        scope = self.active_scope()
        return scope.pending() if scope else []
