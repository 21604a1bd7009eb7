"""
persistence/store.py - In-memory record store

Reference persistence layer: keeps records in process, supports nested
transactions with snapshot rollback, runs per-type lifecycle callbacks
and reports every user-visible write to its subscribers. Stamps issued
by the propagation engine are silent.
"""

from __future__ import annotations
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Union
import logging

from cachedeps.catalog import RelationshipCatalog, RelationshipDescriptor, RelationshipKind
from cachedeps.errors import RecordNotFound
from cachedeps.transactions import ChangeOperation, Transaction, TransactionManager
from .records import Record

logger = logging.getLogger(__name__)

RecordCallback = Callable[[Record], None]

LIFECYCLE_EVENTS = ("after_create", "after_update", "after_touch", "after_destroy")


class InMemoryStore:
    """
    Record store implementing the PersistenceLayer protocol.

    Usage:
        store = InMemoryStore(catalog)
        provider = store.create("Provider")
        account = store.create("Account", provider=provider)
        with store.transaction():
            store.touch(provider)
    """

    def __init__(
        self,
        catalog: RelationshipCatalog,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.catalog = catalog
        self._clock = clock or datetime.utcnow
        self._last_tick: Optional[datetime] = None

        self._records: Dict[str, Dict[int, Record]] = {}
        self._next_pk: Dict[str, int] = {}

        self._callbacks: Dict[str, Dict[str, List[RecordCallback]]] = {}
        self._subscribers: List[RecordCallback] = []

        self.transactions = TransactionManager(state=self)

    # =========================================================================
    # CLOCK
    # =========================================================================

    def now(self) -> datetime:
        """Strictly increasing timestamp, so every write moves ``updated_at``."""
        tick = self._clock()
        if self._last_tick is not None and tick <= self._last_tick:
            tick = self._last_tick + timedelta(microseconds=1)
        self._last_tick = tick
        return tick

    # =========================================================================
    # SUBSCRIPTIONS & LIFECYCLE CALLBACKS
    # =========================================================================

    def subscribe(self, listener: RecordCallback) -> None:
        """Receive every create/update/touch/destroy (never stamps)."""
        self._subscribers.append(listener)

    def register_callback(self, type_name: str, event: str, callback: RecordCallback) -> None:
        if event not in LIFECYCLE_EVENTS:
            raise ValueError(f"Unknown lifecycle event: {event}")
        self.catalog.entity_type(type_name)
        self._callbacks.setdefault(type_name, {}).setdefault(event, []).append(callback)

    def after_create(self, type_name: str, callback: RecordCallback) -> None:
        self.register_callback(type_name, "after_create", callback)

    def after_update(self, type_name: str, callback: RecordCallback) -> None:
        self.register_callback(type_name, "after_update", callback)

    def after_touch(self, type_name: str, callback: RecordCallback) -> None:
        self.register_callback(type_name, "after_touch", callback)

    def after_destroy(self, type_name: str, callback: RecordCallback) -> None:
        self.register_callback(type_name, "after_destroy", callback)

    def _run_callbacks(self, record: Record, event: str) -> None:
        for callback in self._callbacks.get(record.type_name, {}).get(event, []):
            callback(record)

    def _written(self, record: Record, operation: ChangeOperation) -> None:
        self.transactions.record_change(record.type_name, record.pk, operation)
        self._run_callbacks(record, f"after_{operation.value}")
        for listener in list(self._subscribers):
            listener(record)

    # =========================================================================
    # RECORD OPERATIONS
    # =========================================================================

    def create(self, type_name: str, **attributes: Any) -> Record:
        """Create and persist a record; relationship names are accepted as keys."""
        self.catalog.entity_type(type_name)

        pk = self._next_pk.get(type_name, 0) + 1
        self._next_pk[type_name] = pk

        now = self.now()
        record = Record(type_name=type_name, pk=pk, created_at=now, updated_at=now)
        deferred = self._assign(record, attributes)
        self._records.setdefault(type_name, {})[pk] = record

        logger.debug(f"Created {record!r}")
        self._written(record, ChangeOperation.CREATE)
        self._assign_inverse_links(record, deferred)
        return record

    def update(self, record: Record, **attributes: Any) -> Record:
        """Assign attributes and bump ``updated_at``."""
        record = self.find(record.type_name, record.pk)
        deferred = self._assign(record, attributes)
        record.updated_at = self.now()

        self._written(record, ChangeOperation.UPDATE)
        self._assign_inverse_links(record, deferred)
        return record

    def touch(self, record: Record) -> Record:
        """Bump ``updated_at`` as a user write (runs after_touch, notifies)."""
        record = self.find(record.type_name, record.pk)
        record.updated_at = self.now()
        self._written(record, ChangeOperation.TOUCH)
        return record

    def destroy(self, record: Record) -> Record:
        """Remove a record. Its attributes survive on the returned object."""
        record = self.find(record.type_name, record.pk)
        del self._records[record.type_name][record.pk]
        record.destroyed = True

        logger.debug(f"Destroyed {record!r}")
        self._written(record, ChangeOperation.DESTROY)
        return record

    def get(self, type_name: str, pk: Any) -> Optional[Record]:
        return self._records.get(type_name, {}).get(pk)

    def find(self, type_name: str, pk: Any) -> Record:
        record = self.get(type_name, pk)
        if record is None:
            raise RecordNotFound(type_name, pk)
        return record

    def reload(self, record: Record) -> Record:
        return self.find(record.type_name, record.pk)

    def all(self, type_name: str) -> List[Record]:
        return list(self._records.get(type_name, {}).values())

    def where(self, type_name: str, **conditions: Any) -> List[Record]:
        return [
            record for record in self.all(type_name)
            if all(record.attributes.get(k) == v for k, v in conditions.items())
        ]

    def _assign(self, record: Record, attributes: Dict[str, Any]) -> Dict[str, Any]:
        """Write plain attributes and belongs_to links; return has_one/has_many assignments."""
        deferred: Dict[str, Any] = {}
        for key, value in attributes.items():
            descriptor = self.catalog.find(record.type_name, key)
            if descriptor is None:
                record.attributes[key] = value
            elif descriptor.kind is RelationshipKind.BELONGS_TO:
                record.attributes[self.catalog.foreign_key_for(descriptor)] = value.pk if value else None
                if descriptor.polymorphic:
                    record.attributes[f"{descriptor.name}_type"] = value.type_name if value else None
            elif descriptor.is_through:
                raise ValueError(f"{record.type_name}.{key} is a through relationship and cannot be assigned")
            else:
                deferred[key] = value
        return deferred

    def _assign_inverse_links(self, record: Record, deferred: Dict[str, Any]) -> None:
        """Point has_one/has_many targets at ``record`` (each is its own write)."""
        for key, value in deferred.items():
            descriptor = self.catalog.describe(record.type_name, key)
            targets = value if isinstance(value, (list, tuple)) else [value]
            link = {self.catalog.foreign_key_for(descriptor): record.pk}
            if descriptor.as_:
                link[f"{descriptor.as_}_type"] = record.type_name
            for target in targets:
                if target is not None:
                    self.update(target, **link)

    # =========================================================================
    # PERSISTENCE LAYER PROTOCOL
    # =========================================================================

    def stamp(self, entity: Record) -> None:
        """Bump ``updated_at`` silently; destroyed records are left alone."""
        record = self.get(entity.type_name, entity.pk)
        if record is None:
            logger.debug(f"Skipping stamp of missing {entity!r}")
            return
        record.updated_at = self.now()

    def resolve_relationship(
        self,
        entity: Record,
        name: str,
    ) -> Union[None, Record, List[Record]]:
        descriptor = self.catalog.describe(entity.type_name, name)

        current = [entity]
        for hop in self.catalog.through_chain(descriptor):
            found: Dict[Any, Record] = {}
            for record in current:
                for related in self._resolve_direct(record, hop):
                    found.setdefault(related.identity, related)
            current = list(found.values())

        if descriptor.is_collection:
            return current
        return current[0] if current else None

    def _resolve_direct(self, record: Record, descriptor: RelationshipDescriptor) -> List[Record]:
        foreign_key = self.catalog.foreign_key_for(descriptor)

        if descriptor.kind is RelationshipKind.BELONGS_TO:
            pk = record.attributes.get(foreign_key)
            if descriptor.polymorphic:
                target = record.attributes.get(f"{descriptor.name}_type")
            else:
                target = descriptor.target
            if pk is None or target is None:
                return []
            related = self.get(target, pk)
            return [related] if related is not None else []

        conditions = {foreign_key: record.pk}
        if descriptor.as_:
            conditions[f"{descriptor.as_}_type"] = record.type_name
        matches = self.where(descriptor.target, **conditions)
        if descriptor.kind is RelationshipKind.HAS_ONE:
            return matches[:1]
        return matches

    def current_transaction_id(self) -> Optional[str]:
        return self.transactions.outermost_transaction_id

    def transaction_depth(self) -> int:
        return self.transactions.depth

    def active_transaction_ids(self) -> List[str]:
        return self.transactions.active_transaction_ids

    def on_outermost_commit(self, callback: Callable[[Transaction], None]) -> None:
        self.transactions.on_outermost_commit(callback)

    def on_rollback(self, callback: Callable[[Transaction, int], None]) -> None:
        self.transactions.on_rollback(callback)

    def on_after_commit(self, entity: Record, callback: Callable[[Any], None]) -> None:
        self.transactions.on_after_commit(entity, callback)

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    @contextmanager
    def transaction(self, source: str = "", description: str = ""):
        with self.transactions.transaction(source=source, description=description) as tx:
            yield tx

    def snapshot(self) -> Dict[str, Any]:
        """Capture record state for rollback."""
        return {
            "records": {
                type_name: {
                    pk: (record, dict(record.attributes), record.updated_at, record.destroyed)
                    for pk, record in records.items()
                }
                for type_name, records in self._records.items()
            },
        }

    def restore(self, snapshot: Dict[str, Any]) -> None:
        """Restore record state captured by ``snapshot()``; record objects are reused."""
        restored: Dict[str, Dict[int, Record]] = {}
        for type_name, records in snapshot["records"].items():
            bucket = restored.setdefault(type_name, {})
            for pk, (record, attributes, updated_at, destroyed) in records.items():
                record.attributes = dict(attributes)
                record.updated_at = updated_at
                record.destroyed = destroyed
                bucket[pk] = record
        self._records = restored
