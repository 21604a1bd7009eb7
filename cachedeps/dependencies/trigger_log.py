"""
dependencies/trigger_log.py - Invalidation audit trail

Records what each cascade did: which writes started it, which records
were stamped and why, and what a rollback discarded. Bounded in size;
queryable by entity, kind and transaction; exportable to JSON.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Hashable, List, Optional, Union
import json
import logging
import uuid

logger = logging.getLogger(__name__)


class LogEntryKind(Enum):
    """What happened to an entity."""
    SOURCE = "source"                    # A write started propagation
    DEFERRED = "deferred"                # Write recorded until outermost commit
    STAMPED = "stamped"                  # Dependent stamped through an edge
    HOOKS_FIRED = "hooks_fired"          # After-invalidation hooks ran
    SKIPPED_VISITED = "skipped_visited"  # Already stamped in this scope
    FLUSHED = "flushed"                  # Outermost commit flushed pending writes
    DISCARDED = "discarded"              # Rollback dropped pending writes


@dataclass
class LogEntry:
    """A single entry in the invalidation log."""
    entry_id: str = field(default_factory=lambda: str(uuid.uuid4())[:12])
    timestamp: datetime = field(default_factory=datetime.utcnow)

    kind: LogEntryKind = LogEntryKind.STAMPED

    type_name: Optional[str] = None
    pk: Optional[Hashable] = None
    transaction_id: Optional[str] = None

    # "Type#pk" of the record whose change led here, and the edge used
    caused_by: Optional[str] = None
    relationship: Optional[str] = None

    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def label(self) -> Optional[str]:
        return f"{self.type_name}#{self.pk}" if self.type_name else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entry_id": self.entry_id,
            "timestamp": self.timestamp.isoformat(),
            "kind": self.kind.value,
            "type_name": self.type_name,
            "pk": self.pk if isinstance(self.pk, (str, int, float, bool)) or self.pk is None else str(self.pk),
            "transaction_id": self.transaction_id,
            "caused_by": self.caused_by,
            "relationship": self.relationship,
            "metadata": self.metadata,
        }


class InvalidationLog:
    """Bounded, queryable record of propagation activity."""

    DEFAULT_MAX_ENTRIES = 1000

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES):
        self._entries: List[LogEntry] = []
        self._max_entries = max_entries

    def record(
        self,
        kind: LogEntryKind,
        entity: Any = None,
        transaction_id: Optional[str] = None,
        caused_by: Any = None,
        relationship: Optional[str] = None,
        **metadata: Any,
    ) -> LogEntry:
        """Append an entry; ``entity`` and ``caused_by`` are records or None."""
        entry = LogEntry(
            kind=kind,
            type_name=entity.type_name if entity is not None else None,
            pk=entity.pk if entity is not None else None,
            transaction_id=transaction_id,
            caused_by=f"{caused_by.type_name}#{caused_by.pk}" if caused_by is not None else None,
            relationship=relationship,
            metadata=metadata,
        )
        self._entries.append(entry)

        if len(self._entries) > self._max_entries:
            self._entries = self._entries[len(self._entries) - self._max_entries:]

        return entry

    # =========================================================================
    # QUERIES
    # =========================================================================

    def entries(self) -> List[LogEntry]:
        return list(self._entries)

    def for_entity(self, type_name: str, pk: Hashable) -> List[LogEntry]:
        return [e for e in self._entries if e.type_name == type_name and e.pk == pk]

    def by_kind(self, kind: LogEntryKind) -> List[LogEntry]:
        return [e for e in self._entries if e.kind is kind]

    def for_transaction(self, transaction_id: str) -> List[LogEntry]:
        return [e for e in self._entries if e.transaction_id == transaction_id]

    def since(self, timestamp: datetime) -> List[LogEntry]:
        return [e for e in self._entries if e.timestamp >= timestamp]

    def stamp_count(self, type_name: str, pk: Hashable) -> int:
        """How many times a record was stamped or written as a cascade source."""
        return sum(
            1 for e in self.for_entity(type_name, pk)
            if e.kind in (LogEntryKind.STAMPED, LogEntryKind.SOURCE)
        )

    # =========================================================================
    # EXPORT
    # =========================================================================

    def export_json(self, path: Union[str, Path]) -> int:
        """Write all entries to a JSON file; returns the number exported."""
        data = {
            "exported_at": datetime.utcnow().isoformat(),
            "entry_count": len(self._entries),
            "entries": [e.to_dict() for e in self._entries],
        }
        with open(path, "w") as f:
            json.dump(data, f, indent=2)

        logger.info(f"Exported {len(self._entries)} invalidation log entries to {path}")
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
