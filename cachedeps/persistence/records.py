"""
persistence/records.py - In-memory record representation
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Tuple


@dataclass(eq=False)
class Record:
    """A stored entity instance. Identity is ``(type_name, pk)``."""
    type_name: str
    pk: int
    attributes: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)
    destroyed: bool = False

    @property
    def identity(self) -> Tuple[str, int]:
        return (self.type_name, self.pk)

    def get(self, key: str, default: Any = None) -> Any:
        return self.attributes.get(key, default)

    def __getitem__(self, key: str) -> Any:
        return self.attributes[key]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Record):
            return NotImplemented
        return self.identity == other.identity

    def __hash__(self) -> int:
        return hash(self.identity)

    def __repr__(self) -> str:
        state = " destroyed" if self.destroyed else ""
        return f"<{self.type_name} #{self.pk}{state}>"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type_name,
            "id": self.pk,
            "attributes": dict(self.attributes),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "destroyed": self.destroyed,
        }
