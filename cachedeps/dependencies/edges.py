"""
dependencies/edges.py - Dependency edge definition
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict

from cachedeps.catalog import Cardinality


class InverseStrategy(Enum):
    """How the reverse relationship of a declaration was found."""
    POLYMORPHIC = "polymorphic"   # Target declares the ``as:`` interface
    EXPLICIT = "explicit"         # inverse_of hint
    SINGULAR = "singular"         # Named after the declaring type's singular
    PLURAL = "plural"             # Named after the declaring type's plural


@dataclass(frozen=True)
class DependencyEdge:
    """
    "When a ``source_type`` record changes, stamp its ``relationship`` records."

    Installed on the target of the declared relationship, pointing back to
    ``target_type`` (the declaring type).
    """
    source_type: str
    relationship: str
    cardinality: Cardinality
    target_type: str

    # Provenance
    declared_via: str = ""
    strategy: InverseStrategy = InverseStrategy.SINGULAR

    @property
    def key(self):
        return (self.source_type, self.relationship, self.target_type)

    @property
    def is_collection(self) -> bool:
        return self.cardinality is Cardinality.MANY

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_type": self.source_type,
            "relationship": self.relationship,
            "cardinality": self.cardinality.value,
            "target_type": self.target_type,
            "declared_via": self.declared_via,
            "strategy": self.strategy.value,
        }
