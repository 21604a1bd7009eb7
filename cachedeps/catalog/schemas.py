"""
catalog/schemas.py - Relationship metadata structures

Descriptors are immutable. The catalog fills in the owner type and the
default target when a descriptor is registered on a type.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from enum import Enum


class Cardinality(Enum):
    """How many records a relationship resolves to."""
    ONE = "one"
    MANY = "many"


class RelationshipKind(Enum):
    """Declared relationship macro."""
    BELONGS_TO = "belongs_to"   # Foreign key lives on the owner
    HAS_ONE = "has_one"         # Foreign key lives on the target
    HAS_MANY = "has_many"       # Foreign key lives on the target

    @property
    def cardinality(self) -> Cardinality:
        return Cardinality.MANY if self is RelationshipKind.HAS_MANY else Cardinality.ONE


@dataclass(frozen=True)
class RelationshipDescriptor:
    """Metadata for one named relationship on a type."""
    name: str
    kind: RelationshipKind
    target: Optional[str] = None
    owner: Optional[str] = None

    # Polymorphic belongs_to (``auditable``) and its has_* counterpart (``as_="auditable"``)
    polymorphic: bool = False
    as_: Optional[str] = None

    # Through-relationships: ``through`` names a relationship on the owner,
    # ``source`` names the relationship on the intermediate type.
    through: Optional[str] = None
    source: Optional[str] = None

    foreign_key: Optional[str] = None
    inverse_of: Optional[str] = None

    @property
    def cardinality(self) -> Cardinality:
        return self.kind.cardinality

    @property
    def is_collection(self) -> bool:
        return self.cardinality is Cardinality.MANY

    @property
    def is_through(self) -> bool:
        return self.through is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind.value,
            "cardinality": self.cardinality.value,
            "owner": self.owner,
            "target": self.target,
            "polymorphic": self.polymorphic,
            "as": self.as_,
            "through": self.through,
            "source": self.source,
            "foreign_key": self.foreign_key,
            "inverse_of": self.inverse_of,
        }


@dataclass
class EntityType:
    """A named kind of record and its declared relationships."""
    name: str
    singular: str
    plural: str
    relationships: Dict[str, RelationshipDescriptor] = field(default_factory=dict)

    def relationship_names(self) -> List[str]:
        return list(self.relationships)


# =============================================================================
# DECLARATION HELPERS
# =============================================================================

def belongs_to(
    name: str,
    target: Optional[str] = None,
    *,
    polymorphic: bool = False,
    foreign_key: Optional[str] = None,
    inverse_of: Optional[str] = None,
) -> RelationshipDescriptor:
    """Declare a belongs_to relationship (foreign key on the owner)."""
    if polymorphic and target is not None:
        raise ValueError(f"polymorphic relationship {name} cannot name a target type")
    return RelationshipDescriptor(
        name=name,
        kind=RelationshipKind.BELONGS_TO,
        target=target,
        polymorphic=polymorphic,
        foreign_key=foreign_key,
        inverse_of=inverse_of,
    )


def has_one(
    name: str,
    target: Optional[str] = None,
    *,
    as_: Optional[str] = None,
    through: Optional[str] = None,
    source: Optional[str] = None,
    foreign_key: Optional[str] = None,
    inverse_of: Optional[str] = None,
) -> RelationshipDescriptor:
    """Declare a has_one relationship."""
    return RelationshipDescriptor(
        name=name,
        kind=RelationshipKind.HAS_ONE,
        target=target,
        as_=as_,
        through=through,
        source=source,
        foreign_key=foreign_key,
        inverse_of=inverse_of,
    )


def has_many(
    name: str,
    target: Optional[str] = None,
    *,
    as_: Optional[str] = None,
    through: Optional[str] = None,
    source: Optional[str] = None,
    foreign_key: Optional[str] = None,
    inverse_of: Optional[str] = None,
) -> RelationshipDescriptor:
    """Declare a has_many relationship."""
    return RelationshipDescriptor(
        name=name,
        kind=RelationshipKind.HAS_MANY,
        target=target,
        as_=as_,
        through=through,
        source=source,
        foreign_key=foreign_key,
        inverse_of=inverse_of,
    )
