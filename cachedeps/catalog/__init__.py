"""
catalog/ - Relationship metadata

Provides:
- RelationshipCatalog: registry of entity types and relationships
- RelationshipDescriptor: immutable metadata for one relationship
- belongs_to / has_one / has_many: declaration helpers
"""

from .schemas import (
    Cardinality,
    RelationshipKind,
    RelationshipDescriptor,
    EntityType,
    belongs_to,
    has_one,
    has_many,
)
from .catalog import RelationshipCatalog
from .naming import (
    underscore,
    camelize,
    pluralize,
    singularize,
)

__all__ = [
    "Cardinality",
    "RelationshipKind",
    "RelationshipDescriptor",
    "EntityType",
    "belongs_to",
    "has_one",
    "has_many",
    "RelationshipCatalog",
    "underscore",
    "camelize",
    "pluralize",
    "singularize",
]
