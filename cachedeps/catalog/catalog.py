"""
catalog/catalog.py - Relationship catalog

Answers structural questions about declared relationships: cardinality,
target type, polymorphic interface and through-chains. Pure metadata;
nothing here touches records.
"""

from __future__ import annotations
from dataclasses import replace
from typing import Dict, Iterable, List, Optional
import logging

from cachedeps.errors import (
    DuplicateDefinition,
    RelationshipNotFound,
    UnknownEntityType,
)
from .naming import camelize, pluralize, singularize, underscore
from .schemas import EntityType, RelationshipDescriptor, RelationshipKind

logger = logging.getLogger(__name__)


class RelationshipCatalog:
    """Registry of entity types and their relationship descriptors."""

    def __init__(self):
        self._types: Dict[str, EntityType] = {}

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def register_type(
        self,
        name: str,
        relationships: Iterable[RelationshipDescriptor] = (),
        singular: Optional[str] = None,
        plural: Optional[str] = None,
    ) -> EntityType:
        """Register an entity type with its relationships."""
        if name in self._types:
            raise DuplicateDefinition(f"entity type {name} is already registered", type_name=name)

        singular = singular or underscore(name)
        entity_type = EntityType(
            name=name,
            singular=singular,
            plural=plural or pluralize(singular),
        )
        self._types[name] = entity_type

        for descriptor in relationships:
            self.add_relationship(name, descriptor)

        logger.debug(f"Registered type {name} with {len(entity_type.relationships)} relationships")
        return entity_type

    def add_relationship(self, type_name: str, descriptor: RelationshipDescriptor) -> RelationshipDescriptor:
        """Attach a relationship to an already registered type."""
        entity_type = self.entity_type(type_name)
        if descriptor.name in entity_type.relationships:
            raise DuplicateDefinition(
                f"relationship {descriptor.name} is already defined on {type_name}",
                type_name=type_name,
                relationship=descriptor.name,
            )
        if descriptor.polymorphic and descriptor.kind is not RelationshipKind.BELONGS_TO:
            raise ValueError(f"{type_name}.{descriptor.name}: only belongs_to can be polymorphic")

        target = descriptor.target
        if target is None and not descriptor.polymorphic and not descriptor.is_through:
            base = singularize(descriptor.name) if descriptor.is_collection else descriptor.name
            target = camelize(base)

        descriptor = replace(descriptor, owner=type_name, target=target)
        entity_type.relationships[descriptor.name] = descriptor
        return descriptor

    # =========================================================================
    # LOOKUP
    # =========================================================================

    def entity_type(self, name: str) -> EntityType:
        entity_type = self._types.get(name)
        if entity_type is None:
            raise UnknownEntityType(name)
        return entity_type

    def has_type(self, name: str) -> bool:
        return name in self._types

    def type_names(self) -> List[str]:
        return list(self._types)

    def find(self, type_name: str, name: Optional[str]) -> Optional[RelationshipDescriptor]:
        """Look up a relationship; ``None`` if the type or relationship is unknown."""
        if name is None:
            return None
        entity_type = self._types.get(type_name)
        if entity_type is None:
            return None
        return entity_type.relationships.get(name)

    def describe(self, type_name: str, name: str) -> RelationshipDescriptor:
        """Look up a relationship or raise RelationshipNotFound."""
        descriptor = self.entity_type(type_name).relationships.get(name)
        if descriptor is None:
            raise RelationshipNotFound(type_name, name)
        return descriptor

    def relationships_of(self, type_name: str) -> List[RelationshipDescriptor]:
        return list(self.entity_type(type_name).relationships.values())

    # =========================================================================
    # STRUCTURE
    # =========================================================================

    def through_chain(self, descriptor: RelationshipDescriptor) -> List[RelationshipDescriptor]:
        """
        Expand a relationship into the direct relationships it walks.

        ``Account.payers through: transactions`` expands to
        ``[Account.transactions, Transaction.payer]``. Nested through
        relationships are expanded recursively.
        """
        if not descriptor.is_through:
            return [descriptor]
        if descriptor.through == descriptor.name:
            raise RelationshipNotFound(descriptor.owner, descriptor.through)

        intermediate = self.describe(descriptor.owner, descriptor.through)
        intermediate_type = self.resolve_target(intermediate)
        if intermediate_type is None:
            raise RelationshipNotFound(descriptor.owner, descriptor.through)

        if descriptor.source is not None:
            source = self.describe(intermediate_type, descriptor.source)
        else:
            source = (
                self.find(intermediate_type, singularize(descriptor.name))
                or self.find(intermediate_type, descriptor.name)
            )
            if source is None:
                raise RelationshipNotFound(intermediate_type, singularize(descriptor.name))

        return self.through_chain(intermediate) + self.through_chain(source)

    def resolve_target(self, descriptor: RelationshipDescriptor) -> Optional[str]:
        """Final target type name; ``None`` for a polymorphic belongs_to."""
        if descriptor.polymorphic:
            return None
        if descriptor.is_through:
            return self.resolve_target(self.through_chain(descriptor)[-1])
        return descriptor.target

    def foreign_key_for(self, descriptor: RelationshipDescriptor) -> str:
        """Attribute holding the link for a direct relationship."""
        if descriptor.foreign_key:
            return descriptor.foreign_key
        if descriptor.kind is RelationshipKind.BELONGS_TO:
            return f"{descriptor.name}_id"
        if descriptor.as_:
            return f"{descriptor.as_}_id"
        return f"{self.entity_type(descriptor.owner).singular}_id"

    def relationships_targeting(self, type_name: str, target: str) -> List[RelationshipDescriptor]:
        """Relationships on ``type_name`` whose final target is ``target``."""
        result = []
        for descriptor in self.relationships_of(type_name):
            try:
                if self.resolve_target(descriptor) == target:
                    result.append(descriptor)
            except (RelationshipNotFound, UnknownEntityType):
                continue
        return result
