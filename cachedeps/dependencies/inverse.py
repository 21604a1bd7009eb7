"""
dependencies/inverse.py - Reverse relationship resolution

A declaration reads "Account depends on its provider". Propagation needs
the opposite direction: from a changed Provider back to its accounts.
The resolver finds that reverse relationship on the target type.

Resolution order (first match wins):
1. Polymorphic: the forward relationship's ``as:`` interface on the target
2. Explicit ``inverse_of`` hint
3. Relationship named after the declaring type's singular form
4. Relationship named after the declaring type's plural form
"""

from __future__ import annotations
from typing import Optional, Tuple
import logging

from cachedeps.catalog import RelationshipCatalog, RelationshipDescriptor
from cachedeps.errors import AmbiguousReverseAssociation, ReverseAssociationNotFound
from .edges import DependencyEdge, InverseStrategy

logger = logging.getLogger(__name__)


class InverseResolver:
    """Turns a forward relationship into the edge installed on its target."""

    def __init__(self, catalog: RelationshipCatalog, strict: bool = True):
        self.catalog = catalog
        # Name guesses are rejected when several relationships lead back
        self.strict = strict

    def resolve(
        self,
        declaring_type: str,
        forward: RelationshipDescriptor,
        hint: Optional[str] = None,
    ) -> DependencyEdge:
        """
        Resolve the reverse edge of ``declaring_type.forward``.

        Raises:
            ReverseAssociationNotFound: nothing on the target leads back
            AmbiguousReverseAssociation: a name guess matched but several
                relationships lead back (strict mode only)
        """
        target = self.catalog.resolve_target(forward)
        if target is None:
            # Polymorphic belongs_to: the concrete target is only known per record
            raise ReverseAssociationNotFound(declaring_type, f"polymorphic {forward.name}")
        self.catalog.entity_type(target)

        inverse, strategy = self._find(declaring_type, forward, target, hint or forward.inverse_of)

        logger.debug(
            f"{declaring_type}.{forward.name} -> {target}.{inverse.name} ({strategy.value})"
        )

        return DependencyEdge(
            source_type=target,
            relationship=inverse.name,
            cardinality=inverse.cardinality,
            target_type=declaring_type,
            declared_via=forward.name,
            strategy=strategy,
        )

    def _find(
        self,
        declaring_type: str,
        forward: RelationshipDescriptor,
        target: str,
        hint: Optional[str],
    ) -> Tuple[RelationshipDescriptor, InverseStrategy]:
        if forward.as_:
            inverse = self.catalog.find(target, forward.as_)
            if inverse is not None:
                return inverse, InverseStrategy.POLYMORPHIC

        if hint:
            inverse = self.catalog.find(target, hint)
            if inverse is None:
                raise ReverseAssociationNotFound(declaring_type, target, hint=hint)
            return inverse, InverseStrategy.EXPLICIT

        declaring = self.catalog.entity_type(declaring_type)
        for name, strategy in (
            (declaring.singular, InverseStrategy.SINGULAR),
            (declaring.plural, InverseStrategy.PLURAL),
        ):
            inverse = self.catalog.find(target, name)
            if inverse is not None:
                self._check_unambiguous(declaring_type, target)
                return inverse, strategy

        raise ReverseAssociationNotFound(declaring_type, target)

    def _check_unambiguous(self, declaring_type: str, target: str) -> None:
        if not self.strict:
            return
        candidates = self.catalog.relationships_targeting(target, declaring_type)
        if len(candidates) > 1:
            raise AmbiguousReverseAssociation(
                declaring_type, target, [c.name for c in candidates]
            )
