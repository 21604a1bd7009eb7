"""
dependencies/graph.py - Cache dependency graph

Built once during setup from ``declare`` calls, then frozen and shared
read-only by every propagation. Each declared relationship installs an
edge on the relationship's target type pointing back to the declarer.

A ``networkx.MultiDiGraph`` mirrors the edges for structural queries
(reachability, cycles). Cycles are allowed; propagation terminates
through its visited set.
"""

from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union
import logging

import networkx as nx

from cachedeps.catalog import RelationshipCatalog
from cachedeps.errors import AssociationNotFound, GraphFrozenError
from .edges import DependencyEdge
from .inverse import InverseResolver

logger = logging.getLogger(__name__)


class DependencyGraph:
    """
    Per-type registry of "invalidates" edges.

    Usage:
        graph = DependencyGraph(catalog)
        graph.declare("Account", ["provider", "accountants"])
        graph.freeze()
    """

    def __init__(
        self,
        catalog: RelationshipCatalog,
        resolver: Optional[InverseResolver] = None,
        strict_inverse: bool = True,
    ):
        self.catalog = catalog
        self.resolver = resolver or InverseResolver(catalog, strict=strict_inverse)

        self._edges: Dict[str, List[DependencyEdge]] = {}
        self._edge_keys: Set[Tuple[str, str, str]] = set()
        self._cascade_enabled: Set[str] = set()
        self._declarations: Dict[str, List[str]] = {}

        self._nx = nx.MultiDiGraph()
        self._frozen = False
        self._frozen_at: Optional[datetime] = None

    # =========================================================================
    # DECLARATION
    # =========================================================================

    def declare(
        self,
        type_name: str,
        relationship_names: Union[str, Iterable[str]],
        inverse_of: Optional[Mapping[str, str]] = None,
    ) -> List[DependencyEdge]:
        """
        Declare that ``type_name`` records depend on the named relationships.

        Every inverse is resolved before any edge is installed, so a failing
        declaration leaves the graph untouched.

        Args:
            type_name: Declaring type
            relationship_names: Relationships on ``type_name`` it depends on
            inverse_of: Optional ``{relationship: reverse name}`` hints

        Returns:
            The newly installed edges

        Raises:
            AssociationNotFound: a name is not a relationship of ``type_name``
            ReverseAssociationNotFound: no reverse relationship could be found
            AmbiguousReverseAssociation: several candidates, no hint given
            GraphFrozenError: the graph has been frozen
        """
        if self._frozen:
            raise GraphFrozenError(type_name)

        if isinstance(relationship_names, str):
            relationship_names = [relationship_names]
        names = list(relationship_names)
        hints = dict(inverse_of or {})

        self.catalog.entity_type(type_name)

        pending: List[DependencyEdge] = []
        enabled: Set[str] = {type_name}

        for name in names:
            forward = self.catalog.find(type_name, name)
            if forward is None:
                raise AssociationNotFound(type_name, name)

            pending.append(self.resolver.resolve(type_name, forward, hints.get(name)))

            if forward.is_through:
                # A change to the join record changes membership too
                chain = self.catalog.through_chain(forward)
                pending.append(self.resolver.resolve(type_name, chain[0]))
                for hop in chain:
                    enabled.add(self.catalog.resolve_target(hop))

            enabled.add(self.catalog.resolve_target(forward))

        installed = [edge for edge in pending if self._install(edge)]

        self._cascade_enabled.update(t for t in enabled if t)
        self._declarations.setdefault(type_name, []).extend(names)

        logger.info(
            f"Declared cache dependencies of {type_name} on {', '.join(names)}: "
            f"{len(installed)} edges installed"
        )
        return installed

    def _install(self, edge: DependencyEdge) -> bool:
        if edge.key in self._edge_keys:
            return False
        self._edge_keys.add(edge.key)
        self._edges.setdefault(edge.source_type, []).append(edge)
        self._nx.add_edge(
            edge.source_type,
            edge.target_type,
            key=edge.relationship,
            cardinality=edge.cardinality.value,
            declared_via=edge.declared_via,
        )
        return True

    def freeze(self) -> None:
        """End the setup phase; further declarations raise GraphFrozenError."""
        if self._frozen:
            return
        self._frozen = True
        self._frozen_at = datetime.utcnow()

        cycles = self.cycles()
        logger.info(
            f"Dependency graph frozen: {len(self._cascade_enabled)} cascade-enabled types, "
            f"{self.edge_count} edges, {len(cycles)} cycles"
        )

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    # =========================================================================
    # READ ACCESS
    # =========================================================================

    def edges_for(self, type_name: str) -> Tuple[DependencyEdge, ...]:
        """Edges installed on ``type_name``, in declaration order."""
        return tuple(self._edges.get(type_name, ()))

    def is_cascade_enabled(self, type_name: str) -> bool:
        return type_name in self._cascade_enabled

    def cascade_enabled_types(self) -> Set[str]:
        return set(self._cascade_enabled)

    def declarations(self) -> Dict[str, List[str]]:
        return {k: list(v) for k, v in self._declarations.items()}

    @property
    def edge_count(self) -> int:
        return len(self._edge_keys)

    def dependents_of(self, type_name: str) -> List[str]:
        """Types directly stamped when a ``type_name`` record changes."""
        result: List[str] = []
        for edge in self.edges_for(type_name):
            if edge.target_type not in result:
                result.append(edge.target_type)
        return result

    def reachable_from(self, type_name: str) -> Set[str]:
        """Types that may be stamped, transitively, when ``type_name`` changes."""
        if type_name not in self._nx:
            return set()
        return nx.descendants(self._nx, type_name)

    def cycles(self) -> List[List[str]]:
        """Type-level cycles (``A -> B -> A``); allowed, reported for diagnostics."""
        return [list(cycle) for cycle in nx.simple_cycles(nx.DiGraph(self._nx))]

    def to_dict(self) -> Dict[str, Any]:
        """Serialize graph for diagnostics."""
        return {
            "edges": {
                type_name: [edge.to_dict() for edge in edges]
                for type_name, edges in self._edges.items()
            },
            "cascade_enabled": sorted(self._cascade_enabled),
            "declarations": self.declarations(),
            "frozen": self._frozen,
            "frozen_at": self._frozen_at.isoformat() if self._frozen_at else None,
        }
