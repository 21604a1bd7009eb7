"""
cachedeps - Cascade cache invalidation through declared relationships

When a record changes, every record that declared a cache dependency on
it is stamped (its ``updated_at`` bumped), transitively, once per
transaction, and its after-invalidation hooks fire once.

    catalog = RelationshipCatalog()
    catalog.register_type("Provider", [has_one("account"), belongs_to("payment_gate")])
    catalog.register_type("Account", [belongs_to("provider")])
    ...
    graph = DependencyGraph(catalog)
    graph.declare("Account", ["provider"])

    store = InMemoryStore(catalog)
    cascade = build_cascade(graph, store)
"""

from .catalog import (
    Cardinality,
    RelationshipKind,
    RelationshipDescriptor,
    RelationshipCatalog,
    EntityType,
    belongs_to,
    has_one,
    has_many,
)
from .dependencies import (
    DependencyEdge,
    DependencyGraph,
    InverseResolver,
    InvalidationScope,
    PropagationEngine,
    HookRunner,
    InvalidationLog,
    LogEntryKind,
)
from .errors import (
    CacheDependsError,
    AssociationNotFound,
    ReverseAssociationNotFound,
    AmbiguousReverseAssociation,
    RelationshipNotFound,
    GraphFrozenError,
)
from .persistence import InMemoryStore, PersistenceLayer, Record
from .transactions import TransactionManager
from .bootstrap import CascadeConfig, build_cascade, create_graph, setup_logging

__version__ = "0.1.0"

__all__ = [
    # Catalog
    "Cardinality",
    "RelationshipKind",
    "RelationshipDescriptor",
    "RelationshipCatalog",
    "EntityType",
    "belongs_to",
    "has_one",
    "has_many",
    # Dependencies
    "DependencyEdge",
    "DependencyGraph",
    "InverseResolver",
    "InvalidationScope",
    "PropagationEngine",
    "HookRunner",
    "InvalidationLog",
    "LogEntryKind",
    # Errors
    "CacheDependsError",
    "AssociationNotFound",
    "ReverseAssociationNotFound",
    "AmbiguousReverseAssociation",
    "RelationshipNotFound",
    "GraphFrozenError",
    # Persistence
    "InMemoryStore",
    "PersistenceLayer",
    "Record",
    "TransactionManager",
    # Bootstrap
    "CascadeConfig",
    "build_cascade",
    "create_graph",
    "setup_logging",
]
