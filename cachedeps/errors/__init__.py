"""
errors/ - Error taxonomy

Structured exceptions raised by the catalog, the dependency graph,
the transaction manager and the in-memory store.
"""

from .taxonomy import (
    ErrorCategory,
    ErrorCode,
    CacheDependsError,
    AssociationNotFound,
    ReverseAssociationNotFound,
    AmbiguousReverseAssociation,
    RelationshipNotFound,
    UnknownEntityType,
    DuplicateDefinition,
    GraphFrozenError,
    TransactionError,
    RecordNotFound,
)

__all__ = [
    "ErrorCategory",
    "ErrorCode",
    "CacheDependsError",
    # Configuration
    "AssociationNotFound",
    "ReverseAssociationNotFound",
    "AmbiguousReverseAssociation",
    # Catalog
    "RelationshipNotFound",
    "UnknownEntityType",
    "DuplicateDefinition",
    # State / transaction / persistence
    "GraphFrozenError",
    "TransactionError",
    "RecordNotFound",
]
