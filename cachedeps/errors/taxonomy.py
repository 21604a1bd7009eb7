"""
errors/taxonomy.py - Error classification for cache dependencies

Configuration errors are raised eagerly while dependencies are declared.
Catalog and persistence errors surface from lookups. None of them are
retryable: each points at a misconfigured declaration or a caller bug.
"""

from __future__ import annotations
from typing import Any, Dict, List, Optional
from enum import Enum


class ErrorCategory(Enum):
    """Error categories."""
    CONFIGURATION = "configuration"   # Bad dependency declaration
    CATALOG = "catalog"               # Unknown type or relationship
    STATE = "state"                   # Operation not allowed in current state
    TRANSACTION = "transaction"       # Transaction lifecycle misuse
    PERSISTENCE = "persistence"       # Record lookup failures


class ErrorCode(Enum):
    """Specific error codes."""

    # Configuration (1xxx)
    CFG_ASSOCIATION_NOT_FOUND = 1001
    CFG_REVERSE_NOT_FOUND = 1002
    CFG_REVERSE_AMBIGUOUS = 1003

    # Catalog (2xxx)
    CAT_RELATIONSHIP_NOT_FOUND = 2001
    CAT_UNKNOWN_TYPE = 2002
    CAT_DUPLICATE = 2003

    # State (3xxx)
    STA_GRAPH_FROZEN = 3001

    # Transaction (4xxx)
    TXN_NOT_ACTIVE = 4001

    # Persistence (5xxx)
    PER_RECORD_NOT_FOUND = 5001


class CacheDependsError(Exception):
    """Base exception for cache dependency errors."""

    code: ErrorCode = ErrorCode.CFG_ASSOCIATION_NOT_FOUND
    category: ErrorCategory = ErrorCategory.CONFIGURATION

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code.value,
            "category": self.category.value,
            "message": self.message,
            "context": dict(self.context),
        }


# =============================================================================
# CONFIGURATION ERRORS (declaration time)
# =============================================================================

class AssociationNotFound(CacheDependsError):
    """A dependency was declared on a relationship the type does not have."""

    code = ErrorCode.CFG_ASSOCIATION_NOT_FOUND

    def __init__(self, type_name: str, relationship: str):
        super().__init__(
            f"association {relationship} was not found in {type_name}",
            type_name=type_name,
            relationship=relationship,
        )
        self.type_name = type_name
        self.relationship = relationship


class ReverseAssociationNotFound(CacheDependsError):
    """No relationship on the target type leads back to the declaring type."""

    code = ErrorCode.CFG_REVERSE_NOT_FOUND

    def __init__(self, declaring_type: str, target_type: Optional[str], hint: Optional[str] = None):
        message = f"reverse association of {declaring_type} was not found in {target_type}"
        if hint:
            message += f" (inverse_of: {hint})"
        super().__init__(
            message,
            declaring_type=declaring_type,
            target_type=target_type,
            hint=hint,
        )
        self.declaring_type = declaring_type
        self.target_type = target_type


class AmbiguousReverseAssociation(CacheDependsError):
    """Several relationships on the target lead back; an inverse_of hint is required."""

    code = ErrorCode.CFG_REVERSE_AMBIGUOUS

    def __init__(self, declaring_type: str, target_type: str, candidates: List[str]):
        super().__init__(
            f"reverse association of {declaring_type} in {target_type} is ambiguous "
            f"({', '.join(candidates)}); pass inverse_of explicitly",
            declaring_type=declaring_type,
            target_type=target_type,
            candidates=list(candidates),
        )
        self.declaring_type = declaring_type
        self.target_type = target_type
        self.candidates = list(candidates)


# =============================================================================
# CATALOG ERRORS
# =============================================================================

class RelationshipNotFound(CacheDependsError):
    """Catalog lookup for an unknown relationship name."""

    code = ErrorCode.CAT_RELATIONSHIP_NOT_FOUND
    category = ErrorCategory.CATALOG

    def __init__(self, type_name: str, relationship: str):
        super().__init__(
            f"relationship {relationship} is not defined on {type_name}",
            type_name=type_name,
            relationship=relationship,
        )
        self.type_name = type_name
        self.relationship = relationship


class UnknownEntityType(CacheDependsError):
    """Catalog lookup for a type that was never registered."""

    code = ErrorCode.CAT_UNKNOWN_TYPE
    category = ErrorCategory.CATALOG

    def __init__(self, type_name: str):
        super().__init__(f"entity type {type_name} is not registered", type_name=type_name)
        self.type_name = type_name


class DuplicateDefinition(CacheDependsError):
    """A type or relationship was registered twice."""

    code = ErrorCode.CAT_DUPLICATE
    category = ErrorCategory.CATALOG


# =============================================================================
# STATE / TRANSACTION / PERSISTENCE ERRORS
# =============================================================================

class GraphFrozenError(CacheDependsError):
    """Dependencies cannot be declared once the graph is frozen."""

    code = ErrorCode.STA_GRAPH_FROZEN
    category = ErrorCategory.STATE

    def __init__(self, type_name: str):
        super().__init__(
            f"cannot declare dependencies of {type_name}: dependency graph is frozen",
            type_name=type_name,
        )


class TransactionError(CacheDependsError):
    """Commit or rollback without a matching active transaction."""

    code = ErrorCode.TXN_NOT_ACTIVE
    category = ErrorCategory.TRANSACTION

    def __init__(self, message: str, transaction_id: Optional[str] = None):
        super().__init__(message, transaction_id=transaction_id)
        self.transaction_id = transaction_id


class RecordNotFound(CacheDependsError):
    """Lookup by primary key found nothing."""

    code = ErrorCode.PER_RECORD_NOT_FOUND
    category = ErrorCategory.PERSISTENCE

    def __init__(self, type_name: str, pk: Any):
        super().__init__(f"{type_name} with id {pk!r} was not found", type_name=type_name, pk=pk)
        self.type_name = type_name
        self.pk = pk
