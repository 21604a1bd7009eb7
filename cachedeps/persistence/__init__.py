"""
persistence/ - Persistence collaborator

Provides:
- PersistenceLayer / EntityProtocol: the interface the engine consumes
- InMemoryStore: reference implementation with nested transactions
- Record: stored entity instance
"""

from .protocol import (
    Identity,
    EntityProtocol,
    PersistenceLayer,
    identity_of,
)
from .records import Record
from .store import InMemoryStore, LIFECYCLE_EVENTS

__all__ = [
    "Identity",
    "EntityProtocol",
    "PersistenceLayer",
    "identity_of",
    "Record",
    "InMemoryStore",
    "LIFECYCLE_EVENTS",
]
