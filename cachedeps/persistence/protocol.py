"""
persistence/protocol.py - Persistence collaborator interface

The propagation engine only talks to storage through these protocols,
so any backend that can stamp a record, resolve a named relationship and
report transaction boundaries can drive cascades.
"""

from typing import Any, Callable, Hashable, List, Optional, Protocol, Tuple, Union

__all__ = [
    'Identity',
    'EntityProtocol',
    'PersistenceLayer',
    'identity_of',
]

Identity = Tuple[str, Hashable]


class EntityProtocol(Protocol):
    """A persisted record, identified by ``(type_name, pk)``."""

    @property
    def type_name(self) -> str:
        ...

    @property
    def pk(self) -> Hashable:
        ...


class PersistenceLayer(Protocol):
    """
    Operations the propagation engine consumes.

    A write reported to the engine (``on_write``) counts as that record's
    own stamp: the engine stamps only its dependents. Backends must bump
    the record's last-modified marker on every reported create, update,
    touch and destroy, or call ``engine.invalidate`` instead.
    """

    def stamp(self, entity: EntityProtocol) -> None:
        """
        Durably bump the entity's last-modified marker.

        Must not run lifecycle callbacks or report the stamp as a new write.
        """
        ...

    def resolve_relationship(
        self,
        entity: EntityProtocol,
        name: str,
    ) -> Union[None, EntityProtocol, List[EntityProtocol]]:
        """Related record(s): ``None``/record for singular, list for collections."""
        ...

    def current_transaction_id(self) -> Optional[str]:
        """Outermost open transaction, or ``None`` outside a transaction."""
        ...

    def transaction_depth(self) -> int:
        """Number of nested transactions currently open."""
        ...

    def active_transaction_ids(self) -> List[str]:
        """Open transaction ids, outermost first."""
        ...

    def on_outermost_commit(self, callback: Callable[[Any], None]) -> None:
        ...

    def on_rollback(self, callback: Callable[[Any, int], None]) -> None:
        ...

    def on_after_commit(self, entity: EntityProtocol, callback: Callable[[Any], None]) -> None:
        ...


def identity_of(entity: EntityProtocol) -> Identity:
    """Identity key used for deduplication."""
    return (entity.type_name, entity.pk)
