"""
dependencies/hooks.py - After-invalidation hooks

Handlers run once per stamp event, in registration order. A failing
handler propagates its exception; handlers registered before it have
already run.
"""

from __future__ import annotations
from typing import Callable, Dict, List, Optional
import logging

from cachedeps.persistence import EntityProtocol

logger = logging.getLogger(__name__)

InvalidationHandler = Callable[[EntityProtocol], None]


class HookRunner:
    """Per-type registry of after-invalidation handlers."""

    def __init__(self):
        self._handlers: Dict[str, List[InvalidationHandler]] = {}

    def register_after_invalidation(
        self,
        type_name: str,
        handler: Optional[InvalidationHandler] = None,
    ):
        """
        Append a handler for ``type_name``.

        Usable directly or as a decorator:

            @hooks.register_after_invalidation("Account")
            def expire_account_fragment(account):
                ...
        """
        if handler is None:
            def decorator(func: InvalidationHandler) -> InvalidationHandler:
                self.register_after_invalidation(type_name, func)
                return func
            return decorator

        self._handlers.setdefault(type_name, []).append(handler)
        return handler

    def handlers_for(self, type_name: str) -> List[InvalidationHandler]:
        return list(self._handlers.get(type_name, ()))

    def fire(self, entity: EntityProtocol) -> int:
        """Run every handler registered for the entity's type; returns the count."""
        handlers = self._handlers.get(entity.type_name, ())
        for handler in list(handlers):
            handler(entity)
        if handlers:
            logger.debug(f"Fired {len(handlers)} after-invalidation hooks for {entity!r}")
        return len(handlers)
