"""
Cache Dependency & Invalidation Engine

Provides:
- DependencyGraph: per-type "invalidates" edges built from declarations
- InverseResolver: finds the reverse relationship of a declaration
- InvalidationScope: per-transaction dedup of stamps and hooks
- PropagationEngine: cascade stamping, deferred to the outermost commit
- HookRunner: after-invalidation callbacks
- InvalidationLog: audit trail of cascades
"""

from .edges import (
    DependencyEdge,
    InverseStrategy,
)
from .inverse import InverseResolver
from .graph import DependencyGraph
from .scope import (
    InvalidationScope,
    EntryState,
    PendingSource,
)
from .hooks import HookRunner
from .propagation import PropagationEngine
from .trigger_log import (
    InvalidationLog,
    LogEntry,
    LogEntryKind,
)

__all__ = [
    # Graph
    "DependencyEdge",
    "InverseStrategy",
    "InverseResolver",
    "DependencyGraph",
    # Scope
    "InvalidationScope",
    "EntryState",
    "PendingSource",
    # Engine
    "HookRunner",
    "PropagationEngine",
    # Log
    "InvalidationLog",
    "LogEntry",
    "LogEntryKind",
]
