"""
bootstrap/app.py - Wiring and logging setup

``build_cascade`` connects a frozen dependency graph, a persistence layer,
hooks and the audit log into a running PropagationEngine.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional
import json
import logging
import sys

from cachedeps.catalog import RelationshipCatalog
from cachedeps.dependencies import (
    DependencyGraph,
    HookRunner,
    InvalidationLog,
    PropagationEngine,
)
from cachedeps.persistence import PersistenceLayer
from .config import CascadeConfig, LoggingConfig

logger = logging.getLogger(__name__)


class JSONFormatter(logging.Formatter):
    """One JSON object per log line."""

    def format(self, record):
        return json.dumps({
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        })


def setup_logging(config: Optional[LoggingConfig] = None) -> None:
    """Configure the ``cachedeps`` logger hierarchy."""
    config = config or LoggingConfig.from_env()
    log_level = getattr(logging, config.level.upper(), logging.INFO)

    if config.json_logs:
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(config.format)

    package_logger = logging.getLogger("cachedeps")
    package_logger.setLevel(log_level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(log_level)
    package_logger.addHandler(console_handler)

    if config.log_file:
        file_handler = logging.FileHandler(config.log_file)
        file_handler.setFormatter(formatter)
        file_handler.setLevel(log_level)
        package_logger.addHandler(file_handler)


def create_graph(catalog: RelationshipCatalog, config: Optional[CascadeConfig] = None) -> DependencyGraph:
    """New dependency graph honouring the configured inverse strictness."""
    config = config or CascadeConfig.from_env()
    return DependencyGraph(catalog, strict_inverse=config.strict_inverse_resolution)


@dataclass
class Cascade:
    """Runtime context of a wired cascade."""
    config: CascadeConfig
    graph: DependencyGraph
    persistence: PersistenceLayer
    hooks: HookRunner
    engine: PropagationEngine
    log: Optional[InvalidationLog] = None


def build_cascade(
    graph: DependencyGraph,
    persistence: PersistenceLayer,
    hooks: Optional[HookRunner] = None,
    config: Optional[CascadeConfig] = None,
) -> Cascade:
    """
    Freeze ``graph`` and start propagating writes reported by ``persistence``.

    When the persistence layer exposes ``subscribe`` (as InMemoryStore does)
    the engine is registered as a write listener; otherwise the caller feeds
    ``cascade.engine.on_write`` itself.
    """
    config = config or CascadeConfig.from_env()
    hooks = hooks or HookRunner()
    log = InvalidationLog(max_entries=config.log_entries) if config.log_entries > 0 else None

    graph.freeze()

    engine = PropagationEngine(
        graph,
        persistence,
        hooks=hooks,
        log=log,
        defer_until_commit=config.defer_until_commit,
    )

    if hasattr(persistence, "subscribe"):
        persistence.subscribe(engine)

    logger.info(
        f"Cascade ready: {len(graph.cascade_enabled_types())} cascade-enabled types, "
        f"defer_until_commit={config.defer_until_commit}"
    )

    return Cascade(
        config=config,
        graph=graph,
        persistence=persistence,
        hooks=hooks,
        engine=engine,
        log=log,
    )
