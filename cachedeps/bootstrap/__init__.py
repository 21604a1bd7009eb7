"""
bootstrap/ - Configuration and wiring
"""

from .config import (
    CascadeConfig,
    LoggingConfig,
    load_config,
)

from .app import (
    Cascade,
    JSONFormatter,
    build_cascade,
    create_graph,
    setup_logging,
)

__all__ = [
    # Config
    "CascadeConfig",
    "LoggingConfig",
    "load_config",
    # App
    "Cascade",
    "JSONFormatter",
    "build_cascade",
    "create_graph",
    "setup_logging",
]
