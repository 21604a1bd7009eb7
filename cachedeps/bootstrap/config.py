"""
bootstrap/config.py - Cascade configuration

Configuration comes from defaults, environment variables and an optional
JSON file, in increasing order of precedence.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from pathlib import Path
import os
import json
import logging

logger = logging.getLogger(__name__)

DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = DEFAULT_LOG_FORMAT
    log_file: Optional[str] = None
    json_logs: bool = False

    @classmethod
    def from_env(cls) -> "LoggingConfig":
        return cls(
            level=os.getenv("CACHEDEPS_LOG_LEVEL", "INFO"),
            format=os.getenv("CACHEDEPS_LOG_FORMAT", DEFAULT_LOG_FORMAT),
            log_file=os.getenv("CACHEDEPS_LOG_FILE"),
            json_logs=_env_flag("CACHEDEPS_JSON_LOGS", "false"),
        )


@dataclass
class CascadeConfig:
    """Root configuration for cache dependency propagation."""

    # Reject singular/plural name guesses when several relationships lead back
    strict_inverse_resolution: bool = True

    # Inside a transaction, wait for the outermost commit before stamping
    defer_until_commit: bool = True

    # Invalidation audit trail size; 0 disables the log
    log_entries: int = 1000

    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls) -> "CascadeConfig":
        """Create configuration from environment variables."""
        return cls(
            strict_inverse_resolution=_env_flag("CACHEDEPS_STRICT_INVERSE", "true"),
            defer_until_commit=_env_flag("CACHEDEPS_DEFER_UNTIL_COMMIT", "true"),
            log_entries=int(os.getenv("CACHEDEPS_LOG_ENTRIES", "1000")),
            logging=LoggingConfig.from_env(),
        )

    @classmethod
    def from_file(cls, filepath: str) -> "CascadeConfig":
        """Load configuration from a JSON file layered over the environment."""
        path = Path(filepath)
        if not path.exists():
            logger.warning(f"Config file not found: {filepath}, using defaults")
            return cls.from_env()

        with open(path) as f:
            data = json.load(f)

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "CascadeConfig":
        config = cls.from_env()

        for key in ("strict_inverse_resolution", "defer_until_commit", "log_entries"):
            if key in data:
                setattr(config, key, data[key])

        if "logging" in data:
            for key, value in data["logging"].items():
                if hasattr(config.logging, key):
                    setattr(config.logging, key, value)

        return config

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strict_inverse_resolution": self.strict_inverse_resolution,
            "defer_until_commit": self.defer_until_commit,
            "log_entries": self.log_entries,
            "logging": {
                "level": self.logging.level,
                "format": self.logging.format,
                "log_file": self.logging.log_file,
                "json_logs": self.logging.json_logs,
            },
        }


def load_config(filepath: str = None) -> CascadeConfig:
    """
    Load configuration from file or environment.

    Without a path, ``./cachedeps.json`` is used when present.
    """
    if filepath:
        return CascadeConfig.from_file(filepath)

    default_path = Path("./cachedeps.json")
    if default_path.exists():
        logger.info(f"Loading config from: {default_path}")
        return CascadeConfig.from_file(str(default_path))

    return CascadeConfig.from_env()
