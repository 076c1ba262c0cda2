"""
Configuration management for DocPerm.

Configuration is done via environment variables, with typed configuration
classes and validation. Engines can also be constructed with explicit
EngineConfig instances (tests do this).

Invariants:
    - All settings have sensible defaults for local development
    - Engine-wide default components are unioned with per-type defaults,
      never replace them

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Document all new settings in the class docstring
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Mapping

logger = logging.getLogger(__name__)

LOG_FORMATS = ("json", "text")


def _components_from_env(name: str) -> frozenset:
    raw = os.getenv(name, "")
    return frozenset(part.strip() for part in raw.split(",") if part.strip())


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )


@dataclass(frozen=True)
class EngineConfig:
    """Authorization engine configuration.

    Attributes:
        id_field: Key under which projections carry the document identity
        defaults: Components every principal holds, per action, for all types
        array_set_checks_array_component: Whether updating an element of an
            array of subdocuments also requires the array's write component
            (push and remove always require it)
        observability: Logging configuration
    """

    id_field: str = "_id"
    defaults: Mapping[str, frozenset] = field(default_factory=dict)
    array_set_checks_array_component: bool = True
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> EngineConfig:
        """Load configuration from environment variables.

        Raises:
            ValueError: If configuration is invalid.
        """
        defaults: Dict[str, frozenset] = {}
        for action in ("read", "write"):
            components = _components_from_env(f"DOCPERM_DEFAULT_{action.upper()}")
            if components:
                defaults[action] = components

        config = cls(
            id_field=os.getenv("DOCPERM_ID_FIELD", "_id"),
            defaults=defaults,
            array_set_checks_array_component=os.getenv(
                "DOCPERM_ARRAY_SET_CHECKS_ARRAY_COMPONENT", "true"
            ).lower()
            == "true",
            observability=ObservabilityConfig.from_env(),
        )
        config.validate()
        return config

    def defaults_for(self, action: str) -> frozenset:
        return frozenset(self.defaults.get(action, ()))

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if not self.id_field:
            raise ValueError("DOCPERM_ID_FIELD must not be empty")
        if self.observability.log_format not in LOG_FORMATS:
            raise ValueError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. "
                f"Must be one of: {', '.join(LOG_FORMATS)}"
            )
        if not self.array_set_checks_array_component:
            logger.warning(
                "Array element updates will not check the array's write component"
            )

    def log_config(self) -> None:
        """Log configuration."""
        logger.info(
            "Engine configuration loaded",
            extra={
                "id_field": self.id_field,
                "defaults": {a: sorted(c) for a, c in self.defaults.items()},
                "array_set_checks_array_component": self.array_set_checks_array_component,
                "log_level": self.observability.log_level,
            },
        )
