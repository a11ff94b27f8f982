"""Application configuration helpers."""

from __future__ import annotations

from .env import env_float, env_int, env_weights
from .errors import ConfigurationError, InvalidConfigurationError
from .resolution import (
    ConflictResolutionConfig,
    IdentityResolutionConfig,
    get_conflict_resolution_config,
    get_identity_resolution_config,
)

__all__ = [
    "ConfigurationError",
    "ConflictResolutionConfig",
    "IdentityResolutionConfig",
    "InvalidConfigurationError",
    "env_float",
    "env_int",
    "env_weights",
    "get_conflict_resolution_config",
    "get_identity_resolution_config",
]
