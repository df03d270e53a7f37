"""Centralized configuration management for ai-base.

Provides unified access to all configuration via the `get_environment()` function.

Example:
    >>> from aibase.config import EnvVar, get_environment
    >>>
    >>> backend = get_environment(EnvVar.GPU_BACKEND)  # str | None
    >>> bin_dir = get_environment(EnvVar.AI_BASE_BIN_DIR)  # Path
    >>>
    >>> for var in list_environment_variables("models"):
    ...     info = get_environment_info(var)
    ...     print(f"{info.name}: {info.description}")

Environment Variable Categories:
    gpu: Backend/variant selection and runtime tuning
    engine: Inference engine binaries and endpoints
    models: Model storage paths
    image: Registry settings for image builds
    runtime: Probe timeouts and log level
"""

from .lib import (
    # Core types
    EnvConfig,
    EnvVar,
    # Main interface
    get_environment,
    get_environment_info,
    get_model_paths,
    get_probe_timeout,
    get_registry_prefix,
    # Introspection
    list_environment_variables,
)

__all__ = [
    # Core types
    "EnvConfig",
    "EnvVar",
    # Main interface
    "get_environment",
    "get_environment_info",
    # Convenience functions
    "get_model_paths",
    "get_probe_timeout",
    "get_registry_prefix",
    # Introspection
    "list_environment_variables",
]
