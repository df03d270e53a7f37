"""Centralized environment configuration management for ai-base.

Provides a unified interface for all environment variables with:
- Single `get_environment()` function for all configuration
- Type-safe enum with metadata (default, type, description)
- Consistent resolution: override > environment > default

Example:
    >>> from aibase.config import EnvVar, get_environment
    >>>
    >>> # Get values with automatic type conversion
    >>> timeout = get_environment(EnvVar.AI_BASE_PROBE_TIMEOUT)  # Returns int
    >>> variant = get_environment(EnvVar.GPU_VARIANT)  # Returns str | None
    >>>
    >>> # Override at runtime
    >>> timeout = get_environment(EnvVar.AI_BASE_PROBE_TIMEOUT, override=3)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, overload

# =============================================================================
# Environment Variable Configuration
# =============================================================================


@dataclass(frozen=True)
class EnvConfig:
    """Metadata for an environment variable.

    Attributes:
        name: Environment variable name (e.g., "GPU_BACKEND").
        default: Default value if not set in environment.
        var_type: Python type for value conversion (str, int, Path).
        description: Human-readable description.
        category: Grouping category for documentation.
    """

    name: str
    default: Any
    var_type: type
    description: str = ""
    category: str = "general"


class EnvVar(Enum):
    """All environment variables read by ai-base.

    Each member contains an EnvConfig with name, default, type, and description.
    Use with `get_environment()` for type-safe access.

    Categories:
        - gpu: Backend and variant selection, runtime tuning
        - engine: Inference engine locations and endpoints
        - models: Model storage paths
        - image: Docker registry settings for image builds
        - runtime: Tool behaviour (timeouts, log level)
    """

    # -------------------------------------------------------------------------
    # GPU Selection
    # -------------------------------------------------------------------------
    GPU_BACKEND = EnvConfig(
        name="GPU_BACKEND",
        default=None,  # Each command applies its own fallback
        var_type=str,
        description="Requested backend: cuda, rocm, vulkan, cpu or auto",
        category="gpu",
    )
    GPU_VARIANT = EnvConfig(
        name="GPU_VARIANT",
        default=None,
        var_type=str,
        description="Backends baked into this image: vulkan, nvidia, rocm or all",
        category="gpu",
    )
    CUDA_VISIBLE_DEVICES = EnvConfig(
        name="CUDA_VISIBLE_DEVICES",
        default="0",
        var_type=str,
        description="CUDA device list exported when the cuda backend is selected",
        category="gpu",
    )
    HSA_OVERRIDE_GFX_VERSION = EnvConfig(
        name="HSA_OVERRIDE_GFX_VERSION",
        default="10.3.0",
        var_type=str,
        description="ROCm gfx override exported when the rocm backend is selected",
        category="gpu",
    )

    # -------------------------------------------------------------------------
    # Inference Engines
    # -------------------------------------------------------------------------
    AI_BASE_BIN_DIR = EnvConfig(
        name="AI_BASE_BIN_DIR",
        default=Path("/opt/ai-base/bin"),
        var_type=Path,
        description="Directory holding llama.cpp and llm-d binaries",
        category="engine",
    )
    OLLAMA_HOST = EnvConfig(
        name="OLLAMA_HOST",
        default="http://localhost:11434",
        var_type=str,
        description="Ollama server URL",
        category="engine",
    )

    # -------------------------------------------------------------------------
    # Model Paths
    # -------------------------------------------------------------------------
    OLLAMA_MODELS = EnvConfig(
        name="OLLAMA_MODELS",
        default=Path("/models/ollama"),
        var_type=Path,
        description="Ollama model store",
        category="models",
    )
    LLAMA_MODELS = EnvConfig(
        name="LLAMA_MODELS",
        default=Path("/models/llama"),
        var_type=Path,
        description="llama.cpp GGUF model directory",
        category="models",
    )
    EXO_MODELS = EnvConfig(
        name="EXO_MODELS",
        default=Path("/models/exo"),
        var_type=Path,
        description="EXO model directory",
        category="models",
    )

    # -------------------------------------------------------------------------
    # Image Builds
    # -------------------------------------------------------------------------
    DOCKER_REGISTRY = EnvConfig(
        name="DOCKER_REGISTRY",
        default="ghcr.io",
        var_type=str,
        description="Registry host for pushed images",
        category="image",
    )
    DOCKER_ORG = EnvConfig(
        name="DOCKER_ORG",
        default="penguintechinc",
        var_type=str,
        description="Registry organisation for pushed images",
        category="image",
    )

    # -------------------------------------------------------------------------
    # Runtime
    # -------------------------------------------------------------------------
    AI_BASE_PROBE_TIMEOUT = EnvConfig(
        name="AI_BASE_PROBE_TIMEOUT",
        default=10,
        var_type=int,
        description="Seconds to wait for nvidia-smi, rocm-smi, vulkaninfo, lspci",
        category="runtime",
    )
    AI_BASE_LOG_LEVEL = EnvConfig(
        name="AI_BASE_LOG_LEVEL",
        default="INFO",
        var_type=str,
        description="Log level for diagnostics written to stderr",
        category="runtime",
    )


# =============================================================================
# Type Conversion Helpers
# =============================================================================


def _convert_value(value: str | None, var_type: type, default: Any) -> Any:
    """Convert string value to target type.

    Empty strings count as unset, matching `${VAR:-default}` in shell.

    Args:
        value: Raw string value from environment (or None).
        var_type: Target Python type.
        default: Default value if conversion fails or value is None.

    Returns:
        Converted value or default.
    """
    if value is None or value == "":
        return default

    if var_type is str:
        return value

    if var_type is int:
        try:
            return int(value)
        except ValueError:
            return default

    if var_type is Path:
        return Path(value)

    # Unknown type, return as-is
    return value


# =============================================================================
# Main Interface
# =============================================================================


@overload
def get_environment(env_var: EnvVar, override: int) -> int: ...
@overload
def get_environment(env_var: EnvVar, override: str) -> str: ...
@overload
def get_environment(env_var: EnvVar, override: Path) -> Path: ...
@overload
def get_environment(env_var: EnvVar, override: None = None) -> Any: ...


def get_environment(env_var: EnvVar, override: Any = None) -> Any:
    """Get environment variable value with type conversion.

    Resolution priority:
        1. Explicit override parameter (highest)
        2. Environment variable value
        3. Default from EnvConfig (lowest)

    Args:
        env_var: Environment variable enum member.
        override: Optional override value (bypasses env lookup).

    Returns:
        Value converted to the appropriate type (str, int, or Path).

    Example:
        >>> get_environment(EnvVar.AI_BASE_PROBE_TIMEOUT)
        10
        >>> get_environment(EnvVar.AI_BASE_PROBE_TIMEOUT, override=3)
        3
    """
    config: EnvConfig = env_var.value

    if override is not None:
        return override

    raw_value = os.environ.get(config.name)
    return _convert_value(raw_value, config.var_type, config.default)


def get_environment_info(env_var: EnvVar) -> EnvConfig:
    """Get metadata for an environment variable.

    Args:
        env_var: Environment variable enum member.

    Returns:
        EnvConfig with name, default, type, and description.
    """
    return env_var.value


def list_environment_variables(category: str | None = None) -> list[EnvVar]:
    """List all environment variables, optionally filtered by category.

    Args:
        category: Filter by category (gpu, engine, models, image, runtime).
                 None returns all variables.

    Returns:
        List of EnvVar enum members.
    """
    if category is None:
        return list(EnvVar)

    return [var for var in EnvVar if var.value.category == category]


# =============================================================================
# Convenience Functions
# =============================================================================


def get_model_paths() -> dict[str, Path]:
    """Get model storage paths keyed by engine name."""
    return {
        "Ollama": get_environment(EnvVar.OLLAMA_MODELS),
        "llama.cpp": get_environment(EnvVar.LLAMA_MODELS),
        "EXO": get_environment(EnvVar.EXO_MODELS),
    }


def get_probe_timeout(override: int | None = None) -> int:
    """Get timeout in seconds for external GPU tool probes."""
    return get_environment(EnvVar.AI_BASE_PROBE_TIMEOUT, override=override)


def get_registry_prefix() -> str:
    """Get `<registry>/<org>` used for fully qualified image tags."""
    registry = get_environment(EnvVar.DOCKER_REGISTRY)
    org = get_environment(EnvVar.DOCKER_ORG)
    return f"{registry}/{org}"


__all__ = [
    # Core types
    "EnvConfig",
    "EnvVar",
    # Main interface
    "get_environment",
    "get_environment_info",
    # Introspection
    "list_environment_variables",
    # Convenience functions
    "get_model_paths",
    "get_probe_timeout",
    "get_registry_prefix",
]
