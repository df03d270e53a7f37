"""Backend selection implementation.

Resolves GPU_BACKEND (including `auto`) to a concrete backend and computes
the environment the inference engines need for it. The caller decides how
to apply that environment: print it for `eval`, or exec a command under it.
"""

from __future__ import annotations

import logging
import os
import shlex
from dataclasses import dataclass, field
from typing import Any, Mapping

from aibase.config import EnvVar, get_environment
from aibase.probe import ToolRunner
from aibase.schema import (
    AUTO,
    Backend,
    Variant,
    parse_backend,
    parse_variant,
    variant_supports,
)

logger = logging.getLogger(__name__)

CUDA_LIB_DIR = "/usr/local/cuda/lib64"
CUDA_BIN_DIR = "/usr/local/cuda/bin"
ROCM_LIB_DIR = "/opt/rocm/lib"
ROCM_BIN_DIR = "/opt/rocm/bin"
VULKAN_LAYER_PATH = "/usr/share/vulkan/explicit_layer.d"
VULKAN_LIB_DIR = "/usr/lib/x86_64-linux-gnu"

_CONFIGURED_MESSAGES = {
    Backend.CUDA: "CUDA environment configured",
    Backend.ROCM: "ROCm environment configured",
    Backend.VULKAN: "Vulkan environment configured",
    Backend.CPU: "CPU-only mode (no GPU acceleration)",
}


@dataclass
class BackendSelection:
    """Resolved backend and the environment it requires.

    Attributes:
        requested: GPU_BACKEND as given (`auto` when unset).
        backend: Concrete backend.
        variant_value: Raw GPU_VARIANT value.
        reason: Why the backend was chosen.
        exports: Variables to set, in the order they should be applied.
        messages: Progress lines shown to the user.
    """

    requested: str
    backend: Backend
    variant_value: str | None
    reason: str
    exports: dict[str, str] = field(default_factory=dict)
    messages: list[str] = field(default_factory=list)

    @property
    def auto_selected(self) -> bool:
        return self.requested.strip().lower() == AUTO

    def apply(self, environ: Mapping[str, str]) -> dict[str, str]:
        """Return a copy of `environ` with the exports applied."""
        merged = dict(environ)
        merged.update(self.exports)
        return merged

    def shell_exports(self) -> str:
        """POSIX `export` lines suitable for `eval "$(select-backend --export)"`."""
        return "\n".join(
            f"export {key}={shlex.quote(value)}" for key, value in self.exports.items()
        )

    def render(self) -> str:
        """Format the selection as shown by select-backend."""
        lines = list(self.messages)
        lines += [
            "",
            "=== Backend Configuration ===",
            f"GPU_BACKEND: {self.backend.value}",
            f"GPU_VARIANT: {self.variant_value or 'not set'}",
            f"LD_LIBRARY_PATH: {self.exports.get('LD_LIBRARY_PATH', '')}",
            "",
        ]
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "requested": self.requested,
            "backend": self.backend.value,
            "auto_selected": self.auto_selected,
            "variant": self.variant_value,
            "reason": self.reason,
            "exports": dict(self.exports),
        }


def _prepend(directory: str, current: str | None) -> str:
    # Shell `dir:${VAR}` keeps a trailing colon when VAR is empty; drop it.
    return f"{directory}:{current}" if current else directory


def configure_environment(
    backend: Backend,
    environ: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Compute the variables a backend needs.

    Existing CUDA_VISIBLE_DEVICES and HSA_OVERRIDE_GFX_VERSION values are
    kept; library and binary directories are prepended.

    Args:
        backend: Concrete backend.
        environ: Environment to extend. Defaults to os.environ.

    Returns:
        Ordered mapping of variables to export. Always includes GPU_BACKEND.
    """
    environ = os.environ if environ is None else environ
    ld_path = environ.get("LD_LIBRARY_PATH")
    exports: dict[str, str] = {"GPU_BACKEND": backend.value}

    if backend is Backend.CUDA:
        exports["LD_LIBRARY_PATH"] = _prepend(CUDA_LIB_DIR, ld_path)
        exports["PATH"] = _prepend(CUDA_BIN_DIR, environ.get("PATH"))
        exports["CUDA_VISIBLE_DEVICES"] = environ.get("CUDA_VISIBLE_DEVICES") or (
            get_environment(EnvVar.CUDA_VISIBLE_DEVICES)
        )
    elif backend is Backend.ROCM:
        exports["LD_LIBRARY_PATH"] = _prepend(ROCM_LIB_DIR, ld_path)
        exports["PATH"] = _prepend(ROCM_BIN_DIR, environ.get("PATH"))
        exports["HSA_OVERRIDE_GFX_VERSION"] = environ.get("HSA_OVERRIDE_GFX_VERSION") or (
            get_environment(EnvVar.HSA_OVERRIDE_GFX_VERSION)
        )
    elif backend is Backend.VULKAN:
        exports["VK_LAYER_PATH"] = VULKAN_LAYER_PATH
        exports["LD_LIBRARY_PATH"] = _prepend(VULKAN_LIB_DIR, ld_path)
    elif ld_path is not None:
        exports["LD_LIBRARY_PATH"] = ld_path

    return exports


def auto_select(runner: ToolRunner, variant: Variant | None) -> tuple[Backend, str]:
    """Walk the CUDA > ROCm > Vulkan > CPU chain over installed tools.

    Returns:
        Tuple of (backend, message describing the choice).
    """
    if runner.has("nvidia-smi") and variant_supports(variant, Backend.CUDA):
        return Backend.CUDA, "Selected: CUDA (NVIDIA GPU detected)"
    if runner.has("rocm-smi") and variant_supports(variant, Backend.ROCM):
        return Backend.ROCM, "Selected: ROCm (AMD GPU detected)"
    if runner.has("vulkaninfo"):
        return Backend.VULKAN, "Selected: Vulkan (universal fallback)"
    return Backend.CPU, "Warning: No GPU detected, using CPU mode"


def select_backend(
    requested: str | None = None,
    variant_value: str | None = None,
    runner: ToolRunner | None = None,
    environ: Mapping[str, str] | None = None,
) -> BackendSelection:
    """Resolve the backend to use and its environment.

    Args:
        requested: Backend name or `auto`. Defaults to GPU_BACKEND, then auto.
        variant_value: GPU_VARIANT value. Defaults to the environment.
        runner: Tool runner used for auto-detection.
        environ: Environment to extend. Defaults to os.environ.

    Returns:
        BackendSelection with exports for the chosen backend.

    Raises:
        UnknownBackendError: If `requested` is not a known backend.
    """
    requested = requested or get_environment(EnvVar.GPU_BACKEND) or AUTO
    if variant_value is None:
        variant_value = get_environment(EnvVar.GPU_VARIANT)

    backend = parse_backend(requested)
    messages: list[str] = []

    if backend is None:
        messages.append("Auto-detecting GPU backend...")
        backend, reason = auto_select(runner or ToolRunner(), parse_variant(variant_value))
        messages.append(reason)
        if backend is Backend.CPU:
            logger.warning("No GPU tools found, selecting CPU mode")
    else:
        reason = f"Requested: {backend.label} (GPU_BACKEND={requested})"

    exports = configure_environment(backend, environ)
    messages.append(_CONFIGURED_MESSAGES[backend])
    logger.debug(f"Backend {backend.value} selected with exports {sorted(exports)}")

    return BackendSelection(
        requested=requested,
        backend=backend,
        variant_value=variant_value,
        reason=reason,
        exports=exports,
        messages=messages,
    )


__all__ = [
    "BackendSelection",
    "auto_select",
    "configure_environment",
    "select_backend",
]
