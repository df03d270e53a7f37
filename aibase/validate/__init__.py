"""GPU and inference engine validation for ai-base."""

from .lib import (
    BACKEND_VALIDATORS,
    CheckResult,
    CheckStatus,
    ValidationReport,
    engine_check,
    validate,
    validate_cpu,
    validate_cuda,
    validate_engines,
    validate_rocm,
    validate_vulkan,
)

__all__ = [
    "BACKEND_VALIDATORS",
    "CheckResult",
    "CheckStatus",
    "ValidationReport",
    "engine_check",
    "validate",
    "validate_cpu",
    "validate_cuda",
    "validate_engines",
    "validate_rocm",
    "validate_vulkan",
]
