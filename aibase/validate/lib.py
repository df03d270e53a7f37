"""GPU and inference engine validation.

Runs the checks for one backend plus the engine checks, and aggregates them
into a single pass/fail result. Validation passes iff no check failed;
warnings never fail it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable

from aibase.backend import select_backend
from aibase.config import EnvVar, get_environment
from aibase.engines import EngineStatus, detect_engines
from aibase.gpu import count_vulkan_devices, parse_vulkan_device_names
from aibase.probe import ToolRunner
from aibase.schema import (
    AUTO,
    Backend,
    UnknownBackendError,
    parse_backend,
    parse_variant,
    variant_supports,
)

logger = logging.getLogger(__name__)

DEFAULT_BACKEND = Backend.VULKAN.value


class CheckStatus(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    WARN = "warn"

    @property
    def marker(self) -> str:
        return _MARKERS[self]


_MARKERS = {
    CheckStatus.PASS: "✓",
    CheckStatus.FAIL: "✗",
    CheckStatus.WARN: "⚠",
}


@dataclass
class CheckResult:
    """Outcome of one validation check.

    Attributes:
        status: Pass, fail or warning.
        message: Line shown after the status marker.
        details: Tool output shown under the check.
    """

    status: CheckStatus
    message: str
    details: list[str] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return self.status is CheckStatus.FAIL

    def render(self) -> list[str]:
        lines = [f"{self.status.marker} {self.message}"]
        lines.extend(f"  {detail}" for detail in self.details)
        return lines

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "message": self.message,
            "details": list(self.details),
        }


@dataclass
class ValidationReport:
    """Aggregated result of validate-gpu.

    Attributes:
        requested: GPU_BACKEND as given.
        backend: Backend whose branch ran, None for an unknown backend.
        variant_value: Raw GPU_VARIANT value.
        backend_checks: Checks from the backend branch.
        engine_checks: Inference engine checks (empty when skipped).
    """

    requested: str
    backend: Backend | None
    variant_value: str | None
    backend_checks: list[CheckResult] = field(default_factory=list)
    engine_checks: list[CheckResult] = field(default_factory=list)

    @property
    def auto_selected(self) -> bool:
        return self.requested.strip().lower() == AUTO

    @property
    def checks(self) -> list[CheckResult]:
        return self.backend_checks + self.engine_checks

    @property
    def passed(self) -> bool:
        return not any(check.failed for check in self.checks)

    @property
    def exit_code(self) -> int:
        return 0 if self.passed else 1

    def render(self) -> str:
        """Format the report as printed by validate-gpu."""
        shown = self.backend.value if self.backend else self.requested
        if self.auto_selected and self.backend:
            shown = f"{shown} (auto-selected)"

        lines = ["=== GPU Validation ===", "", f"Validating backend: {shown}", ""]
        if self.backend and self.backend is not Backend.CPU:
            lines.append(f"Checking {self.backend.label} availability...")
        for check in self.backend_checks:
            lines.extend(check.render())

        if self.engine_checks:
            lines += ["", "=== Inference Engine Validation ==="]
            for check in self.engine_checks:
                lines.extend(check.render())

        verdict = "PASSED" if self.passed else "FAILED"
        lines += ["", f"=== Validation: {verdict} ===", ""]
        return "\n".join(lines)

    def print_report(self) -> None:
        print(self.render())

    def to_dict(self) -> dict[str, Any]:
        return {
            "requested": self.requested,
            "backend": self.backend.value if self.backend else None,
            "variant": self.variant_value,
            "passed": self.passed,
            "backend_checks": [c.to_dict() for c in self.backend_checks],
            "engine_checks": [c.to_dict() for c in self.engine_checks],
        }


# =============================================================================
# Backend Branches
# =============================================================================


def _variant_check(backend: Backend, variant_value: str | None) -> list[CheckResult]:
    if variant_supports(parse_variant(variant_value), backend):
        return []
    return [
        CheckResult(
            CheckStatus.FAIL,
            f"{backend.label} not available in variant: {variant_value or 'not set'}",
        )
    ]


def validate_cuda(runner: ToolRunner, variant_value: str | None) -> list[CheckResult]:
    """nvidia-smi must run and the image variant must ship CUDA."""
    if not runner.has("nvidia-smi"):
        checks = [CheckResult(CheckStatus.FAIL, "nvidia-smi not found")]
    elif not runner.run(["nvidia-smi"]).ok:
        checks = [CheckResult(CheckStatus.FAIL, "CUDA runtime check failed")]
    else:
        names = runner.run(["nvidia-smi", "--query-gpu=name", "--format=csv,noheader"])
        checks = [CheckResult(CheckStatus.PASS, "CUDA runtime available", names.lines())]
    return checks + _variant_check(Backend.CUDA, variant_value)


def validate_rocm(runner: ToolRunner, variant_value: str | None) -> list[CheckResult]:
    """rocm-smi must list products and the image variant must ship ROCm."""
    if not runner.has("rocm-smi"):
        checks = [CheckResult(CheckStatus.FAIL, "rocm-smi not found")]
    else:
        result = runner.run(["rocm-smi", "--showproductname"])
        if result.ok:
            checks = [CheckResult(CheckStatus.PASS, "ROCm runtime available", result.lines())]
        else:
            checks = [CheckResult(CheckStatus.FAIL, "ROCm runtime check failed")]
    return checks + _variant_check(Backend.ROCM, variant_value)


def validate_vulkan(runner: ToolRunner, variant_value: str | None) -> list[CheckResult]:
    """vulkaninfo must report at least one device. Every variant ships Vulkan."""
    if not runner.has("vulkaninfo"):
        return [CheckResult(CheckStatus.FAIL, "vulkaninfo not found")]

    result = runner.run(["vulkaninfo", "--summary"])
    count = count_vulkan_devices(result.stdout) if result.ok else 0
    if count == 0:
        return [CheckResult(CheckStatus.FAIL, "No Vulkan devices found")]

    names = [f"deviceName = {d.name}" for d in parse_vulkan_device_names(result.stdout)]
    return [
        CheckResult(
            CheckStatus.PASS,
            f"Vulkan runtime available with {count} device(s)",
            names,
        )
    ]


def validate_cpu(runner: ToolRunner, variant_value: str | None) -> list[CheckResult]:
    return [CheckResult(CheckStatus.PASS, "CPU mode (no GPU validation required)")]


BACKEND_VALIDATORS: dict[Backend, Callable[[ToolRunner, str | None], list[CheckResult]]] = {
    Backend.CUDA: validate_cuda,
    Backend.ROCM: validate_rocm,
    Backend.VULKAN: validate_vulkan,
    Backend.CPU: validate_cpu,
}


# =============================================================================
# Engine Checks
# =============================================================================


def engine_check(status: EngineStatus) -> CheckResult:
    """Turn an engine status into a check. Only required engines can fail."""
    if status.installed:
        summary = status.version if status.required and status.version else "installed"
        return CheckResult(CheckStatus.PASS, f"{status.name}: {summary}")

    message = f"{status.name}: not found"
    if status.hint:
        message += f" ({status.hint})"
    return CheckResult(CheckStatus.FAIL if status.required else CheckStatus.WARN, message)


def validate_engines(runner: ToolRunner, bin_dir: Path | None = None) -> list[CheckResult]:
    return [engine_check(status) for status in detect_engines(runner, bin_dir)]


# =============================================================================
# Entry Point
# =============================================================================


def validate(
    backend: str | None = None,
    variant_value: str | None = None,
    runner: ToolRunner | None = None,
    check_engines: bool = True,
    bin_dir: Path | None = None,
) -> ValidationReport:
    """Validate the GPU setup for a backend.

    Args:
        backend: Backend name or `auto`. Defaults to GPU_BACKEND, then vulkan.
        variant_value: GPU_VARIANT value. Defaults to the environment.
        runner: Tool runner, defaults to a fresh ToolRunner.
        check_engines: Whether to run the inference engine checks.
        bin_dir: Bundled binary directory for engine checks.

    Returns:
        ValidationReport; `passed` is True iff no check failed.
    """
    runner = runner or ToolRunner()
    requested = backend or get_environment(EnvVar.GPU_BACKEND) or DEFAULT_BACKEND
    if variant_value is None:
        variant_value = get_environment(EnvVar.GPU_VARIANT)

    try:
        resolved = parse_backend(requested)
    except UnknownBackendError:
        resolved = None
        backend_checks = [CheckResult(CheckStatus.FAIL, f"Unknown backend: {requested}")]
    else:
        if resolved is None:
            resolved = select_backend(AUTO, variant_value, runner).backend
            logger.info(f"Auto-selected backend {resolved.value} for validation")
        backend_checks = BACKEND_VALIDATORS[resolved](runner, variant_value)

    report = ValidationReport(
        requested=requested,
        backend=resolved,
        variant_value=variant_value,
        backend_checks=backend_checks,
        engine_checks=validate_engines(runner, bin_dir) if check_engines else [],
    )
    if not report.passed:
        failed = [c.message for c in report.checks if c.failed]
        logger.debug(f"Validation failed: {failed}")
    return report


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
