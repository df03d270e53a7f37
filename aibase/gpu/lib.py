"""GPU hardware detection implementation.

Probes the vendor tools present in the container (nvidia-smi, rocm-smi,
vulkaninfo) and the PCI bus (lspci) to build an inventory, then recommends a
backend for the image variant that is running.

Absence of a GPU is a normal outcome here: detection only reports, it never
fails.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from aibase.probe import ProbeResult, ToolRunner
from aibase.schema import Backend, Variant, parse_variant, variant_supports

logger = logging.getLogger(__name__)

# lspci class/vendor patterns (matched case-insensitively)
AMD_PCI_PATTERN = r"amd.*(vga|display|radeon)"
INTEL_PCI_PATTERN = r"intel.*(vga|display|graphics)"

NVIDIA_QUERY = [
    "nvidia-smi",
    "--query-gpu=name,driver_version,memory.total",
    "--format=csv,noheader",
]
ROCM_QUERY = ["rocm-smi", "--showproductname"]
VULKAN_QUERY = ["vulkaninfo", "--summary"]

_ROCM_CARD_SERIES = re.compile(r"GPU\[(\d+)\]\s*:\s*Card series:\s*(.+)", re.IGNORECASE)
_ROCM_NOISE = re.compile(r"^[=\s]*$|ROCm System Management Interface|End of ROCm SMI Log")
_VULKAN_GPU_HEADER = re.compile(r"^GPU\d+:")
_VULKAN_DEVICE_NAME = re.compile(r"deviceName\s*=\s*(.+)")


class Vendor(str, Enum):
    """Probed GPU sources."""

    NVIDIA = "nvidia"
    AMD = "amd"
    INTEL = "intel"
    VULKAN = "vulkan"


class ProbeState(str, Enum):
    """Detection state for one vendor.

    - DETECTED: hardware and its runtime are usable
    - PARTIAL: hardware is visible but its runtime is missing
    - ABSENT: nothing found
    """

    DETECTED = "detected"
    PARTIAL = "partial"
    ABSENT = "absent"


class GPUDevice(BaseModel):
    """A GPU reported by a vendor tool."""

    vendor: Vendor
    name: str = Field(..., description="Product name as reported by the tool")
    driver_version: str | None = None
    memory_mib: int | None = Field(None, description="Total device memory in MiB")

    @field_validator("memory_mib", mode="before")
    @classmethod
    def _parse_memory(cls, value: Any) -> Any:
        # nvidia-smi reports "24564 MiB", or "[N/A]" on some boards
        if isinstance(value, str):
            match = re.match(r"\s*(\d+)", value)
            return int(match.group(1)) if match else None
        return value


@dataclass(frozen=True)
class VendorProbe:
    """Detection result for one vendor.

    Attributes:
        vendor: Which source was probed.
        state: Detection state.
        message: Headline shown to the user.
        details: Supporting lines from the tool output.
        devices: Parsed devices, when the tool output could be parsed.
    """

    vendor: Vendor
    state: ProbeState
    message: str = ""
    details: tuple[str, ...] = ()
    devices: tuple[GPUDevice, ...] = ()

    @property
    def found(self) -> bool:
        return self.state is ProbeState.DETECTED

    def to_dict(self) -> dict[str, Any]:
        return {
            "vendor": self.vendor.value,
            "state": self.state.value,
            "message": self.message,
            "details": list(self.details),
            "devices": [d.model_dump(mode="json") for d in self.devices],
        }


def _absent(vendor: Vendor) -> VendorProbe:
    return VendorProbe(vendor=vendor, state=ProbeState.ABSENT)


# =============================================================================
# Output Parsers
# =============================================================================


def parse_nvidia_csv(text: str) -> list[GPUDevice]:
    """Parse `nvidia-smi --query-gpu=name,driver_version,memory.total` CSV.

    Lines that do not have three fields are skipped.
    """
    devices = []
    for line in text.splitlines():
        fields = [f.strip() for f in line.split(",")]
        if len(fields) != 3 or not fields[0]:
            continue
        name, driver, memory = fields
        devices.append(
            GPUDevice(
                vendor=Vendor.NVIDIA,
                name=name,
                driver_version=driver or None,
                memory_mib=memory,
            )
        )
    return devices


def parse_rocm_product_names(text: str) -> list[GPUDevice]:
    """Parse `rocm-smi --showproductname` card series lines."""
    devices = []
    for line in text.splitlines():
        match = _ROCM_CARD_SERIES.search(line)
        if match:
            devices.append(GPUDevice(vendor=Vendor.AMD, name=match.group(2).strip()))
    return devices


def count_vulkan_devices(text: str) -> int:
    """Count physical devices in `vulkaninfo --summary` output.

    Each device is introduced by a `GPU<n>:` header line.
    """
    return sum(1 for line in text.splitlines() if _VULKAN_GPU_HEADER.match(line.strip()))


def parse_vulkan_device_names(text: str) -> list[GPUDevice]:
    """Extract `deviceName = ...` entries from `vulkaninfo --summary`."""
    devices = []
    for line in text.splitlines():
        match = _VULKAN_DEVICE_NAME.search(line)
        if match:
            devices.append(GPUDevice(vendor=Vendor.VULKAN, name=match.group(1).strip()))
    return devices


# =============================================================================
# Vendor Probes
# =============================================================================


def detect_nvidia(runner: ToolRunner) -> VendorProbe:
    """Detect an NVIDIA GPU via nvidia-smi."""
    if not runner.has("nvidia-smi"):
        return _absent(Vendor.NVIDIA)

    result = runner.run(NVIDIA_QUERY)
    if not result.ok:
        return VendorProbe(
            vendor=Vendor.NVIDIA,
            state=ProbeState.DETECTED,
            message="NVIDIA GPU detected",
            details=("Unable to query GPU details",),
        )

    return VendorProbe(
        vendor=Vendor.NVIDIA,
        state=ProbeState.DETECTED,
        message="NVIDIA GPU detected",
        details=tuple(result.lines()),
        devices=tuple(parse_nvidia_csv(result.stdout)),
    )


def detect_amd(runner: ToolRunner, lspci: ProbeResult | None = None) -> VendorProbe:
    """Detect an AMD GPU via rocm-smi, falling back to the PCI bus.

    A GPU on the PCI bus without rocm-smi is reported as PARTIAL: the card
    is there but ROCm cannot use it.
    """
    if runner.has("rocm-smi"):
        result = runner.run(ROCM_QUERY)
        if not result.ok:
            details: tuple[str, ...] = ("Unable to query GPU details",)
            devices: tuple[GPUDevice, ...] = ()
        else:
            details = tuple(
                line for line in result.lines() if not _ROCM_NOISE.search(line)
            )
            devices = tuple(parse_rocm_product_names(result.stdout))
        return VendorProbe(
            vendor=Vendor.AMD,
            state=ProbeState.DETECTED,
            message="AMD GPU detected (ROCm)",
            details=details,
            devices=devices,
        )

    lspci = lspci if lspci is not None else runner.run(["lspci"])
    pci_lines = lspci.lines(AMD_PCI_PATTERN) if lspci.ok else []
    if pci_lines:
        return VendorProbe(
            vendor=Vendor.AMD,
            state=ProbeState.PARTIAL,
            message="AMD GPU detected but ROCm not available",
            details=tuple(pci_lines),
        )
    return _absent(Vendor.AMD)


def detect_intel(runner: ToolRunner, lspci: ProbeResult | None = None) -> VendorProbe:
    """Detect an Intel GPU on the PCI bus."""
    lspci = lspci if lspci is not None else runner.run(["lspci"])
    pci_lines = lspci.lines(INTEL_PCI_PATTERN) if lspci.ok else []
    if not pci_lines:
        return _absent(Vendor.INTEL)
    return VendorProbe(
        vendor=Vendor.INTEL,
        state=ProbeState.DETECTED,
        message="Intel GPU detected",
        details=tuple(pci_lines),
    )


def detect_vulkan(runner: ToolRunner) -> VendorProbe:
    """Detect the Vulkan runtime and enumerate its devices.

    The runtime being installed is enough for DETECTED; the device count is
    informational, validation is where zero devices becomes a failure.
    """
    if not runner.has("vulkaninfo"):
        return _absent(Vendor.VULKAN)

    result = runner.run(VULKAN_QUERY)
    count = count_vulkan_devices(result.stdout) if result.ok else 0
    details: list[str] = []
    devices: list[GPUDevice] = []
    if count > 0:
        devices = parse_vulkan_device_names(result.stdout)
        details.append(f"Vulkan-capable devices: {count}")
        details.extend(f"deviceName = {d.name}" for d in devices)

    return VendorProbe(
        vendor=Vendor.VULKAN,
        state=ProbeState.DETECTED,
        message="Vulkan runtime detected",
        details=tuple(details),
        devices=tuple(devices),
    )


# =============================================================================
# Inventory and Recommendation
# =============================================================================


@dataclass(frozen=True)
class GPUInventory:
    """Results of all vendor probes."""

    nvidia: VendorProbe
    amd: VendorProbe
    intel: VendorProbe
    vulkan: VendorProbe

    @property
    def probes(self) -> list[VendorProbe]:
        return [self.nvidia, self.amd, self.intel, self.vulkan]

    @property
    def has_gpu(self) -> bool:
        """True if any vendor probe found a usable GPU or runtime."""
        return any(p.found for p in self.probes)

    @property
    def devices(self) -> list[GPUDevice]:
        return [d for p in self.probes for d in p.devices]


@dataclass(frozen=True)
class Recommendation:
    """Backend suggested for this host and image."""

    backend: Backend
    reason: str

    @property
    def is_fallback(self) -> bool:
        return self.backend is Backend.CPU


def detect_gpus(runner: ToolRunner | None = None) -> GPUInventory:
    """Probe every vendor.

    Args:
        runner: Tool runner, defaults to a fresh ToolRunner.

    Returns:
        GPUInventory with one probe per vendor.
    """
    runner = runner or ToolRunner()
    lspci = runner.run(["lspci"])
    if not lspci.found:
        logger.debug("lspci not available, PCI fallback disabled")

    return GPUInventory(
        nvidia=detect_nvidia(runner),
        amd=detect_amd(runner, lspci),
        intel=detect_intel(runner, lspci),
        vulkan=detect_vulkan(runner),
    )


def recommend_backend(inventory: GPUInventory, variant: Variant | None) -> Recommendation:
    """Pick a backend by priority: CUDA, ROCm, Vulkan, then CPU.

    Vendor-native backends are only recommended when the image variant ships
    them; Vulkan is in every variant.
    """
    if inventory.nvidia.found and variant_supports(variant, Backend.CUDA):
        return Recommendation(Backend.CUDA, "NVIDIA GPU with CUDA support available")
    if inventory.amd.found and variant_supports(variant, Backend.ROCM):
        return Recommendation(Backend.ROCM, "AMD GPU with ROCm support available")
    if inventory.vulkan.found:
        return Recommendation(Backend.VULKAN, "Vulkan provides universal GPU support")
    return Recommendation(Backend.CPU, "Falling back to CPU mode")


# =============================================================================
# Report
# =============================================================================


def render_variant_backends(variant: Variant | None, bullet: str = "-") -> list[str]:
    """Lines listing the backends of an image variant."""
    if variant is None:
        return [f"{bullet} Unknown variant"]
    return [f"{bullet} {label}" for label in variant.backend_labels]


@dataclass
class DetectionReport:
    """Complete detect-gpu result.

    Attributes:
        inventory: Vendor probe results.
        variant_value: Raw GPU_VARIANT value (None when unset).
        recommendation: Suggested backend.
    """

    inventory: GPUInventory
    variant_value: str | None
    recommendation: Recommendation

    @property
    def variant(self) -> Variant | None:
        return parse_variant(self.variant_value)

    def render(self) -> str:
        """Format the report as shown by detect-gpu."""
        lines = ["=== GPU Detection ==="]
        for probe in self.inventory.probes:
            if probe.state is ProbeState.ABSENT:
                continue
            marker = "✓" if probe.found else "⚠"
            lines.append(f"{marker} {probe.message}")
            lines.extend(f"  {d}" for d in probe.details)

        lines += ["", "=== Backend Recommendations ==="]
        if self.recommendation.is_fallback:
            lines.append("⚠ No GPU detected or no drivers available")
        else:
            lines.append(f"Recommended: GPU_BACKEND={self.recommendation.backend.value}")
        lines.append(f"  {self.recommendation.reason}")

        lines += [
            "",
            "=== Container Variant ===",
            f"  GPU_VARIANT: {self.variant_value or 'not set'}",
            "  Available backends in this image:",
        ]
        lines.extend(f"    {line}" for line in render_variant_backends(self.variant))
        lines.append("")
        return "\n".join(lines)

    def print_report(self) -> None:
        """Print formatted report to stdout."""
        print(self.render())

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "gpus": [p.to_dict() for p in self.inventory.probes],
            "has_gpu": self.inventory.has_gpu,
            "recommendation": {
                "backend": self.recommendation.backend.value,
                "reason": self.recommendation.reason,
            },
            "variant": {
                "value": self.variant_value,
                "backends": (
                    [b.value for b, _ in self.variant.value.backends]
                    if self.variant
                    else []
                ),
            },
        }


def run_detection(
    variant_value: str | None,
    runner: ToolRunner | None = None,
) -> DetectionReport:
    """Detect GPUs and recommend a backend for the given GPU_VARIANT."""
    inventory = detect_gpus(runner)
    recommendation = recommend_backend(inventory, parse_variant(variant_value))
    if recommendation.is_fallback:
        logger.warning("No GPU detected or no drivers available, using CPU")
    return DetectionReport(
        inventory=inventory,
        variant_value=variant_value,
        recommendation=recommendation,
    )


__all__ = [
    "AMD_PCI_PATTERN",
    "INTEL_PCI_PATTERN",
    "DetectionReport",
    "GPUDevice",
    "GPUInventory",
    "ProbeState",
    "Recommendation",
    "Vendor",
    "VendorProbe",
    "count_vulkan_devices",
    "detect_amd",
    "detect_gpus",
    "detect_intel",
    "detect_nvidia",
    "detect_vulkan",
    "parse_nvidia_csv",
    "parse_rocm_product_names",
    "parse_vulkan_device_names",
    "recommend_backend",
    "render_variant_backends",
    "run_detection",
]
