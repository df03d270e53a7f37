"""GPU hardware detection for ai-base.

Detects NVIDIA, AMD, Intel and Vulkan devices through their vendor tools and
recommends a backend for the running image variant.

Example:
    >>> from aibase.gpu import run_detection
    >>> report = run_detection("nvidia")
    >>> report.recommendation.backend
    <Backend.CUDA: 'cuda'>
"""

from .lib import (
    AMD_PCI_PATTERN,
    INTEL_PCI_PATTERN,
    DetectionReport,
    GPUDevice,
    GPUInventory,
    ProbeState,
    Recommendation,
    Vendor,
    VendorProbe,
    count_vulkan_devices,
    detect_amd,
    detect_gpus,
    detect_intel,
    detect_nvidia,
    detect_vulkan,
    parse_nvidia_csv,
    parse_rocm_product_names,
    parse_vulkan_device_names,
    recommend_backend,
    render_variant_backends,
    run_detection,
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
