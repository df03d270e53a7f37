"""Container information summary shown by gpu-info."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx

from aibase.config import EnvVar, get_environment, get_model_paths
from aibase.engines import EngineStatus, OllamaServerStatus, check_ollama_server, detect_engines
from aibase.gpu import GPUInventory, ProbeState, detect_gpus, render_variant_backends
from aibase.probe import ToolRunner
from aibase.schema import parse_variant

logger = logging.getLogger(__name__)

OS_RELEASE = Path("/etc/os-release")
SEPARATOR = "=" * 48

BANNER = r"""    _    ___   ____
   / \  |_ _| | __ )  __ _ ___  ___
  / _ \  | |  |  _ \ / _` / __|/ _ \
 / ___ \ | |  | |_) | (_| \__ \  __/
/_/   \_\___| |____/ \__,_|___/\___|

Multi-Backend AI Inference Base Layer"""

UTILITY_COMMANDS = [
    ("detect-gpu", "Detect GPU hardware"),
    ("select-backend", "Select GPU backend"),
    ("validate-gpu", "Validate GPU setup"),
    ("gpu-info", "Show this information"),
]

BASE_IMAGE = "ghcr.io/penguincloud/ai-base"

_OS_VERSION = re.compile(r'^VERSION=(?:"([^"]*)"|(.*))$', re.MULTILINE)


def read_os_version(text: str | None) -> str:
    """Extract VERSION from os-release content, empty when missing."""
    if not text:
        return ""
    match = _OS_VERSION.search(text)
    if not match:
        return ""
    return (match.group(1) if match.group(1) is not None else match.group(2)).strip()


def _section(title: str) -> list[str]:
    return [SEPARATOR, f"  {title}", SEPARATOR]


@dataclass
class InfoReport:
    """Everything gpu-info shows about the running container.

    Attributes:
        variant_value: Raw GPU_VARIANT value.
        backend_value: Raw GPU_BACKEND value.
        image_version: VERSION from /etc/os-release.
        engines: Installed inference engines.
        inventory: GPU probe results.
        model_paths: Model directory per engine.
        ollama_server: Ollama HTTP status, None when not checked.
    """

    variant_value: str | None
    backend_value: str | None
    image_version: str
    engines: list[EngineStatus]
    inventory: GPUInventory
    model_paths: dict[str, Path] = field(default_factory=dict)
    ollama_server: OllamaServerStatus | None = None

    def _engine_lines(self) -> list[str]:
        lines = []
        for engine in self.engines:
            if not engine.installed:
                lines.append(f"✗ {engine.name}: not installed")
                continue
            title = f"✓ {engine.name}"
            if engine.version:
                title += f" ({engine.version})"
            lines.append(title)
            if engine.path:
                lines.append(f"  Path: {engine.path}")
            indent = "    " if engine.path else "  "
            lines.extend(f"{indent}{detail}" for detail in engine.details)
        return lines

    def _hardware_lines(self) -> list[str]:
        inventory = self.inventory
        lines = []

        if inventory.nvidia.found:
            lines.append("NVIDIA GPU:")
            lines.extend(f"  {d}" for d in inventory.nvidia.details)
            lines.append("")
        else:
            lines.append("NVIDIA: not detected")

        if inventory.amd.state is ProbeState.DETECTED:
            lines.append("AMD GPU:")
        elif inventory.amd.state is ProbeState.PARTIAL:
            lines.append("AMD GPU: detected but ROCm not available")
        if inventory.amd.state is not ProbeState.ABSENT:
            lines.extend(f"  {d}" for d in inventory.amd.details)
            lines.append("")

        if inventory.intel.found:
            lines.append("Intel GPU:")
            lines.extend(f"  {d}" for d in inventory.intel.details)
            lines.append("")

        vulkan_devices = inventory.vulkan.devices
        if vulkan_devices:
            lines.append(f"Vulkan Devices: {len(vulkan_devices)}")
            lines.extend(f"  deviceName = {d.name}" for d in vulkan_devices)
            lines.append("")
        return lines

    def render(self, banner: bool = True) -> str:
        """Format the report as shown by gpu-info."""
        lines: list[str] = []
        if banner:
            lines += [BANNER, ""]

        lines += _section("Container Information")
        lines += [
            f"Variant: {self.variant_value or 'unknown'}",
            f"Default Backend: {self.backend_value or 'vulkan'}",
            f"Image Version: {self.image_version}",
            "",
        ]

        lines += _section("Available Inference Engines")
        lines += self._engine_lines()
        lines.append("")

        lines += _section("GPU Hardware Detection")
        lines += self._hardware_lines()

        variant = parse_variant(self.variant_value)
        lines += _section("Backend Support (This Variant)")
        lines += [f"  {line}" for line in render_variant_backends(variant, bullet="•")]
        lines.append("")

        lines += _section("Model Paths")
        lines += [f"{engine}: {path}" for engine, path in self.model_paths.items()]
        lines.append("")

        if self.ollama_server is not None:
            lines += _section("Ollama Server")
            marker = "✓" if self.ollama_server.available else "✗"
            lines += [f"{marker} {self.ollama_server.summary}", ""]

        lines += _section("Utility Commands")
        lines += [f"  {name:<15} - {description}" for name, description in UTILITY_COMMANDS]
        lines.append("")

        lines += _section("Getting Started")
        lines += [
            "1. Run 'detect-gpu' to identify your GPU",
            "2. Set GPU_BACKEND environment variable if needed",
            "3. Use this image as a base layer:",
            f"   FROM {BASE_IMAGE}:{self.variant_value or 'vulkan'}",
            "",
        ]
        return "\n".join(lines)

    def print_report(self, banner: bool = True) -> None:
        print(self.render(banner=banner))

    def to_dict(self) -> dict[str, Any]:
        return {
            "variant": self.variant_value,
            "backend": self.backend_value,
            "image_version": self.image_version,
            "engines": [e.to_dict() for e in self.engines],
            "gpus": [p.to_dict() for p in self.inventory.probes],
            "model_paths": {k: str(v) for k, v in self.model_paths.items()},
            "ollama_server": (
                {
                    "url": self.ollama_server.url,
                    "available": self.ollama_server.available,
                    "version": self.ollama_server.version,
                }
                if self.ollama_server
                else None
            ),
        }


def collect_info(
    runner: ToolRunner | None = None,
    check_server: bool = True,
    transport: httpx.BaseTransport | None = None,
) -> InfoReport:
    """Gather the gpu-info report.

    Args:
        runner: Tool runner, defaults to a fresh ToolRunner.
        check_server: Whether to query the Ollama HTTP API at OLLAMA_HOST.
        transport: Custom httpx transport (used by tests).

    Returns:
        InfoReport ready to render.
    """
    runner = runner or ToolRunner()
    server = check_ollama_server(transport=transport) if check_server else None
    if server is not None and not server.available:
        logger.debug(f"No Ollama server at {server.url}")

    return InfoReport(
        variant_value=get_environment(EnvVar.GPU_VARIANT),
        backend_value=get_environment(EnvVar.GPU_BACKEND),
        image_version=read_os_version(runner.read_text(OS_RELEASE)),
        engines=detect_engines(runner),
        inventory=detect_gpus(runner),
        model_paths=get_model_paths(),
        ollama_server=server,
    )


__all__ = [
    "BANNER",
    "InfoReport",
    "UTILITY_COMMANDS",
    "collect_info",
    "read_os_version",
]
