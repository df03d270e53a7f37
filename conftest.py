"""Root pytest configuration and fixtures.

This module provides:
- A scripted FakeRunner standing in for GPU tools (nvidia-smi, rocm-smi, ...)
- Canned tool output for NVIDIA, AMD, Intel and Vulkan hosts
- Environment isolation for GPU_BACKEND / GPU_VARIANT
- Auto-skip of docker-marked tests when the daemon is unavailable
"""

from __future__ import annotations

import shutil
import subprocess
from fnmatch import fnmatch
from pathlib import Path, PurePosixPath
from typing import Sequence

import pytest

from aibase.probe import EXIT_NOT_FOUND, ModuleInfo, ProbeResult, ToolRunner

# =============================================================================
# Canned Tool Output
# =============================================================================

NVIDIA_CSV = "NVIDIA GeForce RTX 4090, 550.54.14, 24564 MiB\n"

ROCM_PRODUCT_NAME = """\
========================= ROCm System Management Interface =========================
=================================== Product Info ===================================
GPU[0]		: Card series: 		Navi 21 [Radeon RX 6800 XT]
GPU[0]		: Card model: 		0x73bf
GPU[0]		: Card vendor: 		Advanced Micro Devices, Inc. [AMD/ATI]
====================================================================================
=============================== End of ROCm SMI Log ================================
"""

VULKAN_SUMMARY = """\
==========
VULKANINFO
==========

Vulkan Instance Version: 1.3.275

Devices:
========
GPU0:
	apiVersion         = 1.3.277
	driverVersion      = 550.54.14
	vendorID           = 0x10de
	deviceType         = PHYSICAL_DEVICE_TYPE_DISCRETE_GPU
	deviceName         = NVIDIA GeForce RTX 4090
GPU1:
	apiVersion         = 1.3.274
	deviceType         = PHYSICAL_DEVICE_TYPE_CPU
	deviceName         = llvmpipe (LLVM 17.0.6, 256 bits)
"""

VULKAN_SUMMARY_NO_DEVICES = """\
==========
VULKANINFO
==========

Vulkan Instance Version: 1.3.275
"""

LSPCI_AMD = (
    "00:00.0 Host bridge: Advanced Micro Devices, Inc. [AMD] Starship/Matisse Root Complex\n"
    "0b:00.0 VGA compatible controller: Advanced Micro Devices, Inc. [AMD/ATI] "
    "Navi 21 [Radeon RX 6800/6800 XT / 6900 XT] (rev c1)\n"
)

LSPCI_INTEL = (
    "00:02.0 VGA compatible controller: Intel Corporation "
    "Alder Lake-P GT2 [Iris Xe Graphics] (rev 0c)\n"
)


# =============================================================================
# Fake Tool Runner
# =============================================================================


class FakeRunner(ToolRunner):
    """ToolRunner whose tools, files and modules are scripted by the test.

    Example:
        >>> runner = FakeRunner()
        >>> runner.script("nvidia-smi", "-L", stdout="GPU 0: RTX 4090")
        >>> runner.run(["nvidia-smi", "-L"]).stdout
        'GPU 0: RTX 4090'
    """

    def __init__(self) -> None:
        super().__init__(timeout=1)
        self.tools: dict[str, str] = {}
        self.outputs: dict[tuple[str, ...], ProbeResult] = {}
        self.files: dict[str, str] = {}
        self.modules: dict[str, ModuleInfo] = {}
        self.calls: list[tuple[str, ...]] = []

    def install(self, name: str, path: str | None = None) -> FakeRunner:
        """Put a tool on the fake PATH. Unscripted calls exit 0 silently."""
        self.tools[name] = path or f"/usr/bin/{name}"
        return self

    def script(
        self,
        *args: str,
        stdout: str = "",
        returncode: int = 0,
        timed_out: bool = False,
    ) -> FakeRunner:
        """Script the result of one exact command line."""
        if args[0] not in self.tools:
            self.install(args[0])
        self.outputs[tuple(args)] = ProbeResult(
            args=tuple(args),
            returncode=None if timed_out else returncode,
            stdout=stdout,
            timed_out=timed_out,
        )
        return self

    def add_file(self, path: str, content: str = "") -> FakeRunner:
        self.files[str(PurePosixPath(path))] = content
        return self

    def add_module(self, name: str, version: str | None = None) -> FakeRunner:
        self.modules[name] = ModuleInfo(name=name, version=version)
        return self

    def which(self, name: str) -> str | None:
        return self.tools.get(name)

    def run(self, args: Sequence[str], timeout: int | None = None) -> ProbeResult:
        args = tuple(args)
        self.calls.append(args)
        if args[0] not in self.tools:
            return ProbeResult(args=args, found=False, returncode=EXIT_NOT_FOUND)
        return self.outputs.get(args, ProbeResult(args=args))

    def exists(self, path: Path | str) -> bool:
        return str(PurePosixPath(path)) in self.files

    def glob(self, directory: Path | str, pattern: str) -> list[Path]:
        directory = PurePosixPath(directory)
        return [
            Path(p)
            for p in sorted(self.files)
            if PurePosixPath(p).parent == directory
            and fnmatch(PurePosixPath(p).name, pattern)
        ]

    def read_text(self, path: Path | str) -> str | None:
        return self.files.get(str(PurePosixPath(path)))

    def python_module(self, name: str) -> ModuleInfo | None:
        return self.modules.get(name)


# =============================================================================
# Docker Availability (Private Functions)
# =============================================================================


def _is_docker_available() -> bool:
    """Check if Docker daemon is running."""
    if shutil.which("docker") is None:
        return False
    try:
        result = subprocess.run(
            ["docker", "info"],
            capture_output=True,
            timeout=5,
        )
        return result.returncode == 0
    except (subprocess.TimeoutExpired, FileNotFoundError, OSError):
        return False


# =============================================================================
# Pytest Hooks
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]):
    """Auto-skip tests marked with docker when the daemon is unavailable."""
    if not any("docker" in item.keywords for item in items):
        return

    docker_available = _is_docker_available()
    skip_docker = pytest.mark.skip(reason="Docker not available")

    for item in items:
        if "docker" in item.keywords and not docker_available:
            item.add_marker(skip_docker)


# =============================================================================
# Environment Fixtures
# =============================================================================


_ISOLATED_VARS = (
    "GPU_BACKEND",
    "GPU_VARIANT",
    "CUDA_VISIBLE_DEVICES",
    "HSA_OVERRIDE_GFX_VERSION",
    "VK_LAYER_PATH",
    "AI_BASE_BIN_DIR",
    "OLLAMA_HOST",
    "OLLAMA_MODELS",
    "LLAMA_MODELS",
    "EXO_MODELS",
    "DOCKER_REGISTRY",
    "DOCKER_ORG",
    "AI_BASE_PROBE_TIMEOUT",
    "AI_BASE_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Clear ai-base variables so the host's GPU setup never leaks into tests."""
    for name in _ISOLATED_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("LD_LIBRARY_PATH", "/usr/lib")


# =============================================================================
# Host Fixtures
# =============================================================================


@pytest.fixture
def fake_runner() -> FakeRunner:
    """A host with no tools, files or modules at all."""
    return FakeRunner()


@pytest.fixture
def nvidia_runner(fake_runner: FakeRunner) -> FakeRunner:
    """A host with an NVIDIA GPU and the Vulkan runtime."""
    return (
        fake_runner.script(
            "nvidia-smi",
            "--query-gpu=name,driver_version,memory.total",
            "--format=csv,noheader",
            stdout=NVIDIA_CSV,
        )
        .script(
            "nvidia-smi",
            "--query-gpu=name",
            "--format=csv,noheader",
            stdout="NVIDIA GeForce RTX 4090\n",
        )
        .script("vulkaninfo", "--summary", stdout=VULKAN_SUMMARY)
    )


@pytest.fixture
def amd_runner(fake_runner: FakeRunner) -> FakeRunner:
    """A host with an AMD GPU and ROCm."""
    return fake_runner.script(
        "rocm-smi", "--showproductname", stdout=ROCM_PRODUCT_NAME
    ).script("lspci", stdout=LSPCI_AMD)


@pytest.fixture
def engines_runner(fake_runner: FakeRunner) -> FakeRunner:
    """A host with every inference engine installed under /opt/ai-base/bin."""
    return (
        fake_runner.script("ollama", "--version", stdout="ollama version is 0.5.7\n")
        .add_file("/opt/ai-base/bin/llama-cli")
        .add_file("/opt/ai-base/bin/llama-server")
        .add_file("/opt/ai-base/bin/llama-bench")
        .add_file("/opt/ai-base/bin/llama-quantize")
        .add_file("/opt/ai-base/bin/llm-d")
        .add_module("exo", "0.0.1")
    )
