"""Tests for gpu-info report."""

import httpx
import pytest

from conftest import LSPCI_AMD

from .lib import collect_info, read_os_version

OS_RELEASE = """\
PRETTY_NAME="Ubuntu 24.04.1 LTS"
NAME="Ubuntu"
VERSION_ID="24.04"
VERSION="24.04.1 LTS (Noble Numbat)"
VERSION_CODENAME=noble
"""


def _server(version: str = "0.5.7") -> httpx.MockTransport:
    return httpx.MockTransport(lambda request: httpx.Response(200, json={"version": version}))


class TestReadOsVersion:
    """Tests for /etc/os-release parsing."""

    @pytest.mark.unit
    def test_quoted(self):
        """Quoted VERSION is unwrapped, VERSION_ID is ignored."""
        assert read_os_version(OS_RELEASE) == "24.04.1 LTS (Noble Numbat)"

    @pytest.mark.unit
    def test_unquoted(self):
        """Unquoted values are accepted."""
        assert read_os_version("VERSION=3.19\n") == "3.19"

    @pytest.mark.unit
    @pytest.mark.parametrize("text", [None, "", "NAME=Alpine\n"])
    def test_missing(self, text):
        """Missing file or key gives an empty version."""
        assert read_os_version(text) == ""


class TestCollectInfo:
    """Tests for gpu-info content."""

    @pytest.mark.unit
    def test_defaults_on_bare_host(self, fake_runner):
        """Unset variables fall back to unknown and vulkan."""
        text = collect_info(fake_runner, check_server=False).render()
        assert "Variant: unknown" in text
        assert "Default Backend: vulkan" in text
        assert "✗ Ollama: not installed" in text
        assert "NVIDIA: not detected" in text
        assert "  • Unknown variant" in text
        assert "FROM ghcr.io/penguincloud/ai-base:vulkan" in text
        assert "Ollama Server" not in text

    @pytest.mark.unit
    def test_full_report(self, engines_runner, monkeypatch):
        """A fully equipped nvidia container shows every section."""
        monkeypatch.setenv("GPU_VARIANT", "nvidia")
        monkeypatch.setenv("GPU_BACKEND", "cuda")
        engines_runner.add_file("/etc/os-release", OS_RELEASE)
        engines_runner.script(
            "nvidia-smi",
            "--query-gpu=name,driver_version,memory.total",
            "--format=csv,noheader",
            stdout="NVIDIA GeForce RTX 4090, 550.54.14, 24564 MiB\n",
        )

        text = collect_info(engines_runner, transport=_server()).render()
        assert "Variant: nvidia" in text
        assert "Default Backend: cuda" in text
        assert "Image Version: 24.04.1 LTS (Noble Numbat)" in text
        assert "✓ Ollama (0.5.7)\n  Path: /usr/bin/ollama" in text
        assert "✓ llama.cpp\n  Path: /opt/ai-base/bin/\n    /opt/ai-base/bin/llama-bench" in text
        assert "✓ EXO (0.0.1)\n  Python package installed" in text
        assert "NVIDIA GPU:\n  NVIDIA GeForce RTX 4090, 550.54.14, 24564 MiB" in text
        assert "  • CUDA (NVIDIA optimized)\n  • Vulkan (fallback)" in text
        assert "Ollama: /models/ollama" in text
        assert "✓ Ollama server: running (v0.5.7) at http://localhost:11434" in text
        assert "  detect-gpu      - Detect GPU hardware" in text
        assert "FROM ghcr.io/penguincloud/ai-base:nvidia" in text

    @pytest.mark.unit
    def test_section_order(self, fake_runner):
        """Sections appear in a fixed order."""
        text = collect_info(fake_runner, check_server=False).render()
        titles = [
            "Container Information",
            "Available Inference Engines",
            "GPU Hardware Detection",
            "Backend Support (This Variant)",
            "Model Paths",
            "Utility Commands",
            "Getting Started",
        ]
        positions = [text.index(f"  {t}\n") for t in titles]
        assert positions == sorted(positions)

    @pytest.mark.unit
    def test_banner_toggle(self, fake_runner):
        """The ASCII banner can be suppressed."""
        report = collect_info(fake_runner, check_server=False)
        assert "Multi-Backend AI Inference Base Layer" in report.render()
        assert "Multi-Backend AI Inference Base Layer" not in report.render(banner=False)

    @pytest.mark.unit
    def test_amd_without_rocm(self, fake_runner):
        """A partial AMD detection is shown with its PCI line."""
        fake_runner.script("lspci", stdout=LSPCI_AMD)
        text = collect_info(fake_runner, check_server=False).render()
        assert "AMD GPU: detected but ROCm not available\n  0b:00.0" in text

    @pytest.mark.unit
    def test_vulkan_devices(self, nvidia_runner):
        """Vulkan device names are listed."""
        text = collect_info(nvidia_runner, check_server=False).render()
        assert "Vulkan Devices: 2" in text
        assert "  deviceName = NVIDIA GeForce RTX 4090" in text

    @pytest.mark.unit
    def test_unreachable_server(self, fake_runner):
        """A down Ollama server is shown, not raised."""

        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        report = collect_info(fake_runner, transport=httpx.MockTransport(refuse))
        assert report.ollama_server.available is False
        assert "✗ Ollama server: not reachable" in report.render()

    @pytest.mark.unit
    def test_to_dict(self, engines_runner, monkeypatch):
        """JSON form includes engines and model paths."""
        monkeypatch.setenv("LLAMA_MODELS", "/data/llama")
        data = collect_info(engines_runner, check_server=False).to_dict()
        assert [e["name"] for e in data["engines"]] == ["Ollama", "llama.cpp", "llm-d", "EXO"]
        assert data["model_paths"]["llama.cpp"] == "/data/llama"
        assert data["ollama_server"] is None
