"""Tests for GPU detection module."""

import pytest

from aibase.schema import Backend, Variant
from conftest import LSPCI_AMD, LSPCI_INTEL, VULKAN_SUMMARY, VULKAN_SUMMARY_NO_DEVICES

from .lib import (
    GPUInventory,
    ProbeState,
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
    run_detection,
)


def _inventory(**found: ProbeState) -> GPUInventory:
    """Build an inventory with the given vendor states, others absent."""
    probes = {
        vendor.value: VendorProbe(vendor=vendor, state=found.get(vendor.value, ProbeState.ABSENT))
        for vendor in Vendor
    }
    return GPUInventory(**probes)


# =============================================================================
# Parsers
# =============================================================================


class TestParsers:
    """Tests for vendor tool output parsers."""

    @pytest.mark.unit
    def test_parse_nvidia_csv(self):
        """CSV rows become devices with memory in MiB."""
        devices = parse_nvidia_csv(
            "NVIDIA GeForce RTX 4090, 550.54.14, 24564 MiB\n"
            "NVIDIA A100-SXM4-80GB, 550.54.14, 81920 MiB\n"
        )
        assert [d.name for d in devices] == ["NVIDIA GeForce RTX 4090", "NVIDIA A100-SXM4-80GB"]
        assert devices[0].driver_version == "550.54.14"
        assert devices[1].memory_mib == 81920
        assert devices[0].vendor is Vendor.NVIDIA

    @pytest.mark.unit
    def test_parse_nvidia_csv_not_available_memory(self):
        """[N/A] memory is recorded as unknown."""
        devices = parse_nvidia_csv("Tesla T4, 535.1, [N/A]\n")
        assert devices[0].memory_mib is None

    @pytest.mark.unit
    def test_parse_nvidia_csv_skips_malformed(self):
        """Rows without three fields are ignored."""
        assert parse_nvidia_csv("No devices were found\n") == []

    @pytest.mark.unit
    def test_parse_rocm_product_names(self, amd_runner):
        """Card series lines become AMD devices."""
        text = amd_runner.outputs[("rocm-smi", "--showproductname")].stdout
        devices = parse_rocm_product_names(text)
        assert len(devices) == 1
        assert devices[0].name == "Navi 21 [Radeon RX 6800 XT]"
        assert devices[0].vendor is Vendor.AMD

    @pytest.mark.unit
    def test_count_vulkan_devices(self):
        """Only GPU<n>: headers count, not deviceType lines."""
        assert count_vulkan_devices(VULKAN_SUMMARY) == 2
        assert count_vulkan_devices(VULKAN_SUMMARY_NO_DEVICES) == 0

    @pytest.mark.unit
    def test_parse_vulkan_device_names(self):
        """deviceName entries are extracted in order."""
        names = [d.name for d in parse_vulkan_device_names(VULKAN_SUMMARY)]
        assert names == ["NVIDIA GeForce RTX 4090", "llvmpipe (LLVM 17.0.6, 256 bits)"]


# =============================================================================
# Vendor Probes
# =============================================================================


class TestVendorProbes:
    """Tests for individual vendor detection."""

    @pytest.mark.unit
    def test_nvidia_absent(self, fake_runner):
        """No nvidia-smi means absent."""
        assert detect_nvidia(fake_runner).state is ProbeState.ABSENT

    @pytest.mark.unit
    def test_nvidia_detected(self, nvidia_runner):
        """nvidia-smi output is parsed into devices."""
        probe = detect_nvidia(nvidia_runner)
        assert probe.found
        assert probe.message == "NVIDIA GPU detected"
        assert probe.devices[0].memory_mib == 24564

    @pytest.mark.unit
    def test_nvidia_query_failure_still_detected(self, fake_runner):
        """A failing query keeps the GPU but notes missing details."""
        fake_runner.script(
            "nvidia-smi",
            "--query-gpu=name,driver_version,memory.total",
            "--format=csv,noheader",
            returncode=9,
        )
        probe = detect_nvidia(fake_runner)
        assert probe.found
        assert probe.details == ("Unable to query GPU details",)

    @pytest.mark.unit
    def test_amd_with_rocm(self, amd_runner):
        """rocm-smi makes AMD detected, log banners are dropped."""
        probe = detect_amd(amd_runner)
        assert probe.state is ProbeState.DETECTED
        assert probe.message == "AMD GPU detected (ROCm)"
        assert not any("ROCm SMI Log" in d for d in probe.details)
        assert any("Card series" in d for d in probe.details)

    @pytest.mark.unit
    def test_amd_without_rocm_is_partial(self, fake_runner):
        """An AMD card on the PCI bus without ROCm is partial."""
        fake_runner.script("lspci", stdout=LSPCI_AMD)
        probe = detect_amd(fake_runner)
        assert probe.state is ProbeState.PARTIAL
        assert probe.found is False
        assert probe.message == "AMD GPU detected but ROCm not available"
        assert len(probe.details) == 1

    @pytest.mark.unit
    def test_amd_host_bridge_is_not_a_gpu(self, fake_runner):
        """AMD chipset lines without a display class do not count."""
        fake_runner.script(
            "lspci",
            stdout="00:00.0 Host bridge: Advanced Micro Devices, Inc. [AMD] Root Complex\n",
        )
        assert detect_amd(fake_runner).state is ProbeState.ABSENT

    @pytest.mark.unit
    def test_intel(self, fake_runner):
        """Intel graphics on the PCI bus is detected."""
        fake_runner.script("lspci", stdout=LSPCI_INTEL)
        probe = detect_intel(fake_runner)
        assert probe.found
        assert "Iris Xe" in probe.details[0]

    @pytest.mark.unit
    def test_intel_without_lspci(self, fake_runner):
        """Missing lspci is absent, not an error."""
        assert detect_intel(fake_runner).state is ProbeState.ABSENT

    @pytest.mark.unit
    def test_vulkan_with_devices(self, nvidia_runner):
        """Device count and names are reported."""
        probe = detect_vulkan(nvidia_runner)
        assert probe.found
        assert probe.details[0] == "Vulkan-capable devices: 2"
        assert "deviceName = NVIDIA GeForce RTX 4090" in probe.details

    @pytest.mark.unit
    def test_vulkan_runtime_without_devices(self, fake_runner):
        """The runtime alone counts as detected."""
        fake_runner.script("vulkaninfo", "--summary", stdout=VULKAN_SUMMARY_NO_DEVICES)
        probe = detect_vulkan(fake_runner)
        assert probe.found
        assert probe.details == ()

    @pytest.mark.unit
    def test_lspci_runs_once(self, fake_runner):
        """The PCI listing is shared by AMD and Intel probes."""
        fake_runner.script("lspci", stdout=LSPCI_AMD + LSPCI_INTEL)
        inventory = detect_gpus(fake_runner)
        assert fake_runner.calls.count(("lspci",)) == 1
        assert inventory.amd.state is ProbeState.PARTIAL
        assert inventory.intel.found


# =============================================================================
# Recommendation
# =============================================================================


class TestRecommendBackend:
    """Tests for the CUDA > ROCm > Vulkan > CPU priority chain."""

    @pytest.mark.unit
    @pytest.mark.parametrize("variant", [Variant.NVIDIA, Variant.ALL])
    def test_cuda_when_variant_ships_it(self, variant):
        """NVIDIA hardware plus a CUDA variant selects cuda."""
        inventory = _inventory(nvidia=ProbeState.DETECTED, vulkan=ProbeState.DETECTED)
        assert recommend_backend(inventory, variant).backend is Backend.CUDA

    @pytest.mark.unit
    def test_nvidia_on_vulkan_image_uses_vulkan(self):
        """Without CUDA in the image, Vulkan is next."""
        inventory = _inventory(nvidia=ProbeState.DETECTED, vulkan=ProbeState.DETECTED)
        assert recommend_backend(inventory, Variant.VULKAN).backend is Backend.VULKAN

    @pytest.mark.unit
    def test_rocm(self):
        """AMD hardware plus a ROCm variant selects rocm."""
        inventory = _inventory(amd=ProbeState.DETECTED)
        result = recommend_backend(inventory, Variant.ROCM)
        assert result.backend is Backend.ROCM
        assert result.reason == "AMD GPU with ROCm support available"

    @pytest.mark.unit
    def test_partial_amd_is_not_rocm(self):
        """A card without ROCm never selects rocm."""
        inventory = _inventory(amd=ProbeState.PARTIAL)
        assert recommend_backend(inventory, Variant.ALL).backend is Backend.CPU

    @pytest.mark.unit
    def test_all_variant_without_hardware_is_cpu(self):
        """An all-backends image on a bare host falls back to CPU."""
        result = recommend_backend(_inventory(), Variant.ALL)
        assert result.backend is Backend.CPU
        assert result.is_fallback

    @pytest.mark.unit
    def test_unset_variant(self):
        """Unset variant can still use Vulkan."""
        inventory = _inventory(nvidia=ProbeState.DETECTED, vulkan=ProbeState.DETECTED)
        assert recommend_backend(inventory, None).backend is Backend.VULKAN


# =============================================================================
# Report
# =============================================================================


class TestDetectionReport:
    """Tests for detect-gpu report rendering."""

    @pytest.mark.unit
    def test_nvidia_report(self, nvidia_runner):
        """NVIDIA host on nvidia image recommends CUDA."""
        text = run_detection("nvidia", nvidia_runner).render()
        assert "=== GPU Detection ===" in text
        assert "✓ NVIDIA GPU detected" in text
        assert "  NVIDIA GeForce RTX 4090, 550.54.14, 24564 MiB" in text
        assert "Recommended: GPU_BACKEND=cuda" in text
        assert "  GPU_VARIANT: nvidia" in text
        assert "    - CUDA (NVIDIA optimized)" in text
        assert "    - Vulkan (fallback)" in text

    @pytest.mark.unit
    def test_bare_host_report(self, fake_runner):
        """No GPU is a reported outcome."""
        report = run_detection(None, fake_runner)
        text = report.render()
        assert "⚠ No GPU detected or no drivers available" in text
        assert "  Falling back to CPU mode" in text
        assert "  GPU_VARIANT: not set" in text
        assert "    - Unknown variant" in text
        assert report.inventory.has_gpu is False

    @pytest.mark.unit
    def test_partial_marker(self, fake_runner):
        """Partial detections are flagged with a warning marker."""
        fake_runner.script("lspci", stdout=LSPCI_AMD)
        text = run_detection("rocm", fake_runner).render()
        assert "⚠ AMD GPU detected but ROCm not available" in text

    @pytest.mark.unit
    def test_unknown_variant_value_is_echoed(self, fake_runner):
        """Unknown variants are shown verbatim."""
        text = run_detection("tpu", fake_runner).render()
        assert "  GPU_VARIANT: tpu" in text
        assert "    - Unknown variant" in text

    @pytest.mark.unit
    def test_to_dict(self, nvidia_runner):
        """JSON form lists every vendor and the recommendation."""
        data = run_detection("all", nvidia_runner).to_dict()
        assert [g["vendor"] for g in data["gpus"]] == ["nvidia", "amd", "intel", "vulkan"]
        assert data["gpus"][0]["devices"][0]["memory_mib"] == 24564
        assert data["recommendation"]["backend"] == "cuda"
        assert data["variant"]["backends"] == ["vulkan", "cuda", "rocm"]
        assert data["has_gpu"] is True
