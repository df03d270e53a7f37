"""Tests for validation module."""

import pytest

from aibase.engines import EngineStatus
from aibase.schema import Backend
from conftest import VULKAN_SUMMARY_NO_DEVICES

from .lib import (
    CheckResult,
    CheckStatus,
    ValidationReport,
    engine_check,
    validate,
)


def _messages(report: ValidationReport) -> list[str]:
    return [c.message for c in report.backend_checks]


# =============================================================================
# Backend Branches
# =============================================================================


class TestBackendBranches:
    """Each backend runs its own branch and only that one."""

    @pytest.mark.unit
    @pytest.mark.parametrize("backend", ["cuda", "rocm", "vulkan", "cpu"])
    def test_known_backend_never_unknown(self, fake_runner, backend):
        """Known backends run their branch, never the unknown branch."""
        report = validate(backend, "all", fake_runner, check_engines=False)
        assert report.backend is Backend(backend)
        assert not any("Unknown backend" in m for m in _messages(report))
        assert report.backend_checks

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "backend,tools",
        [
            ("cuda", {"nvidia-smi"}),
            ("rocm", {"rocm-smi"}),
            ("vulkan", {"vulkaninfo"}),
            ("cpu", set()),
        ],
    )
    def test_branch_probes_only_its_tools(self, fake_runner, backend, tools):
        """No branch probes another backend's tools."""
        for tool in ("nvidia-smi", "rocm-smi", "vulkaninfo"):
            fake_runner.install(tool)
        validate(backend, "all", fake_runner, check_engines=False)
        assert {call[0] for call in fake_runner.calls} == tools

    @pytest.mark.unit
    def test_cuda_passes(self, nvidia_runner):
        """Working nvidia-smi on an nvidia image passes."""
        report = validate("cuda", "nvidia", nvidia_runner, check_engines=False)
        assert report.passed
        assert report.backend_checks[0].details == ["NVIDIA GeForce RTX 4090"]

    @pytest.mark.unit
    def test_cuda_on_vulkan_image_fails(self, nvidia_runner):
        """CUDA hardware on a Vulkan-only image fails the variant check."""
        report = validate("cuda", "vulkan", nvidia_runner, check_engines=False)
        assert not report.passed
        assert "CUDA not available in variant: vulkan" in _messages(report)

    @pytest.mark.unit
    def test_cuda_runtime_failure(self, fake_runner):
        """nvidia-smi exiting non-zero fails."""
        fake_runner.script("nvidia-smi", returncode=9)
        report = validate("cuda", "nvidia", fake_runner, check_engines=False)
        assert _messages(report) == ["CUDA runtime check failed"]

    @pytest.mark.unit
    def test_cuda_missing_tool_and_variant(self, fake_runner):
        """Missing tool and unset variant are both reported."""
        report = validate("cuda", None, fake_runner, check_engines=False)
        assert _messages(report) == [
            "nvidia-smi not found",
            "CUDA not available in variant: not set",
        ]

    @pytest.mark.unit
    def test_rocm_passes(self, amd_runner):
        """rocm-smi product listing on a rocm image passes."""
        report = validate("rocm", "rocm", amd_runner, check_engines=False)
        assert report.passed
        assert _messages(report) == ["ROCm runtime available"]

    @pytest.mark.unit
    def test_rocm_query_failure(self, fake_runner):
        """A failing product query fails."""
        fake_runner.script("rocm-smi", "--showproductname", returncode=2)
        report = validate("rocm", "all", fake_runner, check_engines=False)
        assert _messages(report) == ["ROCm runtime check failed"]

    @pytest.mark.unit
    def test_vulkan_device_count(self, nvidia_runner):
        """Device count and names come from vulkaninfo."""
        report = validate("vulkan", "vulkan", nvidia_runner, check_engines=False)
        check = report.backend_checks[0]
        assert check.message == "Vulkan runtime available with 2 device(s)"
        assert "deviceName = NVIDIA GeForce RTX 4090" in check.details

    @pytest.mark.unit
    def test_vulkan_without_devices_fails(self, fake_runner):
        """A runtime with no devices fails."""
        fake_runner.script("vulkaninfo", "--summary", stdout=VULKAN_SUMMARY_NO_DEVICES)
        report = validate("vulkan", "vulkan", fake_runner, check_engines=False)
        assert _messages(report) == ["No Vulkan devices found"]
        assert not report.passed

    @pytest.mark.unit
    def test_vulkan_missing(self, fake_runner):
        """Missing vulkaninfo fails."""
        report = validate("vulkan", "vulkan", fake_runner, check_engines=False)
        assert _messages(report) == ["vulkaninfo not found"]

    @pytest.mark.unit
    def test_cpu(self, fake_runner):
        """CPU mode always passes."""
        report = validate("cpu", None, fake_runner, check_engines=False)
        assert report.passed
        assert _messages(report) == ["CPU mode (no GPU validation required)"]

    @pytest.mark.unit
    def test_unknown_backend(self, fake_runner):
        """Unknown backends fail with a single check."""
        report = validate("tpu", "all", fake_runner, check_engines=False)
        assert report.backend is None
        assert _messages(report) == ["Unknown backend: tpu"]
        assert report.exit_code == 1

    @pytest.mark.unit
    def test_default_backend_is_vulkan(self, fake_runner):
        """Without GPU_BACKEND the vulkan branch runs."""
        assert validate(runner=fake_runner, check_engines=False).backend is Backend.VULKAN

    @pytest.mark.unit
    def test_backend_from_environment(self, fake_runner, monkeypatch):
        """GPU_BACKEND picks the branch."""
        monkeypatch.setenv("GPU_BACKEND", "cpu")
        assert validate(runner=fake_runner, check_engines=False).backend is Backend.CPU

    @pytest.mark.unit
    def test_auto_resolves_first(self, nvidia_runner):
        """auto is resolved through backend selection before validating."""
        report = validate("auto", "nvidia", nvidia_runner, check_engines=False)
        assert report.backend is Backend.CUDA
        assert report.auto_selected
        assert "Validating backend: cuda (auto-selected)" in report.render()


# =============================================================================
# Engine Checks
# =============================================================================


class TestEngineChecks:
    """Tests for inference engine validation."""

    @pytest.mark.unit
    def test_required_engine_missing_fails(self):
        """A missing required engine fails."""
        check = engine_check(EngineStatus(name="Ollama", installed=False, required=True))
        assert check.status is CheckStatus.FAIL
        assert check.message == "Ollama: not found"

    @pytest.mark.unit
    def test_optional_engine_missing_warns(self):
        """Missing optional engines only warn, with their hint."""
        check = engine_check(
            EngineStatus(name="llama.cpp", installed=False, hint="check /opt/ai-base/bin/")
        )
        assert check.status is CheckStatus.WARN
        assert check.message == "llama.cpp: not found (check /opt/ai-base/bin/)"

    @pytest.mark.unit
    def test_installed_engines(self, engines_runner):
        """Installed engines pass, Ollama shows its version."""
        report = validate("cpu", None, engines_runner)
        assert [c.message for c in report.engine_checks] == [
            "Ollama: 0.5.7",
            "llama.cpp: installed",
            "llm-d: installed",
            "EXO: installed",
        ]
        assert report.passed

    @pytest.mark.unit
    def test_missing_ollama_fails_validation(self, fake_runner):
        """CPU mode without Ollama fails overall."""
        report = validate("cpu", None, fake_runner)
        assert not report.passed
        statuses = [c.status for c in report.engine_checks]
        assert statuses == [
            CheckStatus.FAIL,
            CheckStatus.WARN,
            CheckStatus.WARN,
            CheckStatus.WARN,
        ]

    @pytest.mark.unit
    def test_only_optional_missing_passes(self, fake_runner):
        """Warnings never fail validation."""
        fake_runner.install("ollama")
        assert validate("cpu", None, fake_runner).passed


# =============================================================================
# Report
# =============================================================================


class TestValidationReport:
    """Tests for aggregation and rendering."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "statuses,passed",
        [
            ([CheckStatus.PASS], True),
            ([CheckStatus.PASS, CheckStatus.WARN], True),
            ([CheckStatus.PASS, CheckStatus.FAIL], False),
            ([CheckStatus.WARN, CheckStatus.FAIL, CheckStatus.PASS], False),
        ],
    )
    def test_passed_iff_no_failure(self, statuses, passed):
        """Exit code is 0 exactly when no check failed."""
        report = ValidationReport(
            requested="cpu",
            backend=Backend.CPU,
            variant_value=None,
            backend_checks=[CheckResult(status, "check") for status in statuses],
        )
        assert report.passed is passed
        assert report.exit_code == (0 if passed else 1)

    @pytest.mark.unit
    def test_render_sections(self, nvidia_runner):
        """Rendered report has every section in order."""
        nvidia_runner.install("ollama")
        text = validate("cuda", "nvidia", nvidia_runner).render()
        sections = [
            "=== GPU Validation ===",
            "Validating backend: cuda",
            "Checking CUDA availability...",
            "✓ CUDA runtime available",
            "  NVIDIA GeForce RTX 4090",
            "=== Inference Engine Validation ===",
            "⚠ EXO: not found",
            "=== Validation: PASSED ===",
        ]
        positions = [text.index(s) for s in sections]
        assert positions == sorted(positions)

    @pytest.mark.unit
    def test_render_failed(self, fake_runner):
        """Failures are marked and the verdict is FAILED."""
        text = validate("rocm", "vulkan", fake_runner, check_engines=False).render()
        assert "✗ rocm-smi not found" in text
        assert "✗ ROCm not available in variant: vulkan" in text
        assert "=== Validation: FAILED ===" in text
        assert "Inference Engine Validation" not in text

    @pytest.mark.unit
    def test_cpu_has_no_checking_line(self, fake_runner):
        """CPU mode does not announce a runtime check."""
        text = validate("cpu", None, fake_runner, check_engines=False).render()
        assert "Checking" not in text

    @pytest.mark.unit
    def test_to_dict(self, fake_runner):
        """JSON form carries verdict and checks."""
        data = validate("tpu", None, fake_runner, check_engines=False).to_dict()
        assert data["passed"] is False
        assert data["backend"] is None
        assert data["backend_checks"] == [
            {"status": "fail", "message": "Unknown backend: tpu", "details": []}
        ]
