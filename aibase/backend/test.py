"""Tests for backend selection module."""

import shlex

import pytest

from aibase.schema import Backend, UnknownBackendError, Variant

from .lib import auto_select, configure_environment, select_backend


class TestAutoSelect:
    """Tests for auto-detection over installed tools."""

    @pytest.mark.unit
    def test_no_tools_resolves_to_cpu(self, fake_runner):
        """A bare host resolves to CPU even for the all-backends image."""
        for variant in (None, Variant.VULKAN, Variant.NVIDIA, Variant.ROCM, Variant.ALL):
            backend, message = auto_select(fake_runner, variant)
            assert backend is Backend.CPU
            assert message == "Warning: No GPU detected, using CPU mode"

    @pytest.mark.unit
    def test_cuda_requires_variant(self, fake_runner):
        """nvidia-smi alone is not enough on a Vulkan-only image."""
        fake_runner.install("nvidia-smi").install("vulkaninfo")
        assert auto_select(fake_runner, Variant.NVIDIA)[0] is Backend.CUDA
        assert auto_select(fake_runner, Variant.ALL)[0] is Backend.CUDA
        assert auto_select(fake_runner, Variant.VULKAN)[0] is Backend.VULKAN

    @pytest.mark.unit
    def test_rocm(self, fake_runner):
        """rocm-smi on a ROCm image selects rocm."""
        fake_runner.install("rocm-smi")
        backend, message = auto_select(fake_runner, Variant.ROCM)
        assert backend is Backend.ROCM
        assert message == "Selected: ROCm (AMD GPU detected)"

    @pytest.mark.unit
    def test_cuda_wins_over_rocm(self, fake_runner):
        """NVIDIA is checked before AMD."""
        fake_runner.install("nvidia-smi").install("rocm-smi")
        assert auto_select(fake_runner, Variant.ALL)[0] is Backend.CUDA


class TestConfigureEnvironment:
    """Tests for per-backend environment exports."""

    @pytest.mark.unit
    def test_cuda(self):
        """CUDA prepends its directories and defaults the device list."""
        env = configure_environment(
            Backend.CUDA, {"LD_LIBRARY_PATH": "/usr/lib", "PATH": "/usr/bin"}
        )
        assert env == {
            "GPU_BACKEND": "cuda",
            "LD_LIBRARY_PATH": "/usr/local/cuda/lib64:/usr/lib",
            "PATH": "/usr/local/cuda/bin:/usr/bin",
            "CUDA_VISIBLE_DEVICES": "0",
        }

    @pytest.mark.unit
    def test_cuda_keeps_visible_devices(self):
        """An existing device list is preserved."""
        env = configure_environment(Backend.CUDA, {"CUDA_VISIBLE_DEVICES": "1,2"})
        assert env["CUDA_VISIBLE_DEVICES"] == "1,2"

    @pytest.mark.unit
    def test_rocm(self):
        """ROCm exports its gfx override."""
        env = configure_environment(Backend.ROCM, {"PATH": "/bin"})
        assert env["LD_LIBRARY_PATH"] == "/opt/rocm/lib"
        assert env["PATH"] == "/opt/rocm/bin:/bin"
        assert env["HSA_OVERRIDE_GFX_VERSION"] == "10.3.0"

    @pytest.mark.unit
    def test_rocm_gfx_override_from_config(self, monkeypatch):
        """The default gfx override is configurable."""
        monkeypatch.setenv("HSA_OVERRIDE_GFX_VERSION", "11.0.0")
        env = configure_environment(Backend.ROCM, {})
        assert env["HSA_OVERRIDE_GFX_VERSION"] == "11.0.0"

    @pytest.mark.unit
    def test_vulkan(self):
        """Vulkan sets the layer path."""
        env = configure_environment(Backend.VULKAN, {"LD_LIBRARY_PATH": "/a"})
        assert env["VK_LAYER_PATH"] == "/usr/share/vulkan/explicit_layer.d"
        assert env["LD_LIBRARY_PATH"] == "/usr/lib/x86_64-linux-gnu:/a"

    @pytest.mark.unit
    def test_cpu(self):
        """CPU mode only exports the backend name."""
        assert configure_environment(Backend.CPU, {}) == {"GPU_BACKEND": "cpu"}


class TestSelectBackend:
    """Tests for the full selection flow."""

    @pytest.mark.unit
    def test_defaults_to_auto(self, fake_runner):
        """Unset GPU_BACKEND means auto."""
        selection = select_backend(runner=fake_runner, environ={})
        assert selection.requested == "auto"
        assert selection.auto_selected
        assert selection.backend is Backend.CPU
        assert selection.messages == [
            "Auto-detecting GPU backend...",
            "Warning: No GPU detected, using CPU mode",
            "CPU-only mode (no GPU acceleration)",
        ]

    @pytest.mark.unit
    def test_reads_environment(self, monkeypatch, fake_runner):
        """GPU_BACKEND and GPU_VARIANT come from the environment."""
        monkeypatch.setenv("GPU_BACKEND", "vulkan")
        monkeypatch.setenv("GPU_VARIANT", "rocm")
        selection = select_backend(runner=fake_runner, environ={})
        assert selection.backend is Backend.VULKAN
        assert selection.variant_value == "rocm"
        assert not selection.auto_selected
        assert fake_runner.calls == []

    @pytest.mark.unit
    def test_explicit_backend_skips_detection(self, fake_runner):
        """An explicit backend is trusted without probing."""
        selection = select_backend("cuda", "nvidia", fake_runner, environ={})
        assert selection.backend is Backend.CUDA
        assert selection.messages == ["CUDA environment configured"]

    @pytest.mark.unit
    def test_unknown_backend(self, fake_runner):
        """Unknown names raise with valid options."""
        with pytest.raises(UnknownBackendError) as exc:
            select_backend("opencl", runner=fake_runner)
        assert exc.value.valid_options == "cuda, rocm, vulkan, cpu, auto"

    @pytest.mark.unit
    def test_render(self, fake_runner):
        """Rendered output ends with the configuration block."""
        selection = select_backend(
            "vulkan", None, fake_runner, environ={"LD_LIBRARY_PATH": "/x"}
        )
        text = selection.render()
        assert "=== Backend Configuration ===" in text
        assert "GPU_BACKEND: vulkan" in text
        assert "GPU_VARIANT: not set" in text
        assert "LD_LIBRARY_PATH: /usr/lib/x86_64-linux-gnu:/x" in text

    @pytest.mark.unit
    def test_shell_exports_are_quoted(self, fake_runner):
        """Export lines survive shell word splitting."""
        selection = select_backend(
            "cuda", "nvidia", fake_runner, environ={"PATH": "/my bin"}
        )
        lines = selection.shell_exports().splitlines()
        assert lines[0] == "export GPU_BACKEND=cuda"
        path_line = next(line for line in lines if line.startswith("export PATH="))
        assert shlex.split(path_line) == ["export", "PATH=/usr/local/cuda/bin:/my bin"]

    @pytest.mark.unit
    def test_apply(self, fake_runner):
        """apply merges exports over the given environment."""
        selection = select_backend("cpu", None, fake_runner, environ={})
        merged = selection.apply({"HOME": "/root", "GPU_BACKEND": "auto"})
        assert merged == {"HOME": "/root", "GPU_BACKEND": "cpu"}

    @pytest.mark.unit
    def test_to_dict(self, fake_runner):
        """JSON form includes exports."""
        data = select_backend("auto", "all", fake_runner, environ={}).to_dict()
        assert data["backend"] == "cpu"
        assert data["auto_selected"] is True
        assert data["exports"] == {"GPU_BACKEND": "cpu"}
