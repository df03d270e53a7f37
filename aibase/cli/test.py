"""Tests for the ai-base command-line entry points."""

import json

import pytest

from conftest import LSPCI_AMD

from .lib import (
    detect_gpu_main,
    handle_env_command,
    handle_info_command,
    handle_select_command,
    handle_validate_command,
    main,
    select_backend_main,
)


@pytest.fixture
def host(monkeypatch, fake_runner):
    """Route every CLI probe through the scripted runner."""
    monkeypatch.setattr("aibase.cli.lib.ToolRunner", lambda: fake_runner)
    return fake_runner


# =============================================================================
# detect-gpu
# =============================================================================


class TestDetectCommand:
    """Tests for detect-gpu."""

    @pytest.mark.unit
    def test_no_gpu_exits_zero(self, host, capsys):
        """A bare host is a normal outcome."""
        assert detect_gpu_main([]) == 0
        out = capsys.readouterr().out
        assert "⚠ No GPU detected or no drivers available" in out

    @pytest.mark.unit
    def test_partial_gpu_exits_zero(self, host, capsys):
        """Hardware without its runtime still exits 0."""
        host.script("lspci", stdout=LSPCI_AMD)
        assert detect_gpu_main(["--variant", "rocm"]) == 0
        assert "AMD GPU detected but ROCm not available" in capsys.readouterr().out

    @pytest.mark.unit
    def test_json(self, host, nvidia_runner, capsys, monkeypatch):
        """--json prints the report as JSON."""
        monkeypatch.setenv("GPU_VARIANT", "nvidia")
        assert detect_gpu_main(["--json"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["recommendation"]["backend"] == "cuda"
        assert data["variant"]["value"] == "nvidia"


# =============================================================================
# select-backend
# =============================================================================


class TestSelectCommand:
    """Tests for select-backend."""

    @pytest.mark.unit
    def test_auto_without_tools_is_cpu(self, host, capsys):
        """auto with nothing on PATH resolves to cpu and exits 0."""
        assert select_backend_main(["auto"]) == 0
        out = capsys.readouterr().out
        assert "Auto-detecting GPU backend..." in out
        assert "Warning: No GPU detected, using CPU mode" in out
        assert "GPU_BACKEND: cpu" in out

    @pytest.mark.unit
    def test_auto_from_unset_environment(self, host, capsys):
        """Unset GPU_BACKEND means auto."""
        assert handle_select_command([]) == 0
        assert "GPU_BACKEND: cpu" in capsys.readouterr().out

    @pytest.mark.unit
    def test_unknown_backend(self, host, capsys, monkeypatch):
        """Unknown values print valid options and exit 1."""
        monkeypatch.setenv("GPU_BACKEND", "tpu")
        assert handle_select_command([]) == 1
        out = capsys.readouterr().out
        assert "Error: Unknown backend 'tpu'" in out
        assert "Valid options: cuda, rocm, vulkan, cpu, auto" in out

    @pytest.mark.unit
    def test_export(self, host, capsys):
        """--export prints only eval-able lines."""
        assert handle_select_command(["cuda", "--export"]) == 0
        lines = capsys.readouterr().out.strip().splitlines()
        assert lines[0] == "export GPU_BACKEND=cuda"
        assert "export CUDA_VISIBLE_DEVICES=0" in lines
        assert all(line.startswith("export ") for line in lines)

    @pytest.mark.unit
    def test_json(self, host, capsys):
        """--json reports the resolved backend."""
        assert handle_select_command(["vulkan", "--json"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["backend"] == "vulkan"
        assert data["exports"]["VK_LAYER_PATH"] == "/usr/share/vulkan/explicit_layer.d"

    @pytest.mark.unit
    def test_exec(self, host, monkeypatch):
        """--exec replaces the process under the configured environment."""
        calls = []
        monkeypatch.setattr(
            "aibase.cli.lib.os.execvpe",
            lambda file, args, env: calls.append((file, args, env)),
        )
        handle_select_command(["rocm", "--exec", "ollama", "serve"])
        file, args, env = calls[0]
        assert (file, args) == ("ollama", ["ollama", "serve"])
        assert env["GPU_BACKEND"] == "rocm"
        assert env["HSA_OVERRIDE_GFX_VERSION"] == "10.3.0"

    @pytest.mark.unit
    def test_exec_missing_command(self, host, monkeypatch):
        """A missing executable exits 127."""

        def missing(file, args, env):
            raise FileNotFoundError(file)

        monkeypatch.setattr("aibase.cli.lib.os.execvpe", missing)
        assert handle_select_command(["cpu", "--exec", "no-such-tool"]) == 127


# =============================================================================
# validate-gpu
# =============================================================================


class TestValidateCommand:
    """Tests for validate-gpu exit codes."""

    @pytest.mark.unit
    def test_cpu_with_ollama_passes(self, host, capsys):
        """All checks passing exits 0."""
        host.install("ollama")
        assert handle_validate_command(["--backend", "cpu"]) == 0
        assert "=== Validation: PASSED ===" in capsys.readouterr().out

    @pytest.mark.unit
    def test_failed_check_exits_one(self, host, capsys):
        """Any failed check exits 1."""
        assert handle_validate_command(["--backend", "cuda", "--skip-engines"]) == 1
        assert "=== Validation: FAILED ===" in capsys.readouterr().out

    @pytest.mark.unit
    def test_skip_engines(self, host, capsys):
        """Engine checks can be skipped."""
        assert handle_validate_command(["--backend", "cpu", "--skip-engines"]) == 0
        assert "Inference Engine Validation" not in capsys.readouterr().out

    @pytest.mark.unit
    def test_json(self, host, capsys, monkeypatch):
        """--json mirrors the exit code."""
        monkeypatch.setenv("GPU_BACKEND", "tpu")
        assert handle_validate_command(["--json", "--skip-engines"]) == 1
        assert json.loads(capsys.readouterr().out)["passed"] is False


# =============================================================================
# gpu-info / env / umbrella
# =============================================================================


class TestOtherCommands:
    """Tests for gpu-info, env and the umbrella command."""

    @pytest.mark.unit
    def test_info(self, host, capsys):
        """gpu-info prints without the banner on request."""
        assert handle_info_command(["--no-banner", "--no-server"]) == 0
        out = capsys.readouterr().out
        assert "Container Information" in out
        assert "Multi-Backend AI Inference Base Layer" not in out

    @pytest.mark.unit
    def test_info_json(self, host, capsys):
        """gpu-info --json is machine readable."""
        assert handle_info_command(["--json", "--no-server"]) == 0
        assert json.loads(capsys.readouterr().out)["variant"] is None

    @pytest.mark.unit
    def test_env(self, capsys, monkeypatch):
        """env shows current values with defaults."""
        monkeypatch.setenv("GPU_VARIANT", "rocm")
        assert handle_env_command(["--category", "gpu"]) == 0
        out = capsys.readouterr().out
        assert "  GPU_VARIANT=rocm" in out
        assert "(default: 10.3.0)" in out
        assert "OLLAMA_HOST" not in out

    @pytest.mark.unit
    def test_env_json(self, capsys):
        """env --json lists every variable."""
        assert handle_env_command(["--json"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["AI_BASE_BIN_DIR"]["value"] == "/opt/ai-base/bin"
        assert data["GPU_BACKEND"]["value"] is None

    @pytest.mark.unit
    def test_main_dispatch(self, host, capsys):
        """ai-base select dispatches to select-backend."""
        assert main(["select", "cpu"]) == 0
        assert "CPU-only mode (no GPU acceleration)" in capsys.readouterr().out

    @pytest.mark.unit
    def test_main_help(self, capsys):
        """No command shows help and exits 1."""
        assert main([]) == 1
        assert "Usage: ai-base {command} [args]" in capsys.readouterr().out

    @pytest.mark.unit
    def test_main_unknown(self, capsys):
        """Unknown commands exit 1."""
        assert main(["frobnicate"]) == 1

    @pytest.mark.unit
    def test_main_images_interrupted(self, monkeypatch):
        """Ctrl-C during an image build exits 130."""

        def interrupted_call(args, cwd=None, env=None):
            raise KeyboardInterrupt

        monkeypatch.setattr("aibase.images.lib.subprocess.call", interrupted_call)
        assert main(["images", "build", "vulkan"]) == 130

    @pytest.mark.unit
    def test_entry_point_interrupted(self, monkeypatch):
        """Ctrl-C outside docker commands also exits 130."""

        def interrupted(argv):
            raise KeyboardInterrupt

        monkeypatch.setattr("aibase.cli.lib.handle_detect_command", interrupted)
        assert detect_gpu_main([]) == 130
