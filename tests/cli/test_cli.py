"""Tests for the ai-base CLI run as a subprocess."""

import json
import os
import subprocess
import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[2]


def _run(*args: str, env: dict[str, str] | None = None) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, ".", *args],
        capture_output=True,
        text=True,
        cwd=REPO_ROOT,
        env=env,
        timeout=60,
    )


@pytest.fixture
def no_gpu_env(tmp_path) -> dict[str, str]:
    """Environment with an empty PATH so no GPU tool can be found."""
    env = {k: v for k, v in os.environ.items() if not k.startswith(("GPU_", "OLLAMA_"))}
    env["PATH"] = str(tmp_path)
    return env


@pytest.mark.integration
def test_help():
    """Running without a command shows usage and exits 1."""
    result = _run()
    assert result.returncode == 1
    assert "Usage: ai-base {command} [args]" in result.stdout


@pytest.mark.integration
def test_detect_never_fails():
    """detect exits 0 whatever hardware the host has."""
    result = _run("detect")
    assert result.returncode == 0
    assert "=== GPU Detection ===" in result.stdout
    assert "=== Container Variant ===" in result.stdout


@pytest.mark.integration
def test_detect_json_without_tools(no_gpu_env):
    """Without any tools detection recommends CPU."""
    result = _run("detect", "--json", env=no_gpu_env)
    assert result.returncode == 0
    assert json.loads(result.stdout)["recommendation"]["backend"] == "cpu"


@pytest.mark.integration
def test_select_auto_without_tools(no_gpu_env):
    """auto with no GPU tools on PATH resolves to cpu and exits 0."""
    result = _run("select", "auto", env=no_gpu_env)
    assert result.returncode == 0
    assert "GPU_BACKEND: cpu" in result.stdout


@pytest.mark.integration
def test_select_export_is_eval_safe(no_gpu_env):
    """--export keeps logs off stdout."""
    result = _run("select", "auto", "--export", env=no_gpu_env)
    assert result.returncode == 0
    assert result.stdout.splitlines()[0] == "export GPU_BACKEND=cpu"
    assert "No GPU tools found" in result.stderr


@pytest.mark.integration
def test_select_unknown_backend(no_gpu_env):
    """Unknown backends exit 1 with valid options."""
    result = _run("select", "tpu", env=no_gpu_env)
    assert result.returncode == 1
    assert "Valid options: cuda, rocm, vulkan, cpu, auto" in result.stdout


@pytest.mark.integration
@pytest.mark.parametrize("backend", ["cuda", "rocm", "vulkan", "cpu"])
def test_validate_runs_known_branch(backend, no_gpu_env):
    """Known backends never hit the unknown-backend branch."""
    result = _run("validate", "--backend", backend, "--skip-engines", env=no_gpu_env)
    assert "Unknown backend" not in result.stdout
    assert f"Validating backend: {backend}" in result.stdout
    assert result.returncode == (0 if backend == "cpu" else 1)


@pytest.mark.integration
def test_images_dry_run():
    """images build --dry-run logs the docker commands."""
    result = _run("images", "--dry-run", "build", "vulkan")
    assert result.returncode == 0
    assert "docker build --build-arg GPU_VARIANT=vulkan" in result.stderr
