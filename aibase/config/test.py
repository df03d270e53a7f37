"""Tests for configuration management."""

from pathlib import Path

import pytest

from .lib import (
    EnvConfig,
    EnvVar,
    get_environment,
    get_environment_info,
    get_model_paths,
    get_probe_timeout,
    get_registry_prefix,
    list_environment_variables,
)

# =============================================================================
# Tests for get_environment (main interface)
# =============================================================================


class TestGetEnvironment:
    """Tests for the unified get_environment interface."""

    @pytest.mark.unit
    def test_returns_default_when_not_set(self, monkeypatch):
        """Returns default value when env var is not set."""
        monkeypatch.delenv("AI_BASE_PROBE_TIMEOUT", raising=False)
        assert get_environment(EnvVar.AI_BASE_PROBE_TIMEOUT) == 10

    @pytest.mark.unit
    def test_override_takes_priority(self, monkeypatch):
        """Override parameter takes highest priority."""
        monkeypatch.setenv("AI_BASE_PROBE_TIMEOUT", "30")
        assert get_environment(EnvVar.AI_BASE_PROBE_TIMEOUT, override=2) == 2

    @pytest.mark.unit
    def test_env_var_overrides_default(self, monkeypatch):
        """Environment variable overrides default value."""
        monkeypatch.setenv("AI_BASE_PROBE_TIMEOUT", "25")
        result = get_environment(EnvVar.AI_BASE_PROBE_TIMEOUT)
        assert result == 25
        assert isinstance(result, int)

    @pytest.mark.unit
    def test_invalid_int_falls_back_to_default(self, monkeypatch):
        """Unparseable integers fall back to the default."""
        monkeypatch.setenv("AI_BASE_PROBE_TIMEOUT", "soon")
        assert get_environment(EnvVar.AI_BASE_PROBE_TIMEOUT) == 10

    @pytest.mark.unit
    def test_empty_string_counts_as_unset(self, monkeypatch):
        """Empty values behave like ${VAR:-default}."""
        monkeypatch.setenv("OLLAMA_MODELS", "")
        assert get_environment(EnvVar.OLLAMA_MODELS) == Path("/models/ollama")

    @pytest.mark.unit
    def test_path_type_conversion(self, monkeypatch):
        """Path variables are converted to Path objects."""
        monkeypatch.setenv("AI_BASE_BIN_DIR", "/srv/bin")
        result = get_environment(EnvVar.AI_BASE_BIN_DIR)
        assert result == Path("/srv/bin")

    @pytest.mark.unit
    def test_unset_variant_is_none(self, monkeypatch):
        """GPU_VARIANT has no default."""
        monkeypatch.delenv("GPU_VARIANT", raising=False)
        assert get_environment(EnvVar.GPU_VARIANT) is None

    @pytest.mark.unit
    def test_string_type(self, monkeypatch):
        """String type returns as-is."""
        monkeypatch.setenv("GPU_BACKEND", "rocm")
        result = get_environment(EnvVar.GPU_BACKEND)
        assert result == "rocm"


class TestIntrospection:
    """Tests for metadata and listing helpers."""

    @pytest.mark.unit
    def test_get_environment_info(self):
        """Info returns the EnvConfig for a variable."""
        info = get_environment_info(EnvVar.GPU_VARIANT)
        assert isinstance(info, EnvConfig)
        assert info.name == "GPU_VARIANT"
        assert info.category == "gpu"

    @pytest.mark.unit
    def test_every_member_name_matches_config(self):
        """Enum member names mirror the variable names."""
        for var in EnvVar:
            assert var.name == var.value.name

    @pytest.mark.unit
    def test_list_all(self):
        """No category lists every variable."""
        assert list_environment_variables() == list(EnvVar)

    @pytest.mark.unit
    def test_list_by_category(self):
        """Category filter only returns matching variables."""
        models = list_environment_variables("models")
        assert set(models) == {
            EnvVar.OLLAMA_MODELS,
            EnvVar.LLAMA_MODELS,
            EnvVar.EXO_MODELS,
        }


class TestConvenienceFunctions:
    """Tests for derived configuration helpers."""

    @pytest.mark.unit
    def test_model_paths_defaults(self, monkeypatch):
        """Model paths default to /models/<engine>."""
        for name in ("OLLAMA_MODELS", "LLAMA_MODELS", "EXO_MODELS"):
            monkeypatch.delenv(name, raising=False)
        paths = get_model_paths()
        assert paths == {
            "Ollama": Path("/models/ollama"),
            "llama.cpp": Path("/models/llama"),
            "EXO": Path("/models/exo"),
        }

    @pytest.mark.unit
    def test_probe_timeout_override(self):
        """Explicit timeout wins."""
        assert get_probe_timeout(3) == 3

    @pytest.mark.unit
    def test_registry_prefix(self, monkeypatch):
        """Registry prefix joins registry and org."""
        monkeypatch.setenv("DOCKER_REGISTRY", "registry.local:5000")
        monkeypatch.setenv("DOCKER_ORG", "lab")
        assert get_registry_prefix() == "registry.local:5000/lab"
