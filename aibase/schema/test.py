"""Tests for backend and variant vocabulary."""

import pytest

from .lib import (
    Backend,
    UnknownBackendError,
    Variant,
    backend_choices,
    parse_backend,
    parse_variant,
    variant_supports,
)


class TestParseBackend:
    """Tests for GPU_BACKEND parsing."""

    @pytest.mark.unit
    @pytest.mark.parametrize("value", ["cuda", "rocm", "vulkan", "cpu"])
    def test_known_backends(self, value):
        """Every supported backend parses to its enum member."""
        assert parse_backend(value) is Backend(value)

    @pytest.mark.unit
    def test_case_and_whitespace_ignored(self):
        """Values are normalized before lookup."""
        assert parse_backend("  CUDA ") is Backend.CUDA

    @pytest.mark.unit
    def test_auto_returns_none(self):
        """auto means the caller must pick."""
        assert parse_backend("auto") is None

    @pytest.mark.unit
    def test_unknown_raises(self):
        """Unknown names raise with the list of valid options."""
        with pytest.raises(UnknownBackendError, match="Unknown backend 'metal'") as exc:
            parse_backend("metal")
        assert exc.value.valid_options == "cuda, rocm, vulkan, cpu, auto"

    @pytest.mark.unit
    def test_unknown_is_value_error(self):
        """Callers may catch ValueError."""
        with pytest.raises(ValueError):
            parse_backend("")

    @pytest.mark.unit
    def test_choices(self):
        """auto is listed last."""
        assert backend_choices() == ["cuda", "rocm", "vulkan", "cpu", "auto"]


class TestVariants:
    """Tests for GPU_VARIANT parsing and support matrix."""

    @pytest.mark.unit
    def test_parse_known(self):
        """Known variants parse case-insensitively."""
        assert parse_variant("nvidia") is Variant.NVIDIA
        assert parse_variant("ALL") is Variant.ALL

    @pytest.mark.unit
    def test_parse_unset_or_unknown(self):
        """Unset and unknown values both return None."""
        assert parse_variant(None) is None
        assert parse_variant("") is None
        assert parse_variant("latest") is None

    @pytest.mark.unit
    def test_key(self):
        """key is the GPU_VARIANT spelling."""
        assert Variant.ROCM.key == "rocm"

    @pytest.mark.unit
    def test_backend_labels(self):
        """Labels list the optimized backend before the fallback."""
        assert Variant.NVIDIA.backend_labels == [
            "CUDA (NVIDIA optimized)",
            "Vulkan (fallback)",
        ]
        assert Variant.ALL.backend_labels == [
            "Vulkan (universal)",
            "CUDA (NVIDIA)",
            "ROCm (AMD)",
        ]

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "variant,backend,expected",
        [
            (Variant.NVIDIA, Backend.CUDA, True),
            (Variant.ALL, Backend.CUDA, True),
            (Variant.ROCM, Backend.CUDA, False),
            (Variant.VULKAN, Backend.ROCM, False),
            (Variant.ROCM, Backend.ROCM, True),
            (Variant.VULKAN, Backend.VULKAN, True),
            (None, Backend.VULKAN, False),
            (None, Backend.CPU, True),
        ],
    )
    def test_variant_supports(self, variant, backend, expected):
        """Support matrix matches the image build layout."""
        assert variant_supports(variant, backend) is expected
