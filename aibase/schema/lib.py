"""Backend and variant vocabulary shared by every ai-base command.

Two axes describe a running container:
- Backend: the compute API used at runtime (cuda, rocm, vulkan, cpu).
- Variant: the image flavour, i.e. which backends were baked in at build time.

All parsing of `GPU_BACKEND` and `GPU_VARIANT` values routes through here.
"""

from dataclasses import dataclass
from enum import Enum

AUTO = "auto"


class UnknownBackendError(ValueError):
    """Raised when a backend name is not one of the supported values."""

    def __init__(self, value: str):
        super().__init__(f"Unknown backend '{value}'")
        self.value = value

    @property
    def valid_options(self) -> str:
        return ", ".join(backend_choices())


class Backend(str, Enum):
    """GPU compute backend selected at runtime."""

    CUDA = "cuda"
    ROCM = "rocm"
    VULKAN = "vulkan"
    CPU = "cpu"

    @property
    def label(self) -> str:
        return _BACKEND_LABELS[self]


_BACKEND_LABELS = {
    Backend.CUDA: "CUDA",
    Backend.ROCM: "ROCm",
    Backend.VULKAN: "Vulkan",
    Backend.CPU: "CPU",
}


@dataclass(frozen=True)
class VariantInfo:
    """Metadata for an image variant.

    Attributes:
        backends: Backends compiled into the image, in preference order,
            paired with the label shown to users.
        description: One-line description of the variant.
    """

    backends: tuple[tuple[Backend, str], ...]
    description: str


class Variant(Enum):
    """Value of `GPU_VARIANT` baked into each image flavour."""

    VULKAN = VariantInfo(
        backends=((Backend.VULKAN, "Vulkan (universal)"),),
        description="Universal GPU support via Vulkan",
    )
    NVIDIA = VariantInfo(
        backends=(
            (Backend.CUDA, "CUDA (NVIDIA optimized)"),
            (Backend.VULKAN, "Vulkan (fallback)"),
        ),
        description="NVIDIA GPU with CUDA",
    )
    ROCM = VariantInfo(
        backends=(
            (Backend.ROCM, "ROCm (AMD optimized)"),
            (Backend.VULKAN, "Vulkan (fallback)"),
        ),
        description="AMD GPU with ROCm",
    )
    ALL = VariantInfo(
        backends=(
            (Backend.VULKAN, "Vulkan (universal)"),
            (Backend.CUDA, "CUDA (NVIDIA)"),
            (Backend.ROCM, "ROCm (AMD)"),
        ),
        description="Multi-backend with CUDA and ROCm",
    )

    @property
    def key(self) -> str:
        """Value as written in GPU_VARIANT."""
        return self.name.lower()

    @property
    def backend_labels(self) -> list[str]:
        return [label for _, label in self.value.backends]


def backend_choices() -> list[str]:
    """Values accepted for GPU_BACKEND, including `auto`."""
    return [b.value for b in Backend] + [AUTO]


def parse_backend(value: str) -> Backend | None:
    """Parse a GPU_BACKEND value.

    Args:
        value: Raw value, case and surrounding whitespace are ignored.

    Returns:
        The Backend, or None when `auto` was requested.

    Raises:
        UnknownBackendError: If the value is not a known backend.
    """
    normalized = value.strip().lower()
    if normalized == AUTO:
        return None
    try:
        return Backend(normalized)
    except ValueError:
        raise UnknownBackendError(value) from None


def parse_variant(value: str | None) -> Variant | None:
    """Parse a GPU_VARIANT value.

    Unknown variants are not an error: containers built outside this tooling
    may carry any value, and commands report them as unknown.

    Returns:
        The Variant, or None when unset or unrecognized.
    """
    if not value:
        return None
    normalized = value.strip().upper()
    return Variant.__members__.get(normalized)


def variant_supports(variant: Variant | None, backend: Backend) -> bool:
    """Whether an image variant ships the given backend.

    CPU inference needs no GPU runtime, so every image supports it.
    """
    if backend is Backend.CPU:
        return True
    if variant is None:
        return False
    return any(b is backend for b, _ in variant.value.backends)


__all__ = [
    "AUTO",
    "Backend",
    "UnknownBackendError",
    "Variant",
    "VariantInfo",
    "backend_choices",
    "parse_backend",
    "parse_variant",
    "variant_supports",
]
