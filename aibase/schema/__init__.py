"""Backend and image variant definitions."""

from .lib import (
    AUTO,
    Backend,
    UnknownBackendError,
    Variant,
    VariantInfo,
    backend_choices,
    parse_backend,
    parse_variant,
    variant_supports,
)

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
