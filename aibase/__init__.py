"""ai-base: GPU backend tooling for the multi-backend AI inference base image."""

from aibase.backend import BackendSelection, select_backend
from aibase.gpu import DetectionReport, run_detection
from aibase.schema import Backend, UnknownBackendError, Variant
from aibase.validate import ValidationReport, validate

__version__ = "0.1.0"

__all__ = [
    # Vocabulary
    "Backend",
    "Variant",
    "UnknownBackendError",
    # Detection
    "DetectionReport",
    "run_detection",
    # Selection
    "BackendSelection",
    "select_backend",
    # Validation
    "ValidationReport",
    "validate",
]
