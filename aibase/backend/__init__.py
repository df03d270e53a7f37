"""GPU backend selection for ai-base.

Example:
    >>> from aibase.backend import select_backend
    >>> selection = select_backend("auto", "nvidia")
    >>> print(selection.shell_exports())
"""

from .lib import (
    BackendSelection,
    auto_select,
    configure_environment,
    select_backend,
)

__all__ = [
    "BackendSelection",
    "auto_select",
    "configure_environment",
    "select_backend",
]
