"""External tool probing for ai-base.

Example:
    >>> from aibase.probe import ToolRunner
    >>> runner = ToolRunner()
    >>> runner.run(["vulkaninfo", "--summary"]).lines("deviceName")
"""

from .lib import (
    EXIT_NOT_EXECUTABLE,
    EXIT_NOT_FOUND,
    ModuleInfo,
    ProbeResult,
    ToolRunner,
)

__all__ = [
    "EXIT_NOT_EXECUTABLE",
    "EXIT_NOT_FOUND",
    "ModuleInfo",
    "ProbeResult",
    "ToolRunner",
]
