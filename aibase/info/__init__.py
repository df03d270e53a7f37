"""Container information summary for ai-base."""

from .lib import BANNER, UTILITY_COMMANDS, InfoReport, collect_info, read_os_version

__all__ = [
    "BANNER",
    "InfoReport",
    "UTILITY_COMMANDS",
    "collect_info",
    "read_os_version",
]
