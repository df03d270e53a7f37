"""Command-line interface for ai-base."""

from .lib import (
    COMMANDS,
    detect_gpu_main,
    gpu_info_main,
    handle_detect_command,
    handle_env_command,
    handle_info_command,
    handle_select_command,
    handle_validate_command,
    main,
    select_backend_main,
    show_help,
    validate_gpu_main,
)

__all__ = [
    "COMMANDS",
    "detect_gpu_main",
    "gpu_info_main",
    "handle_detect_command",
    "handle_env_command",
    "handle_info_command",
    "handle_select_command",
    "handle_validate_command",
    "main",
    "select_backend_main",
    "show_help",
    "validate_gpu_main",
]
