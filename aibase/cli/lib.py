"""Command-line entry points for ai-base.

Each container utility (`detect-gpu`, `gpu-info`, `validate-gpu`,
`select-backend`) is a console script with its own parser. The umbrella
`ai-base` command dispatches to the same handlers and adds `images` and
`env`.
"""

import argparse
import json
import os
import sys
from typing import Any, Callable

from dotenv import load_dotenv

from aibase.backend import select_backend
from aibase.config import (
    EnvVar,
    get_environment,
    get_environment_info,
    list_environment_variables,
)
from aibase.core import get_logger, setup_logging
from aibase.engines import probe_ollama_ports
from aibase.gpu import run_detection
from aibase.images import ollama_ports
from aibase.images.cli import handle_images_command
from aibase.info import collect_info
from aibase.probe import EXIT_NOT_EXECUTABLE, EXIT_NOT_FOUND, ToolRunner
from aibase.schema import UnknownBackendError, backend_choices
from aibase.validate import validate

# Load environment variables from .env file
load_dotenv()

logger = get_logger("cli")

ENV_CATEGORIES = ("gpu", "engine", "models", "image", "runtime")


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log diagnostics at DEBUG level"
    )
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")


def _configure_logging(args: argparse.Namespace) -> None:
    level = "DEBUG" if args.verbose else get_environment(EnvVar.AI_BASE_LOG_LEVEL)
    setup_logging(level)


def _print_json(data: dict[str, Any]) -> None:
    print(json.dumps(data, indent=2))


# =============================================================================
# detect-gpu
# =============================================================================


def handle_detect_command(argv: list[str]) -> int:
    """Detect GPUs and recommend a backend. Always exits 0."""
    parser = argparse.ArgumentParser(
        prog="detect-gpu",
        description="Detect GPU hardware and recommend a backend",
    )
    parser.add_argument(
        "--variant", help="Image variant to recommend for (default: GPU_VARIANT)"
    )
    _add_common_arguments(parser)
    args = parser.parse_args(argv)
    _configure_logging(args)

    variant = args.variant or get_environment(EnvVar.GPU_VARIANT)
    report = run_detection(variant, ToolRunner())
    if args.json:
        _print_json(report.to_dict())
    else:
        report.print_report()
    return 0


# =============================================================================
# gpu-info
# =============================================================================


def handle_info_command(argv: list[str]) -> int:
    """Show container, engine and GPU information."""
    parser = argparse.ArgumentParser(
        prog="gpu-info",
        description="Show GPU and inference engine information",
    )
    parser.add_argument(
        "--no-banner", action="store_true", help="Do not print the ASCII banner"
    )
    parser.add_argument(
        "--no-server",
        action="store_true",
        help="Do not query the Ollama server at OLLAMA_HOST",
    )
    parser.add_argument(
        "--ports",
        action="store_true",
        help="Also probe the per-variant Ollama ports (11434-11437)",
    )
    parser.add_argument(
        "--host", default="localhost", help="Host for --ports (default: localhost)"
    )
    _add_common_arguments(parser)
    args = parser.parse_args(argv)
    _configure_logging(args)

    report = collect_info(ToolRunner(), check_server=not args.no_server)
    servers = probe_ollama_ports(ollama_ports(), host=args.host) if args.ports else []

    if args.json:
        data = report.to_dict()
        if args.ports:
            data["ollama_ports"] = [
                {"variant": s.label, "url": s.url, "available": s.available, "version": s.version}
                for s in servers
            ]
        _print_json(data)
        return 0

    report.print_report(banner=not args.no_banner)
    if servers:
        print("Ollama Ports:")
        for status in servers:
            marker = "✓" if status.available else "✗"
            print(f"  {marker} {status.summary}")
        print()
    return 0


# =============================================================================
# validate-gpu
# =============================================================================


def handle_validate_command(argv: list[str]) -> int:
    """Validate the selected backend and engines. Exits 1 on any failure."""
    parser = argparse.ArgumentParser(
        prog="validate-gpu",
        description="Validate GPU availability and backend compatibility",
    )
    parser.add_argument(
        "--backend", help="Backend to validate (default: GPU_BACKEND, then vulkan)"
    )
    parser.add_argument("--variant", help="Image variant (default: GPU_VARIANT)")
    parser.add_argument(
        "--skip-engines",
        action="store_true",
        help="Skip inference engine checks",
    )
    _add_common_arguments(parser)
    args = parser.parse_args(argv)
    _configure_logging(args)

    report = validate(
        backend=args.backend,
        variant_value=args.variant,
        runner=ToolRunner(),
        check_engines=not args.skip_engines,
    )
    if args.json:
        _print_json(report.to_dict())
    else:
        report.print_report()
    return report.exit_code


# =============================================================================
# select-backend
# =============================================================================


def handle_select_command(argv: list[str]) -> int:
    """Resolve GPU_BACKEND and print, export or exec with its environment."""
    parser = argparse.ArgumentParser(
        prog="select-backend",
        description="Select and configure the GPU backend",
        epilog='Example: eval "$(select-backend --export)"',
    )
    parser.add_argument(
        "backend",
        nargs="?",
        help=f"Backend ({', '.join(backend_choices())}; default: GPU_BACKEND, then auto)",
    )
    parser.add_argument("--variant", help="Image variant (default: GPU_VARIANT)")
    parser.add_argument(
        "--export",
        action="store_true",
        help="Print only `export` lines for eval",
    )
    parser.add_argument(
        "--exec",
        dest="exec_command",
        nargs=argparse.REMAINDER,
        metavar="CMD",
        help="Run CMD with the configured environment",
    )
    _add_common_arguments(parser)
    args = parser.parse_args(argv)
    _configure_logging(args)

    try:
        selection = select_backend(args.backend, args.variant, ToolRunner())
    except UnknownBackendError as e:
        print(f"Error: {e}")
        print(f"Valid options: {e.valid_options}")
        return 1

    if args.exec_command is not None:
        if not args.exec_command:
            parser.error("--exec requires a command")
        env = selection.apply(os.environ)
        logger.debug(f"Executing {args.exec_command} with GPU_BACKEND={selection.backend.value}")
        try:
            os.execvpe(args.exec_command[0], args.exec_command, env)
        except FileNotFoundError:
            logger.error(f"Command not found: {args.exec_command[0]}")
            return EXIT_NOT_FOUND
        except OSError as e:
            logger.error(f"Failed to run {args.exec_command[0]}: {e}")
            return EXIT_NOT_EXECUTABLE

    if args.export:
        print(selection.shell_exports())
    elif args.json:
        _print_json(selection.to_dict())
    else:
        print(selection.render())
    return 0


# =============================================================================
# env
# =============================================================================


def handle_env_command(argv: list[str]) -> int:
    """List the environment variables ai-base reads."""
    parser = argparse.ArgumentParser(
        prog="ai-base env",
        description="Show ai-base environment variables",
    )
    parser.add_argument("--category", choices=ENV_CATEGORIES, help="Only this category")
    _add_common_arguments(parser)
    args = parser.parse_args(argv)
    _configure_logging(args)

    variables = list_environment_variables(args.category)
    if args.json:
        _print_json(
            {
                var.name: {
                    "value": _display(get_environment(var)),
                    "default": _display(get_environment_info(var).default),
                    "category": get_environment_info(var).category,
                    "description": get_environment_info(var).description,
                }
                for var in variables
            }
        )
        return 0

    for category in ENV_CATEGORIES:
        members = [v for v in variables if get_environment_info(v).category == category]
        if not members:
            continue
        print(f"=== {category} ===")
        for var in members:
            info = get_environment_info(var)
            value = get_environment(var)
            print(f"  {info.name}={_display(value) or ''}")
            print(f"      {info.description} (default: {_display(info.default) or 'not set'})")
        print()
    return 0


def _display(value: Any) -> str | None:
    return None if value is None else str(value)


# =============================================================================
# Entry Points
# =============================================================================


def _run(handler: Callable[[list[str]], int], argv: list[str] | None) -> int:
    try:
        return handler(sys.argv[1:] if argv is None else argv)
    except KeyboardInterrupt:
        return 130


def detect_gpu_main(argv: list[str] | None = None) -> int:
    return _run(handle_detect_command, argv)


def gpu_info_main(argv: list[str] | None = None) -> int:
    return _run(handle_info_command, argv)


def validate_gpu_main(argv: list[str] | None = None) -> int:
    return _run(handle_validate_command, argv)


def select_backend_main(argv: list[str] | None = None) -> int:
    return _run(handle_select_command, argv)


COMMANDS: dict[str, Callable[[list[str]], int]] = {
    "detect": handle_detect_command,
    "info": handle_info_command,
    "validate": handle_validate_command,
    "select": handle_select_command,
    "images": handle_images_command,
    "env": handle_env_command,
}


def show_help() -> None:
    """Display CLI help message."""
    print("Usage: ai-base {command} [args]")
    print("\n=== Container Utilities ===")
    print("  detect     Detect GPU hardware (detect-gpu)")
    print("  info       Show GPU and engine information (gpu-info)")
    print("  validate   Validate GPU setup (validate-gpu)")
    print("  select     Select GPU backend (select-backend)")
    print("\n=== Images ===")
    print("  images     Build, push and test image variants")
    print("\n=== Configuration ===")
    print("  env        Show environment variables")
    print("\nExamples:")
    print("  ai-base detect --json")
    print("  ai-base validate --backend cuda --variant nvidia")
    print('  eval "$(ai-base select auto --export)"')
    print("  ai-base select cuda --exec ollama serve")
    print("  ai-base images build all --dry-run")
    print("  ai-base images test vulkan")


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the ai-base CLI."""
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        show_help()
        return 1

    command, rest_args = argv[0], argv[1:]

    if command in ("-h", "--help"):
        show_help()
        return 0

    if command in COMMANDS:
        if command == "images":
            setup_logging(get_environment(EnvVar.AI_BASE_LOG_LEVEL))
        return _run(COMMANDS[command], rest_args)

    setup_logging()
    logger.error(f"Unknown command: {command}")
    show_help()
    return 1


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
