"""Image management CLI for ai-base.

This module provides the `ai-base images` command group for building,
pushing, smoke-testing and removing the ai-base image variants. It wraps
`docker` so tags, build args and Dockerfile selection stay consistent.
"""

import argparse
from pathlib import Path

from aibase.core import get_logger

from .lib import (
    BUILD_SETS,
    NATIVE_IMAGES,
    ImageVariant,
    UnknownImageError,
    build_command,
    clean_commands,
    list_images,
    local_tag,
    push_command,
    read_version,
    registry_tag,
    render_info,
    resolve_images,
    run_sequence,
    smoke_test_commands,
    version_string,
)

logger = get_logger("images")


def _resolve(names: list[str]) -> list[ImageVariant] | None:
    try:
        return resolve_images(names) if names else list(NATIVE_IMAGES)
    except UnknownImageError as e:
        logger.error(f"{e}. Valid options: {e.valid_options}")
        return None


def cmd_build(args: argparse.Namespace) -> int:
    """Handle `images build`."""
    images = _resolve(args.images)
    if images is None:
        return 1

    version = None
    if args.epoch:
        version = version_string(read_version(args.root))
        logger.info(f"Image version: {version}")

    commands = [build_command(image, version, no_cache=args.no_cache) for image in images]
    code = run_sequence(commands, dry_run=args.dry_run, cwd=args.root)
    if code == 0:
        logger.info(f"Built {len(images)} image(s): {', '.join(i.tag for i in images)}")
    return code


def cmd_push(args: argparse.Namespace) -> int:
    """Handle `images push`."""
    images = _resolve(args.images)
    if images is None:
        return 1
    return run_sequence([push_command(i) for i in images], dry_run=args.dry_run)


def cmd_test(args: argparse.Namespace) -> int:
    """Handle `images test`."""
    images = _resolve(args.images)
    if images is None:
        return 1
    commands = [cmd for image in images for cmd in smoke_test_commands(image)]
    return run_sequence(commands, dry_run=args.dry_run)


def cmd_clean(args: argparse.Namespace) -> int:
    """Handle `images clean`. Missing images are not an error."""
    images = _resolve(args.images)
    if images is None:
        return 1
    return run_sequence(clean_commands(images), dry_run=args.dry_run, keep_going=True)


def cmd_info(args: argparse.Namespace) -> int:
    """Handle `images info`."""
    print(render_info())
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    """Handle `images list`."""
    print(f"{'Tag':<16} {'Dockerfile':<20} {'GPU_VARIANT':<12} Registry tag")
    print("-" * 80)
    for image in ImageVariant:
        info = image.value
        print(
            f"{local_tag(image):<16} {info.dockerfile:<20} "
            f"{info.gpu_variant or '-':<12} {registry_tag(image)}"
        )
    print()
    print("Build sets:")
    for name, images in BUILD_SETS.items():
        print(f"  {name:<20} {', '.join(i.tag for i in images)}")
    return 0


def handle_images_command(argv: list[str]) -> int:
    """Handle image-specific commands."""
    parser = argparse.ArgumentParser(
        prog="ai-base images",
        description="Build, push and test the ai-base image variants",
    )

    # Global arguments
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print commands but do not execute",
    )
    parser.add_argument(
        "--root",
        type=Path,
        default=Path.cwd(),
        help="Repository root containing apps/ai-inference (default: cwd)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")
    image_help = f"Image tags or build sets ({', '.join(list_images() + list(BUILD_SETS))})"

    # build
    build_parser = subparsers.add_parser("build", help="Build images")
    build_parser.add_argument("images", nargs="*", help=image_help)
    build_parser.add_argument(
        "--no-cache", action="store_true", help="Do not use cache"
    )
    build_parser.add_argument(
        "--epoch",
        action="store_true",
        help="Label images with <.version>.<epoch64>",
    )
    build_parser.set_defaults(func=cmd_build)

    # push
    push_parser = subparsers.add_parser("push", help="Push images to the registry")
    push_parser.add_argument("images", nargs="*", help=image_help)
    push_parser.set_defaults(func=cmd_push)

    # test
    test_parser = subparsers.add_parser(
        "test", help="Run gpu-info and detect-gpu inside images"
    )
    test_parser.add_argument("images", nargs="*", help=image_help)
    test_parser.set_defaults(func=cmd_test)

    # clean
    clean_parser = subparsers.add_parser("clean", help="Remove local and registry tags")
    clean_parser.add_argument("images", nargs="*", help=image_help)
    clean_parser.set_defaults(func=cmd_clean)

    # info / list
    subparsers.add_parser("info", help="Show image variant information").set_defaults(
        func=cmd_info
    )
    subparsers.add_parser("list", help="List image tags and build sets").set_defaults(
        func=cmd_list
    )

    if not argv:
        parser.print_help()
        return 1

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    return args.func(args)
