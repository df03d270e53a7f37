"""ai-base image variants and docker command builders.

Example:
    >>> from aibase.images import ImageVariant, build_command
    >>> build_command(ImageVariant.VULKAN)[:4]
    ['docker', 'build', '--build-arg', 'GPU_VARIANT=vulkan']
"""

from .lib import (
    BUILD_SETS,
    CONTEXT_DIR,
    IMAGE_NAME,
    NATIVE_IMAGES,
    ImageInfo,
    ImageVariant,
    UnknownImageError,
    build_command,
    clean_commands,
    get_image,
    list_images,
    local_tag,
    ollama_ports,
    push_command,
    read_version,
    registry_tag,
    render_info,
    resolve_images,
    run_docker,
    run_sequence,
    smoke_test_commands,
    version_string,
)

__all__ = [
    "BUILD_SETS",
    "CONTEXT_DIR",
    "IMAGE_NAME",
    "NATIVE_IMAGES",
    "ImageInfo",
    "ImageVariant",
    "UnknownImageError",
    "build_command",
    "clean_commands",
    "get_image",
    "list_images",
    "local_tag",
    "ollama_ports",
    "push_command",
    "read_version",
    "registry_tag",
    "render_info",
    "resolve_images",
    "run_docker",
    "run_sequence",
    "smoke_test_commands",
    "version_string",
]
