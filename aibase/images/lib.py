"""Image variant registry and docker command builders.

Each ai-base image is one Dockerfile under `apps/ai-inference/`, optionally
parameterized by the `GPU_VARIANT` build arg, and tagged both locally
(`ai-base:<tag>`) and for the registry (`<registry>/<org>/ai-base:<tag>`).

Image Tags:
    vulkan          - Universal GPU support via Vulkan (Dockerfile)
    nvidia-vulkan   - NVIDIA variant built on Vulkan (Dockerfile)
    nvidia          - NVIDIA with native CUDA (Dockerfile.nvidia)
    rocm-vulkan     - AMD variant built on Vulkan (Dockerfile)
    rocm            - AMD with native ROCm (Dockerfile.rocm)
    latest          - Multi-backend with CUDA and ROCm (Dockerfile.latest)
"""

from __future__ import annotations

import logging
import os
import subprocess
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Iterable, Sequence

from aibase.config import get_registry_prefix

logger = logging.getLogger(__name__)

IMAGE_NAME = "ai-base"
CONTEXT_DIR = PurePosixPath("apps/ai-inference")
CONTAINER_BIN_DIR = PurePosixPath("/usr/local/bin")
VERSION_FILE = ".version"
DEFAULT_VERSION = "development"
BASE_OS = "Ubuntu 24.04 LTS (Noble)"

# Commands run inside each image by `images test`
SMOKE_TEST_COMMANDS = ("gpu-info", "detect-gpu")


class UnknownImageError(ValueError):
    """Raised when an image tag or build set name is not recognized."""

    def __init__(self, value: str):
        super().__init__(f"Unknown image '{value}'")
        self.value = value

    @property
    def valid_options(self) -> str:
        return ", ".join(list_images() + list(BUILD_SETS))


@dataclass(frozen=True)
class ImageInfo:
    """Build metadata for one image.

    Attributes:
        tag: Image tag, also the registry key.
        dockerfile: Dockerfile name inside the build context.
        description: Human-readable description.
        gpu_variant: GPU_VARIANT build arg, None for dedicated Dockerfiles.
        size: Approximate image size.
        ollama_port: Host port Ollama is published on for this variant.
    """

    tag: str
    dockerfile: str
    description: str
    gpu_variant: str | None = None
    size: str | None = None
    ollama_port: int | None = None


class ImageVariant(Enum):
    """All buildable ai-base images."""

    VULKAN = ImageInfo(
        tag="vulkan",
        dockerfile="Dockerfile",
        description="Universal GPU support via Vulkan",
        gpu_variant="vulkan",
        size="~3-4GB",
        ollama_port=11434,
    )
    NVIDIA_VULKAN = ImageInfo(
        tag="nvidia-vulkan",
        dockerfile="Dockerfile",
        description="NVIDIA variant with Vulkan fallback",
        gpu_variant="nvidia",
    )
    NVIDIA = ImageInfo(
        tag="nvidia",
        dockerfile="Dockerfile.nvidia",
        description="NVIDIA GPU with native CUDA 12.6",
        size="~5-6GB",
        ollama_port=11435,
    )
    ROCM_VULKAN = ImageInfo(
        tag="rocm-vulkan",
        dockerfile="Dockerfile",
        description="AMD variant with Vulkan fallback",
        gpu_variant="rocm",
    )
    ROCM = ImageInfo(
        tag="rocm",
        dockerfile="Dockerfile.rocm",
        description="AMD GPU with native ROCm 6.2",
        size="~8-9GB",
        ollama_port=11436,
    )
    LATEST = ImageInfo(
        tag="latest",
        dockerfile="Dockerfile.latest",
        description="Multi-backend with CUDA and ROCm",
        size="~15-18GB",
        ollama_port=11437,
    )

    @property
    def tag(self) -> str:
        return self.value.tag


# Images built, pushed, tested and cleaned by default
NATIVE_IMAGES = (
    ImageVariant.VULKAN,
    ImageVariant.NVIDIA,
    ImageVariant.ROCM,
    ImageVariant.LATEST,
)

BUILD_SETS: dict[str, tuple[ImageVariant, ...]] = {
    "all": NATIVE_IMAGES,
    "all-vulkan-fallback": (
        ImageVariant.VULKAN,
        ImageVariant.NVIDIA_VULKAN,
        ImageVariant.ROCM_VULKAN,
        ImageVariant.LATEST,
    ),
}


def list_images() -> list[str]:
    """Get all image tags."""
    return [image.tag for image in ImageVariant]


def get_image(tag: str) -> ImageVariant:
    """Look up an image by tag.

    Raises:
        UnknownImageError: If no image has this tag.
    """
    normalized = tag.strip().lower()
    for image in ImageVariant:
        if image.tag == normalized:
            return image
    raise UnknownImageError(tag)


def resolve_images(names: Iterable[str]) -> list[ImageVariant]:
    """Expand tags and build set names into images, without duplicates.

    Raises:
        UnknownImageError: If a name is neither a tag nor a build set.
    """
    resolved: list[ImageVariant] = []
    for name in names:
        key = name.strip().lower()
        images = BUILD_SETS[key] if key in BUILD_SETS else (get_image(key),)
        for image in images:
            if image not in resolved:
                resolved.append(image)
    return resolved


def ollama_ports() -> dict[str, int]:
    """Host port per image that publishes Ollama."""
    return {
        image.tag: image.value.ollama_port
        for image in ImageVariant
        if image.value.ollama_port is not None
    }


# =============================================================================
# Versioning
# =============================================================================


def read_version(root: Path | str = ".") -> str:
    """Read the base version from `.version`, or `development`."""
    try:
        version = (Path(root) / VERSION_FILE).read_text().strip()
    except OSError:
        return DEFAULT_VERSION
    return version or DEFAULT_VERSION


def version_string(base: str, epoch: int | None = None) -> str:
    """Render `<base>.<epoch64>`, epoch defaulting to now in Unix seconds."""
    if epoch is None:
        epoch = int(time.time())
    return f"{base}.{epoch}"


# =============================================================================
# Command Builders
# =============================================================================


def local_tag(image: ImageVariant) -> str:
    return f"{IMAGE_NAME}:{image.tag}"


def registry_tag(image: ImageVariant) -> str:
    return f"{get_registry_prefix()}/{IMAGE_NAME}:{image.tag}"


def build_command(
    image: ImageVariant,
    version: str | None = None,
    no_cache: bool = False,
) -> list[str]:
    """docker build for one image, run from the repository root.

    Args:
        image: Image to build.
        version: Written to the OCI version label when given.
        no_cache: Pass --no-cache.
    """
    info = image.value
    args = ["docker", "build"]
    if no_cache:
        args.append("--no-cache")
    if info.gpu_variant:
        args.extend(["--build-arg", f"GPU_VARIANT={info.gpu_variant}"])
    if version:
        args.extend(["--label", f"org.opencontainers.image.version={version}"])
    args.extend(["-t", registry_tag(image), "-t", local_tag(image)])
    args.extend(["-f", str(CONTEXT_DIR / info.dockerfile), f"{CONTEXT_DIR}/"])
    return args


def push_command(image: ImageVariant) -> list[str]:
    return ["docker", "push", registry_tag(image)]


def smoke_test_commands(image: ImageVariant) -> list[list[str]]:
    """Smoke tests: run gpu-info then detect-gpu inside the image."""
    return [
        ["docker", "run", "--rm", local_tag(image), str(CONTAINER_BIN_DIR / command)]
        for command in SMOKE_TEST_COMMANDS
    ]


def clean_commands(images: Sequence[ImageVariant]) -> list[list[str]]:
    """Remove local tags, then registry tags."""
    return [
        ["docker", "rmi", *(local_tag(image) for image in images)],
        ["docker", "rmi", *(registry_tag(image) for image in images)],
    ]


# =============================================================================
# Execution
# =============================================================================


def run_docker(
    args: Sequence[str],
    dry_run: bool = False,
    cwd: Path | None = None,
) -> int:
    """Run a docker command.

    Args:
        args: Full command line.
        dry_run: Log the command but don't execute.
        cwd: Working directory (repository root for builds).

    Returns:
        Subprocess exit code.
    """
    logger.info(f"Running: {' '.join(args)}")

    if dry_run:
        return 0

    try:
        return subprocess.call(list(args), cwd=cwd, env=os.environ.copy())
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130
    except OSError as e:
        logger.error(f"Failed to run docker: {e}")
        return 1


def run_sequence(
    commands: Iterable[Sequence[str]],
    dry_run: bool = False,
    cwd: Path | None = None,
    keep_going: bool = False,
) -> int:
    """Run commands in order.

    Stops at the first failure and returns its exit code, unless
    `keep_going` is set, in which case failures are logged and ignored.
    """
    for args in commands:
        code = run_docker(args, dry_run=dry_run, cwd=cwd)
        if code == 130:
            return code
        if code != 0:
            if not keep_going:
                return code
            logger.warning(f"Ignoring exit code {code} from: {' '.join(args)}")
    return 0


def render_info() -> str:
    """Summary of image variants, as shown by `images info`."""
    lines = ["AI Base Layer Information:", "", f"Base OS: {BASE_OS}", "", "Available Variants:"]
    for image in NATIVE_IMAGES:
        info = image.value
        lines.append(f"  {info.tag:<7} - {info.description} (Ubuntu 24.04, {info.size})")
    lines += [
        "",
        "Inference Engines (all variants):",
        "  - Ollama (with GPU auto-detection)",
        "  - llama.cpp (compiled for each backend)",
        "  - EXO (distributed inference with PyTorch)",
        "",
        "Ollama Ports:",
    ]
    lines += [f"  {tag:<7} - {port}" for tag, port in ollama_ports().items()]
    lines += [
        "",
        "Usage Example:",
        "  FROM ghcr.io/penguincloud/ai-base:vulkan",
        "  # Your application code here",
        "",
    ]
    return "\n".join(lines)


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
