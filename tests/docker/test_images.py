"""Smoke tests against locally built ai-base images."""

import subprocess

import pytest

from aibase.images import NATIVE_IMAGES, local_tag, smoke_test_commands


def _image_exists(tag: str) -> bool:
    result = subprocess.run(
        ["docker", "image", "inspect", tag],
        capture_output=True,
        timeout=30,
    )
    return result.returncode == 0


@pytest.mark.docker
@pytest.mark.parametrize("image", NATIVE_IMAGES, ids=lambda i: i.tag)
def test_utilities_run_in_image(image):
    """gpu-info and detect-gpu exit 0 inside each built image."""
    if not _image_exists(local_tag(image)):
        pytest.skip(f"{local_tag(image)} not built")

    for args in smoke_test_commands(image):
        result = subprocess.run(args, capture_output=True, text=True, timeout=300)
        assert result.returncode == 0, result.stderr
