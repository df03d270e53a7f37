"""Tests for image registry and command builders."""

import logging

import pytest

from .cli import handle_images_command
from .lib import (
    BUILD_SETS,
    ImageVariant,
    UnknownImageError,
    build_command,
    clean_commands,
    get_image,
    list_images,
    ollama_ports,
    push_command,
    read_version,
    resolve_images,
    run_docker,
    run_sequence,
    smoke_test_commands,
    version_string,
)


@pytest.fixture
def docker_calls(monkeypatch):
    """Record docker invocations instead of running them."""
    calls = []
    exit_codes = {}

    def fake_call(args, cwd=None, env=None):
        calls.append(args)
        return exit_codes.get(args[1], 0)

    monkeypatch.setattr("aibase.images.lib.subprocess.call", fake_call)
    fake_call.exit_codes = exit_codes
    fake_call.calls = calls
    return fake_call


@pytest.mark.unit
class TestRegistry:
    """Test image variant registry."""

    def test_tags(self) -> None:
        """Every variant has a unique tag."""
        assert list_images() == [
            "vulkan",
            "nvidia-vulkan",
            "nvidia",
            "rocm-vulkan",
            "rocm",
            "latest",
        ]

    def test_get_image(self) -> None:
        """Lookup is case-insensitive."""
        assert get_image(" ROCm ") is ImageVariant.ROCM

    def test_get_unknown_image(self) -> None:
        """Unknown tags raise with the valid options."""
        with pytest.raises(UnknownImageError) as excinfo:
            get_image("tpu")
        assert str(excinfo.value) == "Unknown image 'tpu'"
        assert "all-vulkan-fallback" in excinfo.value.valid_options

    def test_build_sets(self) -> None:
        """Native and Vulkan-fallback sets share vulkan and latest."""
        assert [i.tag for i in BUILD_SETS["all"]] == ["vulkan", "nvidia", "rocm", "latest"]
        assert [i.tag for i in BUILD_SETS["all-vulkan-fallback"]] == [
            "vulkan",
            "nvidia-vulkan",
            "rocm-vulkan",
            "latest",
        ]

    def test_resolve_dedups(self) -> None:
        """Sets and tags expand in order without duplicates."""
        images = resolve_images(["nvidia", "all"])
        assert [i.tag for i in images] == ["nvidia", "vulkan", "rocm", "latest"]

    def test_ollama_ports(self) -> None:
        """Ollama ports 11434-11437 map to the native variants."""
        assert ollama_ports() == {
            "vulkan": 11434,
            "nvidia": 11435,
            "rocm": 11436,
            "latest": 11437,
        }


@pytest.mark.unit
class TestCommandBuilders:
    """Test docker command lines."""

    def test_build_with_variant_arg(self) -> None:
        """Shared Dockerfile builds pass GPU_VARIANT."""
        assert build_command(ImageVariant.NVIDIA_VULKAN) == [
            "docker",
            "build",
            "--build-arg",
            "GPU_VARIANT=nvidia",
            "-t",
            "ghcr.io/penguintechinc/ai-base:nvidia-vulkan",
            "-t",
            "ai-base:nvidia-vulkan",
            "-f",
            "apps/ai-inference/Dockerfile",
            "apps/ai-inference/",
        ]

    def test_build_dedicated_dockerfile(self) -> None:
        """Native images use their own Dockerfile and no build arg."""
        args = build_command(ImageVariant.ROCM, no_cache=True)
        assert "--build-arg" not in args
        assert "--no-cache" in args
        assert args[args.index("-f") + 1] == "apps/ai-inference/Dockerfile.rocm"

    def test_build_version_label(self) -> None:
        """A version becomes an OCI label."""
        args = build_command(ImageVariant.LATEST, version="1.2.0.1700000000")
        assert "org.opencontainers.image.version=1.2.0.1700000000" in args

    def test_registry_from_environment(self, monkeypatch) -> None:
        """DOCKER_REGISTRY and DOCKER_ORG shape registry tags."""
        monkeypatch.setenv("DOCKER_REGISTRY", "registry.local:5000")
        monkeypatch.setenv("DOCKER_ORG", "lab")
        assert push_command(ImageVariant.VULKAN) == [
            "docker",
            "push",
            "registry.local:5000/lab/ai-base:vulkan",
        ]

    def test_smoke_tests(self) -> None:
        """gpu-info runs before detect-gpu."""
        assert smoke_test_commands(ImageVariant.VULKAN) == [
            ["docker", "run", "--rm", "ai-base:vulkan", "/usr/local/bin/gpu-info"],
            ["docker", "run", "--rm", "ai-base:vulkan", "/usr/local/bin/detect-gpu"],
        ]

    def test_clean(self) -> None:
        """Local tags are removed, then registry tags."""
        local, remote = clean_commands([ImageVariant.VULKAN, ImageVariant.LATEST])
        assert local == ["docker", "rmi", "ai-base:vulkan", "ai-base:latest"]
        assert remote[2] == "ghcr.io/penguintechinc/ai-base:vulkan"


@pytest.mark.unit
class TestVersioning:
    """Test version strings."""

    def test_version_string(self) -> None:
        """Epoch64 is appended to the base version."""
        assert version_string("1.2.0", 1700000000) == "1.2.0.1700000000"

    def test_version_string_defaults_to_now(self) -> None:
        """Without an epoch the current time is used."""
        base, epoch = version_string("dev", None).rsplit(".", 1)
        assert base == "dev"
        assert int(epoch) > 1700000000

    def test_read_version(self, tmp_path) -> None:
        """.version content is stripped."""
        (tmp_path / ".version").write_text("1.4.2\n")
        assert read_version(tmp_path) == "1.4.2"

    def test_read_version_missing(self, tmp_path) -> None:
        """Missing or empty .version means development."""
        assert read_version(tmp_path) == "development"
        (tmp_path / ".version").write_text("\n")
        assert read_version(tmp_path) == "development"


@pytest.mark.unit
class TestRunSequence:
    """Test command execution."""

    def test_stops_at_first_failure(self, docker_calls) -> None:
        """A failing command ends the run with its exit code."""
        docker_calls.exit_codes["build"] = 2
        code = run_sequence([["docker", "build", "a"], ["docker", "push", "b"]])
        assert code == 2
        assert docker_calls.calls == [["docker", "build", "a"]]

    def test_keep_going(self, docker_calls) -> None:
        """Tolerated failures still run every command."""
        docker_calls.exit_codes["rmi"] = 1
        code = run_sequence(
            [["docker", "rmi", "a"], ["docker", "rmi", "b"]], keep_going=True
        )
        assert code == 0
        assert len(docker_calls.calls) == 2

    def test_interrupt_exits_130(self, monkeypatch) -> None:
        """Ctrl-C during a docker command ends the run with 130."""
        calls = []

        def interrupted_call(args, cwd=None, env=None):
            calls.append(args)
            raise KeyboardInterrupt

        monkeypatch.setattr("aibase.images.lib.subprocess.call", interrupted_call)
        assert run_docker(["docker", "build", "a"]) == 130
        calls.clear()
        code = run_sequence(
            [["docker", "rmi", "a"], ["docker", "rmi", "b"]], keep_going=True
        )
        assert code == 130
        assert calls == [["docker", "rmi", "a"]]

    def test_dry_run_executes_nothing(self, docker_calls, caplog) -> None:
        """Dry runs only log."""
        with caplog.at_level(logging.INFO, logger="aibase.images.lib"):
            assert run_sequence([["docker", "push", "x"]], dry_run=True) == 0
        assert docker_calls.calls == []
        assert "Running: docker push x" in caplog.text


@pytest.mark.unit
class TestImagesCommand:
    """Test `ai-base images` argument handling."""

    def test_no_args_prints_help(self, capsys) -> None:
        """Without a subcommand help is shown and exit is 1."""
        assert handle_images_command([]) == 1
        assert "ai-base images" in capsys.readouterr().out

    def test_build_default_is_native_set(self, docker_calls, tmp_path) -> None:
        """build with no names builds the native set."""
        assert handle_images_command(["--root", str(tmp_path), "build"]) == 0
        tags = [call[call.index("-t") + 3] for call in docker_calls.calls]
        assert tags == ["ai-base:vulkan", "ai-base:nvidia", "ai-base:rocm", "ai-base:latest"]

    def test_build_with_epoch(self, docker_calls, tmp_path) -> None:
        """--epoch labels builds with .version plus epoch."""
        (tmp_path / ".version").write_text("2.0.0")
        handle_images_command(["--root", str(tmp_path), "build", "vulkan", "--epoch"])
        label = next(a for a in docker_calls.calls[0] if a.startswith("org.opencontainers"))
        assert label.startswith("org.opencontainers.image.version=2.0.0.")

    def test_unknown_image(self, docker_calls) -> None:
        """Unknown names fail before running docker."""
        assert handle_images_command(["push", "tpu"]) == 1
        assert docker_calls.calls == []

    def test_test_failure_propagates(self, docker_calls) -> None:
        """The docker exit code is returned."""
        docker_calls.exit_codes["run"] = 125
        assert handle_images_command(["test", "vulkan"]) == 125
        assert len(docker_calls.calls) == 1

    def test_clean_tolerates_errors(self, docker_calls) -> None:
        """clean succeeds even if images are missing."""
        docker_calls.exit_codes["rmi"] = 1
        assert handle_images_command(["clean"]) == 0
        assert len(docker_calls.calls) == 2

    def test_dry_run(self, docker_calls) -> None:
        """--dry-run executes nothing."""
        assert handle_images_command(["--dry-run", "build", "all-vulkan-fallback"]) == 0
        assert docker_calls.calls == []

    def test_info(self, capsys) -> None:
        """info lists variants with sizes."""
        assert handle_images_command(["info"]) == 0
        out = capsys.readouterr().out
        assert "rocm    - AMD GPU with native ROCm 6.2 (Ubuntu 24.04, ~8-9GB)" in out
        assert "FROM ghcr.io/penguincloud/ai-base:vulkan" in out

    def test_list(self, capsys) -> None:
        """list shows every tag and build set."""
        assert handle_images_command(["list"]) == 0
        out = capsys.readouterr().out
        assert "ai-base:rocm-vulkan" in out
        assert "all-vulkan-fallback" in out
