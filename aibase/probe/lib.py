"""External tool probing.

Every fact ai-base reports comes from a third-party binary (nvidia-smi,
rocm-smi, vulkaninfo, lspci, ollama) or from the filesystem. `ToolRunner`
is the single seam through which those are queried, so that commands can be
exercised without GPUs and so that a missing or hung tool is reported
instead of crashing the command.
"""

from __future__ import annotations

import importlib
import importlib.metadata
import importlib.util
import logging
import re
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from aibase.config import get_probe_timeout

logger = logging.getLogger(__name__)

# Shell conventions for "command not found" and "not executable"
EXIT_NOT_FOUND = 127
EXIT_NOT_EXECUTABLE = 126


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of running an external tool.

    Attributes:
        args: Command line that was run.
        found: Whether the executable was on PATH.
        returncode: Process exit status, None when the process never finished.
        stdout: Captured standard output.
        stderr: Captured standard error.
        timed_out: Whether the probe hit its timeout.
    """

    args: tuple[str, ...]
    found: bool = True
    returncode: int | None = 0
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        """True if the tool ran and exited 0."""
        return self.found and not self.timed_out and self.returncode == 0

    def lines(self, pattern: str | None = None) -> list[str]:
        """Non-blank stdout lines, optionally filtered by a regex.

        Args:
            pattern: Case-insensitive regex a line must contain.

        Returns:
            Matching lines with trailing whitespace removed.
        """
        regex = re.compile(pattern, re.IGNORECASE) if pattern else None
        result = []
        for line in self.stdout.splitlines():
            line = line.rstrip()
            if not line.strip():
                continue
            if regex is None or regex.search(line):
                result.append(line)
        return result


@dataclass(frozen=True)
class ModuleInfo:
    """An importable Python package."""

    name: str
    version: str | None = None


class ToolRunner:
    """Runs external tools with a timeout and never raises.

    Example:
        >>> runner = ToolRunner(timeout=5)
        >>> if runner.has("nvidia-smi"):
        ...     result = runner.run(["nvidia-smi", "-L"])
        ...     print(result.lines())
    """

    def __init__(self, timeout: int | None = None, path: str | None = None):
        """Initialize the runner.

        Args:
            timeout: Seconds per probe. Defaults to AI_BASE_PROBE_TIMEOUT.
            path: PATH string to search instead of the process PATH.
        """
        self.timeout = get_probe_timeout(timeout)
        self.path = path

    def which(self, name: str) -> str | None:
        """Resolve an executable on PATH."""
        return shutil.which(name, path=self.path)

    def has(self, name: str) -> bool:
        """Whether an executable is on PATH."""
        return self.which(name) is not None

    def run(self, args: Sequence[str], timeout: int | None = None) -> ProbeResult:
        """Run a command and capture its output.

        Args:
            args: Command and arguments.
            timeout: Per-call timeout override.

        Returns:
            ProbeResult. Missing executables, timeouts and OS errors are
            reported through its fields.
        """
        args = tuple(args)
        executable = self.which(args[0])
        if executable is None:
            logger.debug(f"Probe skipped, {args[0]} not on PATH")
            return ProbeResult(args=args, found=False, returncode=EXIT_NOT_FOUND)

        try:
            completed = subprocess.run(
                [executable, *args[1:]],
                capture_output=True,
                encoding="utf-8",
                errors="replace",
                timeout=timeout or self.timeout,
            )
        except subprocess.TimeoutExpired:
            logger.warning(f"{args[0]} did not answer within {timeout or self.timeout}s")
            return ProbeResult(args=args, returncode=None, timed_out=True)
        except OSError as e:
            logger.debug(f"Probe {' '.join(args)} failed: {e}")
            return ProbeResult(
                args=args, returncode=EXIT_NOT_EXECUTABLE, stderr=str(e)
            )

        logger.debug(f"Probe {' '.join(args)} exited {completed.returncode}")
        return ProbeResult(
            args=args,
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )

    def exists(self, path: Path | str) -> bool:
        """Whether a regular file exists."""
        return Path(path).is_file()

    def glob(self, directory: Path | str, pattern: str) -> list[Path]:
        """Sorted files in a directory matching a glob pattern."""
        directory = Path(directory)
        if not directory.is_dir():
            return []
        return sorted(p for p in directory.glob(pattern) if p.is_file())

    def read_text(self, path: Path | str) -> str | None:
        """Read a text file, None if it cannot be read."""
        try:
            return Path(path).read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.debug(f"Cannot read {path}: {e}")
            return None

    def python_module(self, name: str) -> ModuleInfo | None:
        """Check whether a Python package is importable.

        The version comes from distribution metadata when installed as a
        distribution, otherwise from the module's `__version__`.
        """
        try:
            if importlib.util.find_spec(name) is None:
                return None
        except (ImportError, ValueError) as e:
            logger.debug(f"Module lookup for {name} failed: {e}")
            return None

        try:
            return ModuleInfo(name=name, version=importlib.metadata.version(name))
        except importlib.metadata.PackageNotFoundError:
            pass

        try:
            module = importlib.import_module(name)
        except Exception as e:
            logger.debug(f"Import of {name} failed: {e}")
            return None
        return ModuleInfo(name=name, version=getattr(module, "__version__", None))


__all__ = [
    "EXIT_NOT_EXECUTABLE",
    "EXIT_NOT_FOUND",
    "ModuleInfo",
    "ProbeResult",
    "ToolRunner",
]
