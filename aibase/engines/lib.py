"""Inference engine discovery.

Reports which engines are installed in the image (Ollama, llama.cpp, llm-d,
EXO) and whether Ollama servers answer on their HTTP ports.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import httpx
from pydantic import BaseModel, ValidationError

from aibase.config import EnvVar, get_environment
from aibase.probe import ToolRunner

logger = logging.getLogger(__name__)

_VERSION_PATTERN = re.compile(r"\d+\.\d+(?:\.\d+)?\S*")

# How many llama.cpp binaries to list
LLAMA_BINARY_PREVIEW = 3


@dataclass
class EngineStatus:
    """Installation status of one inference engine.

    Attributes:
        name: Display name.
        installed: Whether the engine was found.
        required: Whether validation fails when the engine is missing.
        version: Version string, when the engine reports one.
        path: Where it was found.
        details: Extra lines (e.g. binaries found).
        hint: Where to look when it is missing.
    """

    name: str
    installed: bool
    required: bool = False
    version: str | None = None
    path: str | None = None
    details: list[str] = field(default_factory=list)
    hint: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "installed": self.installed,
            "required": self.required,
            "version": self.version,
            "path": self.path,
            "details": list(self.details),
        }


def _extract_version(text: str) -> str | None:
    match = _VERSION_PATTERN.search(text)
    return match.group(0) if match else None


def detect_ollama(runner: ToolRunner) -> EngineStatus:
    """Detect the Ollama CLI and its version."""
    path = runner.which("ollama")
    if path is None:
        return EngineStatus(name="Ollama", installed=False, required=True)

    result = runner.run(["ollama", "--version"])
    version = _extract_version(result.stdout) if result.ok else None
    return EngineStatus(
        name="Ollama",
        installed=True,
        required=True,
        version=version or "unknown",
        path=path,
    )


def detect_llama_cpp(runner: ToolRunner, bin_dir: Path) -> EngineStatus:
    """Detect llama.cpp binaries in the image bin directory or on PATH."""
    in_bin_dir = runner.exists(bin_dir / "llama-cli")
    on_path = runner.which("llama-cli")
    if not (in_bin_dir or on_path):
        return EngineStatus(
            name="llama.cpp",
            installed=False,
            hint=f"check {bin_dir}/",
        )

    binaries = runner.glob(bin_dir, "llama-*")[:LLAMA_BINARY_PREVIEW]
    return EngineStatus(
        name="llama.cpp",
        installed=True,
        path=f"{bin_dir}/" if in_bin_dir else on_path,
        details=[str(p) for p in binaries],
    )


def detect_llm_d(runner: ToolRunner, bin_dir: Path) -> EngineStatus:
    """Detect the llm-d binary."""
    on_path = runner.which("llm-d")
    bundled = bin_dir / "llm-d"
    if not (on_path or runner.exists(bundled)):
        return EngineStatus(name="llm-d", installed=False)
    return EngineStatus(name="llm-d", installed=True, path=on_path or str(bundled))


def detect_exo(runner: ToolRunner) -> EngineStatus:
    """Detect the EXO Python package."""
    module = runner.python_module("exo")
    if module is None:
        return EngineStatus(name="EXO", installed=False)
    return EngineStatus(
        name="EXO",
        installed=True,
        version=module.version or "unknown",
        details=["Python package installed"],
    )


def detect_engines(
    runner: ToolRunner | None = None,
    bin_dir: Path | None = None,
) -> list[EngineStatus]:
    """Detect every inference engine shipped in the image.

    Args:
        runner: Tool runner, defaults to a fresh ToolRunner.
        bin_dir: Bundled binary directory. Defaults to AI_BASE_BIN_DIR.

    Returns:
        Statuses for Ollama, llama.cpp, llm-d and EXO, in that order.
    """
    runner = runner or ToolRunner()
    bin_dir = Path(bin_dir or get_environment(EnvVar.AI_BASE_BIN_DIR))
    return [
        detect_ollama(runner),
        detect_llama_cpp(runner, bin_dir),
        detect_llm_d(runner, bin_dir),
        detect_exo(runner),
    ]


# =============================================================================
# Ollama HTTP API
# =============================================================================


class OllamaVersion(BaseModel):
    """Response body of Ollama's GET /api/version."""

    version: str


def normalize_ollama_url(value: str) -> str:
    """Turn an OLLAMA_HOST value into a client URL.

    Ollama accepts `host:port` without a scheme and `0.0.0.0` as a bind
    address; clients need `http://` and a routable host.
    """
    url = value.strip().rstrip("/")
    if "://" not in url:
        url = f"http://{url}"
    return url.replace("://0.0.0.0", "://localhost")


class OllamaClient:
    """Minimal HTTP client for Ollama health checks.

    Example:
        >>> with OllamaClient() as client:
        ...     print(client.version())

    Attributes:
        base_url: Ollama server URL.
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = 2.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            base_url: Server URL. Defaults to OLLAMA_HOST.
            timeout: Request timeout in seconds.
            transport: Custom httpx transport (used by tests).
        """
        self.base_url = normalize_ollama_url(
            base_url or get_environment(EnvVar.OLLAMA_HOST)
        )
        self.timeout = timeout
        self._client = httpx.Client(timeout=timeout, transport=transport)

    def __enter__(self) -> OllamaClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def version(self) -> str | None:
        """Server version, or None if the server is not reachable."""
        try:
            response = self._client.get(f"{self.base_url}/api/version")
        except (httpx.RequestError, httpx.TimeoutException) as e:
            logger.debug(f"Ollama at {self.base_url} unreachable: {e}")
            return None

        if response.status_code != 200:
            logger.debug(f"Ollama at {self.base_url} returned {response.status_code}")
            return None

        try:
            return OllamaVersion.model_validate(response.json()).version
        except (ValueError, ValidationError) as e:
            logger.debug(f"Unexpected Ollama version payload: {e}")
            return None

    def is_available(self) -> bool:
        return self.version() is not None


@dataclass(frozen=True)
class OllamaServerStatus:
    """Reachability of one Ollama server."""

    label: str
    url: str
    available: bool
    version: str | None = None

    @property
    def summary(self) -> str:
        if self.available:
            return f"{self.label}: running (v{self.version}) at {self.url}"
        return f"{self.label}: not reachable at {self.url}"


def check_ollama_server(
    url: str | None = None,
    label: str = "Ollama server",
    transport: httpx.BaseTransport | None = None,
) -> OllamaServerStatus:
    """Check one Ollama server."""
    with OllamaClient(url, transport=transport) as client:
        version = client.version()
        return OllamaServerStatus(
            label=label,
            url=client.base_url,
            available=version is not None,
            version=version,
        )


def probe_ollama_ports(
    ports: Mapping[str, int],
    host: str = "localhost",
    transport: httpx.BaseTransport | None = None,
) -> list[OllamaServerStatus]:
    """Check Ollama servers published on per-variant host ports.

    Args:
        ports: Label to port, e.g. {"vulkan": 11434, "nvidia": 11435}.
        host: Host the ports are published on.
        transport: Custom httpx transport (used by tests).

    Returns:
        One status per port, in the mapping's order.
    """
    return [
        check_ollama_server(f"http://{host}:{port}", label=label, transport=transport)
        for label, port in ports.items()
    ]


__all__ = [
    "EngineStatus",
    "OllamaClient",
    "OllamaServerStatus",
    "OllamaVersion",
    "check_ollama_server",
    "detect_engines",
    "detect_exo",
    "detect_llama_cpp",
    "detect_llm_d",
    "detect_ollama",
    "normalize_ollama_url",
    "probe_ollama_ports",
]
