"""Tests for inference engine discovery."""

from pathlib import Path

import httpx
import pytest

from .lib import (
    OllamaClient,
    check_ollama_server,
    detect_engines,
    detect_exo,
    detect_llama_cpp,
    detect_llm_d,
    detect_ollama,
    normalize_ollama_url,
    probe_ollama_ports,
)

BIN_DIR = Path("/opt/ai-base/bin")


def _ollama_transport(version: str = "0.5.7", status_code: int = 200) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/version":
            return httpx.Response(status_code, json={"version": version})
        return httpx.Response(404)

    return httpx.MockTransport(handler)


def _refusing_transport() -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Connection refused", request=request)

    return httpx.MockTransport(handler)


# =============================================================================
# Installed Engines
# =============================================================================


class TestDetectEngines:
    """Tests for engine discovery over a scripted host."""

    @pytest.mark.unit
    def test_ollama_version(self, engines_runner):
        """The version is pulled out of `ollama --version`."""
        status = detect_ollama(engines_runner)
        assert status.installed
        assert status.required
        assert status.version == "0.5.7"
        assert status.path == "/usr/bin/ollama"

    @pytest.mark.unit
    def test_ollama_unparseable_version(self, fake_runner):
        """A version-less answer reports unknown."""
        fake_runner.script("ollama", "--version", stdout="Warning: could not connect\n")
        assert detect_ollama(fake_runner).version == "unknown"

    @pytest.mark.unit
    def test_ollama_missing(self, fake_runner):
        """Missing Ollama is still marked required."""
        status = detect_ollama(fake_runner)
        assert status.installed is False
        assert status.required is True

    @pytest.mark.unit
    def test_llama_cpp_lists_first_three_binaries(self, engines_runner):
        """Binaries are listed in name order and capped."""
        status = detect_llama_cpp(engines_runner, BIN_DIR)
        assert status.installed
        assert status.path == "/opt/ai-base/bin/"
        assert status.details == [
            "/opt/ai-base/bin/llama-bench",
            "/opt/ai-base/bin/llama-cli",
            "/opt/ai-base/bin/llama-quantize",
        ]

    @pytest.mark.unit
    def test_llama_cpp_on_path(self, fake_runner):
        """llama-cli on PATH counts when the bin dir is empty."""
        fake_runner.install("llama-cli", "/usr/local/bin/llama-cli")
        status = detect_llama_cpp(fake_runner, BIN_DIR)
        assert status.installed
        assert status.path == "/usr/local/bin/llama-cli"

    @pytest.mark.unit
    def test_llama_cpp_missing_hint(self, fake_runner):
        """Missing llama.cpp points at the bin dir."""
        status = detect_llama_cpp(fake_runner, BIN_DIR)
        assert status.installed is False
        assert status.hint == "check /opt/ai-base/bin/"

    @pytest.mark.unit
    def test_llm_d_bundled(self, engines_runner):
        """The bundled llm-d binary is found without PATH."""
        status = detect_llm_d(engines_runner, BIN_DIR)
        assert status.installed
        assert status.path == "/opt/ai-base/bin/llm-d"

    @pytest.mark.unit
    def test_exo_module(self, engines_runner):
        """EXO is detected as an importable package."""
        status = detect_exo(engines_runner)
        assert status.installed
        assert status.version == "0.0.1"

    @pytest.mark.unit
    def test_order_and_defaults(self, engines_runner):
        """Engines come back in a fixed order, bin dir from config."""
        statuses = detect_engines(engines_runner)
        assert [s.name for s in statuses] == ["Ollama", "llama.cpp", "llm-d", "EXO"]
        assert all(s.installed for s in statuses)

    @pytest.mark.unit
    def test_bin_dir_from_environment(self, fake_runner, monkeypatch):
        """AI_BASE_BIN_DIR moves where binaries are looked up."""
        monkeypatch.setenv("AI_BASE_BIN_DIR", "/srv/bin")
        fake_runner.add_file("/srv/bin/llama-cli")
        llama = detect_engines(fake_runner)[1]
        assert llama.installed
        assert llama.path == "/srv/bin/"

    @pytest.mark.unit
    def test_bare_host(self, fake_runner):
        """Nothing installed means nothing found."""
        assert not any(s.installed for s in detect_engines(fake_runner))


# =============================================================================
# Ollama HTTP API
# =============================================================================


class TestOllamaClient:
    """Tests for the Ollama HTTP client."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("http://localhost:11434", "http://localhost:11434"),
            ("localhost:11434/", "http://localhost:11434"),
            ("0.0.0.0:11434", "http://localhost:11434"),
            ("https://ollama.internal", "https://ollama.internal"),
        ],
    )
    def test_normalize_url(self, value, expected):
        """OLLAMA_HOST forms become client URLs."""
        assert normalize_ollama_url(value) == expected

    @pytest.mark.unit
    def test_default_url_from_environment(self, monkeypatch):
        """OLLAMA_HOST is used when no URL is given."""
        monkeypatch.setenv("OLLAMA_HOST", "0.0.0.0:11500")
        with OllamaClient(transport=_ollama_transport()) as client:
            assert client.base_url == "http://localhost:11500"

    @pytest.mark.unit
    def test_version(self):
        """A running server reports its version."""
        with OllamaClient("http://localhost:11434", transport=_ollama_transport()) as client:
            assert client.version() == "0.5.7"
            assert client.is_available()

    @pytest.mark.unit
    def test_unreachable(self):
        """Connection errors are reported as unavailable."""
        with OllamaClient("http://localhost:11434", transport=_refusing_transport()) as client:
            assert client.version() is None
            assert client.is_available() is False

    @pytest.mark.unit
    def test_error_status(self):
        """Non-200 answers are unavailable."""
        transport = _ollama_transport(status_code=500)
        with OllamaClient("http://localhost:11434", transport=transport) as client:
            assert client.version() is None

    @pytest.mark.unit
    def test_bad_payload(self):
        """A body without a version is unavailable."""
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"status": "ok"}))
        with OllamaClient("http://localhost:11434", transport=transport) as client:
            assert client.version() is None

    @pytest.mark.unit
    def test_check_server_summary(self):
        """Status summaries name the URL and version."""
        status = check_ollama_server("http://localhost:11434", transport=_ollama_transport())
        assert status.available
        assert status.summary == "Ollama server: running (v0.5.7) at http://localhost:11434"

    @pytest.mark.unit
    def test_probe_ports(self):
        """Only ports with a server answer are available."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.port == 11435:
                return httpx.Response(200, json={"version": "0.5.7"})
            raise httpx.ConnectError("Connection refused", request=request)

        statuses = probe_ollama_ports(
            {"vulkan": 11434, "nvidia": 11435},
            transport=httpx.MockTransport(handler),
        )
        assert [(s.label, s.available) for s in statuses] == [
            ("vulkan", False),
            ("nvidia", True),
        ]
        assert statuses[0].summary == "vulkan: not reachable at http://localhost:11434"
