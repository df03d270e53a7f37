"""Inference engine discovery and Ollama health checks."""

from .lib import (
    EngineStatus,
    OllamaClient,
    OllamaServerStatus,
    OllamaVersion,
    check_ollama_server,
    detect_engines,
    detect_exo,
    detect_llama_cpp,
    detect_llm_d,
    detect_ollama,
    normalize_ollama_url,
    probe_ollama_ports,
)

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
