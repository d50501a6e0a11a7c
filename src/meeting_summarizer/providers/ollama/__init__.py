"""Ollama generation provider."""

from .ollama_provider import OllamaProvider

__all__ = ["OllamaProvider"]
