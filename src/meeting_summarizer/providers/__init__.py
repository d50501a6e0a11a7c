"""Text generation providers.

This package contains:
- base.py: GenerationProvider protocol definition
- ollama/: Ollama provider (OpenAI-compatible chat API plus native health endpoints)
"""
