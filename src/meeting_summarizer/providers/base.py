"""GenerationProvider protocol definition.

This module defines the protocol that text generation providers must implement
so the summarization pipeline can run against Ollama or a test double.
"""

from __future__ import annotations

from typing import Callable, Iterator, List, Optional, Protocol, runtime_checkable

FragmentCallback = Callable[[str], None]


@runtime_checkable
class GenerationProvider(Protocol):
    """Protocol for text generation providers."""

    def check_available(self) -> None:
        """Verify the service is reachable before any generation call.

        It may be called multiple times safely (idempotent).

        Raises:
            ServiceUnreachableError: If the service cannot be reached
        """
        ...

    def list_models(self) -> List[str]:
        """Return the names of models the service can serve."""
        ...

    def stream(self, prompt: str, system_prompt: Optional[str] = None) -> Iterator[str]:
        """Yield generated text fragments as they arrive."""
        ...

    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        on_fragment: Optional[FragmentCallback] = None,
    ) -> str:
        """Generate a complete response, retrying transient failures.

        Args:
            prompt: User prompt
            system_prompt: Optional system instruction
            on_fragment: Optional callback receiving each fragment as it streams

        Returns:
            Full generated text, stripped of surrounding whitespace

        Raises:
            GenerationFailedError: If generation fails after all retries
        """
        ...
