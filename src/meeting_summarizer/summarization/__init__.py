"""Meeting transcript summarization.

This package contains:
- chunking.py: Token-window splitting with overlap
- prompts.py: Prompt builders for the direct, map and reduce calls
- pipeline.py: The direct / map-reduce summarization state machine
"""

from . import chunking, pipeline, prompts

__all__ = ["chunking", "pipeline", "prompts"]
