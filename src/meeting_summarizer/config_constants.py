"""Configuration constants for meeting_summarizer.

All constants are re-exported from config.py for convenience.
"""

# General defaults
DEFAULT_LOG_LEVEL = "INFO"
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Input / output
STDIO_SENTINEL = "-"
DEFAULT_OUTPUT_PATH = "minutes.txt"
TRANSCRIPT_ENCODING = "utf-8"

# Output formats
OUTPUT_FORMAT_MARKDOWN = "markdown"
OUTPUT_FORMAT_PLAIN = "plain"
OUTPUT_FORMAT_JSON = "json"
VALID_OUTPUT_FORMATS = (OUTPUT_FORMAT_MARKDOWN, OUTPUT_FORMAT_PLAIN, OUTPUT_FORMAT_JSON)
DEFAULT_OUTPUT_FORMAT = OUTPUT_FORMAT_MARKDOWN

# Model defaults
DEFAULT_MODEL = "gemma3:27b"
# Tokenizer used for budget accounting; Ollama does not expose one
DEFAULT_TOKENIZER_MODEL = "gpt-4"
FALLBACK_TOKENIZER_ENCODING = "cl100k_base"

# Token budget defaults
DEFAULT_CTX_LIMIT = 120_000
DEFAULT_CHUNK_SIZE = 60_000
DEFAULT_CHUNK_OVERLAP = 0.1
MIN_CTX_LIMIT = 1
MIN_CHUNK_SIZE = 1

# Generation defaults
DEFAULT_TEMPERATURE = 0.2
MIN_TEMPERATURE = 0.0
MAX_TEMPERATURE = 2.0

# Retry defaults (linear backoff: attempt * delay)
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY_SECONDS = 2.0

# Ollama service defaults
DEFAULT_OLLAMA_API_BASE = "http://localhost:11434/v1"
DEFAULT_OLLAMA_TIMEOUT_SECONDS = 600
OLLAMA_HEALTH_CHECK_TIMEOUT_SECONDS = 5.0
OLLAMA_TAGS_TIMEOUT_SECONDS = 10.0

# Prompt template names (see prompts/minutes/*.j2)
PROMPT_SYSTEM = "minutes/system_v1"
PROMPT_DIRECT = "minutes/direct_v1"
PROMPT_CHUNK = "minutes/chunk_v1"
PROMPT_MERGE = "minutes/merge_v1"
