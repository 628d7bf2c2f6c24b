"""Application-level constants for llm-cli.

This module keeps only cross-cutting app/file/path/limit constants.
"""

# ============================================================================
# Application identity
# ============================================================================

APP_NAME = "llm-cli"

# ============================================================================
# Configuration storage
# ============================================================================

CONFIG_DIR = "~/.config/llm-cli"
CONFIG_FILE_NAME = "config.json"
CONFIG_DIR_MODE = 0o700
CONFIG_FILE_MODE = 0o600

DEFAULT_PROFILE_NAME = "default"
DEFAULT_PROVIDER = "ollama"
DEFAULT_MODEL = "llama3"

# ============================================================================
# Size limits
# ============================================================================

LIMIT_MODE_STOP = "stop"
LIMIT_MODE_WARN = "warn"
LIMIT_MODES = (LIMIT_MODE_STOP, LIMIT_MODE_WARN)

DEFAULT_MAX_PROMPT_SIZE_BYTES = 10 * 1024 * 1024
DEFAULT_MAX_RESPONSE_SIZE_BYTES = 20 * 1024 * 1024

# Prompt files and stdin are read in chunks of this size.
PROMPT_READ_CHUNK_BYTES = 64 * 1024

# ============================================================================
# Prompt sources
# ============================================================================

STDIN_MARKER = "-"

# ============================================================================
# Logging
# ============================================================================

LOG_FILE_EXTENSION = ".log"
DATETIME_FORMAT_FILENAME = "%Y-%m-%d_%H-%M-%S"

# ============================================================================
# Exit codes
# ============================================================================

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130
