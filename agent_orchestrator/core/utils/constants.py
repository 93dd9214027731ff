"""Constants used throughout the application."""

# Workspace traversal defaults (host side only)
DEFAULT_IGNORED_DIRS = frozenset(
    {
        ".git",
        ".hg",
        ".svn",
        "__pycache__",
        "node_modules",
        ".venv",
        "venv",
        "dist",
        "build",
    }
)

# Tool execution limits
READ_FILE_DEFAULT_LINE_LIMIT = 2_000
READ_FILE_MAX_LINE_CHARS = 2_000
SEARCH_DEFAULT_MAX_RESULTS = 200
SEARCH_HARD_MAX_RESULTS = 1_000
LIST_DIRECTORY_MAX_ENTRIES = 500

# Conversation context defaults
DEFAULT_MAX_CONTEXT_TOKENS = 100_000
DEFAULT_RESPONSE_TOKENS = 4_000
DEFAULT_MAX_TOOL_OUTPUT_CHARS = 4_000
DEFAULT_KEEP_RECENT_MESSAGES = 20

# Session limits
DEFAULT_MAX_ITERATIONS = 25
DEFAULT_TIMEOUT_SECONDS = 30 * 60

# Loop detection defaults
LOOP_DETECTION_WINDOW_SECONDS = 10 * 60
MAX_SAME_TOOL_CALLS = 15
MAX_IDENTICAL_CALLS = 4
RAPID_CALL_WINDOW_SECONDS = 60
