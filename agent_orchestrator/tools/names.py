"""Central definitions for canonical tool identifiers."""
from __future__ import annotations

READ_FILE = "read_file"
WRITE_FILE = "write_file"
EDIT_FILE = "edit_file"
DELETE_FILE = "delete_file"
LIST_DIRECTORY = "list_directory"
SEARCH_PATTERN = "search_pattern"
COMPLETE = "complete"

ALL_TOOLS = (
    READ_FILE,
    WRITE_FILE,
    EDIT_FILE,
    DELETE_FILE,
    LIST_DIRECTORY,
    SEARCH_PATTERN,
    COMPLETE,
)

READ_ONLY_TOOLS = frozenset({READ_FILE, LIST_DIRECTORY, SEARCH_PATTERN})

__all__ = [
    "READ_FILE",
    "WRITE_FILE",
    "EDIT_FILE",
    "DELETE_FILE",
    "LIST_DIRECTORY",
    "SEARCH_PATTERN",
    "COMPLETE",
    "ALL_TOOLS",
    "READ_ONLY_TOOLS",
]
