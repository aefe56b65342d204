"""Shared constants for worktree-keeper."""

from dataclasses import dataclass
from typing import List


@dataclass
class ColumnDefinition:
    """Definition of a table column."""

    key: str
    label: str
    width: int = 0  # 0 means auto-width


COLUMNS: List[ColumnDefinition] = [
    ColumnDefinition("path", "Path", 50),
    ColumnDefinition("branch", "Branch", 30),
    ColumnDefinition("changes", "Changes", 8),
    ColumnDefinition("unmerged", "Unmerged", 8),
    ColumnDefinition("sync", "Sync", 10),
    ColumnDefinition("last_commit", "Last Commit", 0),
]

# Minimum accepted value for --timeout / --network-timeout on the command line
MIN_CLI_TIMEOUT = 10

# Paths longer than this are shortened in the table view
MAX_PATH_DISPLAY = 48

# Markers left in a worktree's git dir by in-progress or locking operations
LOCK_MARKERS = [
    "locked",
    "index.lock",
    "MERGE_HEAD",
    "rebase-merge",
    "rebase-apply",
    "CHERRY_PICK_HEAD",
    "REVERT_HEAD",
    "BISECT_LOG",
]

# Symbol constants
SYMBOL_YES = "Y"
SYMBOL_NO = "N"
SYMBOL_UNKNOWN = "?"
SYMBOL_DETACHED = "(detached)"

# Style names (Rich color names)
STYLE_OK = "green"
STYLE_WARN = "yellow"
STYLE_FAIL = "red"
STYLE_STEP = "blue"
STYLE_PROTECTED = "cyan"
