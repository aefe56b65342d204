"""Command-line argument parsing for worktree-keeper."""

import argparse
import sys

from worktree_keeper.__version__ import __version__
from worktree_keeper.constants import MIN_CLI_TIMEOUT


def timeout_seconds(value: str) -> int:
    """argparse type for --timeout / --network-timeout: an integer of at least 10."""
    try:
        seconds = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"must be a whole number of seconds, got '{value}'")
    if seconds < MIN_CLI_TIMEOUT:
        raise argparse.ArgumentTypeError(f"must be at least {MIN_CLI_TIMEOUT} seconds, got {seconds}")
    return seconds


class KeeperArgumentParser(argparse.ArgumentParser):
    """Argument parser that exits 1 on usage errors (2 means safety-blocked)."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = KeeperArgumentParser(
        prog="worktree-keeper",
        description="Create, inspect and safely remove git worktrees for parallel tasks",
        epilog="Exit codes: 0 success, 1 input/git error, 2 safety check failed, "
        "3 branch disposition required, 4 timeout exceeded. "
        "Environment: WORKTREE_REMOVE_TIMEOUT, NETWORK_TIMEOUT, WORKTREE_INSTALL_TIMEOUT (seconds).",
    )
    parser.add_argument("--version", action="version", version=f"worktree-keeper {__version__}")
    parser.add_argument(
        "--debug", action="store_true", help="Show debug information for troubleshooting"
    )
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    create = subparsers.add_parser("create", help="Create a worktree and feature branch for a task")
    create.add_argument("task_id", help="Task identifier, e.g. PROJ-123")
    create.add_argument("description", help="Short description, e.g. 'auth feature'")
    create.add_argument(
        "--base-branch", metavar="BRANCH", help="Branch to start from (default: develop, main or master)"
    )
    create.add_argument("--no-install", action="store_true", help="Skip dependency installation")
    create.add_argument("--json", action="store_true", help="Output JSON")

    list_parser = subparsers.add_parser("list", help="List worktrees")
    list_parser.add_argument("--json", action="store_true", help="Output JSON")
    list_parser.add_argument("-v", "--verbose", action="store_true", help="Show one card per worktree")

    status = subparsers.add_parser("status", help="Show the detailed status of one worktree")
    status.add_argument("path", help="Worktree path")
    status.add_argument("--json", action="store_true", help="Output JSON")

    cleanup = subparsers.add_parser("cleanup", help="Remove a worktree and decide its branch's fate")
    cleanup.add_argument("path", help="Worktree path")
    intent = cleanup.add_mutually_exclusive_group()
    intent.add_argument(
        "--keep-branch", action="store_true", help="Keep the branch for future work or review"
    )
    intent.add_argument(
        "--delete-branch", action="store_true", help="Delete the branch locally and on the remote"
    )
    intent.add_argument(
        "--delete-local-branch", action="store_true", help="Delete the local branch only"
    )
    cleanup.add_argument(
        "--force", action="store_true", help="Remove despite uncommitted changes or locks"
    )
    cleanup.add_argument(
        "--dry-run", action="store_true", help="Show what would be done without doing it"
    )
    cleanup.add_argument(
        "--timeout",
        type=timeout_seconds,
        metavar="SECONDS",
        help="Worktree removal limit (default: $WORKTREE_REMOVE_TIMEOUT or 120)",
    )
    cleanup.add_argument(
        "--network-timeout",
        type=timeout_seconds,
        metavar="SECONDS",
        help="Remote branch check/deletion limit (default: $NETWORK_TIMEOUT or 30)",
    )
    cleanup.add_argument(
        "--skip-lock-check", action="store_true", help="Skip lock and open-handle detection"
    )
    cleanup.add_argument("--json", action="store_true", help="Output JSON")

    return parser


def parse_args(argv=None):
    """Parse command-line arguments."""
    return build_parser().parse_args(argv)
