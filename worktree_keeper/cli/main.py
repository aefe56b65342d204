"""Command-line interface for worktree-keeper"""

import os
import sys

from rich.console import Console

from worktree_keeper.cli.args import parse_args
from worktree_keeper.config import Config
from worktree_keeper.core import WorktreeKeeper
from worktree_keeper.exceptions import WorktreeKeeperError
from worktree_keeper.models.disposition import BranchDisposition
from worktree_keeper.models.outcome import ExitStatus, OperationOutcome
from worktree_keeper.services.display_service import DisplayService
from worktree_keeper.utils.logging import setup_logging

console = Console()


def _intent(parsed_args):
    if parsed_args.keep_branch:
        return BranchDisposition.KEEP
    if parsed_args.delete_branch:
        return BranchDisposition.DELETE_LOCAL_AND_REMOTE
    if parsed_args.delete_local_branch:
        return BranchDisposition.DELETE_LOCAL
    return None


def run_create(keeper: WorktreeKeeper, parsed_args, display: DisplayService) -> int:
    result = keeper.create(
        parsed_args.task_id,
        parsed_args.description,
        base_branch=parsed_args.base_branch,
        install=False if parsed_args.no_install else None,
    )
    if parsed_args.json:
        display.emit_json(result.to_dict())
    else:
        display.display_create(result)
    return ExitStatus.SUCCESS.value


def run_list(keeper: WorktreeKeeper, parsed_args, display: DisplayService) -> int:
    summaries = keeper.list_worktrees()
    if parsed_args.json:
        display.emit_json([summary.to_dict() for summary in summaries])
    elif parsed_args.verbose:
        display.display_worktree_cards(summaries)
    else:
        display.display_worktree_table(summaries, keeper.config.protected_branches)
    return ExitStatus.SUCCESS.value


def run_status(keeper: WorktreeKeeper, parsed_args, display: DisplayService) -> int:
    status = keeper.status(parsed_args.path)
    if parsed_args.json:
        display.emit_json(status.to_dict())
    else:
        display.display_status(status)
    if not (status.exists and status.is_valid_worktree):
        return ExitStatus.INPUT_ERROR.value
    return ExitStatus.SUCCESS.value


def run_cleanup(keeper: WorktreeKeeper, parsed_args, display: DisplayService) -> int:
    result = keeper.cleanup(
        parsed_args.path,
        intent=_intent(parsed_args),
        force=parsed_args.force,
        dry_run=parsed_args.dry_run,
        skip_lock_check=parsed_args.skip_lock_check,
        timeout=parsed_args.timeout,
        network_timeout=parsed_args.network_timeout,
    )
    if parsed_args.json:
        display.emit_json(result.to_dict())
    else:
        display.display_cleanup(result)
    return result.exit_code


COMMANDS = {
    "create": run_create,
    "list": run_list,
    "status": run_status,
    "cleanup": run_cleanup,
}


def main(argv=None) -> int:
    """Main entry point for the application."""
    parsed_args = parse_args(argv)
    debug = parsed_args.debug
    as_json = getattr(parsed_args, "json", False)
    display = DisplayService(verbose=getattr(parsed_args, "verbose", False), debug=debug)

    try:
        # Setup logging before creating WorktreeKeeper
        setup_logging(verbose=getattr(parsed_args, "verbose", False), debug=debug, log_to_file=debug)

        config = Config.from_env(debug=debug, verbose=getattr(parsed_args, "verbose", False))
        if debug:
            console.print("[yellow]Debug mode enabled[/yellow]")
            console.print("[yellow]Configuration:[/yellow]")
            for key, value in config.to_dict().items():
                console.print(f"  {key}: {value}")

        keeper = WorktreeKeeper(os.getcwd(), config)
        return COMMANDS[parsed_args.command](keeper, parsed_args, display)
    except WorktreeKeeperError as e:
        outcome = OperationOutcome.from_error(parsed_args.command, e)
        if as_json:
            display.emit_json(outcome.to_dict())
        else:
            display.display_error(outcome)
        return outcome.exit_code
    except ValueError as e:
        # Invalid configuration (e.g. a non-numeric timeout in the environment)
        console.print(f"[red]Error: {e}[/red]")
        return ExitStatus.INPUT_ERROR.value
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        return ExitStatus.INPUT_ERROR.value
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        if debug:
            console.print_exception()
        return ExitStatus.INPUT_ERROR.value


if __name__ == "__main__":
    sys.exit(main())
