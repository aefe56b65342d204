"""Path helpers for comparing worktree locations."""

import os
from typing import Optional


def resolve_path(path: str, base: Optional[str] = None) -> str:
    """Resolve a path to its absolute, symlink-free form.

    Relative paths are interpreted against ``base`` (or the process cwd).
    The path does not need to exist.
    """
    if not os.path.isabs(path):
        path = os.path.join(base or os.getcwd(), path)
    return os.path.realpath(path)


def is_within(child: str, parent: str) -> bool:
    """Return True if ``child`` equals ``parent`` or lies below it.

    Both arguments are resolved first, so ``/tmp`` vs ``/private/tmp`` style
    symlinks compare equal.
    """
    child = resolve_path(child)
    parent = resolve_path(parent)
    if child == parent:
        return True
    return child.startswith(parent.rstrip(os.sep) + os.sep)
