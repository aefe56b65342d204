"""Configuration handling for worktree-keeper"""

import os
from dataclasses import dataclass, field, fields
from typing import List, Mapping, Optional

# Environment variables for process-wide limits
ENV_REMOVE_TIMEOUT = "WORKTREE_REMOVE_TIMEOUT"
ENV_NETWORK_TIMEOUT = "NETWORK_TIMEOUT"
ENV_INSTALL_TIMEOUT = "WORKTREE_INSTALL_TIMEOUT"

DEFAULT_REMOVE_TIMEOUT = 120.0  # dependency directories can be large
DEFAULT_NETWORK_TIMEOUT = 30.0
DEFAULT_INSTALL_TIMEOUT = 600.0
DEFAULT_LOCK_CHECK_TIMEOUT = 5.0


@dataclass
class Config:
    """Configuration for worktree-keeper with validation."""

    # Branch policy (ordered lists, not per-branch flags)
    protected_branches: List[str] = field(default_factory=lambda: ["develop", "main", "master"])
    base_branch_candidates: List[str] = field(default_factory=lambda: ["develop", "main", "master"])

    # Naming
    trees_dir: str = "trees"
    branch_prefix: str = "feature/"
    remote_name: str = "origin"

    # Time limits in seconds
    remove_timeout: float = DEFAULT_REMOVE_TIMEOUT
    network_timeout: float = DEFAULT_NETWORK_TIMEOUT
    install_timeout: float = DEFAULT_INSTALL_TIMEOUT
    lock_check_timeout: float = DEFAULT_LOCK_CHECK_TIMEOUT

    # Activity detection
    block_on_open_handles: bool = False  # Elevate open-handle warnings to blocking

    # Execution modes
    install_dependencies: bool = True
    verbose: bool = False
    debug: bool = False

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate_branch_lists()
        self._validate_names()
        self._validate_timeouts()

    def _validate_branch_lists(self):
        """Validate branch lists are lists of non-empty names."""
        for name in ("protected_branches", "base_branch_candidates"):
            value = getattr(self, name)
            if not isinstance(value, list):
                raise ValueError(f"{name} must be a list")
            cleaned = [branch.strip() for branch in value if branch and branch.strip()]
            setattr(self, name, cleaned)
        if not self.base_branch_candidates:
            raise ValueError("base_branch_candidates cannot be empty")

    def _validate_names(self):
        """Validate naming settings are not empty."""
        if not self.trees_dir or not self.trees_dir.strip():
            raise ValueError("trees_dir cannot be empty")
        if not self.remote_name or not self.remote_name.strip():
            raise ValueError("remote_name cannot be empty")
        self.trees_dir = self.trees_dir.strip()
        self.remote_name = self.remote_name.strip()

    def _validate_timeouts(self):
        """Validate time limits are positive."""
        for name in ("remove_timeout", "network_timeout", "install_timeout", "lock_check_timeout"):
            value = getattr(self, name)
            if value is None or value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")
            setattr(self, name, float(value))

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def get(self, key: str, default=None):
        """Get config value by key."""
        return getattr(self, key, default)

    @classmethod
    def from_dict(cls, config_dict: dict) -> "Config":
        """Create Config from dictionary, ignoring unknown keys."""
        known_fields = {f.name for f in fields(cls)}
        filtered = {k: v for k, v in config_dict.items() if k in known_fields}
        return cls(**filtered)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "Config":
        """Create Config from built-in defaults, then environment, then explicit overrides."""
        environ = os.environ if environ is None else environ
        values = {}
        for key, env_name in (
            ("remove_timeout", ENV_REMOVE_TIMEOUT),
            ("network_timeout", ENV_NETWORK_TIMEOUT),
            ("install_timeout", ENV_INSTALL_TIMEOUT),
        ):
            raw = environ.get(env_name)
            if raw is None or not raw.strip():
                continue
            try:
                values[key] = float(raw)
            except ValueError:
                raise ValueError(f"{env_name} must be a number of seconds, got '{raw}'")
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.from_dict(values)
