"""Operation outcome model and exit statuses."""
from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Dict, List


class ExitStatus(Enum):
    """Result classes of an operation. Values are the process exit codes."""
    SUCCESS = 0
    INPUT_ERROR = 1
    SAFETY_BLOCKED = 2
    DISPOSITION_REQUIRED = 3
    TIMEOUT = 4

    @property
    def label(self) -> str:
        return self.name.lower().replace("_", "-")


@dataclass
class OperationOutcome:
    """Structured result of a single step.

    Every non-success outcome carries at least one remediation step; this is
    checked on construction.
    """
    status: ExitStatus
    step: str = ""
    messages: List[str] = field(default_factory=list)
    remediation: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    details: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.status is not ExitStatus.SUCCESS and not self.remediation:
            raise ValueError(
                f"Outcome '{self.step}' with status {self.status.label} requires remediation steps"
            )

    @property
    def ok(self) -> bool:
        return self.status is ExitStatus.SUCCESS

    @property
    def exit_code(self) -> int:
        return self.status.value

    @classmethod
    def success(cls, step: str, *messages: str, **kwargs) -> "OperationOutcome":
        return cls(ExitStatus.SUCCESS, step=step, messages=list(messages), **kwargs)

    @classmethod
    def from_error(cls, step: str, error: Exception) -> "OperationOutcome":
        """Build an outcome from a WorktreeKeeperError (or any exception)."""
        status = getattr(error, "exit_status", ExitStatus.INPUT_ERROR)
        remediation = list(getattr(error, "remediation", None) or [])
        if not remediation:
            remediation = ["Re-run with --debug and inspect the log for details"]
        return cls(status, step=step, messages=[str(error)], remediation=remediation)

    def to_dict(self) -> dict:
        return {
            "step": self.step,
            "status": self.status.label,
            "exit_code": self.exit_code,
            "messages": list(self.messages),
            "warnings": list(self.warnings),
            "remediation": list(self.remediation),
            "details": dict(self.details),
        }
