"""Command execution data models."""

from dataclasses import dataclass
from typing import Any

from fleet_admin.models.classification import Classification


@dataclass
class CommandResult:
    """Result of a remote command execution."""

    output: str
    error: str
    returncode: int


@dataclass(frozen=True)
class ExecutionRequest:
    """A command to dispatch across hosts.

    ``command`` is an opaque payload for the transport; it is only
    inspected by the classifier. ``dry_run_override`` skips
    classification and uses the given verdict instead.
    """

    command: str
    args: tuple[Any, ...] = ()
    description: str = ""
    dry_run_override: Classification | None = None

    @property
    def label(self) -> str:
        """Human readable name for logs and errors."""
        if self.description:
            return self.description
        first_line = self.command.strip().splitlines()[0] if self.command.strip() else ""
        return first_line[:80]


@dataclass
class ExecutionResult:
    """Outcome of a dispatch on a single host."""

    host: str
    success: bool
    value: Any = None
    error: Exception | None = None
    classification: Classification | None = None
    executed: bool = False

    @property
    def blocked(self) -> bool:
        """True when dry-run suppressed execution."""
        return self.success and not self.executed
