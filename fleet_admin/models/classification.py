"""Command classification models for dry-run gating."""

from dataclasses import dataclass
from enum import Enum


class Verdict(Enum):
    """How a command is treated under dry-run."""

    READ_ONLY = "read_only"
    MUTATING = "mutating"
    CUSTOM = "custom"


@dataclass(frozen=True)
class Classification:
    """Verdict for a command plus the verb that produced it."""

    verdict: Verdict
    kind: str | None = None

    @property
    def is_read_only(self) -> bool:
        return self.verdict is Verdict.READ_ONLY

    def __str__(self) -> str:
        if self.kind:
            return f"{self.verdict.value}({self.kind})"
        return self.verdict.value


# Bypass sentinel used whenever dry-run is off
EXECUTE_ALL = Classification(Verdict.READ_ONLY, "ExecuteAll")
MUTATING = Classification(Verdict.MUTATING)
CUSTOM = Classification(Verdict.CUSTOM)
