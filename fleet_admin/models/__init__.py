"""Data models for fleet_admin."""

from fleet_admin.models.classification import (
    CUSTOM,
    EXECUTE_ALL,
    MUTATING,
    Classification,
    Verdict,
)
from fleet_admin.models.command import CommandResult, ExecutionRequest, ExecutionResult
from fleet_admin.models.host import HostRecord
from fleet_admin.models.session import HealthState, PoolEntry, Session

__all__ = [
    "CUSTOM",
    "Classification",
    "CommandResult",
    "EXECUTE_ALL",
    "ExecutionRequest",
    "ExecutionResult",
    "HealthState",
    "HostRecord",
    "MUTATING",
    "PoolEntry",
    "Session",
    "Verdict",
]
