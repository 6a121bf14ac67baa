"""fleet_admin: pooled remote sessions and concurrent command dispatch."""

from fleet_admin.config import ConfigError, HostRegistry, Settings
from fleet_admin.dependencies import Dependencies
from fleet_admin.models import (
    Classification,
    ExecutionRequest,
    ExecutionResult,
    HostRecord,
    Verdict,
)
from fleet_admin.services import (
    CommandClassifier,
    ConnectionError,
    Dispatcher,
    ExecutionError,
    RetryingConnector,
    SessionPool,
    SSHExecutor,
)
from fleet_admin.utils import Secret

__version__ = "0.1.0"

__all__ = [
    "Classification",
    "CommandClassifier",
    "ConfigError",
    "ConnectionError",
    "Dependencies",
    "Dispatcher",
    "ExecutionError",
    "ExecutionRequest",
    "ExecutionResult",
    "HostRecord",
    "HostRegistry",
    "RetryingConnector",
    "Secret",
    "SessionPool",
    "Settings",
    "SSHExecutor",
    "Verdict",
]
