"""Services for fleet_admin."""

from fleet_admin.services.classifier import (
    ClassificationRule,
    CommandClassifier,
    Stage,
)
from fleet_admin.services.connection import (
    ConnectionError,
    HealthCheckFailure,
    RetryingConnector,
)
from fleet_admin.services.dispatcher import Dispatcher, ExecutionError
from fleet_admin.services.pool import SessionPool
from fleet_admin.services.ssh import RemoteCommandError, SSHExecutor

__all__ = [
    "ClassificationRule",
    "CommandClassifier",
    "ConnectionError",
    "Dispatcher",
    "ExecutionError",
    "HealthCheckFailure",
    "RemoteCommandError",
    "RetryingConnector",
    "SessionPool",
    "SSHExecutor",
    "Stage",
]
