"""Dependency injection container for fleet_admin.

One explicit service object wires the engine together; nothing is kept
in module-level state, so independent instances can coexist (in tests,
or one per fleet).
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from fleet_admin.config import HostKeyPolicy, HostRegistry, Settings
from fleet_admin.models import ExecutionRequest, ExecutionResult
from fleet_admin.protocols import ProgressObserver, RemoteExecutor
from fleet_admin.services.classifier import CommandClassifier
from fleet_admin.services.connection import RetryingConnector
from fleet_admin.services.dispatcher import Dispatcher
from fleet_admin.services.pool import SessionPool
from fleet_admin.services.ssh import SSHExecutor


@dataclass
class Dependencies:
    """Container for the engine's collaborators.

    Example:
        deps = Dependencies.create(hosts)
        try:
            results = await deps.run(["web-*"], ExecutionRequest("uptime"))
        finally:
            await deps.cleanup()
    """

    settings: Settings
    registry: HostRegistry
    executor: RemoteExecutor
    connector: RetryingConnector
    pool: SessionPool
    classifier: CommandClassifier
    dispatcher: Dispatcher

    @classmethod
    def create(
        cls,
        raw_hosts: Iterable[Mapping[str, Any]],
        settings: Settings | None = None,
        executor: RemoteExecutor | None = None,
        classifier: CommandClassifier | None = None,
    ) -> "Dependencies":
        """Build the engine from host entries and settings.

        Args:
            raw_hosts: Parsed host entries for the registry
            settings: Tunables (read from the environment if None)
            executor: Transport (SSH from settings if None)
            classifier: Dry-run classifier (default rules if None)

        Returns:
            Initialized Dependencies instance

        Raises:
            ConfigError: If settings or the host list are invalid
        """
        settings = (settings or Settings.from_env()).validate()
        registry = HostRegistry.load(raw_hosts)

        if executor is None:
            host_keys = HostKeyPolicy.from_settings(settings)
            executor = SSHExecutor(
                username=settings.ssh_user,
                known_hosts=host_keys.transport_known_hosts,
                strict_host_key_checking=host_keys.strict,
                connect_timeout=settings.connect_timeout,
            )

        connector = RetryingConnector(
            executor,
            max_attempts=settings.max_attempts,
            delay=settings.retry_delay,
            probe_timeout=settings.probe_timeout,
            connect_timeout=settings.connect_timeout,
            probe_command=settings.probe_command,
        )
        pool = SessionPool(connector, max_size=settings.max_pool_size)
        classifier = classifier or CommandClassifier()
        dispatcher = Dispatcher(
            pool,
            executor,
            classifier,
            max_concurrency=settings.max_concurrency,
            command_timeout=settings.command_timeout,
            dry_run=settings.dry_run,
            idle_timeout=settings.idle_timeout,
        )
        return cls(
            settings=settings,
            registry=registry,
            executor=executor,
            connector=connector,
            pool=pool,
            classifier=classifier,
            dispatcher=dispatcher,
        )

    async def run(
        self,
        patterns: Iterable[str] | None,
        request: ExecutionRequest,
        tags: Iterable[str] | None = None,
        dry_run: bool | None = None,
        on_progress: ProgressObserver | None = None,
        timeout: float | None = None,
    ) -> dict[str, ExecutionResult]:
        """Dispatch to registry hosts selected by name patterns and tags."""
        hosts = self.registry.select(patterns, tags)
        return await self.dispatcher.run(hosts, request, dry_run, on_progress, timeout)

    async def cleanup(self) -> None:
        """Clean up resources (close all sessions)."""
        await self.pool.flush()
