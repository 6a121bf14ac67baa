"""Fan-out of one command across many hosts.

Each host is handled independently: acquire a session, classify, then
execute or log. Failures are recorded per host and never abort the
batch, so a dispatch over N distinct hosts always yields N results.
"""

import asyncio
import logging
import time
from collections.abc import Iterable
from datetime import timedelta
from typing import TYPE_CHECKING

from fleet_admin.models import Classification, ExecutionRequest, ExecutionResult
from fleet_admin.services.classifier import CommandClassifier
from fleet_admin.services.connection import ConnectionError
from fleet_admin.utils.redact import (
    redact_args,
    redact_command,
    redact_text,
    sensitive_values,
)

if TYPE_CHECKING:
    from fleet_admin.models import HostRecord
    from fleet_admin.protocols import ProgressObserver, RemoteExecutor
    from fleet_admin.services.pool import SessionPool

logger = logging.getLogger(__name__)


class ExecutionError(Exception):
    """A command failed on a host whose session was healthy.

    Never retried automatically: re-running a mutating command is the
    caller's decision.
    """

    def __init__(
        self,
        host: str,
        description: str,
        cause: BaseException,
        classification: Classification | None = None,
        secrets: Iterable[str] = (),
    ):
        """Initialize execution error.

        Args:
            host: Host name the command ran on
            description: Human readable command label
            cause: Underlying exception
            classification: Verdict the command ran under
            secrets: Plain-text values to mask in the message
        """
        self.host = host
        self.description = description
        self.cause = cause
        self.classification = classification
        reason = str(cause) or type(cause).__name__
        super().__init__(
            redact_text(
                f"'{description}' failed on {host}: {redact_command(reason)}", secrets
            )
        )


class Dispatcher:
    """Runs requests across hosts with bounded concurrency.

    The dispatcher is the only component that acquires sessions; callers
    hand it hosts and a request and get back one result per host.
    """

    def __init__(
        self,
        pool: "SessionPool",
        executor: "RemoteExecutor",
        classifier: CommandClassifier | None = None,
        max_concurrency: int = 8,
        command_timeout: float = 60.0,
        dry_run: bool = False,
        idle_timeout: float | None = None,
    ) -> None:
        """Initialize dispatcher.

        Args:
            pool: Session pool to acquire from
            executor: Transport used to run commands
            classifier: Dry-run classifier (default rule set if None)
            max_concurrency: Hosts processed at once (must be > 0)
            command_timeout: Seconds allowed per remote call
            dry_run: Default dry-run mode when a run does not specify one
            idle_timeout: Seconds of idleness after which pooled sessions
                are swept at the start of each run; None disables

        Raises:
            ValueError: If max_concurrency is not positive
        """
        if max_concurrency <= 0:
            raise ValueError(f"max_concurrency must be > 0, got {max_concurrency}")

        self.pool = pool
        self.executor = executor
        self.classifier = classifier or CommandClassifier()
        self.max_concurrency = max_concurrency
        self.command_timeout = command_timeout
        self.dry_run = dry_run
        self.idle_timeout = idle_timeout

    async def run(
        self,
        hosts: Iterable["HostRecord"],
        request: ExecutionRequest,
        dry_run: bool | None = None,
        on_progress: "ProgressObserver | None" = None,
        timeout: float | None = None,
    ) -> dict[str, ExecutionResult]:
        """Dispatch a request to every host.

        Args:
            hosts: Target hosts; duplicates (by name) run once
            request: Command to run
            dry_run: Override for the dispatcher's default mode
            on_progress: Called with (host name, result) as each host finishes
            timeout: Overall seconds for the batch; hosts still running
                when it expires get a failed result

        Returns:
            Mapping of host name to result, one entry per distinct host
        """
        dry_run = self.dry_run if dry_run is None else dry_run

        unique: dict[str, "HostRecord"] = {}
        for host in hosts:
            unique.setdefault(host.name, host)

        if not unique:
            return {}

        if self.idle_timeout is not None:
            await self.pool.sweep_idle(timedelta(seconds=self.idle_timeout))

        # Command text is free-form and may embed credentials
        label = redact_command(request.label)

        logger.info(
            "Dispatching '%s' to %d host(s) (dry_run=%s, concurrency=%d)",
            label,
            len(unique),
            dry_run,
            self.max_concurrency,
        )

        semaphore = asyncio.Semaphore(self.max_concurrency)
        start = time.perf_counter()

        async def run_single(host: "HostRecord") -> ExecutionResult:
            try:
                result = await asyncio.wait_for(
                    self._run_bounded(semaphore, host, request, label, dry_run),
                    timeout=timeout,
                )
            except TimeoutError:
                logger.warning("Dispatch deadline of %ss exceeded on %s", timeout, host.name)
                result = ExecutionResult(
                    host=host.name,
                    success=False,
                    error=ExecutionError(
                        host.name,
                        label,
                        TimeoutError(f"dispatch deadline of {timeout}s exceeded"),
                    ),
                )
            except Exception as e:
                logger.exception("Unexpected error dispatching to %s", host.name)
                result = ExecutionResult(
                    host=host.name,
                    success=False,
                    error=ExecutionError(
                        host.name,
                        label,
                        e,
                        secrets=sensitive_values(request.args),
                    ),
                )
            self._notify(on_progress, result)
            return result

        results = await asyncio.gather(*(run_single(host) for host in unique.values()))

        failed = sum(1 for result in results if not result.success)
        logger.info(
            "Dispatch of '%s' completed: %d ok, %d failed in %.1fms",
            label,
            len(results) - failed,
            failed,
            (time.perf_counter() - start) * 1000,
        )
        return {result.host: result for result in results}

    async def run_one(
        self,
        host: "HostRecord",
        request: ExecutionRequest,
        dry_run: bool | None = None,
        on_progress: "ProgressObserver | None" = None,
        timeout: float | None = None,
    ) -> ExecutionResult:
        """Dispatch a request to a single host."""
        results = await self.run([host], request, dry_run, on_progress, timeout)
        return results[host.name]

    async def _run_bounded(
        self,
        semaphore: asyncio.Semaphore,
        host: "HostRecord",
        request: ExecutionRequest,
        label: str,
        dry_run: bool,
    ) -> ExecutionResult:
        async with semaphore:
            return await self._run_host(host, request, label, dry_run)

    async def _run_host(
        self,
        host: "HostRecord",
        request: ExecutionRequest,
        label: str,
        dry_run: bool,
    ) -> ExecutionResult:
        """Acquire, classify, then execute or log for one host."""
        try:
            session = await self.pool.acquire(host)
        except ConnectionError as e:
            logger.warning("Skipping %s: %s", host.name, e)
            return ExecutionResult(host=host.name, success=False, error=e)

        classification = request.dry_run_override or self.classifier.classify(
            request.command, dry_run
        )

        if not self.classifier.should_execute(classification, dry_run):
            logger.info(
                "[DRY RUN] Would execute on %s: %s | command=%r args=%r (%s)",
                host.name,
                label,
                redact_command(request.command),
                redact_args(request.args),
                classification,
            )
            return ExecutionResult(
                host=host.name,
                success=True,
                value=None,
                classification=classification,
                executed=False,
            )

        logger.debug("Executing '%s' on %s (%s)", label, host.name, classification)
        try:
            value = await asyncio.wait_for(
                self.executor.invoke(
                    session.handle, request.command, request.args, self.command_timeout
                ),
                timeout=self.command_timeout,
            )
        except Exception as e:
            error = ExecutionError(
                host.name,
                label,
                e,
                classification=classification,
                secrets=sensitive_values(request.args),
            )
            logger.error("%s", error)
            return ExecutionResult(
                host=host.name,
                success=False,
                error=error,
                classification=classification,
                executed=True,
            )

        return ExecutionResult(
            host=host.name,
            success=True,
            value=value,
            classification=classification,
            executed=True,
        )

    @staticmethod
    def _notify(on_progress: "ProgressObserver | None", result: ExecutionResult) -> None:
        if on_progress is None:
            return
        try:
            on_progress(result.host, result)
        except Exception:
            logger.exception("Progress callback failed for %s", result.host)
