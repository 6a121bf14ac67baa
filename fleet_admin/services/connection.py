"""Session factory with bounded retry and an immediate health probe."""

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from fleet_admin.models import HealthState, Session

if TYPE_CHECKING:
    from fleet_admin.protocols import RemoteExecutor

logger = logging.getLogger(__name__)


class ConnectionError(Exception):
    """Failed to establish a session after all retry attempts."""

    def __init__(self, address: str, attempts: int, last_cause: BaseException | None):
        """Initialize connection error.

        Args:
            address: Host address that could not be reached
            attempts: Number of attempts made
            last_cause: Exception raised by the final attempt
        """
        self.address = address
        self.attempts = attempts
        self.last_cause = last_cause
        super().__init__(
            f"Cannot connect to {address} after {attempts} attempt(s): {last_cause!r}"
        )


class HealthCheckFailure(Exception):
    """A session did not answer its no-op probe."""

    def __init__(self, address: str, cause: BaseException):
        self.address = address
        self.cause = cause
        super().__init__(f"Health probe failed for {address}: {cause!r}")


class RetryingConnector:
    """Opens sessions through a RemoteExecutor with fixed-delay retry.

    Each attempt opens a fresh transport handle and probes it at once. A
    handle whose probe fails is closed and the whole attempt is retried;
    the transport layer itself is never asked to retry.
    """

    def __init__(
        self,
        executor: "RemoteExecutor",
        max_attempts: int = 3,
        delay: float = 2.0,
        probe_timeout: float = 10.0,
        connect_timeout: float = 30.0,
        probe_command: str = "date",
    ) -> None:
        """Initialize connector.

        Args:
            executor: Transport used to open, probe and close handles
            max_attempts: Attempts before giving up (must be > 0)
            delay: Fixed seconds to sleep between attempts
            probe_timeout: Seconds allowed for the health probe
            connect_timeout: Seconds allowed for opening the transport
            probe_command: No-op command used as the health probe

        Raises:
            ValueError: If max_attempts is not positive
        """
        if max_attempts <= 0:
            raise ValueError(f"max_attempts must be > 0, got {max_attempts}")

        self.executor = executor
        self.max_attempts = max_attempts
        self.delay = delay
        self.probe_timeout = probe_timeout
        self.connect_timeout = connect_timeout
        self.probe_command = probe_command

    async def connect(
        self,
        address: str,
        max_attempts: int | None = None,
        delay: float | None = None,
        probe_timeout: float | None = None,
    ) -> Session:
        """Open a healthy session to an address.

        Args:
            address: Host address
            max_attempts: Override for the configured attempt bound
            delay: Override for the configured inter-attempt delay
            probe_timeout: Override for the configured probe timeout

        Returns:
            Session with health HEALTHY

        Raises:
            ConnectionError: If every attempt failed
        """
        attempts = max_attempts if max_attempts is not None else self.max_attempts
        wait = delay if delay is not None else self.delay
        last_cause: BaseException | None = None

        for attempt in range(1, attempts + 1):
            try:
                session = await self._attempt(address, probe_timeout)
            except Exception as e:
                last_cause = e
                logger.warning(
                    "Connection attempt %d/%d to %s failed: %s: %s",
                    attempt,
                    attempts,
                    address,
                    type(e).__name__,
                    e,
                )
                if attempt < attempts:
                    await asyncio.sleep(wait)
                continue

            logger.info(
                "Session established to %s (attempt %d/%d)",
                address,
                attempt,
                attempts,
            )
            return session

        logger.error(
            "Connection attempts exhausted for %s (%d attempt(s)): %r",
            address,
            attempts,
            last_cause,
        )
        raise ConnectionError(address, attempts, last_cause) from last_cause

    async def _attempt(self, address: str, probe_timeout: float | None) -> Session:
        """Open one handle and probe it, discarding it on failure."""
        logger.debug("Opening transport to %s", address)
        handle = await asyncio.wait_for(
            self.executor.open(address), timeout=self.connect_timeout
        )
        session = Session(address=address, handle=handle)

        try:
            await self.probe(session, timeout=probe_timeout)
        except BaseException:
            # Includes cancellation: never leave a half-open handle behind
            await self._discard(handle, address)
            raise

        return session

    async def probe(self, session: Session, timeout: float | None = None) -> None:
        """Run the no-op probe command on a session.

        Updates ``session.health`` either way.

        Raises:
            HealthCheckFailure: If the probe errors or times out
        """
        limit = timeout if timeout is not None else self.probe_timeout
        try:
            await asyncio.wait_for(
                self.executor.invoke(session.handle, self.probe_command, (), limit),
                timeout=limit,
            )
        except Exception as e:
            session.health = HealthState.UNHEALTHY
            raise HealthCheckFailure(session.address, e) from e

        session.health = HealthState.HEALTHY

    async def close(self, session: Session) -> None:
        """Close a session's transport handle."""
        await self.executor.close(session.handle)
        session.health = HealthState.UNHEALTHY

    async def _discard(self, handle: Any, address: str) -> None:
        try:
            await self.executor.close(handle)
        except Exception as e:
            logger.warning("Error closing discarded handle for %s: %s", address, e)
