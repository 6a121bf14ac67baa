"""Protocol interfaces for dependency inversion.

The engine is transport-agnostic: anything that can open a channel to a
host address, run a command on it and close it again can drive the
session pool and dispatcher.

Usage Example:

    from fleet_admin.protocols import RemoteExecutor

    class AgentExecutor:
        async def open(self, address):
            return await agent_client.connect(address)

        async def invoke(self, handle, command, args, timeout):
            return await handle.call(command, *args, timeout=timeout)

        async def close(self, handle):
            await handle.disconnect()

    assert isinstance(AgentExecutor(), RemoteExecutor)
"""

from collections.abc import Callable, Sequence
from typing import Any, Protocol, runtime_checkable

from fleet_admin.models import ExecutionResult, HostRecord, Session


@runtime_checkable
class RemoteExecutor(Protocol):
    """Protocol for the transport that actually talks to hosts."""

    async def open(self, address: str) -> Any:
        """Open a transport session to a host address.

        Args:
            address: Host address from the registry

        Returns:
            Opaque transport handle

        Raises:
            Exception: Any transport failure
        """
        ...

    async def invoke(
        self,
        handle: Any,
        command: str,
        args: Sequence[Any],
        timeout: float,
    ) -> Any:
        """Run a command over an open handle.

        Args:
            handle: Handle returned by ``open``
            command: Opaque command payload
            args: Ordered argument values
            timeout: Seconds before the call is abandoned

        Returns:
            Transport-specific result value
        """
        ...

    async def close(self, handle: Any) -> None:
        """Close a handle. Must tolerate already-closed handles."""
        ...


@runtime_checkable
class Connector(Protocol):
    """Protocol for session factories used by the pool."""

    async def connect(self, address: str) -> Session:
        """Open a healthy session or raise ConnectionError."""
        ...

    async def probe(self, session: Session) -> None:
        """Health-check a session, raising HealthCheckFailure if dead."""
        ...

    async def close(self, session: Session) -> None:
        """Close the session's transport."""
        ...


@runtime_checkable
class SessionSource(Protocol):
    """Protocol for anything that hands out live sessions per host."""

    async def acquire(self, host: HostRecord, connector: Connector | None = None) -> Session:
        ...

    async def evict(self, address: str) -> None:
        ...

    async def flush(self) -> None:
        ...


ProgressObserver = Callable[[str, ExecutionResult], None]
"""Callback invoked once per host as dispatch results arrive."""
