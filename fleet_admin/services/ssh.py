"""asyncssh-backed RemoteExecutor."""

import logging
from collections.abc import Sequence
from typing import Any

import asyncssh

from fleet_admin.models import CommandResult
from fleet_admin.utils.shell import build_command
from fleet_admin.utils.validation import split_address

logger = logging.getLogger(__name__)


class RemoteCommandError(RuntimeError):
    """A remote command exited with a non-zero status."""

    def __init__(self, command: str, returncode: int, stderr: str):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip().splitlines()[-1] if stderr.strip() else "no stderr"
        super().__init__(f"{command} exited with code {returncode}: {detail}")


def _decode(stream: Any) -> str:
    if stream is None:
        return ""
    if isinstance(stream, bytes):
        return stream.decode("utf-8", errors="replace")
    return str(stream)


class SSHExecutor:
    """Runs commands over pooled asyncssh connections.

    Addresses take the form ``[user@]host[:port]``. Credentials come from
    the caller (keys, agent or password); this class never stores or
    looks them up.
    """

    def __init__(
        self,
        username: str | None = None,
        client_keys: Sequence[str] | None = None,
        password: str | None = None,
        known_hosts: str | Sequence[str] | None = None,
        strict_host_key_checking: bool = True,
        connect_timeout: float | None = None,
    ) -> None:
        """Initialize executor.

        Args:
            username: Default login user when the address has none
            client_keys: Private key paths, or None for agent/default keys
            password: Password authentication, if used
            known_hosts: known_hosts path (or paths), or None to disable verification
            strict_host_key_checking: Whether to reject unknown host keys
            connect_timeout: asyncssh-level connect timeout in seconds
        """
        self.username = username
        self.client_keys = list(client_keys) if client_keys else None
        self._password = password
        self._known_hosts = known_hosts
        self._strict_host_key = strict_host_key_checking
        self.connect_timeout = connect_timeout

        if self._known_hosts is None:
            logger.warning(
                "SSH host key verification DISABLED - vulnerable to MITM attacks. "
                "Set FLEET_KNOWN_HOSTS to a valid known_hosts file path."
            )

    def _connect_kwargs(
        self, user: str | None, known_hosts: str | Sequence[str] | None
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "known_hosts": known_hosts,
            "client_keys": self.client_keys,
        }
        if user or self.username:
            kwargs["username"] = user or self.username
        if self._password is not None:
            kwargs["password"] = self._password
        if self.connect_timeout is not None:
            kwargs["connect_timeout"] = self.connect_timeout
        return kwargs

    async def open(self, address: str) -> asyncssh.SSHClientConnection:
        """Open an SSH connection to an address."""
        user, hostname, port = split_address(address)
        logger.debug("Opening SSH connection to %s@%s:%d", user or self.username, hostname, port)

        try:
            return await asyncssh.connect(
                hostname, port=port, **self._connect_kwargs(user, self._known_hosts)
            )
        except asyncssh.HostKeyNotVerifiable as e:
            if self._strict_host_key:
                logger.error(
                    "Host key verification failed for %s: %s. Add the host key to %s "
                    "or set FLEET_STRICT_HOST_KEY_CHECKING=false",
                    address,
                    e,
                    self._known_hosts,
                )
                raise
            logger.warning(
                "Host key not verified for %s (strict mode disabled): %s", address, e
            )
            return await asyncssh.connect(
                hostname, port=port, **self._connect_kwargs(user, None)
            )

    async def invoke(
        self,
        handle: asyncssh.SSHClientConnection,
        command: str,
        args: Sequence[Any],
        timeout: float,
    ) -> CommandResult:
        """Run a command with shell-quoted arguments.

        Returns:
            CommandResult for a zero exit status

        Raises:
            RemoteCommandError: If the command exits non-zero
        """
        result = await handle.run(build_command(command, args), check=False, timeout=timeout)

        output = CommandResult(
            output=_decode(result.stdout),
            error=_decode(result.stderr),
            returncode=result.returncode if result.returncode is not None else -1,
        )
        if output.returncode != 0:
            # Report the bare command: arguments may carry secrets
            raise RemoteCommandError(command, output.returncode, output.error)
        return output

    async def close(self, handle: asyncssh.SSHClientConnection) -> None:
        """Close the connection. Already-closed handles are ignored."""
        if handle.is_closed():
            return
        handle.close()
