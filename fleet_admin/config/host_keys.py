"""SSH host key policy.

``FLEET_KNOWN_HOSTS`` names one or more known_hosts files separated by
``os.pathsep``, or ``none`` to turn verification off. Resolution fails
closed: in strict mode at least one named file has to exist.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fleet_admin.config.settings import Settings

logger = logging.getLogger(__name__)

DISABLED = "none"


def default_known_hosts() -> Path:
    return Path.home() / ".ssh" / "known_hosts"


@dataclass(frozen=True)
class HostKeyPolicy:
    """Resolved host key settings handed to the SSH transport."""

    known_hosts: tuple[str, ...] = ()
    strict: bool = True

    @property
    def verifies(self) -> bool:
        """Whether host keys are checked at all."""
        return bool(self.known_hosts)

    @property
    def transport_known_hosts(self) -> str | list[str] | None:
        """known_hosts in the shape asyncssh accepts (None disables checks)."""
        if not self.known_hosts:
            return None
        if len(self.known_hosts) == 1:
            return self.known_hosts[0]
        return list(self.known_hosts)

    @classmethod
    def resolve(cls, value: str | None, strict: bool = True) -> "HostKeyPolicy":
        """Build a policy from a ``FLEET_KNOWN_HOSTS`` style value.

        Args:
            value: Path list, ``none``, or None for ``~/.ssh/known_hosts``
            strict: Reject unknown host keys and missing files

        Raises:
            FileNotFoundError: If strict and none of the files exist
        """
        if value and value.strip().lower() == DISABLED:
            logger.critical(
                "SSH host key verification DISABLED (FLEET_KNOWN_HOSTS=none). "
                "Connections are vulnerable to man-in-the-middle attacks."
            )
            return cls(strict=strict)

        if value and value.strip():
            candidates = [
                Path(os.path.expanduser(part.strip()))
                for part in value.split(os.pathsep)
                if part.strip()
            ]
        else:
            candidates = [default_known_hosts()]

        found = [path for path in candidates if path.is_file()]
        for path in candidates:
            if path not in found:
                logger.warning("known_hosts file %s does not exist, skipping", path)

        if found:
            return cls(known_hosts=tuple(str(path) for path in found), strict=strict)

        listed = ", ".join(str(path) for path in candidates)
        if strict:
            raise FileNotFoundError(
                f"SSH host key verification required but known_hosts "
                f"not found at {listed}.\n\n"
                f"Add host keys with: ssh-keyscan <hostname> >> {candidates[0]}\n"
                f"or point FLEET_KNOWN_HOSTS at existing files, or set "
                f"FLEET_STRICT_HOST_KEY_CHECKING=false (or FLEET_KNOWN_HOSTS=none) "
                f"to connect without verification."
            )

        logger.warning(
            "No known_hosts file found (%s), host keys will not be verified", listed
        )
        return cls(strict=False)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "HostKeyPolicy":
        return cls.resolve(settings.known_hosts, settings.strict_host_key_checking)
