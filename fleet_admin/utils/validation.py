"""Host address validation utilities."""

import re
from typing import Final

# Characters that could smuggle shell or transport syntax into an address
SUSPICIOUS_CHARS: Final[list[str]] = ["/", "\\", ";", "&", "|", "$", "`", " ", "\n", "\r", "\x00"]

ADDRESS_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^(?:(?P<user>[^@\s]+)@)?(?P<host>\[[0-9a-fA-F:]+\]|[^:@\s]+)(?::(?P<port>\d{1,5}))?$"
)


def validate_address(address: str) -> str:
    """Validate a host address.

    Accepts ``host``, ``user@host``, ``host:port`` and ``[ipv6]:port`` forms.

    Args:
        address: The address to validate

    Returns:
        The address with surrounding whitespace stripped

    Raises:
        ValueError: If the address is invalid
    """
    if not address or not address.strip():
        raise ValueError("Address cannot be empty")

    address = address.strip()

    if len(address) > 253:
        raise ValueError(f"Address too long: {len(address)} chars")

    for char in SUSPICIOUS_CHARS:
        if char in address:
            raise ValueError(f"Address contains invalid characters: {address!r}")

    if not ADDRESS_PATTERN.match(address):
        raise ValueError(f"Malformed address: {address!r}")

    return address


def split_address(address: str, default_port: int = 22) -> tuple[str | None, str, int]:
    """Split an address into (user, host, port).

    Raises:
        ValueError: If the address is malformed or the port is out of range
    """
    match = ADDRESS_PATTERN.match(validate_address(address))
    if match is None:
        raise ValueError(f"Malformed address: {address!r}")

    host = match.group("host").strip("[]")
    port = int(match.group("port")) if match.group("port") else default_port
    if not 0 < port < 65536:
        raise ValueError(f"Port out of range in address: {address!r}")

    return match.group("user"), host, port
