"""Remote session data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from fleet_admin.protocols import Connector


class HealthState(Enum):
    """Last known health of a remote session."""

    UNKNOWN = "unknown"
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


@dataclass(eq=False)
class Session:
    """A live handle to a remote host's command channel.

    ``handle`` is whatever the transport returned from ``open``; the
    engine never looks inside it.
    """

    address: str
    handle: Any
    created_at: datetime = field(default_factory=datetime.now)
    last_used_at: datetime = field(default_factory=datetime.now)
    health: HealthState = HealthState.UNKNOWN

    @property
    def is_healthy(self) -> bool:
        """Check if the last probe succeeded."""
        return self.health is HealthState.HEALTHY


@dataclass
class PoolEntry:
    """A pooled session with last-used timestamp.

    ``connector`` is the factory that created the session; it also probes
    and closes it.
    """

    session: Session
    last_used: datetime = field(default_factory=datetime.now)
    connector: "Connector | None" = None

    def touch(self, now: datetime | None = None) -> None:
        """Update last-used timestamp."""
        self.last_used = now or datetime.now()
        self.session.last_used_at = self.last_used
