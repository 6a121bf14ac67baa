"""Host catalog data models."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class HostRecord:
    """A target host in the fleet.

    Immutable once loaded into the registry.
    """

    name: str
    address: str
    tags: frozenset[str] = field(default_factory=frozenset)
    tasks: tuple[str, ...] = ()

    def has_tags(self, *tags: str) -> bool:
        """Check whether the host carries every given tag."""
        return all(tag in self.tags for tag in tags)
