"""Host registry: the validated catalog of fleet targets.

Raw host entries arrive already parsed (a list of mappings with
``name``, ``address`` and optional ``tags`` / ``tasks``). Bad entries
are dropped with a warning; the load only fails when nothing usable is
left.
"""

import logging
from collections.abc import Iterable, Iterator, Mapping
from fnmatch import fnmatch
from types import MappingProxyType
from typing import Any

from fleet_admin.models import HostRecord
from fleet_admin.utils.validation import validate_address

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Fatal configuration problem detected at startup."""

    pass


def _as_strings(value: Any, field_name: str, host_name: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, Iterable):
        return tuple(str(item) for item in value if item)
    logger.warning("Ignoring non-list %s for host %s: %r", field_name, host_name, value)
    return ()


class HostRegistry:
    """Immutable name -> HostRecord catalog.

    Read-only after construction, so concurrent readers need no locking.
    """

    def __init__(self, hosts: Iterable[HostRecord]) -> None:
        records: dict[str, HostRecord] = {}
        for host in hosts:
            records.setdefault(host.name, host)
        self._hosts: Mapping[str, HostRecord] = MappingProxyType(records)

    @classmethod
    def load(cls, raw_hosts: Iterable[Mapping[str, Any]]) -> "HostRegistry":
        """Build a registry from parsed host entries.

        Args:
            raw_hosts: Mappings with ``name`` and ``address`` keys, and
                optional ``tags`` and ``tasks`` lists

        Returns:
            Loaded registry

        Raises:
            ConfigError: If no valid entries remain
        """
        records: list[HostRecord] = []
        seen: set[str] = set()
        dropped = 0

        for index, raw in enumerate(raw_hosts or ()):
            if not isinstance(raw, Mapping):
                logger.warning("Dropping host entry #%d: not a mapping (%r)", index, raw)
                dropped += 1
                continue

            name = str(raw.get("name") or "").strip()
            address = str(raw.get("address") or "").strip()
            if not name or not address:
                logger.warning(
                    "Dropping host entry #%d: missing %s",
                    index,
                    "name" if not name else "address",
                )
                dropped += 1
                continue

            if name in seen:
                logger.warning("Dropping duplicate host entry #%d: %s", index, name)
                dropped += 1
                continue

            try:
                address = validate_address(address)
            except ValueError as e:
                logger.warning("Dropping host %s: %s", name, e)
                dropped += 1
                continue

            seen.add(name)
            records.append(
                HostRecord(
                    name=name,
                    address=address,
                    tags=frozenset(_as_strings(raw.get("tags"), "tags", name)),
                    tasks=_as_strings(raw.get("tasks"), "tasks", name),
                )
            )

        if not records:
            raise ConfigError(
                f"Host registry is empty: no valid host entries ({dropped} dropped)"
            )

        logger.info("Loaded %d host(s) into registry (%d dropped)", len(records), dropped)
        return cls(records)

    def get(self, name: str) -> HostRecord | None:
        """Get a host by name."""
        return self._hosts.get(name)

    def all_names(self) -> list[str]:
        """Return host names in load order."""
        return list(self._hosts)

    def exists(self, name: str) -> bool:
        return name in self._hosts

    def select(
        self,
        patterns: Iterable[str] | None = None,
        tags: Iterable[str] | None = None,
    ) -> list[HostRecord]:
        """Select hosts by glob name patterns and required tags.

        Args:
            patterns: fnmatch patterns; a host matching any is kept.
                None keeps every host.
            tags: Tags a host must all carry

        Returns:
            Matching hosts in load order
        """
        pattern_list = list(patterns) if patterns is not None else None
        required = tuple(tags or ())

        selected = []
        for host in self._hosts.values():
            if pattern_list is not None and not any(
                fnmatch(host.name, pattern) for pattern in pattern_list
            ):
                continue
            if not host.has_tags(*required):
                continue
            selected.append(host)
        return selected

    def __len__(self) -> int:
        return len(self._hosts)

    def __iter__(self) -> Iterator[HostRecord]:
        return iter(self._hosts.values())

    def __contains__(self, name: object) -> bool:
        return name in self._hosts
