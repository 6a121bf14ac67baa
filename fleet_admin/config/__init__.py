"""Configuration module for fleet_admin.

Provides focused classes for different configuration concerns:
- HostRegistry: Validated catalog of target hosts
- HostKeyPolicy: Resolves the SSH known_hosts files
- Settings: Environment variable configuration
"""

from fleet_admin.config.host_keys import HostKeyPolicy
from fleet_admin.config.registry import ConfigError, HostRegistry
from fleet_admin.config.settings import Settings

__all__ = ["ConfigError", "HostKeyPolicy", "HostRegistry", "Settings"]
