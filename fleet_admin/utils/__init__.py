"""Utilities for fleet_admin."""

from fleet_admin.utils.console import ColorfulFormatter, DispatchFormatter, configure_logging
from fleet_admin.utils.redact import (
    REDACTED,
    Secret,
    looks_like_secret,
    redact_args,
    redact_command,
    redact_text,
    sensitive_values,
)
from fleet_admin.utils.shell import build_command, quote_arg
from fleet_admin.utils.validation import split_address, validate_address

__all__ = [
    "build_command",
    "ColorfulFormatter",
    "configure_logging",
    "DispatchFormatter",
    "looks_like_secret",
    "quote_arg",
    "REDACTED",
    "redact_args",
    "redact_command",
    "redact_text",
    "Secret",
    "sensitive_values",
    "split_address",
    "validate_address",
]
