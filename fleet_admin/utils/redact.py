"""Redaction of secret-looking values before they reach logs or errors.

Dry-run logging is the main audit trail for bulk operations, so every
argument list is passed through :func:`redact_args` before it is
formatted into a message.
"""

import re
from collections.abc import Iterable
from typing import Any, Final

REDACTED: Final[str] = "***REDACTED***"

# Minimum length for an unmarked string to be treated as an opaque token
MIN_TOKEN_LENGTH: Final[int] = 16

SENSITIVE_KEYS: Final[tuple[str, ...]] = (
    "password",
    "passwd",
    "pwd",
    "secret",
    "token",
    "apikey",
    "api_key",
    "key",
    "credential",
)

IDENTIFIER_CHARS: Final[frozenset[str]] = frozenset(
    "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789.-_:"
)

_KEY_VALUE = re.compile(r"^-{0,2}(?P<key>[\w.-]+)\s*[=:]\s*(?P<value>.+)$")


class Secret:
    """Wrapper marking a value as a credential.

    ``str()`` and ``repr()`` never expose the wrapped value; call
    :meth:`reveal` at the point it has to be sent to a host.
    """

    __slots__ = ("_value",)

    def __init__(self, value: str) -> None:
        self._value = value

    def reveal(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return f"Secret({REDACTED})"

    def __str__(self) -> str:
        return REDACTED

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Secret) and other._value == self._value

    def __hash__(self) -> int:
        return hash(self._value)


def _is_sensitive_key(key: str) -> bool:
    key = key.lower()
    return any(marker in key for marker in SENSITIVE_KEYS)


def looks_like_secret(value: Any) -> bool:
    """Heuristic check for credential-like argument values.

    Flags ``Secret`` instances, ``key=value`` pairs with a sensitive key,
    and long whitespace-free strings that mix character classes the way
    tokens, hashes and generated passwords do.
    """
    if isinstance(value, Secret):
        return True
    if not isinstance(value, str):
        return False

    match = _KEY_VALUE.match(value)
    if match and _is_sensitive_key(match.group("key")):
        return True

    if len(value) < MIN_TOKEN_LENGTH or any(c.isspace() for c in value):
        return False
    # Paths and plain words are long but not opaque
    if "/" in value or "\\" in value:
        return False

    has_upper = any(c.isupper() for c in value)
    has_lower = any(c.islower() for c in value)
    has_digit = any(c.isdigit() for c in value)

    # Hostnames, dotted names and timestamps stay readable unless they mix case and digits
    if set(value) <= IDENTIFIER_CHARS:
        return has_upper and has_lower and has_digit

    has_symbol = any(not c.isalnum() for c in value)
    return sum([has_upper, has_lower, has_digit, has_symbol]) >= 3


def redact_value(value: Any) -> Any:
    """Return a log-safe stand-in for a single argument."""
    if isinstance(value, Secret):
        return REDACTED
    if isinstance(value, dict):
        return {
            k: REDACTED if _is_sensitive_key(str(k)) else redact_value(v)
            for k, v in value.items()
        }
    if isinstance(value, str) and looks_like_secret(value):
        match = _KEY_VALUE.match(value)
        if match and _is_sensitive_key(match.group("key")):
            return f"{value[: match.start('value')]}{REDACTED}"
        return REDACTED
    return value


def redact_args(args: Iterable[Any]) -> list[Any]:
    """Redact every secret-looking value in an argument list."""
    return [redact_value(arg) for arg in args]


def sensitive_values(args: Iterable[Any]) -> list[str]:
    """Collect the plain text of every secret-looking argument."""
    values: list[str] = []
    for arg in args:
        if isinstance(arg, Secret):
            values.append(arg.reveal())
        elif isinstance(arg, dict):
            values.extend(
                str(v) for k, v in arg.items() if _is_sensitive_key(str(k)) and v
            )
        elif isinstance(arg, str) and looks_like_secret(arg):
            match = _KEY_VALUE.match(arg)
            values.append(match.group("value") if match else arg)
    return values


def redact_text(text: str, secrets: Iterable[str]) -> str:
    """Replace known secret values inside free text."""
    # Longest first so a secret containing another is fully masked
    for secret in sorted({s for s in secrets if s}, key=len, reverse=True):
        text = text.replace(secret, REDACTED)
    return text


_COMMAND_TOKEN = re.compile(r"\S+")
_QUOTES = "'\""
# Tokens carrying these are code (method calls, script blocks), not credentials
_CODE_CHARS: Final[frozenset[str]] = frozenset("(){}[]")


def _redact_token(token: str) -> str:
    core = token.strip(_QUOTES)
    if not core:
        return token

    match = _KEY_VALUE.match(core)
    if match and _is_sensitive_key(match.group("key")):
        start = token.index(core) + match.start("value")
        return f"{token[:start]}{REDACTED}"

    if _CODE_CHARS.isdisjoint(core) and looks_like_secret(core):
        return token.replace(core, REDACTED, 1)
    return token


def redact_command(text: str) -> str:
    """Mask secret-looking tokens inside a free-form command line.

    Whitespace and surrounding quotes are kept, so the redacted line
    still reads like the command that was sent.
    """
    return _COMMAND_TOKEN.sub(lambda match: _redact_token(match.group(0)), text)
