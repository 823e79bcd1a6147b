"""Error taxonomy and sanitization for reconcile passes."""

from __future__ import annotations

import re
from typing import Any

import kopf
from kubernetes.client.exceptions import ApiException


class StorageNotConfiguredError(kopf.PermanentError):
    """No storage backend is configured and none could be inferred."""

    def __init__(self, message: str = "storage backend not configured") -> None:
        super().__init__(message)


class AmbiguousStorageError(kopf.PermanentError):
    """More than one storage backend is configured."""

    def __init__(self, names: list[str]) -> None:
        self.names = list(names)
        super().__init__(
            "exactly one storage type should be configured at the same time, "
            f"got {len(self.names)}: {self.names}"
        )


class InvalidConfigurationError(kopf.PermanentError):
    """The storage configuration can never be applied as written."""


class NotFoundError(Exception):
    """A watched object is not present in the local cache."""

    def __init__(self, kind: str, name: str, namespace: str | None = None) -> None:
        self.kind = kind
        self.name = name
        self.namespace = namespace
        location = f"{namespace}/{name}" if namespace else name
        super().__init__(f"{kind} {location} not found")


def is_permanent(error: BaseException) -> bool:
    """Return True when retrying cannot fix the error without a spec change."""
    return isinstance(error, kopf.PermanentError)


def is_not_found(error: BaseException) -> bool:
    """Return True for cache misses and 404 responses."""
    if isinstance(error, NotFoundError):
        return True
    return isinstance(error, ApiException) and error.status == 404


def is_conflict(error: BaseException) -> bool:
    """Return True for 409 responses (stale resourceVersion)."""
    return isinstance(error, ApiException) and error.status == 409


# Patterns that might expose credentials
SENSITIVE_PATTERNS = [
    r"access[_\s]?key[_\s]?id[:\s]+([A-Z0-9]{20})",
    r"secret[_\s]?access[_\s]?key[:\s]+([A-Za-z0-9/+=]{40})",
    r"session[_\s]?token[:\s]+([A-Za-z0-9/+=]+)",
    r"account[_\s]?key[:\s]+([A-Za-z0-9/+=]+)",
]

# Fields to redact completely
SENSITIVE_FIELDS = {
    "access_key_id",
    "secret_access_key",
    "accesskey",
    "secretkey",
    "accountkey",
    "session_token",
    "password",
    "credentials",
    "token",
}


def sanitize_error_message(message: str) -> str:
    """Sanitize error message to remove credentials.

    Args:
        message: Original error message

    Returns:
        Sanitized error message with sensitive data redacted
    """
    sanitized = message

    for pattern in SENSITIVE_PATTERNS:
        sanitized = re.sub(pattern, "[REDACTED]", sanitized, flags=re.IGNORECASE)

    for field in SENSITIVE_FIELDS:
        sanitized = re.sub(
            rf"{field}[:=\s]+([^\s,;\)]+)",
            f"{field}: [REDACTED]",
            sanitized,
            flags=re.IGNORECASE,
        )

    return sanitized


def sanitize_exception(error: BaseException) -> str:
    """Sanitize exception message."""
    return sanitize_error_message(str(error))


def sanitize_dict(data: dict[str, Any], sensitive_keys: set[str] | None = None) -> dict[str, Any]:
    """Sanitize dictionary by redacting sensitive fields.

    Args:
        data: Dictionary to sanitize
        sensitive_keys: Additional keys to redact (merged with SENSITIVE_FIELDS)

    Returns:
        Sanitized dictionary with sensitive values redacted
    """
    all_sensitive = SENSITIVE_FIELDS | (sensitive_keys or set())
    sanitized: dict[str, Any] = {}

    for key, value in data.items():
        key_lower = key.lower()
        if any(sensitive in key_lower for sensitive in all_sensitive):
            sanitized[key] = "[REDACTED]"
        elif isinstance(value, dict):
            sanitized[key] = sanitize_dict(value, sensitive_keys)
        elif isinstance(value, str):
            sanitized[key] = sanitize_error_message(value)
        else:
            sanitized[key] = value

    return sanitized
