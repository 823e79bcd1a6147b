"""Utility functions for the Image Registry Operator."""

from .checksum import checksum, image_registry_checksum
from .conditions import (
    get_condition,
    set_available_condition,
    set_failing_condition,
    set_progressing_condition,
    set_removed_condition,
    update_condition,
)
from .context import (
    get_context_dict,
    get_correlation_id,
    with_correlation_id,
)
from .errors import (
    AmbiguousStorageError,
    InvalidConfigurationError,
    NotFoundError,
    StorageNotConfiguredError,
    is_conflict,
    is_not_found,
    is_permanent,
    sanitize_exception,
)
from .rate_limit import rate_limit_k8s, rate_limit_storage
from .secrets import read_optional_secret_data, read_secret_data

__all__ = [
    "checksum",
    "image_registry_checksum",
    "update_condition",
    "get_condition",
    "set_available_condition",
    "set_progressing_condition",
    "set_removed_condition",
    "set_failing_condition",
    "get_correlation_id",
    "with_correlation_id",
    "get_context_dict",
    "AmbiguousStorageError",
    "InvalidConfigurationError",
    "NotFoundError",
    "StorageNotConfiguredError",
    "is_conflict",
    "is_not_found",
    "is_permanent",
    "sanitize_exception",
    "rate_limit_k8s",
    "rate_limit_storage",
    "read_secret_data",
    "read_optional_secret_data",
]
