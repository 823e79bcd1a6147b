"""Deterministic fingerprints of Kubernetes objects."""

from __future__ import annotations

import hashlib
import json
from typing import Any


def checksum(data: Any) -> str:
    """Return a SHA-256 digest of ``data`` serialized as canonical JSON.

    Keys are sorted so the digest does not depend on dict insertion order.

    Raises:
        TypeError: If ``data`` is not JSON serializable
    """
    encoded = json.dumps(data, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


def image_registry_checksum(obj: dict[str, Any]) -> str:
    """Fingerprint the spec and status of the managed object."""
    return checksum({"spec": obj.get("spec") or {}, "status": obj.get("status") or {}})
