"""Typed views of the managed object's spec."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Iterator

from .constants import (
    MANAGEMENT_STATE_FORCE,
    MANAGEMENT_STATE_MANAGED,
    MANAGEMENT_STATE_REMOVED,
    MANAGEMENT_STATE_UNMANAGED,
    STORAGE_AZURE,
    STORAGE_EMPTYDIR,
    STORAGE_GCS,
    STORAGE_PVC,
    STORAGE_S3,
    STORAGE_SWIFT,
)


class ManagementState(Enum):
    """Operator-level switch in spec.managementState."""

    MANAGED = MANAGEMENT_STATE_MANAGED
    UNMANAGED = MANAGEMENT_STATE_UNMANAGED
    REMOVED = MANAGEMENT_STATE_REMOVED
    FORCE = MANAGEMENT_STATE_FORCE

    @classmethod
    def from_spec(cls, spec: dict[str, Any]) -> "ManagementState | None":
        """Return the state named in spec, or None if it is unknown."""
        value = spec.get("managementState") or MANAGEMENT_STATE_MANAGED
        try:
            return cls(value)
        except ValueError:
            return None


def _key(f: Any) -> str:
    return f.metadata.get("key", f.name)


class _Variant:
    """Mixin mapping dataclass fields to camelCase CRD keys."""

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Any:
        data = data or {}
        kwargs = {}
        for f in fields(cls):  # type: ignore[arg-type]
            if _key(f) in data and data[_key(f)] is not None:
                kwargs[f.name] = data[_key(f)]
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        result = {}
        for f in fields(self):  # type: ignore[arg-type]
            value = getattr(self, f.name)
            if value not in ("", None, False):
                result[_key(f)] = value
        return result


@dataclass
class EmptyDirStorage(_Variant):
    """Ephemeral storage on the pod's filesystem."""


@dataclass
class S3Storage(_Variant):
    bucket: str = ""
    region: str = ""
    region_endpoint: str = field(default="", metadata={"key": "regionEndpoint"})
    encrypt: bool = False
    key_id: str = field(default="", metadata={"key": "keyID"})


@dataclass
class SwiftStorage(_Variant):
    auth_url: str = field(default="", metadata={"key": "authURL"})
    auth_version: str = field(default="", metadata={"key": "authVersion"})
    container: str = ""
    domain: str = ""
    domain_id: str = field(default="", metadata={"key": "domainID"})
    tenant: str = ""
    tenant_id: str = field(default="", metadata={"key": "tenantID"})
    region_name: str = field(default="", metadata={"key": "regionName"})


@dataclass
class GCSStorage(_Variant):
    bucket: str = ""
    region: str = ""
    project_id: str = field(default="", metadata={"key": "projectID"})


@dataclass
class PVCStorage(_Variant):
    claim: str = ""


@dataclass
class AzureStorage(_Variant):
    account_name: str = field(default="", metadata={"key": "accountName"})
    container: str = ""


# Backend name, spec key and variant type, in resolution order.
STORAGE_VARIANTS: list[tuple[str, str, type]] = [
    (STORAGE_EMPTYDIR, "emptyDir", EmptyDirStorage),
    (STORAGE_S3, "s3", S3Storage),
    (STORAGE_SWIFT, "swift", SwiftStorage),
    (STORAGE_GCS, "gcs", GCSStorage),
    (STORAGE_PVC, "pvc", PVCStorage),
    (STORAGE_AZURE, "azure", AzureStorage),
]

STORAGE_KEYS: dict[str, str] = {name: key for name, key, _ in STORAGE_VARIANTS}


@dataclass
class StorageConfig:
    """The storage union in spec.storage; zero or more variants may be set."""

    empty_dir: EmptyDirStorage | None = None
    s3: S3Storage | None = None
    swift: SwiftStorage | None = None
    gcs: GCSStorage | None = None
    pvc: PVCStorage | None = None
    azure: AzureStorage | None = None

    _ATTRS = {
        "emptyDir": "empty_dir",
        "s3": "s3",
        "swift": "swift",
        "gcs": "gcs",
        "pvc": "pvc",
        "azure": "azure",
    }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "StorageConfig":
        data = data or {}
        config = cls()
        for _, key, variant_cls in STORAGE_VARIANTS:
            if data.get(key) is not None:
                setattr(config, cls._ATTRS[key], variant_cls.from_dict(data[key]))
        return config

    def to_dict(self) -> dict[str, Any]:
        return {key: variant.to_dict() for _, key, variant in self.configured()}

    def configured(self) -> Iterator[tuple[str, str, Any]]:
        """Yield (backend name, spec key, variant) for every populated variant."""
        for name, key, _ in STORAGE_VARIANTS:
            variant = getattr(self, self._ATTRS[key])
            if variant is not None:
                yield name, key, variant

    def names(self) -> list[str]:
        return [name for name, _, _ in self.configured()]
