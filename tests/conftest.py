"""Shared fixtures for unit tests."""

from __future__ import annotations

import os

# Client-side throttles are read at import time; keep them out of the way.
os.environ.setdefault("K8S_RATE_LIMIT_PER_SECOND", "100000")
os.environ.setdefault("STORAGE_RATE_LIMIT_PER_SECOND", "100000")

from typing import Any  # noqa: E402
from unittest.mock import MagicMock  # noqa: E402

import pytest  # noqa: E402

from image_registry_operator.parameters import Parameters  # noqa: E402


@pytest.fixture
def params() -> Parameters:
    return Parameters(namespace="openshift-image-registry")


@pytest.fixture
def image_registry() -> dict[str, Any]:
    """A managed object as returned by the API server."""
    return {
        "apiVersion": "imageregistry.operator.openshift.io/v1",
        "kind": "Config",
        "metadata": {
            "name": "image-registry",
            "namespace": "openshift-image-registry",
            "uid": "8a9c0e6c-3f1b-4c43-9d0e-5a7c1b2f0d11",
            "generation": 1,
            "resourceVersion": "100",
            "finalizers": ["imageregistry.operator.openshift.io/finalizer"],
        },
        "spec": {
            "managementState": "Managed",
            "httpSecret": "secret",
            "storage": {"s3": {"bucket": "registry-bucket", "region": "us-east-1"}},
        },
        "status": {},
    }


@pytest.fixture
def core_api() -> MagicMock:
    return MagicMock()
