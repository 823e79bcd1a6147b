"""Tests for Kubernetes secrets utilities."""

from __future__ import annotations

import base64
from unittest.mock import Mock

import pytest
from kubernetes import client

from image_registry_operator.utils.secrets import read_optional_secret_data, read_secret_data


def _secret(data):
    secret = Mock()
    secret.data = data
    return secret


class TestReadSecretData:
    """Test cases for read_secret_data function."""

    def test_read_secret_data_decodes_values(self):
        """Test that base64 values are decoded."""
        mock_api = Mock()
        mock_api.read_namespaced_secret.return_value = _secret({
            "REGISTRY_STORAGE_S3_ACCESSKEY": base64.b64encode(b"AKIA").decode("utf-8"),
            "REGISTRY_STORAGE_S3_SECRETKEY": base64.b64encode(b"s3cr3t").decode("utf-8"),
        })

        result = read_secret_data(mock_api, "ns", "creds")

        assert result == {"REGISTRY_STORAGE_S3_ACCESSKEY": "AKIA", "REGISTRY_STORAGE_S3_SECRETKEY": "s3cr3t"}
        mock_api.read_namespaced_secret.assert_called_once_with(name="creds", namespace="ns")

    def test_read_secret_data_bytes(self):
        """Test getting secret values that are already bytes."""
        mock_api = Mock()
        mock_api.read_namespaced_secret.return_value = _secret({"key": b"value"})

        assert read_secret_data(mock_api, "ns", "creds") == {"key": "value"}

    def test_read_secret_data_empty(self):
        """Test a secret without data."""
        mock_api = Mock()
        mock_api.read_namespaced_secret.return_value = _secret(None)

        assert read_secret_data(mock_api, "ns", "creds") == {}

    def test_read_secret_data_not_found(self):
        """Test that a missing secret raises ValueError."""
        mock_api = Mock()
        mock_api.read_namespaced_secret.side_effect = client.exceptions.ApiException(status=404)

        with pytest.raises(ValueError, match="not found"):
            read_secret_data(mock_api, "ns", "creds")

    def test_read_secret_data_api_error(self):
        """Test that other API errors propagate."""
        mock_api = Mock()
        mock_api.read_namespaced_secret.side_effect = client.exceptions.ApiException(status=500)

        with pytest.raises(client.exceptions.ApiException):
            read_secret_data(mock_api, "ns", "creds")


class TestReadOptionalSecretData:
    """Test cases for read_optional_secret_data function."""

    def test_missing_secret_is_empty(self):
        """Test that a missing secret yields an empty dict."""
        mock_api = Mock()
        mock_api.read_namespaced_secret.side_effect = client.exceptions.ApiException(status=404)

        assert read_optional_secret_data(mock_api, "ns", "creds") == {}

    def test_api_error_propagates(self):
        """Test that only absence is tolerated."""
        mock_api = Mock()
        mock_api.read_namespaced_secret.side_effect = client.exceptions.ApiException(status=403)

        with pytest.raises(client.exceptions.ApiException):
            read_optional_secret_data(mock_api, "ns", "creds")
