"""Tests for the S3 storage driver."""

from __future__ import annotations

import base64
from unittest.mock import MagicMock, Mock, patch

import pytest
from botocore.exceptions import ClientError

from image_registry_operator.clusterconfig import InstallConfig
from image_registry_operator.models import S3Storage
from image_registry_operator.storage import ClusterContext
from image_registry_operator.storage.s3 import S3Driver, validate_bucket_name
from image_registry_operator.utils.errors import InvalidConfigurationError


def _secret(data):
    secret = Mock()
    secret.data = {k: base64.b64encode(v.encode()).decode() for k, v in data.items()}
    return secret


def _client_error(code, operation="HeadBucket"):
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


@pytest.fixture
def ctx(params):
    core_api = MagicMock()
    core_api.read_namespaced_secret.return_value = _secret({
        "REGISTRY_STORAGE_S3_ACCESSKEY": "AKIAEXAMPLE",
        "REGISTRY_STORAGE_S3_SECRETKEY": "secretexample",
    })
    cluster_config = MagicMock()
    cluster_config.get_install_config.return_value = InstallConfig(
        cluster_name="mycluster", platform="aws", region="eu-west-1"
    )
    return ClusterContext(params=params, core_api=core_api, cluster_config=cluster_config)


@pytest.fixture
def s3_client():
    with patch("image_registry_operator.storage.s3.boto3.client") as mock_factory:
        client = MagicMock()
        mock_factory.return_value = client
        yield client


class TestValidateBucketName:
    """Test cases for validate_bucket_name."""

    @pytest.mark.parametrize("name", ["registry", "my.registry-1", "abc"])
    def test_valid_names(self, name):
        """Test names that follow the S3 rules."""
        validate_bucket_name(name)

    @pytest.mark.parametrize("name", ["ab", "Registry", "-registry", "a..b", "192.168.1.1", "x" * 64])
    def test_invalid_names(self, name):
        """Test names S3 would reject."""
        with pytest.raises(InvalidConfigurationError):
            validate_bucket_name(name)


class TestValidateConfiguration:
    """Test cases for S3Driver.validate_configuration."""

    def test_defaults_filled_from_install_config(self, ctx, image_registry):
        """Test that region and bucket are defaulted and written to spec."""
        image_registry["spec"]["storage"] = {"s3": {}}
        driver = S3Driver(S3Storage(), ctx)

        assert driver.validate_configuration(image_registry) is True

        s3 = image_registry["spec"]["storage"]["s3"]
        assert s3["region"] == "eu-west-1"
        assert s3["bucket"].startswith("mycluster-image-registry-eu-west-1-")

    def test_complete_configuration_is_unchanged(self, ctx, image_registry):
        """Test that a complete configuration needs no write."""
        driver = S3Driver(S3Storage(bucket="registry-bucket", region="us-east-1"), ctx)

        assert driver.validate_configuration(image_registry) is False
        ctx.cluster_config.get_install_config.assert_not_called()

    def test_key_id_requires_encrypt(self, ctx, image_registry):
        """Test that a KMS key without encryption is rejected."""
        driver = S3Driver(S3Storage(bucket="b-1", region="us-east-1", key_id="kms-key"), ctx)

        with pytest.raises(InvalidConfigurationError, match="keyID"):
            driver.validate_configuration(image_registry)

    def test_dotted_bucket_with_https_endpoint(self, ctx, image_registry):
        """Test that dotted buckets cannot be used with a custom https endpoint."""
        driver = S3Driver(
            S3Storage(bucket="my.bucket", region="us-east-1", region_endpoint="https://s3.example.com"),
            ctx,
        )

        with pytest.raises(InvalidConfigurationError):
            driver.validate_configuration(image_registry)

    def test_unknown_region(self, ctx, image_registry):
        """Test that a malformed region is rejected."""
        driver = S3Driver(S3Storage(bucket="bucket", region="mars"), ctx)

        with pytest.raises(InvalidConfigurationError, match="region"):
            driver.validate_configuration(image_registry)


class TestDeploymentConfiguration:
    """Test cases for env, secrets and credentials."""

    def test_config_env(self, ctx):
        """Test the registry environment for S3."""
        driver = S3Driver(S3Storage(bucket="bucket", region="us-east-1", encrypt=True), ctx)
        env = {e["name"]: e for e in driver.config_env()}

        assert env["REGISTRY_STORAGE"]["value"] == "s3"
        assert env["REGISTRY_STORAGE_S3_BUCKET"]["value"] == "bucket"
        assert env["REGISTRY_STORAGE_S3_ENCRYPT"]["value"] == "true"
        assert env["REGISTRY_STORAGE_S3_ACCESSKEY"]["valueFrom"]["secretKeyRef"]["name"] == (
            "image-registry-private-configuration"
        )
        assert "REGISTRY_STORAGE_S3_REGIONENDPOINT" not in env

    def test_secrets_from_user_secret(self, ctx):
        """Test that user provided credentials are used."""
        driver = S3Driver(S3Storage(bucket="bucket", region="us-east-1"), ctx)

        assert driver.secrets() == {
            "REGISTRY_STORAGE_S3_ACCESSKEY": "AKIAEXAMPLE",
            "REGISTRY_STORAGE_S3_SECRETKEY": "secretexample",
        }

    def test_secrets_fall_back_to_cluster_credentials(self, ctx):
        """Test the fallback to the cluster's AWS credentials."""
        ctx.core_api.read_namespaced_secret.side_effect = [
            _secret({}),
            _secret({"aws_access_key_id": "AKIACLUSTER", "aws_secret_access_key": "clustersecret"}),
        ]
        driver = S3Driver(S3Storage(bucket="bucket", region="us-east-1"), ctx)

        assert driver.secrets()["REGISTRY_STORAGE_S3_ACCESSKEY"] == "AKIACLUSTER"

    def test_missing_credentials(self, ctx):
        """Test that missing credentials are reported."""
        ctx.core_api.read_namespaced_secret.return_value = _secret({})
        driver = S3Driver(S3Storage(bucket="bucket", region="us-east-1"), ctx)

        with pytest.raises(RuntimeError, match="no S3 credentials"):
            driver.secrets()


class TestStorageLifecycle:
    """Test cases for create, exists and remove."""

    def test_create_missing_bucket(self, ctx, image_registry, s3_client):
        """Test that an absent bucket is created and owned."""
        s3_client.head_bucket.side_effect = _client_error("404")
        driver = S3Driver(S3Storage(bucket="registry-bucket", region="us-east-1"), ctx)

        assert driver.create_storage(image_registry) is True

        s3_client.create_bucket.assert_called_once_with(Bucket="registry-bucket")
        assert image_registry["status"]["storage"] == {
            "s3": {"bucket": "registry-bucket", "region": "us-east-1"}
        }
        assert image_registry["status"]["storageManaged"] is True

    def test_create_bucket_outside_us_east_1(self, ctx, image_registry, s3_client):
        """Test that the location constraint is passed for other regions."""
        s3_client.head_bucket.side_effect = _client_error("NoSuchBucket")
        driver = S3Driver(S3Storage(bucket="registry-bucket", region="eu-west-1", encrypt=True), ctx)

        driver.create_storage(image_registry)

        s3_client.create_bucket.assert_called_once_with(
            Bucket="registry-bucket",
            CreateBucketConfiguration={"LocationConstraint": "eu-west-1"},
        )
        s3_client.put_bucket_encryption.assert_called_once()

    def test_existing_bucket_is_not_owned(self, ctx, image_registry, s3_client):
        """Test that a pre-existing bucket is recorded but not owned."""
        driver = S3Driver(S3Storage(bucket="registry-bucket", region="us-east-1"), ctx)

        driver.create_storage(image_registry)

        s3_client.create_bucket.assert_not_called()
        assert image_registry["status"]["storageManaged"] is False

    def test_head_bucket_error_propagates(self, ctx, image_registry, s3_client):
        """Test that errors other than absence are raised."""
        s3_client.head_bucket.side_effect = _client_error("403")
        driver = S3Driver(S3Storage(bucket="registry-bucket", region="us-east-1"), ctx)

        with pytest.raises(ClientError):
            driver.storage_exists(image_registry)

    def test_remove_owned_bucket(self, ctx, image_registry, s3_client):
        """Test that an owned bucket is emptied and deleted."""
        image_registry["status"] = {
            "storage": {"s3": {"bucket": "registry-bucket", "region": "us-east-1"}},
            "storageManaged": True,
        }
        s3_client.get_paginator.return_value.paginate.return_value = [
            {"Versions": [{"Key": "blob", "VersionId": "1"}], "DeleteMarkers": []},
        ]
        driver = S3Driver(S3Storage(bucket="registry-bucket", region="us-east-1"), ctx)

        assert driver.remove_storage(image_registry) is True

        s3_client.delete_objects.assert_called_once_with(
            Bucket="registry-bucket",
            Delete={"Objects": [{"Key": "blob", "VersionId": "1"}], "Quiet": True},
        )
        s3_client.delete_bucket.assert_called_once_with(Bucket="registry-bucket")
        assert "storage" not in image_registry["status"]
        assert image_registry["status"]["storageManaged"] is False

    def test_remove_unowned_bucket_keeps_it(self, ctx, image_registry, s3_client):
        """Test that a bucket the operator did not create is never deleted."""
        image_registry["status"] = {
            "storage": {"s3": {"bucket": "registry-bucket", "region": "us-east-1"}},
            "storageManaged": False,
        }
        driver = S3Driver(S3Storage(bucket="registry-bucket", region="us-east-1"), ctx)

        driver.remove_storage(image_registry)

        s3_client.delete_bucket.assert_not_called()
        assert "storage" not in image_registry["status"]

    def test_storage_changed(self, ctx, image_registry):
        """Test drift detection against the applied configuration."""
        driver = S3Driver(S3Storage(bucket="registry-bucket", region="us-east-1"), ctx)
        assert driver.storage_changed(image_registry) is True

        image_registry["status"]["storage"] = {"s3": {"bucket": "registry-bucket", "region": "us-east-1"}}
        assert driver.storage_changed(image_registry) is False


class TestOwnershipAcrossChanges:
    """Test cases for ownership when the configured bucket changes."""

    def test_user_bucket_never_inherits_ownership(self, ctx, image_registry, s3_client):
        """Test that an existing bucket configured later is not owned."""
        image_registry["status"] = {
            "storage": {"s3": {"bucket": "operator-created", "region": "us-east-1"}},
            "storageManaged": True,
        }
        driver = S3Driver(S3Storage(bucket="users-precious-bucket", region="us-east-1"), ctx)

        assert driver.storage_managed(image_registry) is False
        assert driver.create_storage(image_registry) is True

        s3_client.create_bucket.assert_not_called()
        assert image_registry["status"]["storage"] == {
            "s3": {"bucket": "users-precious-bucket", "region": "us-east-1"}
        }
        assert image_registry["status"]["storageManaged"] is False
        assert image_registry["status"]["retiredStorage"] == [
            {"s3": {"bucket": "operator-created", "region": "us-east-1"}}
        ]

    def test_user_bucket_kept_on_removal(self, ctx, image_registry, s3_client):
        """Test that removal through the new bucket leaves it alone."""
        image_registry["status"] = {
            "storage": {"s3": {"bucket": "operator-created", "region": "us-east-1"}},
            "storageManaged": True,
        }
        driver = S3Driver(S3Storage(bucket="users-precious-bucket", region="us-east-1"), ctx)
        driver.create_storage(image_registry)

        driver.remove_storage(image_registry)

        s3_client.delete_bucket.assert_not_called()
        assert "storage" not in image_registry["status"]
        assert image_registry["status"]["retiredStorage"] == [
            {"s3": {"bucket": "operator-created", "region": "us-east-1"}}
        ]

    def test_new_owned_bucket_retires_previous(self, ctx, image_registry, s3_client):
        """Test that replacing an owned bucket keeps the old one reachable."""
        s3_client.head_bucket.side_effect = _client_error("404")
        image_registry["status"] = {
            "storage": {"s3": {"bucket": "operator-created", "region": "us-east-1"}},
            "storageManaged": True,
        }
        driver = S3Driver(S3Storage(bucket="second-bucket", region="us-east-1"), ctx)

        driver.create_storage(image_registry)

        assert image_registry["status"]["storageManaged"] is True
        assert image_registry["status"]["retiredStorage"] == [
            {"s3": {"bucket": "operator-created", "region": "us-east-1"}}
        ]

    def test_retired_bucket_is_owned_and_removed(self, ctx, image_registry, s3_client):
        """Test that a retired bucket is deleted and its record dropped."""
        s3_client.get_paginator.return_value.paginate.return_value = []
        image_registry["status"] = {
            "storage": {"s3": {"bucket": "second-bucket", "region": "us-east-1"}},
            "storageManaged": True,
            "retiredStorage": [{"s3": {"bucket": "operator-created", "region": "us-east-1"}}],
        }
        driver = S3Driver(S3Storage(bucket="operator-created", region="us-east-1"), ctx)

        assert driver.storage_managed(image_registry) is True
        assert driver.remove_storage(image_registry) is True

        s3_client.delete_bucket.assert_called_once_with(Bucket="operator-created")
        assert "retiredStorage" not in image_registry["status"]
        assert image_registry["status"]["storage"] == {
            "s3": {"bucket": "second-bucket", "region": "us-east-1"}
        }
        assert image_registry["status"]["storageManaged"] is True

    def test_region_change_keeps_ownership(self, ctx, image_registry, s3_client):
        """Test that the same bucket stays owned when other settings change."""
        image_registry["status"] = {
            "storage": {"s3": {"bucket": "registry-bucket", "region": "us-east-1"}},
            "storageManaged": True,
        }
        driver = S3Driver(S3Storage(bucket="registry-bucket", region="us-east-1", encrypt=True), ctx)

        assert driver.storage_changed(image_registry) is True
        driver.create_storage(image_registry)

        assert image_registry["status"]["storageManaged"] is True
        assert "retiredStorage" not in image_registry["status"]

    def test_switching_back_reclaims_retired_bucket(self, ctx, image_registry, s3_client):
        """Test that returning to a retired bucket makes it current again."""
        image_registry["status"] = {
            "storage": {"s3": {"bucket": "users-bucket", "region": "us-east-1"}},
            "storageManaged": False,
            "retiredStorage": [{"s3": {"bucket": "operator-created", "region": "us-east-1"}}],
        }
        driver = S3Driver(S3Storage(bucket="operator-created", region="us-east-1"), ctx)

        driver.create_storage(image_registry)

        assert image_registry["status"]["storageManaged"] is True
        assert "retiredStorage" not in image_registry["status"]
