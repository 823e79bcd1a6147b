"""S3 storage driver."""

from __future__ import annotations

import logging
import re
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from .. import metrics
from ..constants import STORAGE_S3
from ..tracing import trace_span
from ..utils.errors import InvalidConfigurationError
from ..utils.rate_limit import rate_limit_storage
from ..utils.secrets import read_optional_secret_data
from .base import BaseDriver, env, generate_name, secret_env

logger = logging.getLogger(__name__)

ENV_ACCESS_KEY = "REGISTRY_STORAGE_S3_ACCESSKEY"
ENV_SECRET_KEY = "REGISTRY_STORAGE_S3_SECRETKEY"

CLUSTER_CREDENTIALS_NAMESPACE = "kube-system"
CLUSTER_CREDENTIALS_SECRET = "aws-creds"

_BUCKET_NAME_RE = re.compile(r"^[a-z0-9][a-z0-9.-]{1,61}[a-z0-9]$")
_IP_ADDRESS_RE = re.compile(r"^\d+\.\d+\.\d+\.\d+$")
_REGION_RE = re.compile(r"^[a-z]{2}(-[a-z]+)+-\d+$")


def validate_bucket_name(name: str) -> None:
    """Check a bucket name against the S3 naming rules.

    Raises:
        InvalidConfigurationError: If the name can never be created
    """
    if not _BUCKET_NAME_RE.match(name):
        raise InvalidConfigurationError(
            f"bucket name {name!r} must be 3-63 characters of lowercase letters, digits, dots and hyphens"
        )
    if ".." in name or _IP_ADDRESS_RE.match(name):
        raise InvalidConfigurationError(f"bucket name {name!r} is not a valid S3 bucket name")


class S3Driver(BaseDriver):
    """Keeps images in an S3 bucket, creating it when absent."""

    name = STORAGE_S3
    identity_key = "bucket"

    def __init__(self, config: Any, ctx: Any) -> None:
        super().__init__(config, ctx)
        self._client: Any = None

    def _credentials(self) -> tuple[str, str]:
        """Return (access key, secret key) from the user secret or the cluster."""
        user = read_optional_secret_data(
            self.ctx.core_api, self.ctx.namespace, self.ctx.params.user_configuration_secret
        )
        if user.get(ENV_ACCESS_KEY) and user.get(ENV_SECRET_KEY):
            return user[ENV_ACCESS_KEY], user[ENV_SECRET_KEY]

        cluster = read_optional_secret_data(
            self.ctx.core_api, CLUSTER_CREDENTIALS_NAMESPACE, CLUSTER_CREDENTIALS_SECRET
        )
        if cluster.get("aws_access_key_id") and cluster.get("aws_secret_access_key"):
            return cluster["aws_access_key_id"], cluster["aws_secret_access_key"]

        raise RuntimeError(
            f"no S3 credentials in secret {self.ctx.namespace}/{self.ctx.params.user_configuration_secret} "
            f"or {CLUSTER_CREDENTIALS_NAMESPACE}/{CLUSTER_CREDENTIALS_SECRET}"
        )

    @property
    def client(self) -> Any:
        if self._client is None:
            access_key, secret_key = self._credentials()
            self._client = boto3.client(
                "s3",
                endpoint_url=self.config.region_endpoint or None,
                region_name=self.config.region or None,
                aws_access_key_id=access_key,
                aws_secret_access_key=secret_key,
                config=Config(signature_version="s3v4"),
            )
        return self._client

    def config_env(self) -> list[dict[str, Any]]:
        secret = self.ctx.params.private_configuration_secret
        variables = [
            env("REGISTRY_STORAGE", "s3"),
            env("REGISTRY_STORAGE_S3_BUCKET", self.config.bucket),
            env("REGISTRY_STORAGE_S3_REGION", self.config.region),
            env("REGISTRY_STORAGE_S3_ENCRYPT", str(self.config.encrypt).lower()),
            secret_env(ENV_ACCESS_KEY, secret),
            secret_env(ENV_SECRET_KEY, secret),
        ]
        if self.config.region_endpoint:
            variables.append(env("REGISTRY_STORAGE_S3_REGIONENDPOINT", self.config.region_endpoint))
        if self.config.key_id:
            variables.append(env("REGISTRY_STORAGE_S3_KEYID", self.config.key_id))
        return variables

    def secrets(self) -> dict[str, str]:
        access_key, secret_key = self._credentials()
        return {ENV_ACCESS_KEY: access_key, ENV_SECRET_KEY: secret_key}

    def validate_configuration(self, cr: dict[str, Any]) -> bool:
        """Default region and bucket from the install config, then validate them."""
        if not self.config.region or not self.config.bucket:
            install_config = self.ctx.install_config()
            if not self.config.region:
                self.config.region = install_config.region
            if not self.config.bucket:
                self.config.bucket = generate_name(
                    install_config.cluster_name, "image-registry", self.config.region
                )

        if not self.config.region and not self.config.region_endpoint:
            raise InvalidConfigurationError("S3 storage requires a region or a regionEndpoint")
        if self.config.region and not self.config.region_endpoint and not _REGION_RE.match(self.config.region):
            raise InvalidConfigurationError(f"unknown S3 region {self.config.region!r}")
        validate_bucket_name(self.config.bucket)
        if "." in self.config.bucket and self.config.region_endpoint.startswith("https://"):
            raise InvalidConfigurationError(
                f"bucket name {self.config.bucket!r} contains dots and cannot be used with a custom https endpoint"
            )
        if self.config.key_id and not self.config.encrypt:
            raise InvalidConfigurationError("keyID requires encrypt to be enabled")

        return self._write_spec(cr)

    @rate_limit_storage
    def _bucket_exists(self) -> bool:
        try:
            self.client.head_bucket(Bucket=self.config.bucket)
            return True
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in ("404", "NoSuchBucket", "NotFound"):
                return False
            raise

    def storage_exists(self, cr: dict[str, Any]) -> bool:
        if not self.config.bucket:
            return False
        return self._bucket_exists()

    def create_storage(self, cr: dict[str, Any]) -> bool:
        if self._bucket_exists():
            return self._record_storage(cr, managed=self.storage_managed(cr))

        with trace_span("create_storage", kind=STORAGE_S3, attributes={"bucket.name": self.config.bucket}):
            params: dict[str, Any] = {"Bucket": self.config.bucket}
            if self.config.region and self.config.region != "us-east-1":
                params["CreateBucketConfiguration"] = {"LocationConstraint": self.config.region}
            try:
                rate_limit_storage(self.client.create_bucket)(**params)
                if self.config.encrypt:
                    rule: dict[str, Any] = {"SSEAlgorithm": "aws:kms" if self.config.key_id else "AES256"}
                    if self.config.key_id:
                        rule["KMSMasterKeyID"] = self.config.key_id
                    rate_limit_storage(self.client.put_bucket_encryption)(
                        Bucket=self.config.bucket,
                        ServerSideEncryptionConfiguration={
                            "Rules": [{"ApplyServerSideEncryptionByDefault": rule}]
                        },
                    )
            except ClientError:
                metrics.storage_operations_total.labels(driver=self.name, operation="create", result="failed").inc()
                raise

        metrics.storage_operations_total.labels(driver=self.name, operation="create", result="success").inc()
        logger.info(f"created S3 bucket {self.config.bucket}")
        return self._record_storage(cr, managed=True)

    def _empty_bucket(self) -> None:
        paginator = self.client.get_paginator("list_object_versions")
        for page in paginator.paginate(Bucket=self.config.bucket):
            objects = [
                {"Key": item["Key"], "VersionId": item["VersionId"]}
                for item in page.get("Versions", []) + page.get("DeleteMarkers", [])
            ]
            if objects:
                rate_limit_storage(self.client.delete_objects)(
                    Bucket=self.config.bucket,
                    Delete={"Objects": objects, "Quiet": True},
                )

    def remove_storage(self, cr: dict[str, Any]) -> bool:
        if not self.storage_managed(cr):
            return super().remove_storage(cr)

        with trace_span("remove_storage", kind=STORAGE_S3, attributes={"bucket.name": self.config.bucket}):
            try:
                self._empty_bucket()
                rate_limit_storage(self.client.delete_bucket)(Bucket=self.config.bucket)
            except ClientError as e:
                if e.response.get("Error", {}).get("Code") != "NoSuchBucket":
                    metrics.storage_operations_total.labels(driver=self.name, operation="remove", result="failed").inc()
                    raise

        metrics.storage_operations_total.labels(driver=self.name, operation="remove", result="success").inc()
        logger.info(f"deleted S3 bucket {self.config.bucket}")
        return self._clear_storage(cr)
