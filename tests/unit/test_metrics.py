"""Tests for Prometheus metrics."""

from __future__ import annotations

from prometheus_client import REGISTRY

from image_registry_operator.metrics import (
    api_call_duration_seconds,
    api_call_total,
    error_total,
    reconcile_duration_seconds,
    reconcile_total,
    resource_apply_total,
    status_writes_total,
    storage_operations_total,
    watch_events_total,
    workqueue_depth,
    workqueue_retries_total,
)


class TestMetricsExist:
    """Test that all expected metrics are defined."""

    def test_reconcile_total_exists(self):
        """Test reconcile_total counter exists."""
        # Prometheus counters don't include "_total" in their _name attribute
        assert reconcile_total._name == "image_registry_operator_reconcile"

    def test_reconcile_duration_exists(self):
        """Test reconcile_duration_seconds histogram exists."""
        assert reconcile_duration_seconds._name == "image_registry_operator_reconcile_duration_seconds"

    def test_watch_events_total_exists(self):
        """Test watch_events_total counter exists."""
        assert watch_events_total._name == "image_registry_operator_watch_events"

    def test_workqueue_metrics_exist(self):
        """Test work queue metrics exist."""
        assert workqueue_retries_total._name == "image_registry_operator_workqueue_retries"
        assert workqueue_depth._name == "image_registry_operator_workqueue_depth"

    def test_storage_operations_total_exists(self):
        """Test storage_operations_total counter exists."""
        assert storage_operations_total._name == "image_registry_operator_storage_operations"

    def test_error_total_exists(self):
        """Test error_total counter exists."""
        assert error_total._name == "image_registry_operator_error"


class TestMetricLabels:
    """Test that metrics have correct labels."""

    def test_reconcile_total_labels(self):
        """Test reconcile_total has correct labels."""
        reconcile_total.labels(result="success").inc(0)

    def test_error_total_labels(self):
        """Test error_total has correct labels."""
        error_total.labels(error_type="AmbiguousStorageError", permanent="true").inc(0)

    def test_watch_events_total_labels(self):
        """Test watch_events_total has correct labels."""
        watch_events_total.labels(kind="Deployment", action="update", result="enqueued").inc(0)

    def test_storage_operations_total_labels(self):
        """Test storage_operations_total has correct labels."""
        storage_operations_total.labels(driver="S3", operation="create", result="success").inc(0)

    def test_resource_apply_total_labels(self):
        """Test resource_apply_total has correct labels."""
        resource_apply_total.labels(kind="Service", result="created").inc(0)

    def test_status_writes_total_labels(self):
        """Test status_writes_total has correct labels."""
        status_writes_total.labels(result="skipped").inc(0)

    def test_api_call_labels(self):
        """Test API call metrics have correct labels."""
        api_call_total.labels(api_type="k8s", operation="get_image_registry", result="success").inc(0)
        api_call_duration_seconds.labels(api_type="k8s", operation="get_image_registry").observe(0.1)


class TestMetricValues:
    """Test that metrics record values."""

    def test_counter_increments(self):
        """Test that incrementing a counter is visible in the registry."""
        labels = {"kind": "Route", "action": "delete", "result": "ignored"}
        before = REGISTRY.get_sample_value("image_registry_operator_watch_events_total", labels) or 0.0

        watch_events_total.labels(**labels).inc()

        after = REGISTRY.get_sample_value("image_registry_operator_watch_events_total", labels)
        assert after == before + 1
