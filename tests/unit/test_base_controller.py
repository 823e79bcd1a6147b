"""Tests for base controller functionality."""

from __future__ import annotations

from unittest.mock import Mock, patch

import pytest

from image_registry_operator.constants import FINALIZER
from image_registry_operator.controller.base import BaseController
from image_registry_operator.utils.errors import InvalidConfigurationError


class TestBaseController:
    """Test cases for BaseController class."""

    def test_init(self):
        """Test controller initialization."""
        controller = BaseController(kind="Config")
        assert controller.kind == "Config"
        assert controller.logger is not None

    def test_ensure_finalizer_adds_when_missing(self):
        """Test that finalizer is added when not present."""
        controller = BaseController(kind="Config")
        obj = {"metadata": {"finalizers": ["other-finalizer"]}}

        assert controller.ensure_finalizer(obj) is True
        assert obj["metadata"]["finalizers"] == ["other-finalizer", FINALIZER]

    def test_ensure_finalizer_no_duplicate(self):
        """Test that finalizer is not duplicated if already present."""
        controller = BaseController(kind="Config")
        obj = {"metadata": {"finalizers": [FINALIZER]}}

        assert controller.ensure_finalizer(obj) is False
        assert obj["metadata"]["finalizers"] == [FINALIZER]

    def test_ensure_finalizer_creates_list_when_absent(self):
        """Test that finalizers list is created when absent."""
        controller = BaseController(kind="Config")
        obj = {}

        controller.ensure_finalizer(obj)

        assert obj["metadata"]["finalizers"] == [FINALIZER]

    def test_remove_finalizer(self):
        """Test that only our finalizer is removed."""
        controller = BaseController(kind="Config")
        obj = {"metadata": {"finalizers": [FINALIZER, "other-finalizer"]}}

        assert controller.remove_finalizer(obj) is True
        assert obj["metadata"]["finalizers"] == ["other-finalizer"]

    def test_remove_finalizer_no_error_when_absent(self):
        """Test that removing an absent finalizer is a no-op."""
        controller = BaseController(kind="Config")
        obj = {"metadata": {"finalizers": ["other-finalizer"]}}

        assert controller.remove_finalizer(obj) is False

    @patch("image_registry_operator.controller.base.metrics")
    def test_reconcile_with_metrics_success(self, mock_metrics):
        """Test successful reconciliation with metrics."""
        controller = BaseController(kind="Config")
        meta = {"name": "image-registry", "namespace": "openshift-image-registry"}
        reconcile_fn = Mock(return_value="done")

        assert controller.reconcile_with_metrics(meta, reconcile_fn) == "done"

        reconcile_fn.assert_called_once()
        mock_metrics.reconcile_total.labels.assert_any_call(result="started")
        mock_metrics.reconcile_total.labels.assert_any_call(result="success")
        assert mock_metrics.reconcile_duration_seconds.observe.called

    @patch("image_registry_operator.controller.base.metrics")
    @patch("image_registry_operator.controller.base.sanitize_exception")
    def test_reconcile_with_metrics_failure(self, mock_sanitize, mock_metrics):
        """Test failed reconciliation with metrics and error handling."""
        controller = BaseController(kind="Config")
        meta = {"name": "image-registry", "namespace": "openshift-image-registry"}
        test_error = ValueError("Test error")
        mock_sanitize.return_value = "Sanitized error"

        def failing_fn():
            raise test_error

        with pytest.raises(ValueError):
            controller.reconcile_with_metrics(meta, failing_fn)

        mock_sanitize.assert_called_once_with(test_error)
        mock_metrics.error_total.labels.assert_called_with(error_type="ValueError", permanent="false")
        mock_metrics.reconcile_total.labels.assert_any_call(result="error")

    @patch("image_registry_operator.controller.base.metrics")
    def test_reconcile_with_metrics_permanent_failure(self, mock_metrics):
        """Test that permanent errors are labelled as such."""
        controller = BaseController(kind="Config")

        def failing_fn():
            raise InvalidConfigurationError("bad bucket")

        with pytest.raises(InvalidConfigurationError):
            controller.reconcile_with_metrics({}, failing_fn)

        mock_metrics.error_total.labels.assert_called_with(
            error_type="InvalidConfigurationError", permanent="true"
        )

    def test_log_error_redacts_fields(self, caplog):
        """Test that sensitive fields never reach the log."""
        controller = BaseController(kind="Config")

        with caplog.at_level("ERROR"):
            controller.log_error(
                {"name": "image-registry"},
                "storage failed",
                error=RuntimeError("boom"),
                password="hunter2",
            )

        assert "hunter2" not in caplog.text
        assert "RuntimeError" in caplog.text
