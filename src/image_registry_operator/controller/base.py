"""Base controller class with logging, finalizer and metrics helpers."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, TypeVar

from .. import metrics
from ..constants import FINALIZER, FIELD_MANAGER
from ..logging import log_resource_event
from ..utils.errors import is_permanent, sanitize_dict, sanitize_exception

_T = TypeVar("_T")


class BaseController:
    """Common functionality for controllers of a single resource kind."""

    def __init__(self, kind: str):
        """Initialize base controller.

        Args:
            kind: The Kubernetes resource kind (e.g., "Config")
        """
        self.kind = kind
        self.logger = logging.getLogger(__name__)

    def _get_resource_context(self, meta: dict[str, Any]) -> dict[str, Any]:
        """Extract common resource context from metadata.

        Args:
            meta: Kubernetes resource metadata

        Returns:
            Dictionary with resource context fields
        """
        return {
            "name": meta.get("name", "unknown"),
            "namespace": meta.get("namespace", ""),
            "uid": meta.get("uid", "unknown"),
        }

    def _log(
        self,
        level: int,
        meta: dict[str, Any],
        message: str,
        event: str,
        reason: str,
        **kwargs: Any,
    ) -> None:
        ctx = self._get_resource_context(meta)
        log_resource_event(
            self.logger,
            controller=FIELD_MANAGER,
            resource_kind=self.kind,
            resource_name=ctx["name"],
            namespace=ctx["namespace"],
            uid=ctx["uid"],
            event=event,
            reason=reason,
            message=message,
            level=level,
            **sanitize_dict(kwargs),
        )

    def log_info(
        self,
        meta: dict[str, Any],
        message: str,
        event: str = "info",
        reason: str = "Info",
        **kwargs: Any,
    ) -> None:
        """Log an info-level structured log message.

        Args:
            meta: Kubernetes resource metadata
            message: Log message
            event: Event type (default: "info")
            reason: Reason for the event (default: "Info")
            **kwargs: Additional fields to include in the log
        """
        self._log(logging.INFO, meta, message, event, reason, **kwargs)

    def log_warning(
        self,
        meta: dict[str, Any],
        message: str,
        event: str = "warning",
        reason: str = "Warning",
        **kwargs: Any,
    ) -> None:
        """Log a warning-level structured log message."""
        self._log(logging.WARNING, meta, message, event, reason, **kwargs)

    def log_error(
        self,
        meta: dict[str, Any],
        message: str,
        error: BaseException | None = None,
        event: str = "error",
        reason: str = "Error",
        **kwargs: Any,
    ) -> None:
        """Log an error-level structured log message.

        Args:
            meta: Kubernetes resource metadata
            message: Log message
            error: Optional exception to include sanitized error details
            event: Event type (default: "error")
            reason: Reason for the event (default: "Error")
            **kwargs: Additional fields to include in the log
        """
        log_data = kwargs.copy()

        if error is not None:
            log_data["error"] = sanitize_exception(error)
            log_data["error_type"] = type(error).__name__
            log_data["permanent"] = is_permanent(error)

        self._log(logging.ERROR, meta, message, event, reason, **log_data)

    def ensure_finalizer(self, obj: dict[str, Any]) -> bool:
        """Ensure finalizer is present in metadata; return True if it was added."""
        meta = obj.setdefault("metadata", {})
        finalizers = meta.get("finalizers") or []
        if FINALIZER in finalizers:
            return False
        meta["finalizers"] = [*finalizers, FINALIZER]
        return True

    def remove_finalizer(self, obj: dict[str, Any]) -> bool:
        """Remove finalizer from metadata; return True if it was present."""
        meta = obj.setdefault("metadata", {})
        finalizers = meta.get("finalizers") or []
        if FINALIZER not in finalizers:
            return False
        meta["finalizers"] = [f for f in finalizers if f != FINALIZER]
        return True

    def reconcile_with_metrics(
        self,
        meta: dict[str, Any],
        reconcile_fn: Callable[[], _T],
    ) -> _T:
        """Execute reconciliation with metrics and error logging.

        Args:
            meta: Kubernetes resource metadata
            reconcile_fn: Function to execute for reconciliation

        Returns:
            Whatever ``reconcile_fn`` returns

        Raises:
            Exception: Re-raises whatever ``reconcile_fn`` raised
        """
        metrics.reconcile_total.labels(result="started").inc()

        start_time = time.time()
        try:
            result = reconcile_fn()
            metrics.reconcile_total.labels(result="success").inc()
            return result
        except Exception as e:
            permanent = is_permanent(e)
            metrics.error_total.labels(error_type=type(e).__name__, permanent=str(permanent).lower()).inc()
            metrics.reconcile_total.labels(result="error").inc()
            self.log_error(meta, "Reconciliation failed", error=e, reason="ReconciliationFailed")
            raise
        finally:
            duration = time.time() - start_time
            metrics.reconcile_duration_seconds.observe(duration)
