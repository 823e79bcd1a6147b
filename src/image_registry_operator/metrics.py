"""Prometheus metrics for the Image Registry Operator."""

from prometheus_client import Counter, Gauge, Histogram

# Reconciliation metrics
reconcile_total = Counter(
    "image_registry_operator_reconcile_total",
    "Total number of reconcile passes",
    ["result"],
)

reconcile_duration_seconds = Histogram(
    "image_registry_operator_reconcile_duration_seconds",
    "Duration of reconcile passes in seconds",
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

error_total = Counter(
    "image_registry_operator_error_total",
    "Total number of reconcile errors",
    ["error_type", "permanent"],
)

# Event ingestion metrics
watch_events_total = Counter(
    "image_registry_operator_watch_events_total",
    "Watch notifications received, by outcome",
    ["kind", "action", "result"],
)

# Work queue metrics
workqueue_retries_total = Counter(
    "image_registry_operator_workqueue_retries_total",
    "Total number of rate limited re-adds to the work queue",
)

workqueue_depth = Gauge(
    "image_registry_operator_workqueue_depth",
    "Number of pending work queue items (0 or 1)",
)

# Status write metrics
status_writes_total = Counter(
    "image_registry_operator_status_writes_total",
    "Managed object write-backs, by outcome",
    ["result"],
)

# Storage metrics
storage_operations_total = Counter(
    "image_registry_operator_storage_operations_total",
    "Total number of storage backend operations",
    ["driver", "operation", "result"],
)

# Child resource metrics
resource_apply_total = Counter(
    "image_registry_operator_resource_apply_total",
    "Child resource apply operations, by outcome",
    ["kind", "result"],
)

# API call metrics
api_call_total = Counter(
    "image_registry_operator_api_call_total",
    "Total number of API calls",
    ["api_type", "operation", "result"],
)

api_call_duration_seconds = Histogram(
    "image_registry_operator_api_call_duration_seconds",
    "Duration of API calls in seconds",
    ["api_type", "operation"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0],
)
