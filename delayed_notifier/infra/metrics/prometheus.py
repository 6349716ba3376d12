"""Prometheus metrics for the scheduling and delivery pipeline."""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

# Create custom registry for better control and exemplar support
REGISTRY = CollectorRegistry()

# Covers scan durations from 1ms to 10s
DEFAULT_LATENCY_BUCKETS = (
    0.001,
    0.005,
    0.01,
    0.025,
    0.05,
    0.1,
    0.25,
    0.5,
    1.0,
    2.5,
    5.0,
    10.0,
)

# ============================================================================
# Store Metrics
# ============================================================================

store_operation_duration_seconds = Histogram(
    "store_operation_duration_seconds",
    "Duration of store operations in seconds",
    ["operation"],
    buckets=DEFAULT_LATENCY_BUCKETS,
    registry=REGISTRY,
)

store_errors_total = Counter(
    "store_errors_total",
    "Store operations that failed after retries",
    ["operation"],
    registry=REGISTRY,
)

# ============================================================================
# Scheduling Metrics
# ============================================================================

notifications_scheduled_total = Counter(
    "notifications_scheduled_total",
    "Total number of notifications accepted for delayed delivery",
    registry=REGISTRY,
)

notifications_removed_total = Counter(
    "notifications_removed_total",
    "Total number of scheduled notifications removed before dispatch",
    registry=REGISTRY,
)

# ============================================================================
# Poller Metrics
# ============================================================================

poller_scan_duration_seconds = Histogram(
    "poller_scan_duration_seconds",
    "Duration of one due-index scan in seconds",
    buckets=DEFAULT_LATENCY_BUCKETS,
    registry=REGISTRY,
)

poller_dispatch_total = Counter(
    "poller_dispatch_total",
    "Due notifications handled by the poller",
    ["result"],  # result: published, publish_failed, abandoned, orphaned, fetch_failed
    registry=REGISTRY,
)

# ============================================================================
# Delivery Metrics
# ============================================================================

notification_deliveries_total = Counter(
    "notification_deliveries_total",
    "Per-channel delivery outcomes after retries",
    ["channel", "result"],  # result: success, failure
    registry=REGISTRY,
)

notification_final_status_total = Counter(
    "notification_final_status_total",
    "Terminal statuses written by the poller and the sender",
    ["status"],
    registry=REGISTRY,
)

consumer_messages_total = Counter(
    "consumer_messages_total",
    "Messages taken off the inbound queue by consumer workers",
    ["result"],  # result: processed, failed, malformed, empty
    registry=REGISTRY,
)

# ============================================================================
# Retry Metrics
# ============================================================================

retry_attempts_total = Counter(
    "retry_attempts_total",
    "Total number of retry attempts",
    ["operation", "attempt_number"],
    registry=REGISTRY,
)

retry_exhausted_total = Counter(
    "retry_exhausted_total",
    "Total number of operations that exhausted all retries",
    ["operation"],
    registry=REGISTRY,
)

retry_success_after_failure_total = Counter(
    "retry_success_after_failure_total",
    "Total number of operations that succeeded after retry",
    ["operation", "attempts_needed"],
    registry=REGISTRY,
)

# ============================================================================
# HTTP Error Metrics
# ============================================================================

http_errors_total = Counter(
    "http_errors_total",
    "Error responses returned by the API",
    ["error_type", "status_code"],
    registry=REGISTRY,
)

# ============================================================================
# Application Metrics
# ============================================================================

application_info = Gauge(
    "application_info",
    "Application build information",
    ["version", "service", "environment"],
    registry=REGISTRY,
)
