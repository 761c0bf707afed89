"""Prometheus metrics for observability."""

from functools import lru_cache

from prometheus_client import Counter, Gauge, Histogram, Info

from taskboard_service import __version__


class Metrics:
    """Prometheus metrics for the taskboard service."""

    def __init__(self) -> None:
        """Initialize all metrics."""
        self.info = Info(
            "taskboard_service",
            "Taskboard service information",
        )
        self.info.info({"version": __version__})

        # Task operations
        self.task_operations_total = Counter(
            "task_operations_total",
            "Total number of task operations",
            ["operation", "status"],
        )

        self.task_operation_duration_seconds = Histogram(
            "task_operation_duration_seconds",
            "Duration of task operations in seconds",
            ["operation"],
            buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
        )

        self.checklist_items_merged_total = Counter(
            "checklist_items_merged_total",
            "Checklist items merged into tasks",
            ["outcome"],
        )

        # Notifications
        self.notifications_created_total = Counter(
            "notifications_created_total",
            "Total number of persisted notifications",
            ["noti_type"],
        )

        self.realtime_push_total = Counter(
            "realtime_push_total",
            "Real-time notification push attempts per recipient",
            ["outcome"],
        )

        self.best_effort_failures_total = Counter(
            "best_effort_failures_total",
            "Secondary side effects that failed after the primary write succeeded",
            ["effect"],
        )

        self.notifications_read_total = Counter(
            "notifications_read_total",
            "Read acknowledgments recorded",
        )

        # Presence
        self.online_users = Gauge(
            "online_users",
            "Users with an active real-time channel",
        )

        # Storage
        self.storage_operations_total = Counter(
            "storage_operations_total",
            "Total number of document store operations",
            ["collection", "operation", "status"],
        )

    def record_task_operation(
        self,
        operation: str,
        status: str,
        duration: float,
    ) -> None:
        """Record a task operation metric.

        Args:
            operation: Operation name (create, update, checklist, status, delete)
            status: Operation status (success, error)
            duration: Operation duration in seconds
        """
        self.task_operations_total.labels(operation=operation, status=status).inc()
        self.task_operation_duration_seconds.labels(operation=operation).observe(duration)

    def record_push(self, outcome: str) -> None:
        """Record one real-time push outcome (delivered, offline, failed)."""
        self.realtime_push_total.labels(outcome=outcome).inc()


@lru_cache
def get_metrics() -> Metrics:
    """Get cached metrics instance."""
    return Metrics()
