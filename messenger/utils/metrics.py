"""
Metrics collection for the messaging core.

Counters for admissions, replays, write conflicts and push outcomes.
"""

from typing import Dict, Any
from collections import defaultdict
from datetime import datetime
import threading

COUNTERS = (
    "messages_admitted_total",
    "messages_deduplicated_total",
    "conversations_created_total",
    "append_conflicts_total",
    "push_delivered_total",
    "push_failed_total",
    "pointer_update_failures_total",
)


class MetricsCollector:
    """Thread-safe counter registry."""

    def __init__(self):
        self.metrics = defaultdict(int)
        self.lock = threading.Lock()
        for name in COUNTERS:
            self.metrics[name] = 0

    def increment_counter(self, metric_name: str, value: int = 1):
        with self.lock:
            self.metrics[metric_name] += value

    def get(self, metric_name: str) -> int:
        with self.lock:
            return self.metrics[metric_name]

    def get_metrics(self) -> Dict[str, Any]:
        with self.lock:
            return {
                "counters": dict(self.metrics),
                "timestamp": datetime.utcnow().isoformat()
            }

    def message_admitted(self):
        self.increment_counter("messages_admitted_total")

    def message_deduplicated(self):
        self.increment_counter("messages_deduplicated_total")

    def conversation_created(self):
        self.increment_counter("conversations_created_total")

    def append_conflict(self):
        self.increment_counter("append_conflicts_total")

    def push_delivered(self, count: int = 1):
        self.increment_counter("push_delivered_total", count)

    def push_failed(self):
        self.increment_counter("push_failed_total")

    def pointer_update_failed(self):
        self.increment_counter("pointer_update_failures_total")


# Global metrics instance
metrics_collector = MetricsCollector()
