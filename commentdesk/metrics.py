"""Prometheus exposition for ``/metrics``."""

import logging
from typing import Iterator

from prometheus_client import CollectorRegistry, generate_latest
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily, Metric

from commentdesk.errors import StoreError
from commentdesk.store import RecordStore
from commentdesk.tasks import TaskRunner

logger = logging.getLogger(__name__)

METRICS_CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"


class CommentDeskCollector:
    """Reads task counters and submission totals at scrape time."""

    def __init__(self, store: RecordStore, task_runner: TaskRunner):
        self.store = store
        self.task_runner = task_runner

    def collect(self) -> Iterator[Metric]:
        tasks = CounterMetricFamily(
            "commentdesk_background_tasks",
            "Background tasks by name and outcome",
            labels=["task", "outcome"],
        )
        for name, counts in sorted(self.task_runner.stats().items()):
            for outcome, value in counts.items():
                tasks.add_metric([name, outcome], value)
        yield tasks

        submissions = GaugeMetricFamily(
            "commentdesk_submissions",
            "Stored submissions by status",
            labels=["status"],
        )
        try:
            rows = self.store.query(
                "SELECT submission_status AS status, COUNT(*) AS total "
                "FROM submissions GROUP BY submission_status"
            )
        except StoreError as e:
            logger.warning(f"Skipping submission gauge: {e}")
            rows = []
        for row in rows:
            submissions.add_metric([str(row["status"])], float(row["total"] or 0))
        yield submissions


def build_registry(store: RecordStore, task_runner: TaskRunner) -> CollectorRegistry:
    registry = CollectorRegistry()
    registry.register(CommentDeskCollector(store, task_runner))
    return registry


def render_metrics(registry: CollectorRegistry) -> bytes:
    return generate_latest(registry)
