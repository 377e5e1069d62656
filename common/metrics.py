"""
Prometheus metrics collection for the GTFS importer.

Metrics are purely observational: nothing in the pipeline reads them back.
A private registry is used unless one is passed in, so several collectors
can coexist in one process (the tests create many).
"""

import logging
from typing import Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    start_http_server,
)

logger = logging.getLogger(__name__)


class ImportMetrics:
    """Counters and timings for GTFS imports."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """Initialize metrics collectors.

        Args:
            registry: Optional registry. A fresh CollectorRegistry if None.
        """
        self.registry = registry or CollectorRegistry()

        self.records_imported = Counter(
            "gtfs_import_records_total",
            "Total number of records written to the store",
            ["entity"],
            registry=self.registry,
        )

        self.batch_failures = Counter(
            "gtfs_import_batch_failures_total",
            "Total number of bulk writes that were only partly written",
            ["entity"],
            registry=self.registry,
        )

        self.agency_imports = Counter(
            "gtfs_import_agencies_total",
            "Total number of agency imports by final state",
            ["status"],
            registry=self.registry,
        )

        self.agency_import_duration = Histogram(
            "gtfs_import_agency_duration_seconds",
            "Time spent importing one agency",
            ["agency_key"],
            registry=self.registry,
        )

    def record_batch(self, entity: str, count: int) -> None:
        self.records_imported.labels(entity=entity).inc(count)

    def record_batch_failure(self, entity: str) -> None:
        self.batch_failures.labels(entity=entity).inc()

    def record_agency(self, agency_key: str, status: str, duration: float) -> None:
        self.agency_imports.labels(status=status).inc()
        self.agency_import_duration.labels(agency_key=agency_key).observe(duration)

    def get_sample(self, name: str, labels: dict) -> Optional[float]:
        """Current value of one sample, e.g. ('gtfs_import_records_total', {'entity': 'stops'})."""
        return self.registry.get_sample_value(name, labels)


def start_metrics_server(port: int, metrics: ImportMetrics) -> None:
    """Expose `metrics` over HTTP on `port`."""
    start_http_server(port, registry=metrics.registry)
    logger.info(f"Metrics server started on port {port}")
