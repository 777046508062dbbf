"""
Metrics Collection - Prometheus metrics for the VeriForge enclave service.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)


class MetricsCollector:
    """Prometheus metrics collector for the provenance pipeline."""

    content_type = CONTENT_TYPE_LATEST

    def __init__(self, registry: CollectorRegistry = None):
        # Private registry so several apps (e.g. in tests) can coexist in one process
        self.registry = registry or CollectorRegistry()

        self.request_counter = Counter(
            'veriforge_requests_total',
            'Total number of provenance requests',
            ['mode', 'outcome'],  # generate/edit, success/error
            registry=self.registry,
        )

        self.failure_counter = Counter(
            'veriforge_failures_total',
            'Failed requests by pipeline stage and error code',
            ['stage', 'error'],
            registry=self.registry,
        )

        self.stage_duration = Histogram(
            'veriforge_stage_duration_seconds',
            'Duration of each pipeline stage in seconds',
            ['stage'],  # normalize, fetch_source, generate, fetch_output, hash, upload, sign
            buckets=[0.001, 0.01, 0.1, 0.5, 1.0, 5.0, 15.0, 30.0, 60.0, 120.0],
            registry=self.registry,
        )

        self.artifact_bytes = Histogram(
            'veriforge_artifact_bytes',
            'Size of fetched artifacts in bytes',
            ['kind'],  # source, output
            buckets=[1e4, 1e5, 5e5, 1e6, 5e6, 1e7, 5e7],
            registry=self.registry,
        )

    def record_request(self, mode: str, outcome: str):
        self.request_counter.labels(mode=mode, outcome=outcome).inc()

    def record_failure(self, stage: str, error: str):
        self.failure_counter.labels(stage=stage, error=error).inc()

    def record_stage(self, stage: str, seconds: float):
        self.stage_duration.labels(stage=stage).observe(seconds)

    def record_artifact(self, kind: str, size: int):
        self.artifact_bytes.labels(kind=kind).observe(size)

    def get_metrics(self) -> bytes:
        return generate_latest(self.registry)
