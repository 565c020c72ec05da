"""Prometheus metrics for the Bitvia explorer API."""

from prometheus_client import Counter, Gauge, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import FastAPI, Response


class Metrics:
    """Prometheus metrics collection."""

    def __init__(self):
        # Request metrics
        self.request_count = Counter(
            'bitvia_api_requests_total',
            'Total number of API requests',
            ['method', 'endpoint', 'status']
        )

        self.request_duration = Histogram(
            'bitvia_api_request_duration_seconds',
            'Request duration in seconds',
            ['method', 'endpoint']
        )

        # Upstream metrics
        self.upstream_calls = Counter(
            'bitvia_api_upstream_calls_total',
            'Calls issued to the node and the indexer',
            ['upstream', 'method', 'outcome']
        )

        self.upstream_duration = Histogram(
            'bitvia_api_upstream_duration_seconds',
            'Upstream call duration in seconds',
            ['upstream', 'method']
        )

        self.indexer_inflight = Gauge(
            'bitvia_api_indexer_inflight',
            'Indexer calls currently awaited on the worker pool'
        )

        # Request cache metrics
        self.cache_hits = Counter(
            'bitvia_api_cache_hits_total',
            'Request cache hit count',
            ['cache_type']
        )

        self.cache_misses = Counter(
            'bitvia_api_cache_misses_total',
            'Request cache miss count',
            ['cache_type']
        )


# Global metrics instance
metrics = Metrics()


def setup_metrics(app: FastAPI, path: str = "/metrics"):
    """Setup metrics endpoint."""

    @app.get(path, include_in_schema=False)
    async def get_metrics():
        """Prometheus metrics endpoint."""
        return Response(
            content=generate_latest(),
            media_type=CONTENT_TYPE_LATEST
        )
