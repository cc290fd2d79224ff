"""
Prometheus collectors for the Stitch client.

Registered in the global REGISTRY on import; expose them with
``prometheus_client.start_http_server`` or your app's metrics endpoint.
"""

from prometheus_client import Counter, Gauge, Histogram


STITCH_FLUSH_TOTAL = Counter(
    "stitch_flush_total",
    "Batches delivered to Stitch",
    ["outcome"],
)

STITCH_RECORDS_TOTAL = Counter(
    "stitch_records_total",
    "Records delivered to Stitch",
    ["outcome"],
)

STITCH_FLUSH_LATENCY_MS = Histogram(
    "stitch_flush_latency_ms",
    "Stitch POST latency in milliseconds",
    buckets=[5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000, 30000],
)

STITCH_QUEUE_DEPTH = Gauge(
    "stitch_queue_depth",
    "Records waiting in the client queue",
)

STITCH_ENQUEUE_REJECTED_TOTAL = Counter(
    "stitch_enqueue_rejected_total",
    "offer() calls refused because the queue was full",
)

STITCH_HANDLER_ERRORS_TOTAL = Counter(
    "stitch_handler_errors_total",
    "Exceptions raised by response handlers",
    ["callback"],
)
