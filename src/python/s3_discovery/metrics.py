"""Prometheus metrics exported by the discovery callback."""

from prometheus_client import Counter, Gauge, Histogram

DISCOVERY_QUERY_COUNTER = Counter(
    "s3_discovery_query_total",
    "Total number of discovery queries answered",
    ["cluster", "outcome"],
)
DISCOVERY_RESOLVED_ADDRESSES_GAUGE = Gauge(
    "s3_discovery_resolved_addresses",
    "Number of peer addresses returned by the last successful discovery query",
    ["cluster"],
)
DISCOVERY_SKIPPED_RECORDS_COUNTER = Counter(
    "s3_discovery_skipped_records_total",
    "Total number of node records skipped while resolving peers",
    ["cluster", "reason"],
)
ANNOUNCE_COUNTER = Counter(
    "s3_discovery_announce_total",
    "Total number of self announcements written",
    ["cluster", "outcome"],
)
STORE_OPERATION_COUNTER = Counter(
    "s3_discovery_store_operation_total",
    "Total number of object store operations executed",
    ["operation", "outcome"],
)
STORE_OPERATION_DURATION_HISTOGRAM = Histogram(
    "s3_discovery_store_operation_duration_seconds",
    "Duration of object store operations in seconds",
    ["operation"],
)
