"""
Prometheus metrics for monitoring API performance and behavior.
"""
from prometheus_client import Counter, Histogram

# Request metrics
api_requests_total = Counter(
    'api_requests_total',
    'Total number of API requests handled',
    ['endpoint', 'status']
)

# Latency metrics
request_duration_seconds = Histogram(
    'request_duration_seconds',
    'Request latency in seconds',
    ['endpoint']
)

# Business metrics
messages_posted_total = Counter(
    'messages_posted_total',
    'Total number of messages saved'
)

users_registered_total = Counter(
    'users_registered_total',
    'Total number of registration calls',
    ['kind']
)

query_candidates = Histogram(
    'query_candidates',
    'Distinct message ids found by the range scans of one query',
    buckets=(0, 1, 5, 10, 25, 50, 100, 250, 500, 1000)
)

index_entries_repaired_total = Counter(
    'index_entries_repaired_total',
    'Index entries removed because their message body had expired'
)

corrupt_messages_skipped_total = Counter(
    'corrupt_messages_skipped_total',
    'Message bodies that could not be decoded and were skipped'
)

# Redis metrics
redis_operations_total = Counter(
    'redis_operations_total',
    'Total Redis operations',
    ['operation', 'status']
)
