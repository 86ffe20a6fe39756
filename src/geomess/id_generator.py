"""
Unique, strictly increasing ids backed by Redis INCR.

The counters live in Redis so that any number of API processes can hand out
ids without ever issuing the same value twice.
"""
from redis import Redis
from redis.exceptions import RedisError

from src.geomess import metrics
from src.geomess.errors import StoreUnavailableError

USER_ID_COUNTER = "user_id_generator"
MESSAGE_ID_COUNTER = "message_id_generator"


def next_id(r: Redis, counter: str) -> int:
    """
    Atomically increment a counter and return the new value.

    Args:
        r: Redis client
        counter: Counter key (USER_ID_COUNTER or MESSAGE_ID_COUNTER)

    Returns:
        The next id, starting at 1

    Raises:
        StoreUnavailableError: If Redis could not perform the increment
    """
    try:
        value = r.incr(counter)
    except RedisError as exc:
        metrics.redis_operations_total.labels(operation="incr", status="error").inc()
        raise StoreUnavailableError(f"failed to generate an id from {counter}") from exc

    metrics.redis_operations_total.labels(operation="incr", status="success").inc()
    return int(value)
