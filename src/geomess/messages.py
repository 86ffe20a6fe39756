"""
Ephemeral message store with a proximity index.

Storage layout in Redis:
- messages:<id>  JSON body, expires after MESSAGE_EXPIRE_SECONDS
- messages       sorted set, member = message id, score = high resolution cell id

The sorted set never expires. When a query finds an id whose body is gone,
the entry is removed right there (lazy repair) instead of sweeping the index
in the background. That keeps every query bounded by 17 range scans plus one
body fetch per candidate.

Write order matters: the body is stored before the index entry, so a reader
can find an index entry without a body (handled by lazy repair) but never a
body it should have found and could not.
"""
import json
import logging
from dataclasses import dataclass, asdict
from typing import Optional

from redis import Redis
from redis.client import NEVER_DECODE

from src.geomess import metrics
from src.geomess.config import MESSAGE_EXPIRE_SECONDS
from src.geomess.id_generator import MESSAGE_ID_COUNTER, next_id
from src.geomess.proximity import proximity_ranges
from src.geomess.time_utils import current_timestamp

logger = logging.getLogger(__name__)

INDEX_KEY = "messages"
MESSAGE_KEY_PREFIX = "messages:"


@dataclass
class Message:
    """A posted message as stored and returned to clients."""
    id: int
    user_id: int
    user_name: str
    ts: int
    message: str

    def to_json(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)

    @classmethod
    def from_json(cls, raw: str) -> "Message":
        data = json.loads(raw)
        return cls(
            id=int(data["id"]),
            user_id=int(data["user_id"]),
            user_name=str(data["user_name"]),
            ts=int(data["ts"]),
            message=str(data["message"]),
        )


def get_message_key(message_id: int | str) -> str:
    """Get Redis key for a message body."""
    return f"{MESSAGE_KEY_PREFIX}{message_id}"


def save_message(
    r: Redis,
    user_id: int,
    user_name: str,
    highres_cell: int,
    text: str,
    expire_seconds: int = MESSAGE_EXPIRE_SECONDS
) -> int:
    """
    Store a message and add it to the proximity index.

    Args:
        r: Redis client
        user_id: Author's user id
        user_name: Author's display name at the time of posting
        highres_cell: High resolution cell id of the author's position
        text: Message text
        expire_seconds: Lifetime of the message body

    Returns:
        The new message id
    """
    message_id = next_id(r, MESSAGE_ID_COUNTER)

    message = Message(
        id=message_id,
        user_id=user_id,
        user_name=user_name,
        ts=current_timestamp(),
        message=text,
    )

    # SET with EX stores the body and its expiry in one command
    r.set(get_message_key(message_id), message.to_json(), ex=expire_seconds)
    metrics.redis_operations_total.labels(operation="set", status="success").inc()

    r.zadd(INDEX_KEY, {str(message_id): highres_cell})
    metrics.redis_operations_total.labels(operation="zadd", status="success").inc()

    metrics.messages_posted_total.inc()
    logger.info("user %d posted message %d in cell %d", user_id, message_id, highres_cell)

    return message_id


def find_candidates(r: Redis, lowres_cell: int) -> list[str]:
    """
    Collect the ids of all indexed messages around a low resolution cell.

    All 17 range scans go out in a single pipeline. Ranges are half-open,
    so the upper bound is sent as an exclusive score.

    Args:
        r: Redis client
        lowres_cell: Low resolution cell id of the query point

    Returns:
        Distinct message ids in the order they were found
    """
    ranges = proximity_ranges(lowres_cell)

    pipe = r.pipeline()
    for lower, upper in ranges:
        pipe.zrangebyscore(INDEX_KEY, lower, f"({upper}")
    results = pipe.execute()
    metrics.redis_operations_total.labels(operation="pipeline_zrangebyscore", status="success").inc()

    seen = set()
    candidates = []
    for members in results:
        for member in members:
            if member not in seen:
                seen.add(member)
                candidates.append(member)

    return candidates


def _decode_body(message_id: str, raw: bytes) -> Optional[Message]:
    try:
        return Message.from_json(raw.decode("utf-8"))
    except (ValueError, KeyError, TypeError, OverflowError):
        metrics.corrupt_messages_skipped_total.inc()
        logger.warning("skipping undecodable body of message %s", message_id)
        return None


def load_messages(r: Redis, highres_cell: int, lowres_cell: int, newer_than: int) -> list[Message]:
    """
    Load messages posted near a point.

    Process:
    1. Range-scan the index around the low resolution cell
    2. Fetch all candidate bodies, undecoded, in one MGET
    3. Remove index entries whose body has expired
    4. Keep messages strictly newer than newer_than, newest first

    Undecodable bodies are logged and skipped so that one bad record does
    not break the neighborhood for everybody.

    Args:
        r: Redis client
        highres_cell: High resolution cell id of the query point
        lowres_cell: Low resolution cell id of the query point
        newer_than: Only return messages with ts > newer_than

    Returns:
        List of Message sorted by ts descending
    """
    candidates = find_candidates(r, lowres_cell)
    metrics.query_candidates.observe(len(candidates))
    logger.debug(
        "query at cell %d/%d found %d candidates", highres_cell, lowres_cell, len(candidates)
    )

    if not candidates:
        return []

    # Raw bytes, so a body that is not UTF-8 reaches _decode_body instead of
    # failing the whole reply
    keys = [get_message_key(message_id) for message_id in candidates]
    bodies = r.execute_command("MGET", *keys, **{NEVER_DECODE: True})
    metrics.redis_operations_total.labels(operation="mget", status="success").inc()

    messages = []
    expired = []
    for message_id, raw in zip(candidates, bodies):
        if raw is None:
            expired.append(message_id)
            continue

        message = _decode_body(message_id, raw)
        if message is not None and message.ts > newer_than:
            messages.append(message)

    if expired:
        r.zrem(INDEX_KEY, *expired)
        metrics.redis_operations_total.labels(operation="zrem", status="success").inc()
        metrics.index_entries_repaired_total.inc(len(expired))
        logger.debug("removed %d expired entries from the index", len(expired))

    messages.sort(key=lambda m: (m.ts, m.id), reverse=True)
    return messages
