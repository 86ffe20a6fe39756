"""
Identity registry: hashed device token -> user id and display name.

Device tokens are never stored; the record lives at users:<sha256 hex>.
Re-registering a device keeps its user id and only replaces the name.
"""
import hashlib
import logging
from dataclasses import dataclass
from typing import Optional

from redis import Redis

from src.geomess import metrics
from src.geomess.id_generator import USER_ID_COUNTER, next_id

logger = logging.getLogger(__name__)

USER_KEY_PREFIX = "users:"


@dataclass
class User:
    """Registered device owner."""
    id: int
    name: str


def hash_token(token: str) -> str:
    """SHA-256 hex digest of a device token."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def get_user_key(token_hash: str) -> str:
    """Get Redis key for a user record."""
    return f"{USER_KEY_PREFIX}{token_hash}"


def register_user(r: Redis, token_hash: str, name: str) -> int:
    """
    Create or update the user record for a device.

    An existing id is always reused. A new id is claimed with HSETNX so two
    concurrent first registrations of the same device end up with one id.
    The name is written before the id is claimed: a record counts as
    registered only once it has an id, so a registration that fails halfway
    never leaves a user without a name.

    Args:
        r: Redis client
        token_hash: Hashed device token
        name: Display name

    Returns:
        The user id
    """
    key = get_user_key(token_hash)

    user_id = r.hget(key, "id")
    metrics.redis_operations_total.labels(operation="hget", status="success").inc()

    if user_id is None:
        new_id = next_id(r, USER_ID_COUNTER)
        _set_name(r, key, name)
        if r.hsetnx(key, "id", new_id):
            user_id = new_id
            metrics.users_registered_total.labels(kind="new").inc()
            logger.info("registered user %d", new_id)
        else:
            # Another request registered this device in the meantime
            user_id = r.hget(key, "id")
        metrics.redis_operations_total.labels(operation="hsetnx", status="success").inc()
    else:
        _set_name(r, key, name)
        metrics.users_registered_total.labels(kind="existing").inc()
        logger.info("re-registered user %s", user_id)

    return int(user_id)


def _set_name(r: Redis, key: str, name: str) -> None:
    r.hset(key, "name", name)
    metrics.redis_operations_total.labels(operation="hset", status="success").inc()


def user_exists(r: Redis, token_hash: str) -> bool:
    """Check whether a device is registered (its record has an id)."""
    exists = r.hexists(get_user_key(token_hash), "id")
    metrics.redis_operations_total.labels(operation="hexists", status="success").inc()
    return bool(exists)


def lookup_user(r: Redis, token_hash: str) -> Optional[User]:
    """
    Load the user record of a device.

    Args:
        r: Redis client
        token_hash: Hashed device token

    Returns:
        User, or None if the device is not registered
    """
    record = r.hgetall(get_user_key(token_hash))
    metrics.redis_operations_total.labels(operation="hgetall", status="success").inc()

    if not record or "id" not in record:
        return None

    return User(id=int(record["id"]), name=record.get("name", ""))
