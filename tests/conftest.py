"""
Shared fixtures: an in-memory stand-in for the Redis commands geomess uses.
"""
import pytest
from fastapi.testclient import TestClient
from unittest.mock import patch

from src.geomess.main import app

START_TIME = 1_700_000_000


class InMemoryRedis:
    """
    Small in-process imitation of the Redis commands used by geomess.

    Values are returned as strings, like a client created with
    decode_responses=True, except for the undecoded MGET which returns
    bytes. Key expiry follows self.now, which tests move forward with
    advance().
    """

    def __init__(self, now: float = START_TIME):
        self.now = now
        self.strings = {}
        self.hashes = {}
        self.zsets = {}
        self.expires = {}
        self.closed = False

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def _purge(self, key: str) -> None:
        deadline = self.expires.get(key)
        if deadline is not None and deadline <= self.now:
            self.strings.pop(key, None)
            self.expires.pop(key, None)

    # Connection
    def ping(self):
        return True

    def close(self):
        self.closed = True

    # Strings
    def incr(self, name):
        self._purge(name)
        value = int(self.strings.get(name, "0")) + 1
        self.strings[name] = str(value)
        return value

    def set(self, name, value, ex=None):
        self.strings[name] = value if isinstance(value, bytes) else str(value)
        if ex is not None:
            self.expires[name] = self.now + ex
        else:
            self.expires.pop(name, None)
        return True

    def get(self, name):
        self._purge(name)
        return self.strings.get(name)

    def execute_command(self, command, *args, **options):
        # Only the undecoded MGET issued by load_messages goes through here
        if command != "MGET":
            raise NotImplementedError(command)
        values = []
        for key in args:
            self._purge(key)
            value = self.strings.get(key)
            if isinstance(value, str):
                value = value.encode("utf-8")
            values.append(value)
        return values

    def ttl(self, name):
        self._purge(name)
        if name not in self.strings:
            return -2
        if name not in self.expires:
            return -1
        return int(self.expires[name] - self.now)

    # Hashes
    def hget(self, name, key):
        return self.hashes.get(name, {}).get(key)

    def hexists(self, name, key):
        return key in self.hashes.get(name, {})

    def hgetall(self, name):
        return dict(self.hashes.get(name, {}))

    def hset(self, name, key=None, value=None, mapping=None):
        record = self.hashes.setdefault(name, {})
        items = dict(mapping or {})
        if key is not None:
            items[key] = value
        added = 0
        for field, field_value in items.items():
            if field not in record:
                added += 1
            record[field] = str(field_value)
        return added

    def hsetnx(self, name, key, value):
        record = self.hashes.setdefault(name, {})
        if key in record:
            return False
        record[key] = str(value)
        return True

    # Sorted sets
    def zadd(self, name, mapping):
        zset = self.zsets.setdefault(name, {})
        added = 0
        for member, score in mapping.items():
            if str(member) not in zset:
                added += 1
            zset[str(member)] = float(score)
        return added

    @staticmethod
    def _score_bound(bound, lower: bool):
        if isinstance(bound, str) and bound.startswith("("):
            value = float(bound[1:])
            if lower:
                return lambda score: score > value
            return lambda score: score < value
        value = float(bound)
        if lower:
            return lambda score: score >= value
        return lambda score: score <= value

    def zrangebyscore(self, name, min, max):
        above = self._score_bound(min, lower=True)
        below = self._score_bound(max, lower=False)
        zset = self.zsets.get(name, {})
        members = [(score, member) for member, score in zset.items() if above(score) and below(score)]
        return [member for score, member in sorted(members)]

    def zrem(self, name, *values):
        zset = self.zsets.get(name, {})
        removed = 0
        for value in values:
            if zset.pop(str(value), None) is not None:
                removed += 1
        return removed

    def zcard(self, name):
        return len(self.zsets.get(name, {}))

    def zscore(self, name, value):
        return self.zsets.get(name, {}).get(str(value))

    def pipeline(self):
        return InMemoryPipeline(self)


class InMemoryPipeline:
    """Queues commands and runs them against the parent on execute()."""

    def __init__(self, redis):
        self._redis = redis
        self._commands = []

    def __getattr__(self, name):
        command = getattr(self._redis, name)

        def queue(*args, **kwargs):
            self._commands.append((command, args, kwargs))
            return self

        return queue

    def execute(self):
        results = [command(*args, **kwargs) for command, args, kwargs in self._commands]
        self._commands = []
        return results


@pytest.fixture
def fake_redis():
    """In-memory Redis whose clock also drives message timestamps."""
    redis = InMemoryRedis()
    with patch("src.geomess.messages.current_timestamp", side_effect=lambda: int(redis.now)):
        yield redis


@pytest.fixture
def client():
    """Create a test client for the FastAPI app."""
    return TestClient(app)


@pytest.fixture
def api(client, fake_redis):
    """Test client wired to the in-memory Redis."""
    with patch("src.geomess.main.get_redis_client", return_value=fake_redis):
        yield client
