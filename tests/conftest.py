"""
Pytest Configuration and Shared Fixtures

Provides an in-memory stand-in for the Redis server (strings, sets, sorted
sets, TTLs and MULTI/EXEC pipelines) driven by a controllable clock, plus
fixtures for settings, metrics, the KV adapter, the cache manager and the
rate limiter.
"""

import fnmatch
import inspect
import math

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from telehealth_cache.core.config.settings import Settings
from telehealth_cache.core.resilience.retry import RetryPolicy
from telehealth_cache.infrastructure.cache.cache_manager import CacheManager
from telehealth_cache.infrastructure.cache.redis_client import RedisClient
from telehealth_cache.infrastructure.monitoring.metrics_collector import MetricsCollector
from telehealth_cache.rate_limiting.rate_limiter import SlidingWindowRateLimiter

# ============================================================================
# Test Doubles
# ============================================================================


class FakeClock:
    """Manually advanced wall clock, in unix seconds."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.start = start
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def at(self, offset: float) -> None:
        """Jump to ``start + offset``."""
        self.now = self.start + offset


class InMemoryRedis:
    """
    Async subset of the redis.asyncio.Redis API used by the adapter.

    Replies follow Redis: TTL is -2 for a missing key and -1 for a key without
    expiry; pipelines return one reply per queued command.
    """

    def __init__(self, clock: FakeClock):
        self._clock = clock
        self._data: dict[str, object] = {}
        self._expiry: dict[str, float] = {}
        self.commands: list[str] = []

    def _purge(self, key: str) -> None:
        deadline = self._expiry.get(key)
        if deadline is not None and self._clock() >= deadline:
            self._data.pop(key, None)
            self._expiry.pop(key, None)

    def _live(self, key: str):
        self._purge(key)
        return self._data.get(key)

    # Strings

    async def ping(self):
        return True

    async def get(self, key):
        self.commands.append("GET")
        value = self._live(key)
        return value if isinstance(value, str) else None

    async def set(self, key, value, ex=None):
        self.commands.append("SET")
        self._data[key] = value
        self._expiry.pop(key, None)
        if ex is not None:
            self._expiry[key] = self._clock() + ex
        return True

    async def incrby(self, key, amount):
        current = int(self._live(key) or 0) + amount
        self._data[key] = str(current)
        return current

    # Keyspace

    async def delete(self, *keys):
        deleted = 0
        for key in keys:
            self._purge(key)
            if key in self._data:
                del self._data[key]
                self._expiry.pop(key, None)
                deleted += 1
        return deleted

    async def exists(self, *keys):
        return sum(1 for key in keys if self._live(key) is not None)

    async def expire(self, key, seconds):
        if self._live(key) is None:
            return False
        self._expiry[key] = self._clock() + seconds
        return True

    async def ttl(self, key):
        if self._live(key) is None:
            return -2
        deadline = self._expiry.get(key)
        if deadline is None:
            return -1
        return math.ceil(deadline - self._clock())

    async def scan_iter(self, match=None, count=None):
        for key in list(self._data):
            if self._live(key) is None:
                continue
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key

    async def flushdb(self):
        self._data.clear()
        self._expiry.clear()
        return True

    # Sets

    async def sadd(self, key, *members):
        current = self._live(key)
        if current is None:
            current = self._data[key] = set()
        before = len(current)
        current.update(members)
        return len(current) - before

    async def smembers(self, key):
        return set(self._live(key) or set())

    # Sorted sets

    def _zremrangebyscore(self, key, low, high):
        zset = self._live(key)
        if not zset:
            return 0
        low, high = float(low), float(high)
        doomed = [member for member, score in zset.items() if low <= score <= high]
        for member in doomed:
            del zset[member]
        if not zset:
            self._data.pop(key, None)
            self._expiry.pop(key, None)
        return len(doomed)

    def _zcard(self, key):
        return len(self._live(key) or {})

    def _zadd(self, key, mapping):
        zset = self._live(key)
        if zset is None:
            zset = self._data[key] = {}
        added = sum(1 for member in mapping if member not in zset)
        zset.update(mapping)
        return added

    def zcard_now(self, key) -> int:
        return self._zcard(key)

    def pipeline(self, transaction=True):
        return InMemoryPipeline(self)


class InMemoryPipeline:
    """Queues commands synchronously and runs them in order on ``execute()``."""

    def __init__(self, redis: InMemoryRedis):
        self._redis = redis
        self._queue: list = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self._queue.clear()

    def zremrangebyscore(self, key, low, high):
        self._queue.append(lambda: self._redis._zremrangebyscore(key, low, high))
        return self

    def zcard(self, key):
        self._queue.append(lambda: self._redis._zcard(key))
        return self

    def zadd(self, key, mapping):
        self._queue.append(lambda: self._redis._zadd(key, mapping))
        return self

    def expire(self, key, seconds):
        self._queue.append(lambda: self._redis.expire(key, seconds))
        return self

    async def execute(self):
        self._redis.commands.append("EXEC")
        results = []
        for command in self._queue:
            reply = command()
            if inspect.isawaitable(reply):
                reply = await reply
            results.append(reply)
        self._queue.clear()
        return results


class FailingRedis:
    """Every command raises a connection error, like an unreachable server."""

    def __init__(self):
        self.calls = 0

    def __getattr__(self, name):
        async def fail(*args, **kwargs):
            self.calls += 1
            raise RedisConnectionError(f"Error connecting: {name} refused")

        return fail

    async def scan_iter(self, match=None, count=None):
        self.calls += 1
        raise RedisConnectionError("Error connecting: scan refused")
        yield  # pragma: no cover

    def pipeline(self, transaction=True):
        return FailingPipeline(self)


class FailingPipeline:
    def __init__(self, owner: FailingRedis):
        self._owner = owner

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return None

    def __getattr__(self, name):
        return lambda *args, **kwargs: self

    async def execute(self):
        self._owner.calls += 1
        raise RedisConnectionError("Connection reset by peer")


class FakeProfileRepository:
    """In-memory backing store that counts calls and can fail on demand."""

    def __init__(self, users=None):
        self.users = {row["id"]: dict(row) for row in (users or [])}
        self.calls: dict[str, int] = {}
        self.failures: list[BaseException] = []
        self.updates: list[tuple[str, dict]] = []

    def _record(self, name: str) -> None:
        self.calls[name] = self.calls.get(name, 0) + 1
        if self.failures:
            raise self.failures.pop(0)

    async def fetch_user(self, user_id):
        self._record("fetch_user")
        return self.users.get(user_id)

    async def fetch_doctor(self, doctor_id):
        self._record("fetch_doctor")
        row = self.users.get(doctor_id)
        return row if row and row.get("role") == "doctor" else None

    async def list_doctors(self, filters=None):
        self._record("list_doctors")
        rows = [row for row in self.users.values() if row.get("role") == "doctor"]
        if filters is not None and filters.specialization:
            rows = [row for row in rows if row.get("specialization") == filters.specialization]
        if filters is not None and filters.verified is not None:
            rows = [row for row in rows if row.get("verified") is filters.verified]
        return rows

    async def update_profile(self, user_id, changes):
        self._record("update_profile")
        self.updates.append((user_id, changes))
        self.users[user_id].update(changes)

    async def aclose(self):
        return None


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def settings():
    """Settings with test values and no KV credentials."""
    return Settings(
        _env_file=None,
        ENVIRONMENT="test",
        REDIS_URL=None,
        REDIS_TOKEN=None,
        SUPABASE_URL=None,
        SUPABASE_KEY=None,
        CACHE_ENABLED=True,
        RATE_LIMIT_ENABLED=True,
        LOG_LEVEL="DEBUG",
    )


@pytest.fixture
def no_delay_retry():
    """Default retry count without real sleeps."""
    return RetryPolicy(retries=2, delay=0, backoff_factor=2.0)


# ============================================================================
# Infrastructure Fixtures
# ============================================================================


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_redis(clock):
    return InMemoryRedis(clock)


@pytest.fixture
def failing_redis():
    return FailingRedis()


@pytest.fixture
def metrics(settings):
    return MetricsCollector(settings)


@pytest.fixture
def redis_client(settings, fake_redis):
    """KV adapter over the in-memory server."""
    return RedisClient(settings=settings, client=fake_redis)


@pytest.fixture
def failing_redis_client(settings, failing_redis):
    """KV adapter whose server refuses every command."""
    return RedisClient(settings=settings, client=failing_redis)


@pytest.fixture
def unconfigured_redis_client(settings):
    """KV adapter without credentials."""
    return RedisClient(settings=settings)


@pytest.fixture
def cache_manager(redis_client, metrics, settings):
    return CacheManager(redis_client=redis_client, metrics=metrics, settings=settings)


@pytest.fixture
def rate_limiter(redis_client, metrics, clock, settings):
    return SlidingWindowRateLimiter(
        redis_client=redis_client, metrics=metrics, clock=clock, settings=settings
    )


# ============================================================================
# Backing Store Fixtures
# ============================================================================


@pytest.fixture
def patient_row():
    return {
        "id": "u1",
        "email": "pat@example.com",
        "display_name": "Pat",
        "role": "patient",
        "subscription_plan": "free",
    }


@pytest.fixture
def doctor_rows():
    return [
        {
            "id": "d1",
            "email": "ada@example.com",
            "display_name": "Dr. Ada",
            "role": "doctor",
            "specialization": "dermatology",
            "consultation_fee": 40.0,
            "verified": True,
        },
        {
            "id": "d2",
            "email": "bo@example.com",
            "display_name": "Dr. Bo",
            "role": "doctor",
            "specialization": "cardiology",
            "consultation_fee": 60.0,
            "verified": False,
        },
    ]


@pytest.fixture
def profile_repository(patient_row, doctor_rows):
    return FakeProfileRepository([patient_row, *doctor_rows])
