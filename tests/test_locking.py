import threading

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import LockError

from reminder_service.reminders.locking import LocalRunLock, RedisRunLock, RUN_LOCK_NAME, build_run_lock
from reminder_service.reminders.scheduler import ReminderScheduler


class StubRedisLock:
    def __init__(self, acquire_result=True, acquire_error=None, release_error=None):
        self.acquire_result = acquire_result
        self.acquire_error = acquire_error
        self.release_error = release_error
        self.acquire_calls = []
        self.released = 0

    def acquire(self, blocking=None, blocking_timeout=None):
        self.acquire_calls.append((blocking, blocking_timeout))
        if self.acquire_error is not None:
            raise self.acquire_error
        return self.acquire_result

    def release(self):
        self.released += 1
        if self.release_error is not None:
            raise self.release_error


class StubRedis:
    """Implements only ``Redis.lock(name, timeout=...)``."""

    def __init__(self, lock: StubRedisLock):
        self._lock = lock
        self.lock_calls = []

    def lock(self, name, timeout=None):
        self.lock_calls.append((name, timeout))
        return self._lock


def test_redis_lock_acquires_and_releases():
    stub = StubRedisLock()
    client = StubRedis(stub)

    with RedisRunLock(client, lease_seconds=60).hold(1.5) as acquired:
        assert acquired is True
        assert stub.released == 0

    assert client.lock_calls == [(RUN_LOCK_NAME, 60)]
    assert stub.acquire_calls == [(True, 1.5)]
    assert stub.released == 1


def test_redis_lock_held_elsewhere_is_not_released():
    stub = StubRedisLock(acquire_result=False)

    with RedisRunLock(StubRedis(stub)).hold(0) as acquired:
        assert acquired is False

    assert stub.released == 0


def test_redis_outage_yields_not_acquired():
    stub = StubRedisLock(acquire_error=RedisConnectionError("Connection refused"))

    with RedisRunLock(StubRedis(stub)).hold(0.1) as acquired:
        assert acquired is False

    assert stub.released == 0


def test_release_failure_is_logged_not_raised():
    stub = StubRedisLock(release_error=LockError("lease expired"))

    with RedisRunLock(StubRedis(stub)).hold(0.1) as acquired:
        assert acquired is True

    assert stub.released == 1


def test_scheduler_skips_pass_when_redis_is_down(store, dispatcher, clock, cfg, channel, add_reminder, add_subscription):
    add_reminder()
    add_subscription("https://push/a")
    lock = RedisRunLock(StubRedis(StubRedisLock(acquire_error=RedisConnectionError("Connection refused"))))
    scheduler = ReminderScheduler(store, dispatcher, clock=clock, lock=lock, cfg=cfg)

    report = scheduler.run_once()

    assert report.skipped_busy is True
    assert channel.sent == []
    assert store.get_reminder("r1").sent is False


def test_local_lock_times_out_while_held():
    lock = LocalRunLock()
    results = []

    def contend():
        with lock.hold(0.05) as acquired:
            results.append(acquired)

    with lock.hold(0) as first:
        assert first
        worker = threading.Thread(target=contend)
        worker.start()
        worker.join()

    assert results == [False]
    with lock.hold(0) as again:
        assert again


def test_build_run_lock_picks_backend():
    assert isinstance(build_run_lock(None, 300), LocalRunLock)
    # redis-py connects lazily, so no server is needed here
    assert isinstance(build_run_lock("redis://localhost:6379/0", 300), RedisRunLock)
