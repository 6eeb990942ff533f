import threading
import time

from reminder_service.reminders.dispatcher import Dispatcher
from reminder_service.reminders.domain import DeliveryResult, SubscriptionData


def _subs(*endpoints):
    return [SubscriptionData(endpoint=e) for e in endpoints]


def test_dispatch_with_no_subscriptions_is_a_success(dispatcher):
    result = dispatcher.dispatch({"title": "t"}, [])
    assert result.total == 0
    assert result.succeeded


def test_failures_are_isolated_per_endpoint(dispatcher, channel, store, add_subscription):
    """One failing and one raising endpoint do not affect the healthy one."""
    for e in ("https://push/ok", "https://push/flaky", "https://push/broken"):
        add_subscription(e)
    channel.outcomes["https://push/flaky"] = DeliveryResult.transient("HTTP 503", status_code=503)
    channel.outcomes["https://push/broken"] = RuntimeError("boom")

    result = dispatcher.dispatch({"title": "t"}, store.list_subscriptions())

    assert result.total == 3
    assert result.delivered == 1
    assert result.failed == 2
    assert result.pruned == []
    assert result.succeeded
    assert len(store.list_subscriptions()) == 3


def test_terminal_endpoint_is_pruned(dispatcher, channel, store, add_subscription):
    add_subscription("https://push/gone")
    add_subscription("https://push/ok")
    channel.outcomes["https://push/gone"] = DeliveryResult.terminal("gone", status_code=410)

    result = dispatcher.dispatch({"title": "t"}, store.list_subscriptions())

    assert result.pruned == ["https://push/gone"]
    assert result.delivered == 1
    assert [s.endpoint for s in store.list_subscriptions()] == ["https://push/ok"]


def test_hung_endpoint_times_out_without_blocking_others(channel, store):
    release = threading.Event()

    def hang():
        release.wait(5)
        return DeliveryResult.ok()

    channel.outcomes["https://push/hung"] = hang
    dispatcher = Dispatcher(channel, store, max_workers=4, timeout_seconds=0.2)
    try:
        started = time.monotonic()
        result = dispatcher.dispatch({"title": "t"}, _subs("https://push/hung", "https://push/ok"))
        elapsed = time.monotonic() - started
    finally:
        release.set()

    assert elapsed < 2
    assert result.delivered == 1
    assert result.failed == 1


def test_all_failed_is_not_a_success(dispatcher, channel):
    channel.outcomes["https://push/a"] = DeliveryResult.transient("down")
    result = dispatcher.dispatch({"title": "t"}, _subs("https://push/a"))
    assert not result.succeeded
