import logging
import math
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Dict, Sequence

from .channels import DeliveryChannel
from .domain import DeliveryResult, DeliveryStatus, DispatchResult, SubscriptionData
from .exceptions import PersistenceError
from .metrics import (
    reminders_dispatch_success_total,
    reminders_dispatch_failed_total,
    subscriptions_pruned_total,
)
from .repository import ReminderStore

logger = logging.getLogger(__name__)


def _short(endpoint: str) -> str:
    return endpoint if len(endpoint) <= 48 else f"{endpoint[:45]}..."


class Dispatcher:
    """Fan one payload out to every subscription.

    Each send runs on its own worker thread; a failing or hung endpoint only
    affects its own outcome. Endpoints the channel reports as permanently gone
    are deleted from the store.
    """

    def __init__(
        self,
        channel: DeliveryChannel,
        store: ReminderStore,
        max_workers: int = 10,
        timeout_seconds: float = 10.0,
    ):
        self.channel = channel
        self.store = store
        self.max_workers = max(1, int(max_workers))
        self.timeout_seconds = float(timeout_seconds)

    def _send_one(self, subscription: SubscriptionData, payload: Dict[str, Any]) -> DeliveryResult:
        try:
            return self.channel.send(subscription, payload)
        except Exception as e:  # noqa: BLE001
            # A channel bug for one endpoint must not take down the fan-out
            logger.exception(f"[Dispatch] Channel raised for {_short(subscription.endpoint)}")
            return DeliveryResult.transient(f"unexpected: {e!r}")

    def dispatch(self, payload: Dict[str, Any], subscriptions: Sequence[SubscriptionData]) -> DispatchResult:
        result = DispatchResult(total=len(subscriptions))
        if not subscriptions:
            return result

        workers = min(self.max_workers, len(subscriptions))
        # Sends beyond the pool width queue up, so the deadline covers every wave
        deadline = self.timeout_seconds * math.ceil(len(subscriptions) / workers)

        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="reminder-dispatch")
        try:
            futures: Dict[Future, SubscriptionData] = {
                executor.submit(self._send_one, sub, payload): sub for sub in subscriptions
            }
            done, not_done = wait(futures, timeout=deadline)
        finally:
            # Hung sends are abandoned, not joined
            executor.shutdown(wait=False, cancel_futures=True)

        for future in done:
            self._record(result, futures[future], future.result())
        for future in not_done:
            sub = futures[future]
            self._record(result, sub, DeliveryResult.transient(f"timed out after {self.timeout_seconds}s"))

        return result

    def _record(self, result: DispatchResult, sub: SubscriptionData, outcome: DeliveryResult) -> None:
        if outcome.status is DeliveryStatus.OK:
            result.delivered += 1
            reminders_dispatch_success_total.inc()
            return

        if outcome.status is DeliveryStatus.TERMINAL:
            try:
                self.store.delete_subscription(sub.endpoint)
            except PersistenceError as e:
                logger.error(f"[Dispatch] Could not prune dead subscription {_short(sub.endpoint)}: {e}")
                result.failed += 1
                return
            result.pruned.append(sub.endpoint)
            subscriptions_pruned_total.inc()
            logger.info(f"[Dispatch] Removed stale subscription {_short(sub.endpoint)} ({outcome.error})")
            return

        result.failed += 1
        reminders_dispatch_failed_total.inc()
        logger.warning(
            f"[Dispatch] Transient failure for {_short(sub.endpoint)}: "
            f"{outcome.error} (status={outcome.status_code})"
        )
