"""
Change Feed

Per-table, per-owner change notifications. The ledger services publish
a ChangeEvent after every successful write; live caches subscribe to
the (table, user_id) pairs they mirror.

Delivery is synchronous, in subscription order, on the publishing
thread. Streamlit runs each browser session on its own thread, so the
subscriber map is guarded by a lock and callbacks are invoked on a
snapshot taken outside it.

DESIGN DECISION: bound-method callbacks are held through
weakref.WeakMethod. A browser session that simply ends never calls
unsubscribe(), so the feed must not keep its LiveCollections alive.
Entries whose owner has been collected are dropped on the next publish
or count. Plain functions and lambdas are held strongly.
"""

import inspect
import threading
import weakref
from typing import Callable, Optional
from uuid import uuid4

import structlog

from moneywise.models.events import ChangeEvent


logger = structlog.get_logger(__name__)

ChangeCallback = Callable[[ChangeEvent], None]
CallbackRef = Callable[[], Optional[ChangeCallback]]


def _reference(callback: ChangeCallback) -> CallbackRef:
    if inspect.ismethod(callback):
        return weakref.WeakMethod(callback)
    return lambda: callback


class Subscription:
    """Handle returned by ChangeFeed.subscribe(). Unsubscribing twice is fine."""

    def __init__(self, feed: "ChangeFeed", key: tuple[str, str], token: str):
        self._feed = feed
        self._key = key
        self._token = token
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    @property
    def table(self) -> str:
        return self._key[0]

    @property
    def user_id(self) -> str:
        return self._key[1]

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._feed._remove(self._key, self._token)


class ChangeFeed:
    """In-process publish/subscribe for record changes."""

    def __init__(self):
        self._subscribers: dict[tuple[str, str], dict[str, CallbackRef]] = {}
        self._lock = threading.Lock()

    def subscribe(
        self,
        table: str,
        user_id: str,
        callback: ChangeCallback,
    ) -> Subscription:
        key = (table, user_id)
        token = str(uuid4())
        with self._lock:
            self._subscribers.setdefault(key, {})[token] = _reference(callback)
        logger.debug("change_feed_subscribed", table=table, user_id=user_id)
        return Subscription(self, key, token)

    def publish(self, event: ChangeEvent) -> int:
        """
        Deliver an event to every subscriber of its (table, owner).

        Returns the number of callbacks that ran without error. A failing
        callback is logged and the rest still receive the event.
        """
        key = (event.table, event.user_id)
        with self._lock:
            callbacks = self._live_callbacks(key)

        delivered = 0
        for callback in callbacks:
            try:
                callback(event)
                delivered += 1
            except Exception as e:
                logger.error(
                    "change_callback_failed",
                    table=event.table,
                    event_type=event.event_type.value,
                    record_id=event.record_id,
                    error=str(e),
                )
        return delivered

    def subscriber_count(self, table: str, user_id: str) -> int:
        with self._lock:
            return len(self._live_callbacks((table, user_id)))

    def _live_callbacks(self, key: tuple[str, str]) -> list[ChangeCallback]:
        """Resolve the key's callbacks, pruning collected ones. Caller holds the lock."""
        refs = self._subscribers.get(key)
        if not refs:
            return []

        callbacks = []
        for token, ref in list(refs.items()):
            callback = ref()
            if callback is None:
                del refs[token]
            else:
                callbacks.append(callback)

        if not refs:
            del self._subscribers[key]
            logger.debug("change_feed_pruned", table=key[0], user_id=key[1])
        return callbacks

    def _remove(self, key: tuple[str, str], token: str) -> None:
        with self._lock:
            callbacks = self._subscribers.get(key)
            if not callbacks:
                return
            callbacks.pop(token, None)
            if not callbacks:
                del self._subscribers[key]
        logger.debug("change_feed_unsubscribed", table=key[0], user_id=key[1])
