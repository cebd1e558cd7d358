"""
Live Record Cache

A LiveCollection is the local mirror of one owner's table. It replaces
the old "patch the list, then refetch everything anyway" pattern:

- change events are applied directly and idempotently by record id
- a full refetch (reconciliation) only happens on first load, when
  forced, or when the cache is older than the reconcile interval

DESIGN DECISION: apply() never triggers a fetch. Events published by
this process already carry the full row, so a refetch would only
repeat what we know. Edits made outside the app (straight in the
spreadsheet) are picked up by the interval reconciliation.
"""

import threading
import time
from typing import Any, Awaitable, Callable, Generic, MutableMapping, Optional, TypeVar

import structlog
from pydantic import BaseModel

from moneywise.models.events import ChangeEvent, ChangeEventType
from moneywise.services.changes import ChangeFeed, Subscription


logger = structlog.get_logger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)

Fetcher = Callable[[], Awaitable[list]]


class LiveCollection(Generic[RecordT]):
    """
    Id-keyed cache of one table's records for one owner.

    Args:
        table: Table name the change events carry ("expenses"/"budgets")
        user_id: Owner whose records are mirrored
        model: Pydantic model used to rebuild records from event payloads
        fetch: Coroutine function returning the owner's full record list
        sort_key: Ordering applied by items()
        reverse: Reverse the sort_key ordering
        reconcile_interval: Seconds before the cache counts as stale
        clock: Monotonic time source (injectable for tests)
    """

    def __init__(
        self,
        table: str,
        user_id: str,
        model: type[RecordT],
        fetch: Fetcher,
        sort_key: Callable[[RecordT], object],
        reverse: bool = False,
        reconcile_interval: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.table = table
        self.user_id = user_id
        self._model = model
        self._fetch = fetch
        self._sort_key = sort_key
        self._reverse = reverse
        self._interval = reconcile_interval
        self._clock = clock

        self._records: dict[str, RecordT] = {}
        self._lock = threading.Lock()
        self._loaded_at: Optional[float] = None
        self._subscription: Optional[Subscription] = None

    @property
    def loaded(self) -> bool:
        return self._loaded_at is not None

    @property
    def is_stale(self) -> bool:
        if self._loaded_at is None:
            return True
        return self._clock() - self._loaded_at >= self._interval

    async def load(self) -> list[RecordT]:
        """Full fetch; replaces the cache."""
        records = await self._fetch()
        with self._lock:
            self._records = {record.id: record for record in records}
            self._loaded_at = self._clock()
        logger.info(
            "collection_loaded",
            table=self.table,
            user_id=self.user_id,
            count=len(records),
        )
        return self.items()

    async def reconcile(self, force: bool = False) -> bool:
        """
        Refetch if forced or stale.

        Returns True when a fetch actually happened.
        """
        if not force and not self.is_stale:
            return False
        await self.load()
        return True

    def apply(self, event: ChangeEvent) -> None:
        """
        Apply one change event. Safe to call any number of times.

        Events for another table or owner are ignored.
        """
        if event.table != self.table or event.user_id != self.user_id:
            return

        with self._lock:
            if event.event_type == ChangeEventType.DELETE:
                self._records.pop(event.record_id, None)
            else:
                record = self._model.model_validate(event.new)
                self._records[record.id] = record

        logger.debug(
            "change_applied",
            table=self.table,
            event_type=event.event_type.value,
            record_id=event.record_id,
        )

    def attach(self, feed: ChangeFeed) -> Subscription:
        """Start receiving change events. Re-attaching replaces the old subscription."""
        self.close()
        self._subscription = feed.subscribe(self.table, self.user_id, self.apply)
        return self._subscription

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def items(self) -> list[RecordT]:
        with self._lock:
            records = list(self._records.values())
        return sorted(records, key=self._sort_key, reverse=self._reverse)

    def get(self, record_id: str) -> Optional[RecordT]:
        with self._lock:
            return self._records.get(record_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


# =============================================================================
# PER-SESSION STATE
# =============================================================================

COLLECTION_STATE_KEYS = ("expense_collection", "budget_collection")

# Session values that belong to the signed-in user
USER_STATE_KEYS = ("collections_user", "saving_tips")


def release_user_state(state: MutableMapping[str, Any]) -> None:
    """
    Close a browser session's collections and forget the user's values.

    Called on sign-out and whenever a different user signs in, so the
    next account never sees the previous one's cache or saving tips.
    """
    for key in COLLECTION_STATE_KEYS:
        collection = state.pop(key, None)
        if collection is not None:
            collection.close()
    for key in USER_STATE_KEYS:
        state.pop(key, None)
