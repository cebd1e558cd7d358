"""
Ledger Services

ExpenseService and BudgetService are the only way the app reads or
writes records. They wrap a storage backend and, after every successful
write, publish the matching ChangeEvent so live caches stay current.

Storage errors propagate unchanged; the flows decide what the user sees.
"""

from typing import Any, Generic, Optional, TypeVar

import structlog
from pydantic import BaseModel

from moneywise.models.events import (
    BUDGETS_TABLE,
    EXPENSES_TABLE,
    ChangeEvent,
    ChangeEventType,
)
from moneywise.models.finance import (
    BudgetGoal,
    BudgetGoalDraft,
    Expense,
    ExpenseDraft,
)
from moneywise.services.changes import ChangeCallback, ChangeFeed, Subscription
from moneywise.services.storage.interface import (
    BudgetStorageInterface,
    ExpenseStorageInterface,
    NotFoundError,
    check_record_id,
)


logger = structlog.get_logger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)


class _LedgerService(Generic[RecordT]):
    table: str = ""
    entity: str = ""

    def __init__(self, storage, feed: ChangeFeed):
        self._storage = storage
        self._feed = feed

    @property
    def feed(self) -> ChangeFeed:
        return self._feed

    async def list_for_user(self, user_id: str) -> list[RecordT]:
        records = await self._storage.list_for_user(user_id)
        logger.info(f"{self.table}_fetched", user_id=user_id, count=len(records))
        return records

    async def get(self, record_id: str, user_id: str) -> Optional[RecordT]:
        """A record by id, only if it belongs to the user."""
        record = await self._storage.get(record_id)
        if record is None or record.user_id != user_id:
            return None
        return record

    async def _insert(self, draft) -> RecordT:
        record = await self._storage.insert(draft)
        logger.info(
            f"{self.entity}_added",
            record_id=record.id,
            user_id=record.user_id,
            category=record.category.value,
        )
        self._publish(ChangeEventType.INSERT, record.user_id, new=record)
        return record

    async def update(
        self,
        record_id: str,
        changes: dict[str, Any],
        user_id: str,
    ) -> RecordT:
        """
        Apply changes to one of the user's records.

        Raises:
            InvalidRecordError: If the id is empty or a placeholder
            NotFoundError: If the record doesn't exist or isn't the user's
        """
        record_id = check_record_id(record_id, self.entity)
        current = await self.get(record_id, user_id)
        if current is None:
            raise NotFoundError(f"{self.entity.capitalize()} not found: {record_id}")

        record = await self._storage.update(record_id, changes)
        logger.info(
            f"{self.entity}_updated",
            record_id=record_id,
            user_id=user_id,
            fields=sorted(changes),
        )
        self._publish(ChangeEventType.UPDATE, user_id, new=record, old=current)
        return record

    async def delete(self, record_id: str, user_id: str) -> Optional[RecordT]:
        """Delete one of the user's records. Returns None if there was nothing to delete."""
        record_id = check_record_id(record_id, self.entity)
        if await self.get(record_id, user_id) is None:
            logger.info(f"{self.entity}_delete_skipped", record_id=record_id, user_id=user_id)
            return None

        deleted = await self._storage.delete(record_id)
        if deleted is not None:
            logger.info(f"{self.entity}_deleted", record_id=record_id, user_id=user_id)
            self._publish(ChangeEventType.DELETE, user_id, old=deleted)
        return deleted

    def subscribe(self, user_id: str, callback: ChangeCallback) -> Subscription:
        return self._feed.subscribe(self.table, user_id, callback)

    def _publish(
        self,
        event_type: ChangeEventType,
        user_id: str,
        new: Optional[BaseModel] = None,
        old: Optional[BaseModel] = None,
    ) -> None:
        event = ChangeEvent(
            table=self.table,
            event_type=event_type,
            user_id=user_id,
            new=new.model_dump(mode="json") if new is not None else None,
            old=old.model_dump(mode="json") if old is not None else None,
        )
        self._feed.publish(event)


class ExpenseService(_LedgerService[Expense]):
    """Expense reads and writes for the signed-in user."""

    table = EXPENSES_TABLE
    entity = "expense"

    def __init__(self, storage: ExpenseStorageInterface, feed: ChangeFeed):
        super().__init__(storage, feed)

    async def add(self, draft: ExpenseDraft) -> Expense:
        return await self._insert(draft)

    def subscribe_to_expenses(self, user_id: str, callback: ChangeCallback) -> Subscription:
        return self.subscribe(user_id, callback)


class BudgetService(_LedgerService[BudgetGoal]):
    """Budget goal reads and writes for the signed-in user."""

    table = BUDGETS_TABLE
    entity = "budget"

    def __init__(self, storage: BudgetStorageInterface, feed: ChangeFeed):
        super().__init__(storage, feed)

    async def add(self, draft: BudgetGoalDraft) -> BudgetGoal:
        return await self._insert(draft)

    def subscribe_to_budgets(self, user_id: str, callback: ChangeCallback) -> Subscription:
        return self.subscribe(user_id, callback)
