"""
Change notification models.

A ChangeEvent mirrors the managed store's row-change payload:
{eventType: INSERT|UPDATE|DELETE, new, old}. Records travel as plain
JSON-mode dicts so any subscriber can rebuild its own model from them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator

from moneywise.models.finance import utc_now


EXPENSES_TABLE = "expenses"
BUDGETS_TABLE = "budgets"


class ChangeEventType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ChangeEvent(BaseModel):
    """A single row change for one owner's table."""

    table: str = Field(
        ...,
        pattern=f"^({EXPENSES_TABLE}|{BUDGETS_TABLE})$",
    )
    event_type: ChangeEventType
    user_id: str = Field(..., min_length=1)
    new: Optional[dict[str, Any]] = None
    old: Optional[dict[str, Any]] = None
    received_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode='after')
    def check_payload(self) -> 'ChangeEvent':
        """INSERT/UPDATE carry the new row; DELETE carries the old one."""
        if self.event_type == ChangeEventType.DELETE:
            if not self.old or "id" not in self.old:
                raise ValueError("DELETE events need the old record id")
        elif not self.new or "id" not in self.new:
            raise ValueError(f"{self.event_type.value} events need the new record")
        return self

    @property
    def record_id(self) -> str:
        source = self.old if self.event_type == ChangeEventType.DELETE else self.new
        return str(source["id"])
