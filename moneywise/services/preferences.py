"""
Persisted UI preferences.

A tiny JSON-file key-value store for choices that should survive a
restart: the selected chart month and the last spending-habits text.

Preferences are a convenience. A missing, unreadable or corrupt file
reads as "nothing saved", and a failed write keeps the value for the
rest of the process.

Every value is scoped to its owner. The file holds one mapping per
user id, so one account never reads another account's choices.
"""

import json
import threading
from pathlib import Path
from typing import Any, Optional

import structlog


logger = structlog.get_logger(__name__)

CHART_MONTH_KEY = "chart_month"
SPENDING_HABITS_KEY = "spending_habits"


class PreferenceStore:
    """JSON-file backed key-value store, partitioned by user id."""

    def __init__(self, path: str | Path):
        self._path = Path(path)
        self._lock = threading.Lock()
        self._values: Optional[dict[str, Any]] = None

    @property
    def path(self) -> Path:
        return self._path

    def get(self, user_id: str, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._scope(user_id).get(key, default)

    def set(self, user_id: str, key: str, value: Any) -> None:
        with self._lock:
            values = self._load()
            scope = values.get(user_id)
            if not isinstance(scope, dict):
                scope = values[user_id] = {}
            scope[key] = value
            self._write(values)

    def delete(self, user_id: str, key: str) -> None:
        with self._lock:
            scope = self._scope(user_id)
            if key in scope:
                del scope[key]
                self._write(self._load())

    def _scope(self, user_id: str) -> dict[str, Any]:
        # Entries that are not per-user mappings are ignored
        scope = self._load().get(user_id)
        return scope if isinstance(scope, dict) else {}

    def _load(self) -> dict[str, Any]:
        if self._values is not None:
            return self._values

        values: dict[str, Any] = {}
        if self._path.exists():
            try:
                with open(self._path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                if isinstance(data, dict):
                    values = data
                else:
                    logger.warning("preferences_not_a_mapping", path=str(self._path))
            except (OSError, ValueError) as e:
                logger.warning("preferences_read_failed", path=str(self._path), error=str(e))

        self._values = values
        return values

    def _write(self, values: dict[str, Any]) -> None:
        try:
            if self._path.parent != Path(""):
                self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "w", encoding="utf-8") as f:
                json.dump(values, f, indent=2, ensure_ascii=False, default=str)
        except OSError as e:
            logger.warning("preferences_write_failed", path=str(self._path), error=str(e))
