import json
import logging
import os
from threading import Lock
from typing import Any, Callable, Dict, Iterable, Optional

from errors import RecordNotFound, ValidationError

logger = logging.getLogger("gymx.store")


class JsonRecordStore:
    """Key/value records kept in a single JSON file."""

    def __init__(self, path: str):
        self.path = path
        self._lock = Lock()

    def _load(self) -> Dict[str, Dict[str, Any]]:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _save(self, data: Dict[str, Dict[str, Any]]) -> None:
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)

    def read(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._load().get(key)

    def all(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            return self._load()

    def insert(self, key: str, record: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            data = self._load()
            if key in data:
                raise ValidationError(f"Record already exists: {key}")
            data[key] = record
            self._save(data)
        logger.debug("inserted record %s into %s", key, self.path)
        return record

    def insert_first_free(
            self,
            keys: Iterable[str],
            build: Callable[[str], Dict[str, Any]]
    ) -> Dict[str, Any]:
        """Insert under the first candidate key not taken yet."""
        with self._lock:
            data = self._load()
            key = next(k for k in keys if k not in data)
            record = build(key)
            data[key] = record
            self._save(data)
        logger.debug("inserted record %s into %s", key, self.path)
        return record

    def update(self, key: str, **fields) -> Dict[str, Any]:
        with self._lock:
            data = self._load()
            if key not in data:
                raise RecordNotFound(f"Record not found: {key}")
            data[key].update(fields)
            self._save(data)
            return data[key]
