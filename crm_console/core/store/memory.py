"""In-memory record store used in demo mode and tests."""
from __future__ import annotations
import copy
import threading
import uuid
from typing import Any, Mapping, Optional

from .base import StoreError, check_model


class InMemoryRecordStore:
    """Thread-safe dict-backed store with the same semantics as the data API."""

    def __init__(self) -> None:
        self._tables: dict[str, dict[str, dict]] = {}
        self._lock = threading.Lock()

    def _table(self, model: str) -> dict[str, dict]:
        return self._tables.setdefault(check_model(model), {})

    def list(self, model: str, filters: Optional[Mapping[str, Any]] = None) -> list[dict]:
        filters = filters or {}
        with self._lock:
            rows = list(self._table(model).values())
            return [
                copy.deepcopy(row) for row in rows
                if all(row.get(field) == value for field, value in filters.items())
            ]

    def get(self, model: str, record_id: str) -> Optional[dict]:
        with self._lock:
            row = self._table(model).get(record_id)
            return copy.deepcopy(row) if row is not None else None

    def create(self, model: str, data: Mapping[str, Any]) -> dict:
        with self._lock:
            table = self._table(model)
            record = copy.deepcopy(dict(data))
            record_id = record.get("id") or str(uuid.uuid4())
            if record_id in table:
                raise StoreError(f"{model} {record_id} already exists")
            record["id"] = record_id
            table[record_id] = record
            return copy.deepcopy(record)

    def update(self, model: str, record_id: str, changes: Mapping[str, Any]) -> dict:
        with self._lock:
            table = self._table(model)
            if record_id not in table:
                raise StoreError(f"{model} {record_id} not found")
            updated = {**table[record_id], **copy.deepcopy(dict(changes)), "id": record_id}
            table[record_id] = updated
            return copy.deepcopy(updated)

    def delete(self, model: str, record_id: str) -> None:
        with self._lock:
            table = self._table(model)
            if record_id not in table:
                raise StoreError(f"{model} {record_id} not found")
            del table[record_id]
