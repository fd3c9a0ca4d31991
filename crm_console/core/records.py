"""Typed access to the record store with error translation.

Store failures leave this module as ``UpstreamUnavailableError`` so the
services above only deal with the provisioning error taxonomy.
"""
from __future__ import annotations
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Mapping, Optional

from crm_console.core.errors import UpstreamUnavailableError
from crm_console.core.models import DEPARTMENT, ROLE, SYSTEM_USER
from crm_console.core.store import RecordStore, StoreError


class Records:
    """Thin gateway over a RecordStore."""

    def __init__(self, store: RecordStore):
        self.store = store

    def _call(self, action: str, fn: Callable, *args):
        try:
            return fn(*args)
        except StoreError as e:
            raise UpstreamUnavailableError(f"Record store unavailable while {action}: {e}") from e

    # Reads
    def list(self, model: str, **filters: Any) -> list[dict]:
        return self._call(f"listing {model} records", self.store.list, model, filters or None)

    def get(self, model: str, record_id: str) -> Optional[dict]:
        if not record_id:
            return None
        return self._call(f"reading {model} {record_id}", self.store.get, model, record_id)

    def departments(self) -> list[dict]:
        return self.list(DEPARTMENT)

    def roles(self, department_id: Optional[str] = None) -> list[dict]:
        if department_id:
            return self.list(ROLE, departmentId=department_id)
        return self.list(ROLE)

    def users(self, **filters: Any) -> list[dict]:
        return self.list(SYSTEM_USER, **filters)

    def departments_and_roles(self) -> tuple[list[dict], list[dict]]:
        """Fetch all departments and all roles concurrently."""
        with ThreadPoolExecutor(max_workers=2) as pool:
            departments = pool.submit(self.departments)
            roles = pool.submit(self.roles)
            return departments.result(), roles.result()

    def users_departments_and_roles(self, **user_filters: Any) -> tuple[list[dict], list[dict], list[dict]]:
        """Fetch users (optionally filtered), departments and roles concurrently."""
        with ThreadPoolExecutor(max_workers=3) as pool:
            users = pool.submit(self.users, **user_filters)
            departments = pool.submit(self.departments)
            roles = pool.submit(self.roles)
            return users.result(), departments.result(), roles.result()

    # Writes
    def create(self, model: str, data: Mapping[str, Any]) -> dict:
        return self._call(f"creating {model}", self.store.create, model, data)

    def update(self, model: str, record_id: str, changes: Mapping[str, Any]) -> dict:
        return self._call(f"updating {model} {record_id}", self.store.update, model, record_id, changes)

    def delete(self, model: str, record_id: str) -> None:
        self._call(f"deleting {model} {record_id}", self.store.delete, model, record_id)
