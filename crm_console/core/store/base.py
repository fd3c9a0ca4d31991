"""Record store interface shared by the GraphQL and in-memory stores."""
from __future__ import annotations
from typing import Any, Mapping, Optional, Protocol

from crm_console.core.models import MODELS


class StoreError(Exception):
    """Record store request failed (transport, GraphQL or conditional error)."""


class RecordStore(Protocol):
    """CRUD over Department, Role and SystemUser records.

    Records are plain dicts keyed by the data API field names. ``filters``
    maps a field name to the value it must equal; several fields are ANDed.
    """

    def list(self, model: str, filters: Optional[Mapping[str, Any]] = None) -> list[dict]: ...

    def get(self, model: str, record_id: str) -> Optional[dict]: ...

    def create(self, model: str, data: Mapping[str, Any]) -> dict: ...

    def update(self, model: str, record_id: str, changes: Mapping[str, Any]) -> dict: ...

    def delete(self, model: str, record_id: str) -> None: ...


def check_model(model: str) -> str:
    if model not in MODELS:
        raise ValueError(f"Unknown model '{model}'")
    return model
