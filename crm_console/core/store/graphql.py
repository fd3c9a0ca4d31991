"""Record store client for the GraphQL data API.

The data API exposes the generated model operations
``list<Model>s``, ``get<Model>``, ``create<Model>``, ``update<Model>`` and
``delete<Model>``, authorized with an ``x-api-key`` header.

The SystemUser model needs one field beyond the base console schema:
``accessBeforeDeactivation: a.enum(["allowed", "blocked"])`` (nullable). It
holds the dashboard access to restore on reactivation; the data API rejects
every SystemUser selection and input until the field is deployed.
"""
from __future__ import annotations
import logging
from typing import Any, Mapping, Optional

import requests

from .base import StoreError, check_model

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10
PAGE_SIZE = 1000

MODEL_FIELDS = {
    "Department": ("id", "name", "description"),
    "Role": ("id", "name", "description", "departmentId"),
    "SystemUser": (
        "id",
        "employeeId",
        "name",
        "email",
        "mobile",
        "departmentId",
        "roleId",
        "lineManagerId",
        "status",
        "dashboardAccess",
        "failedLoginAttempts",
        "createdDate",
        "accessBeforeDeactivation",
    ),
}


def _selection(model: str) -> str:
    return " ".join(MODEL_FIELDS[model])


def _filter_input(filters: Mapping[str, Any]) -> dict:
    return {field: {"eq": value} for field, value in filters.items()}


class GraphQLRecordStore:
    """RecordStore implementation over HTTPS GraphQL."""

    def __init__(self, url: str, api_key: str = "", session: Optional[requests.Session] = None):
        self.url = url
        self.api_key = api_key
        self._session = session

    def _post(self, query: str, variables: dict) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["x-api-key"] = self.api_key
        poster = self._session.post if self._session is not None else requests.post
        try:
            resp = poster(
                self.url,
                json={"query": query, "variables": variables},
                headers=headers,
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as e:
            raise StoreError(f"Data API unreachable: {e}") from e

        if resp.status_code >= 400:
            raise StoreError(f"Data API returned HTTP {resp.status_code}: {resp.text[:200]}")
        try:
            body = resp.json()
        except ValueError as e:
            raise StoreError(f"Data API returned invalid JSON: {e}") from e

        errors = body.get("errors")
        if errors:
            messages = "; ".join(str(err.get("message", err)) for err in errors)
            raise StoreError(messages)
        return body.get("data") or {}

    def list(self, model: str, filters: Optional[Mapping[str, Any]] = None) -> list[dict]:
        check_model(model)
        operation = f"list{model}s"
        query = (
            f"query List($filter: Model{model}FilterInput, $limit: Int, $nextToken: String) {{ "
            f"{operation}(filter: $filter, limit: $limit, nextToken: $nextToken) {{ "
            f"items {{ {_selection(model)} }} nextToken }} }}"
        )
        variables: dict[str, Any] = {"limit": PAGE_SIZE}
        if filters:
            variables["filter"] = _filter_input(filters)

        items: list[dict] = []
        next_token = None
        while True:
            page = self._post(query, {**variables, "nextToken": next_token}).get(operation) or {}
            items.extend(item for item in page.get("items") or [] if item)
            next_token = page.get("nextToken")
            if not next_token:
                break
        logger.debug("Listed %d %s records", len(items), model)
        return items

    def get(self, model: str, record_id: str) -> Optional[dict]:
        check_model(model)
        operation = f"get{model}"
        query = f"query Get($id: ID!) {{ {operation}(id: $id) {{ {_selection(model)} }} }}"
        return self._post(query, {"id": record_id}).get(operation)

    def _mutate(self, action: str, model: str, payload: dict) -> dict:
        operation = f"{action}{model}"
        input_type = f"{action[0].upper()}{action[1:]}{model}Input"
        query = (
            f"mutation Mutate($input: {input_type}!) {{ "
            f"{operation}(input: $input) {{ {_selection(model)} }} }}"
        )
        result = self._post(query, {"input": payload}).get(operation)
        if result is None:
            raise StoreError(f"{operation} returned no record")
        return result

    def create(self, model: str, data: Mapping[str, Any]) -> dict:
        check_model(model)
        return self._mutate("create", model, dict(data))

    def update(self, model: str, record_id: str, changes: Mapping[str, Any]) -> dict:
        check_model(model)
        return self._mutate("update", model, {**dict(changes), "id": record_id})

    def delete(self, model: str, record_id: str) -> None:
        check_model(model)
        self._mutate("delete", model, {"id": record_id})
