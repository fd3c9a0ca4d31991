"""Tests for the GraphQL record store client with stubbed HTTP."""
from unittest.mock import MagicMock

import pytest
import requests

from crm_console.core.store import GraphQLRecordStore, StoreError

URL = "https://data.example.com/graphql"


def _response(payload, status_code=200):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = payload
    resp.text = str(payload)
    return resp


@pytest.fixture()
def post(monkeypatch):
    mock = MagicMock()
    monkeypatch.setattr(requests, "post", mock)
    return mock


def test_list_sends_eq_filter_and_api_key(post):
    post.return_value = _response({"data": {"listSystemUsers": {"items": [{"id": "u1"}], "nextToken": None}}})
    store = GraphQLRecordStore(URL, "key-123")

    items = store.list("SystemUser", {"employeeId": "E100"})

    assert items == [{"id": "u1"}]
    kwargs = post.call_args.kwargs
    assert post.call_args.args[0] == URL
    assert kwargs["headers"]["x-api-key"] == "key-123"
    assert kwargs["json"]["variables"]["filter"] == {"employeeId": {"eq": "E100"}}
    assert "listSystemUsers" in kwargs["json"]["query"]
    assert "ModelSystemUserFilterInput" in kwargs["json"]["query"]


def test_list_follows_next_token(post):
    post.side_effect = [
        _response({"data": {"listRoles": {"items": [{"id": "r1"}], "nextToken": "page-2"}}}),
        _response({"data": {"listRoles": {"items": [{"id": "r2"}, None], "nextToken": None}}}),
    ]
    store = GraphQLRecordStore(URL)

    assert [r["id"] for r in store.list("Role")] == ["r1", "r2"]
    assert post.call_args_list[1].kwargs["json"]["variables"]["nextToken"] == "page-2"
    assert "filter" not in post.call_args_list[0].kwargs["json"]["variables"]


def test_get_returns_none_for_missing_record(post):
    post.return_value = _response({"data": {"getDepartment": None}})
    assert GraphQLRecordStore(URL).get("Department", "d1") is None


def test_create_uses_typed_input(post):
    post.return_value = _response({"data": {"createDepartment": {"id": "d1", "name": "Engineering"}}})

    created = GraphQLRecordStore(URL).create("Department", {"name": "Engineering"})

    assert created["id"] == "d1"
    body = post.call_args.kwargs["json"]
    assert "CreateDepartmentInput!" in body["query"]
    assert body["variables"] == {"input": {"name": "Engineering"}}


def test_update_includes_id(post):
    post.return_value = _response({"data": {"updateSystemUser": {"id": "u1", "status": "inactive"}}})

    GraphQLRecordStore(URL).update("SystemUser", "u1", {"status": "inactive"})

    assert post.call_args.kwargs["json"]["variables"] == {"input": {"status": "inactive", "id": "u1"}}


def test_delete(post):
    post.return_value = _response({"data": {"deleteRole": {"id": "r1"}}})
    GraphQLRecordStore(URL).delete("Role", "r1")
    assert "DeleteRoleInput!" in post.call_args.kwargs["json"]["query"]


def test_graphql_errors_raise_store_error(post):
    post.return_value = _response({"data": None, "errors": [{"message": "Not Authorized"}]})
    with pytest.raises(StoreError, match="Not Authorized"):
        GraphQLRecordStore(URL).list("Department")


def test_http_error_raises_store_error(post):
    post.return_value = _response({"message": "Unauthorized"}, status_code=401)
    with pytest.raises(StoreError, match="401"):
        GraphQLRecordStore(URL).get("Role", "r1")


def test_transport_error_raises_store_error(post):
    post.side_effect = requests.Timeout("slow")
    with pytest.raises(StoreError, match="unreachable"):
        GraphQLRecordStore(URL).get("Role", "r1")


def test_mutation_without_result_raises(post):
    post.return_value = _response({"data": {"deleteRole": None}})
    with pytest.raises(StoreError):
        GraphQLRecordStore(URL).delete("Role", "r1")


def test_unknown_model_rejected(post):
    with pytest.raises(ValueError):
        GraphQLRecordStore(URL).list("Invoice")
    post.assert_not_called()


def test_system_user_selection_includes_restore_field(post):
    post.return_value = _response({"data": {"getSystemUser": {"id": "u1"}}})
    GraphQLRecordStore(URL).get("SystemUser", "u1")
    assert "accessBeforeDeactivation" in post.call_args.kwargs["json"]["query"]
