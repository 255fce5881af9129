import json

import pytest

from copernica_client import (
    UNUSABLE,
    ApiCallError,
    CursorStore,
    DegradedResponse,
    FailureCategory,
    ProtocolViolation,
    RestClient,
    SuppressionPolicy,
)


def _list_page(start, limit, records, total):
    return {"start": start, "limit": limit, "count": len(records), "total": total, "data": records}

# --- Suppression policy ---

def test_default_policy_comes_from_settings(client):
    assert client.get_suppression_policy() == SuppressionPolicy.default()


def test_set_suppression_policy(client, transport):
    client.set_suppression_policy(SuppressionPolicy.of(FailureCategory.GET_TRANSPORT_ERROR))
    assert client.get_suppression_policy().suppresses(FailureCategory.GET_TRANSPORT_ERROR)
    transport.add_error(7, "refused")
    assert client.get("profiles") is UNUSABLE


def test_per_call_override_wins_over_client_policy(client, transport):
    client.set_suppression_policy(SuppressionPolicy.all())
    transport.add_error(7, "refused")
    with pytest.raises(ApiCallError):
        client.get("profiles", suppress=SuppressionPolicy.none())
    assert client.get_suppression_policy() == SuppressionPolicy.all()

# --- Single calls ---

def test_get_sends_token_and_parameters(client, transport):
    transport.add_json({"ID": "1"})
    assert client.get("profile/1", {"fields": ["email==x"]}) == {"ID": "1"}
    assert transport.requests[0]["url"] == "https://api.example.test/v2/profile/1"
    assert transport.last_params == {"fields[]": "email==x", "access_token": "secret-token"}


def test_get_entity(client, transport):
    transport.add_json({"ID": "1", "removed": False})
    assert client.get_entity("profile/1")["ID"] == "1"


def test_get_entity_removed(client, transport):
    removed = {"ID": "1", "removed": "2021-01-01 10:00:00", "fields": {}}
    transport.add_json(removed)
    with pytest.raises(ApiCallError) as err:
        client.get_entity("profile/1")
    assert err.value.category is FailureCategory.GET_ENTITY_IS_REMOVED
    assert json.loads(err.value.body) == removed

    transport.add_json(removed)
    assert client.get_entity("profile/1", suppress=SuppressionPolicy.of("GET_ENTITY_IS_REMOVED")) == removed


def test_get_entity_call_failures_always_raise(client, transport):
    transport.add(400, '{"error": {"message": "No entity with supplied ID"}}')
    with pytest.raises(ApiCallError):
        client.get_entity("profile/999", suppress=SuppressionPolicy.all())


def test_get_entity_without_id(client, transport):
    transport.add_json({"name": "no id"})
    with pytest.raises(ProtocolViolation):
        client.get_entity("database/1", suppress=SuppressionPolicy.all())


def test_post_missing_created_id_is_tolerated_by_default(client, transport):
    transport.add(201, "")
    result = client.post("database/1/profiles", {"fields": {"email": "a@example.com"}})
    assert isinstance(result, DegradedResponse)
    assert result.category is FailureCategory.POST_NO_ID

    transport.add(201, "")
    with pytest.raises(ApiCallError):
        client.post("database/1/profiles", {}, suppress=client.get_suppression_policy().without("POST_NO_ID"))


def test_post_returns_id(client, transport):
    transport.add(201, "", {"X-Created": "42"})
    assert client.post("database/1/profiles", {"fields": {}}) == 42


def test_put_and_delete(client, transport):
    transport.add(303, "", {"Location": "https://api.example.test/profile/5"})
    assert client.put("profile/5/fields", {"email": "b@example.com"}) == "profile/5"
    assert transport.requests[-1]["method"] == "PUT"
    assert transport.requests[-1]["json"] == {"email": "b@example.com"}

    transport.add_json({"error": {"message": "This profile has already been removed"}}, status_code=400)
    result = client.delete("profile/5", suppress=SuppressionPolicy.of(FailureCategory.DELETE_ALREADY_REMOVED))
    assert result.category is FailureCategory.DELETE_ALREADY_REMOVED

# --- Entity lists ---

def test_entity_batches(client, transport):
    transport.add_json(_list_page(0, 2, [{"ID": "1"}, {"ID": "2"}], 3))
    transport.add_json(_list_page(2, 2, [{"ID": "3"}], 3))

    assert client.get_entities("database/1/profiles", {"limit": 2, "total": True}) == [{"ID": "1"}, {"ID": "2"}]
    assert not client.is_complete()
    assert client.get_entities_next_batch() == [{"ID": "3"}]
    assert client.is_complete()
    assert client.get_entities_next_batch() == []
    assert client.fetched_count == 3
    assert len(transport.requests) == 2


def test_entity_lists_ignore_suppression(client, transport):
    client.set_suppression_policy(SuppressionPolicy.all())
    transport.add_json({"start": 0, "limit": 10, "count": 5, "data": []})
    with pytest.raises(ProtocolViolation):
        client.get_entities("profiles")

# --- Cursor state ---

def test_cursor_state_moves_between_clients(client, transport, transport_factory):
    transport.add_json(_list_page(0, 2, [{"ID": "1"}, {"ID": "2"}], 3))
    client.get_entities("database/1/profiles", {"limit": 2, "total": True})
    state = client.export_cursor_state()
    assert state == {
        "resource": "database/1/profiles",
        "parameters": {"limit": 2, "total": True},
        "total": 3,
        "next_start": 2,
        "fetched_count": 2,
        "last_entities": [{"ID": "2"}],
        "ordered_fetch_issue": None,
        "ordered_fetch_reason": "",
    }

    other_transport = transport_factory().add_json(_list_page(2, 2, [{"ID": "3"}], 3))
    other = RestClient(access_token="other", base_url="https://api.example.test", transport=other_transport)
    other.import_cursor_state(state)
    assert other.get_entities_next_batch() == [{"ID": "3"}]
    assert other_transport.last_params["start"] == "2"
    assert other_transport.last_params["access_token"] == "other"


def test_cursor_state_through_store(client, transport, tmp_path):
    store = CursorStore(str(tmp_path / "cursor.json"))
    assert client.restore_cursor_state(store) is False

    transport.add_json(_list_page(0, 2, [{"ID": "1"}, {"ID": "2"}], 3))
    client.get_entities("database/1/profiles", {"limit": 2, "total": True})
    client.save_cursor_state(store)

    transport.add_json(_list_page(2, 2, [{"ID": "3"}], 3))
    resumed = RestClient(access_token="t", base_url="https://api.example.test", transport=transport)
    assert resumed.restore_cursor_state(store) is True
    assert resumed.get_entities_next_batch() == [{"ID": "3"}]


def test_export_without_list_fetch(client):
    assert client.export_cursor_state() is None


def test_ordered_entity_batches(client, transport):
    transport.add_json(_list_page(0, 2, [{"ID": "1"}, {"ID": "2"}], 3))
    transport.add_json({"start": 0, "limit": 2, "count": 1, "total": 1, "data": [{"ID": "3"}]})

    client.get_entities("database/1/profiles", {"limit": 2, "total": True})
    assert client.get_entities_next_batch_ordered() == [{"ID": "3"}]
    assert transport.requests[-1]["params"][-2:] == [("fields[]", "ID>2"), ("access_token", "secret-token")]
    assert client.is_complete()
    assert client.export_cursor_state(include_entities=False)["last_entities"] == []
