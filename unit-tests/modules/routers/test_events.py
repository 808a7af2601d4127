import pytest
import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))
import unit_test_utils
from unit_test_utils import auth


EVENT = {
    "title": "Standup",
    "start_time": "2024-01-15T09:00:00",
    "end_time": "2024-01-15T09:15:00",
}


@pytest.fixture
def setup():
    """A client with a user in Berlin and a user in UTC"""
    client, ctx = unit_test_utils.make_client()
    alice_id, alice_key = unit_test_utils.register(client, "alice@example.com", "Alice", "Europe/Berlin")
    bob_id, bob_key = unit_test_utils.register(client, "bob@example.com", "Bob")
    return client, ctx, (alice_id, alice_key), (bob_id, bob_key)


def test_create_event(setup):
    client, ctx, (alice_id, alice_key), _ = setup
    response = client.post("/events/", json=EVENT, headers=auth(alice_key))
    assert response.status_code == 201
    data = response.json()
    assert data["calendar_id"] == unit_test_utils.default_calendar_id(ctx, alice_id)
    assert data["start_time"] == "2024-01-15T08:00:00"
    assert data["local_start"] == "2024-01-15T09:00:00+01:00"

def test_create_event_validation(setup):
    client, _, (_, alice_key), _ = setup
    response = client.post("/events/", json=dict(EVENT, end_time="2024-01-15T08:00:00"), headers=auth(alice_key))
    assert response.status_code == 400
    response = client.post("/events/", json=dict(EVENT, start_time="soon"), headers=auth(alice_key))
    assert response.status_code == 400
    response = client.post("/events/", json={"title": "No times"}, headers=auth(alice_key))
    assert response.status_code == 422

def test_create_in_foreign_calendar(setup):
    client, ctx, (alice_id, _), (_, bob_key) = setup
    calendar_id = unit_test_utils.default_calendar_id(ctx, alice_id)
    response = client.post("/events/", json=dict(EVENT, calendar_id=calendar_id), headers=auth(bob_key))
    assert response.status_code == 404

def test_recurring_event_and_listing(setup):
    client, _, (_, alice_key), _ = setup
    response = client.post("/events/", json=dict(EVENT, is_recurring=True, recurrence_rule="FREQ=DAILY;COUNT=3"),
                           headers=auth(alice_key))
    head_id = response.json()["id"]

    response = client.get("/events/", params={"start_date": "2024-01-15", "end_date": "2024-01-31"},
                          headers=auth(alice_key))
    assert response.status_code == 200
    data = response.json()
    assert data["pagination"] == {"total": 3, "limit": 50, "offset": 0, "has_more": False}
    assert [e["parent_event_id"] for e in data["events"]] == [None, head_id, head_id]

    response = client.get("/events/", params={"is_recurring": "true"}, headers=auth(alice_key))
    assert [e["id"] for e in response.json()["events"]] == [head_id]

    response = client.get("/events/", params={"limit": 1, "offset": 1, "order_direction": "desc"},
                          headers=auth(alice_key))
    data = response.json()
    assert data["pagination"]["has_more"]
    assert data["events"][0]["start_time"] == "2024-01-16T08:00:00"

def test_list_invalid_params(setup):
    client, _, (_, alice_key), _ = setup
    assert client.get("/events/", params={"limit": 0}, headers=auth(alice_key)).status_code == 400
    assert client.get("/events/", params={"order_by": "color"}, headers=auth(alice_key)).status_code == 400
    assert client.get("/events/", params={"start_date": "15/01/2024"}, headers=auth(alice_key)).status_code == 400

def test_range(setup):
    client, _, (_, alice_key), _ = setup
    client.post("/events/", json=EVENT, headers=auth(alice_key))
    response = client.get("/events/range", params={"start": "2024-01-15T09:05:00", "end": "2024-01-15T09:10:00"},
                          headers=auth(alice_key))
    assert response.json()["pagination"]["total"] == 1
    response = client.get("/events/range", params={"start": "2024-01-16", "end": "2024-01-17"},
                          headers=auth(alice_key))
    assert response.json()["pagination"]["total"] == 0

def test_today_and_upcoming_respond(setup):
    client, _, (_, alice_key), _ = setup
    assert client.get("/events/today", headers=auth(alice_key)).status_code == 200
    response = client.get("/events/upcoming", headers=auth(alice_key))
    assert response.status_code == 200
    assert response.json()["pagination"]["limit"] == 10

def test_get_update_delete(setup):
    client, _, (_, alice_key), (_, bob_key) = setup
    event_id = client.post("/events/", json=EVENT, headers=auth(alice_key)).json()["id"]

    assert client.get(f"/events/{event_id}", headers=auth(alice_key)).status_code == 200
    assert client.get(f"/events/{event_id}", headers=auth(bob_key)).status_code == 404

    response = client.put(f"/events/{event_id}", json={"title": "Daily sync"}, headers=auth(alice_key))
    assert response.status_code == 200
    assert response.json()["title"] == "Daily sync"
    assert client.put(f"/events/{event_id}", json={"title": "Mine"}, headers=auth(bob_key)).status_code == 404

    assert client.delete(f"/events/{event_id}", headers=auth(bob_key)).status_code == 404
    assert client.delete(f"/events/{event_id}", headers=auth(alice_key)).status_code == 200
    assert client.get(f"/events/{event_id}", headers=auth(alice_key)).status_code == 404

def test_participants(setup):
    client, _, (_, alice_key), (bob_id, bob_key) = setup
    response = client.post("/events/", json=dict(EVENT, participants=[
        {"email": "bob@example.com"},
        {"email": "guest@elsewhere.org", "name": "Guest"},
    ]), headers=auth(alice_key))
    event_id = response.json()["id"]

    # Invitation alone grants access
    response = client.get(f"/events/{event_id}/participants", headers=auth(bob_key))
    assert response.status_code == 200
    participants = {p["email"]: p for p in response.json()}
    assert participants["bob@example.com"]["user_id"] == bob_id

    bob_pid = participants["bob@example.com"]["id"]
    response = client.put(f"/events/{event_id}/participants/{bob_pid}", json={"status": "accepted"},
                          headers=auth(bob_key))
    assert response.status_code == 200
    assert response.json()["status"] == "accepted"

    response = client.put(f"/events/{event_id}/participants/{bob_pid}", json={"status": "maybe"},
                          headers=auth(bob_key))
    assert response.status_code == 422
