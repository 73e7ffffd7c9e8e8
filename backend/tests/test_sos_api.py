"""SOS API tests."""

from ridesafe.core.config import settings
from ridesafe.services.dispatch_service import get_dispatcher
from ridesafe.main import app


def _add_contact(client, headers, name, phone=None, **extra):
    body = {"name": name, **extra}
    if phone:
        body["phone"] = phone
    r = client.post("/contacts", headers=headers, json=body)
    assert r.status_code == 201
    return r.json()


def _trigger(client, headers, lat=37.7749, lng=-122.4194, **extra):
    return client.post("/sos/trigger", headers=headers, json={"latitude": lat, "longitude": lng, **extra})


def test_trigger_requires_auth(client):
    r = _trigger(client, {})
    assert r.status_code == 401
    assert r.json()["success"] is False


def test_trigger_mixed_contacts(client, register, fake_twilio):
    """Three phones (one rejected), one deactivated, one without a phone."""
    headers, _ = register(full_name="Jordan Lee")
    _add_contact(client, headers, "Mom", "555-201-0001")
    _add_contact(client, headers, "Dad", "555-201-0002")
    _add_contact(client, headers, "Sis", "555-201-0003")
    old = _add_contact(client, headers, "Old Friend", "555-201-0004")
    client.patch(f"/contacts/{old['id']}", headers=headers, json={"is_active": False})
    _add_contact(client, headers, "Neighbour")
    fake_twilio.failing.add("+15552010002")

    r = _trigger(client, headers)

    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["status"] == "partially_sent"
    assert body["message"] == "SOS alerts sent to some contacts"
    assert (body["totalContacts"], body["successful"], body["failed"], body["skipped"]) == (4, 2, 1, 1)
    assert body["location"]["mapsLink"] == "https://maps.google.com/?q=37.774900,-122.419400"
    assert [o["contactName"] for o in body["outcomes"]] == ["Mom", "Dad", "Sis", "Neighbour"]
    assert body["outcomes"][1]["status"] == "failed"
    assert body["outcomes"][3]["skipReason"] == "No phone number"
    assert {m["to"] for m in fake_twilio.sent} == {"+15552010001", "+15552010003"}
    assert "Jordan Lee" in fake_twilio.sent[0]["body"]

    stored = client.get(f"/sos/{body['sosEventId']}", headers=headers).json()["data"]
    assert stored["status"] == "partially_sent"
    assert stored["totalContacts"] == 4
    assert len(stored["dispatchResults"]) == 4


def test_trigger_all_sent(client, register):
    headers, _ = register()
    _add_contact(client, headers, "Only", "5552020001")

    body = _trigger(client, headers).json()

    assert body["status"] == "sent"
    assert body["message"] == "SOS alerts sent successfully"


def test_trigger_all_failed_is_200_with_success_false(client, register, fake_twilio):
    headers, _ = register()
    _add_contact(client, headers, "Gone", "5552030001")
    fake_twilio.failing.add("+15552030001")

    r = _trigger(client, headers)

    assert r.status_code == 200
    assert r.json()["success"] is False
    assert r.json()["status"] == "failed"


def test_trigger_without_reachable_contacts_is_404(client, register, fake_twilio):
    headers, _ = register()
    _add_contact(client, headers, "No Phone")

    r = _trigger(client, headers)

    assert r.status_code == 404
    assert r.json()["error"] == "No emergency contacts with phone numbers found"
    assert fake_twilio.sent == []
    assert client.get("/sos/history", headers=headers).json()["data"] == []


def test_trigger_rejects_bad_coordinates(client, register):
    headers, _ = register()
    _add_contact(client, headers, "C", "5552040001")

    r = _trigger(client, headers, lat=95)
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid coordinate range"

    r = _trigger(client, headers, lat="north")
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid coordinates format"

    r = client.post(
        "/sos/trigger",
        headers={**headers, "Content-Type": "application/json"},
        content='{"latitude": 1' + "0" * 400 + ', "longitude": 0}',
    )
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid coordinate range"

    r = client.post("/sos/trigger", headers=headers, json={})
    assert r.status_code == 400
    assert r.json()["error"] == "Latitude and longitude are required"


def test_dispatcher_crash_returns_500_with_event_id(client, register):
    headers, _ = register()
    _add_contact(client, headers, "C", "5552050001")

    class Exploding:
        def dispatch(self, *args, **kwargs):
            raise RuntimeError("executor shut down")

    app.dependency_overrides[get_dispatcher] = lambda: Exploding()
    r = _trigger(client, headers)

    assert r.status_code == 500
    body = r.json()
    assert body["success"] is False
    assert body["error"] == "Failed to send SMS alerts"
    assert body["details"] == "executor shut down"
    assert body["status"] == "failed"

    stored = client.get(f"/sos/{body['sosEventId']}", headers=headers).json()["data"]
    assert stored["status"] == "failed"
    assert stored["failureDetail"] == "executor shut down"


def test_linked_contact_also_gets_push(client, register, fake_expo):
    friend_headers, _ = register(full_name="Friend", phone="555-206-0001")
    client.put("/auth/me", headers=friend_headers, json={"push_token": "ExponentPushToken[friend]"})
    headers, _ = register(full_name="Casey")
    contact = _add_contact(client, headers, "Friend", "(555) 206-0001")
    assert contact["linked_account_id"] is not None

    body = _trigger(client, headers).json()

    assert [(o["channel"], o["status"]) for o in body["outcomes"]] == [("sms", "sent"), ("push", "sent")]
    assert body["totalContacts"] == 1
    assert fake_expo.requests[0]["to"] == "ExponentPushToken[friend]"
    assert "Casey" in fake_expo.requests[0]["body"]


def test_user_phone_override_appears_in_sms(client, register, fake_twilio):
    headers, _ = register(phone="5552070000")
    _add_contact(client, headers, "C", "5552070001")

    _trigger(client, headers, userPhone="+15559990000")

    assert "CALL BACK: +15559990000" in fake_twilio.sent[0]["body"]


def test_resolve_is_idempotent_and_owner_only(client, register):
    headers, _ = register()
    other_headers, _ = register()
    _add_contact(client, headers, "C", "5552080001")
    sos_id = _trigger(client, headers).json()["sosEventId"]

    assert client.post(f"/sos/resolve/{sos_id}", headers=other_headers).status_code == 404

    first = client.post(f"/sos/resolve/{sos_id}", headers=headers)
    assert first.status_code == 200
    assert first.json()["data"]["status"] == "resolved"
    assert first.json()["message"] == "SOS event resolved successfully"

    second = client.post(f"/sos/resolve/{sos_id}", headers=headers)
    assert second.status_code == 200
    assert second.json()["data"]["resolvedAt"] == first.json()["data"]["resolvedAt"]

    assert client.post("/sos/resolve/999999", headers=headers).status_code == 404


def test_history_is_newest_first_and_private(client, register):
    headers, _ = register()
    other_headers, _ = register()
    _add_contact(client, headers, "C", "5552090001")
    first = _trigger(client, headers).json()["sosEventId"]
    second = _trigger(client, headers).json()["sosEventId"]

    data = client.get("/sos/history", headers=headers).json()["data"]

    assert [e["id"] for e in data] == [second, first]
    assert client.get("/sos/history", headers=other_headers).json()["data"] == []
    assert client.get(f"/sos/{first}", headers=other_headers).status_code == 404


def test_channels_report(client, register):
    headers, _ = register()
    body = client.get("/sos/channels", headers=headers).json()
    assert body["sms"] == {"usable": True, "problems": []}
    assert body["push"]["usable"] is True


def test_test_sms_hidden_unless_debug(client, register, fake_twilio, monkeypatch):
    headers, _ = register()
    payload = {"to": "5552100001", "message": "ping"}

    assert client.post("/sos/test-sms", headers=headers, json=payload).status_code == 404

    monkeypatch.setattr(settings, "debug", True)
    r = client.post("/sos/test-sms", headers=headers, json=payload)
    assert r.status_code == 200
    assert r.json()["success"] is True
    assert r.json()["data"]["to"] == "+15552100001"
    assert fake_twilio.sent[-1]["body"] == "ping"
