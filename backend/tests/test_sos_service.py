"""SOS lifecycle tests against the service layer."""

import itertools
from unittest.mock import MagicMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker

from ridesafe.core.errors import NoContactsError, NotFoundError, ValidationError
from ridesafe.models import EmergencyContact, SosEvent, SosStatus, User
from ridesafe.services.sos_service import (
    event_counts,
    get_sos,
    list_sos_history,
    resolve_sos,
    trigger_sos,
    validate_coordinates,
)

_ids = itertools.count(1)


def _user(db, **kw):
    user = User(email=f"svc{next(_ids)}@test.com", hashed_password="x", full_name=kw.pop("full_name", "Sam"), **kw)
    db.add(user)
    db.commit()
    return user


def _contact(db, owner, name, phone=None, **kw):
    contact = EmergencyContact(user_id=owner.id, name=name, phone=phone, **kw)
    db.add(contact)
    db.commit()
    return contact


def _event_count(db, user_id):
    return db.execute(select(func.count()).select_from(SosEvent).where(SosEvent.user_id == user_id)).scalar_one()


class ExplodingDispatcher:
    def dispatch(self, *args, **kwargs):
        raise RuntimeError("thread pool exhausted")


@pytest.mark.parametrize(
    "lat, lng, message",
    [
        (None, 1.0, "Latitude and longitude are required"),
        (1.0, None, "Latitude and longitude are required"),
        ("40.1", 1.0, "Invalid coordinates format"),
        (True, 1.0, "Invalid coordinates format"),
        (float("nan"), 1.0, "Invalid coordinates format"),
        (95, 0, "Invalid coordinate range"),
        (0, -180.5, "Invalid coordinate range"),
        (10**400, 0, "Invalid coordinate range"),
        (0, -(10**400), "Invalid coordinate range"),
    ],
)
def test_validate_coordinates_rejects(lat, lng, message):
    with pytest.raises(ValidationError) as exc:
        validate_coordinates(lat, lng)
    assert exc.value.message == message


def test_validate_coordinates_accepts_bounds():
    assert validate_coordinates(90, -180) == (90.0, -180.0)
    assert validate_coordinates(-90.0, 180.0) == (-90.0, 180.0)


def test_invalid_coordinates_touch_nothing(dispatcher):
    db = MagicMock()
    with pytest.raises(ValidationError):
        trigger_sos(db, dispatcher, 1, 95, 0)
    assert db.method_calls == []


def test_no_reachable_contacts_writes_no_event(db, dispatcher, fake_twilio):
    user = _user(db)
    _contact(db, user, "Inactive", "5551110000", is_active=False)
    _contact(db, user, "NoPhone")

    with pytest.raises(NoContactsError):
        trigger_sos(db, dispatcher, user.id, 10.0, 20.0)

    assert _event_count(db, user.id) == 0
    assert fake_twilio.sent == []


def test_unknown_user_is_not_found(db, dispatcher):
    with pytest.raises(NotFoundError):
        trigger_sos(db, dispatcher, 987654, 10.0, 20.0)


def test_trigger_records_outcomes(db, dispatcher, fake_twilio):
    user = _user(db, phone="+15550009999")
    _contact(db, user, "Ann", "5552220001")
    _contact(db, user, "Ben", "5552220002")
    fake_twilio.failing.add("+15552220002")

    event = trigger_sos(db, dispatcher, user.id, 51.5, -0.125)

    assert event.status == SosStatus.partially_sent
    assert event.dispatched_at is not None
    assert event.failure_detail is None
    assert [r["contact_name"] for r in event.dispatch_results] == ["Ann", "Ben"]
    counts = event_counts(event)
    assert (counts.total_contacts, counts.successful, counts.failed, counts.skipped) == (2, 1, 1, 0)
    assert "Sam" in fake_twilio.sent[0]["body"]
    assert "+15550009999" in fake_twilio.sent[0]["body"]


def test_dispatcher_crash_leaves_event_failed_not_active(db):
    user = _user(db)
    _contact(db, user, "Ann", "5552220001")

    event = trigger_sos(db, ExplodingDispatcher(), user.id, 1.0, 2.0)

    assert event.status == SosStatus.failed
    assert event.failure_detail == "thread pool exhausted"
    assert event.dispatch_results == []
    assert _event_count(db, user.id) == 1


def test_resolve_is_idempotent(db, dispatcher):
    user = _user(db)
    _contact(db, user, "Ann", "5552220001")
    event = trigger_sos(db, dispatcher, user.id, 1.0, 2.0)

    first = resolve_sos(db, event.id, user.id)
    resolved_at = first.resolved_at
    second = resolve_sos(db, event.id, user.id)

    assert second.status == SosStatus.resolved
    assert second.resolved_at == resolved_at


def test_events_are_owner_scoped(db, dispatcher):
    owner = _user(db)
    stranger = _user(db)
    _contact(db, owner, "Ann", "5552220001")
    event = trigger_sos(db, dispatcher, owner.id, 1.0, 2.0)

    with pytest.raises(NotFoundError):
        get_sos(db, event.id, stranger.id)
    with pytest.raises(NotFoundError):
        resolve_sos(db, event.id, stranger.id)
    assert get_sos(db, event.id, owner.id).id == event.id


def test_history_newest_first_and_capped(db):
    user = _user(db)
    for i in range(55):
        db.add(SosEvent(user_id=user.id, latitude=float(i % 90), longitude=0.0, status=SosStatus.sent))
    db.commit()

    events = list_sos_history(db, user.id)

    assert len(events) == 50
    ids = [e.id for e in events]
    assert ids == sorted(ids, reverse=True)
    assert list_sos_history(db, user.id, limit=500) == events
    assert len(list_sos_history(db, user.id, limit=3)) == 3


def test_resolve_during_dispatch_is_kept(db, dispatcher):
    """A resolve committed by another session while sends run is not overwritten."""
    user = _user(db)
    _contact(db, user, "Ann", "5552220001")
    other_session = sessionmaker(bind=db.get_bind())

    class ResolvingDispatcher:
        def dispatch(self, *args, **kwargs):
            with other_session() as other:
                event_id = other.execute(
                    select(SosEvent.id).where(SosEvent.user_id == user.id)
                ).scalar_one()
                resolve_sos(other, event_id, user.id)
            return dispatcher.dispatch(*args, **kwargs)

    event = trigger_sos(db, ResolvingDispatcher(), user.id, 1.0, 2.0)

    assert event.status == SosStatus.resolved
    assert event.resolved_at is not None
    assert [r["status"] for r in event.dispatch_results] == ["sent"]
