"""SOS event lifecycle: trigger, resolve, history."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ridesafe.core.errors import NoContactsError, NotFoundError, StorageError, ValidationError
from ridesafe.core.sos_policies import FALLBACK_SENDER_NAME, HISTORY_PAGE_SIZE
from ridesafe.core.sos_state import transition
from ridesafe.models.sos_event import SosEvent, SosStatus
from ridesafe.models.user import User
from ridesafe.services.channels.base import DispatchOutcome
from ridesafe.services.contact_service import resolve_contacts
from ridesafe.services.dispatch_service import BatchResult, DispatchCounts, Dispatcher, tally

logger = logging.getLogger(__name__)


def validate_coordinates(latitude, longitude) -> tuple[float, float]:
    """Return the pair as floats or raise ValidationError."""
    if latitude is None or longitude is None:
        raise ValidationError("Latitude and longitude are required")
    coords = []
    for name, value in (("latitude", latitude), ("longitude", longitude)):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError("Invalid coordinates format", field=name)
        try:
            value = float(value)
        except OverflowError:
            # ints beyond float range
            raise ValidationError("Invalid coordinate range", field=name)
        if not math.isfinite(value):
            raise ValidationError("Invalid coordinates format", field=name)
        coords.append(value)
    latitude, longitude = coords
    if not -90 <= latitude <= 90 or not -180 <= longitude <= 180:
        raise ValidationError("Invalid coordinate range", latitude=latitude, longitude=longitude)
    return latitude, longitude


def _load_user(db: Session, user_id: int) -> User:
    try:
        user = db.get(User, user_id)
    except SQLAlchemyError as exc:
        logger.error("User lookup failed for user=%s: %s", user_id, exc)
        raise StorageError("Failed to load user profile")
    if not user:
        raise NotFoundError("User profile", message="User profile not found", id=user_id)
    return user


def _create_event(db: Session, user_id: int, latitude: float, longitude: float) -> SosEvent:
    event = SosEvent(
        user_id=user_id,
        latitude=latitude,
        longitude=longitude,
        status=SosStatus.active,
        dispatch_results=[],
    )
    try:
        db.add(event)
        db.commit()
        db.refresh(event)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Creating SOS event failed for user=%s: %s", user_id, exc)
        raise StorageError("Failed to create SOS event")
    return event


def _record_dispatch(db: Session, event: SosEvent, batch: BatchResult | None, failure_detail: str | None) -> None:
    """Move the event out of ``active`` and attach the outcomes.

    The row is re-read first: if it was resolved while the sends were in
    flight it stays ``resolved`` and only the outcomes are attached.
    """
    target = batch.status if batch is not None else SosStatus.failed
    try:
        db.refresh(event)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Reloading SOS %s before recording dispatch failed: %s", event.id, exc)
    if event.status == SosStatus.resolved:
        logger.info("SOS %s was resolved during dispatch; keeping status", event.id)
    else:
        event.status = transition(event.status, target)
    event.dispatch_results = [o.to_dict() for o in batch.outcomes] if batch is not None else []
    event.failure_detail = failure_detail
    event.dispatched_at = datetime.now(timezone.utc)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Recording dispatch for SOS %s failed: %s", event.id, exc)
        # Last attempt: at least leave the event in a terminal-for-now state.
        try:
            if event.status != SosStatus.resolved:
                event.status = transition(event.status, SosStatus.failed)
            event.failure_detail = "Dispatch results could not be stored"
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise StorageError("Failed to record SOS dispatch results", sos_event_id=event.id)
    db.refresh(event)
    logger.info("SOS %s -> %s", event.id, event.status.value)


def trigger_sos(
    db: Session,
    dispatcher: Dispatcher,
    user_id: int,
    latitude,
    longitude,
    user_phone: str | None = None,
) -> SosEvent:
    """Record an SOS and alert the user's emergency contacts.

    Anything failing before the event row exists aborts with nothing written.
    Once the row exists the outcome is always written back onto it, including
    when the dispatcher itself raises (status ``failed``, ``failure_detail``
    set). The returned event is never ``active``.
    """
    latitude, longitude = validate_coordinates(latitude, longitude)
    user = _load_user(db, user_id)

    contacts = resolve_contacts(db, user_id, include_unreachable=True)
    if not any(c.phone for c in contacts):
        raise NoContactsError()

    event = _create_event(db, user_id, latitude, longitude)
    logger.info("SOS %s created for user=%s with %s contacts", event.id, user_id, len(contacts))

    batch: BatchResult | None = None
    failure_detail: str | None = None
    try:
        batch = dispatcher.dispatch(
            user.full_name or FALLBACK_SENDER_NAME,
            contacts,
            latitude,
            longitude,
            datetime.now(timezone.utc),
            sender_phone=user_phone or user.phone,
        )
    except Exception as exc:  # noqa: BLE001 - the event must not stay active
        logger.exception("Dispatch for SOS %s raised", event.id)
        failure_detail = str(exc) or exc.__class__.__name__

    _record_dispatch(db, event, batch, failure_detail)
    return event


def event_outcomes(event: SosEvent) -> list[DispatchOutcome]:
    return [DispatchOutcome.from_dict(d) for d in (event.dispatch_results or [])]


def event_counts(event: SosEvent) -> DispatchCounts:
    """Counters for an event, recomputed from its stored outcomes."""
    return tally(event_outcomes(event))


def get_sos(db: Session, sos_id: int, user_id: int) -> SosEvent:
    """Get an SOS event owned by ``user_id`` or raise NotFoundError."""
    event = db.execute(
        select(SosEvent).where(SosEvent.id == sos_id, SosEvent.user_id == user_id)
    ).scalar_one_or_none()
    if not event:
        raise NotFoundError("SOS event", message="SOS event not found", id=sos_id)
    return event


def resolve_sos(db: Session, sos_id: int, user_id: int) -> SosEvent:
    """Mark an event resolved. Resolving a resolved event is a no-op."""
    event = get_sos(db, sos_id, user_id)
    if event.status == SosStatus.resolved:
        return event
    event.status = transition(event.status, SosStatus.resolved)
    event.resolved_at = datetime.now(timezone.utc)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Resolving SOS %s failed: %s", sos_id, exc)
        raise StorageError("Failed to resolve SOS event")
    db.refresh(event)
    logger.info("SOS %s resolved by user=%s", sos_id, user_id)
    return event


def list_sos_history(db: Session, user_id: int, limit: int = HISTORY_PAGE_SIZE) -> list[SosEvent]:
    """List a user's SOS events, newest first."""
    try:
        result = db.execute(
            select(SosEvent)
            .where(SosEvent.user_id == user_id)
            .order_by(SosEvent.created_at.desc(), SosEvent.id.desc())
            .limit(min(limit, HISTORY_PAGE_SIZE))
        )
        return list(result.scalars().all())
    except SQLAlchemyError as exc:
        logger.error("Fetching SOS history failed for user=%s: %s", user_id, exc)
        raise StorageError("Failed to fetch SOS history")
