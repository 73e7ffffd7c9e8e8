"""SOS API: trigger, history, resolve."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ridesafe.core.config import settings
from ridesafe.core.deps import get_current_user
from ridesafe.core.errors import NotFoundError, error_body
from ridesafe.db.session import get_db
from ridesafe.models.sos_event import SosEvent, SosStatus
from ridesafe.models.user import User
from ridesafe.schemas.sos import (
    ChannelsResponse,
    DispatchOutcomeOut,
    LocationOut,
    SmsTestRequest,
    SosEventEnvelope,
    SosEventOut,
    SosHistoryResponse,
    SosTriggerRequest,
    SosTriggerResponse,
)
from ridesafe.services.channels.base import OutcomeStatus
from ridesafe.services.dispatch_service import Dispatcher, channel_status, get_dispatcher, send_single_sms
from ridesafe.services.message_service import maps_link
from ridesafe.services.sos_service import (
    event_counts,
    event_outcomes,
    get_sos,
    list_sos_history,
    resolve_sos,
    trigger_sos,
)

router = APIRouter(prefix="/sos", tags=["sos"])

_TRIGGER_MESSAGES = {
    SosStatus.sent: "SOS alerts sent successfully",
    SosStatus.partially_sent: "SOS alerts sent to some contacts",
    SosStatus.failed: "No emergency contact could be reached",
    SosStatus.resolved: "SOS event was resolved while alerts were being sent",
}


def _outcomes_out(event: SosEvent) -> list[DispatchOutcomeOut]:
    return [DispatchOutcomeOut.model_validate(o.to_dict()) for o in event_outcomes(event)]


def _event_out(event: SosEvent) -> SosEventOut:
    counts = event_counts(event)
    return SosEventOut(
        id=event.id,
        user_id=event.user_id,
        latitude=event.latitude,
        longitude=event.longitude,
        status=event.status.value,
        total_contacts=counts.total_contacts,
        successful=counts.successful,
        failed=counts.failed,
        skipped=counts.skipped,
        dispatch_results=_outcomes_out(event),
        failure_detail=event.failure_detail,
        created_at=event.created_at,
        dispatched_at=event.dispatched_at,
        resolved_at=event.resolved_at,
    )


@router.post("/trigger", response_model=SosTriggerResponse)
def trigger(
    data: SosTriggerRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    """Record an SOS and alert every active emergency contact."""
    event = trigger_sos(db, dispatcher, current_user.id, data.latitude, data.longitude, data.user_phone)

    if event.failure_detail:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body(
                "Failed to send SMS alerts",
                event.failure_detail,
                sosEventId=event.id,
                status=event.status.value,
            ),
        )

    counts = event_counts(event)
    return SosTriggerResponse(
        success=counts.successful > 0,
        message=_TRIGGER_MESSAGES[event.status],
        sos_event_id=event.id,
        status=event.status.value,
        total_contacts=counts.total_contacts,
        successful=counts.successful,
        failed=counts.failed,
        skipped=counts.skipped,
        location=LocationOut(
            latitude=event.latitude,
            longitude=event.longitude,
            maps_link=maps_link(event.latitude, event.longitude),
        ),
        outcomes=_outcomes_out(event),
    )


@router.get("/history", response_model=SosHistoryResponse)
def history(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Caller's SOS events, newest first (max 50)."""
    events = list_sos_history(db, current_user.id)
    return SosHistoryResponse(data=[_event_out(e) for e in events])


@router.get("/channels", response_model=ChannelsResponse)
def channels(
    current_user: User = Depends(get_current_user),
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    """Whether each outbound channel is usable, and why not."""
    return channel_status(dispatcher)


@router.post("/test-sms")
def send_test_sms(
    data: SmsTestRequest,
    current_user: User = Depends(get_current_user),
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    """Send one SMS through the alert channel. Debug builds only."""
    if not settings.debug:
        raise NotFoundError("Endpoint", message="Not found")
    outcome = send_single_sms(dispatcher, data.to, data.message)
    out = DispatchOutcomeOut.model_validate(outcome.to_dict())
    return {"success": outcome.status == OutcomeStatus.sent, "data": out.model_dump(by_alias=True)}


@router.post("/resolve/{sos_id}", response_model=SosEventEnvelope)
def resolve(
    sos_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Mark an SOS event resolved. Safe to repeat."""
    event = resolve_sos(db, sos_id, current_user.id)
    return SosEventEnvelope(message="SOS event resolved successfully", data=_event_out(event))


@router.get("/{sos_id}", response_model=SosEventEnvelope)
def get_event(
    sos_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """One SOS event with its per-contact outcomes. Owner only."""
    return SosEventEnvelope(data=_event_out(get_sos(db, sos_id, current_user.id)))
