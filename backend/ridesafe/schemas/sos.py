"""SOS schemas. Wire format is camelCase."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class SosTriggerRequest(CamelModel):
    # Left untyped; coordinate checks happen in the service so that bad values
    # are reported the same way from every entry point.
    latitude: Any = None
    longitude: Any = None
    user_phone: str | None = Field(default=None, max_length=32)


class LocationOut(CamelModel):
    latitude: float
    longitude: float
    maps_link: str


class DispatchOutcomeOut(CamelModel):
    contact_id: int | None
    contact_name: str
    channel: str
    status: str
    to: str | None = None
    provider_message_id: str | None = None
    error_detail: str | None = None
    error_code: str | None = None
    skip_reason: str | None = None


class SosTriggerResponse(CamelModel):
    success: bool
    message: str
    sos_event_id: int
    status: str
    total_contacts: int
    successful: int
    failed: int
    skipped: int
    location: LocationOut
    outcomes: list[DispatchOutcomeOut] = []


class SosEventOut(CamelModel):
    id: int
    user_id: int
    latitude: float
    longitude: float
    status: str
    total_contacts: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0
    dispatch_results: list[DispatchOutcomeOut] = []
    failure_detail: str | None = None
    created_at: datetime
    dispatched_at: datetime | None = None
    resolved_at: datetime | None = None


class SosEventEnvelope(CamelModel):
    success: bool = True
    message: str | None = None
    data: SosEventOut


class SosHistoryResponse(CamelModel):
    success: bool = True
    data: list[SosEventOut]


class ChannelStatusOut(CamelModel):
    usable: bool
    problems: list[str]


class ChannelsResponse(CamelModel):
    sms: ChannelStatusOut
    push: ChannelStatusOut


class SmsTestRequest(CamelModel):
    to: str = Field(..., min_length=1, max_length=32)
    message: str = Field(..., min_length=1, max_length=1600)
