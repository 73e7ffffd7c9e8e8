"""Shared channel types: recipients, outcomes, and the client base class."""

from __future__ import annotations

import enum
import logging
from dataclasses import asdict, dataclass
from typing import Any

from ridesafe.core.errors import ChannelConfigError, ChannelSendError

logger = logging.getLogger(__name__)


class Channel(str, enum.Enum):
    sms = "sms"
    push = "push"


class OutcomeStatus(str, enum.Enum):
    sent = "sent"
    failed = "failed"
    skipped = "skipped"


@dataclass(frozen=True)
class Recipient:
    """An emergency contact as seen by the dispatcher."""

    contact_id: int | None
    name: str
    phone: str | None = None
    linked_account_id: int | None = None
    push_token: str | None = None


@dataclass(frozen=True)
class DispatchOutcome:
    """Result of one send attempt to one recipient over one channel."""

    contact_id: int | None
    contact_name: str
    channel: Channel
    status: OutcomeStatus
    to: str | None = None
    provider_message_id: str | None = None
    error_detail: str | None = None
    error_code: str | None = None  # config | invalid_recipient | provider | exception
    skip_reason: str | None = None

    @classmethod
    def sent(cls, recipient: Recipient, channel: Channel, provider_message_id: str | None, to: str | None = None):
        return cls(
            contact_id=recipient.contact_id,
            contact_name=recipient.name,
            channel=channel,
            status=OutcomeStatus.sent,
            to=to,
            provider_message_id=provider_message_id,
        )

    @classmethod
    def failed(cls, recipient: Recipient, channel: Channel, detail: str, code: str, to: str | None = None):
        return cls(
            contact_id=recipient.contact_id,
            contact_name=recipient.name,
            channel=channel,
            status=OutcomeStatus.failed,
            to=to,
            error_detail=detail,
            error_code=code,
        )

    @classmethod
    def skipped(cls, recipient: Recipient, channel: Channel, reason: str):
        return cls(
            contact_id=recipient.contact_id,
            contact_name=recipient.name,
            channel=channel,
            status=OutcomeStatus.skipped,
            skip_reason=reason,
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["channel"] = self.channel.value
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DispatchOutcome":
        return cls(
            contact_id=data.get("contact_id"),
            contact_name=data.get("contact_name", ""),
            channel=Channel(data["channel"]),
            status=OutcomeStatus(data["status"]),
            to=data.get("to"),
            provider_message_id=data.get("provider_message_id"),
            error_detail=data.get("error_detail"),
            error_code=data.get("error_code"),
            skip_reason=data.get("skip_reason"),
        )


class ChannelClient:
    """Base for outbound channel adapters.

    Subclasses validate their credentials in ``__init__`` (filling
    ``problems``) and implement ``_deliver``, which returns the provider
    message id or raises ChannelSendError. ``send`` never raises for
    provider or configuration failures.
    """

    channel: Channel

    def __init__(self, problems: list[str]):
        self.problems = list(problems)
        self.is_usable = not self.problems
        if self.problems:
            logger.warning("%s channel disabled: %s", self.channel.value, "; ".join(self.problems))

    def config_error(self) -> ChannelConfigError:
        return ChannelConfigError(self.channel.value, self.problems)

    def address_for(self, recipient: Recipient) -> str | None:
        return None

    def send(self, recipient: Recipient, message) -> DispatchOutcome:
        to = self.address_for(recipient)
        if not self.is_usable:
            return DispatchOutcome.failed(recipient, self.channel, self.config_error().message, "config", to)
        try:
            provider_id = self._deliver(recipient, message)
        except ChannelSendError as exc:
            code = "invalid_recipient" if exc.invalid_recipient else "provider"
            logger.warning(
                "%s to contact=%s failed: %s", self.channel.value, recipient.contact_id, exc.message
            )
            return DispatchOutcome.failed(recipient, self.channel, exc.message, code, to)
        logger.info("%s sent to contact=%s: %s", self.channel.value, recipient.contact_id, provider_id)
        return DispatchOutcome.sent(recipient, self.channel, provider_id, to)

    def _deliver(self, recipient: Recipient, message) -> str | None:
        raise NotImplementedError
