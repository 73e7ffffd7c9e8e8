"""Concurrent SOS fan-out across contacts and channels.

Every (recipient, channel) send runs as its own task on a thread pool; the
dispatcher waits for all of them before returning. A task that fails is
turned into a ``failed`` outcome, so one bad send never cancels or hides
another. Outcomes come back in contact order (SMS before push for each
contact) whatever order the sends finished in.

Only SMS outcomes feed the tally; push outcomes are recorded alongside.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from functools import lru_cache
from typing import Iterable, Sequence

from ridesafe.core.config import settings
from ridesafe.core.errors import DispatchPreconditionError
from ridesafe.core.sos_state import status_for_counts
from ridesafe.models.sos_event import SosStatus
from ridesafe.services.channels.base import Channel, ChannelClient, DispatchOutcome, OutcomeStatus, Recipient
from ridesafe.services.channels.push import ExpoPushChannel
from ridesafe.services.channels.sms import TwilioSmsChannel
from ridesafe.services.message_service import AlertMessage, build_alert_message

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DispatchCounts:
    total_contacts: int
    successful: int
    failed: int
    skipped: int

    @property
    def status(self) -> SosStatus:
        return status_for_counts(self.successful, self.failed)


def tally(outcomes: Iterable[DispatchOutcome]) -> DispatchCounts:
    """Count SMS outcomes (the channel of record)."""
    successful = failed = skipped = 0
    for outcome in outcomes:
        if outcome.channel != Channel.sms:
            continue
        if outcome.status == OutcomeStatus.sent:
            successful += 1
        elif outcome.status == OutcomeStatus.failed:
            failed += 1
        else:
            skipped += 1
    return DispatchCounts(successful + failed + skipped, successful, failed, skipped)


@dataclass
class BatchResult:
    total_contacts: int
    successful: int
    failed: int
    skipped: int
    outcomes: list[DispatchOutcome] = field(default_factory=list)

    @classmethod
    def from_outcomes(cls, outcomes: list[DispatchOutcome]) -> "BatchResult":
        counts = tally(outcomes)
        return cls(counts.total_contacts, counts.successful, counts.failed, counts.skipped, outcomes)

    @property
    def success(self) -> bool:
        return self.successful > 0

    @property
    def status(self) -> SosStatus:
        return status_for_counts(self.successful, self.failed)

    @property
    def push_outcomes(self) -> list[DispatchOutcome]:
        return [o for o in self.outcomes if o.channel == Channel.push]


class Dispatcher:
    """Scatter/gather of one alert to many recipients."""

    def __init__(
        self,
        sms: ChannelClient,
        push: ChannelClient | None = None,
        max_workers: int = 8,
    ):
        self.sms = sms
        self.push = push
        self.max_workers = max(1, max_workers)

    def dispatch(
        self,
        sender_name: str,
        contacts: Sequence[Recipient],
        latitude: float,
        longitude: float,
        timestamp: datetime,
        sender_phone: str | None = None,
    ) -> BatchResult:
        if not contacts:
            raise DispatchPreconditionError("No emergency contacts to alert")

        message = build_alert_message(sender_name, latitude, longitude, timestamp, sender_phone)

        # One slot per (contact, channel), in output order. A slot is either an
        # outcome decided up front or a pending send.
        plan: list[tuple[Recipient, ChannelClient | None, Channel, DispatchOutcome | None]] = []
        for contact in contacts:
            plan.append(self._plan_sms(contact))
            if contact.linked_account_id is not None and self.push is not None:
                plan.append(self._plan_push(contact))

        pending = [slot for slot in plan if slot[3] is None]
        futures: dict[int, Future] = {}
        if pending:
            workers = min(self.max_workers, len(pending))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="sos-dispatch") as pool:
                for index, (contact, client, _, ready) in enumerate(plan):
                    if ready is None:
                        futures[index] = pool.submit(client.send, contact, message)
            # leaving the with-block joins every task

        outcomes = [
            ready if ready is not None else self._settle(futures[index], contact, channel, client)
            for index, (contact, client, channel, ready) in enumerate(plan)
        ]
        result = BatchResult.from_outcomes(outcomes)
        logger.info(
            "Dispatch for %s: total=%s sent=%s failed=%s skipped=%s push=%s",
            sender_name,
            result.total_contacts,
            result.successful,
            result.failed,
            result.skipped,
            len(result.push_outcomes),
        )
        return result

    def _plan_sms(self, contact: Recipient):
        if not contact.phone:
            logger.info("Skipping contact %s - no phone number", contact.contact_id)
            return contact, None, Channel.sms, DispatchOutcome.skipped(contact, Channel.sms, "No phone number")
        if not self.sms.is_usable:
            return contact, None, Channel.sms, self._config_failure(self.sms, contact)
        return contact, self.sms, Channel.sms, None

    def _plan_push(self, contact: Recipient):
        if not contact.push_token:
            return contact, None, Channel.push, DispatchOutcome.skipped(contact, Channel.push, "No push token")
        if not self.push.is_usable:
            return contact, None, Channel.push, self._config_failure(self.push, contact)
        return contact, self.push, Channel.push, None

    @staticmethod
    def _config_failure(client: ChannelClient, contact: Recipient) -> DispatchOutcome:
        return DispatchOutcome.failed(
            contact, client.channel, client.config_error().message, "config", client.address_for(contact)
        )

    @staticmethod
    def _settle(future: Future, contact: Recipient, channel: Channel, client: ChannelClient) -> DispatchOutcome:
        try:
            return future.result()
        except Exception as exc:  # noqa: BLE001 - a crashed send is a failed outcome
            logger.exception("%s send to contact=%s raised", channel.value, contact.contact_id)
            return DispatchOutcome.failed(contact, channel, str(exc) or exc.__class__.__name__, "exception")


def build_dispatcher() -> Dispatcher:
    """Dispatcher wired to the configured providers."""
    sms = TwilioSmsChannel(
        settings.twilio_account_sid,
        settings.twilio_auth_token,
        settings.twilio_phone_number,
        timeout=settings.channel_timeout_seconds,
    )
    push = None
    if settings.push_enabled:
        push = ExpoPushChannel(
            settings.expo_push_url,
            access_token=settings.expo_access_token,
            timeout=settings.channel_timeout_seconds,
        )
    return Dispatcher(sms, push, max_workers=settings.dispatch_max_workers)


@lru_cache(maxsize=1)
def get_dispatcher() -> Dispatcher:
    """Dependency: process-wide dispatcher, built (and validated) once."""
    return build_dispatcher()


def channel_status(dispatcher: Dispatcher) -> dict[str, dict]:
    status = {"sms": {"usable": dispatcher.sms.is_usable, "problems": dispatcher.sms.problems}}
    if dispatcher.push is None:
        status["push"] = {"usable": False, "problems": ["push notifications are disabled"]}
    else:
        status["push"] = {"usable": dispatcher.push.is_usable, "problems": dispatcher.push.problems}
    return status


def send_single_sms(dispatcher: Dispatcher, to: str, body: str) -> DispatchOutcome:
    """Send one ad-hoc SMS through the alert channel (debug tooling)."""
    recipient = Recipient(contact_id=None, name=to, phone=to)
    return dispatcher.sms.send(recipient, AlertMessage(sms_body=body, push_title="", push_body="", maps_link=""))
