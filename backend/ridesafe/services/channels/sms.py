"""Twilio SMS channel."""

from __future__ import annotations

import logging
from typing import Any

import requests
from twilio.base.exceptions import TwilioException, TwilioRestException
from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client

from ridesafe.core.errors import ChannelSendError
from ridesafe.core.sos_policies import PLACEHOLDER_TWILIO_NUMBER, PLACEHOLDER_TWILIO_SID
from ridesafe.services.channels.base import Channel, ChannelClient, Recipient
from ridesafe.services.phone_service import normalize_phone

logger = logging.getLogger(__name__)

# Twilio error codes meaning the destination number itself is unusable
INVALID_NUMBER_CODES = frozenset({21211, 21214, 21217, 21408, 21610, 21614})


def validate_twilio_config(account_sid: str, auth_token: str, from_number: str) -> list[str]:
    """Structural credential checks. Returns a list of problems (empty = usable)."""
    problems: list[str] = []
    if not account_sid:
        problems.append("TWILIO_ACCOUNT_SID is not set")
    elif account_sid == PLACEHOLDER_TWILIO_SID:
        problems.append("TWILIO_ACCOUNT_SID is still set to placeholder value")
    elif not account_sid.startswith("AC"):
        problems.append('TWILIO_ACCOUNT_SID must start with "AC"')

    if not auth_token:
        problems.append("TWILIO_AUTH_TOKEN is not set")

    if not from_number:
        problems.append("TWILIO_PHONE_NUMBER is not set")
    elif not from_number.startswith("+"):
        problems.append('TWILIO_PHONE_NUMBER must start with "+"')
    return problems


class TwilioSmsChannel(ChannelClient):
    """SMS via Twilio's Messages API.

    ``client`` may be any object exposing ``messages.create(body, from_, to)``;
    by default a real ``twilio.rest.Client`` is built when the credentials
    pass validation.
    """

    channel = Channel.sms

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        *,
        timeout: float = 10.0,
        client: Any = None,
    ):
        super().__init__(validate_twilio_config(account_sid, auth_token, from_number))
        self.from_number = from_number
        if from_number == PLACEHOLDER_TWILIO_NUMBER:
            logger.warning("Twilio phone number is still set to placeholder value")
        self._client = None
        if self.is_usable:
            self._client = client or Client(
                account_sid,
                auth_token,
                http_client=TwilioHttpClient(timeout=timeout),
            )

    def address_for(self, recipient: Recipient) -> str | None:
        return normalize_phone(recipient.phone)

    def _deliver(self, recipient: Recipient, message) -> str | None:
        to = self.address_for(recipient)
        body = getattr(message, "sms_body", message)
        try:
            result = self._client.messages.create(body=body, from_=self.from_number, to=to)
        except TwilioRestException as exc:
            raise ChannelSendError(
                self.channel.value,
                exc.msg or str(exc),
                invalid_recipient=exc.code in INVALID_NUMBER_CODES,
            )
        except TwilioException as exc:
            raise ChannelSendError(self.channel.value, str(exc))
        except requests.RequestException as exc:
            raise ChannelSendError(self.channel.value, f"Twilio unreachable: {exc}")
        if not getattr(result, "sid", None):
            raise ChannelSendError(self.channel.value, "Twilio returned no message sid")
        return result.sid
