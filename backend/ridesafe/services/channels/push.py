"""Expo push notification channel."""

from __future__ import annotations

import logging
import re

import httpx

from ridesafe.core.errors import ChannelSendError
from ridesafe.services.channels.base import Channel, ChannelClient, Recipient

logger = logging.getLogger(__name__)

_EXPO_TOKEN = re.compile(r"^(ExponentPushToken|ExpoPushToken)\[.+\]$")


def is_expo_push_token(token: str | None) -> bool:
    return bool(token and _EXPO_TOKEN.match(token))


def validate_push_config(url: str, enabled: bool) -> list[str]:
    problems: list[str] = []
    if not enabled:
        problems.append("push notifications are disabled")
    if not url:
        problems.append("EXPO_PUSH_URL is not set")
    elif not url.startswith("https://"):
        problems.append("EXPO_PUSH_URL must be an https URL")
    return problems


class ExpoPushChannel(ChannelClient):
    """In-app push to contacts that hold an account, via the Expo push API."""

    channel = Channel.push

    def __init__(
        self,
        url: str,
        *,
        access_token: str = "",
        enabled: bool = True,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        super().__init__(validate_push_config(url, enabled))
        self.url = url
        self.timeout = timeout
        self._transport = transport
        self._headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if access_token:
            self._headers["Authorization"] = f"Bearer {access_token}"

    def _payload(self, token: str, message) -> dict:
        return {
            "to": token,
            "sound": "default",
            "title": message.push_title,
            "body": message.push_body,
            "priority": "high",
            "channelId": "sos",
            "data": {
                "screen": "SOS",
                "urgency": "critical",
                "channelId": "sos",
                "mapsLink": message.maps_link,
            },
        }

    def _deliver(self, recipient: Recipient, message) -> str | None:
        token = recipient.push_token
        if not is_expo_push_token(token):
            raise ChannelSendError(self.channel.value, "Invalid push token", invalid_recipient=True)

        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport, headers=self._headers) as client:
                response = client.post(self.url, json=self._payload(token, message))
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPStatusError as exc:
            raise ChannelSendError(self.channel.value, f"Push service returned HTTP {exc.response.status_code}")
        except httpx.HTTPError as exc:
            raise ChannelSendError(self.channel.value, f"Push service unreachable: {exc}")
        except ValueError:
            raise ChannelSendError(self.channel.value, "Push service returned malformed JSON")

        ticket = body.get("data") if isinstance(body, dict) else None
        if isinstance(ticket, list):
            ticket = ticket[0] if ticket else None
        if not isinstance(ticket, dict):
            raise ChannelSendError(self.channel.value, "Push service returned no ticket")

        if ticket.get("status") != "ok":
            error = (ticket.get("details") or {}).get("error")
            raise ChannelSendError(
                self.channel.value,
                ticket.get("message") or error or "Push rejected",
                invalid_recipient=error == "DeviceNotRegistered",
            )
        if not ticket.get("id"):
            raise ChannelSendError(self.channel.value, "Push service returned no ticket id")
        return ticket["id"]
