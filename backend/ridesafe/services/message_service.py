"""Alert text construction (SMS body, push title/body, map link)."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ridesafe.core.config import settings
from ridesafe.core.sos_policies import DEFAULT_LOCATION_ACCURACY_M, PUSH_BODY_MAX_CHARS, PUSH_TITLE


@dataclass(frozen=True)
class AlertMessage:
    sms_body: str
    push_title: str
    push_body: str
    maps_link: str


def maps_link(latitude: float, longitude: float, template: str | None = None) -> str:
    """Render the map URL for a coordinate pair."""
    template = template or settings.maps_link_template
    return template.format(latitude=f"{latitude:.6f}", longitude=f"{longitude:.6f}")


def format_timestamp(ts: datetime) -> str:
    return ts.strftime("%m/%d/%Y, %I:%M:%S %p %Z").strip()


def truncate(text: str, limit: int = PUSH_BODY_MAX_CHARS) -> str:
    """Cut ``text`` to ``limit`` characters plus an ellipsis."""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def build_sms_body(
    sender_name: str,
    latitude: float,
    longitude: float,
    timestamp: datetime,
    sender_phone: str | None = None,
    app_label: str | None = None,
    template: str | None = None,
) -> str:
    link = maps_link(latitude, longitude, template)
    label = app_label or settings.sender_app_label
    lines = [
        "🚨 URGENT: EMERGENCY SOS ALERT 🚨",
        "",
        f"👤 PERSON IN DISTRESS: {sender_name}",
        f"⏰ TIME: {format_timestamp(timestamp)}",
        f"📍 LOCATION: {latitude:.6f}, {longitude:.6f}",
        f"📏 ACCURACY: ±{DEFAULT_LOCATION_ACCURACY_M}m",
    ]
    if sender_phone:
        lines.append(f"📞 CALL BACK: {sender_phone}")
    lines += [
        "",
        f"🗺️ GOOGLE MAPS: {link}",
        "",
        "⚠️ THIS IS AN AUTOMATED EMERGENCY ALERT",
        f"📱 Sent via {label} - Please respond immediately!",
        "",
        "---",
        f"If you cannot reach {sender_name}, consider contacting local authorities.",
    ]
    return "\n".join(lines)


def build_push_body(sender_name: str, latitude: float, longitude: float) -> str:
    text = f"{sender_name} has triggered an SOS alert. Location: {latitude:.6f}, {longitude:.6f}"
    return truncate(text)


def build_alert_message(
    sender_name: str,
    latitude: float,
    longitude: float,
    timestamp: datetime,
    sender_phone: str | None = None,
) -> AlertMessage:
    """Build every variant of the alert once per dispatch."""
    return AlertMessage(
        sms_body=build_sms_body(sender_name, latitude, longitude, timestamp, sender_phone),
        push_title=PUSH_TITLE,
        push_body=build_push_body(sender_name, latitude, longitude),
        maps_link=maps_link(latitude, longitude),
    )
