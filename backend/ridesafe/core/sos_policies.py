"""SOS dispatch policy constants."""

from __future__ import annotations

# Max events returned by the history endpoint
HISTORY_PAGE_SIZE = 50

# Push bodies longer than this are cut and suffixed with an ellipsis
PUSH_BODY_MAX_CHARS = 100

PUSH_TITLE = "🚨 EMERGENCY ALERT"

# Used when the user profile has no display name
FALLBACK_SENDER_NAME = "ShareMyRide User"

# Values shipped in sample .env files; treated as "not configured"
PLACEHOLDER_TWILIO_SID = "ACxxxxxxxxxxxxxxxxxxxxxxxxxxxxxx"
PLACEHOLDER_TWILIO_NUMBER = "+1234567890"

# Reported accuracy of the device fix, in meters
DEFAULT_LOCATION_ACCURACY_M = 10
