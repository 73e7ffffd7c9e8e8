"""SOS event status state machine.

    active ──► sent | partially_sent | failed   (exactly once, after dispatch)
    active | sent | partially_sent | failed ──► resolved
    resolved is terminal
"""

from __future__ import annotations

from ridesafe.core.errors import InvalidTransitionError
from ridesafe.models.sos_event import SosStatus

DISPATCH_OUTCOME_STATES = frozenset({SosStatus.sent, SosStatus.partially_sent, SosStatus.failed})

_TRANSITIONS: dict[SosStatus, frozenset[SosStatus]] = {
    SosStatus.active: DISPATCH_OUTCOME_STATES | {SosStatus.resolved},
    SosStatus.sent: frozenset({SosStatus.resolved}),
    SosStatus.partially_sent: frozenset({SosStatus.resolved}),
    SosStatus.failed: frozenset({SosStatus.resolved}),
    SosStatus.resolved: frozenset(),
}


def can_transition(current: SosStatus, target: SosStatus) -> bool:
    return target in _TRANSITIONS[SosStatus(current)]


def transition(current: SosStatus, target: SosStatus) -> SosStatus:
    """Return ``target`` if the move is legal, else raise InvalidTransitionError."""
    current = SosStatus(current)
    target = SosStatus(target)
    if target not in _TRANSITIONS[current]:
        raise InvalidTransitionError(current.value, target.value)
    return target


def status_for_counts(successful: int, failed: int) -> SosStatus:
    """Aggregate status of a finished dispatch.

    Only the SMS tally counts. Skipped recipients never move the status.
    """
    if successful > 0 and failed == 0:
        return SosStatus.sent
    if successful > 0:
        return SosStatus.partially_sent
    return SosStatus.failed
